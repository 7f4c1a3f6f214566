import time

import pytest

from citegraph.providers.clients.rate_limiter import RateLimiter


class _FakeClock:
    def __init__(self, start: float = 100.0) -> None:
        self.now = start
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def test_first_acquire_does_not_sleep():
    clock = _FakeClock()
    limiter = RateLimiter(min_interval=1.0, clock=clock, sleep=clock.sleep)

    assert limiter.acquire() == 0.0
    assert clock.sleeps == []


def test_five_calls_respect_minimum_interval_with_fake_clock():
    clock = _FakeClock()
    limiter = RateLimiter(min_interval=0.1, clock=clock, sleep=clock.sleep)

    starts = []
    for _ in range(5):
        limiter.acquire()
        starts.append(clock())

    assert starts[-1] - starts[0] >= 0.4 - 1e-9
    assert all(b - a >= 0.1 - 1e-9 for a, b in zip(starts, starts[1:]))


def test_five_calls_take_at_least_four_intervals_of_wall_clock_time():
    limiter = RateLimiter(min_interval=0.1)

    starts = []
    for _ in range(5):
        limiter.acquire()
        starts.append(time.monotonic())

    assert starts[-1] - starts[0] >= 0.4 - 0.01


def test_elapsed_time_counts_towards_the_interval():
    clock = _FakeClock()
    limiter = RateLimiter(min_interval=1.0, clock=clock, sleep=clock.sleep)

    limiter.acquire()
    clock.now += 0.75
    slept = limiter.acquire()

    assert slept == pytest.approx(0.25)


def test_window_cap_triggers_cooldown_and_resets_count():
    clock = _FakeClock()
    limiter = RateLimiter(
        min_interval=0.0,
        window=60.0,
        max_requests_per_window=3,
        cooldown=5.0,
        clock=clock,
        sleep=clock.sleep,
    )

    for _ in range(3):
        limiter.acquire()
    assert limiter.window_count == 3

    slept = limiter.acquire()

    assert slept == 5.0
    assert clock.sleeps == [5.0]
    assert limiter.window_count == 1


def test_window_rolls_over_after_its_length():
    clock = _FakeClock()
    limiter = RateLimiter(
        min_interval=0.0,
        window=10.0,
        max_requests_per_window=2,
        cooldown=5.0,
        clock=clock,
        sleep=clock.sleep,
    )

    limiter.acquire()
    limiter.acquire()
    clock.now += 10.0
    limiter.acquire()

    assert clock.sleeps == []
    assert limiter.window_count == 1


def test_reset_clears_state():
    clock = _FakeClock()
    limiter = RateLimiter(min_interval=1.0, clock=clock, sleep=clock.sleep)
    limiter.acquire()

    limiter.reset()

    assert limiter.window_count == 0
    assert limiter.acquire() == 0.0


def test_invalid_configuration_is_rejected():
    with pytest.raises(ValueError):
        RateLimiter(min_interval=-1)
    with pytest.raises(ValueError):
        RateLimiter(max_requests_per_window=0)
