"""Request pacing shared by every call to a rate-limited upstream."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

logger = logging.getLogger(__name__)


class RateLimiter:
    """Minimum-interval pacing plus a rolling per-window request cap.

    One instance is shared by every call site that talks to the same upstream.
    :meth:`acquire` reads the counters, sleeps as needed and records the request
    while holding a single lock, so concurrent callers are serialized and the
    minimum interval holds between any two request starts.
    """

    def __init__(
        self,
        *,
        min_interval: float = 1.0,
        window: float = 60.0,
        max_requests_per_window: int = 100,
        cooldown: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if min_interval < 0 or cooldown < 0:
            raise ValueError("min_interval and cooldown must not be negative")
        if window <= 0 or max_requests_per_window < 1:
            raise ValueError("window must be positive and allow at least one request")

        self.min_interval = min_interval
        self.window = window
        self.max_requests_per_window = max_requests_per_window
        self.cooldown = cooldown
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._last_request: float | None = None
        self._window_start: float | None = None
        self._window_count = 0

    @property
    def window_count(self) -> int:
        return self._window_count

    def acquire(self) -> float:
        """Block until a request may be sent; returns the total time slept."""

        with self._lock:
            slept = 0.0
            now = self._clock()

            if self._window_start is None or now - self._window_start >= self.window:
                self._window_start = now
                self._window_count = 0

            if self._window_count >= self.max_requests_per_window:
                logger.info(
                    "Request window cap of %d reached; cooling down for %.1fs",
                    self.max_requests_per_window,
                    self.cooldown,
                )
                if self.cooldown > 0:
                    self._sleep(self.cooldown)
                    slept += self.cooldown
                now = self._clock()
                self._window_start = now
                self._window_count = 0

            if self._last_request is not None:
                remaining = self.min_interval - (now - self._last_request)
                if remaining > 0:
                    self._sleep(remaining)
                    slept += remaining
                    now = self._clock()

            self._last_request = now
            self._window_count += 1
            return slept

    def reset(self) -> None:
        with self._lock:
            self._last_request = None
            self._window_start = None
            self._window_count = 0
