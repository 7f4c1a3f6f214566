"""Shared HTTP client utilities with pacing, retry and error handling."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Callable, Dict, Optional

import requests
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
)

from citegraph.providers.clients.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

DEFAULT_HEADERS: Dict[str, str] = {
    "User-Agent": "citegraph",
    "Accept": "application/json",
}

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}

DEFAULT_MAX_RETRIES = 3
DEFAULT_BACKOFF_BASE_SECONDS = 1.0
DEFAULT_BACKOFF_MAX_SECONDS = 30.0

_shared_session: Optional[requests.Session] = None


class ClientError(Exception):
    """Base exception for HTTP client errors."""


class NotFoundError(ClientError):
    """Raised when a requested resource cannot be found (HTTP 404)."""


class RateLimitedError(ClientError):
    """Raised when the upstream service keeps responding with HTTP 429 after all retries."""

    def __init__(self, message: str, retry_after: Optional[float] = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class RequestRejectedError(ClientError):
    """Raised when the upstream rejects the request (HTTP 4xx, excluding 404/429)."""

    def __init__(self, status: int, message: str, body_excerpt: Optional[str] = None) -> None:
        super().__init__(message)
        self.status = status
        self.body_excerpt = body_excerpt


class UnauthorizedError(RequestRejectedError):
    """Raised for HTTP 401 responses when authentication is required or has failed."""


class ForbiddenError(RequestRejectedError):
    """Raised for HTTP 403 responses when access is forbidden."""


class UpstreamError(ClientError):
    """Raised when the upstream service fails after retries."""


class RetryableResponseError(Exception):
    """Internal exception used to trigger retries for retryable responses."""

    def __init__(self, response: requests.Response):
        super().__init__(f"Retryable response received ({response.status_code})")
        self.response = response


def _get_shared_session() -> requests.Session:
    """Return a shared :class:`requests.Session` with default headers."""

    global _shared_session
    if _shared_session is None:
        _shared_session = requests.Session()
        _shared_session.headers.update(DEFAULT_HEADERS)
    else:
        for key, value in DEFAULT_HEADERS.items():
            _shared_session.headers.setdefault(key, value)
    return _shared_session


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    if not value:
        return None

    if value.isdigit():
        return float(value)

    try:
        retry_time = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None

    if retry_time is None:
        return None

    if retry_time.tzinfo is None:
        retry_time = retry_time.replace(tzinfo=timezone.utc)

    delay = (retry_time - datetime.now(timezone.utc)).total_seconds()
    return max(delay, 0.0)


_BODY_EXCERPT_LIMIT = 200


def backoff_delay(attempt: int, base: float, maximum: float) -> float:
    """Exponential backoff: ``base * 2**(attempt - 1)`` for 1-based ``attempt``, capped."""

    return min(base * (2 ** max(attempt - 1, 0)), maximum)


def _sanitize_excerpt(text: str, max_length: int) -> str:
    cleaned = " ".join(text.split())
    return cleaned[:max_length]


def _get_body_excerpt(response: requests.Response) -> Optional[str]:
    try:
        body_text = response.text
    except (UnicodeDecodeError, ValueError):
        return None

    if not body_text:
        return None

    return _sanitize_excerpt(body_text, _BODY_EXCERPT_LIMIT)


class BaseHttpClient:
    """Base class providing shared HTTP behavior for upstream clients.

    Every attempt first waits on the optional :class:`RateLimiter`. Retries are
    applied to network failures raised by ``requests`` (timeouts included) and
    HTTP responses with status codes in :data:`RETRYABLE_STATUS_CODES`, waiting
    ``backoff_base * 2**(attempt - 1)`` seconds between attempts unless the
    response carries a ``Retry-After`` header. After ``max_retries`` attempts,
    HTTP 429 responses raise :class:`RateLimitedError` while 5xx responses and
    network failures raise :class:`UpstreamError`.
    """

    BASE_URL = ""

    def __init__(
        self,
        *,
        session: Optional[requests.Session] = None,
        base_url: Optional[str] = None,
        timeout: float = 10.0,
        debug_logging: bool = False,
        rate_limiter: Optional[RateLimiter] = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        backoff_base: float = DEFAULT_BACKOFF_BASE_SECONDS,
        backoff_max: float = DEFAULT_BACKOFF_MAX_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.session = session or _get_shared_session()
        for key, value in DEFAULT_HEADERS.items():
            self.session.headers.setdefault(key, value)
        self.base_url = base_url or self.BASE_URL
        self.timeout = timeout
        self.debug_logging = debug_logging
        self.rate_limiter = rate_limiter
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self._sleep = sleep

    def _retry_wait(self, retry_state: RetryCallState) -> float:
        """Wait strategy honoring Retry-After headers when available."""

        if retry_state.outcome is not None and retry_state.outcome.failed:
            exception = retry_state.outcome.exception()
            if isinstance(exception, RetryableResponseError):
                retry_after = _parse_retry_after(exception.response.headers.get("Retry-After"))
                if retry_after is not None:
                    return min(retry_after, self.backoff_max)

        return backoff_delay(retry_state.attempt_number, self.backoff_base, self.backoff_max)

    def _log_retry_attempt(self, retry_state: RetryCallState) -> None:
        if not self.debug_logging:
            return

        exception = retry_state.outcome.exception() if retry_state.outcome else None
        reason = f" due to {exception}" if exception else ""
        logger.debug(
            "Retry attempt %s for %s%s",
            retry_state.attempt_number,
            self.__class__.__name__,
            reason,
        )

    def _retrying(self) -> Retrying:
        return Retrying(
            reraise=True,
            stop=stop_after_attempt(self.max_retries),
            wait=self._retry_wait,
            retry=retry_if_exception_type((requests.RequestException, RetryableResponseError)),
            before_sleep=self._log_retry_attempt,
            sleep=self._sleep,
        )

    def _send_once(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        if self.rate_limiter is not None:
            self.rate_limiter.acquire()
        response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        if response.status_code in RETRYABLE_STATUS_CODES:
            raise RetryableResponseError(response)
        return response

    def _send(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        return self._retrying()(self._send_once, method, url, **kwargs)

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        **kwargs: Any,
    ) -> requests.Response:
        url = f"{self.base_url}{path}"
        if self.debug_logging:
            logger.debug("HTTP %s %s", method.upper(), path)
        try:
            response = self._send(method, url, params=params, headers=headers, **kwargs)
        except RetryableResponseError as exc:
            response = exc.response
        except requests.RequestException as exc:
            raise UpstreamError(f"Request failed: {exc}") from exc

        return self._handle_response(response)

    def _handle_response(self, response: requests.Response) -> requests.Response:
        status = response.status_code
        if status == 404:
            raise NotFoundError("Resource not found")
        if status == 429:
            retry_after = _parse_retry_after(response.headers.get("Retry-After"))
            raise RateLimitedError("Rate limit exceeded", retry_after=retry_after)
        if 500 <= status < 600:
            excerpt = _get_body_excerpt(response)
            message = "Upstream service error"
            if excerpt:
                message = f"{message}: {excerpt}"
            raise UpstreamError(f"{message} ({status})")
        if 400 <= status < 500:
            excerpt = _get_body_excerpt(response)
            message = "Client request rejected"
            if excerpt:
                message = f"{message}: {excerpt}"
            if status == 401:
                raise UnauthorizedError(status, f"Unauthorized ({status})", body_excerpt=excerpt)
            if status == 403:
                raise ForbiddenError(status, f"Forbidden ({status})", body_excerpt=excerpt)
            raise RequestRejectedError(status, f"{message} ({status})", body_excerpt=excerpt)
        return response

    def _json(self, response: requests.Response) -> Any:
        """Decode a JSON body, surfacing malformed payloads as :class:`UpstreamError`."""

        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamError(f"Malformed JSON response: {exc}") from exc
