"""HTTP plumbing shared by providers — client factory, rate limiting, retries."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from typing import Any, TypeVar

import httpx
from loguru import logger

T = TypeVar("T")

# Client errors that a retry cannot fix
NON_RETRYABLE_STATUS: frozenset[int] = frozenset({400, 401, 403, 404, 429})

_RETRYABLE_ERRORS = (
    httpx.TimeoutException,
    httpx.ConnectError,
    httpx.ReadError,
    httpx.RemoteProtocolError,
)


def build_proxy_url(config: Any) -> str:
    """Assemble proxy URL from config fields (protocol/host/port)."""
    if config is None:
        return ""
    provider_cfg = config.get("providers", {})
    host = provider_cfg.get("proxy_host", "")
    if not host:
        return ""
    proto = provider_cfg.get("proxy_protocol", "http")
    port = provider_cfg.get("proxy_port", "")
    return f"{proto}://{host}:{port}" if port else f"{proto}://{host}"


def http_client(
    config: Any = None,
    transport: httpx.BaseTransport | None = None,
    **kwargs: Any,
) -> httpx.Client:
    """Create an httpx Client with optional proxy (read from config each time)."""
    proxy = build_proxy_url(config)
    if transport is not None:
        kwargs.setdefault("transport", transport)
    elif proxy:
        kwargs.setdefault("proxy", proxy)
    kwargs.setdefault("follow_redirects", True)
    return httpx.Client(**kwargs)


class RateLimiter:
    """Minimum interval between requests to one provider; safe across threads."""

    def __init__(self, min_interval: float = 0.0) -> None:
        self._min_interval = max(0.0, float(min_interval))
        self._lock = threading.Lock()
        self._next_slot = 0.0

    @property
    def min_interval(self) -> float:
        return self._min_interval

    def wait(self) -> None:
        """Block until the caller may issue its request."""
        if self._min_interval <= 0:
            return
        with self._lock:
            now = time.monotonic()
            slot = max(now, self._next_slot)
            self._next_slot = slot + self._min_interval
        delay = slot - now
        if delay > 0:
            time.sleep(delay)


def is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status >= 500 and status not in NON_RETRYABLE_STATUS
    return isinstance(exc, _RETRYABLE_ERRORS)


def with_retry(
    func: Callable[[], T],
    retries: int = 2,
    backoff: float = 0.5,
    label: str = "request",
) -> T:
    """
    Call *func*, retrying transient network failures with exponential back-off.

    Auth errors, rate-limit responses and other client errors are raised at once.
    """
    attempt = 0
    while True:
        try:
            return func()
        except Exception as e:
            if attempt >= retries or not is_retryable(e):
                raise
            delay = backoff * (2 ** attempt)
            attempt += 1
            logger.debug(f"{label} failed ({e}); retry {attempt}/{retries} in {delay:.1f}s")
            time.sleep(delay)
