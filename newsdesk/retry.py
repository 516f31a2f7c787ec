"""Exponential backoff for feed downloads and chat deliveries."""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta

import httpx

logger = logging.getLogger(__name__)

RETRYABLE_HTTP_CODES = {429, 500, 502, 503, 504}
RETRYABLE_EXCEPTIONS = (
    httpx.TimeoutException,
    httpx.ConnectError,
    httpx.RemoteProtocolError,
    ConnectionError,
    TimeoutError,
)
# python-telegram-bot errors, matched by name (BadRequest/Forbidden are final)
RETRYABLE_TELEGRAM_ERRORS = ("TimedOut", "NetworkError", "RetryAfter")


def _retry_after_seconds(exc: Exception) -> float | None:
    """Server-requested wait from a Retry-After header or a RetryAfter error."""
    if isinstance(exc, httpx.HTTPStatusError):
        value = exc.response.headers.get("retry-after")
    else:
        value = getattr(exc, "retry_after", None)
    if value is None:
        return None
    if isinstance(value, timedelta):
        return value.total_seconds()
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def is_retryable(exc: Exception) -> bool:
    if isinstance(exc, RETRYABLE_EXCEPTIONS):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in RETRYABLE_HTTP_CODES
    return type(exc).__name__ in RETRYABLE_TELEGRAM_ERRORS


def _describe(exc: Exception) -> str:
    if isinstance(exc, httpx.HTTPStatusError):
        return f"HTTP {exc.response.status_code}"
    return f"{type(exc).__name__}: {exc}"


async def retry_async(
    fn,
    *args,
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    **kwargs,
):
    """Await `fn(*args, **kwargs)`, retrying transient failures up to `max_retries` times.

    Transient means an httpx timeout or connection error, HTTP 429/5xx, or a
    Telegram timeout, network error or flood-control response. Anything else
    is raised on the first attempt. A server-requested wait lengthens the
    backoff but never beyond `max_delay`.
    """
    for attempt in range(max_retries + 1):
        try:
            return await fn(*args, **kwargs)
        except Exception as exc:
            if not is_retryable(exc) or attempt == max_retries:
                raise
            delay = min(base_delay * (2**attempt), max_delay)
            requested = _retry_after_seconds(exc)
            if requested is not None:
                delay = min(max(delay, requested), max_delay)
            logger.warning(
                "Retry %d/%d after %s (waiting %.1fs)",
                attempt + 1, max_retries, _describe(exc), delay,
            )
            await asyncio.sleep(delay)
