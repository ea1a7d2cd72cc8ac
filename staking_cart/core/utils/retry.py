from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import httpx
from loguru import logger

_TRANSIENT_STATUS_CODES = {429, 502, 503, 504}

T = TypeVar("T")


def backoff_delay_s(
    attempt: int, *, base_delay_s: float = 0.5, max_delay_s: float = 8.0
) -> float:
    return min(base_delay_s * (2**attempt), max_delay_s)


def is_transient_http_error(exc: Exception) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in _TRANSIENT_STATUS_CODES
    return False


async def retry_transient(
    fn: Callable[[], Awaitable[T]],
    *,
    attempts: int = 3,
    base_delay_s: float = 0.5,
    max_delay_s: float = 8.0,
    should_retry: Callable[[Exception], bool] = is_transient_http_error,
    label: str = "request",
) -> T:
    if attempts < 1:
        raise ValueError("attempts must be >= 1")

    for attempt in range(attempts):
        try:
            return await fn()
        except Exception as exc:  # noqa: BLE001
            if attempt >= attempts - 1 or not should_retry(exc):
                raise
            delay_s = backoff_delay_s(
                attempt, base_delay_s=base_delay_s, max_delay_s=max_delay_s
            )
            logger.debug(
                f"{label} failed (attempt {attempt + 1}/{attempts}): {exc}; retrying in {delay_s:.2f}s"
            )
            await asyncio.sleep(delay_s)

    raise RuntimeError(f"{label} exhausted retries")
