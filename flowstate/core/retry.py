"""Retrying model calls that failed at the transport layer."""

from __future__ import annotations

import asyncio
import random
from typing import Any, Awaitable, Callable, TypeVar

import httpx
from google.genai import errors as genai_errors

from flowstate.core.log import logger

__all__ = ("RETRYABLE_STATUS", "backoff_delay", "is_transient", "with_retry")

T = TypeVar("T")

# Rate limiting and server-side failures; any other API error is final
RETRYABLE_STATUS = frozenset({408, 429, 500, 502, 503, 504})


def is_transient(exc: BaseException) -> bool:
    """
    True for network failures, timeouts and retryable API status codes.

    A response that arrived but was unhelpful is never transient: it is
    returned to the caller and handled there.
    """
    if isinstance(exc, genai_errors.APIError):
        return exc.code in RETRYABLE_STATUS
    return isinstance(exc, (TimeoutError, ConnectionError, OSError, httpx.TransportError))


def backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Exponential delay for the zero-based *attempt*, capped and jittered into [50%, 100%)."""
    delay = min(base_delay * (2**attempt), max_delay)
    return delay * (0.5 + random.random() / 2)


async def with_retry(
    fn: Callable[..., Awaitable[T]],
    *args: Any,
    max_retries: int = 2,
    base_delay: float = 1.0,
    max_delay: float = 20.0,
    should_retry: Callable[[BaseException], bool] = is_transient,
    label: str = "",
    **kwargs: Any,
) -> T:
    """
    Await ``fn(*args, **kwargs)``, retrying up to *max_retries* times while
    *should_retry* accepts the raised exception. The last exception is
    re-raised unchanged.
    """
    tag = label or getattr(fn, "__name__", "call")
    attempt = 0
    while True:
        try:
            return await fn(*args, **kwargs)
        except Exception as exc:
            if attempt >= max_retries or not should_retry(exc):
                raise
            delay = backoff_delay(attempt, base_delay, max_delay)
            attempt += 1
            logger.warning(
                f"{tag}: {type(exc).__name__}: {exc} (retry {attempt}/{max_retries} in {delay:.1f}s)"
            )
            await asyncio.sleep(delay)
