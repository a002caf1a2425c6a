"""Retry helper for fallible asynchronous provider calls."""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from ooh_terminal.infrastructure.llm.errors import ErrorKind, classify_error

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_RETRIES = 3
DEFAULT_INITIAL_DELAY = 1.5


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    classify: Callable[[BaseException], ErrorKind] = classify_error,
    max_retries: int = DEFAULT_MAX_RETRIES,
    initial_delay: float = DEFAULT_INITIAL_DELAY,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Await ``operation()``, retrying rate-limit and availability failures.

    The delay doubles after every retry. Permanent errors and the last
    retryable error are re-raised unchanged; no substitute value is ever
    produced here.
    """
    delay = initial_delay
    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as exc:  # pylint: disable=broad-except
            kind = classify(exc)
            if not kind.retryable or attempt >= max_retries:
                raise
            attempt += 1
            logger.warning(
                "Provider call failed (%s), retry %d/%d in %.1fs: %s",
                kind.value,
                attempt,
                max_retries,
                delay,
                exc,
            )
            await sleep(delay)
            delay *= 2
