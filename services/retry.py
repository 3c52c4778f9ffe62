"""Bounded retry with exponential backoff for database writes."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

import aiosqlite

from config import INSERT_MAX_ATTEMPTS, INSERT_BASE_DELAY

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def _sleep(seconds: float) -> None:
    await asyncio.sleep(seconds)


class RetryError(Exception):
    """Raised when every attempt of a retried operation failed."""

    def __init__(self, attempts: int, last_error: BaseException):
        super().__init__(f"Operation failed after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    attempts: int = INSERT_MAX_ATTEMPTS,
    base_delay: float = INSERT_BASE_DELAY,
    retry_on: Tuple[Type[BaseException], ...] = (aiosqlite.Error,),
    sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    label: str = "operation"
) -> T:
    """Run operation, retrying on retry_on errors.

    Between attempt n and n+1 (0-based) waits base_delay * 2**n seconds:
    0.5s then 1.0s with the defaults. After the last failure raises
    RetryError with the final error attached.
    """
    sleep = sleep or _sleep
    last_error: Optional[BaseException] = None
    for attempt in range(attempts):
        try:
            return await operation()
        except retry_on as e:
            last_error = e
            logger.warning("[RETRY] %s attempt %d/%d failed: %s", label, attempt + 1, attempts, e)
            if attempt + 1 < attempts:
                await sleep(base_delay * (2 ** attempt))

    raise RetryError(attempts, last_error)
