"""Trailing-edge debouncer for async callbacks."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Set

logger = logging.getLogger(__name__)


class Debouncer:
    """Collapse bursts of schedule() calls into one callback run.

    Each schedule() restarts the delay. Only a run that is still waiting is
    cancelled; a callback that has started always finishes, and callbacks
    never overlap.
    """

    def __init__(
        self,
        delay: float,
        callback: Callable[[], Awaitable[None]],
        sleep: Optional[Callable[[float], Awaitable[None]]] = None
    ):
        self.delay = delay
        self._callback = callback
        self._sleep = sleep or asyncio.sleep
        self._lock = asyncio.Lock()
        self._waiting: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> bool:
        return self._waiting is not None

    def schedule(self) -> None:
        """(Re)start the delay. Must be called from a running event loop."""
        if self._waiting is not None:
            self._waiting.cancel()
        task = asyncio.create_task(self._run())
        self._waiting = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def cancel(self) -> None:
        """Drop the pending run, if any."""
        if self._waiting is not None:
            self._waiting.cancel()
            self._waiting = None

    async def flush(self) -> None:
        """Run a pending callback now and wait for any run in progress."""
        had_pending = self._waiting is not None
        self.cancel()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        if had_pending:
            await self._invoke()

    async def _run(self) -> None:
        await self._sleep(self.delay)
        if self._waiting is asyncio.current_task():
            self._waiting = None
        await self._invoke()

    async def _invoke(self) -> None:
        async with self._lock:
            try:
                await self._callback()
            except Exception as e:
                logger.error("[DEBOUNCE] Callback failed: %s", e)
