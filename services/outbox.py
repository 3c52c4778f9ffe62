"""Observable best-effort persistence.

Writes that happen after a response has already been streamed are handed to
the outbox instead of being awaited inline. Each write becomes a tracked
task with its own retry loop and a recorded outcome, so failures show up in
logs and in stats() rather than disappearing.
"""

import asyncio
import logging
import time
import uuid
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional, Set

from config import INSERT_MAX_ATTEMPTS, INSERT_BASE_DELAY, OUTBOX_FAILURE_HISTORY
from services.retry import RetryError, with_retry

logger = logging.getLogger(__name__)


@dataclass
class OutboxJob:
    """Outcome record for one persistence job."""
    name: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: str = "pending"  # pending | succeeded | failed
    attempts: int = 0
    error: Optional[str] = None
    created_at: float = field(default_factory=time.time)
    finished_at: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status,
            "attempts": self.attempts,
            "error": self.error,
            "created_at": self.created_at,
            "finished_at": self.finished_at,
        }


class PersistenceOutbox:
    """Runs persistence jobs as tracked background tasks."""

    def __init__(
        self,
        attempts: int = INSERT_MAX_ATTEMPTS,
        base_delay: float = INSERT_BASE_DELAY,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None
    ):
        self.attempts = attempts
        self.base_delay = base_delay
        self._sleep = sleep
        self._tasks: Set[asyncio.Task] = set()
        self._succeeded = 0
        self._failed = 0
        self._failures: Deque[OutboxJob] = deque(maxlen=OUTBOX_FAILURE_HISTORY)

    def submit(self, name: str, operation: Callable[[], Awaitable[Any]]) -> OutboxJob:
        """Schedule operation and return its job record immediately.

        Must be called from a running event loop.
        """
        job = OutboxJob(name=name)
        task = asyncio.create_task(self._run(job, operation))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return job

    async def _run(self, job: OutboxJob, operation: Callable[[], Awaitable[Any]]) -> None:
        async def attempt():
            job.attempts += 1
            return await operation()

        try:
            await with_retry(
                attempt,
                attempts=self.attempts,
                base_delay=self.base_delay,
                retry_on=(Exception,),
                sleep=self._sleep,
                label=job.name,
            )
        except RetryError as e:
            job.status = "failed"
            job.error = str(e.last_error)
            self._failed += 1
            self._failures.append(job)
            logger.error("[OUTBOX] Job %s (%s) failed after %d attempts: %s",
                         job.id, job.name, job.attempts, e.last_error)
        else:
            job.status = "succeeded"
            self._succeeded += 1
            logger.debug("[OUTBOX] Job %s (%s) succeeded", job.id, job.name)
        finally:
            job.finished_at = time.time()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every pending job to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        if self._tasks:
            logger.info("[OUTBOX] Draining %d pending jobs", len(self._tasks))
        await self.drain()

    def stats(self) -> Dict[str, Any]:
        return {
            "pending": self.pending,
            "succeeded": self._succeeded,
            "failed": self._failed,
            "recent_failures": self.recent_failures(),
        }

    def recent_failures(self) -> List[Dict[str, Any]]:
        return [job.to_dict() for job in self._failures]
