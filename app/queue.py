"""Single-worker job queue for reel processing.

This module owns the pending-job list and the single-flight execution gate.
Jobs wait here until the drain loop hands them, one at a time, to the
pipeline runner (``PipelineOrchestrator.execute_pipeline`` in production).

Scheduling Rules:
    - enqueue(): new jobs join the tail (FIFO)
    - retry(): the job is removed if still pending and re-inserted at the head,
      ahead of every other pending job
    - At most one job executes at any time

Single-Flight Gate:
    ``_busy`` is set under ``_lock`` before a job leaves the pending list and
    cleared under the same lock only when the drain loop finds the list empty.
    The drain loop runs as one background ``asyncio.Task``; enqueue/retry calls
    that arrive while it runs only append and return.

The queue has no notion of a job once it starts executing. Terminal states
(completed/failed) live in the status store and the result sink.

Usage:
    from app.queue import JobQueue

    queue = JobQueue(status_store, orchestrator.execute_pipeline)
    await queue.enqueue(job_id, reel_url)
    await queue.join()  # wait until the pending list is drained
"""

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable
from typing import Any

from app.models import JobState, QueuedJob
from app.schemas.job import JobProgress
from app.services.status_store import StatusStore
from app.utils.logging import get_logger

log = get_logger(__name__)

PipelineRunner = Callable[[QueuedJob], Awaitable[Any]]

UNKNOWN_ERROR_MESSAGE = "An unknown error occurred"


class JobQueue:
    """Ordered pending list plus a single-flight gate around the pipeline runner.

    Attributes:
        status_store: Store receiving the ``queued`` status on enqueue/retry
    """

    def __init__(self, status_store: StatusStore, runner: PipelineRunner):
        self.status_store = status_store
        self._runner = runner
        self._pending: deque[QueuedJob] = deque()
        self._lock = asyncio.Lock()
        self._busy = False
        self._drain_task: asyncio.Task[None] | None = None

    @property
    def is_busy(self) -> bool:
        return self._busy

    @property
    def pending_ids(self) -> list[str]:
        """Job ids waiting to start, in dequeue order."""
        return [job.id for job in self._pending]

    async def enqueue(self, job_id: str, reel_url: str) -> None:
        """Append a job to the tail and start draining if idle."""
        async with self._lock:
            self._pending.append(QueuedJob(id=job_id, reel_url=reel_url))
            self.status_store.set(job_id, JobState.QUEUED, 0)
            log.info("job_enqueued", job_id=job_id, pending=len(self._pending))
            self._start_drain_locked()

    async def retry(self, job_id: str, reel_url: str) -> None:
        """Re-queue a job at the head of the pending list.

        Any pending entry with the same id is removed first, so a job is never
        pending twice. The fresh entry starts with retry_count 0.
        """
        async with self._lock:
            removed = False
            for existing in list(self._pending):
                if existing.id == job_id:
                    self._pending.remove(existing)
                    removed = True
            self._pending.appendleft(QueuedJob(id=job_id, reel_url=reel_url))
            self.status_store.set(job_id, JobState.QUEUED, 0)
            log.info(
                "job_requeued",
                job_id=job_id,
                replaced_pending_entry=removed,
                pending=len(self._pending),
            )
            self._start_drain_locked()

    def get_status(self, job_id: str) -> JobProgress | None:
        return self.status_store.get(job_id)

    async def join(self) -> None:
        """Wait until the drain loop has emptied the pending list."""
        while self._drain_task is not None and not self._drain_task.done():
            await asyncio.shield(self._drain_task)

    async def shutdown(self) -> None:
        """Cancel the drain loop. Pending jobs are dropped (no persistence)."""
        task = self._drain_task
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            log.info("job_queue_drain_cancelled", dropped_pending=len(self._pending))

    def _start_drain_locked(self) -> None:
        """Spawn the drain loop if the gate is open. Caller holds ``_lock``."""
        if self._busy or not self._pending:
            return
        self._busy = True
        self._drain_task = asyncio.create_task(self._drain(), name="job-queue-drain")

    async def _drain(self) -> None:
        """Run pending jobs one at a time until the list is empty."""
        try:
            while True:
                async with self._lock:
                    if not self._pending:
                        self._busy = False
                        log.info("job_queue_idle")
                        return
                    job = self._pending.popleft()
                await self._run_job(job)
        except asyncio.CancelledError:
            self._busy = False
            raise

    async def _run_job(self, job: QueuedJob) -> None:
        """Invoke the runner; any escaped exception marks the job failed."""
        log.info("job_started", job_id=job.id, retry_count=job.retry_count)
        try:
            await self._runner(job)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log.error(
                "job_execution_crashed",
                job_id=job.id,
                error_type=type(e).__name__,
                error_message=str(e),
                exc_info=True,
            )
            self.status_store.set(
                job.id, JobState.FAILED, 0, error_message=str(e) or UNKNOWN_ERROR_MESSAGE
            )
