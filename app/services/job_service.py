"""Reel job service: the public operations behind the HTTP routes.

This module ties the job queue, the status store and the result sink
together:
- Submit a reel URL (validated before anything is queued)
- Retry a job whose result is on record
- Read status and results, list results, delete a job

Submission never waits for the pipeline. Pipeline errors are observable
only through ``get_status`` and the stored result.

Retry Source:
    Retry normally reads the source URL from the stored result. A job whose
    success-path result write failed ends ``failed`` with nothing stored; for
    such jobs retry falls back to the URL recorded at submission, as long as
    the status entry is terminal. Submission URLs live in memory only, so
    this fallback does not survive a restart.
"""

import uuid

import structlog

from app.exceptions import ResultNotFoundError
from app.queue import JobQueue
from app.schemas.job import JobProgress, JobResult
from app.services.result_store import DEFAULT_LIST_LIMIT, ResultSink
from app.services.url_intelligence import is_instagram_reel

log = structlog.get_logger()

URL_REQUIRED_MESSAGE = "reelUrl is required and must be a string"
REEL_ONLY_MESSAGE = "Only Instagram reel URLs are allowed"


class InvalidReelUrlError(ValueError):
    """Raised when a submitted URL is missing or not an Instagram reel."""


def validate_reel_url(reel_url: str | None) -> str:
    """Return the trimmed URL or raise InvalidReelUrlError."""
    if not isinstance(reel_url, str) or not reel_url.strip():
        raise InvalidReelUrlError(URL_REQUIRED_MESSAGE)
    reel_url = reel_url.strip()
    if not is_instagram_reel(reel_url):
        raise InvalidReelUrlError(REEL_ONLY_MESSAGE)
    return reel_url


class ReelJobService:
    """Facade over the queue and the result sink.

    Attributes:
        queue: Single-worker job queue (owns the status store)
        sink: Durable result storage
    """

    def __init__(self, queue: JobQueue, sink: ResultSink):
        self.queue = queue
        self.sink = sink
        self._source_urls: dict[str, str] = {}

    async def submit(self, reel_url: str | None) -> str:
        """Validate a reel URL, enqueue it and return the new job id.

        Raises:
            InvalidReelUrlError: URL missing or not an Instagram reel
        """
        url = validate_reel_url(reel_url)
        job_id = str(uuid.uuid4())
        self._source_urls[job_id] = url
        await self.queue.enqueue(job_id, url)
        log.info("job_submitted", job_id=job_id, reel_url=url)
        return job_id

    def _unstored_source_url(self, job_id: str) -> str | None:
        progress = self.queue.get_status(job_id)
        if progress is None or not progress.status.is_terminal:
            return None
        return self._source_urls.get(job_id)

    async def retry(self, job_id: str) -> None:
        """Re-queue a job ahead of pending jobs.

        Raises:
            ResultNotFoundError: No stored result and no terminal job with a
                known submission URL
        """
        result = await self.sink.read(job_id)
        if result is not None:
            reel_url = result.reel_url
        else:
            fallback = self._unstored_source_url(job_id)
            if fallback is None:
                raise ResultNotFoundError(job_id)
            log.warning("job_retry_without_stored_result", job_id=job_id)
            reel_url = fallback

        self._source_urls[job_id] = reel_url
        await self.queue.retry(job_id, reel_url)
        log.info("job_retry_requested", job_id=job_id)

    def get_status(self, job_id: str) -> JobProgress | None:
        return self.queue.get_status(job_id)

    async def get_result(self, job_id: str) -> JobResult | None:
        return await self.sink.read(job_id)

    async def list_results(
        self,
        status: str | None = None,
        search: str | None = None,
        limit: int = DEFAULT_LIST_LIMIT,
        offset: int = 0,
    ) -> tuple[list[JobResult], int]:
        return await self.sink.list_results(status=status, search=search, limit=limit, offset=offset)

    async def delete(self, job_id: str) -> bool:
        """Delete a stored result and its status entry.

        Returns:
            False if the sink could not delete the result

        Raises:
            ResultNotFoundError: No stored result for job_id
        """
        if await self.sink.read(job_id) is None:
            raise ResultNotFoundError(job_id)
        deleted = await self.sink.delete(job_id)
        if deleted:
            self.queue.status_store.delete(job_id)
            self._source_urls.pop(job_id, None)
            log.info("job_deleted", job_id=job_id)
        return deleted
