"""In-memory job status store.

Maps job id → latest JobProgress. Every ``set`` replaces the entry
wholesale: progress, current step and error message are never merged with a
previous entry, so a later update without an error clears an earlier one.

Reads never wait on the running pipeline; callers see the last write.
"""

from app.models import JobState
from app.schemas.job import JobProgress


class StatusStore:
    """Latest-status mapping keyed by job id."""

    def __init__(self) -> None:
        self._entries: dict[str, JobProgress] = {}

    def set(
        self,
        job_id: str,
        status: JobState,
        progress: int,
        error_message: str | None = None,
        current_step: str | None = None,
    ) -> JobProgress:
        """Overwrite the status entry for job_id.

        Returns:
            The stored JobProgress.
        """
        entry = JobProgress(
            id=job_id,
            status=status,
            progress=progress,
            error_message=error_message,
            current_step=current_step,
        )
        self._entries[job_id] = entry
        return entry

    def get(self, job_id: str) -> JobProgress | None:
        return self._entries.get(job_id)

    def delete(self, job_id: str) -> bool:
        """Drop the entry for job_id. Returns False if there was none."""
        return self._entries.pop(job_id, None) is not None

    def __contains__(self, job_id: object) -> bool:
        return job_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)
