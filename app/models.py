"""Core in-memory models for the reel processing queue.

The queue and the status store hold plain Python objects; nothing here is
persisted. Durable job outcomes are pydantic ``JobResult`` records defined in
``app.schemas.job`` and written through a result sink.

Job Lifecycle:
    queued → resolving_video → downloading → transcribing → summarizing → completed
    Any processing state → failed
    completed/failed → queued (explicit retry only)
"""

import enum
from dataclasses import dataclass


class JobState(str, enum.Enum):
    """Lifecycle states reported through the status store.

    The queue only knows about QUEUED jobs; every other state is written by
    the pipeline orchestrator while a job executes.
    """

    QUEUED = "queued"
    RESOLVING_VIDEO = "resolving_video"
    DOWNLOADING = "downloading"
    TRANSCRIBING = "transcribing"
    SUMMARIZING = "summarizing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset({JobState.COMPLETED, JobState.FAILED})


@dataclass
class QueuedJob:
    """A pending entry in the job queue.

    Attributes:
        id: Opaque job identifier (UUID string for submitted jobs)
        reel_url: Source Instagram reel URL
        retry_count: Always 0; retries re-enter the queue as fresh entries
    """

    id: str
    reel_url: str
    retry_count: int = 0
