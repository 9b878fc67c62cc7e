"""Pydantic schemas for job status, job results and provider outputs.

This module defines Pydantic v2 schemas shared by the pipeline orchestrator,
the result sinks and the HTTP routes.

Wire Format:
    Models that leave the process (JobResult, JobProgress, API responses)
    serialize with camelCase aliases (reelUrl, videoUrl, createdAt, resolveMs,
    keyMoments, errorMessage, ...) so stored JSON stays readable by existing
    clients. Python code always uses the snake_case attribute names; both
    spellings are accepted on input.

    Serialize with ``model.model_dump(by_alias=True, exclude_none=True, mode="json")``.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.models import JobState


class CamelModel(BaseModel):
    """Base model with camelCase aliases and snake_case attribute access."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        protected_namespaces=(),
    )


class TranscriptSegment(CamelModel):
    """One timestamped transcript segment (seconds from start)."""

    id: int
    start: float
    end: float
    text: str


class Transcript(CamelModel):
    text: str
    segments: list[TranscriptSegment] | None = None


class KeyMoment(CamelModel):
    time: str = Field(..., description="Timestamp as m:ss", examples=["0:15"])
    description: str


class Summary(CamelModel):
    """Structured summary returned by the summarization model."""

    title: str
    tldr: str
    bullets: list[str] = Field(default_factory=list)
    entities: list[str] = Field(default_factory=list)
    key_moments: list[KeyMoment] | None = None


class ModelInfo(CamelModel):
    transcription: str
    summarization: str


class StageMetrics(CamelModel):
    """Per-stage wall-clock durations in milliseconds.

    A field is populated only if its stage began executing.
    """

    resolve_ms: int | None = None
    download_ms: int | None = None
    transcribe_ms: int | None = None
    summarize_ms: int | None = None


class ReelMetadata(CamelModel):
    caption: str | None = None
    likes_count: int | None = None
    comments_count: int | None = None
    duration: float | None = None


class JobResult(CamelModel):
    """Durable record of a job outcome, upserted by job id.

    Written by the pipeline orchestrator exactly once per terminal outcome.
    Failed runs keep whatever stage outputs and metrics were gathered before
    the failing stage, plus the error message.
    """

    id: str
    reel_url: str
    status: JobState | None = None
    error_message: str | None = None
    video_url: str | None = None
    transcript: Transcript | None = None
    summary: Summary | None = None
    language: str | None = None
    created_at: datetime
    updated_at: datetime
    model_info: ModelInfo
    metrics: StageMetrics = Field(default_factory=StageMetrics)
    metadata: ReelMetadata | None = None

    @property
    def effective_status(self) -> str:
        """Status used for filtering; legacy records without one are inferred."""
        if self.status is not None:
            return self.status.value
        return JobState.COMPLETED.value if self.summary else JobState.FAILED.value


class JobProgress(CamelModel):
    """Latest status entry for a job, overwritten on every update."""

    id: str
    status: JobState
    progress: int = Field(..., ge=0, le=100)
    error_message: str | None = None
    current_step: str | None = None


class ReelData(BaseModel):
    """Output of the metadata resolver stage."""

    video_url: str | None = None
    caption: str | None = None
    likes_count: int | None = None
    comments_count: int | None = None
    video_play_count: int | None = None
    video_duration: float | None = None


class TranscriptionResult(BaseModel):
    """Output of the transcription stage."""

    text: str
    language: str | None = None
    segments: list[TranscriptSegment] | None = None


class IngestResponse(CamelModel):
    id: str
    status: JobState = JobState.QUEUED


class RetryResponse(CamelModel):
    id: str
    status: JobState = JobState.QUEUED
    message: str = "Job re-queued for retry"


class ResultListResponse(CamelModel):
    results: list[JobResult]
    total: int
    limit: int
    offset: int
