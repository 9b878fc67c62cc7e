"""Pipeline Orchestrator Service for end-to-end reel processing.

This module implements the driver invoked by the job queue for each dequeued
job. It runs the fixed four-stage pipeline, pushes a status update before
every stage, times each stage and writes exactly one result record per
terminal outcome.

Pipeline Stages:
    1. RESOLVE: reel URL → direct video URL + metadata (Apify)
    2. DOWNLOAD: video URL → transient media file
    3. TRANSCRIBE: media file → transcript text, language, segments (OpenAI)
    4. SUMMARIZE: transcript → structured summary (OpenAI)

Failure Handling:
    - The first failing stage stops the run; later stages never start
    - Stage outputs and metrics gathered so far are kept in the failed record
    - StageError messages are reported verbatim, anything else is wrapped
    - The result is written before the terminal status is set, so a client
      that sees completed/failed can read the matching record
    - No in-run retries: recovery is an explicit job retry from stage 1
    - If the final write of a completed result fails, the job is marked
      failed with "Failed to store result: ..." and nothing is stored; no
      second write is attempted. ``ReelJobService.retry`` re-queues such jobs
      from the URL recorded at submission.

Usage:
    from app.services.pipeline_orchestrator import PipelineOrchestrator

    orchestrator = PipelineOrchestrator(status_store, sink, providers, model_info)
    queue = JobQueue(status_store, orchestrator.execute_pipeline)
"""

import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Protocol, TypeVar

from app.exceptions import ContentUnavailableError, StageError
from app.models import JobState, QueuedJob
from app.schemas.job import (
    JobResult,
    ModelInfo,
    ReelData,
    ReelMetadata,
    Summary,
    Transcript,
    TranscriptionResult,
    TranscriptSegment,
)
from app.services.result_store import ResultSink
from app.services.status_store import StatusStore
from app.utils.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T")

NO_VIDEO_URL_MESSAGE = "No video URL found. The reel may be private or unavailable."
UNKNOWN_ERROR_MESSAGE = "An unknown error occurred"


class PipelineStage(Enum):
    """Pipeline stages in execution order."""

    RESOLVE = "resolve"
    DOWNLOAD = "download"
    TRANSCRIBE = "transcribe"
    SUMMARIZE = "summarize"


# Stage → (status, progress, current step text)
STAGE_STATUS_MAP: dict[PipelineStage, tuple[JobState, int, str]] = {
    PipelineStage.RESOLVE: (JobState.RESOLVING_VIDEO, 10, "Fetching reel metadata..."),
    PipelineStage.DOWNLOAD: (JobState.DOWNLOADING, 25, "Downloading video..."),
    PipelineStage.TRANSCRIBE: (JobState.TRANSCRIBING, 50, "Transcribing audio..."),
    PipelineStage.SUMMARIZE: (JobState.SUMMARIZING, 75, "Generating summary..."),
}

STAGE_METRIC_FIELDS: dict[PipelineStage, str] = {
    PipelineStage.RESOLVE: "resolve_ms",
    PipelineStage.DOWNLOAD: "download_ms",
    PipelineStage.TRANSCRIBE: "transcribe_ms",
    PipelineStage.SUMMARIZE: "summarize_ms",
}


class MetadataResolver(Protocol):
    async def resolve_metadata(self, reel_url: str) -> ReelData: ...


class MediaFetcher(Protocol):
    async def fetch_media(self, job_id: str, media_url: str) -> Path: ...


class Transcriber(Protocol):
    async def transcribe(self, media_path: Path) -> TranscriptionResult: ...


class Summarizer(Protocol):
    async def summarize(
        self, text: str, segments: list[TranscriptSegment] | None = None
    ) -> Summary: ...


@dataclass
class StageProviders:
    """External operations backing the four pipeline stages."""

    resolver: MetadataResolver
    fetcher: MediaFetcher
    transcriber: Transcriber
    summarizer: Summarizer


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def describe_error(error: BaseException) -> str:
    """User-facing message for a pipeline failure."""
    if isinstance(error, StageError):
        return error.message or UNKNOWN_ERROR_MESSAGE
    if not str(error):
        return UNKNOWN_ERROR_MESSAGE
    return f"An unexpected error occurred: {error}"


class PipelineOrchestrator:
    """Runs the reel pipeline for one job at a time.

    The orchestrator holds no per-job state between runs; every call to
    ``execute_pipeline`` builds a fresh JobResult, so a retried job starts
    from stage 1 with empty metrics and a new ``created_at``.

    Attributes:
        status_store: Receives a status entry before each stage and at the end
        result_sink: Receives exactly one write per run
        providers: Stage implementations
        model_info: Model identifiers stamped on every result
    """

    def __init__(
        self,
        status_store: StatusStore,
        result_sink: ResultSink,
        providers: StageProviders,
        model_info: ModelInfo,
    ):
        self.status_store = status_store
        self.result_sink = result_sink
        self.providers = providers
        self.model_info = model_info

    async def execute_pipeline(self, job: QueuedJob) -> JobResult:
        """Execute all stages for a job and record the outcome.

        Never raises for stage or storage failures; those end as a failed
        status. Only cancellation propagates.

        Returns:
            The JobResult as it was written (or attempted to be written)
        """
        started_at = _utcnow()
        result = JobResult(
            id=job.id,
            reel_url=job.reel_url,
            created_at=started_at,
            updated_at=started_at,
            model_info=self.model_info,
        )
        log.info("pipeline_started", job_id=job.id, reel_url=job.reel_url)

        try:
            reel = await self._run_stage(
                result,
                PipelineStage.RESOLVE,
                self.providers.resolver.resolve_metadata,
                job.reel_url,
            )
            if not reel.video_url:
                raise ContentUnavailableError(NO_VIDEO_URL_MESSAGE)

            result.video_url = reel.video_url
            result.metadata = ReelMetadata(
                caption=reel.caption,
                likes_count=reel.likes_count,
                comments_count=reel.comments_count,
                duration=reel.video_duration,
            )

            media_path = await self._run_stage(
                result,
                PipelineStage.DOWNLOAD,
                self.providers.fetcher.fetch_media,
                job.id,
                reel.video_url,
            )

            transcription = await self._run_stage(
                result,
                PipelineStage.TRANSCRIBE,
                self.providers.transcriber.transcribe,
                media_path,
            )
            result.transcript = Transcript(
                text=transcription.text, segments=transcription.segments
            )
            result.language = transcription.language

            summary = await self._run_stage(
                result,
                PipelineStage.SUMMARIZE,
                self.providers.summarizer.summarize,
                transcription.text,
                transcription.segments,
            )
        except Exception as e:
            return await self._record_failure(result, e)

        result.summary = summary
        result.status = JobState.COMPLETED
        result.updated_at = _utcnow()

        try:
            await self.result_sink.write(job.id, result)
        except Exception as e:
            message = f"Failed to store result: {e}"
            log.error("result_write_failed", job_id=job.id, error=str(e), exc_info=True)
            result.status = JobState.FAILED
            result.error_message = message
            self.status_store.set(job.id, JobState.FAILED, 0, error_message=message)
            return result

        self.status_store.set(job.id, JobState.COMPLETED, 100)
        log.info(
            "pipeline_completed",
            job_id=job.id,
            metrics=result.metrics.model_dump(exclude_none=True),
        )
        return result

    async def _run_stage(
        self,
        result: JobResult,
        stage: PipelineStage,
        operation: Callable[..., Awaitable[T]],
        *args: Any,
    ) -> T:
        """Publish the stage status, await the operation and record its duration.

        The duration is recorded whether the operation succeeds or raises.
        """
        status, progress, step_text = STAGE_STATUS_MAP[stage]
        self.status_store.set(result.id, status, progress, current_step=step_text)
        log.info("stage_started", job_id=result.id, stage=stage.value)

        stage_start = time.monotonic()
        try:
            return await operation(*args)
        finally:
            elapsed_ms = round((time.monotonic() - stage_start) * 1000)
            setattr(result.metrics, STAGE_METRIC_FIELDS[stage], elapsed_ms)
            log.info("stage_finished", job_id=result.id, stage=stage.value, duration_ms=elapsed_ms)

    async def _record_failure(self, result: JobResult, error: Exception) -> JobResult:
        """Write the partial result, then mark the job failed."""
        message = describe_error(error)
        log.error(
            "pipeline_failed",
            job_id=result.id,
            stage=getattr(error, "stage", None),
            error_type=type(error).__name__,
            error_message=message,
            exc_info=not isinstance(error, StageError),
        )

        result.status = JobState.FAILED
        result.error_message = message
        result.updated_at = _utcnow()

        try:
            await self.result_sink.write(result.id, result)
        except Exception as write_error:
            log.error(
                "failed_result_write_failed",
                job_id=result.id,
                error=str(write_error),
                exc_info=True,
            )

        self.status_store.set(result.id, JobState.FAILED, 0, error_message=message)
        return result
