"""Shared pytest fixtures for the reel pipeline tests.

Provides isolated DATA_DIR/TEMP_DIR directories, cached-config resets,
a StatusStore, an in-memory result sink and stage provider doubles built on
unittest.mock.AsyncMock.
"""

from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from app.config import get_apify_token, get_openai_api_key
from app.models import JobState
from app.schemas.job import (
    JobResult,
    ModelInfo,
    ReelData,
    Summary,
    Transcript,
    TranscriptionResult,
    TranscriptSegment,
)
from app.services.pipeline_orchestrator import StageProviders
from app.services.result_store import filter_results
from app.services.status_store import StatusStore

REEL_URL = "https://www.instagram.com/reel/Cabc123/"
VIDEO_URL = "https://cdn.example.com/video.mp4"


@pytest.fixture(autouse=True)
def isolated_dirs(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point DATA_DIR and TEMP_DIR at per-test temporary directories."""
    monkeypatch.setenv("DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("TEMP_DIR", str(tmp_path / "temp"))
    return tmp_path


@pytest.fixture(autouse=True)
def clear_config_cache():
    """Reset lru_cache'd required settings around each test."""
    get_apify_token.cache_clear()
    get_openai_api_key.cache_clear()
    yield
    get_apify_token.cache_clear()
    get_openai_api_key.cache_clear()


class InMemoryResultSink:
    """Dict-backed ResultSink that records every write in order."""

    def __init__(self) -> None:
        self.results: dict[str, JobResult] = {}
        self.writes: list[JobResult] = []
        self.fail_writes = False

    async def write(self, job_id: str, result: JobResult) -> None:
        if self.fail_writes:
            raise RuntimeError("storage offline")
        snapshot = result.model_copy(deep=True)
        self.writes.append(snapshot)
        self.results[job_id] = snapshot

    async def read(self, job_id: str) -> JobResult | None:
        return self.results.get(job_id)

    async def delete(self, job_id: str) -> bool:
        return self.results.pop(job_id, None) is not None

    async def list_results(self, status=None, search=None, limit=20, offset=0):
        return filter_results(list(self.results.values()), status, search, limit, offset)

    async def close(self) -> None:
        return None


@pytest.fixture
def status_store() -> StatusStore:
    return StatusStore()


@pytest.fixture
def memory_sink() -> InMemoryResultSink:
    return InMemoryResultSink()


@pytest.fixture
def model_info() -> ModelInfo:
    return ModelInfo(transcription="whisper-1", summarization="gpt-4o-mini")


@pytest.fixture
def sample_summary() -> Summary:
    return Summary(
        title="Morning Routine Tips",
        tldr="A creator shares three habits for better mornings.",
        bullets=["Wake up early", "Drink water", "Stretch"],
        entities=["Nike"],
    )


@pytest.fixture
def sample_transcription() -> TranscriptionResult:
    return TranscriptionResult(
        text="Wake up early. Drink water. Stretch.",
        language="english",
        segments=[
            TranscriptSegment(id=0, start=0.0, end=2.5, text="Wake up early."),
            TranscriptSegment(id=1, start=2.5, end=5.0, text="Drink water. Stretch."),
        ],
    )


@pytest.fixture
def providers(tmp_path: Path, sample_transcription, sample_summary) -> StageProviders:
    """Stage provider doubles that succeed by default."""
    resolver = AsyncMock()
    resolver.resolve_metadata.return_value = ReelData(
        video_url=VIDEO_URL,
        caption="My morning routine #wellness",
        likes_count=120,
        comments_count=8,
        video_play_count=5000,
        video_duration=5.0,
    )
    fetcher = AsyncMock()
    fetcher.fetch_media.return_value = tmp_path / "temp" / "job.mp4"
    transcriber = AsyncMock()
    transcriber.transcribe.return_value = sample_transcription
    summarizer = AsyncMock()
    summarizer.summarize.return_value = sample_summary
    return StageProviders(
        resolver=resolver, fetcher=fetcher, transcriber=transcriber, summarizer=summarizer
    )


def make_result(
    job_id: str = "job-1",
    *,
    status: JobState | None = JobState.COMPLETED,
    summary: Summary | None = None,
    transcript_text: str | None = "hello world",
    caption: str | None = None,
    created_offset_minutes: int = 0,
    error_message: str | None = None,
) -> JobResult:
    """Build a JobResult for storage and routing tests."""
    created = datetime(2026, 1, 1, tzinfo=timezone.utc) + timedelta(minutes=created_offset_minutes)
    data = {
        "id": job_id,
        "reel_url": REEL_URL,
        "status": status,
        "error_message": error_message,
        "created_at": created,
        "updated_at": created,
        "model_info": ModelInfo(transcription="whisper-1", summarization="gpt-4o-mini"),
        "summary": summary,
    }
    if transcript_text is not None:
        data["transcript"] = Transcript(text=transcript_text)
    if caption is not None:
        data["metadata"] = {"caption": caption}
    return JobResult.model_validate(data)


@pytest.fixture
def result_factory():
    return make_result
