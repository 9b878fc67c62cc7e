"""Tests for job state, queue entries and the JSON wire format of job schemas."""

from datetime import datetime, timezone

from app.models import TERMINAL_STATES, JobState, QueuedJob
from app.schemas.job import JobResult, ModelInfo, StageMetrics, Summary


class TestJobState:
    def test_values(self):
        assert [s.value for s in JobState] == [
            "queued",
            "resolving_video",
            "downloading",
            "transcribing",
            "summarizing",
            "completed",
            "failed",
        ]

    def test_terminal_states(self):
        assert TERMINAL_STATES == {JobState.COMPLETED, JobState.FAILED}
        assert JobState.FAILED.is_terminal
        assert not JobState.DOWNLOADING.is_terminal


def test_queued_job_defaults():
    job = QueuedJob(id="a", reel_url="https://www.instagram.com/reel/x/")
    assert job.retry_count == 0


class TestJobResultWireFormat:
    def _result(self, **overrides) -> JobResult:
        now = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
        data = {
            "id": "job-1",
            "reel_url": "https://www.instagram.com/reel/x/",
            "created_at": now,
            "updated_at": now,
            "model_info": ModelInfo(transcription="whisper-1", summarization="gpt-4o-mini"),
        }
        data.update(overrides)
        return JobResult(**data)

    def test_camel_case_dump_omits_missing_fields(self):
        result = self._result(metrics=StageMetrics(resolve_ms=12, download_ms=340))

        payload = result.model_dump(by_alias=True, exclude_none=True, mode="json")

        assert payload["reelUrl"] == "https://www.instagram.com/reel/x/"
        assert payload["metrics"] == {"resolveMs": 12, "downloadMs": 340}
        assert payload["modelInfo"]["transcription"] == "whisper-1"
        assert "summary" not in payload
        assert "transcribeMs" not in payload["metrics"]

    def test_accepts_legacy_camel_case_json(self):
        legacy = (
            '{"id": "job-1", "reelUrl": "https://www.instagram.com/reel/x/",'
            ' "createdAt": "2025-01-01T00:00:00.000Z", "updatedAt": "2025-01-01T00:00:05.000Z",'
            ' "modelInfo": {"transcription": "whisper-1", "summarization": "gpt-4o-mini"},'
            ' "metrics": {"resolveMs": 900},'
            ' "summary": {"title": "T", "tldr": "x", "bullets": [], "entities": [],'
            ' "keyMoments": [{"time": "0:05", "description": "d"}]}}'
        )

        result = JobResult.model_validate_json(legacy)

        assert result.status is None
        assert result.effective_status == "completed"
        assert result.metrics.resolve_ms == 900
        assert result.summary.key_moments[0].time == "0:05"

    def test_effective_status(self):
        assert self._result().effective_status == "failed"
        assert self._result(status=JobState.COMPLETED).effective_status == "completed"
        summary = Summary(title="t", tldr="x")
        assert self._result(summary=summary, status=JobState.FAILED).effective_status == "failed"
