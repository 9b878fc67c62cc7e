"""Tests for the shared exception hierarchy."""

import pytest

from app.exceptions import (
    ConfigurationError,
    ContentUnavailableError,
    MediaDownloadError,
    MediaTooLargeError,
    MetadataResolutionError,
    OcrError,
    ResultNotFoundError,
    ResultStoreError,
    StageError,
    SummarizationError,
    TranscriptionError,
    UnsupportedMediaError,
)


class TestStageErrors:
    @pytest.mark.parametrize(
        ("error_cls", "stage"),
        [
            (MetadataResolutionError, "resolve"),
            (ContentUnavailableError, "resolve"),
            (MediaDownloadError, "download"),
            (TranscriptionError, "transcribe"),
            (UnsupportedMediaError, "transcribe"),
            (SummarizationError, "summarize"),
            (OcrError, "ocr"),
        ],
    )
    def test_default_stage(self, error_cls, stage):
        error = error_cls("boom")
        assert isinstance(error, StageError)
        assert error.stage == stage
        assert error.message == "boom"
        assert str(error) == "boom"

    def test_stage_override(self):
        error = MediaTooLargeError("too big", stage="download")
        assert error.stage == "download"
        assert MediaTooLargeError("too big").stage == "unknown"

    def test_unavailable_is_resolution_error(self):
        assert issubclass(ContentUnavailableError, MetadataResolutionError)
        assert issubclass(UnsupportedMediaError, TranscriptionError)


class TestOtherErrors:
    def test_result_not_found(self):
        error = ResultNotFoundError("job-1")
        assert error.job_id == "job-1"
        assert "job-1" in str(error)

    def test_result_store_error_with_status(self):
        error = ResultStoreError("Failed to upload", 503)
        assert error.status_code == 503
        assert error.message == "Failed to upload"
        assert str(error) == "Failed to upload - Status: 503"

    def test_result_store_error_without_status(self):
        assert str(ResultStoreError("disk full")) == "disk full"

    def test_configuration_error_is_exception(self):
        assert issubclass(ConfigurationError, Exception)
