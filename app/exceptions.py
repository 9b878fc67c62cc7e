"""Shared exceptions for the application.

This module contains exception classes used across the queue, the pipeline
orchestrator, the stage providers and the HTTP routes, so that services do
not import each other just to catch errors.

Error Taxonomy:
    - ConfigurationError: required setting missing (fails at first use)
    - StageError and subclasses: an external provider failed during a
      pipeline stage; the orchestrator records the message on the job
    - ResultNotFoundError: no stored result for a job id
    - ResultStoreError: the result backend rejected a read/write/delete
"""


class ConfigurationError(Exception):
    """Raised when required configuration is missing.

    This error indicates a configuration problem that prevents a provider
    from being constructed (e.g., OPENAI_API_KEY not set, or RESULT_STORE=supabase
    selected without SUPABASE_URL).
    """

    pass


class StageError(Exception):
    """Base class for failures raised by a pipeline stage provider.

    The message is user-facing: it is stored verbatim as the job's error
    message in both the status entry and the result record.

    Attributes:
        message: Human-readable error message.
        stage: Pipeline stage name the error belongs to (e.g. "download").
    """

    stage: str = "unknown"

    def __init__(self, message: str, stage: str | None = None):
        self.message = message
        if stage is not None:
            self.stage = stage
        super().__init__(message)


class MetadataResolutionError(StageError):
    """Raised when the reel scraper call fails."""

    stage = "resolve"


class ContentUnavailableError(MetadataResolutionError):
    """Raised when the reel is private, deleted, or yields no media URL."""


class MediaDownloadError(StageError):
    """Raised on non-2xx responses, wrong content types or download timeouts."""

    stage = "download"


class MediaTooLargeError(StageError):
    """Raised when a media payload exceeds the configured size limit.

    Raised by both the downloader and the transcriber, so the stage is set
    by the raiser.
    """


class TranscriptionError(StageError):
    """Raised when the transcription API call fails."""

    stage = "transcribe"


class UnsupportedMediaError(TranscriptionError):
    """Raised when the transcription API rejects the media format."""


class SummarizationError(StageError):
    """Raised when the summarization model returns no usable content."""

    stage = "summarize"


class OcrError(StageError):
    """Raised when image text extraction fails."""

    stage = "ocr"


class ResultNotFoundError(Exception):
    """Raised when an operation needs a stored result that does not exist.

    Attributes:
        job_id: Identifier of the missing job result.
    """

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job result not found: {job_id}")


class ResultStoreError(Exception):
    """Raised when the result storage backend fails.

    Attributes:
        message: Human-readable error message.
        status_code: HTTP status returned by the backend, if any.
    """

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message if status_code is None else f"{message} - Status: {status_code}")
