"""Pydantic schemas for validation and serialization."""

from app.schemas.content import (
    ContentItem,
    ContentListResponse,
    ContentStatus,
    ContentType,
    OcrExtraction,
    OcrResponse,
    PostMetadata,
    SubmitResponse,
)
from app.schemas.job import (
    IngestResponse,
    JobProgress,
    JobResult,
    KeyMoment,
    ModelInfo,
    ReelData,
    ReelMetadata,
    ResultListResponse,
    RetryResponse,
    StageMetrics,
    Summary,
    Transcript,
    TranscriptionResult,
    TranscriptSegment,
)

__all__ = [
    "ContentItem",
    "ContentListResponse",
    "ContentStatus",
    "ContentType",
    "IngestResponse",
    "JobProgress",
    "JobResult",
    "KeyMoment",
    "ModelInfo",
    "OcrExtraction",
    "OcrResponse",
    "PostMetadata",
    "ReelData",
    "ReelMetadata",
    "ResultListResponse",
    "RetryResponse",
    "StageMetrics",
    "SubmitResponse",
    "Summary",
    "Transcript",
    "TranscriptSegment",
    "TranscriptionResult",
]
