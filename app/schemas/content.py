"""Pydantic schemas for image posts and OCR uploads.

Content items cover the two non-reel inputs: Instagram image/carousel posts
(metadata only, resolved in the background) and uploaded images (text
extracted synchronously). Reels stay in the job pipeline and its
``JobResult`` records; submitting a reel through the content API only
returns the queued job id.

Lifecycle:
    processing → completed
    processing → failed

Wire Format:
    Same camelCase aliases as ``app.schemas.job`` (contentType, sourceUrl,
    ocrMs, extractedText, ...).
"""

import enum
from datetime import datetime

from pydantic import BaseModel, Field

from app.schemas.job import CamelModel


class ContentType(str, enum.Enum):
    REEL = "reel"
    POST = "post"
    OCR = "ocr"


class ContentStatus(str, enum.Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class PostMetadata(CamelModel):
    """Engagement and ownership data scraped from an Instagram post."""

    caption: str = ""
    likes_count: int = 0
    comments_count: int = 0
    timestamp: str | None = None
    owner_username: str = ""
    owner_full_name: str = ""
    image_urls: list[str] = Field(default_factory=list)
    video_url: str | None = None
    type: str = "unknown"


class OcrResult(BaseModel):
    """Output of the vision text extraction call."""

    extracted_text: str
    model: str
    processing_time_ms: int
    confidence: str = "high"


class OcrExtraction(CamelModel):
    extracted_text: str
    image_path: str
    mime_type: str
    model: str
    processing_time_ms: int
    confidence: str | None = None


class ContentMetrics(CamelModel):
    resolve_ms: int | None = None
    ocr_ms: int | None = None


class ContentItem(CamelModel):
    """Durable record of a post or OCR item, upserted by id."""

    id: str
    content_type: ContentType
    status: ContentStatus
    source_url: str | None = None
    video_url: str | None = None
    error_message: str | None = None
    created_at: datetime
    updated_at: datetime
    post: PostMetadata | None = None
    ocr: OcrExtraction | None = None
    metrics: ContentMetrics = Field(default_factory=ContentMetrics)
    model_info: dict[str, str] = Field(default_factory=dict)


class SubmitRequest(BaseModel):
    # Validated by ContentService so non-strings get the API error body, not 422
    url: object = None


class SubmitResponse(CamelModel):
    id: str
    content_type: ContentType
    status: ContentStatus


class OcrResponse(CamelModel):
    id: str
    status: ContentStatus
    result: ContentItem


class ContentListResponse(CamelModel):
    results: list[ContentItem]
    total: int
    limit: int
    offset: int
