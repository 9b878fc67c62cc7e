"""Content service: Instagram posts and OCR uploads next to the reel pipeline.

Operations:
    submit(url)
        reel  → validated and queued through ReelJobService (202, "queued")
        post  → item stored as "processing", metadata resolved in a
                background task, then stored as completed/failed
    extract_text(image)
        type/size checked, image stored, text extracted, item stored as
        completed; on extraction failure the item is stored as failed
    get / list / delete items, load an item's stored image

Post resolution runs outside the reel queue: it is a single scraper call and
never contends with the transcription pipeline.
"""

import asyncio
import time
import uuid
from datetime import datetime, timezone

from app.exceptions import StageError
from app.schemas.content import (
    ContentItem,
    ContentStatus,
    ContentType,
    OcrExtraction,
    SubmitResponse,
)
from app.services.content_store import IMAGE_EXTENSIONS, ContentSink
from app.services.job_service import ReelJobService
from app.services.ocr import OcrService, guess_image_mime_type
from app.services.post_resolver import POST_SOURCE, PostResolver
from app.services.result_store import DEFAULT_LIST_LIMIT
from app.services.url_intelligence import is_instagram_post, is_instagram_reel
from app.utils.logging import get_logger

log = get_logger(__name__)

URL_REQUIRED_MESSAGE = "URL is required and must be a string"
INVALID_CONTENT_URL_MESSAGE = "Please provide a valid Instagram reel or post URL"
NO_IMAGE_MESSAGE = "No image file provided"
INVALID_IMAGE_TYPE_MESSAGE = "Invalid file type. Only JPEG, PNG, GIF, and WebP are allowed."


class InvalidContentError(ValueError):
    """Raised when a submission or upload is rejected before processing."""


class ImageTooLargeError(ValueError):
    """Raised when an uploaded image exceeds the configured size limit."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_item(content_type: ContentType, source_url: str | None = None) -> ContentItem:
    now = _utcnow()
    return ContentItem(
        id=str(uuid.uuid4()),
        content_type=content_type,
        status=ContentStatus.PROCESSING,
        source_url=source_url,
        created_at=now,
        updated_at=now,
    )


def _error_message(error: Exception) -> str:
    if isinstance(error, StageError):
        return error.message
    return str(error) or "An unknown error occurred"


class ContentService:
    """Post and OCR operations over a content sink.

    Attributes:
        job_service: Reel job facade used for reel submissions
        sink: Storage for post/OCR items and images
        post_resolver: Apify-backed post metadata resolver
        ocr: Vision text extractor
        max_image_bytes: Upload size limit for OCR images
    """

    def __init__(
        self,
        job_service: ReelJobService,
        sink: ContentSink,
        post_resolver: PostResolver,
        ocr: OcrService,
        max_image_bytes: int,
    ):
        self.job_service = job_service
        self.sink = sink
        self.post_resolver = post_resolver
        self.ocr = ocr
        self.max_image_bytes = max_image_bytes
        self._tasks: set[asyncio.Task[None]] = set()

    async def submit(self, url: object) -> SubmitResponse:
        """Route a reel or post URL to its processing path.

        Raises:
            InvalidContentError: URL missing, not a string or not a reel/post
            ResultStoreError: The post item could not be stored
        """
        if not isinstance(url, str) or not url.strip():
            raise InvalidContentError(URL_REQUIRED_MESSAGE)
        url = url.strip()

        if is_instagram_reel(url):
            job_id = await self.job_service.submit(url)
            return SubmitResponse(
                id=job_id, content_type=ContentType.REEL, status=ContentStatus.QUEUED
            )

        if not is_instagram_post(url):
            raise InvalidContentError(INVALID_CONTENT_URL_MESSAGE)

        item = _new_item(ContentType.POST, source_url=url)
        await self.sink.write(item)
        task = asyncio.create_task(self.process_post(item), name=f"post-{item.id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        log.info("post_submitted", item_id=item.id, post_url=url)
        return SubmitResponse(id=item.id, content_type=ContentType.POST, status=item.status)

    async def process_post(self, item: ContentItem) -> ContentItem:
        """Resolve post metadata and store the terminal item. Never raises."""
        started = time.monotonic()
        try:
            post = await self.post_resolver.resolve_post(item.source_url or "")
        except Exception as e:
            item.status = ContentStatus.FAILED
            item.error_message = _error_message(e)
            log.error("post_processing_failed", item_id=item.id, error=item.error_message)
        else:
            item.post = post
            item.video_url = post.video_url
            item.model_info = {"source": POST_SOURCE}
            item.status = ContentStatus.COMPLETED
        finally:
            item.metrics.resolve_ms = int((time.monotonic() - started) * 1000)

        item.updated_at = _utcnow()
        try:
            await self.sink.write(item)
        except Exception as e:
            log.error("post_item_write_failed", item_id=item.id, error=str(e), exc_info=True)
        return item

    def check_image(self, image: bytes, content_type: str | None, filename: str | None) -> str:
        """Validate an upload and return its MIME type.

        Raises:
            InvalidContentError: No image or unsupported type
            ImageTooLargeError: Larger than max_image_bytes
        """
        if not image:
            raise InvalidContentError(NO_IMAGE_MESSAGE)
        mime_type = content_type or guess_image_mime_type(filename)
        if mime_type not in IMAGE_EXTENSIONS:
            raise InvalidContentError(INVALID_IMAGE_TYPE_MESSAGE)
        if len(image) > self.max_image_bytes:
            limit_kb = self.max_image_bytes // 1024
            raise ImageTooLargeError(f"Image file too large (> {limit_kb}KB)")
        return mime_type

    async def extract_text(
        self, image: bytes, content_type: str | None, filename: str | None = None
    ) -> ContentItem:
        """Store an uploaded image, extract its text and store the item.

        Raises:
            InvalidContentError / ImageTooLargeError: Upload rejected
            OcrError: Extraction failed (the item is stored as failed)
            ResultStoreError: Image or item could not be stored
        """
        mime_type = self.check_image(image, content_type, filename)
        item = _new_item(ContentType.OCR)
        started = time.monotonic()
        await self.sink.write(item)
        image_path = await self.sink.save_image(item.id, image, mime_type)

        try:
            result = await self.ocr.extract_text(image, mime_type)
        except StageError as e:
            item.status = ContentStatus.FAILED
            item.error_message = e.message
            item.updated_at = _utcnow()
            await self.sink.write(item)
            raise

        item.ocr = OcrExtraction(
            extracted_text=result.extracted_text,
            image_path=image_path,
            mime_type=mime_type,
            model=result.model,
            processing_time_ms=result.processing_time_ms,
            confidence=result.confidence,
        )
        item.metrics.ocr_ms = int((time.monotonic() - started) * 1000)
        item.model_info = {"ocr": result.model}
        item.status = ContentStatus.COMPLETED
        item.updated_at = _utcnow()
        await self.sink.write(item)
        log.info("ocr_item_completed", item_id=item.id, ocr_ms=item.metrics.ocr_ms)
        return item

    async def get_item(self, item_id: str) -> ContentItem | None:
        return await self.sink.read(item_id)

    async def list_items(
        self,
        content_type: str | None = None,
        status: str | None = None,
        limit: int = DEFAULT_LIST_LIMIT,
        offset: int = 0,
    ) -> tuple[list[ContentItem], int]:
        return await self.sink.list_items(
            content_type=content_type, status=status, limit=limit, offset=offset
        )

    async def delete_item(self, item_id: str) -> bool | None:
        """Delete an item and its image.

        Returns:
            None if the item does not exist, otherwise whether the sink deleted it
        """
        if await self.sink.read(item_id) is None:
            return None
        deleted = await self.sink.delete(item_id)
        if deleted:
            log.info("content_item_deleted", item_id=item_id)
        return deleted

    async def load_image(self, item_id: str) -> tuple[bytes, str] | None:
        item = await self.sink.read(item_id)
        if item is None or item.ocr is None:
            return None
        return await self.sink.load_image(item.ocr.image_path)

    async def join(self) -> None:
        """Wait for background post resolution tasks to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def close(self) -> None:
        """Cancel background tasks and close the OCR client."""
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        await self.ocr.close()
