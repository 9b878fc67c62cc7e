"""Tests for ContentService.

Uses a LocalContentSink under tmp_path, a real ReelJobService for reel
submissions and AsyncMock doubles for the post resolver and OCR service.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from app.exceptions import MetadataResolutionError, OcrError
from app.models import QueuedJob
from app.queue import JobQueue
from app.schemas.content import ContentStatus, ContentType, OcrResult, PostMetadata
from app.services.content_service import (
    INVALID_CONTENT_URL_MESSAGE,
    INVALID_IMAGE_TYPE_MESSAGE,
    NO_IMAGE_MESSAGE,
    URL_REQUIRED_MESSAGE,
    ContentService,
    ImageTooLargeError,
    InvalidContentError,
)
from app.services.content_store import LocalContentSink
from app.services.job_service import ReelJobService
from app.services.post_resolver import POST_SOURCE

REEL = "https://www.instagram.com/reel/Cabc123/"
POST = "https://www.instagram.com/p/Cxyz789/"
PNG = b"\x89PNG\r\n\x1a\nfake"


@pytest.fixture
def executed() -> list[QueuedJob]:
    return []


@pytest.fixture
def job_service(status_store, memory_sink, executed) -> ReelJobService:
    async def runner(job: QueuedJob) -> None:
        executed.append(job)

    return ReelJobService(JobQueue(status_store, runner), memory_sink)


@pytest.fixture
def post_resolver() -> MagicMock:
    resolver = MagicMock()
    resolver.resolve_post = AsyncMock(
        return_value=PostMetadata(caption="Sunset", likes_count=7, image_urls=["https://cdn/1.jpg"])
    )
    return resolver


@pytest.fixture
def ocr() -> MagicMock:
    service = MagicMock()
    service.extract_text = AsyncMock(
        return_value=OcrResult(extracted_text="Hello", model="gpt-4o", processing_time_ms=5)
    )
    service.close = AsyncMock()
    return service


@pytest.fixture
def sink(tmp_path) -> LocalContentSink:
    return LocalContentSink(tmp_path)


@pytest.fixture
def service(job_service, sink, post_resolver, ocr) -> ContentService:
    return ContentService(job_service, sink, post_resolver, ocr, max_image_bytes=1024)


class TestSubmit:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("url", [None, "", "   ", 42])
    async def test_missing_or_non_string_url(self, service, url):
        with pytest.raises(InvalidContentError, match=URL_REQUIRED_MESSAGE):
            await service.submit(url)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "url", ["https://www.youtube.com/watch?v=abc", "https://www.instagram.com/jane/"]
    )
    async def test_unsupported_url(self, service, url):
        with pytest.raises(InvalidContentError, match=INVALID_CONTENT_URL_MESSAGE):
            await service.submit(url)

    @pytest.mark.asyncio
    async def test_reel_goes_to_job_queue(self, service, status_store, sink, post_resolver):
        response = await service.submit(f" {REEL} ")

        assert response.content_type == ContentType.REEL
        assert response.status == ContentStatus.QUEUED
        assert status_store.get(response.id) is not None
        assert await sink.read(response.id) is None
        post_resolver.resolve_post.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_post_resolved_in_background(self, service, sink, post_resolver, status_store):
        response = await service.submit(POST)

        assert response.content_type == ContentType.POST
        assert response.status == ContentStatus.PROCESSING
        assert len(status_store) == 0

        await service.join()

        item = await sink.read(response.id)
        assert item.status == ContentStatus.COMPLETED
        assert item.source_url == POST
        assert item.post.caption == "Sunset"
        assert item.model_info == {"source": POST_SOURCE}
        assert item.metrics.resolve_ms is not None
        post_resolver.resolve_post.assert_awaited_once_with(POST)

    @pytest.mark.asyncio
    async def test_post_failure_stored_on_item(self, service, sink, post_resolver):
        post_resolver.resolve_post.side_effect = MetadataResolutionError(
            "Failed to extract post metadata: boom"
        )

        response = await service.submit(POST)
        await service.join()

        item = await sink.read(response.id)
        assert item.status == ContentStatus.FAILED
        assert item.error_message == "Failed to extract post metadata: boom"
        assert item.post is None


class TestExtractText:
    @pytest.mark.asyncio
    async def test_stores_image_and_text(self, service, sink, ocr):
        item = await service.extract_text(PNG, "image/png", "scan.png")

        assert item.content_type == ContentType.OCR
        assert item.status == ContentStatus.COMPLETED
        assert item.ocr.extracted_text == "Hello"
        assert item.ocr.image_path == f"ocr/{item.id}.png"
        assert item.model_info == {"ocr": "gpt-4o"}
        assert await sink.read(item.id) == item
        assert await service.load_image(item.id) == (PNG, "image/png")
        ocr.extract_text.assert_awaited_once_with(PNG, "image/png")

    @pytest.mark.asyncio
    async def test_type_guessed_from_filename(self, service):
        item = await service.extract_text(PNG, None, "photo.webp")

        assert item.ocr.mime_type == "image/webp"

    @pytest.mark.asyncio
    async def test_empty_upload_rejected(self, service):
        with pytest.raises(InvalidContentError, match=NO_IMAGE_MESSAGE):
            await service.extract_text(b"", "image/png")

    @pytest.mark.asyncio
    async def test_unsupported_type_rejected(self, service, sink):
        with pytest.raises(InvalidContentError, match=INVALID_IMAGE_TYPE_MESSAGE):
            await service.extract_text(PNG, "application/pdf", "doc.pdf")

        assert (await sink.list_items())[1] == 0

    @pytest.mark.asyncio
    async def test_oversized_upload_rejected(self, service, ocr):
        with pytest.raises(ImageTooLargeError):
            await service.extract_text(b"x" * 1025, "image/jpeg")

        ocr.extract_text.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_ocr_failure_marks_item_failed(self, service, sink, ocr):
        ocr.extract_text.side_effect = OcrError("Failed to extract text from image: down")

        with pytest.raises(OcrError):
            await service.extract_text(PNG, "image/png")

        items, total = await sink.list_items()
        assert total == 1
        assert items[0].status == ContentStatus.FAILED
        assert items[0].error_message == "Failed to extract text from image: down"


class TestItems:
    @pytest.mark.asyncio
    async def test_list_filters_by_type(self, service):
        ocr_item = await service.extract_text(PNG, "image/png")
        await service.submit(POST)
        await service.join()

        items, total = await service.list_items(content_type="ocr")

        assert [i.id for i in items] == [ocr_item.id]
        assert total == 1

    @pytest.mark.asyncio
    async def test_delete_item(self, service, sink):
        item = await service.extract_text(PNG, "image/png")

        assert await service.delete_item(item.id) is True
        assert await service.get_item(item.id) is None
        assert await service.load_image(item.id) is None

    @pytest.mark.asyncio
    async def test_delete_missing_item(self, service):
        assert await service.delete_item("missing") is None

    @pytest.mark.asyncio
    async def test_close_closes_ocr(self, service, ocr):
        await service.close()

        ocr.close.assert_awaited_once()
