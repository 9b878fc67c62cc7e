"""Tests for content sinks.

Tests cover:
- LocalContentSink item/image round trip and deletion of both
- Listing filters (content type, status, pagination, newest first)
- Image key safety
- SupabaseContentSink object names and error wrapping with a mocked client
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from app.clients.supabase_storage import SupabaseStorageError
from app.exceptions import ResultStoreError
from app.schemas.content import ContentItem, ContentStatus, ContentType, OcrExtraction
from app.services.content_store import (
    LocalContentSink,
    SupabaseContentSink,
    build_content_sink,
    filter_items,
    image_key,
    image_mime_type,
    serialize_item,
)


def make_item(
    item_id: str = "item-1",
    content_type: ContentType = ContentType.POST,
    status: ContentStatus = ContentStatus.COMPLETED,
    created_offset_minutes: int = 0,
    image_path: str | None = None,
) -> ContentItem:
    created = datetime(2026, 1, 1, tzinfo=timezone.utc) + timedelta(minutes=created_offset_minutes)
    ocr = None
    if image_path is not None:
        ocr = OcrExtraction(
            extracted_text="hello",
            image_path=image_path,
            mime_type="image/png",
            model="gpt-4o",
            processing_time_ms=12,
        )
    return ContentItem(
        id=item_id,
        content_type=content_type,
        status=status,
        created_at=created,
        updated_at=created,
        ocr=ocr,
    )


class TestImageKeys:
    def test_key_from_mime_type(self):
        assert image_key("item-1", "image/jpeg") == "ocr/item-1.jpg"
        assert image_key("item-1", "image/webp") == "ocr/item-1.webp"

    def test_unsupported_type_rejected(self):
        with pytest.raises(ValueError, match="Unsupported image type"):
            image_key("item-1", "application/pdf")

    def test_unsafe_id_rejected(self):
        with pytest.raises(ValueError):
            image_key("../etc", "image/png")

    @pytest.mark.parametrize(
        "key,expected",
        [
            ("ocr/item-1.png", "image/png"),
            ("ocr/item-1.jpg", "image/jpeg"),
            ("ocr/../secret.png", None),
            ("content/item-1.json", None),
        ],
    )
    def test_image_mime_type(self, key, expected):
        assert image_mime_type(key) == expected


class TestFilterItems:
    def test_filters_and_sorts_newest_first(self):
        items = [
            make_item("a", ContentType.POST, created_offset_minutes=0),
            make_item("b", ContentType.OCR, created_offset_minutes=1),
            make_item("c", ContentType.POST, ContentStatus.FAILED, created_offset_minutes=2),
            make_item("d", ContentType.POST, created_offset_minutes=3),
        ]

        page, total = filter_items(items, content_type="post")
        assert [i.id for i in page] == ["d", "c", "a"]
        assert total == 3

        page, total = filter_items(items, content_type="post", status="completed", limit=1, offset=1)
        assert [i.id for i in page] == ["a"]
        assert total == 2


class TestLocalContentSink:
    @pytest.mark.asyncio
    async def test_write_then_read(self, tmp_path):
        sink = LocalContentSink(tmp_path)
        item = make_item()

        await sink.write(item)

        assert await sink.read("item-1") == item
        assert (tmp_path / "content" / "item-1.json").exists()
        assert not (tmp_path / "content" / "item-1.json.tmp").exists()

    @pytest.mark.asyncio
    async def test_read_missing_or_unsafe_returns_none(self, tmp_path):
        sink = LocalContentSink(tmp_path)

        assert await sink.read("missing") is None
        assert await sink.read("../escape") is None

    @pytest.mark.asyncio
    async def test_corrupt_file_skipped(self, tmp_path):
        sink = LocalContentSink(tmp_path)
        await sink.write(make_item("good"))
        (tmp_path / "content" / "bad.json").write_text("{not json", encoding="utf-8")

        assert await sink.read("bad") is None
        items, total = await sink.list_items()
        assert [i.id for i in items] == ["good"]
        assert total == 1

    @pytest.mark.asyncio
    async def test_image_round_trip_and_delete(self, tmp_path):
        sink = LocalContentSink(tmp_path)

        key = await sink.save_image("item-1", b"\x89PNG", "image/png")
        await sink.write(make_item(content_type=ContentType.OCR, image_path=key))

        assert key == "ocr/item-1.png"
        assert await sink.load_image(key) == (b"\x89PNG", "image/png")

        assert await sink.delete("item-1") is True
        assert await sink.read("item-1") is None
        assert not (tmp_path / "content" / "ocr" / "item-1.png").exists()

    @pytest.mark.asyncio
    async def test_load_image_rejects_foreign_keys(self, tmp_path):
        sink = LocalContentSink(tmp_path)

        assert await sink.load_image("content/item-1.json") is None
        assert await sink.load_image("ocr/missing.png") is None

    @pytest.mark.asyncio
    async def test_delete_missing_returns_false(self, tmp_path):
        assert await LocalContentSink(tmp_path).delete("missing") is False


def _storage_client() -> MagicMock:
    client = MagicMock()
    client.upload = AsyncMock(side_effect=lambda name, data, mime: name)
    client.upload_json = AsyncMock(side_effect=lambda name, content: name)
    client.download = AsyncMock(return_value=None)
    client.remove = AsyncMock()
    client.list_objects = AsyncMock(return_value=[])
    client.close = AsyncMock()
    return client


def _storage_error(status_code: int = 403) -> SupabaseStorageError:
    return SupabaseStorageError("denied", httpx.Response(status_code, text="denied"))


class TestSupabaseContentSink:
    @pytest.mark.asyncio
    async def test_write_uploads_under_content_prefix(self):
        client = _storage_client()
        item = make_item()

        await SupabaseContentSink(client).write(item)

        client.upload_json.assert_awaited_once_with("content/item-1.json", serialize_item(item))

    @pytest.mark.asyncio
    async def test_write_error_wrapped(self):
        client = _storage_client()
        client.upload_json.side_effect = _storage_error()

        with pytest.raises(ResultStoreError) as exc_info:
            await SupabaseContentSink(client).write(make_item())

        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_delete_removes_item_and_image(self):
        client = _storage_client()
        item = make_item(content_type=ContentType.OCR, image_path="ocr/item-1.png")
        client.download.return_value = serialize_item(item).encode()

        assert await SupabaseContentSink(client).delete("item-1") is True

        client.remove.assert_awaited_once_with(["content/item-1.json", "ocr/item-1.png"])

    @pytest.mark.asyncio
    async def test_delete_failure_returns_false(self):
        client = _storage_client()
        client.remove.side_effect = _storage_error(500)

        assert await SupabaseContentSink(client).delete("item-1") is False

    @pytest.mark.asyncio
    async def test_list_downloads_json_objects(self):
        client = _storage_client()
        older = make_item("older", created_offset_minutes=0)
        newer = make_item("newer", created_offset_minutes=5)
        payloads = {
            "content/older.json": serialize_item(older).encode(),
            "content/newer.json": serialize_item(newer).encode(),
        }
        client.list_objects.return_value = [
            {"name": "older.json"},
            {"name": "newer.json"},
            {"name": "ocr"},
        ]
        client.download.side_effect = lambda name: payloads.get(name)

        items, total = await SupabaseContentSink(client).list_items()

        assert [i.id for i in items] == ["newer", "older"]
        assert total == 2
        client.list_objects.assert_awaited_once_with(prefix="content")

    @pytest.mark.asyncio
    async def test_save_image_uploads_bytes(self):
        client = _storage_client()

        key = await SupabaseContentSink(client).save_image("item-1", b"GIF89a", "image/gif")

        assert key == "ocr/item-1.gif"
        client.upload.assert_awaited_once_with("ocr/item-1.gif", b"GIF89a", "image/gif")


def test_build_content_sink_defaults_to_local(monkeypatch, isolated_dirs):
    monkeypatch.setenv("RESULT_STORE", "local")

    sink = build_content_sink()

    assert isinstance(sink, LocalContentSink)
    assert sink.content_dir == isolated_dirs / "data" / "content"
