"""Content sinks: durable storage of post and OCR items and uploaded images.

Two backends implement the same ``ContentSink`` protocol, mirroring the
result sinks:

    LocalContentSink     DATA_DIR/content/{id}.json
                         DATA_DIR/content/ocr/{id}.{ext}
    SupabaseContentSink  {bucket}/content/{id}.json
                         {bucket}/ocr/{id}.{ext}

Image keys are always ``ocr/{id}.{ext}`` so stored items are portable
between backends. Listing filters by content type and status, newest first.
"""

import asyncio
import os
import re
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from app.clients.supabase_storage import SupabaseStorageClient
from app.config import (
    RESULT_STORE_SUPABASE,
    get_data_dir,
    get_result_store_backend,
    get_supabase_bucket,
    get_supabase_service_key,
    get_supabase_url,
)
from app.exceptions import ResultStoreError
from app.schemas.content import ContentItem
from app.services.result_store import DEFAULT_LIST_LIMIT, STORAGE_ERRORS
from app.utils.filesystem import get_result_file_path, is_valid_identifier, validate_identifier
from app.utils.logging import get_logger

log = get_logger(__name__)

CONTENT_PREFIX = "content"
IMAGE_PREFIX = "ocr"

IMAGE_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
}
_EXTENSION_MIME_TYPES = {ext: mime for mime, ext in IMAGE_EXTENSIONS.items()}
_IMAGE_KEY_PATTERN = re.compile(r"^ocr/[a-zA-Z0-9_-]+\.(jpg|png|gif|webp)$")


class ContentSink(Protocol):
    """Storage contract for post/OCR items and their images."""

    async def write(self, item: ContentItem) -> None: ...

    async def read(self, item_id: str) -> ContentItem | None: ...

    async def delete(self, item_id: str) -> bool: ...

    async def list_items(
        self,
        content_type: str | None = None,
        status: str | None = None,
        limit: int = DEFAULT_LIST_LIMIT,
        offset: int = 0,
    ) -> tuple[list[ContentItem], int]: ...

    async def save_image(self, item_id: str, image: bytes, mime_type: str) -> str: ...

    async def load_image(self, key: str) -> tuple[bytes, str] | None: ...

    async def close(self) -> None: ...


def serialize_item(item: ContentItem) -> str:
    return item.model_dump_json(by_alias=True, exclude_none=True, indent=2)


def image_key(item_id: str, mime_type: str) -> str:
    """Build the storage key for an uploaded image.

    Raises:
        ValueError: If item_id is unsafe or mime_type is not a supported image type
    """
    validate_identifier(item_id, name="content id")
    extension = IMAGE_EXTENSIONS.get(mime_type)
    if extension is None:
        raise ValueError(f"Unsupported image type: '{mime_type}'")
    return f"{IMAGE_PREFIX}/{item_id}.{extension}"


def image_mime_type(key: str) -> str | None:
    """MIME type for a stored image key, or None if the key is not an image key."""
    match = _IMAGE_KEY_PATTERN.match(key)
    return _EXTENSION_MIME_TYPES[match.group(1)] if match else None


def filter_items(
    items: list[ContentItem],
    content_type: str | None = None,
    status: str | None = None,
    limit: int = DEFAULT_LIST_LIMIT,
    offset: int = 0,
) -> tuple[list[ContentItem], int]:
    """Apply type/status filters, sort newest first and paginate."""
    filtered = items
    if content_type:
        filtered = [i for i in filtered if i.content_type.value == content_type]
    if status:
        filtered = [i for i in filtered if i.status.value == status]
    filtered = sorted(filtered, key=lambda i: i.created_at, reverse=True)
    offset = max(0, offset)
    limit = max(0, limit)
    return filtered[offset : offset + limit], len(filtered)


class LocalContentSink:
    """JSON files and images under ``{data_dir}/content``."""

    def __init__(self, data_dir: Path | str | None = None):
        base = Path(data_dir) if data_dir is not None else get_data_dir()
        self.content_dir = base / CONTENT_PREFIX

    def _write_text_sync(self, path: Path, payload: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = path.with_suffix(path.suffix + ".tmp")
        temp_path.write_text(payload, encoding="utf-8")
        os.replace(temp_path, path)

    def _write_bytes_sync(self, path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    async def write(self, item: ContentItem) -> None:
        """Upsert the item file.

        Raises:
            ValueError: If the item id is not a safe identifier
            ResultStoreError: If the file cannot be written
        """
        path = get_result_file_path(self.content_dir, item.id)
        try:
            await asyncio.to_thread(self._write_text_sync, path, serialize_item(item))
        except OSError as e:
            raise ResultStoreError(f"Failed to write content item {item.id}: {e}") from e
        log.info("content_item_written", item_id=item.id, status=item.status.value, backend="local")

    async def read(self, item_id: str) -> ContentItem | None:
        if not is_valid_identifier(item_id):
            return None
        path = get_result_file_path(self.content_dir, item_id)
        try:
            text = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise ResultStoreError(f"Failed to read content item {item_id}: {e}") from e

        try:
            return ContentItem.model_validate_json(text)
        except ValidationError as e:
            log.warning("content_file_invalid", item_id=item_id, error=str(e))
            return None

    async def delete(self, item_id: str) -> bool:
        item = await self.read(item_id)
        path = get_result_file_path(self.content_dir, item_id)
        try:
            await asyncio.to_thread(path.unlink)
        except OSError as e:
            log.error("content_delete_failed", item_id=item_id, error=str(e))
            return False

        if item is not None and item.ocr is not None and image_mime_type(item.ocr.image_path):
            try:
                await asyncio.to_thread((self.content_dir / item.ocr.image_path).unlink)
            except OSError as e:
                log.warning("content_image_delete_failed", item_id=item_id, error=str(e))
        log.info("content_item_deleted", item_id=item_id, backend="local")
        return True

    def _load_all_sync(self) -> list[ContentItem]:
        if not self.content_dir.exists():
            return []
        items = []
        for path in sorted(self.content_dir.glob("*.json")):
            try:
                items.append(ContentItem.model_validate_json(path.read_text(encoding="utf-8")))
            except (OSError, ValidationError) as e:
                log.warning("content_file_skipped", path=str(path), error=str(e))
        return items

    async def list_items(
        self,
        content_type: str | None = None,
        status: str | None = None,
        limit: int = DEFAULT_LIST_LIMIT,
        offset: int = 0,
    ) -> tuple[list[ContentItem], int]:
        items = await asyncio.to_thread(self._load_all_sync)
        return filter_items(items, content_type, status, limit, offset)

    async def save_image(self, item_id: str, image: bytes, mime_type: str) -> str:
        key = image_key(item_id, mime_type)
        try:
            await asyncio.to_thread(self._write_bytes_sync, self.content_dir / key, image)
        except OSError as e:
            raise ResultStoreError(f"Failed to upload image: {e}") from e
        return key

    async def load_image(self, key: str) -> tuple[bytes, str] | None:
        mime_type = image_mime_type(key)
        if mime_type is None:
            return None
        try:
            data = await asyncio.to_thread((self.content_dir / key).read_bytes)
        except FileNotFoundError:
            return None
        except OSError as e:
            raise ResultStoreError(f"Failed to read image {key}: {e}") from e
        return data, mime_type

    async def close(self) -> None:
        return None


class SupabaseContentSink:
    """Items as ``content/{id}.json`` objects, images as ``ocr/{id}.{ext}``."""

    def __init__(self, client: SupabaseStorageClient):
        self.client = client

    @staticmethod
    def _object_name(item_id: str) -> str:
        return f"{CONTENT_PREFIX}/{item_id}.json"

    async def write(self, item: ContentItem) -> None:
        name = self._object_name(item.id)
        try:
            await self.client.upload_json(name, serialize_item(item))
        except STORAGE_ERRORS as e:
            raise ResultStoreError(f"Failed to upload {name}", getattr(e, "status_code", None)) from e
        log.info(
            "content_item_written", item_id=item.id, status=item.status.value, backend="supabase"
        )

    async def read(self, item_id: str) -> ContentItem | None:
        if not is_valid_identifier(item_id):
            return None
        name = self._object_name(item_id)
        try:
            data = await self.client.download(name)
        except STORAGE_ERRORS as e:
            raise ResultStoreError(f"Failed to download {name}", getattr(e, "status_code", None)) from e
        if data is None:
            return None

        try:
            return ContentItem.model_validate_json(data)
        except ValidationError as e:
            log.warning("content_object_invalid", item_id=item_id, error=str(e))
            return None

    async def delete(self, item_id: str) -> bool:
        names = [self._object_name(item_id)]
        try:
            item = await self.read(item_id)
            if item is not None and item.ocr is not None and image_mime_type(item.ocr.image_path):
                names.append(item.ocr.image_path)
            await self.client.remove(names)
        except (ResultStoreError, *STORAGE_ERRORS) as e:
            log.error("content_delete_failed", item_id=item_id, error=str(e))
            return False
        log.info("content_item_deleted", item_id=item_id, backend="supabase")
        return True

    async def _download_item(self, name: str) -> ContentItem | None:
        data = await self.client.download(f"{CONTENT_PREFIX}/{name}")
        if data is None:
            return None
        return ContentItem.model_validate_json(data)

    async def list_items(
        self,
        content_type: str | None = None,
        status: str | None = None,
        limit: int = DEFAULT_LIST_LIMIT,
        offset: int = 0,
    ) -> tuple[list[ContentItem], int]:
        try:
            objects = await self.client.list_objects(prefix=CONTENT_PREFIX)
        except STORAGE_ERRORS as e:
            raise ResultStoreError(
                "Failed to list content items", getattr(e, "status_code", None)
            ) from e

        names = [obj["name"] for obj in objects if str(obj.get("name", "")).endswith(".json")]
        downloads = await asyncio.gather(
            *(self._download_item(name) for name in names), return_exceptions=True
        )

        items: list[ContentItem] = []
        for name, outcome in zip(names, downloads):
            if isinstance(outcome, ContentItem):
                items.append(outcome)
            elif isinstance(outcome, Exception):
                log.warning("content_object_skipped", name=name, error=str(outcome))
        return filter_items(items, content_type, status, limit, offset)

    async def save_image(self, item_id: str, image: bytes, mime_type: str) -> str:
        key = image_key(item_id, mime_type)
        try:
            await self.client.upload(key, image, mime_type)
        except STORAGE_ERRORS as e:
            raise ResultStoreError(
                f"Failed to upload image: {e}", getattr(e, "status_code", None)
            ) from e
        return key

    async def load_image(self, key: str) -> tuple[bytes, str] | None:
        mime_type = image_mime_type(key)
        if mime_type is None:
            return None
        try:
            data = await self.client.download(key)
        except STORAGE_ERRORS as e:
            raise ResultStoreError(f"Failed to download {key}", getattr(e, "status_code", None)) from e
        if data is None:
            return None
        return data, mime_type

    async def close(self) -> None:
        await self.client.close()


def build_content_sink() -> ContentSink:
    """Construct the content sink matching RESULT_STORE.

    Raises:
        ConfigurationError: If the Supabase backend is selected without credentials
    """
    if get_result_store_backend() == RESULT_STORE_SUPABASE:
        client = SupabaseStorageClient(
            get_supabase_url(), get_supabase_service_key(), get_supabase_bucket()
        )
        return SupabaseContentSink(client)
    return LocalContentSink(get_data_dir())
