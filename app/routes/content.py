"""Content routes for posts and OCR uploads.

This module provides FastAPI routes under /api/content:
- POST   /api/content/submit      Submit a reel or post URL (202)
- POST   /api/content/ocr         Upload an image and extract its text
- GET    /api/content             List post/OCR items
- GET    /api/content/{id}        Stored item
- GET    /api/content/{id}/image  Uploaded image bytes of an OCR item
- DELETE /api/content/{id}        Delete an item and its image
"""

from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, File, Query, Request, Response, UploadFile, status
from fastapi.responses import JSONResponse

from app.exceptions import ResultStoreError, StageError
from app.routes.params import parse_limit, parse_offset
from app.routes.reels import error_response
from app.schemas.content import ContentListResponse, OcrResponse, SubmitRequest
from app.services.content_service import (
    INVALID_CONTENT_URL_MESSAGE,
    NO_IMAGE_MESSAGE,
    ContentService,
    ImageTooLargeError,
    InvalidContentError,
)
from app.services.job_service import InvalidReelUrlError

log = structlog.get_logger()
router = APIRouter(prefix="/api/content", tags=["content"])


def get_content_service(request: Request) -> ContentService:
    return request.app.state.content_service  # type: ignore[no-any-return]


Content = Annotated[ContentService, Depends(get_content_service)]


def _dump(model: Any) -> Any:
    return model.model_dump(by_alias=True, exclude_none=True, mode="json")


def _internal_error(operation: str, message: str) -> JSONResponse:
    log.error("content_request_failed", operation=operation, error=message)
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", message)


@router.post("/submit")
async def submit_content(body: SubmitRequest, service: Content) -> JSONResponse:
    """Route an Instagram URL to the reel queue or the post resolver.

    Returns:
        202 Accepted: {"id", "contentType", "status"}
        400 Bad Request: Missing, non-string or non-Instagram URL
    """
    try:
        response = await service.submit(body.url)
    except (InvalidContentError, InvalidReelUrlError) as e:
        error = "Invalid URL" if str(e) == INVALID_CONTENT_URL_MESSAGE else "Invalid request"
        log.warning("content_submit_rejected", reason=str(e))
        return error_response(status.HTTP_400_BAD_REQUEST, error, str(e))
    except ResultStoreError as e:
        return _internal_error("submit", e.message)

    return JSONResponse(status_code=status.HTTP_202_ACCEPTED, content=_dump(response))


@router.post("/ocr")
async def extract_image_text(
    service: Content,
    image: Annotated[UploadFile | None, File()] = None,
) -> JSONResponse:
    """Extract text from an uploaded JPEG/PNG/GIF/WebP image.

    Returns:
        200 OK: {"id", "status": "completed", "result"}
        400 Bad Request: No file or unsupported type
        413 Payload Too Large: Over MAX_IMAGE_BYTES
        500 Internal Server Error: Extraction or storage failure
    """
    if image is None:
        return error_response(status.HTTP_400_BAD_REQUEST, "Invalid request", NO_IMAGE_MESSAGE)

    # One extra byte is enough to detect an oversized upload
    data = await image.read(service.max_image_bytes + 1)
    try:
        item = await service.extract_text(data, image.content_type, image.filename)
    except InvalidContentError as e:
        return error_response(status.HTTP_400_BAD_REQUEST, "Invalid request", str(e))
    except ImageTooLargeError as e:
        return error_response(status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, "Payload too large", str(e))
    except (StageError, ResultStoreError) as e:
        return _internal_error("ocr", e.message)
    finally:
        await image.close()

    return JSONResponse(content=_dump(OcrResponse(id=item.id, status=item.status, result=item)))


@router.get("")
async def list_content(
    service: Content,
    content_type: Annotated[str | None, Query(alias="contentType")] = None,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    limit: str | None = None,
    offset: str | None = None,
) -> JSONResponse:
    page_limit = parse_limit(limit)
    page_offset = parse_offset(offset)
    try:
        items, total = await service.list_items(
            content_type=content_type, status=status_filter, limit=page_limit, offset=page_offset
        )
    except ResultStoreError as e:
        return _internal_error("list_items", e.message)

    response = ContentListResponse(results=items, total=total, limit=page_limit, offset=page_offset)
    return JSONResponse(content=_dump(response))


@router.get("/{item_id}/image")
async def get_content_image(item_id: str, service: Content) -> Response:
    try:
        image = await service.load_image(item_id)
    except ResultStoreError as e:
        return _internal_error("load_image", e.message)
    if image is None:
        return error_response(status.HTTP_404_NOT_FOUND, "Not found", "Image not found")
    data, mime_type = image
    return Response(content=data, media_type=mime_type)


@router.get("/{item_id}")
async def get_content_item(item_id: str, service: Content) -> JSONResponse:
    try:
        item = await service.get_item(item_id)
    except ResultStoreError as e:
        return _internal_error("get_item", e.message)
    if item is None:
        return error_response(status.HTTP_404_NOT_FOUND, "Not found", "Content item not found")
    return JSONResponse(content=_dump(item))


@router.delete("/{item_id}")
async def delete_content_item(item_id: str, service: Content) -> JSONResponse:
    try:
        deleted = await service.delete_item(item_id)
    except ResultStoreError as e:
        return _internal_error("delete_item", e.message)

    if deleted is None:
        return error_response(status.HTTP_404_NOT_FOUND, "Not found", "Content item not found")
    if not deleted:
        return _internal_error("delete_item", "Failed to delete content item")
    return JSONResponse(content={"message": "Content item deleted successfully", "id": item_id})
