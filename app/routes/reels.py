"""Reel job routes.

This module provides FastAPI routes under /api/reels:
- GET    /api/reels/ingest?reelUrl=   Submit a reel (202)
- GET    /api/reels/{id}/status       Latest status entry
- GET    /api/reels/{id}              Stored result
- GET    /api/reels                   List stored results
- POST   /api/reels/{id}/retry        Re-queue a job ahead of pending jobs
- DELETE /api/reels/{id}              Delete a result and its status

Errors use the body shape ``{"error": ..., "message": ...}``.
"""

from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse

from app.exceptions import ResultNotFoundError, ResultStoreError
from app.routes.params import parse_limit, parse_offset
from app.schemas.job import IngestResponse, ResultListResponse, RetryResponse
from app.services.job_service import REEL_ONLY_MESSAGE, InvalidReelUrlError, ReelJobService

log = structlog.get_logger()
router = APIRouter(prefix="/api/reels", tags=["reels"])


def get_job_service(request: Request) -> ReelJobService:
    """Return the service instance built in the application lifespan."""
    return request.app.state.job_service  # type: ignore[no-any-return]


JobService = Annotated[ReelJobService, Depends(get_job_service)]


def _dump(model: Any) -> Any:
    return model.model_dump(by_alias=True, exclude_none=True, mode="json")


def error_response(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "message": message})


def _not_found(message: str) -> JSONResponse:
    return error_response(status.HTTP_404_NOT_FOUND, "Not found", message)


def _storage_failure(operation: str, e: ResultStoreError) -> JSONResponse:
    log.error("result_store_request_failed", operation=operation, error=str(e))
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", e.message)


@router.get("/ingest")
async def ingest_reel(
    service: JobService,
    reel_url: Annotated[str | None, Query(alias="reelUrl")] = None,
) -> JSONResponse:
    """Validate and enqueue a reel URL.

    Returns:
        202 Accepted: {"id", "status": "queued"}
        400 Bad Request: Missing or non-reel URL
    """
    try:
        job_id = await service.submit(reel_url)
    except InvalidReelUrlError as e:
        error = "Invalid URL" if str(e) == REEL_ONLY_MESSAGE else "Invalid request"
        log.warning("ingest_rejected", reel_url=reel_url, reason=str(e))
        return error_response(status.HTTP_400_BAD_REQUEST, error, str(e))

    return JSONResponse(status_code=status.HTTP_202_ACCEPTED, content=_dump(IngestResponse(id=job_id)))


@router.get("/{job_id}/status")
async def get_job_status(job_id: str, service: JobService) -> JSONResponse:
    progress = service.get_status(job_id)
    if progress is None:
        return _not_found("Job not found")
    return JSONResponse(content=_dump(progress))


@router.get("/{job_id}")
async def get_job_result(job_id: str, service: JobService) -> JSONResponse:
    try:
        result = await service.get_result(job_id)
    except ResultStoreError as e:
        return _storage_failure("get_result", e)
    if result is None:
        return _not_found("Job result not found")
    return JSONResponse(content=_dump(result))


@router.get("")
async def list_job_results(
    service: JobService,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    search: str | None = None,
    limit: str | None = None,
    offset: str | None = None,
) -> JSONResponse:
    """List stored results, newest first.

    ``status`` filters by completed/failed; ``search`` matches transcript,
    summary, caption and id case-insensitively. ``limit`` defaults to 20
    (also for 0 or garbage) and is capped at 100.
    """
    page_limit = parse_limit(limit)
    page_offset = parse_offset(offset)
    try:
        results, total = await service.list_results(
            status=status_filter, search=search, limit=page_limit, offset=page_offset
        )
    except ResultStoreError as e:
        return _storage_failure("list_results", e)

    response = ResultListResponse(
        results=results, total=total, limit=page_limit, offset=page_offset
    )
    return JSONResponse(content=_dump(response))


@router.post("/{job_id}/retry")
async def retry_job(job_id: str, service: JobService) -> JSONResponse:
    try:
        await service.retry(job_id)
    except ResultNotFoundError:
        return _not_found("Job not found")
    except ResultStoreError as e:
        return _storage_failure("retry", e)
    return JSONResponse(content=_dump(RetryResponse(id=job_id)))


@router.delete("/{job_id}")
async def delete_job(job_id: str, service: JobService) -> JSONResponse:
    try:
        deleted = await service.delete(job_id)
    except ResultNotFoundError:
        return _not_found("Process not found")
    except ResultStoreError as e:
        return _storage_failure("delete", e)

    if not deleted:
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", "Failed to delete process"
        )
    return JSONResponse(content={"message": "Process deleted successfully", "id": job_id})
