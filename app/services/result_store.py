"""Result sinks: durable storage of job outcomes keyed by job id.

Two backends implement the same ``ResultSink`` protocol:

    LocalResultSink     DATA_DIR/{job_id}.json, atomic temp-file + rename writes
    SupabaseResultSink  {bucket}/{job_id}.json in Supabase Storage (upsert)

Writes are upserts: writing a job id again replaces the whole record. The
pipeline orchestrator is the only writer; routes only read, list and delete.

Listing Filters (both backends):
    - status: "completed" / "failed" (records without a status are inferred
      from whether a summary exists)
    - search: case-insensitive match on transcript, summary, caption or id
    - newest first by created_at, then offset/limit pagination
"""

import asyncio
import os
from pathlib import Path
from typing import Protocol

import httpx
from pydantic import ValidationError

from app.clients.supabase_storage import (
    SupabaseStorageClient,
    SupabaseStorageError,
    SupabaseTransientError,
)
from app.config import (
    RESULT_STORE_SUPABASE,
    get_data_dir,
    get_result_store_backend,
    get_supabase_bucket,
    get_supabase_service_key,
    get_supabase_url,
)
from app.exceptions import ResultStoreError
from app.schemas.job import JobResult
from app.utils.filesystem import get_result_file_path, is_valid_identifier
from app.utils.logging import get_logger

log = get_logger(__name__)

DEFAULT_LIST_LIMIT = 20

STORAGE_ERRORS = (SupabaseStorageError, SupabaseTransientError, httpx.HTTPError)


class ResultSink(Protocol):
    """Storage contract for terminal job results."""

    async def write(self, job_id: str, result: JobResult) -> None: ...

    async def read(self, job_id: str) -> JobResult | None: ...

    async def delete(self, job_id: str) -> bool: ...

    async def list_results(
        self,
        status: str | None = None,
        search: str | None = None,
        limit: int = DEFAULT_LIST_LIMIT,
        offset: int = 0,
    ) -> tuple[list[JobResult], int]: ...

    async def close(self) -> None: ...


def serialize_result(result: JobResult) -> str:
    return result.model_dump_json(by_alias=True, exclude_none=True, indent=2)


def _matches_search(result: JobResult, needle: str) -> bool:
    haystacks = [
        result.transcript.text if result.transcript else "",
        result.summary.model_dump_json() if result.summary else "",
        result.metadata.caption if result.metadata and result.metadata.caption else "",
        result.id,
    ]
    return any(needle in text.lower() for text in haystacks)


def filter_results(
    results: list[JobResult],
    status: str | None = None,
    search: str | None = None,
    limit: int = DEFAULT_LIST_LIMIT,
    offset: int = 0,
) -> tuple[list[JobResult], int]:
    """Apply status/search filters, sort newest first and paginate.

    Returns:
        (page of results, total number of matches before pagination)
    """
    filtered = results
    if status:
        filtered = [r for r in filtered if r.effective_status == status]
    if search:
        needle = search.lower()
        filtered = [r for r in filtered if _matches_search(r, needle)]

    filtered = sorted(filtered, key=lambda r: r.created_at, reverse=True)
    offset = max(0, offset)
    limit = max(0, limit)
    return filtered[offset : offset + limit], len(filtered)


class LocalResultSink:
    """JSON files under a data directory, one per job."""

    def __init__(self, data_dir: Path | str | None = None):
        self.data_dir = Path(data_dir) if data_dir is not None else get_data_dir()

    def _write_sync(self, job_id: str, payload: str) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        path = get_result_file_path(self.data_dir, job_id)
        temp_path = path.with_suffix(".json.tmp")
        temp_path.write_text(payload, encoding="utf-8")
        os.replace(temp_path, path)

    async def write(self, job_id: str, result: JobResult) -> None:
        """Upsert the result file.

        Raises:
            ValueError: If job_id is not a safe identifier
            ResultStoreError: If the file cannot be written
        """
        payload = serialize_result(result)
        try:
            await asyncio.to_thread(self._write_sync, job_id, payload)
        except OSError as e:
            raise ResultStoreError(f"Failed to write result {job_id}: {e}") from e
        log.info("result_written", job_id=job_id, backend="local")

    async def read(self, job_id: str) -> JobResult | None:
        if not is_valid_identifier(job_id):
            return None
        path = get_result_file_path(self.data_dir, job_id)
        try:
            text = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise ResultStoreError(f"Failed to read result {job_id}: {e}") from e

        try:
            return JobResult.model_validate_json(text)
        except ValidationError as e:
            log.warning("result_file_invalid", job_id=job_id, error=str(e))
            return None

    async def delete(self, job_id: str) -> bool:
        if not is_valid_identifier(job_id):
            return False
        path = get_result_file_path(self.data_dir, job_id)
        try:
            await asyncio.to_thread(path.unlink)
        except OSError as e:
            log.error("result_delete_failed", job_id=job_id, error=str(e))
            return False
        log.info("result_deleted", job_id=job_id, backend="local")
        return True

    def _load_all_sync(self) -> list[JobResult]:
        if not self.data_dir.exists():
            return []
        results = []
        for path in sorted(self.data_dir.glob("*.json")):
            try:
                results.append(JobResult.model_validate_json(path.read_text(encoding="utf-8")))
            except (OSError, ValidationError) as e:
                log.warning("result_file_skipped", path=str(path), error=str(e))
        return results

    async def list_results(
        self,
        status: str | None = None,
        search: str | None = None,
        limit: int = DEFAULT_LIST_LIMIT,
        offset: int = 0,
    ) -> tuple[list[JobResult], int]:
        results = await asyncio.to_thread(self._load_all_sync)
        return filter_results(results, status, search, limit, offset)

    async def close(self) -> None:
        return None


class SupabaseResultSink:
    """Job results stored as ``{job_id}.json`` objects in a Supabase bucket."""

    def __init__(self, client: SupabaseStorageClient):
        self.client = client

    @staticmethod
    def _object_name(job_id: str) -> str:
        return f"{job_id}.json"

    async def write(self, job_id: str, result: JobResult) -> None:
        """Upsert the result object.

        Raises:
            ResultStoreError: If the upload fails after retries
        """
        name = self._object_name(job_id)
        try:
            await self.client.upload_json(name, serialize_result(result))
        except STORAGE_ERRORS as e:
            raise ResultStoreError(f"Failed to upload {name}", getattr(e, "status_code", None)) from e
        log.info("result_written", job_id=job_id, backend="supabase")

    async def read(self, job_id: str) -> JobResult | None:
        if not is_valid_identifier(job_id):
            return None
        name = self._object_name(job_id)
        try:
            data = await self.client.download(name)
        except STORAGE_ERRORS as e:
            raise ResultStoreError(f"Failed to download {name}", getattr(e, "status_code", None)) from e
        if data is None:
            return None

        try:
            return JobResult.model_validate_json(data)
        except ValidationError as e:
            log.warning("result_object_invalid", job_id=job_id, error=str(e))
            return None

    async def delete(self, job_id: str) -> bool:
        name = self._object_name(job_id)
        try:
            await self.client.remove([name])
        except STORAGE_ERRORS as e:
            log.error("result_delete_failed", job_id=job_id, error=str(e))
            return False
        log.info("result_deleted", job_id=job_id, backend="supabase")
        return True

    async def _download_result(self, name: str) -> JobResult | None:
        data = await self.client.download(name)
        if data is None:
            return None
        return JobResult.model_validate_json(data)

    async def list_results(
        self,
        status: str | None = None,
        search: str | None = None,
        limit: int = DEFAULT_LIST_LIMIT,
        offset: int = 0,
    ) -> tuple[list[JobResult], int]:
        try:
            objects = await self.client.list_objects()
        except STORAGE_ERRORS as e:
            raise ResultStoreError("Failed to list results", getattr(e, "status_code", None)) from e

        names = [obj["name"] for obj in objects if str(obj.get("name", "")).endswith(".json")]
        downloads = await asyncio.gather(
            *(self._download_result(name) for name in names), return_exceptions=True
        )

        results: list[JobResult] = []
        for name, outcome in zip(names, downloads):
            if isinstance(outcome, JobResult):
                results.append(outcome)
            elif isinstance(outcome, Exception):
                log.warning("result_object_skipped", name=name, error=str(outcome))

        page, total = filter_results(results, status, search, limit, offset)
        log.info("results_listed", returned=len(page), total=total, objects=len(names))
        return page, total

    async def close(self) -> None:
        await self.client.close()


def build_result_sink() -> ResultSink:
    """Construct the sink selected by RESULT_STORE.

    Raises:
        ConfigurationError: If the Supabase backend is selected without credentials
    """
    if get_result_store_backend() == RESULT_STORE_SUPABASE:
        client = SupabaseStorageClient(
            get_supabase_url(), get_supabase_service_key(), get_supabase_bucket()
        )
        log.info("result_sink_selected", backend="supabase", bucket=client.bucket)
        return SupabaseResultSink(client)

    sink = LocalResultSink(get_data_dir())
    log.info("result_sink_selected", backend="local", data_dir=str(sink.data_dir))
    return sink
