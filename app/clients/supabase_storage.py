"""Supabase Storage REST client with retry on transient errors.

This module provides a thin async client for the Supabase Storage API, used
to keep one JSON result object per job in a bucket. It implements:
- Upsert uploads (``x-upsert: true``) so rewriting a job result overwrites it
- Automatic retry with exponential backoff for transient errors
  (429, 5xx, timeouts, connection errors) via tenacity
- Proper error classification (missing objects vs. backend failures)

Usage:
    client = SupabaseStorageClient(url, service_key, bucket="reel-results")
    await client.upload_json("abc.json", '{"id": "abc"}')
    data = await client.download("abc.json")  # None if missing
    await client.close()
"""

from typing import Any

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from app.utils.logging import get_logger

log = get_logger(__name__)

RETRIABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})
MISSING_OBJECT_STATUS_CODES = frozenset({400, 404})


class SupabaseStorageError(Exception):
    """Raised for non-retriable Supabase Storage errors."""

    def __init__(self, message: str, response: httpx.Response):
        self.message = message
        self.status_code = response.status_code
        self.response_body = response.text
        super().__init__(f"{message} - Status: {response.status_code}")


class SupabaseTransientError(Exception):
    """Raised for retriable responses; re-raised once retries are exhausted."""

    def __init__(self, response: httpx.Response):
        self.status_code = response.status_code
        super().__init__(f"Transient Supabase Storage error - Status: {response.status_code}")


class SupabaseStorageClient:
    """Supabase Storage API client scoped to a single bucket.

    Attributes:
        storage_url: Base URL of the storage API (``{project}/storage/v1``)
        bucket: Bucket holding the job result objects
        client: Async HTTP client for making requests
    """

    def __init__(self, base_url: str, service_key: str, bucket: str, timeout: float = 30.0):
        self.storage_url = f"{base_url.rstrip('/')}/storage/v1"
        self.bucket = bucket
        self.service_key = service_key
        self.client = httpx.AsyncClient(timeout=timeout)

    def _get_headers(self, content_type: str | None = None) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.service_key}",
            "apikey": self.service_key,
        }
        if content_type:
            headers["Content-Type"] = content_type
        return headers

    @retry(
        retry=retry_if_exception_type(
            (httpx.TimeoutException, httpx.ConnectError, SupabaseTransientError)
        ),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        reraise=True,
    )
    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Send a request, raising SupabaseTransientError on retriable statuses."""
        response = await self.client.request(method, f"{self.storage_url}{path}", **kwargs)
        if response.status_code in RETRIABLE_STATUS_CODES:
            log.warning(
                "supabase_transient_error",
                method=method,
                path=path,
                status_code=response.status_code,
            )
            raise SupabaseTransientError(response)
        return response

    async def upload(self, name: str, data: bytes, content_type: str) -> str:
        """Upload (or overwrite) an object.

        Args:
            name: Object name inside the bucket (e.g. "abc.json", "ocr/abc.png")
            data: Object bytes
            content_type: MIME type stored with the object

        Returns:
            Object key reported by Supabase, or ``name`` if none returned

        Raises:
            SupabaseStorageError: On non-retriable errors (401, 403, 4xx)
            SupabaseTransientError: When retries are exhausted
        """
        response = await self._request(
            "POST",
            f"/object/{self.bucket}/{name}",
            content=data,
            headers={**self._get_headers(content_type), "x-upsert": "true"},
        )
        if response.is_error:
            raise SupabaseStorageError(f"Failed to upload {name}", response)

        key = response.json().get("Key") if response.content else None
        log.info("supabase_object_uploaded", name=name, size_bytes=len(data))
        return key or name

    async def upload_json(self, name: str, content: str) -> str:
        """Upload (or overwrite) a JSON document."""
        return await self.upload(name, content.encode("utf-8"), "application/json")

    async def download(self, name: str) -> bytes | None:
        """Download an object's bytes; returns None if the object does not exist."""
        response = await self._request(
            "GET", f"/object/{self.bucket}/{name}", headers=self._get_headers()
        )
        if response.status_code in MISSING_OBJECT_STATUS_CODES:
            return None
        if response.is_error:
            raise SupabaseStorageError(f"Failed to download {name}", response)
        return response.content

    async def remove(self, names: list[str]) -> None:
        """Delete objects from the bucket."""
        response = await self._request(
            "DELETE",
            f"/object/{self.bucket}",
            json={"prefixes": names},
            headers=self._get_headers("application/json"),
        )
        if response.is_error:
            raise SupabaseStorageError(f"Failed to remove {', '.join(names)}", response)

    async def list_objects(self, prefix: str = "", limit: int = 1000) -> list[dict[str, Any]]:
        """List object entries (dicts with at least ``name``) under prefix."""
        response = await self._request(
            "POST",
            f"/object/list/{self.bucket}",
            json={
                "prefix": prefix,
                "limit": limit,
                "offset": 0,
                "sortBy": {"column": "name", "order": "asc"},
            },
            headers=self._get_headers("application/json"),
        )
        if response.is_error:
            raise SupabaseStorageError("Failed to list objects", response)
        return response.json()  # type: ignore[no-any-return]

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.aclose()

    async def __aenter__(self) -> "SupabaseStorageClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
