"""Media download service (pipeline stage 2).

Streams a reel video to TEMP_DIR/{job_id}.mp4 with httpx. The file is
transient: the transcriber deletes it once the transcription attempt ends.

Validation:
    - Redirects are followed; the final response must be HTTP 200
    - Content-Type, when present, must mention "video" or "octet-stream"
    - The byte count is checked while streaming and the transfer aborted as
      soon as it passes the size limit
    - Any failure removes the partially written file
"""

from pathlib import Path

import httpx

from app.config import get_download_timeout_seconds, get_max_media_bytes
from app.exceptions import MediaDownloadError, MediaTooLargeError
from app.utils.filesystem import delete_temp_file, get_temp_file_path
from app.utils.logging import get_logger

log = get_logger(__name__)

CHUNK_SIZE = 64 * 1024
ACCEPTED_CONTENT_TYPE_MARKERS = ("video", "octet-stream")


def _format_megabytes(num_bytes: int) -> str:
    return f"{num_bytes // (1024 * 1024)}MB"


class MediaDownloader:
    """Downloads reel videos into transient storage.

    Attributes:
        max_bytes: Maximum accepted payload size
        timeout_seconds: Overall timeout per request phase
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        max_bytes: int | None = None,
        timeout_seconds: int | None = None,
    ):
        self.max_bytes = max_bytes if max_bytes is not None else get_max_media_bytes()
        self.timeout_seconds = (
            timeout_seconds if timeout_seconds is not None else get_download_timeout_seconds()
        )
        self.client = client or httpx.AsyncClient(
            timeout=float(self.timeout_seconds), follow_redirects=True
        )

    async def fetch_media(self, job_id: str, media_url: str) -> Path:
        """Download media_url to a temp file named after the job.

        Returns:
            Path to the downloaded file

        Raises:
            MediaDownloadError: Non-200 status, wrong content type, timeout or network error
            MediaTooLargeError: Payload exceeds max_bytes
        """
        temp_path = get_temp_file_path(job_id, "mp4")
        try:
            size = await self._stream_to_file(media_url, temp_path)
        except httpx.TimeoutException as e:
            await delete_temp_file(temp_path)
            raise MediaDownloadError("Download timeout") from e
        except httpx.HTTPError as e:
            await delete_temp_file(temp_path)
            raise MediaDownloadError(f"Failed to download video: {e}") from e
        except (MediaDownloadError, MediaTooLargeError, OSError):
            await delete_temp_file(temp_path)
            raise

        log.info("media_downloaded", job_id=job_id, path=str(temp_path), size_bytes=size)
        return temp_path

    async def _stream_to_file(self, media_url: str, temp_path: Path) -> int:
        async with self.client.stream("GET", media_url, follow_redirects=True) as response:
            if response.status_code != 200:
                raise MediaDownloadError(f"Failed to download video: HTTP {response.status_code}")

            content_type = response.headers.get("content-type")
            if content_type and not any(m in content_type for m in ACCEPTED_CONTENT_TYPE_MARKERS):
                raise MediaDownloadError(f"Invalid content type: {content_type}. Expected video.")

            downloaded = 0
            with temp_path.open("wb") as f:
                async for chunk in response.aiter_bytes(CHUNK_SIZE):
                    downloaded += len(chunk)
                    if downloaded > self.max_bytes:
                        raise MediaTooLargeError(
                            f"Video file too large (> {_format_megabytes(self.max_bytes)})",
                            stage="download",
                        )
                    f.write(chunk)
        return downloaded

    async def close(self) -> None:
        await self.client.aclose()
