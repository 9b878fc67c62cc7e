"""Transcription service (pipeline stage 3).

Sends the downloaded media to the OpenAI audio transcription API. The temp
media file is deleted once the attempt finishes, whether it succeeded or not.

Response Formats:
    whisper-1: ``verbose_json`` with segment timestamps (segments + language)
    other models: plain ``json`` (text only)

Error Mapping:
    "unsupported" in the API error  → UnsupportedMediaError
    "limit" or "25" in the API error → MediaTooLargeError
    anything else                    → TranscriptionError("Transcription failed: ...")
"""

from pathlib import Path
from typing import Any

import openai
from openai import AsyncOpenAI

from app.config import get_max_media_bytes, get_openai_api_key, get_transcription_model
from app.exceptions import (
    MediaTooLargeError,
    StageError,
    TranscriptionError,
    UnsupportedMediaError,
)
from app.schemas.job import TranscriptionResult, TranscriptSegment
from app.utils.filesystem import delete_temp_file
from app.utils.logging import get_logger

log = get_logger(__name__)

TIMESTAMPED_MODEL = "whisper-1"
UNSUPPORTED_FORMAT_MESSAGE = (
    "Unsupported audio format. Supported formats: mp3, mp4, mpeg, mpga, m4a, wav, webm"
)
TOO_LARGE_MESSAGE = "Audio file too large. Maximum size is 25MB."


def parse_segments(raw_segments: list[Any] | None) -> list[TranscriptSegment] | None:
    """Normalize API segments: sequential ids, stripped text."""
    if raw_segments is None:
        return None
    segments = []
    for idx, seg in enumerate(raw_segments):
        data = seg if isinstance(seg, dict) else seg.model_dump()
        segments.append(
            TranscriptSegment(
                id=idx, start=data["start"], end=data["end"], text=data["text"].strip()
            )
        )
    return segments


def map_api_error(error: openai.OpenAIError) -> StageError:
    message = str(error)
    if "unsupported" in message.lower():
        return UnsupportedMediaError(UNSUPPORTED_FORMAT_MESSAGE)
    if "limit" in message or "25" in message:
        return MediaTooLargeError(TOO_LARGE_MESSAGE, stage="transcribe")
    return TranscriptionError(f"Transcription failed: {message}")


class TranscriptionService:
    """OpenAI-backed transcriber.

    The OpenAI client is created on first use so the service can be built
    without credentials (e.g. in tests that replace ``client``).
    """

    def __init__(
        self,
        client: AsyncOpenAI | None = None,
        model: str | None = None,
        max_bytes: int | None = None,
    ):
        self._client = client
        self.model = model or get_transcription_model()
        self.max_bytes = max_bytes if max_bytes is not None else get_max_media_bytes()

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=get_openai_api_key())
        return self._client

    async def _create_transcription(self, media_path: Path) -> Any:
        with media_path.open("rb") as f:
            if self.model == TIMESTAMPED_MODEL:
                return await self.client.audio.transcriptions.create(
                    file=f,
                    model=self.model,
                    response_format="verbose_json",
                    timestamp_granularities=["segment"],
                )
            return await self.client.audio.transcriptions.create(
                file=f, model=self.model, response_format="json"
            )

    async def transcribe(self, media_path: Path) -> TranscriptionResult:
        """Transcribe a media file and delete it afterwards.

        Raises:
            MediaTooLargeError: File above max_bytes, or the API rejected its size
            UnsupportedMediaError: The API rejected the media format
            TranscriptionError: Any other API or file failure
        """
        try:
            size = media_path.stat().st_size
            if size > self.max_bytes:
                raise MediaTooLargeError(TOO_LARGE_MESSAGE, stage="transcribe")

            response = await self._create_transcription(media_path)
        except openai.OpenAIError as e:
            raise map_api_error(e) from e
        except OSError as e:
            raise TranscriptionError(f"Transcription failed: {e}") from e
        finally:
            await delete_temp_file(media_path)

        segments = parse_segments(getattr(response, "segments", None))
        result = TranscriptionResult(
            text=response.text,
            language=getattr(response, "language", None),
            segments=segments,
        )
        log.info(
            "transcription_completed",
            model=self.model,
            language=result.language,
            segment_count=len(segments) if segments else 0,
            size_bytes=size,
        )
        return result

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
