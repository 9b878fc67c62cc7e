"""Image text extraction with an OpenAI vision model.

The image is sent inline as a base64 ``data:`` URL together with a fixed
instruction; the model's reply is the extracted text. Images without text
yield ``"No text found."`` rather than an error.
"""

import base64
import time

import openai
from openai import AsyncOpenAI

from app.config import get_ocr_model, get_openai_api_key
from app.exceptions import OcrError
from app.schemas.content import OcrResult
from app.utils.logging import get_logger

log = get_logger(__name__)

OCR_PROMPT = (
    "Extract all visible text from this image. Return only the extracted text, "
    "maintaining the original structure and formatting as much as possible. "
    'If there is no text, respond with "No text found."'
)
NO_TEXT_FOUND = "No text found."
MAX_TOKENS = 1000

IMAGE_MIME_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
}


def guess_image_mime_type(filename: str | None) -> str:
    """Map a file name's extension to an image MIME type (JPEG if unknown)."""
    _, dot, extension = (filename or "").rpartition(".")
    return IMAGE_MIME_TYPES.get(extension.lower() if dot else "", "image/jpeg")


def build_image_data_url(image: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(image).decode('ascii')}"


class OcrService:
    """OpenAI vision text extractor with a lazily created client."""

    def __init__(self, client: AsyncOpenAI | None = None, model: str | None = None):
        self._client = client
        self.model = model or get_ocr_model()

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=get_openai_api_key())
        return self._client

    async def extract_text(self, image: bytes, mime_type: str) -> OcrResult:
        """Extract visible text from image bytes.

        Raises:
            OcrError: API failure
        """
        started = time.monotonic()
        try:
            completion = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": OCR_PROMPT},
                            {
                                "type": "image_url",
                                "image_url": {"url": build_image_data_url(image, mime_type)},
                            },
                        ],
                    }
                ],
                max_tokens=MAX_TOKENS,
            )
        except openai.OpenAIError as e:
            raise OcrError(f"Failed to extract text from image: {e}") from e

        content = completion.choices[0].message.content if completion.choices else None
        elapsed_ms = int((time.monotonic() - started) * 1000)
        log.info(
            "ocr_completed",
            model=self.model,
            size_bytes=len(image),
            processing_time_ms=elapsed_ms,
            has_text=bool(content),
        )
        return OcrResult(
            extracted_text=content or NO_TEXT_FOUND,
            model=self.model,
            processing_time_ms=elapsed_ms,
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
