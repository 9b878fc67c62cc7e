"""Summarization service (pipeline stage 4).

Asks an OpenAI chat model, in JSON mode, for a structured summary of a reel
transcript. Timestamped segments, when present, are appended as
``[m:ss] text`` lines so the model can cite key moments.
"""

import json

import openai
from openai import AsyncOpenAI
from pydantic import ValidationError

from app.config import get_openai_api_key, get_summarization_model
from app.exceptions import SummarizationError
from app.schemas.job import Summary, TranscriptSegment
from app.utils.logging import get_logger

log = get_logger(__name__)

SYSTEM_PROMPT = """You are an expert at analyzing and summarizing short-form video content from social media.
Your task is to create faithful, concise summaries that capture the key points and essence of the content.

Return your response as a JSON object with this exact structure:
{
  "title": "A catchy, descriptive title (max 10 words)",
  "bullets": ["Five key points from the video", "Each bullet should be concise", "Focus on main ideas", "Include important details", "Make them actionable when possible"],
  "tldr": "A single sentence summary of the entire video",
  "entities": ["List of named entities mentioned", "People", "Places", "Products", "Organizations"],
  "keyMoments": [{"time": "0:15", "description": "What happens at this timestamp"}]
}

Guidelines:
- Be accurate and faithful to the source content
- Keep bullets concise but informative (1-2 sentences each)
- Extract all named entities (people, places, products, brands, organizations)
- For keyMoments, only include if timestamps are available and moments are significant
- If no clear entities or key moments, use empty arrays"""

TEMPERATURE = 0.3
NO_CONTENT_MESSAGE = "No content returned from summarization API"


def format_timestamp(seconds: float) -> str:
    """Format seconds as m:ss (e.g. 75.4 → "1:15")."""
    total = int(seconds)
    return f"{total // 60}:{total % 60:02d}"


def build_user_message(text: str, segments: list[TranscriptSegment] | None = None) -> str:
    message = f"Here is the transcript from an Instagram Reel:\n\n{text}"
    if segments:
        message += "\n\nTimestamped segments:\n"
        message += "".join(f"[{format_timestamp(seg.start)}] {seg.text}\n" for seg in segments)
    return message


class SummarizationService:
    """OpenAI-backed summarizer with a lazily created client."""

    def __init__(self, client: AsyncOpenAI | None = None, model: str | None = None):
        self._client = client
        self.model = model or get_summarization_model()

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=get_openai_api_key())
        return self._client

    async def summarize(
        self, text: str, segments: list[TranscriptSegment] | None = None
    ) -> Summary:
        """Summarize a transcript.

        Raises:
            SummarizationError: API failure, empty response or malformed JSON
        """
        try:
            completion = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": build_user_message(text, segments)},
                ],
                response_format={"type": "json_object"},
                temperature=TEMPERATURE,
            )
        except openai.OpenAIError as e:
            raise SummarizationError(f"Summarization failed: {e}") from e

        content = completion.choices[0].message.content if completion.choices else None
        if not content:
            raise SummarizationError(f"Summarization failed: {NO_CONTENT_MESSAGE}")

        try:
            summary = Summary.model_validate(json.loads(content))
        except (json.JSONDecodeError, ValidationError) as e:
            raise SummarizationError(f"Summarization failed: {e}") from e

        if not summary.key_moments:
            summary.key_moments = None

        log.info(
            "summarization_completed",
            model=self.model,
            bullet_count=len(summary.bullets),
            entity_count=len(summary.entities),
        )
        return summary

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
