"""Reel metadata resolution (pipeline stage 1).

Turns an Instagram reel URL into a direct video URL plus engagement metadata
using the Apify reel scraper. The scraper's item shape varies between actor
versions, so every field has camelCase and snake_case fallbacks.

Video URL Selection:
    1. ``videoUrl``
    2. widest entry of ``videoVersions``
    3. ``video_url``
"""

from typing import Any

import httpx

from app.clients.apify import ApifyAPIError, ApifyClient
from app.exceptions import ContentUnavailableError, MetadataResolutionError
from app.schemas.job import ReelData
from app.utils.logging import get_logger

log = get_logger(__name__)

UNAVAILABLE_MESSAGE = "No data returned from Instagram. The reel may be private or unavailable."


def _first_present(item: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = item.get(key)
        if value:
            return value
    return None


def select_video_url(item: dict[str, Any]) -> str | None:
    """Pick the best video URL from a scraped item."""
    if item.get("videoUrl"):
        return str(item["videoUrl"])

    versions = item.get("videoVersions")
    if isinstance(versions, list) and versions:
        widest = max(versions, key=lambda v: v.get("width") or 0)
        return widest.get("url")

    if item.get("video_url"):
        return str(item["video_url"])
    return None


def parse_reel_item(item: dict[str, Any]) -> ReelData:
    return ReelData(
        video_url=select_video_url(item),
        caption=_first_present(item, "caption", "text"),
        likes_count=_first_present(item, "likesCount", "likes_count"),
        comments_count=_first_present(item, "commentsCount", "comments_count"),
        video_play_count=_first_present(item, "videoPlayCount", "play_count"),
        video_duration=_first_present(item, "videoDuration", "video_duration"),
    )


class ReelResolver:
    """Resolves reel URLs to ReelData via the Apify client."""

    def __init__(self, client: ApifyClient):
        self.client = client

    async def resolve_metadata(self, reel_url: str) -> ReelData:
        """Fetch reel metadata.

        Returns:
            ReelData; ``video_url`` may be None, the caller decides if that is fatal

        Raises:
            ContentUnavailableError: Scraper returned no items
            MetadataResolutionError: Any other scraper/network failure
        """
        try:
            items = await self.client.run_reel_scraper(reel_url)
        except (ApifyAPIError, httpx.HTTPError) as e:
            message = str(e)
            if "private" in message or "unavailable" in message:
                raise ContentUnavailableError(message) from e
            raise MetadataResolutionError(f"Failed to fetch reel data: {message}") from e

        if not items:
            raise ContentUnavailableError(UNAVAILABLE_MESSAGE)

        reel = parse_reel_item(items[0])
        log.info(
            "reel_resolved",
            reel_url=reel_url,
            has_video_url=reel.video_url is not None,
            duration=reel.video_duration,
        )
        return reel

    async def close(self) -> None:
        await self.client.close()
