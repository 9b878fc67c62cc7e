"""Instagram post metadata resolution.

Image and carousel posts have nothing to transcribe; the service only
records what the Apify post scraper reports about them. Missing fields get
empty defaults so stored items always have the same shape.
"""

from typing import Any

import httpx

from app.clients.apify import ApifyAPIError, ApifyClient
from app.exceptions import MetadataResolutionError
from app.schemas.content import PostMetadata
from app.utils.logging import get_logger

log = get_logger(__name__)

POST_SOURCE = "apify-instagram-post-scraper"
NO_POST_DATA_MESSAGE = "No data returned from Instagram post scraper"


def parse_post_item(item: dict[str, Any]) -> PostMetadata:
    return PostMetadata(
        caption=item.get("caption") or "",
        likes_count=item.get("likesCount") or 0,
        comments_count=item.get("commentsCount") or 0,
        timestamp=item.get("timestamp"),
        owner_username=item.get("ownerUsername") or "",
        owner_full_name=item.get("ownerFullName") or "",
        image_urls=item.get("images") or item.get("imageUrls") or [],
        video_url=item.get("videoUrl") or None,
        type=item.get("type") or "unknown",
    )


class PostResolver:
    """Resolves post URLs to PostMetadata via the shared Apify client."""

    def __init__(self, client: ApifyClient):
        self.client = client

    async def resolve_post(self, post_url: str) -> PostMetadata:
        """Fetch post metadata.

        Raises:
            MetadataResolutionError: Scraper failure or empty dataset
        """
        try:
            items = await self.client.run_post_scraper(post_url)
        except (ApifyAPIError, httpx.HTTPError) as e:
            raise MetadataResolutionError(f"Failed to extract post metadata: {e}") from e

        if not items:
            raise MetadataResolutionError(f"Failed to extract post metadata: {NO_POST_DATA_MESSAGE}")

        post = parse_post_item(items[0])
        log.info(
            "post_resolved",
            post_url=post_url,
            post_type=post.type,
            image_count=len(post.image_urls),
        )
        return post
