"""Apify API client for the Instagram reel and post scraper actors.

This module runs scraper actors synchronously through Apify's
``run-sync-get-dataset-items`` endpoint, which starts the actor, waits for it
to finish and returns the dataset items in a single request.

Actors:
    - Reel scraper (``apify~instagram-reel-scraper``): input ``username``
    - Post scraper (``apify~instagram-post-scraper``): input ``directUrls``

Architecture Pattern:
    Simple HTTP client wrapper - no retry logic (a failed scrape fails the job;
    recovery is an explicit job retry)
    Async-only interface using httpx.AsyncClient

Usage:
    from app.clients.apify import ApifyClient

    client = ApifyClient(token)
    items = await client.run_reel_scraper("https://www.instagram.com/reel/abc/")
    posts = await client.run_post_scraper("https://www.instagram.com/p/xyz/")
    await client.close()
"""

from typing import Any

import httpx

from app.config import (
    DEFAULT_APIFY_ACTOR_ID,
    DEFAULT_APIFY_POST_ACTOR_ID,
    DEFAULT_APIFY_WAIT_SECONDS,
)
from app.utils.logging import get_logger

log = get_logger(__name__)


class ApifyAPIError(Exception):
    """Raised when the Apify API returns an error response."""

    def __init__(self, message: str, response: httpx.Response):
        self.message = message
        self.status_code = response.status_code
        self.response_body = response.text
        super().__init__(f"{message} - Status: {response.status_code}")


class ApifyClient:
    """Client for running scraper actors and reading their datasets.

    Attributes:
        base_url: Apify API v2 endpoint
        actor_id: Reel scraper actor in ``username~actor`` form
        post_actor_id: Post scraper actor in ``username~actor`` form
        wait_seconds: Maximum actor run time before Apify aborts the run
        client: Async HTTP client for making requests
    """

    def __init__(
        self,
        token: str,
        actor_id: str = DEFAULT_APIFY_ACTOR_ID,
        wait_seconds: int = DEFAULT_APIFY_WAIT_SECONDS,
        post_actor_id: str = DEFAULT_APIFY_POST_ACTOR_ID,
    ) -> None:
        self.token = token
        self.actor_id = actor_id
        self.post_actor_id = post_actor_id
        self.wait_seconds = wait_seconds
        self.base_url = "https://api.apify.com/v2"
        # Leave headroom over the actor timeout for dataset transfer
        self.client = httpx.AsyncClient(timeout=float(wait_seconds + 30))

    def _get_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json",
        }

    async def _run_actor(self, actor_id: str, run_input: dict[str, Any]) -> list[dict[str, Any]]:
        response = await self.client.post(
            f"{self.base_url}/acts/{actor_id}/run-sync-get-dataset-items",
            headers=self._get_headers(),
            params={"timeout": self.wait_seconds},
            json=run_input,
        )

        if response.is_error:
            raise ApifyAPIError("Apify actor run failed", response)

        items = response.json()
        log.info("apify_run_completed", actor_id=actor_id, item_count=len(items))
        return items  # type: ignore[no-any-return]

    async def run_reel_scraper(self, reel_url: str) -> list[dict[str, Any]]:
        """Scrape a single reel and return the dataset items.

        Args:
            reel_url: Instagram reel URL

        Returns:
            List of scraped items (empty when the reel could not be read)

        Raises:
            ApifyAPIError: If Apify returns a non-2xx status
            httpx.HTTPError: On network errors or timeouts
        """
        return await self._run_actor(self.actor_id, {"username": [reel_url], "resultsLimit": 1})

    async def run_post_scraper(self, post_url: str) -> list[dict[str, Any]]:
        """Scrape a single image/carousel post and return the dataset items.

        Raises:
            ApifyAPIError: If Apify returns a non-2xx status
            httpx.HTTPError: On network errors or timeouts
        """
        return await self._run_actor(
            self.post_actor_id, {"directUrls": [post_url], "resultsLimit": 1}
        )

    async def close(self) -> None:
        """Close HTTP client connection."""
        await self.client.aclose()
