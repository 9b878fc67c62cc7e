"""Instagram URL classification.

Only ``instagram.com`` and ``www.instagram.com`` are accepted. The path
decides the content type:

    /reel/{code} or /reels/{code}  → reel
    /p/{code}                      → post
    anything else                  → unknown (invalid)

The reel ingest endpoint accepts reels only; the content API routes posts to
the post resolver.
"""

from dataclasses import dataclass
from typing import Literal
from urllib.parse import urlparse

ContentType = Literal["reel", "post", "unknown"]
Platform = Literal["instagram", "unknown"]

INSTAGRAM_HOSTS = frozenset({"instagram.com", "www.instagram.com"})


@dataclass(frozen=True)
class UrlAnalysis:
    content_type: ContentType
    platform: Platform
    is_valid: bool
    url: str


def analyze_instagram_url(url: str) -> UrlAnalysis:
    """Classify an Instagram URL. Never raises."""
    try:
        parsed = urlparse(url)
        hostname = (parsed.hostname or "").lower()
    except ValueError:
        return UrlAnalysis("unknown", "unknown", False, url)

    if parsed.scheme not in ("http", "https") or hostname not in INSTAGRAM_HOSTS:
        return UrlAnalysis("unknown", "unknown", False, url)

    path = parsed.path.lower()
    if "/reel/" in path or "/reels/" in path:
        return UrlAnalysis("reel", "instagram", True, url)
    if "/p/" in path:
        return UrlAnalysis("post", "instagram", True, url)
    return UrlAnalysis("unknown", "instagram", False, url)


def is_instagram_reel(url: str) -> bool:
    analysis = analyze_instagram_url(url)
    return analysis.is_valid and analysis.content_type == "reel"


def is_instagram_post(url: str) -> bool:
    analysis = analyze_instagram_url(url)
    return analysis.is_valid and analysis.content_type == "post"
