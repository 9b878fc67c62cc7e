"""Per-client rate limiting for ingestion requests.

Fixed window per client IP, applied only to request paths containing
``/ingest``. Status, result and listing endpoints are never limited.
Counters live in process memory and reset when the window expires.
"""

import math
import time
from collections.abc import Callable
from dataclasses import dataclass

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from app.config import get_rate_limit_max_requests, get_rate_limit_window_seconds
from app.utils.logging import get_logger

log = get_logger(__name__)

LIMITED_PATH_MARKER = "/ingest"


@dataclass
class _Window:
    count: int
    reset_at: float


class FixedWindowRateLimiter:
    """Counts hits per key inside fixed windows.

    Attributes:
        max_requests: Allowed hits per window
        window_seconds: Window length
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[str, _Window] = {}

    def hit(self, key: str) -> int | None:
        """Record a hit.

        Returns:
            None if allowed, else seconds until the window resets
        """
        now = self._clock()
        window = self._windows.get(key)
        if window is None or now > window.reset_at:
            window = _Window(count=0, reset_at=now + self.window_seconds)
            self._windows[key] = window

        window.count += 1
        if window.count > self.max_requests:
            return max(1, math.ceil(window.reset_at - now))
        return None


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, limiter: FixedWindowRateLimiter | None = None):
        super().__init__(app)
        self.limiter = limiter or FixedWindowRateLimiter(
            get_rate_limit_max_requests(), get_rate_limit_window_seconds()
        )

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if LIMITED_PATH_MARKER not in request.url.path:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        retry_after = self.limiter.hit(client_ip)
        if retry_after is not None:
            log.warning("rate_limit_exceeded", client_ip=client_ip, retry_after=retry_after)
            return JSONResponse(
                status_code=429,
                content={
                    "error": "Too many requests",
                    "message": "Rate limit exceeded. Please try again later.",
                    "retryAfter": retry_after,
                },
                headers={"Retry-After": str(retry_after)},
            )
        return await call_next(request)
