"""
API - Rate Limiting.

Fixed-window request counter per client address, applied to
every /api/ path except the health routes.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from api.schemas import failure
from core.config import RateLimitConfig
from core.exceptions import RateLimitedError


logger = logging.getLogger(__name__)

EXEMPT_PATHS = frozenset({"/", "/api/v1", "/api/v1/"})


@dataclass
class _Window:
    count: int
    reset_at: float


class RateLimiter:
    """Counts requests per key in fixed windows."""

    def __init__(self, config: RateLimitConfig, now: Optional[Callable[[], float]] = None):
        self._config = config
        self._now = now or time.monotonic
        self._windows: Dict[str, _Window] = {}

    def hit(self, key: str) -> bool:
        """Record one request; False once the window's limit is used up."""
        now = self._now()
        window = self._windows.get(key)
        if window is None or now >= window.reset_at:
            self._prune(now)
            window = _Window(count=0, reset_at=now + self._config.window_seconds)
            self._windows[key] = window
        window.count += 1
        return window.count <= self._config.max_requests

    def _prune(self, now: float) -> None:
        expired = [key for key, window in self._windows.items() if now >= window.reset_at]
        for key in expired:
            del self._windows[key]


class RateLimitMiddleware(BaseHTTPMiddleware):

    def __init__(self, app, limiter: RateLimiter):
        super().__init__(app)
        self._limiter = limiter

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if path.startswith("/api/") and path not in EXEMPT_PATHS:
            client = request.client.host if request.client else "unknown"
            if not self._limiter.hit(client):
                error = RateLimitedError()
                logger.warning(f"Rate limit exceeded for {client} on {path}")
                return JSONResponse(status_code=error.status_code, content=failure(error.message, error.status_code))
        return await call_next(request)
