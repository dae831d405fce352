"""
Cactux Topo Backend — Rate Limiting Middleware
================================================

What:  Per-IP sliding window limit on the image save endpoints.
Why:   Each save decodes and re-encodes a full-resolution photo, possibly
       many times in the size-budget loop. A runaway client (e.g. a stuck
       save button) should not be able to pin the worker threads.
How:   A deque of request timestamps per IP; timestamps older than the
       window are dropped before counting.

Single-process only: counts live in memory.
"""

import logging
import time
from collections import defaultdict, deque
from typing import Deque, Dict

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from cactux.config import settings

logger = logging.getLogger(__name__)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Sliding window limiter applied to POSTs on LIMITED_PATHS."""

    LIMITED_PATHS = {"/optimize-line", "/upload-image"}

    def __init__(self, app, max_requests: int = None, window_seconds: int = None, **kwargs):
        super().__init__(app, **kwargs)
        self.max_requests = max_requests or settings.rate_limit_requests
        self.window_seconds = window_seconds or settings.rate_limit_window
        self._requests: Dict[str, Deque[float]] = defaultdict(deque)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.method != "POST" or request.url.path not in self.LIMITED_PATHS:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        now = time.monotonic()
        window = self._requests[client_ip]
        while window and window[0] <= now - self.window_seconds:
            window.popleft()

        if len(window) >= self.max_requests:
            retry_after = int(window[0] + self.window_seconds - now) + 1
            logger.warning(
                "Rate limit exceeded for IP %s: %d requests in %ds window",
                client_ip, len(window), self.window_seconds,
            )
            return JSONResponse(
                status_code=429,
                content={
                    "error": (
                        f"Too many requests. Please wait {retry_after} seconds "
                        "before retrying."
                    ),
                    "code": "rate_limit_exceeded",
                    "details": {"retry_after": retry_after},
                },
                headers={"Retry-After": str(retry_after)},
            )

        window.append(now)
        self._prune_idle(now)
        return await call_next(request)

    def _prune_idle(self, now: float) -> None:
        """Drop IPs whose newest request has left the window."""
        idle = [
            ip for ip, stamps in self._requests.items()
            if not stamps or stamps[-1] <= now - self.window_seconds
        ]
        for ip in idle:
            del self._requests[ip]
