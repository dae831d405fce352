"""
Cactux Topo Backend — Request Logging Middleware
==================================================

What:  One access log line per request: method, path, status, duration,
       request id and client IP.
Why:   Save requests can take seconds (compression loop); durations make
       slow images visible.

Never logged: request bodies. They carry whole images as base64.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from cactux.middleware.request_id import request_id_var

logger = logging.getLogger("cactux.access")

# Probes and static blob reads would drown out the save requests
QUIET_PREFIXES = ("/health", "/storage/")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs status-dependent severity: 5xx ERROR, 4xx WARNING, else INFO."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path.startswith(QUIET_PREFIXES):
            return await call_next(request)

        start_time = time.perf_counter()
        client_ip = request.client.host if request.client else "unknown"
        rid = request_id_var.get("")

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] from %s",
            request.method,
            path,
            status,
            duration_ms,
            rid,
            client_ip,
            extra={
                "request_id": rid,
                "method": request.method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )
        return response
