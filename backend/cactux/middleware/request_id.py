"""
Cactux Topo Backend — Request ID Middleware
=============================================

What:  Assigns every request a short correlation id and echoes it back in
       the X-Request-ID response header.
Why:   A failed save shows the user a toast; the id in the error body lets
       the matching server log lines be found.
How:   Reuses a client-supplied X-Request-ID, otherwise generates one, and
       stores it in a ContextVar read by the access log and error handlers.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local: concurrent requests on one thread each see their own id
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

MAX_CLIENT_ID_LENGTH = 64


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Sets request_id_var and request.state.request_id for each request."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        supplied = request.headers.get("X-Request-ID", "").strip()
        rid = supplied[:MAX_CLIENT_ID_LENGTH] if supplied else uuid.uuid4().hex[:8]

        token = request_id_var.set(rid)
        request.state.request_id = rid
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)

        response.headers["X-Request-ID"] = rid
        return response
