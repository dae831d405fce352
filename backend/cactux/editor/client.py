"""
Annotation API Client
======================

Async httpx client for the topo backend, used by DrawingSession.

    save_line()     POST /optimize-line   (rendered composite → image_line)
    upload_image()  POST /upload-image    (size-budgeted base/line upload)
    list_records()  GET  /records/{table}
    fetch_image()   GET  any image URL, with a cache-busting query

Every failure is raised as SaveError or ImageLoadError carrying the
server's `error` message, ready to show in a toast.
"""

import logging
import time
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import httpx

from cactux.config import settings
from cactux.editor.errors import ImageLoadError, SaveError

logger = logging.getLogger(__name__)

CACHE_BUST_PARAM = "t"


def with_cache_buster(url: str, timestamp_ms: Optional[int] = None) -> str:
    """
    Append (or replace) `?t=<ms>` so a re-used blob URL is fetched fresh.

    Blob URLs stay the same across saves; only this query changes.
    """
    stamp = timestamp_ms if timestamp_ms is not None else int(time.time() * 1000)
    parts = urlsplit(url)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != CACHE_BUST_PARAM]
    query.append((CACHE_BUST_PARAM, str(stamp)))
    return urlunsplit(parts._replace(query=urlencode(query)))


class AnnotationClient:
    """
    Thin wrapper over httpx.AsyncClient.

    Args:
        base_url: Backend root, e.g. "http://localhost:8000".
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (tests pass an ASGITransport).
    """

    def __init__(
        self,
        base_url: str,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._http = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout if timeout is not None else settings.client_timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "AnnotationClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _post_image(self, endpoint: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = await self._http.post(endpoint, json=payload)
        except httpx.HTTPError as e:
            logger.warning("POST %s failed: %s", endpoint, e)
            raise SaveError(
                message="Could not reach the server",
                context={"endpoint": endpoint, "error": str(e)},
            )

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if response.is_error or not body.get("success"):
            message = body.get("error") or "Failed to save line"
            logger.warning("POST %s returned %d: %s", endpoint, response.status_code, message)
            raise SaveError(
                message=message,
                status_code=response.status_code,
                context={"endpoint": endpoint, "request_id": body.get("request_id")},
            )

        url = body.get("url")
        if not isinstance(url, str) or not url:
            logger.warning("POST %s succeeded without a url: %r", endpoint, body)
            raise SaveError(
                message="Server response did not include the image URL",
                status_code=response.status_code,
                context={"endpoint": endpoint},
            )
        return body

    async def save_line(
        self,
        record_id: str,
        data_url: str,
        original_width: Optional[int] = None,
        original_height: Optional[int] = None,
        table_type: str = "route",
    ) -> str:
        """Send the rendered composite; returns the stored image's public URL."""
        payload: Dict[str, Any] = {
            "imageData": data_url,
            "routeId": record_id,
            "tableType": table_type,
        }
        if original_width is not None and original_height is not None:
            payload["originalWidth"] = original_width
            payload["originalHeight"] = original_height
        body = await self._post_image("/optimize-line", payload)
        return body["url"]

    async def upload_image(
        self,
        record_id: str,
        data_url: str,
        original_width: int,
        original_height: int,
        table_type: str = "route",
        has_line: bool = False,
    ) -> str:
        body = await self._post_image(
            "/upload-image",
            {
                "imageData": data_url,
                "routeId": record_id,
                "originalWidth": original_width,
                "originalHeight": original_height,
                "tableType": table_type,
                "hasLine": has_line,
            },
        )
        return body["url"]

    async def list_records(self, table_type: str = "route") -> List[Dict[str, Any]]:
        try:
            response = await self._http.get(f"/records/{table_type}")
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise SaveError(
                message=f"Error loading {table_type}s",
                context={"error": str(e)},
            )
        return response.json()["records"]

    async def fetch_image(self, url: str, cache_bust: bool = True) -> bytes:
        target = with_cache_buster(url) if cache_bust else url
        try:
            response = await self._http.get(target)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Image load failed for %s: %s", url, e)
            raise ImageLoadError(url, reason=str(e))
        return response.content
