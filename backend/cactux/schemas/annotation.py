"""
Cactux Topo Backend — Pydantic Request/Response Schemas
=========================================================

What:  The JSON contract of the image endpoints, the record listing and
       the health check.
Why:   Strict input validation, automatic serialization, and OpenAPI docs.
How:   Request bodies use the camelCase names the browser client sends
       (imageData, routeId, ...) through aliases; Python code uses
       snake_case. `populate_by_name` lets tests build them either way.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

TableType = Literal["route", "boulder"]


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class OptimizeLineRequest(BaseModel):
    """
    Body of POST /optimize-line.

    The capture is resized to originalWidth × originalHeight when both are
    given. A lone dimension scales the other by the capture's aspect ratio;
    with neither, the capture's own size is kept.
    """
    model_config = ConfigDict(populate_by_name=True)

    image_data: str = Field(
        alias="imageData",
        description="Base64 data URL of the rendered canvas (photo + line)",
    )
    route_id: str = Field(alias="routeId", description="Id of the route or boulder record")
    original_width: Optional[int] = Field(default=None, alias="originalWidth")
    original_height: Optional[int] = Field(default=None, alias="originalHeight")
    table_type: TableType = Field(default="route", alias="tableType")


class UploadImageRequest(BaseModel):
    """
    Body of POST /upload-image.

    hasLine=true stores into the line folder and updates `image_line`;
    hasLine=false stores into the base folder and updates `image`.
    """
    model_config = ConfigDict(populate_by_name=True)

    image_data: str = Field(alias="imageData", description="Base64 data URL of the image")
    route_id: str = Field(alias="routeId", description="Id of the route or boulder record")
    original_width: int = Field(alias="originalWidth")
    original_height: int = Field(alias="originalHeight")
    table_type: TableType = Field(default="route", alias="tableType")
    has_line: bool = Field(default=False, alias="hasLine")


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class SaveResponse(BaseModel):
    """
    Success body of both image endpoints.

    `url` is the stable public URL of the blob. Clients add a cache-busting
    query before displaying it, since the same URL is reused on every save.
    """
    success: bool = Field(default=True)
    url: str = Field(description="Public URL of the stored WebP image")
    message: Optional[str] = Field(default=None)
    width: Optional[int] = Field(default=None, description="Stored image width")
    height: Optional[int] = Field(default=None, description="Stored image height")
    size: Optional[int] = Field(default=None, description="Stored image size in bytes")


class RecordListItem(BaseModel):
    id: str
    name: str
    grade: Optional[str] = None
    image: Optional[str] = None
    image_line: Optional[str] = None


class RecordListResponse(BaseModel):
    table: TableType
    records: List[RecordListItem]


class ErrorResponse(BaseModel):
    """
    Uniform failure body.

    `error` is the human-readable message; `code` is machine-readable;
    `request_id` correlates with server logs.
    """
    error: str = Field(description="Human-readable error description")
    code: str = Field(default="server_error", description="Machine-readable error code")
    details: Optional[dict] = Field(default=None)
    request_id: Optional[str] = Field(default=None)


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str
    database: str = Field(description="connected | disconnected")
    storage: str = Field(description="writable | unavailable")
    uptime_seconds: float
    checked_at: Optional[datetime] = None
