"""
Cactux Topo Backend — FastAPI Application Factory
===================================================

What:  Creates and configures the FastAPI application instance.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   Called by uvicorn to start the server (uvicorn cactux.main:app).

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                      FastAPI App                         │
    │                                                          │
    │  Middleware: Rate Limit → Request ID → Logging → GZip    │
    │                                                          │
    │  Routes:                                                 │
    │   POST /optimize-line   POST /upload-image               │
    │   GET  /records/{table} GET  /health                     │
    │   GET  /storage/...     (public blob URLs)               │
    │                                                          │
    │  Exception Handlers → {"error", "code", "request_id"}    │
    │   Validation→400 │ NotFound→404 │ Processing/Storage→500 │
    └──────────────────────────────────────────────────────────┘

Startup:
    1. Configure logging
    2. Validate pipeline settings
Shutdown:
    1. Dispose database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from cactux import __version__
from cactux.config import settings
from cactux.database import dispose_engine
from cactux.exceptions import (
    CactuxError,
    ImageProcessingError,
    NotFoundError,
    RecordUpdateError,
    StorageError,
    ValidationError,
)
from cactux.middleware.logging import RequestLoggingMiddleware
from cactux.middleware.rate_limit import RateLimitMiddleware
from cactux.middleware.request_id import RequestIDMiddleware, request_id_var
from cactux.routes import health, images, records
from cactux.services.blob_store import LocalBlobStore

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the entire application.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    Called once during app startup, before anything else logs.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Third-party libraries that log every operation
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("=" * 60)
    logger.info("Cactux Topo backend %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        logger.error("Fix the configuration and restart the server.")

    logger.info("Blob storage: %s (bucket=%s)", app.state.blob_store.root, settings.storage_bucket)
    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("Cactux Topo backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_body(message: str, code: str, details=None) -> dict:
    body = {"error": message, "code": code, "request_id": request_id_var.get("")}
    if details:
        body["details"] = details
    return body


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exception types to the uniform failure body.

    Handler hierarchy:
        ValidationError / RequestValidationError → 400
        NotFoundError                            → 404
        ImageProcessingError                     → 500 (generic message)
        StorageError                             → 500
        RecordUpdateError                        → 500
        CactuxError (base)                       → 500
        Exception (fallback)                     → 500

    Context dicts (decoder errors, paths, SQL error types) are logged and
    never returned.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        details = {"field": exc.field} if exc.field else None
        return JSONResponse(
            status_code=400,
            content=_error_body(exc.message, "validation_error", details),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        fields = [".".join(str(p) for p in err.get("loc", ())[1:]) for err in exc.errors()]
        fields = [f for f in fields if f]
        logger.warning("[%s] Invalid request body: %s", request_id_var.get(""), fields)
        message = "Invalid request"
        if fields:
            message = f"Invalid or missing field(s): {', '.join(fields)}"
        return JSONResponse(
            status_code=400,
            content=_error_body(message, "validation_error", {"fields": fields}),
        )

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        logger.warning("[%s] Not found: %s", request_id_var.get(""), exc.message)
        return JSONResponse(status_code=404, content=_error_body(exc.message, "not_found"))

    @app.exception_handler(ImageProcessingError)
    async def handle_processing_error(request: Request, exc: ImageProcessingError):
        logger.error(
            "[%s] Image processing error: %s | Context: %s",
            request_id_var.get(""), exc.message, exc.context,
        )
        return JSONResponse(
            status_code=500,
            content=_error_body("Failed to process image", "processing_error"),
        )

    @app.exception_handler(StorageError)
    async def handle_storage_error(request: Request, exc: StorageError):
        logger.error(
            "[%s] Storage error: %s | Context: %s",
            request_id_var.get(""), exc.message, exc.context,
        )
        return JSONResponse(status_code=500, content=_error_body(exc.message, "storage_error"))

    @app.exception_handler(RecordUpdateError)
    async def handle_record_update_error(request: Request, exc: RecordUpdateError):
        logger.error(
            "[%s] Record update error: %s | Context: %s",
            request_id_var.get(""), exc.message, exc.context,
        )
        return JSONResponse(
            status_code=500,
            content=_error_body(exc.message, "record_update_error"),
        )

    @app.exception_handler(CactuxError)
    async def handle_app_error(request: Request, exc: CactuxError):
        logger.error(
            "[%s] Application error: %s | Context: %s",
            request_id_var.get(""), exc.message, exc.context,
        )
        return JSONResponse(status_code=500, content=_error_body(exc.message, "server_error"))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error(
            "[%s] Unexpected error: %s", request_id_var.get(""), exc, exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content=_error_body(
                "An unexpected error occurred. Please try again.",
                "internal_server_error",
            ),
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    The blob store is constructed here, once, from settings and kept on
    app.state; request handlers get it through cactux.dependencies.
    """
    app = FastAPI(
        title="Cactux Topo API",
        description=(
            "Saves climbing route photos with hand-drawn route lines: resizes, "
            "compresses to WebP and stores them, then updates the route or boulder record."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    blob_store = LocalBlobStore()
    app.state.blob_store = blob_store

    # Middleware executes in REVERSE order of addition:
    # RateLimit → RequestID → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RateLimitMiddleware)

    register_exception_handlers(app)

    app.include_router(images.router)
    app.include_router(records.router)
    app.include_router(health.router)

    # Public blob URLs: {public_base_url}/{bucket}/{category}/{id}.webp
    app.mount("/storage", StaticFiles(directory=str(blob_store.root)), name="storage")

    return app


app = create_app()
