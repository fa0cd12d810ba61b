"""
NoteShare Backend — FastAPI Application Factory
=================================================

What:  Creates and configures the FastAPI application instance.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   Called by uvicorn to start the server (uvicorn noteshare.main:app).

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                       FastAPI App                        │
    │                                                          │
    │  Middleware Chain:                                       │
    │  ┌──────────┐ ┌──────────┐ ┌──────┐ ┌──────┐             │
    │  │  Req ID  │→│ Logging  │→│ GZip │→│ CORS │             │
    │  └──────────┘ └──────────┘ └──────┘ └──────┘             │
    │                                                          │
    │  Routes:                                                 │
    │  /api/notes  (lifecycle, likes, comments, downloads)     │
    │  /api/archives │ /api/files │ /health                    │
    │                                                          │
    │  Exception Handlers:                                     │
    │  NoteShareError → kind/status │ 422 → 400 │ other → 500  │
    └──────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging, configuration check, blob store initialization
    Shutdown: dispose the database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from noteshare import __version__
from noteshare.config import settings
from noteshare.database import dispose_engine
from noteshare.exceptions import NoteShareError
from noteshare.middleware.logging import RequestLoggingMiddleware
from noteshare.middleware.request_id import RequestIDMiddleware, request_id_var
from noteshare.routes import archive, engagement, health, notes
from noteshare.schemas.note import ErrorResponse
from noteshare.services.blob_store import get_blob_store

logger = logging.getLogger(__name__)

# Kinds whose context is safe and useful to return to the client
PUBLIC_DETAIL_KINDS = frozenset({"validation_error", "not_found", "authorization_error"})


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure root logging once, at startup.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Per-request noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("hpack").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup:
        1. Setup logging
        2. Validate backend-specific configuration
        3. Build the blob store (creates the storage root for the local backend)

    Shutdown:
        1. Dispose database engine (close all pooled connections)
    """
    setup_logging()
    logger.info("=" * 60)
    logger.info("NoteShare Backend %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
        store = get_blob_store()
        logger.info("Blob backend: %s", store.name)
    except ValueError as e:
        # Keep serving: /health still answers and requests fail with 5xx
        logger.error("Configuration error: %s", str(e))
        logger.error("Fix the configuration and restart the server.")

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("NoteShare Backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _request_id(request: Request) -> str:
    return request_id_var.get("") or getattr(request.state, "request_id", "")


def _error_response(
    status_code: int,
    kind: str,
    message: str,
    request: Request,
    details: dict | None = None,
) -> JSONResponse:
    body = ErrorResponse(
        error=kind,
        message=message,
        details=details or None,
        request_id=_request_id(request),
    )
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exceptions to the failure envelope.

    Handler hierarchy:
        NoteShareError (and subclasses) → exc.status_code / exc.kind
        RequestValidationError          → 400 validation_error
        Exception (fallback)            → 500 unknown_error

    Context of server-side kinds (upstream storage, unknown) is logged and
    never returned.
    """

    @app.exception_handler(NoteShareError)
    async def handle_noteshare_error(request: Request, exc: NoteShareError):
        rid = _request_id(request)
        if exc.status_code >= 500:
            logger.error("[%s] %s: %s | Context: %s", rid, exc.kind, exc.message, exc.context)
        else:
            logger.warning("[%s] %s: %s", rid, exc.kind, exc.message)
        details = exc.context if exc.kind in PUBLIC_DETAIL_KINDS else None
        return _error_response(exc.status_code, exc.kind, exc.message, request, details)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        """FastAPI's 422 reshaped into the 400 validation envelope."""
        errors = [
            {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg", "")}
            for err in exc.errors()
        ]
        logger.warning("[%s] Request validation failed: %s", _request_id(request), errors)
        message = errors[0]["message"] if len(errors) == 1 else "Invalid request"
        return _error_response(400, "validation_error", message, request, {"errors": errors})

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        """Catch-all: stack trace logged server-side only."""
        logger.error("[%s] Unexpected error: %s", _request_id(request), str(exc), exc_info=True)
        return _error_response(
            500,
            "unknown_error",
            "An unexpected error occurred. Please try again or contact support.",
            request,
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    app = FastAPI(
        title="NoteShare API",
        description=(
            "Notes-sharing backend: upload study documents with academic metadata, "
            "search, comment, like, download and archive them."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Register Middleware ───────────────────────────────────────────────
    # Last added runs first: RequestID → Logging → GZip → CORS → routes
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Total-Count", "Content-Disposition"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(notes.router)
    app.include_router(engagement.router)
    app.include_router(archive.router)
    app.include_router(health.router)

    return app


# ── Application Instance ─────────────────────────────────────────────────
app = create_app()
