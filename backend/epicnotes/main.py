"""
Epic Notes Backend - FastAPI Application Factory
==================================================

What:  Creates and configures the FastAPI application instance.
How:   Factory pattern: create_app() returns a configured FastAPI instance
       bound to one Database handle.
Who:   uvicorn (`uvicorn epicnotes.main:app`) and the test suite, which
       passes its own in-memory Database.

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │                   FastAPI App                       │
    │                                                     │
    │  Middleware Chain:                                  │
    │  ┌──────────┐ ┌──────────┐ ┌──────┐ ┌──────┐        │
    │  │  Req ID  │→│ Logging  │→│ GZip │→│ CORS │        │
    │  └──────────┘ └──────────┘ └──────┘ └──────┘        │
    │                                                     │
    │  Routes:                                            │
    │  /users  /users/{u}/notes  /resources  /signup      │
    │  /health                                            │
    │                                                     │
    │  app.state.database: Database (engine + sessions)   │
    └─────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  configure logging
    Shutdown: dispose the database engine (close pooled connections)
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from epicnotes import __version__
from epicnotes.config import settings
from epicnotes.database import Database
from epicnotes.exceptions import (
    BadRequestError,
    CSRFError,
    EpicNotesError,
    MalformedFormError,
    NotFoundError,
    PayloadTooLargeError,
    PersistenceError,
    SubmissionValidationError,
)
from epicnotes.middleware.logging import RequestLoggingMiddleware
from epicnotes.middleware.request_id import RequestIDMiddleware, request_id_var
from epicnotes.routes import auth, health, notes, resources, users

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the whole application.

    Format: 2024-01-15T12:00:00 [INFO] epicnotes.services.note_service: ...
    Called once during startup, before anything else logs.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Our access log replaces uvicorn's; SQL echo only when DEBUG is asked for
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("multipart").setLevel(logging.WARNING)
    logging.getLogger("python_multipart").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("=" * 60)
    logger.info("Epic Notes Backend %s starting up...", __version__)
    logger.info(
        "Upload limit: %gMB per part, %d images per note",
        settings.max_upload_size_mb,
        settings.max_images_per_note,
    )
    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("Epic Notes Backend shutting down...")
    await app.state.database.dispose()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def register_exception_handlers(app: FastAPI) -> None:
    """
    Map application exceptions to JSON responses.

    Handler hierarchy (most specific class wins):
        SubmissionValidationError → 400 with the full field error map
        PayloadTooLargeError      → 400
        MalformedFormError        → 400
        BadRequestError           → 400
        CSRFError                 → 403
        NotFoundError             → 404
        PersistenceError          → 500 (generic message)
        EpicNotesError (base)     → 500
        Exception (fallback)      → 500

    Server-side failures never expose internal details in the body; they
    are logged with the request id instead.
    """

    @app.exception_handler(SubmissionValidationError)
    async def handle_submission_validation(request: Request, exc: SubmissionValidationError):
        """Every failing field with every message, keyed by the client's field name."""
        rid = request_id_var.get("")
        logger.info("[%s] Submission rejected: %s", rid, exc.message)
        return JSONResponse(
            status_code=400,
            content={
                "status": "error",
                "error": "validation_error",
                "message": exc.message,
                "errors": exc.errors,
                "request_id": rid,
            },
        )

    @app.exception_handler(PayloadTooLargeError)
    async def handle_payload_too_large(request: Request, exc: PayloadTooLargeError):
        rid = request_id_var.get("")
        logger.warning("[%s] Payload too large: %s", rid, exc.message)
        return JSONResponse(
            status_code=400,
            content={
                "error": "payload_too_large",
                "message": exc.message,
                "details": {"field": exc.field, "max_part_size": exc.max_part_size},
                "request_id": rid,
            },
        )

    @app.exception_handler(MalformedFormError)
    async def handle_malformed_form(request: Request, exc: MalformedFormError):
        rid = request_id_var.get("")
        logger.warning("[%s] Malformed form: %s | Context: %s", rid, exc.message, exc.context)
        return JSONResponse(
            status_code=400,
            content={
                "error": "malformed_form",
                "message": exc.message,
                "request_id": rid,
            },
        )

    @app.exception_handler(BadRequestError)
    async def handle_bad_request(request: Request, exc: BadRequestError):
        rid = request_id_var.get("")
        logger.warning("[%s] Bad request: %s", rid, exc.message)
        return JSONResponse(
            status_code=400,
            content={
                "status": "error",
                "error": "bad_request",
                "message": exc.message,
                "request_id": rid,
            },
        )

    @app.exception_handler(CSRFError)
    async def handle_csrf(request: Request, exc: CSRFError):
        rid = request_id_var.get("")
        logger.warning("[%s] CSRF check failed on %s", rid, request.url.path)
        return JSONResponse(
            status_code=403,
            content={
                "error": "csrf_failed",
                "message": exc.message,
                "request_id": rid,
            },
        )

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        rid = request_id_var.get("")
        return JSONResponse(
            status_code=404,
            content={
                "error": "not_found",
                "message": exc.message,
                "request_id": rid,
            },
        )

    @app.exception_handler(PersistenceError)
    async def handle_persistence_error(request: Request, exc: PersistenceError):
        """Database error: generic message to the user, details logged server-side."""
        rid = request_id_var.get("")
        logger.error("[%s] Persistence error: %s | Context: %s", rid, exc.message, exc.context)
        return JSONResponse(
            status_code=500,
            content={
                "error": "server_error",
                "message": "An internal error occurred. Please try again later.",
                "request_id": rid,
            },
        )

    @app.exception_handler(EpicNotesError)
    async def handle_app_error(request: Request, exc: EpicNotesError):
        rid = request_id_var.get("")
        logger.error("[%s] Application error: %s | Context: %s", rid, exc.message, exc.context)
        return JSONResponse(
            status_code=500,
            content={
                "error": "server_error",
                "message": "An internal error occurred. Please try again later.",
                "request_id": rid,
            },
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        """Catch-all: stack trace goes to the log only, never into the response."""
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred. Please try again or contact support.",
                "request_id": rid,
            },
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(database: Optional[Database] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        database: Datastore handle for this app. Defaults to one built from
                  `settings.database_url`; tests pass an in-memory SQLite one.
    """
    app = FastAPI(
        title="Epic Notes API",
        description=(
            "Notes with images: user search, note viewing and the note editor "
            "(multipart submissions with per-image add, replace, relabel and remove)."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.database = database or Database()

    # Middleware executes in REVERSE order of addition: last added runs first
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(users.router)
    app.include_router(notes.router)
    app.include_router(resources.router)
    app.include_router(auth.router)
    app.include_router(health.router)

    return app


# uvicorn expects `epicnotes.main:app` to be importable
app = create_app()
