"""Talko AI API: FastAPI application entry point."""

import asyncio
import signal
import sys
import uuid
from contextlib import asynccontextmanager

# CRITICAL ORDER: logging MUST be configured before all other talko imports
# to avoid the structlog cache pitfall (structlog caches the processor chain on first use).
from talko.core.logging import configure_logging
from talko.core.config import get_settings as _get_settings_early

configure_logging(_get_settings_early())

import structlog

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

from talko.api.routes import api_router
from talko.core.config import get_settings, validate_required_settings
from talko.core.exceptions import ConfigurationError, TalkoError
from talko.core.healthcheck import perform_health_check
from talko.db import close_db, close_redis, init_db, init_redis
from talko.middleware.correlation import get_correlation_id, setup_correlation_middleware
from talko.services.storage import ensure_upload_dirs, uploads_root

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    # SIGTERM handler flips this so /api/health returns 503 while draining
    app.state.shutting_down = False

    def handle_sigterm(signum, frame):
        app.state.shutting_down = True
        logger.info("sigterm_received", action="health_check_503_draining_connections")

    signal.signal(signal.SIGTERM, handle_sigterm)

    settings = get_settings()
    logger.info("startup_begin", app_name=settings.app_name, environment=settings.environment)

    await init_db()
    logger.info("db_initialized")

    await init_redis()
    logger.info("redis_initialized")

    ensure_upload_dirs()
    logger.info("upload_dirs_ready", root=str(uploads_root()))

    yield

    logger.info("shutdown_begin")
    await close_redis()
    await close_db()
    logger.info("shutdown_complete")


def _request_context(request: Request) -> dict:
    return {
        "correlation_id": get_correlation_id(),
        "path": request.url.path,
        "method": request.method,
        "user_id": getattr(request.state, "user_id", None),
    }


async def talko_exception_handler(request: Request, exc: TalkoError) -> JSONResponse:
    """Render a TalkoError as the JSON envelope with its own status code."""
    debug_id = str(uuid.uuid4())
    log = logger.error if exc.status_code >= 500 else logger.info
    log("talko_error", status_code=exc.status_code, debug_id=debug_id, error=exc.message, **_request_context(request))

    payload = exc.to_payload()
    if exc.status_code >= 500 and get_settings().is_production:
        payload["message"] = exc.error
    payload["debug_id"] = debug_id
    return JSONResponse(status_code=exc.status_code, content=payload, headers=exc.headers)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Global exception handler for HTTPException (including unmatched routes) with debug_id tracking."""
    debug_id = str(uuid.uuid4())
    logger.error(
        "http_exception",
        status_code=exc.status_code,
        debug_id=debug_id,
        detail=exc.detail,
        **_request_context(request),
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": str(exc.detail), "message": str(exc.detail), "debug_id": debug_id},
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies are 400s carrying the first validation message."""
    errors = exc.errors()
    message = errors[0]["msg"] if errors else "Invalid request"
    logger.info("request_validation_failed", errors=len(errors), **_request_context(request))
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": "Validation error", "message": message},
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler for unhandled errors with debug_id tracking.

    Logs full exception with traceback, returns a 500 envelope. The error text is
    included outside production only.
    """
    debug_id = str(uuid.uuid4())
    logger.error(
        "unhandled_exception",
        debug_id=debug_id,
        error=str(exc),
        error_type=type(exc).__name__,
        exc_info=True,
        **_request_context(request),
    )
    content = {"success": False, "error": "Internal server error", "message": "Internal server error"}
    if not get_settings().is_production:
        content["message"] = str(exc)
    content["debug_id"] = debug_id
    return JSONResponse(status_code=500, content=content)


def create_app(lifespan_handler=lifespan) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Talko AI: chat, speech, images, documents and NLP behind an anonymous quota",
        version="1.0.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan_handler,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url, "http://localhost:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.session_secret,
        max_age=settings.session_max_age_seconds,
        https_only=settings.is_production,
    )

    # Correlation ID middleware (outermost, runs first on incoming requests)
    setup_correlation_middleware(app)

    app.exception_handler(TalkoError)(talko_exception_handler)
    app.exception_handler(StarletteHTTPException)(http_exception_handler)
    app.exception_handler(RequestValidationError)(validation_exception_handler)
    app.exception_handler(Exception)(generic_exception_handler)

    app.include_router(api_router, prefix="/api")

    # Directories are created in the lifespan
    app.mount("/uploads", StaticFiles(directory=uploads_root(), check_dir=False), name="uploads")

    return app


app = create_app()


def run() -> None:
    """Console entry point: validate settings, check health, then serve."""
    import uvicorn

    settings = get_settings()
    try:
        validate_required_settings(settings)
    except ConfigurationError as e:
        logger.error("startup_config_invalid", error=e.message)
        sys.exit(1)

    if not asyncio.run(perform_health_check()):
        logger.error("startup_aborted", reason="health_check_failed")
        sys.exit(1)

    uvicorn.run(app, host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    run()
