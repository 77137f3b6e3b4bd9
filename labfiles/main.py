"""FastAPI application entry point."""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import yaml
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError
from starlette.middleware.trustedhost import TrustedHostMiddleware

from labfiles import __version__
from labfiles.api.health import router as health_router
from labfiles.api.notes import router as notes_router
from labfiles.api.records import router as records_router
from labfiles.api.saw import router as saw_router
from labfiles.api.sync import router as sync_router
from labfiles.config import Settings
from labfiles.database import create_engine, init_schema
from labfiles.exceptions import DirectoryNotFoundError, StoreOperationError
from labfiles.filesystem.notes_manager import NotesManager

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Awaitable, Callable

logger = logging.getLogger(__name__)


def _configure_logging(debug: bool) -> None:
    """Configure application logging."""
    level = logging.DEBUG if debug else logging.INFO
    fmt = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
    logging.basicConfig(
        level=level,
        format=fmt,
        stream=sys.stdout,
        force=True,
    )
    # Quiet noisy libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if debug else logging.WARNING)


async def init_app_state(app: FastAPI) -> None:
    """Open the database and attach shared services to ``app.state``."""
    settings: Settings = app.state.settings

    try:
        engine, session_factory = create_engine(settings)
        app.state.engine = engine
        app.state.session_factory = session_factory
    except Exception as exc:
        logger.critical(
            "Failed to initialize database: %s. Check database path and permissions.", exc
        )
        raise

    try:
        await init_schema(engine)
    except Exception as exc:
        logger.critical("Failed to create database schema: %s.", exc)
        raise

    if not settings.raw_data_dir.is_dir():
        # Not fatal: sync reports the missing directory per request.
        logger.warning("Raw data directory %s does not exist", settings.raw_data_dir)

    app.state.notes_manager = NotesManager(notes_dir=settings.notes_dir)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Application lifespan: startup and shutdown."""
    settings: Settings = app.state.settings
    settings.validate_runtime()
    _configure_logging(settings.debug)
    logger.info("Starting Labfiles (debug=%s)", settings.debug)
    logger.info("Watching %s as %s", settings.raw_data_dir, settings.watched_prefix)

    await init_app_state(app)

    yield

    try:
        await app.state.engine.dispose()
    except Exception as exc:
        logger.error("Error during engine disposal: %s", exc, exc_info=True)

    logger.info("Labfiles stopped")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    if settings is None:
        settings = Settings()

    docs_enabled = settings.debug or settings.expose_docs

    app = FastAPI(
        title="Labfiles",
        description="Lab file records, raw data sync, and notes",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url="/openapi.json" if docs_enabled else None,
    )
    app.state.settings = settings

    app.add_middleware(GZipMiddleware, minimum_size=500)

    cors_origins = (
        settings.cors_origins
        if settings.cors_origins
        else (["http://localhost:3000", "http://localhost:8000"] if settings.debug else [])
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Range", "Accept-Ranges"],
    )

    if settings.trusted_hosts:
        app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.trusted_hosts)

    app.include_router(health_router)
    app.include_router(records_router)
    app.include_router(sync_router)
    app.include_router(saw_router)
    app.include_router(notes_router)

    _register_exception_handlers(app)
    return app


# Domain and library errors whose message must not reach the client verbatim.
_GENERIC_ERRORS: tuple[tuple[type[Exception], int, str], ...] = (
    (DirectoryNotFoundError, 404, "Raw data directory does not exist"),
    (StoreOperationError, 500, "Database operation failed"),
    (yaml.YAMLError, 422, "Invalid content format"),
    (UnicodeDecodeError, 422, "Invalid content encoding"),
    (OperationalError, 503, "Database temporarily unavailable"),
)


def _generic_handler(
    status_code: int, detail: str
) -> Callable[[Request, Exception], Awaitable[JSONResponse]]:
    async def handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "%s in %s %s: %s",
            type(exc).__name__,
            request.method,
            request.url.path,
            exc,
            exc_info=exc if status_code >= 500 else None,
        )
        return JSONResponse(status_code=status_code, content={"detail": detail})

    return handler


def _register_exception_handlers(app: FastAPI) -> None:
    """Map unhandled exceptions to JSON error responses."""
    for exc_type, status_code, detail in _GENERIC_ERRORS:
        app.add_exception_handler(exc_type, _generic_handler(status_code, detail))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = []
        for err in exc.errors():
            loc = err.get("loc", ())
            field = str(loc[-1]) if loc else "unknown"
            errors.append({"field": field, "message": err.get("msg", "Invalid value")})
        logger.warning(
            "RequestValidationError in %s %s: %s",
            request.method,
            request.url.path,
            errors,
        )
        return JSONResponse(status_code=422, content={"detail": errors})

    @app.exception_handler(OSError)
    async def os_error_handler(request: Request, exc: OSError) -> JSONResponse:
        if isinstance(exc, (ConnectionError, TimeoutError)):
            raise exc
        logger.error("OSError in %s %s: %s", request.method, request.url.path, exc, exc_info=exc)
        return JSONResponse(status_code=500, content={"detail": "Storage operation failed"})

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
        logger.warning("ValueError in %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=422, content={"detail": str(exc) or "Invalid value"})


app = create_app()


def cli_entry() -> None:
    """CLI entry point for running the server."""
    import uvicorn

    settings: Settings = app.state.settings
    uvicorn.run(
        "labfiles.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
