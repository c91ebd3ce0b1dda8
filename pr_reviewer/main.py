"""
FastAPI Application Entry Point

This module creates and configures the FastAPI application.
It wires storage, services and routes, and installs the error handlers
that turn every failure into the ``{"error": {"code", "message"}}`` envelope.

Design Decisions:
- Use an app factory so tests can inject storage and a seeded random source
- Use lifespan events for startup/shutdown (storage is closed on shutdown)
- Route handlers are sync: storage calls block, FastAPI runs them in its threadpool
"""

import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from pr_reviewer import __version__
from pr_reviewer.api import routers
from pr_reviewer.api.dependencies import get_stats_service
from pr_reviewer.api.security import StaticTokenAuth
from pr_reviewer.config import Settings, get_settings
from pr_reviewer.errors import AppError, ErrorCode, StorageError
from pr_reviewer.logging_config import get_logger, setup_logging
from pr_reviewer.models import AssignmentStatsResponse
from pr_reviewer.services import RandomSource, build_services
from pr_reviewer.storage import Storage, build_storage

logger = get_logger(__name__)


def error_response(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message}}
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Handles startup and shutdown events for the application.
    """
    settings: Settings = app.state.settings
    logger.info(
        "Starting PR Reviewer Service",
        host=settings.host,
        port=settings.port,
        storage_backend=settings.storage_backend
    )

    yield

    logger.info("Shutting down PR Reviewer Service")
    app.state.storage.close()


def create_app(
    settings: Optional[Settings] = None,
    storage: Optional[Storage] = None,
    rng: Optional[RandomSource] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Settings to use (defaults to the cached environment settings)
        storage: Storage backend (defaults to the one selected in settings)
        rng: Random source for reviewer selection (defaults to system entropy)

    Returns:
        Configured FastAPI application instance
    """
    settings = settings or get_settings()
    setup_logging(settings)

    app = FastAPI(
        title="PR Reviewer Service",
        description="Assigns and reassigns pull request reviewers within teams",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json"
    )

    storage = storage or build_storage(settings)
    app.state.settings = settings
    app.state.storage = storage
    app.state.services = build_services(storage, settings, rng=rng)
    app.state.auth = StaticTokenAuth.from_settings(settings)

    for router in routers:
        app.include_router(router)

    if settings.log_requests:
        @app.middleware("http")
        async def log_requests(request: Request, call_next):
            start = time.perf_counter()
            response = await call_next(request)
            logger.debug(
                "HTTP request",
                method=request.method,
                path=request.url.path,
                status=response.status_code,
                duration_ms=round((time.perf_counter() - start) * 1000, 2)
            )
            return response

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        """Map domain and storage errors to their stable codes."""
        if isinstance(exc, StorageError):
            logger.debug(
                "Storage error while handling request",
                path=request.url.path,
                method=request.method,
                error=exc.message
            )
            return error_response(exc.status_code, exc.code.value, "internal server error")

        return error_response(exc.status_code, exc.code.value, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request,
        exc: RequestValidationError
    ) -> JSONResponse:
        """Malformed bodies and missing parameters are BAD_REQUEST."""
        errors = exc.errors()
        logger.warning(
            "Invalid request",
            path=request.url.path,
            num_errors=len(errors)
        )
        message = "invalid request body"
        if errors:
            first = errors[0]
            location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
            message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
        return error_response(status.HTTP_400_BAD_REQUEST, ErrorCode.BAD_REQUEST.value, message)

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request,
        exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.error(
            "Unhandled exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            error_type=type(exc).__name__
        )
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            ErrorCode.INTERNAL.value,
            "internal server error"
        )

    @app.get("/health")
    async def health_check():
        """
        Health check endpoint.

        Returns basic health status for load balancers and monitors.
        """
        return {"status": "ok"}

    @app.get("/stats", response_model=AssignmentStatsResponse)
    def get_stats(request: Request) -> AssignmentStatsResponse:
        """Reviewer id -> number of PRs the reviewer is assigned to."""
        return get_stats_service(request).get_assignment_stats()

    return app


# Create the application instance
app = create_app()
