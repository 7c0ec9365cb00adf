"""
FastAPI Application Setup.

Main application factory for the Upload Governance operator API.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from upload_governance import __version__
from upload_governance.api.routes import cleanup, health, quota
from upload_governance.api.schemas.exceptions import (
    APIException,
    ValidationError,
    from_governance_error,
)
from upload_governance.core.exceptions import GovernanceError
from upload_governance.services import GovernanceServices

logger = logging.getLogger(__name__)


def _error_response(exc: APIException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": {
                "type": exc.error_type,
                "message": exc.message,
                "detail": exc.detail,
            }
        },
    )


def create_app(
    services: GovernanceServices | None = None,
    title: str = "Upload Governance API",
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        services: Pre-built components (default: built from settings on first use)
        title: Application title for OpenAPI docs

    Returns:
        Configured FastAPI application instance
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info("Upload Governance API starting up...")
        logger.info(f"Version: {__version__}")

        yield

        logger.info("Upload Governance API shutting down...")
        owned = getattr(app.state, "services", None)
        if owned is not None and owned is not services:
            owned.close()

    app = FastAPI(
        title=title,
        description="Operator API for upload quotas and artifact retention",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.services = services

    # Include routers
    app.include_router(
        health.router,
        prefix="/health",
        tags=["Health"],
    )
    app.include_router(
        quota.router,
        prefix="/api/v1/quota",
        tags=["Quota"],
    )
    app.include_router(
        cleanup.router,
        prefix="/api/v1/cleanup",
        tags=["Cleanup"],
    )

    # Exception handlers
    @app.exception_handler(APIException)
    async def api_exception_handler(request: Request, exc: APIException) -> JSONResponse:
        """Handle API exceptions with proper error responses."""
        return _error_response(exc)

    @app.exception_handler(GovernanceError)
    async def governance_exception_handler(request: Request, exc: GovernanceError) -> JSONResponse:
        """Translate governance errors (validation 400, store unavailable 503)."""
        api_exc = from_governance_error(exc)
        if api_exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return _error_response(api_exc)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Report malformed parameters as 400 with per-field messages."""
        fields = {
            ".".join(str(part) for part in err.get("loc", ())): err.get("msg", "invalid")
            for err in exc.errors()
        }
        api_exc = ValidationError(fields)
        return JSONResponse(
            status_code=api_exc.status_code,
            content={
                "error": {
                    "type": api_exc.error_type,
                    "message": api_exc.message,
                    "fields": fields,
                }
            },
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception(f"Unhandled exception: {exc}")
        return JSONResponse(
            status_code=500,
            content={
                "error": {
                    "type": "internal_error",
                    "message": "An unexpected error occurred",
                    "detail": str(exc) if logger.isEnabledFor(logging.DEBUG) else None,
                }
            },
        )

    # Root endpoint
    @app.get("/", tags=["Root"])
    async def root() -> dict[str, object]:
        """Root endpoint with API information."""
        return {
            "name": "Upload Governance API",
            "version": __version__,
            "status": "operational",
            "docs": "/docs",
            "health": "/health",
        }

    return app


# Default app instance for `uvicorn upload_governance.api.app:app`
app = create_app()
