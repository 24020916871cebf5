"""CertChain API - Main FastAPI application."""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app
from sqlalchemy import text

from certchain_api import __version__
from certchain_api.container import ServiceContainer
from certchain_api.lifecycle.errors import (
    ConflictError,
    ForbiddenError,
    IllegalTransitionError,
    LedgerWriteError,
    LifecycleError,
    NotFoundError,
    ReconciliationError,
)
from certchain_api.middleware.auth import AuthMiddleware
from certchain_api.middleware.correlation import CorrelationIDMiddleware, CorrelationIdFilter
from certchain_api.routes import certification, media
from certchain_api.settings import get_settings

# Configure logging
_log_handler = logging.StreamHandler(sys.stdout)
_log_handler.addFilter(CorrelationIdFilter())
LOG_FORMATS = {
    "json": (
        '{"time": "%(asctime)s", "level": "%(levelname)s", "message": "%(message)s", '
        '"module": "%(name)s", "correlation_id": "%(correlation_id)s"}'
    ),
    "text": "%(asctime)s %(levelname)s [%(name)s] [%(correlation_id)s] %(message)s",
}
logging.basicConfig(
    level=get_settings().log_level,
    format=LOG_FORMATS.get(get_settings().log_format, LOG_FORMATS["json"]),
    handlers=[_log_handler],
)
logger = logging.getLogger(__name__)

# Forbidden and illegal-transition both map to 403
ERROR_STATUS_CODES = {
    NotFoundError: 404,
    ForbiddenError: 403,
    IllegalTransitionError: 403,
    ConflictError: 409,
    LedgerWriteError: 502,
    ReconciliationError: 500,
}


def status_code_for(exc: LifecycleError) -> int:
    for error_type, code in ERROR_STATUS_CODES.items():
        if isinstance(exc, error_type):
            return code
    return 500


async def lifecycle_error_handler(request: Request, exc: LifecycleError):
    """Map lifecycle errors to HTTP responses."""
    status_code = status_code_for(exc)
    level = logging.ERROR if status_code >= 500 else logging.WARNING
    logger.log(
        level,
        exc.message,
        extra={**exc.log_extra(), "correlation_id": getattr(request.state, "correlation_id", None)},
    )
    return JSONResponse(status_code=status_code, content=exc.to_dict())


def create_app(container: Optional[ServiceContainer] = None) -> FastAPI:
    """Create the application; a prebuilt container is used as-is and not closed."""
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan events."""
        logger.info("Starting CertChain API...")
        owns_container = container is None
        if owns_container:
            try:
                settings.validate_production_settings()
                app.state.container = ServiceContainer.build(settings)
            except Exception as e:
                logger.error(f"Configuration validation failed: {e}")
                raise ValueError(f"Invalid configuration: {e}") from e
        else:
            app.state.container = container

        yield

        logger.info("Shutting down CertChain API...")
        if owns_container:
            await app.state.container.close()

    app = FastAPI(
        title="CertChain API",
        description="Certification request lifecycle backed by an append-only ledger",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )
    # Last added runs first: correlation id is set before auth logs it
    app.add_middleware(AuthMiddleware)
    app.add_middleware(CorrelationIDMiddleware)

    app.add_exception_handler(LifecycleError, lifecycle_error_handler)

    app.mount("/metrics", make_asgi_app())

    app.include_router(certification.router)
    app.include_router(media.router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint (basic liveness)."""
        return {
            "status": "healthy",
            "service": "certchain-api",
            "version": __version__,
        }

    @app.get("/ready")
    async def readiness_check(request: Request):
        """Readiness check endpoint (verifies the database)."""
        checks = {"database": False}
        try:
            with request.app.state.container.session_factory() as db:
                db.execute(text("SELECT 1"))
            checks["database"] = True
        except Exception as e:
            logger.error(f"Database check failed: {e}")

        ready = all(checks.values())
        return JSONResponse(
            content={"status": "ready" if ready else "not_ready", "checks": checks},
            status_code=200 if ready else 503,
        )

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "service": "CertChain API",
            "version": __version__,
            "docs": "/docs",
            "health": "/health",
        }

    return app


app = create_app()
