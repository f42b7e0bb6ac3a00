"""
ReportSafe Service - Main Application

FastAPI application for incident report intake and administration.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from reportsafe.api.dependencies import ServiceContainer
from reportsafe.api.routes.admin import router as admin_router
from reportsafe.api.routes.reports import router as reports_router
from reportsafe.config.settings import Settings, settings
from reportsafe.core.errors import (
    AuthorizationError,
    InvalidIncidentTypeError,
    InvalidStatusError,
    MalformedCaseIdError,
    NotFoundError,
    StorageError,
    ValidationError,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

VERSION = "0.1.0"


def register_exception_handlers(app: FastAPI, config: Settings) -> None:
    """Map service errors onto HTTP responses"""

    @app.exception_handler(ValidationError)
    async def validation_error(request: Request, exc: ValidationError):
        return JSONResponse(status_code=422, content={"detail": "Validation failed", "errors": exc.errors})

    @app.exception_handler(NotFoundError)
    async def not_found(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(InvalidStatusError)
    @app.exception_handler(MalformedCaseIdError)
    @app.exception_handler(InvalidIncidentTypeError)
    async def bad_request(request: Request, exc: Exception):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(AuthorizationError)
    async def forbidden(request: Request, exc: AuthorizationError):
        return JSONResponse(status_code=403, content={"detail": str(exc)})

    @app.exception_handler(StorageError)
    async def storage_error(request: Request, exc: StorageError):
        logger.error(f"Storage error on {request.method} {request.url.path}: {exc}")
        detail = "Internal server error" if config.is_production else str(exc)
        return JSONResponse(status_code=500, content={"detail": detail})


def create_app(config: Optional[Settings] = None) -> FastAPI:
    config = config or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager"""
        logger.info(f"Starting {config.service_name} ({config.environment})")
        logger.info(f"Repository backend: {config.repository_backend}, storage: {config.storage_provider}")

        container = ServiceContainer.from_settings(config)
        await container.initialize()
        app.state.container = container

        yield

        logger.info("Shutting down ReportSafe service")
        await container.close()

    app = FastAPI(
        title="ReportSafe Service",
        description="Incident report intake, case tracking and admin review",
        version=VERSION,
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app, config)

    app.include_router(reports_router)
    app.include_router(admin_router)

    @app.get(
        "/",
        summary="Service Information",
        responses={200: {"description": "Service information returned successfully"}}
    )
    async def root():
        """Root endpoint"""
        return {
            "service": config.service_name,
            "version": VERSION,
            "status": "running",
            "environment": config.environment
        }

    @app.get(
        "/health",
        summary="Health Check",
        description="""
Lightweight liveness check; does not touch storage or the database.
For component status use `/api/v1/reports/health`.
        """,
        responses={200: {"description": "Service is healthy and operational"}}
    )
    async def health():
        """Simple health check"""
        return {"status": "healthy", "service": config.service_name}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "reportsafe.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development"
    )
