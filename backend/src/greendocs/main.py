"""
FastAPI application entry point.

This is the main application that ties together all components:
- API routes for upload, processing, error analysis and review
- Database lifecycle management
- CORS configuration for frontend access
- Error handling and logging
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from greendocs import __version__
from greendocs.api.dependencies import get_pipeline, reset_services
from greendocs.api.routes import documents, health, processing, review
from greendocs.config import get_settings
from greendocs.domain.errors import GreenDocsError
from greendocs.infrastructure.database import close_db, init_db

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown tasks:
    - Validate inference configuration (fails fast without an API key)
    - Initialize database tables
    - Clean up on shutdown
    """
    settings = get_settings()

    logger.info(f"Starting GreenDocs v{__version__}")
    logger.info(f"Models: extraction={settings.extraction_model}, analysis={settings.analysis_model}")
    logger.info(f"Debug mode: {settings.debug}")

    # Builds the inference clients, which validates their configuration
    get_pipeline()

    await init_db()
    logger.info(f"Storage path: {settings.storage_path}")

    yield  # Application runs here

    # Shutdown
    logger.info("Shutting down GreenDocs")
    reset_services()
    await close_db()


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI instance ready to serve requests.
    """
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="GreenDocs API",
        description=(
            "Verification of clean-energy installation documents.\n\n"
            "Extracts fields from uploaded documents with a vision model, "
            "flags compliance errors and records human review decisions."
        ),
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    # CORS configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register routers
    app.include_router(health.router)
    app.include_router(documents.router, prefix="/api/v1")
    app.include_router(processing.router, prefix="/api/v1")
    app.include_router(review.router, prefix="/api/v1")

    @app.exception_handler(GreenDocsError)
    async def domain_exception_handler(request: Request, exc: GreenDocsError):
        """Structured response for pipeline errors."""
        if exc.http_status >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.code}: {exc.message}")
        return JSONResponse(status_code=exc.http_status, content=exc.to_dict())

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Catch-all exception handler for unhandled errors."""
        logger.exception(f"Unhandled error: {exc}")

        # Don't expose internal errors in production
        if settings.debug:
            detail = str(exc)
        else:
            detail = "An internal error occurred"

        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal Server Error",
                "detail": detail,
                "code": "internal_error",
                "retryable": False,
            },
        )

    return app


# Create the application instance
app = create_app()


# Development server entry point
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "greendocs.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
