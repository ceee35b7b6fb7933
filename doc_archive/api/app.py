"""
FastAPI application for the document archive.

The API provides endpoints for:
- Uploading, finding, fetching (range aware) and deleting documents
- Health checks

Storage is a directory tree configured through ``DOC_ARCHIVE_ROOT``; see
doc_archive.config for the other settings.
"""

import logging
import os
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi_pagination import add_pagination
from fastapi_pagination.utils import disable_installed_extensions_check

from doc_archive import __version__
from doc_archive.api.responses import HealthCheckResponse
from doc_archive.api.routers import documents

# Disable pagination extensions check for cleaner startup
disable_installed_extensions_check()


def setup_logging() -> None:
    """Configure logging based on environment variables"""
    log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
    log_format = os.environ.get(
        "LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    # Validate log level
    numeric_level = getattr(logging, log_level, None)
    if not isinstance(numeric_level, int):
        print(f"Invalid log level: {log_level}, defaulting to INFO")
        numeric_level = logging.INFO

    logging.basicConfig(
        level=numeric_level,
        format=log_format,
        force=True,  # Override any existing configuration
    )


logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Build the archive application with all routers mounted."""
    application = FastAPI(
        title="Document Archive API",
        description="Store, find and stream documents kept on a filesystem",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    application.include_router(
        documents.router, prefix="/archive", tags=["documents"]
    )

    @application.get("/health", response_model=HealthCheckResponse)
    async def health_check() -> HealthCheckResponse:
        """Health check endpoint."""
        logger.debug("Health check requested")
        return HealthCheckResponse(
            status="healthy",
            version=__version__,
            timestamp=datetime.now(timezone.utc),
        )

    # Add pagination support
    _ = add_pagination(application)
    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn

    setup_logging()
    uvicorn.run(
        "doc_archive.api.app:app",
        host="0.0.0.0",
        port=8000,
        log_level="info",
    )
