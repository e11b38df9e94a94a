"""
ShelfScan API

FastAPI application entry point.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from fastapi import FastAPI, Request

from .schemas import HealthResponse
from .routes import books, enrichment, images, locations
from .middleware import (
    setup_logging,
    setup_exception_handlers,
    LoggingConfig,
)
from .dependencies import (
    get_settings,
    init_services,
    Settings,
)

VERSION = "1.0.0"

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# =============================================================================
# Application Lifespan
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Builds the service container on startup and closes its network
    clients on shutdown.
    """
    settings = app.state.settings
    logger.info(f"Starting ShelfScan in {settings.environment} mode")

    services = init_services(settings)
    app.state.services = services

    if not settings.perplexity_api_key:
        logger.warning("PERPLEXITY_API_KEY not set, generative search disabled")
    if not settings.vision_service_url:
        logger.warning("VISION_SERVICE_URL not set, scanning disabled")

    try:
        yield
    finally:
        logger.info("Shutting down ShelfScan...")
        await services.close()
        logger.info("Shutdown complete")


# =============================================================================
# Application Factory
# =============================================================================

def create_app(settings: Settings = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Application settings. If None, loads from environment.

    Returns:
        Configured FastAPI application.
    """
    if settings is None:
        settings = get_settings()

    app = FastAPI(
        title="ShelfScan",
        description="Bookshelf cataloguing: detected spines resolved into book records.",
        version=VERSION,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # ==========================================================================
    # Middleware
    # ==========================================================================

    setup_logging(
        app,
        config=LoggingConfig(enabled=True),
        structured=settings.environment != "development",
    )
    setup_exception_handlers(app)

    # ==========================================================================
    # Routers
    # ==========================================================================

    api_prefix = "/api/v1"

    app.include_router(enrichment.router, prefix=api_prefix)
    app.include_router(locations.router, prefix=api_prefix)
    app.include_router(books.router, prefix=api_prefix)
    app.include_router(images.router, prefix=api_prefix)

    # ==========================================================================
    # Root Routes
    # ==========================================================================

    @app.get("/", include_in_schema=False)
    async def root():
        """Root endpoint with API info."""
        return {
            "name": "ShelfScan",
            "version": VERSION,
            "status": "running",
            "docs": "/docs" if settings.debug else None,
        }

    @app.get("/health", response_model=HealthResponse, tags=["System"])
    async def health_check(request: Request) -> HealthResponse:
        """Which components are configured."""
        components = {
            "catalog": "configured",
            "generative_search": "configured" if settings.perplexity_api_key else "not_configured",
            "structured_catalog": "configured" if settings.google_books_api_key else "anonymous",
            "vision": "configured" if settings.vision_service_url else "not_configured",
        }
        return HealthResponse(status="healthy", version=VERSION, components=components)

    return app


# =============================================================================
# Application Instance
# =============================================================================

app = create_app()


# =============================================================================
# CLI Entry Point
# =============================================================================

def main():
    """Run the application using uvicorn."""
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "shelfscan.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    main()
