"""
Dependency injection for FastAPI routes.

Provides injectable dependencies for:
- Configuration
- Service instances (source clients, enricher, catalog, scanner)
"""

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

import httpx
from fastapi import Depends


# =============================================================================
# Configuration
# =============================================================================

@dataclass
class Settings:
    """Application settings loaded from environment."""

    # Catalog store
    database_url: str = "sqlite:///./shelfscan.db"

    # Image store
    image_store_path: str = "./data/blobs"
    image_base_url: str = "/blobs"

    # Directory holding one folder of shelf photos per location
    photo_root: str = "./data/photos"

    # Generative search
    perplexity_api_key: Optional[str] = None
    perplexity_base_url: str = "https://api.perplexity.ai"
    generative_model: str = "sonar-pro"

    # Structured catalog
    google_books_api_key: Optional[str] = None

    # Vision service
    vision_service_url: Optional[str] = None
    vision_api_key: Optional[str] = None

    # Source resilience
    source_retry_attempts: int = 3
    source_retry_delay: float = 1.0
    http_timeout: float = 10.0

    # Environment
    environment: str = "development"
    debug: bool = True

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables."""
        return cls(
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            image_store_path=os.getenv("IMAGE_STORE_PATH", cls.image_store_path),
            image_base_url=os.getenv("IMAGE_BASE_URL", cls.image_base_url),
            photo_root=os.getenv("PHOTO_ROOT", cls.photo_root),
            perplexity_api_key=os.getenv("PERPLEXITY_API_KEY"),
            perplexity_base_url=os.getenv("PERPLEXITY_BASE_URL", cls.perplexity_base_url),
            generative_model=os.getenv("GENERATIVE_MODEL", cls.generative_model),
            google_books_api_key=os.getenv("GOOGLE_BOOKS_API_KEY"),
            vision_service_url=os.getenv("VISION_SERVICE_URL"),
            vision_api_key=os.getenv("VISION_API_KEY"),
            source_retry_attempts=int(os.getenv("SOURCE_RETRY_ATTEMPTS", cls.source_retry_attempts)),
            source_retry_delay=float(os.getenv("SOURCE_RETRY_DELAY", cls.source_retry_delay)),
            http_timeout=float(os.getenv("HTTP_TIMEOUT", cls.http_timeout)),
            environment=os.getenv("SHELFSCAN_ENV", cls.environment),
            debug=os.getenv("DEBUG", "true").lower() == "true",
        )


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings.from_env()


# =============================================================================
# Service Dependencies (Lazy Loading)
# =============================================================================

class ServiceContainer:
    """
    Container for lazy-loaded service instances.

    Services are initialized on first access; source clients share one
    HTTP connection pool.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self._http_client = None
        self._retry_policy = None
        self._google_books = None
        self._open_library = None
        self._generative_search = None
        self._metadata_enricher = None
        self._catalog_repository = None
        self._image_store = None
        self._catalog_sync = None
        self._scanner = None
        self._scan_service = None

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Shared HTTP client for all source adapters."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.settings.http_timeout)
        return self._http_client

    @property
    def retry_policy(self):
        if self._retry_policy is None:
            from ..identification.retry import RetryPolicy
            self._retry_policy = RetryPolicy(
                attempts=self.settings.source_retry_attempts,
                delay=self.settings.source_retry_delay,
            )
        return self._retry_policy

    @property
    def google_books(self):
        """Get structured catalog client."""
        if self._google_books is None:
            from ..identification.google_books import GoogleBooksClient
            self._google_books = GoogleBooksClient(
                api_key=self.settings.google_books_api_key,
                http_client=self.http_client,
                retry_policy=self.retry_policy,
            )
        return self._google_books

    @property
    def open_library(self):
        """Get open catalog client."""
        if self._open_library is None:
            from ..identification.open_library import OpenLibraryClient
            self._open_library = OpenLibraryClient(
                http_client=self.http_client,
                retry_policy=self.retry_policy,
            )
        return self._open_library

    @property
    def generative_search(self):
        """Get generative search client."""
        if self._generative_search is None:
            from ..identification.generative_search import GenerativeSearchClient
            self._generative_search = GenerativeSearchClient(
                api_key=self.settings.perplexity_api_key,
                model=self.settings.generative_model,
                base_url=self.settings.perplexity_base_url,
                retry_policy=self.retry_policy,
            )
        return self._generative_search

    @property
    def metadata_enricher(self):
        """Get metadata enricher instance."""
        if self._metadata_enricher is None:
            from ..identification.enricher import MetadataEnricher
            self._metadata_enricher = MetadataEnricher(
                catalog=self.google_books,
                open_catalog=self.open_library,
                generative=self.generative_search,
            )
        return self._metadata_enricher

    @property
    def catalog_repository(self):
        """Get catalog repository instance."""
        if self._catalog_repository is None:
            from ..storage.catalog_repository import CatalogRepository
            self._catalog_repository = CatalogRepository(self.settings.database_url)
        return self._catalog_repository

    @property
    def image_store(self):
        """Get image store instance."""
        if self._image_store is None:
            from ..storage.image_store import ImageStore
            self._image_store = ImageStore(
                root=self.settings.image_store_path,
                base_url=self.settings.image_base_url,
            )
        return self._image_store

    @property
    def catalog_sync(self):
        """Get batch sync instance."""
        if self._catalog_sync is None:
            from ..storage.sync import CatalogSync
            self._catalog_sync = CatalogSync(
                repository=self.catalog_repository,
                image_store=self.image_store,
                photo_root=self.settings.photo_root,
            )
        return self._catalog_sync

    @property
    def scanner(self):
        """Get vision service client, or None when not configured."""
        if self._scanner is None and self.settings.vision_service_url:
            from ..scanning.scanner import RemoteShelfScanner
            self._scanner = RemoteShelfScanner(
                base_url=self.settings.vision_service_url,
                api_key=self.settings.vision_api_key,
            )
        return self._scanner

    @property
    def scan_service(self):
        """Get scan service instance."""
        if self._scan_service is None:
            from ..scanning.service import ScanService
            self._scan_service = ScanService(
                repository=self.catalog_repository,
                scanner=self.scanner,
            )
        return self._scan_service

    async def close(self):
        """Release network resources."""
        if self._scanner is not None:
            await self._scanner.close()
        if self._generative_search is not None:
            await self._generative_search.close()
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None


# Global service container
_service_container: Optional[ServiceContainer] = None


def init_services(settings: Settings) -> ServiceContainer:
    """Initialize service container."""
    global _service_container
    _service_container = ServiceContainer(settings)
    return _service_container


def get_service_container() -> ServiceContainer:
    """Get service container instance."""
    if _service_container is None:
        # Auto-initialize with default settings if not explicitly initialized
        return init_services(get_settings())
    return _service_container


# =============================================================================
# Individual Service Dependencies
# =============================================================================

def get_metadata_enricher(
    container: ServiceContainer = Depends(get_service_container),
):
    """Dependency for metadata enricher."""
    return container.metadata_enricher


def get_generative_search(
    container: ServiceContainer = Depends(get_service_container),
):
    """Dependency for generative search client."""
    return container.generative_search


def get_catalog_repository(
    container: ServiceContainer = Depends(get_service_container),
):
    """Dependency for catalog repository."""
    return container.catalog_repository


def get_image_store(
    container: ServiceContainer = Depends(get_service_container),
):
    """Dependency for image store."""
    return container.image_store


def get_catalog_sync(
    container: ServiceContainer = Depends(get_service_container),
):
    """Dependency for batch sync."""
    return container.catalog_sync


def get_scan_service(
    container: ServiceContainer = Depends(get_service_container),
):
    """Dependency for scan service."""
    return container.scan_service
