"""
Pytest configuration and fixtures for ShelfScan tests.
"""

from types import SimpleNamespace
from typing import AsyncGenerator, Callable, Optional
from unittest.mock import AsyncMock

import httpx
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from shelfscan.api.dependencies import ServiceContainer, Settings, get_service_container
from shelfscan.api.main import create_app
from shelfscan.identification.records import (
    DetectedCandidate,
    PartialRecord,
    SourceKind,
)
from shelfscan.identification.retry import RetryPolicy
from shelfscan.storage.catalog_repository import CatalogRepository
from shelfscan.storage.image_store import ImageStore


# =============================================================================
# Test Doubles
# =============================================================================

class FakeSource:
    """Source adapter double returning a fixed answer (or raising)."""

    def __init__(self, result=None, error: Optional[Exception] = None):
        self.result = result
        self.error = error
        self.calls = []

    async def query(self, title: str, author: Optional[str] = None):
        self.calls.append((title, author))
        if self.error is not None:
            raise self.error
        if callable(self.result):
            return self.result(title)
        return self.result


def make_openai_client(*contents: str):
    """Stand-in for ``openai.AsyncOpenAI`` answering with ``contents`` in order."""
    responses = [
        SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])
        for content in contents
    ]
    create = AsyncMock(side_effect=responses)
    client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
    return client, create


def mock_http_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    """AsyncClient whose requests are answered by ``handler``."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


# =============================================================================
# Records
# =============================================================================

@pytest.fixture
def fast_retry() -> RetryPolicy:
    """Retry policy without waiting between attempts."""
    return RetryPolicy(attempts=3, delay=0.0)


@pytest.fixture
def dune_candidate() -> DetectedCandidate:
    return DetectedCandidate(
        title="Dune",
        author="Frank Herbert",
        sources=("IMG_0001.jpg",),
    )


@pytest.fixture
def catalog_record() -> PartialRecord:
    """Structured catalog answer for Dune."""
    return PartialRecord(
        source=SourceKind.CATALOG,
        title="Dune",
        authors=["Frank Herbert"],
        isbn="9780441172719",
        publisher=None,
        publication_date="1990-09-01",
        description="Set on the desert planet Arrakis.",
        cover_url="https://books.google.com/books/content?id=B1hSG45JCX4C",
        info_link="https://books.google.com/books?id=B1hSG45JCX4C",
    )


@pytest.fixture
def generative_record() -> PartialRecord:
    """Generative search answer for Dune."""
    return PartialRecord(
        source=SourceKind.GENERATIVE_SEARCH,
        title="Dune (Deluxe Edition)",
        authors=["Frank Herbert", "Brian Herbert"],
        isbn="0441013597",
        publisher="Ace Books",
        publication_date="2005",
        description="A science fiction epic.",
    )


# =============================================================================
# Storage Fixtures
# =============================================================================

@pytest.fixture
def repository() -> CatalogRepository:
    """In-memory catalog store."""
    return CatalogRepository()


@pytest.fixture
def image_store(tmp_path) -> ImageStore:
    return ImageStore(root=tmp_path / "blobs", base_url="/blobs")


@pytest.fixture
def photo_root(tmp_path):
    root = tmp_path / "photos"
    root.mkdir()
    return root


# =============================================================================
# Application Fixtures
# =============================================================================

@pytest.fixture
def test_settings(tmp_path, photo_root) -> Settings:
    """Settings configured for testing."""
    return Settings(
        database_url="sqlite:///:memory:",
        image_store_path=str(tmp_path / "blobs"),
        photo_root=str(photo_root),
        environment="development",
        debug=True,
    )


@pytest.fixture
def services(test_settings, repository, image_store) -> ServiceContainer:
    """Service container wired to in-memory storage and no network sources."""
    container = ServiceContainer(test_settings)
    container._catalog_repository = repository
    container._image_store = image_store
    return container


@pytest_asyncio.fixture(scope="function")
async def app(test_settings, services):
    """Create FastAPI application for testing."""
    application = create_app(test_settings)

    # Override dependencies
    application.dependency_overrides[get_service_container] = lambda: services

    yield application

    application.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Provide async HTTP client for API tests."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
