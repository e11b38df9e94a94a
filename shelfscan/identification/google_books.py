"""
Google Books Client

Structured-catalog source: keyword search restricted to the title and
author fields, first hit taken as the answer.
"""

from typing import Any, Optional

import httpx
from loguru import logger

from shelfscan.identification.exceptions import (
    MalformedResponseError,
    SourceError,
    TransientSourceError,
)
from shelfscan.identification.fallback import search_with_fallback
from shelfscan.identification.records import PartialRecord, SourceKind
from shelfscan.identification.retry import RetryPolicy


# Highest resolution first
COVER_SIZES = ("extraLarge", "large", "medium", "thumbnail", "smallThumbnail")


def _is_transient_status(status_code: int) -> bool:
    return status_code >= 500 or status_code == 429


def best_isbn(identifiers: list[dict[str, Any]]) -> Optional[str]:
    """Prefer ISBN-13 over ISBN-10."""
    by_type = {}
    for identifier in identifiers or []:
        if not isinstance(identifier, dict):
            continue
        kind = identifier.get("type")
        value = identifier.get("identifier")
        if kind and value and kind not in by_type:
            by_type[kind] = value
    return by_type.get("ISBN_13") or by_type.get("ISBN_10")


def best_cover(image_links: dict[str, str]) -> Optional[str]:
    """Pick the largest available cover image."""
    for size in COVER_SIZES:
        url = (image_links or {}).get(size)
        if url:
            if url.startswith("http:"):
                url = url.replace("http:", "https:", 1)
            return url
    return None


def parse_volume(item: dict[str, Any]) -> PartialRecord:
    """Map a Google Books volume onto a PartialRecord, defaulting absent fields."""
    info = item.get("volumeInfo") or {}
    authors = info.get("authors") or []

    return PartialRecord(
        source=SourceKind.CATALOG,
        title=info.get("title"),
        authors=[a for a in authors if isinstance(a, str)],
        isbn=best_isbn(info.get("industryIdentifiers")),
        publisher=info.get("publisher"),
        publication_date=info.get("publishedDate"),
        description=info.get("description"),
        cover_url=best_cover(info.get("imageLinks")),
        info_link=info.get("infoLink"),
    )


class GoogleBooksClient:
    """
    Client for the Google Books volumes API.

    Provides high-quality cover images and descriptions.
    Rate limit: 1000 requests/day without API key.
    """

    BASE_URL = "https://www.googleapis.com/books/v1"
    NAME = "Google Books"

    def __init__(
        self,
        api_key: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        retry_policy: Optional[RetryPolicy] = None,
        timeout: float = 10.0,
        max_results: int = 1,
    ):
        self.api_key = api_key
        self.timeout = timeout
        self.max_results = max_results
        self.retry_policy = retry_policy or RetryPolicy()
        self._client = http_client
        self._owns_client = http_client is None

        if not self.api_key:
            logger.warning("No Google Books API key provided. Rate limits will be lower.")

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def _request(self, title: str, author: Optional[str]) -> list[dict]:
        client = await self._get_client()

        query = f'intitle:"{title}"'
        if author:
            query += f' inauthor:"{author}"'

        params = {"q": query, "maxResults": self.max_results}
        if self.api_key:
            params["key"] = self.api_key

        try:
            response = await client.get(f"{self.BASE_URL}/volumes", params=params)
        except httpx.HTTPError as e:
            raise TransientSourceError(self.NAME, f"request failed: {e}") from e

        if _is_transient_status(response.status_code):
            raise TransientSourceError(self.NAME, f"HTTP {response.status_code}")
        if response.status_code != 200:
            logger.warning(f"Google Books returned HTTP {response.status_code} for '{title}'")
            return []

        try:
            data = response.json()
        except ValueError as e:
            raise MalformedResponseError(self.NAME, "invalid JSON", response.text) from e

        items = data.get("items") if isinstance(data, dict) else None
        return [item for item in items or [] if isinstance(item, dict)]

    async def search_volumes(self, title: str, author: Optional[str] = None) -> list[dict]:
        """
        One keyword search, retried on transient failures.

        Returns ``[]`` on no match or when retries are exhausted.
        """
        try:
            return await self.retry_policy.run(
                lambda: self._request(title, author),
                source=self.NAME,
            )
        except SourceError as e:
            logger.warning(f"Google Books search failed for '{title}': {e}")
            return []

    async def search(self, title: str, author: Optional[str] = None) -> list[dict]:
        """Search with progressively relaxed queries."""
        return await search_with_fallback(
            self.search_volumes, title, author, source=self.NAME
        )

    async def query(self, title: str, author: Optional[str] = None) -> Optional[PartialRecord]:
        """
        Look up a book.

        Returns:
            PartialRecord from the first hit, or None
        """
        try:
            items = await self.search(title, author)
            if not items:
                return None
            return parse_volume(items[0])
        except Exception as e:
            logger.warning(f"Google Books lookup failed for '{title}': {e}")
            return None

    async def close(self):
        """Close HTTP client if this instance created it."""
        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None
