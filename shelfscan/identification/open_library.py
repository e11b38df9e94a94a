"""
Open Library Client

Open-catalog fallback source. The search endpoint returns abbreviated
documents, so descriptions come from a second lookup of the record key, and
a work hit needs its most recent edition to recover ISBN and publisher.
"""

import re
from typing import Any, Optional

import httpx
from loguru import logger

from shelfscan.identification.exceptions import (
    MalformedResponseError,
    SourceError,
    TransientSourceError,
)
from shelfscan.identification.records import PartialRecord, SourceKind, known_author
from shelfscan.identification.retry import RetryPolicy


_YEAR = re.compile(r"(\d{4})")


def _as_list(value: Any) -> list:
    if isinstance(value, list):
        return value
    return [value] if value else []


def _first(values: Any) -> Optional[str]:
    if isinstance(values, list):
        return next((v for v in values if isinstance(v, str) and v), None)
    if isinstance(values, str) and values:
        return values
    return None


def pick_isbn(isbns: list[str]) -> Optional[str]:
    """Prefer a 13-digit ISBN over a 10-digit one."""
    isbns = [i for i in isbns or [] if isinstance(i, str)]
    return (
        next((i for i in isbns if len(i) == 13), None)
        or next((i for i in isbns if len(i) == 10), None)
        or (isbns[0] if isbns else None)
    )


def description_text(record: dict[str, Any]) -> Optional[str]:
    """Descriptions are either a string or ``{"type": ..., "value": ...}``."""
    description = record.get("description")
    if isinstance(description, str):
        return description or None
    if isinstance(description, dict):
        value = description.get("value")
        return value if isinstance(value, str) and value else None
    return None


def _edition_year(edition: dict[str, Any]) -> int:
    match = _YEAR.search(str(edition.get("publish_date") or ""))
    return int(match.group(1)) if match else 0


def latest_edition(entries: list[dict[str, Any]]) -> Optional[dict[str, Any]]:
    """Most recently published edition; undated editions rank last."""
    entries = [e for e in entries or [] if isinstance(e, dict)]
    if not entries:
        return None
    return max(entries, key=_edition_year)


class OpenLibraryClient:
    """
    Client for Open Library API.

    Open Library is a free, open-source library catalog.
    Rate limits: Be respectful, no official limit but don't abuse.
    """

    BASE_URL = "https://openlibrary.org"
    COVERS_URL = "https://covers.openlibrary.org"
    NAME = "Open Library"

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        retry_policy: Optional[RetryPolicy] = None,
        timeout: float = 10.0,
    ):
        self.timeout = timeout
        self.retry_policy = retry_policy or RetryPolicy()
        self._client = http_client
        self._owns_client = http_client is None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def _get_json(self, path: str, params: Optional[dict] = None) -> Optional[dict]:
        """GET a JSON document; None for 4xx, raises on transient failures."""
        client = await self._get_client()

        try:
            response = await client.get(f"{self.BASE_URL}{path}", params=params)
        except httpx.HTTPError as e:
            raise TransientSourceError(self.NAME, f"request failed: {e}") from e

        if response.status_code >= 500 or response.status_code == 429:
            raise TransientSourceError(self.NAME, f"HTTP {response.status_code}")
        if response.status_code != 200:
            return None

        try:
            data = response.json()
        except ValueError as e:
            raise MalformedResponseError(self.NAME, "invalid JSON", response.text) from e

        return data if isinstance(data, dict) else None

    async def _fetch(self, path: str, params: Optional[dict] = None) -> Optional[dict]:
        try:
            return await self.retry_policy.run(
                lambda: self._get_json(path, params),
                source=self.NAME,
            )
        except SourceError as e:
            logger.warning(f"Open Library request {path} failed: {e}")
            return None

    async def search(self, title: str, author: Optional[str] = None) -> list[dict]:
        """Search documents by title and optional author."""
        params = {"title": title, "limit": 1}
        author = known_author(author)
        if author:
            params["author"] = author

        data = await self._fetch("/search.json", params)
        if not data:
            return []
        return [doc for doc in data.get("docs") or [] if isinstance(doc, dict)]

    async def fetch_record(self, key: str) -> Optional[dict]:
        """Fetch a full work or edition record by key (e.g. ``/works/OL1W``)."""
        return await self._fetch(f"{key}.json")

    async def fetch_latest_edition(self, work_key: str) -> Optional[dict]:
        """Fetch the most recent edition of a work."""
        data = await self._fetch(f"{work_key}/editions.json")
        if not data:
            return None
        return latest_edition(data.get("entries"))

    async def query(self, title: str, author: Optional[str] = None) -> Optional[PartialRecord]:
        """
        Look up a book.

        Returns:
            PartialRecord built from the first search hit, or None
        """
        try:
            docs = await self.search(title, author)
            if not docs:
                return None
            return await self._build_record(docs[0])
        except Exception as e:
            logger.warning(f"Open Library lookup failed for '{title}': {e}")
            return None

    async def _build_record(self, doc: dict[str, Any]) -> PartialRecord:
        key = doc.get("key") if isinstance(doc.get("key"), str) else None

        cover_url = None
        if doc.get("cover_i"):
            cover_url = f"{self.COVERS_URL}/b/id/{doc['cover_i']}-L.jpg"

        first_year = doc.get("first_publish_year")

        record = PartialRecord(
            source=SourceKind.OPEN_CATALOG,
            title=doc.get("title"),
            authors=[a for a in doc.get("author_name") or [] if isinstance(a, str)],
            isbn=pick_isbn(doc.get("isbn")),
            publisher=_first(doc.get("publisher")),
            publication_date=str(first_year) if first_year else None,
            cover_url=cover_url,
            info_link=f"{self.BASE_URL}{key}" if key else None,
        )

        if not key:
            return record

        # Search documents carry no description
        full_record = await self.fetch_record(key)
        if full_record:
            record.description = description_text(full_record)

        if key.startswith("/works/") and not (record.isbn and record.publisher):
            edition = await self.fetch_latest_edition(key)
            if edition:
                record.isbn = record.isbn or pick_isbn(
                    _as_list(edition.get("isbn_13")) + _as_list(edition.get("isbn_10"))
                )
                record.publisher = record.publisher or _first(edition.get("publishers"))
                record.publication_date = record.publication_date or edition.get("publish_date")
                record.description = record.description or description_text(edition)

        return record

    async def close(self):
        """Close HTTP client if this instance created it."""
        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None
