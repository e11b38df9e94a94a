"""
Vision Service Client

Book candidate extraction runs in an external image-understanding service.
This module is the boundary: a protocol the rest of the code depends on and
an HTTP implementation of it.
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Protocol, Sequence

import httpx
from loguru import logger

from shelfscan.identification.exceptions import (
    MalformedResponseError,
    TransientSourceError,
)
from shelfscan.identification.json_extraction import find_json_object, strip_code_fences
from shelfscan.identification.records import DetectedCandidate


class FeedbackType(str, Enum):
    """What the user says is wrong with a detection."""
    TITLE_WRONG = "title_wrong"
    AUTHOR_WRONG = "author_wrong"
    BOTH_WRONG = "both_wrong"


@dataclass
class Correction:
    """Re-analysis answer for one book."""

    title: Optional[str]
    author: Optional[str]

    def to_dict(self) -> dict:
        return {"title": self.title, "author": self.author}


class ShelfScanner(Protocol):
    """Vision collaborator."""

    async def scan(
        self,
        location_id: str,
        target_files: Optional[Sequence[str]] = None,
    ) -> list[DetectedCandidate]:
        ...

    async def reanalyze(self, location_id: str, sources: Sequence[str], prompt: str) -> str:
        ...


def build_reanalysis_prompt(
    current_title: str,
    current_author: Optional[str],
    feedback_type: FeedbackType = FeedbackType.BOTH_WRONG,
    feedback_details: Optional[str] = None,
) -> str:
    """Prompt asking the vision model to re-read one book it got wrong."""
    prompt = f'I previously identified a book as "{current_title}" by "{current_author}".\n'
    prompt += "The user has indicated this is incorrect.\n"

    if feedback_type == FeedbackType.TITLE_WRONG:
        prompt += "The user specifically says the TITLE is wrong. Please re-examine the image to correct the title.\n"
    elif feedback_type == FeedbackType.AUTHOR_WRONG:
        prompt += "The user specifically says the AUTHOR is wrong. Please re-examine the image to correct the author.\n"
    else:
        prompt += "The user says BOTH the title and author are wrong.\n"

    if feedback_details:
        prompt += f'Additional User Feedback/Hint: "{feedback_details}"\n'

    prompt += (
        "\nPlease look at the provided image(s) again focusing ONLY on the book that looks like "
        'the one described above. Return a JSON object with two keys: "title" and "author". '
        "Do not return a list. Just the single best guess for this specific book. "
        "No markdown, just raw JSON."
    )
    return prompt


def parse_correction(text: str) -> Correction:
    """
    Parse the model's correction.

    A JSON list is reduced to its first element.

    Raises:
        ValueError: If no object can be decoded
    """
    cleaned = strip_code_fences(text or "")
    try:
        parsed = json.loads(cleaned)
    except ValueError:
        span = find_json_object(cleaned)
        if span is None:
            raise ValueError("no JSON object in response")
        parsed = json.loads(span)

    if isinstance(parsed, list):
        parsed = parsed[0] if parsed else None
    if not isinstance(parsed, dict):
        raise ValueError("response JSON is not an object")

    return Correction(title=parsed.get("title"), author=parsed.get("author"))


def parse_candidates(payload: Any) -> list[DetectedCandidate]:
    """Decode ``{"books": [...]}`` (or a bare list) into candidates."""
    books = payload.get("books") if isinstance(payload, dict) else payload
    candidates = []
    for book in books or []:
        if isinstance(book, dict) and book.get("title"):
            candidates.append(DetectedCandidate.from_dict(book))
    return candidates


class RemoteShelfScanner:
    """
    HTTP client for the vision service.

    Endpoints:
        POST {base_url}/scan       {"locationId", "targetFiles"} -> {"books": [...]}
        POST {base_url}/reanalyze  {"locationId", "sources", "prompt"} -> {"text": "..."}
    """

    NAME = "Vision service"

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 120.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._client = http_client
        self._owns_client = http_client is None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    def _headers(self) -> dict[str, str]:
        if self.api_key:
            return {"Authorization": f"Bearer {self.api_key}"}
        return {}

    async def _post(self, path: str, payload: dict) -> Any:
        client = await self._get_client()

        try:
            response = await client.post(
                f"{self.base_url}{path}",
                json=payload,
                headers=self._headers(),
            )
        except httpx.HTTPError as e:
            raise TransientSourceError(self.NAME, f"request failed: {e}") from e

        if response.status_code != 200:
            raise TransientSourceError(self.NAME, f"HTTP {response.status_code}")

        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponseError(self.NAME, "invalid JSON", response.text) from e

    async def scan(
        self,
        location_id: str,
        target_files: Optional[Sequence[str]] = None,
    ) -> list[DetectedCandidate]:
        """Detect books in a location's photos, optionally only ``target_files``."""
        payload = {"locationId": location_id}
        if target_files is not None:
            payload["targetFiles"] = list(target_files)

        logger.info(
            f"Scanning location {location_id} "
            f"({len(target_files) if target_files is not None else 'all'} photos)"
        )
        data = await self._post("/scan", payload)
        candidates = parse_candidates(data)
        logger.info(f"Vision service detected {len(candidates)} books")
        return candidates

    async def reanalyze(self, location_id: str, sources: Sequence[str], prompt: str) -> str:
        """Send a correction prompt with the candidate's photos; returns raw model text."""
        data = await self._post(
            "/reanalyze",
            {"locationId": location_id, "sources": list(sources), "prompt": prompt},
        )
        if isinstance(data, dict):
            return str(data.get("text") or "")
        return json.dumps(data)

    async def close(self):
        """Close HTTP client if this instance created it."""
        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None
