"""
Generative Search Client

Asks a search-grounded LLM (Perplexity, through its OpenAI-compatible API)
for the fields catalogs often miss, as strict JSON. Answers are not
guaranteed to be pure JSON, so the first balanced object is extracted and a
parse failure retries the whole query.
"""

from typing import Any, Optional

from loguru import logger

from shelfscan.identification.exceptions import (
    MalformedResponseError,
    RetryExhaustedError,
    TransientSourceError,
)
from shelfscan.identification.json_extraction import parse_json_object
from shelfscan.identification.records import (
    PartialRecord,
    SourceKind,
    UNKNOWN_AUTHOR,
)
from shelfscan.identification.retry import RetryPolicy


SYSTEM_PROMPT = "You are a helpful bibliophile assistant who outputs only strict JSON."

DETAILS_PROMPT = """
Search for and provide the following details for the book "{title}" by "{author}".
You must perform a search to find the most accurate and complete information, specifically the ISBN and Publisher.
If the provided author appears to be multiple people (e.g. separated by hyphens, 'and', '&', or just spaces on the cover), verify the correct list of authors.

Details required:
- Title (the full published title)
- Author(s) (Return as an array of strings)
- ISBN (prefer 13-digit, otherwise 10-digit)
- Publisher
- Publication year or date (YYYY or YYYY-MM-DD)
- Description (Short summary)

Return ONLY a valid JSON object with these exact keys: "title", "authors", "isbn", "publisher", "publicationDate", "description".
Do not include any other text or markdown formatting.
"""

PARSE_FAILURE = "Failed to parse details"


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return None


def _authors(details: dict[str, Any]) -> list[str]:
    raw = details.get("authors")
    if raw is None:
        raw = details.get("author")
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, list):
        return []
    return [a.strip() for a in raw if isinstance(a, str) and a.strip()]


def details_to_record(details: dict[str, Any]) -> PartialRecord:
    """Map the model's JSON answer onto a PartialRecord; absent fields become None."""
    return PartialRecord(
        source=SourceKind.GENERATIVE_SEARCH,
        title=_text(details.get("title")),
        authors=_authors(details),
        isbn=_text(details.get("isbn")),
        publisher=_text(details.get("publisher")),
        publication_date=_text(details.get("publicationDate")),
        description=_text(details.get("description")),
        cover_url=None,
        info_link=None,
    )


class GenerativeSearchClient:
    """
    Perplexity client for bibliographic lookups.

    Accepts any object with the OpenAI ``chat.completions.create`` coroutine.
    """

    DEFAULT_BASE_URL = "https://api.perplexity.ai"
    NAME = "Perplexity"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "sonar-pro",
        base_url: str = DEFAULT_BASE_URL,
        client: Any = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.retry_policy = retry_policy or RetryPolicy()
        self._client = client
        self._owns_client = client is None

    def _get_client(self):
        """Lazy initialization of the OpenAI-compatible client."""
        if self._client is None:
            import openai
            self._client = openai.AsyncOpenAI(api_key=self.api_key, base_url=self.base_url)
        return self._client

    @property
    def is_configured(self) -> bool:
        return self._client is not None or bool(self.api_key)

    def build_prompt(self, title: str, author: Optional[str]) -> str:
        return DETAILS_PROMPT.format(title=title, author=author or UNKNOWN_AUTHOR)

    async def _complete(self, title: str, author: Optional[str]) -> str:
        client = self._get_client()

        try:
            response = await client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": self.build_prompt(title, author)},
                ],
            )
        except Exception as e:
            raise TransientSourceError(self.NAME, f"completion failed: {e}") from e

        try:
            return response.choices[0].message.content or ""
        except (AttributeError, IndexError) as e:
            raise MalformedResponseError(self.NAME, "empty completion") from e

    async def _details_once(self, title: str, author: Optional[str]) -> dict[str, Any]:
        content = await self._complete(title, author)
        try:
            return parse_json_object(content)
        except ValueError as e:
            raise MalformedResponseError(self.NAME, f"unparseable answer: {e}", content) from e

    async def fetch_details(self, title: str, author: Optional[str] = None) -> dict[str, Any]:
        """
        Raw details dict from the model.

        Raises:
            SourceError: When every attempt failed
        """
        return await self.retry_policy.run(
            lambda: self._details_once(title, author),
            source=self.NAME,
        )

    async def fetch_details_or_error(
        self,
        title: str,
        author: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Like ``fetch_details`` but returns a soft error object instead of raising.

        A parse failure yields ``{"error": ..., "raw": <last answer>}``.
        """
        try:
            return await self.fetch_details(title, author)
        except RetryExhaustedError as e:
            raw = getattr(e.last_error, "raw", "")
            logger.error(f"Perplexity details failed for '{title}': {e}")
            if isinstance(e.last_error, MalformedResponseError):
                return {"error": PARSE_FAILURE, "raw": raw}
            return {"error": str(e.last_error or e)}

    async def query(self, title: str, author: Optional[str] = None) -> Optional[PartialRecord]:
        """
        Look up a book.

        Returns:
            PartialRecord, or None if the model never produced usable JSON
        """
        if not self.is_configured:
            logger.debug("Perplexity API key not configured, skipping generative search")
            return None

        try:
            details = await self.fetch_details(title, author)
            return details_to_record(details)
        except Exception as e:
            logger.warning(f"Perplexity lookup failed for '{title}': {e}")
            return None

    async def close(self):
        """Close the OpenAI client if this instance created it."""
        if self._client is not None and self._owns_client:
            await self._client.close()
            self._client = None
