"""
Unit tests for source adapters and their shared helpers.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import httpx
import pytest

from shelfscan.identification.exceptions import (
    RetryExhaustedError,
    TransientSourceError,
)
from shelfscan.identification.generative_search import (
    PARSE_FAILURE,
    GenerativeSearchClient,
)
from shelfscan.identification.google_books import GoogleBooksClient, parse_volume
from shelfscan.identification.json_extraction import find_json_object, parse_json_object
from shelfscan.identification.open_library import OpenLibraryClient, latest_edition, pick_isbn
from shelfscan.identification.records import SourceKind
from shelfscan.identification.retry import NO_RETRY, RetryPolicy
from tests.conftest import make_openai_client, mock_http_client


DUNE_VOLUME = {
    "volumeInfo": {
        "title": "Dune",
        "authors": ["Frank Herbert"],
        "publisher": "Penguin",
        "publishedDate": "2005-08-02",
        "description": "Set on the desert planet Arrakis.",
        "industryIdentifiers": [
            {"type": "ISBN_10", "identifier": "0441013597"},
            {"type": "ISBN_13", "identifier": "9780441013593"},
        ],
        "imageLinks": {
            "smallThumbnail": "http://books.google.com/small",
            "thumbnail": "http://books.google.com/thumb",
        },
        "infoLink": "https://books.google.com/books?id=B1hSG45JCX4C",
    }
}


# =============================================================================
# Helpers
# =============================================================================

class TestJsonExtraction:
    """Tests for JSON extraction from model output."""

    def test_object_inside_prose(self):
        text = 'Here you go: {"title": "Dune", "meta": {"year": 1965}} Hope that helps.'
        assert find_json_object(text) == '{"title": "Dune", "meta": {"year": 1965}}'

    def test_braces_inside_strings(self):
        text = '{"title": "Curly {Braces}", "author": "A \\"Quoted\\" Name"}'
        assert parse_json_object(text)["title"] == "Curly {Braces}"

    def test_fenced_json(self):
        text = '```json\n{"isbn": "9780441013593"}\n```'
        assert parse_json_object(text) == {"isbn": "9780441013593"}

    def test_no_object_raises(self):
        with pytest.raises(ValueError):
            parse_json_object("I could not find that book.")

    def test_unbalanced_prefix_is_skipped(self):
        assert find_json_object('{ broken {"ok": true}') == '{"ok": true}'


class TestRetryPolicy:
    """Tests for the bounded retry combinator."""

    async def test_succeeds_after_transient_failures(self):
        attempts = []

        async def flaky():
            attempts.append(1)
            if len(attempts) < 3:
                raise TransientSourceError("test", "timeout")
            return "ok"

        result = await RetryPolicy(attempts=3, delay=0.0).run(flaky, source="test")

        assert result == "ok"
        assert len(attempts) == 3

    async def test_exhaustion_raises(self):
        async def failing():
            raise TransientSourceError("test", "HTTP 503")

        with pytest.raises(RetryExhaustedError) as exc_info:
            await RetryPolicy(attempts=2, delay=0.0).run(failing, source="test")

        assert exc_info.value.attempts == 2
        assert isinstance(exc_info.value.last_error, TransientSourceError)

    async def test_other_errors_propagate_immediately(self):
        attempts = []

        async def broken():
            attempts.append(1)
            raise KeyError("bug")

        with pytest.raises(KeyError):
            await RetryPolicy(attempts=3, delay=0.0).run(broken)

        assert len(attempts) == 1

    async def test_no_retry_policy_single_attempt(self):
        attempts = []

        async def failing():
            attempts.append(1)
            raise TransientSourceError("test", "timeout")

        with pytest.raises(RetryExhaustedError):
            await NO_RETRY.run(failing)

        assert len(attempts) == 1

    def test_backoff_delay(self):
        policy = RetryPolicy(attempts=4, delay=1.0, backoff=2.0)
        assert [policy.delay_after(n) for n in (1, 2, 3)] == [1.0, 2.0, 4.0]


# =============================================================================
# Structured catalog
# =============================================================================

class TestGoogleBooksClient:
    """Tests for GoogleBooksClient."""

    def test_parse_volume(self):
        record = parse_volume(DUNE_VOLUME)

        assert record.source == SourceKind.CATALOG
        assert record.isbn == "9780441013593"
        assert record.cover_url == "https://books.google.com/thumb"
        assert record.info_link == "https://books.google.com/books?id=B1hSG45JCX4C"
        assert record.authors == ["Frank Herbert"]

    def test_parse_volume_missing_fields(self):
        record = parse_volume({"volumeInfo": {"title": "Untitled Notes"}})

        assert record.title == "Untitled Notes"
        assert record.authors == []
        assert record.isbn is None
        assert record.cover_url is None

    async def test_query_sends_title_and_author(self, fast_retry):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"items": [DUNE_VOLUME]})

        client = GoogleBooksClient(
            api_key="test-key",
            http_client=mock_http_client(handler),
            retry_policy=fast_retry,
        )
        record = await client.query("Dune", "Frank Herbert")

        assert record.title == "Dune"
        params = requests[0].url.params
        assert params["q"] == 'intitle:"Dune" inauthor:"Frank Herbert"'
        assert params["maxResults"] == "1"
        assert params["key"] == "test-key"

    async def test_falls_back_to_title_only(self, fast_retry):
        requests = []

        def handler(request):
            requests.append(request)
            if "inauthor" in request.url.params["q"]:
                return httpx.Response(200, json={"totalItems": 0})
            return httpx.Response(200, json={"items": [DUNE_VOLUME]})

        client = GoogleBooksClient(http_client=mock_http_client(handler), retry_policy=fast_retry)
        record = await client.query("Dune", "F. Herbert")

        assert record is not None
        assert len(requests) == 2
        assert requests[1].url.params["q"] == 'intitle:"Dune"'

    async def test_retries_server_errors(self, fast_retry):
        responses = iter([httpx.Response(503), httpx.Response(200, json={"items": [DUNE_VOLUME]})])

        client = GoogleBooksClient(
            http_client=mock_http_client(lambda request: next(responses)),
            retry_policy=fast_retry,
        )
        record = await client.query("Dune")

        assert record.isbn == "9780441013593"

    async def test_persistent_failure_returns_none(self, fast_retry):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(500)

        client = GoogleBooksClient(http_client=mock_http_client(handler), retry_policy=fast_retry)
        record = await client.query("Dune", "Frank Herbert")

        assert record is None
        # Two query variants, three attempts each
        assert len(requests) == 6

    async def test_client_error_is_no_match(self, fast_retry):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(400, json={"error": {"message": "bad query"}})

        client = GoogleBooksClient(http_client=mock_http_client(handler), retry_policy=fast_retry)

        assert await client.query("Dune") is None
        assert len(requests) == 1

    async def test_timeout_returns_none(self, fast_retry):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        client = GoogleBooksClient(http_client=mock_http_client(handler), retry_policy=fast_retry)

        assert await client.query("Dune") is None

    async def test_invalid_json_returns_none(self, fast_retry):
        client = GoogleBooksClient(
            http_client=mock_http_client(lambda request: httpx.Response(200, text="<html>")),
            retry_policy=fast_retry,
        )

        assert await client.query("Dune") is None


# =============================================================================
# Open catalog
# =============================================================================

class TestOpenLibraryClient:
    """Tests for OpenLibraryClient."""

    @staticmethod
    def handler(requests):
        def respond(request):
            requests.append(request)
            path = request.url.path
            if path == "/search.json":
                return httpx.Response(200, json={"docs": [{
                    "key": "/works/OL893415W",
                    "title": "Dune",
                    "author_name": ["Frank Herbert"],
                    "first_publish_year": 1965,
                    "cover_i": 11481354,
                }]})
            if path == "/works/OL893415W.json":
                return httpx.Response(200, json={
                    "description": {"type": "/type/text", "value": "Desert planet epic."},
                })
            if path == "/works/OL893415W/editions.json":
                return httpx.Response(200, json={"entries": [
                    {"publish_date": "1990", "isbn_13": ["9780441172719"], "publishers": ["Ace"]},
                    {"publish_date": "Aug 2, 2005", "isbn_10": ["0441013597"], "publishers": ["Ace Books"]},
                    {"publishers": ["Undated Press"]},
                ]})
            return httpx.Response(404)
        return respond

    def test_pick_isbn_prefers_13_digits(self):
        assert pick_isbn(["0441013597", "9780441013593"]) == "9780441013593"
        assert pick_isbn([]) is None

    def test_latest_edition(self):
        entries = [{"publish_date": "1990"}, {"publish_date": "2005"}, {}]
        assert latest_edition(entries) == {"publish_date": "2005"}

    async def test_query_builds_full_record(self, fast_retry):
        requests = []
        client = OpenLibraryClient(
            http_client=mock_http_client(self.handler(requests)),
            retry_policy=fast_retry,
        )

        record = await client.query("Dune", "Frank Herbert")

        assert record.source == SourceKind.OPEN_CATALOG
        assert record.title == "Dune"
        assert record.authors == ["Frank Herbert"]
        assert record.description == "Desert planet epic."
        assert record.cover_url == "https://covers.openlibrary.org/b/id/11481354-L.jpg"
        assert record.info_link == "https://openlibrary.org/works/OL893415W"
        assert record.publication_date == "1965"
        # Latest edition fills in what the search document lacks
        assert record.isbn == "0441013597"
        assert record.publisher == "Ace Books"

    async def test_unknown_author_not_sent(self, fast_retry):
        requests = []
        client = OpenLibraryClient(
            http_client=mock_http_client(self.handler(requests)),
            retry_policy=fast_retry,
        )

        await client.query("Dune", "Unknown")

        search = requests[0].url.params
        assert search["title"] == "Dune"
        assert "author" not in search

    async def test_no_docs_returns_none(self, fast_retry):
        client = OpenLibraryClient(
            http_client=mock_http_client(lambda request: httpx.Response(200, json={"docs": []})),
            retry_policy=fast_retry,
        )

        assert await client.query("Nonexistent") is None

    async def test_server_error_returns_none(self, fast_retry):
        client = OpenLibraryClient(
            http_client=mock_http_client(lambda request: httpx.Response(502)),
            retry_policy=fast_retry,
        )

        assert await client.query("Dune") is None


# =============================================================================
# Generative search
# =============================================================================

class TestGenerativeSearchClient:
    """Tests for GenerativeSearchClient."""

    async def test_parses_fenced_answer(self, fast_retry):
        client, create = make_openai_client(
            '```json\n{"title": "Dune", "authors": ["Frank Herbert"], "isbn": "9780441013593", '
            '"publisher": "Ace", "publicationDate": "2005", "description": "Epic."}\n```'
        )
        search = GenerativeSearchClient(client=client, retry_policy=fast_retry)

        record = await search.query("Dune", "Frank Herbert")

        assert record.source == SourceKind.GENERATIVE_SEARCH
        assert record.authors == ["Frank Herbert"]
        assert record.publication_date == "2005"
        assert record.cover_url is None
        assert create.await_args.kwargs["model"] == "sonar-pro"

    async def test_single_author_string(self, fast_retry):
        client, _ = make_openai_client('{"title": "Dune", "author": "Frank Herbert"}')
        search = GenerativeSearchClient(client=client, retry_policy=fast_retry)

        record = await search.query("Dune")

        assert record.authors == ["Frank Herbert"]

    async def test_retries_unparseable_answer(self, fast_retry):
        client, create = make_openai_client(
            "Sorry, I am not sure.",
            '{"title": "Dune", "isbn": "9780441013593"}',
        )
        search = GenerativeSearchClient(client=client, retry_policy=fast_retry)

        record = await search.query("Dune")

        assert record.isbn == "9780441013593"
        assert create.await_count == 2

    async def test_soft_error_after_exhaustion(self, fast_retry):
        client, _ = make_openai_client("no json", "still no json", "never json")
        search = GenerativeSearchClient(client=client, retry_policy=fast_retry)

        details = await search.fetch_details_or_error("Dune")

        assert details == {"error": PARSE_FAILURE, "raw": "never json"}

    async def test_query_returns_none_after_exhaustion(self, fast_retry):
        client, _ = make_openai_client("a", "b", "c")
        search = GenerativeSearchClient(client=client, retry_policy=fast_retry)

        assert await search.query("Dune") is None

    async def test_unconfigured_client_skips(self):
        search = GenerativeSearchClient(api_key=None)

        assert not search.is_configured
        assert await search.query("Dune") is None

    def test_prompt_uses_unknown_for_missing_author(self):
        search = GenerativeSearchClient(api_key="key")

        prompt = search.build_prompt("Dune", None)

        assert 'the book "Dune" by "Unknown"' in prompt

    async def test_close_releases_created_client(self, monkeypatch):
        created = SimpleNamespace(close=AsyncMock())
        monkeypatch.setattr("openai.AsyncOpenAI", lambda **kwargs: created)
        search = GenerativeSearchClient(api_key="key")
        search._get_client()

        await search.close()

        created.close.assert_awaited_once()

    async def test_close_leaves_injected_client_open(self):
        client, _ = make_openai_client()
        client.close = AsyncMock()
        search = GenerativeSearchClient(client=client)

        await search.close()

        client.close.assert_not_awaited()
