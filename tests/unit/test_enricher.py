"""
Unit tests for the metadata enricher and batch orchestration.
"""

import asyncio

import pytest

from shelfscan.identification.enricher import BatchProgress, MetadataEnricher
from shelfscan.identification.exceptions import InvalidCandidateError, TransientSourceError
from shelfscan.identification.records import (
    DetectedCandidate,
    PartialRecord,
    SourceKind,
    UnifiedRecord,
)
from tests.conftest import FakeSource

pytestmark = pytest.mark.asyncio


def catalog_answer(title):
    return PartialRecord(
        source=SourceKind.CATALOG,
        title=title,
        authors=["Catalog Author"],
        isbn="9780000000001",
        info_link=f"https://books.google.com/{title}",
    )


class TestEnrich:
    """Tests for single-candidate enrichment."""

    async def test_merges_catalog_and_generative(
        self, dune_candidate, catalog_record, generative_record
    ):
        enricher = MetadataEnricher(
            catalog=FakeSource(catalog_record),
            generative=FakeSource(generative_record),
        )

        record = await enricher.enrich(dune_candidate)

        assert record.isbn == "9780441172719"
        assert record.publisher == "Ace Books"
        assert record.source == SourceKind.CATALOG

    async def test_open_catalog_only_when_catalog_empty(self, dune_candidate, catalog_record):
        open_catalog = FakeSource(catalog_record)

        enricher = MetadataEnricher(catalog=FakeSource(catalog_record), open_catalog=open_catalog)
        await enricher.enrich(dune_candidate)
        assert open_catalog.calls == []

        enricher = MetadataEnricher(catalog=FakeSource(None), open_catalog=open_catalog)
        await enricher.enrich(dune_candidate)
        assert open_catalog.calls == [("Dune", "Frank Herbert")]

    async def test_failing_source_is_ignored(self, dune_candidate, generative_record):
        enricher = MetadataEnricher(
            catalog=FakeSource(error=RuntimeError("connection reset")),
            generative=FakeSource(generative_record),
        )

        record = await enricher.enrich(dune_candidate)

        assert record.source == SourceKind.GENERATIVE_SEARCH
        assert record.isbn == "0441013597"

    async def test_no_sources_keeps_detected(self, dune_candidate):
        record = await MetadataEnricher().enrich(dune_candidate)

        assert record == UnifiedRecord.from_detected(dune_candidate)

    async def test_untitled_candidate_rejected(self):
        catalog = FakeSource(None)
        enricher = MetadataEnricher(catalog=catalog)

        with pytest.raises(InvalidCandidateError):
            await enricher.enrich(DetectedCandidate(title="   ", author="Someone"))

        assert catalog.calls == []

    async def test_sources_run_concurrently(self, dune_candidate, generative_record):
        generative_started = asyncio.Event()

        class WaitingCatalog:
            async def query(self, title, author=None):
                await generative_started.wait()
                return None

        class SignallingGenerative:
            async def query(self, title, author=None):
                generative_started.set()
                return generative_record

        enricher = MetadataEnricher(catalog=WaitingCatalog(), generative=SignallingGenerative())

        record = await asyncio.wait_for(enricher.enrich(dune_candidate), timeout=2)

        assert record.source == SourceKind.GENERATIVE_SEARCH


class TestEnrichAll:
    """Tests for batch enrichment."""

    @pytest.fixture
    def candidates(self):
        return [
            DetectedCandidate("First Book", "Author One", ("IMG_1.jpg",)),
            DetectedCandidate("Broken Book", "Author Two", ("IMG_2.jpg",)),
            DetectedCandidate("Third Book", "Author Three", ("IMG_3.jpg",)),
        ]

    async def test_progress_and_order_with_failing_candidate(self, candidates):
        enricher = MetadataEnricher(catalog=FakeSource(catalog_answer))
        original_lookup = enricher.lookup

        async def lookup(candidate):
            if candidate.title == "Broken Book":
                raise RuntimeError("reconciliation blew up")
            return await original_lookup(candidate)

        enricher.lookup = lookup

        progress = []
        records = [r async for r in enricher.enrich_all(candidates, on_progress=progress.append)]

        assert progress == [BatchProgress(1, 3), BatchProgress(2, 3), BatchProgress(3, 3)]
        assert progress[-1].done
        assert [r.title for r in records] == ["First Book", "Broken Book", "Third Book"]
        assert records[0].is_enriched
        assert records[1] == UnifiedRecord.from_detected(candidates[1])
        assert records[2].is_enriched

    async def test_candidate_whose_sources_all_fail_keeps_detected(self, candidates):
        def catalog(title):
            if title == "Broken Book":
                raise TransientSourceError("Google Books", "HTTP 503")
            return catalog_answer(title)

        def generative(title):
            if title == "Broken Book":
                raise TransientSourceError("Perplexity", "completion failed")
            return None

        enricher = MetadataEnricher(
            catalog=FakeSource(catalog),
            open_catalog=FakeSource(None),
            generative=FakeSource(generative),
        )

        progress = []
        records = [r async for r in enricher.enrich_all(candidates, on_progress=progress.append)]

        assert progress == [BatchProgress(1, 3), BatchProgress(2, 3), BatchProgress(3, 3)]
        assert [r.title for r in records] == ["First Book", "Broken Book", "Third Book"]
        assert records[0].is_enriched
        assert records[1] == UnifiedRecord.from_detected(candidates[1])
        assert records[2].is_enriched

    async def test_candidates_are_processed_one_at_a_time(self, candidates):
        in_flight = []
        peak = []

        class SlowSource:
            async def query(self, title, author=None):
                in_flight.append(title)
                peak.append(len(in_flight))
                await asyncio.sleep(0)
                in_flight.remove(title)
                return None

        enricher = MetadataEnricher(catalog=SlowSource())
        [r async for r in enricher.enrich_all(candidates)]

        assert max(peak) == 1

    async def test_empty_batch_fails_before_iteration(self):
        catalog = FakeSource(None)
        enricher = MetadataEnricher(catalog=catalog)

        with pytest.raises(InvalidCandidateError):
            enricher.enrich_all([])

        assert catalog.calls == []

    async def test_untitled_candidate_fails_whole_batch(self, candidates):
        catalog = FakeSource(None)
        enricher = MetadataEnricher(catalog=catalog)

        with pytest.raises(InvalidCandidateError):
            enricher.enrich_all(candidates + [DetectedCandidate(title="")])

        assert catalog.calls == []

    async def test_progress_callback_errors_do_not_stop_batch(self, candidates):
        def explode(progress):
            raise ValueError("UI went away")

        enricher = MetadataEnricher()
        records = [r async for r in enricher.enrich_all(candidates, on_progress=explode)]

        assert len(records) == 3
