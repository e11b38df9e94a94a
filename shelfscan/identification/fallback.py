"""
Fallback Query Strategy

Widens a catalog query step by step until the catalog returns something.
Author strings read off spines are often noisy or missing while titles are
fairly reliable, so the author constraint is dropped before the title is
touched.
"""

from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from loguru import logger

from shelfscan.identification.records import known_author
from shelfscan.identification.title_normalizer import normalize_title


T = TypeVar("T")

SearchFn = Callable[[str, Optional[str]], Awaitable[list[T]]]


@dataclass(frozen=True)
class QueryVariant:
    """One (title, author) combination to try."""

    title: str
    author: Optional[str]
    label: str


def query_variants(title: str, author: Optional[str]) -> list[QueryVariant]:
    """
    Build the ordered list of query variants.

    1. exact title + author
    2. normalized title + author (if normalization changed the title)
    3. exact title alone
    4. normalized title alone (if normalization changed the title and an
       author was supplied)

    Variants 1 and 2 are skipped when the author is missing or "Unknown".
    """
    author = known_author(author)
    normalized = normalize_title(title)
    changed = bool(normalized) and normalized != title

    variants = []
    if author:
        variants.append(QueryVariant(title, author, "exact+author"))
        if changed:
            variants.append(QueryVariant(normalized, author, "normalized+author"))

    variants.append(QueryVariant(title, None, "exact"))

    if changed and author:
        variants.append(QueryVariant(normalized, None, "normalized"))

    return variants


async def search_with_fallback(
    search: SearchFn,
    title: str,
    author: Optional[str] = None,
    source: str = "catalog",
) -> list[T]:
    """
    Run ``search`` over the query variants, stopping at the first hit.

    Args:
        search: Coroutine taking ``(title, author)`` and returning hits
        title: Detected title
        author: Detected author, may be None or "Unknown"
        source: Name used in log messages

    Returns:
        Hits from the first variant that produced any, else ``[]``
    """
    for variant in query_variants(title, author):
        items = await search(variant.title, variant.author)
        if items:
            logger.debug(f"{source} matched '{title}' using {variant.label} query")
            return items

    logger.info(f"{source} found nothing for '{title}' after all query variants")
    return []
