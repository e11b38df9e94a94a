"""
Title Normalizer

Strips decorations that spine detection picks up but catalogs do not index:
- Trailing volume/part markers ("- Part 2", "Vol. 3", "Volume 1 of 4")
- "Then & Now" series decorations around a colon-delimited subtitle
"""

import re


VOLUME_SUFFIX = re.compile(
    r"(\s*-\s*)?\b(Part|Vol|Volume)\.?\s*\d+.*$",
    re.IGNORECASE,
)

DECORATION_PREFIX = re.compile(
    r"^Then\s*(&|and)\s*Now\s*:\s*",
    re.IGNORECASE,
)

DECORATION_SUFFIX = re.compile(
    r"[:\s]*Then\s*(&|and)\s*Now$",
    re.IGNORECASE,
)

_PATTERNS = (VOLUME_SUFFIX, DECORATION_PREFIX, DECORATION_SUFFIX)


def _strip_once(title: str) -> str:
    cleaned = title
    for pattern in _PATTERNS:
        cleaned = pattern.sub("", cleaned)
    return cleaned.strip()


def normalize_title(raw_title: str) -> str:
    """
    Normalize a detected title for catalog lookups.

    Never fails: a title that would be stripped to nothing is returned
    trimmed instead. Repeats until a fixed point so the result is stable
    under re-normalization.

    Args:
        raw_title: Title as read from the spine

    Returns:
        Cleaned title
    """
    if not raw_title:
        return raw_title or ""

    title = raw_title.strip()
    # Every accepted pass shortens the title
    while True:
        cleaned = _strip_once(title)
        if not cleaned or cleaned == title:
            break
        title = cleaned
    return title
