"""
JSON extraction from free-form model output.

Generative models wrap answers in prose or markdown fences; this pulls out
the first balanced ``{...}`` object.
"""

import json
import re
from typing import Any, Optional


_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)


def strip_code_fences(text: str) -> str:
    """Remove markdown code fence markers."""
    return _FENCE.sub("", text).strip()


def find_json_object(text: str) -> Optional[str]:
    """
    Return the first balanced ``{...}`` span in ``text``.

    Braces inside JSON string literals are ignored.
    """
    if not text:
        return None

    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False

        for index in range(start, len(text)):
            char = text[index]

            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue

            if char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start:index + 1]

        # Unbalanced from this brace; try the next one
        start = text.find("{", start + 1)

    return None


def parse_json_object(text: str) -> dict[str, Any]:
    """
    Decode the first JSON object found in ``text``.

    Raises:
        ValueError: If no object can be found or decoded
    """
    cleaned = strip_code_fences(text or "")
    span = find_json_object(cleaned)
    if span is None:
        raise ValueError("no JSON object in response")

    data = json.loads(span)
    if not isinstance(data, dict):
        raise ValueError("response JSON is not an object")
    return data
