"""Primary source normalization helpers for grouping/comparison."""

from __future__ import annotations

import re
from typing import Any


_PROTOCOL_RE = re.compile(r"^https?://", re.IGNORECASE)
_WWW_RE = re.compile(r"^www\.", re.IGNORECASE)
_TRAILING_SLASHES_RE = re.compile(r"/+$")


def _normalize_once(value: str) -> str:
    normalized = value.strip()
    normalized = _PROTOCOL_RE.sub("", normalized)
    normalized = _WWW_RE.sub("", normalized)
    normalized = normalized.lower()
    return _TRAILING_SLASHES_RE.sub("", normalized)


def normalize_source(value: Any) -> str:
    """Normalize a primary source (URL or plain label) into a comparison key.

    - Trim surrounding whitespace
    - Strip a leading http:// or https://
    - Strip a leading www.
    - Lowercase
    - Strip trailing slashes

    Non-string and blank input yields "". Internal punctuation is kept, so
    plain labels only change case.

    The steps are repeated until the key stops changing, which keeps
    normalize_source(normalize_source(x)) == normalize_source(x) for inputs
    such as "http://http://example.com" or "example.com/ /".
    """
    if not isinstance(value, str):
        return ""
    normalized = _normalize_once(value)
    while True:
        again = _normalize_once(normalized)
        if again == normalized:
            return normalized
        normalized = again


def same_source(a: Any, b: Any) -> bool:
    """True when both identifiers normalize to the same non-empty key."""
    key = normalize_source(a)
    return bool(key) and key == normalize_source(b)
