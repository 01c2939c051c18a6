"""
Text utilities shared by search, suggestions and header classification.

Everything compared by the engine goes through normalize_text first, so
"Café  Ltd" and "cafe ltd" produce the same searchable blob.
"""

import re
import unicodedata
from typing import Iterable, Optional

_WHITESPACE = re.compile(r"\s+")
_HEADER_SEPARATORS = re.compile(r"[\s_\-./#()\[\]:]+")


def strip_accents(value: str) -> str:
    """
    Remove accent marks.

    "Décoration García" → "Decoration Garcia"
    """
    # NFD decomposition separates base chars from accents
    normalized = unicodedata.normalize('NFD', value)
    return ''.join(
        c for c in normalized
        if unicodedata.category(c) != 'Mn'
    )


def normalize_text(value: Optional[object]) -> str:
    """
    Normalize a value for comparison.

    - "  ACME  Cleaning " → "acme cleaning"
    - "José's Cleaning" → "jose's cleaning"
    - None → ""

    Args:
        value: Any value; non-strings are converted with str()

    Returns:
        Lowercase, accent-free string with collapsed whitespace
    """
    if value is None:
        return ""

    text = str(value).strip()
    if not text:
        return ""

    text = strip_accents(text).lower()
    return _WHITESPACE.sub(" ", text)


def tokenize(value: Optional[object]) -> list[str]:
    """Split normalized text into whitespace tokens."""
    text = normalize_text(value)
    return text.split(" ") if text else []


def build_searchable_blob(values: Iterable[Optional[object]]) -> str:
    """
    Flatten field values into one comparable string.

    Empty values are skipped; order is preserved.

    Args:
        values: Field values in the order configured for the catalog

    Returns:
        Normalized values joined by single spaces
    """
    parts = [normalize_text(v) for v in values]
    return " ".join(p for p in parts if p)


def normalize_header(header: Optional[object]) -> str:
    """
    Normalize a spreadsheet column header for keyword rules.

    "Unit Price (ex GST)" → "unitpriceexgst"
    "line_total" → "linetotal"
    """
    text = normalize_text(header)
    return _HEADER_SEPARATORS.sub("", text)
