"""Small text helpers shared by the parser and the normalizers."""

import re
import unicodedata
from typing import Any


def clean_cell(value: Any) -> str:
    """Convert a raw cell value to a stripped string ('' for None)."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def collapse_whitespace(text: str) -> str:
    """Collapse runs of whitespace (including non-breaking spaces) to one space."""
    return re.sub(r'\s+', ' ', text).strip()


def fold_key(text: str) -> str:
    """
    Lookup key for alias tables: lower-cased, accents removed, whitespace collapsed.

    Only used for keys. Values shown to users keep their diacritics.
    """
    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return collapse_whitespace(stripped.lower())
