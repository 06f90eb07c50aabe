"""Header and cell-value normalization for spreadsheet imports.

Handles header match keys, whitespace, numeric cells rendered as text,
and the identity fields (code number, Aadhaar number).
"""
from __future__ import annotations

import math
import re
from typing import Any

_HEADER_PUNCT = re.compile(r"[^\w\s]|_")
_WHITESPACE = re.compile(r"\s+")


def normalize_whitespace(text: str) -> str:
    """Normalize whitespace: collapse multiple spaces, remove leading/trailing."""
    text = _WHITESPACE.sub(" ", text)
    return text.strip()


def normalize_header(raw: Any) -> str:
    """Canonical match key for a column header.

    Lower-cases, drops punctuation and underscores, collapses whitespace.
    Underscores are removed rather than turned into spaces, so "Code_No"
    becomes "codeno" while "Code No." becomes "code no".
    """
    if raw is None:
        return ""
    text = str(raw).lower()
    text = _HEADER_PUNCT.sub("", text)
    return normalize_whitespace(text)


def is_blank(value: Any) -> bool:
    """True for None, NaN and whitespace-only strings."""
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def clean_text(value: Any) -> str:
    """Coerce a cell to a trimmed string; blanks become "".

    Integral floats (how spreadsheets hand back numeric cells) lose the
    trailing ``.0`` so ``1234.0`` reads as ``"1234"``.
    """
    if is_blank(value):
        return ""
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def normalize_code_no(value: Any) -> str:
    return clean_text(value)


def code_no_key(value: Any) -> str:
    """Comparison key for code numbers; ``str.lower`` like SQL ``lower()`` in the store."""
    return normalize_code_no(value).lower()


def normalize_aadhaar(value: Any) -> str:
    """Remove every whitespace character, not only the outer ones."""
    return _WHITESPACE.sub("", clean_text(value))
