"""Resolve canonical fields to the columns actually present in a sheet.

Exact matching on normalized headers, in alias-priority order, with an
optional rapidfuzz fallback for sheets whose headers are misspelled.
"""
from __future__ import annotations

import logging
from typing import Iterable, Mapping, Sequence

from rapidfuzz import fuzz, process

from .normalization import normalize_header

logger = logging.getLogger(__name__)


class HeaderResolver:
    """Looks up sheet columns by alias.

    Example:
        >>> resolver = HeaderResolver(["Valid", "Valid Up-to"])
        >>> resolver.resolve(["Valid Up-to", "valid"])
        'Valid Up-to'
    """

    def __init__(self, headers: Iterable[str], fuzzy_threshold: int | None = None) -> None:
        """Initialize resolver.

        Args:
            headers: Raw headers of the sheet, left to right
            fuzzy_threshold: Minimum rapidfuzz ratio (0-100) for the fallback;
                None disables fuzzy matching
        """
        self.fuzzy_threshold = fuzzy_threshold
        self._by_key: dict[str, str] = {}  # normalized -> original

        for header in headers:
            key = normalize_header(header)
            if key and key not in self._by_key:
                self._by_key[key] = header

    @property
    def keys(self) -> list[str]:
        return list(self._by_key)

    def resolve(self, aliases: Sequence[str]) -> str | None:
        """Return the sheet header for the first matching alias, else None."""
        for alias in aliases:
            header = self._by_key.get(normalize_header(alias))
            if header is not None:
                return header

        if self.fuzzy_threshold is None or not self._by_key:
            return None

        for alias in aliases:
            key = normalize_header(alias)
            if not key:
                continue
            match = process.extractOne(
                key,
                self.keys,
                scorer=fuzz.ratio,
                score_cutoff=self.fuzzy_threshold,
            )
            if match:
                matched_key, score, _ = match
                logger.debug(f"Fuzzy header match {alias!r} -> {self._by_key[matched_key]!r} ({score:.0f})")
                return self._by_key[matched_key]
        return None

    def resolve_all(self, alias_table: Mapping[str, Sequence[str]]) -> dict[str, str | None]:
        """Resolve every canonical field of ``alias_table``."""
        return {field: self.resolve(aliases) for field, aliases in alias_table.items()}
