"""Duplicate detection against the persisted store."""
from __future__ import annotations

import logging

from ..repository import PersonnelRecord, PersonnelStore
from .mapping import PersonnelCandidate
from .normalization import code_no_key

logger = logging.getLogger(__name__)


async def find_duplicate(
    store: PersonnelStore,
    candidate: PersonnelCandidate,
    exclude_id: int | None = None,
) -> PersonnelRecord | None:
    """Return the stored record sharing an identity field with ``candidate``.

    Code numbers match case-insensitively, Aadhaar numbers exactly; either
    one matching is a collision. A candidate with neither field has nothing
    to compare and yields None without querying (callers reject it first).
    ``exclude_id`` leaves the record being updated out of the comparison.
    """
    if not candidate.has_identity:
        return None

    existing = await store.find_by_identity(
        candidate.code_no or None,
        candidate.adhaar_no or None,
        exclude_id=exclude_id,
    )
    if existing is not None:
        logger.debug(f"Candidate code={candidate.code_no!r} collides with record {existing.id}")
    return existing


class BatchIdentityIndex:
    """Identities accepted earlier in one import run (batched persistence)."""

    def __init__(self) -> None:
        self._codes: set[str] = set()
        self._aadhaars: set[str] = set()

    def __contains__(self, candidate: PersonnelCandidate) -> bool:
        if candidate.code_no and code_no_key(candidate.code_no) in self._codes:
            return True
        return bool(candidate.adhaar_no) and candidate.adhaar_no in self._aadhaars

    def add(self, candidate: PersonnelCandidate) -> None:
        if candidate.code_no:
            self._codes.add(code_no_key(candidate.code_no))
        if candidate.adhaar_no:
            self._aadhaars.add(candidate.adhaar_no)
