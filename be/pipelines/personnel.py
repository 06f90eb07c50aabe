"""Single-record personnel operations behind the admin endpoints.

Creates and updates go through the same extractors and duplicate policy as
spreadsheet imports.
"""
from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

from be.config import ImportSettings, settings
from be.pipelines.dedupe import find_duplicate
from be.pipelines.mapping import PersonnelCandidate, candidate_from_payload
from be.repository import PersonnelRecord, PersonnelStore

logger = logging.getLogger(__name__)


class MissingIdentityError(Exception):
    """Raised when neither code number nor Aadhaar number is given."""
    pass


class InvalidDateError(Exception):
    """Raised in strict mode when the validity date cannot be parsed."""
    pass


class DuplicatePersonnelError(Exception):
    """Raised when another record already holds the code or Aadhaar number."""

    def __init__(self, message: str, existing_id: int) -> None:
        super().__init__(message)
        self.existing_id = existing_id


class PersonnelNotFoundError(Exception):
    """Raised when the addressed record does not exist."""
    pass


def _prepare(payload: Mapping[str, Any], opts: ImportSettings) -> PersonnelCandidate:
    candidate = candidate_from_payload(payload, uppercase_names=opts.uppercase_names)
    if not candidate.has_identity:
        raise MissingIdentityError("Code No or Aadhaar required")
    if opts.strict_dates and candidate.has_unparsed_date:
        raise InvalidDateError(f"Unrecognised validUpto date: {candidate.raw_valid_upto!r}")
    return candidate


async def create_personnel(
    store: PersonnelStore,
    payload: Mapping[str, Any],
    *,
    options: ImportSettings | None = None,
) -> PersonnelRecord:
    """Create one record after normalization and a duplicate check.

    Raises:
        MissingIdentityError: If both identity fields are empty
        InvalidDateError: If strict dates are on and validUpto is unparseable
        DuplicatePersonnelError: If the code/Aadhaar is already stored
    """
    candidate = _prepare(payload, options or settings.imports)

    existing = await find_duplicate(store, candidate)
    if existing is not None:
        raise DuplicatePersonnelError("Duplicate code or aadhaar exists", existing.id)

    record = await store.insert(candidate.to_fields())
    logger.info(f"Created personnel record {record.id}")
    return record


async def update_personnel(
    store: PersonnelStore,
    record_id: int,
    payload: Mapping[str, Any],
    *,
    options: ImportSettings | None = None,
) -> PersonnelRecord:
    """Replace a record's fields; the duplicate check ignores the record itself.

    Raises:
        MissingIdentityError: If both identity fields are empty
        InvalidDateError: If strict dates are on and validUpto is unparseable
        DuplicatePersonnelError: If another record holds the code/Aadhaar
        PersonnelNotFoundError: If no record has ``record_id``
    """
    candidate = _prepare(payload, options or settings.imports)

    if await store.get(record_id) is None:
        raise PersonnelNotFoundError(f"User {record_id} not found")

    existing = await find_duplicate(store, candidate, exclude_id=record_id)
    if existing is not None:
        raise DuplicatePersonnelError("Another user with same code/adhaar exists", existing.id)

    updated = await store.update_by_id(record_id, candidate.to_fields())
    if updated is None:
        raise PersonnelNotFoundError(f"User {record_id} not found")
    logger.info(f"Updated personnel record {record_id}")
    return updated


async def delete_personnel(store: PersonnelStore, record_id: int) -> None:
    """Raises PersonnelNotFoundError if nothing was deleted."""
    if not await store.delete_by_id(record_id):
        raise PersonnelNotFoundError(f"User {record_id} not found")
    logger.info(f"Deleted personnel record {record_id}")


async def bulk_delete_personnel(store: PersonnelStore, record_ids: Sequence[int]) -> int:
    """Delete every listed id; returns how many records were removed."""
    deleted = await store.delete_many(list(dict.fromkeys(record_ids)))
    logger.info(f"Bulk deleted {deleted} of {len(record_ids)} requested records")
    return deleted


async def lookup_personnel(store: PersonnelStore, query: str) -> list[PersonnelRecord]:
    """Exact lookup by code number or Aadhaar number.

    Raises:
        PersonnelNotFoundError: If nothing matches
    """
    records = await store.lookup(query)
    if not records:
        raise PersonnelNotFoundError("No user found")
    return records
