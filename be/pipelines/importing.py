"""Import orchestration: decoded sheet -> candidates -> dedupe -> persistence.

Rows are processed strictly in sheet order. Each row's duplicate check sees
rows inserted earlier in the same run, so a sheet cannot introduce two
records with the same identity. Policy skips go into the ``ImportReport``;
a failed write aborts the whole import with ``ImportAbortedError``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, BinaryIO, Mapping, Sequence

from be.config import ImportSettings, settings
from be.parsers import RawRow, SheetRows, parse_sheet
from be.pipelines.dedupe import BatchIdentityIndex, find_duplicate
from be.pipelines.mapping import PersonnelCandidate, RowMapper
from be.repository import PersonnelStore
from config.header_aliases import HEADER_ALIASES

logger = logging.getLogger(__name__)

REASON_MISSING_IDENTITY = "missing identity"
REASON_DUPLICATE = "duplicate"
REASON_INVALID_DATE = "invalid date"


@dataclass
class SkipDetail:
    """Why a row was not imported."""
    reason: str
    row_number: int
    row: RawRow
    found_id: int | None = None


@dataclass
class ImportReport:
    """Result of one import run."""
    total_rows: int = 0
    inserted: int = 0
    skipped: int = 0
    skipped_details: list[SkipDetail] = field(default_factory=list)
    unresolved_fields: list[str] = field(default_factory=list)

    @property
    def message(self) -> str:
        if self.total_rows == 0:
            return "No rows found in sheet"
        return f"Upload complete. Inserted: {self.inserted}, Skipped: {self.skipped}"


class ImportAbortedError(Exception):
    """Raised when persisting a row fails; the import stops at that row."""

    def __init__(self, message: str, *, row_number: int | None, inserted: int) -> None:
        super().__init__(message)
        self.row_number = row_number
        self.inserted = inserted


class _ImportRun:
    def __init__(self, store: PersonnelStore, sample_size: int) -> None:
        self.store = store
        self.sample_size = sample_size
        self.report = ImportReport()

    def skip(self, reason: str, row_number: int, row: RawRow, found_id: int | None = None) -> None:
        self.report.skipped += 1
        logger.debug(f"Row {row_number} skipped: {reason}")
        if len(self.report.skipped_details) < self.sample_size:
            self.report.skipped_details.append(
                SkipDetail(reason=reason, row_number=row_number, row=row, found_id=found_id)
            )

    async def insert(self, candidate: PersonnelCandidate, row_number: int) -> None:
        try:
            await self.store.insert(candidate.to_fields())
        except Exception as e:
            logger.error(f"Import aborted at row {row_number}: {e}", exc_info=True)
            raise ImportAbortedError(
                f"Failed to store row {row_number}: {e}",
                row_number=row_number,
                inserted=self.report.inserted,
            ) from e
        self.report.inserted += 1

    async def insert_many(self, candidates: Sequence[PersonnelCandidate]) -> None:
        if not candidates:
            return
        try:
            await self.store.insert_many([c.to_fields() for c in candidates])
        except Exception as e:
            logger.error(f"Batched import aborted: {e}", exc_info=True)
            raise ImportAbortedError(f"Failed to store batch: {e}", row_number=None, inserted=0) from e
        self.report.inserted += len(candidates)


async def import_rows(
    store: PersonnelStore,
    sheet: SheetRows,
    *,
    alias_table: Mapping[str, Sequence[str]] = HEADER_ALIASES,
    options: ImportSettings | None = None,
) -> ImportReport:
    """Import decoded rows into ``store``.

    Args:
        store: Persisted store (injected)
        sheet: Decoded sheet from either decoder front end
        alias_table: Accepted header spellings per canonical field
        options: Import settings (uses config default if None)

    Returns:
        ImportReport with inserted/skipped counts and a sample of skipped rows

    Raises:
        ImportAbortedError: If a store write fails
    """
    opts = options or settings.imports
    run = _ImportRun(store, opts.skip_sample_size)
    run.report.total_rows = len(sheet.rows)

    if not sheet.rows:
        logger.info("No rows found in sheet")
        return run.report

    mapper = RowMapper(
        sheet.headers,
        alias_table,
        uppercase_names=opts.uppercase_names,
        fuzzy_threshold=opts.header_fuzzy_threshold,
    )
    run.report.unresolved_fields = mapper.missing_fields
    if mapper.missing_fields:
        logger.warning(f"Columns not found for fields: {', '.join(mapper.missing_fields)}")

    batch_index = BatchIdentityIndex() if opts.batch_insert else None
    pending: list[PersonnelCandidate] = []

    for row_number, row in enumerate(sheet.rows, start=1):
        candidate = mapper.map_row(row)

        if not candidate.has_identity:
            run.skip(REASON_MISSING_IDENTITY, row_number, row)
            continue

        if opts.strict_dates and candidate.has_unparsed_date:
            run.skip(REASON_INVALID_DATE, row_number, row)
            continue

        if batch_index is not None and candidate in batch_index:
            run.skip(REASON_DUPLICATE, row_number, row)
            continue

        try:
            existing = await find_duplicate(store, candidate)
        except Exception as e:
            logger.error(f"Duplicate check failed at row {row_number}: {e}", exc_info=True)
            raise ImportAbortedError(
                f"Duplicate check failed at row {row_number}: {e}",
                row_number=row_number,
                inserted=run.report.inserted,
            ) from e
        if existing is not None:
            run.skip(REASON_DUPLICATE, row_number, row, found_id=existing.id)
            continue

        if batch_index is not None:
            batch_index.add(candidate)
            pending.append(candidate)
        else:
            await run.insert(candidate, row_number)

    await run.insert_many(pending)

    logger.info(
        run.report.message,
        extra={"inserted": run.report.inserted, "skipped": run.report.skipped, "total_rows": run.report.total_rows},
    )
    return run.report


async def import_file(
    store: PersonnelStore,
    file_obj: BinaryIO,
    filename: str,
    *,
    content: bytes | None = None,
    options: ImportSettings | None = None,
) -> ImportReport:
    """Decode an uploaded spreadsheet and import it.

    Raises:
        ParseError: If the file cannot be decoded
        ImportAbortedError: If a store write fails
    """
    logger.info(f"Importing spreadsheet {filename}", extra={"upload": filename})
    sheet = parse_sheet(file_obj, filename, content)
    return await import_rows(store, sheet, options=options)


def report_to_dict(report: ImportReport) -> dict[str, Any]:
    """JSON-ready view of a report (used by the CLI importer)."""
    return {
        "message": report.message,
        "totalRows": report.total_rows,
        "inserted": report.inserted,
        "skipped": report.skipped,
        "unresolvedFields": report.unresolved_fields,
        "skippedDetails": [
            {
                "reason": d.reason,
                "rowNumber": d.row_number,
                "found": d.found_id,
                "row": d.row,
            }
            for d in report.skipped_details
        ],
    }
