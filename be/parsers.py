"""Spreadsheet decoding for personnel imports.

Two front ends feed the same ``SheetRows`` shape:

- ``rows_from_records``: header-keyed mappings (CSV via pandas), original
  header spellings kept as keys.
- ``rows_from_matrix``: positional arrays whose first non-blank row is the
  header row (Excel read with ``header=None``, so duplicate or odd headers
  survive untouched).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, BinaryIO, Iterable, Mapping, Sequence, Union

import pandas as pd

from .pipelines.normalization import clean_text, is_blank

logger = logging.getLogger(__name__)

CellValue = Union[str, int, float, datetime, date, None]
RawRow = dict[str, CellValue]


class FileType(str, Enum):
    """Supported file types."""
    CSV = "csv"
    EXCEL = "excel"
    UNKNOWN = "unknown"


class ParseError(Exception):
    """Raised when a spreadsheet cannot be decoded."""
    pass


@dataclass
class SheetRows:
    """Decoded sheet: headers left to right plus rows keyed by those headers."""
    headers: list[str] = field(default_factory=list)
    rows: list[RawRow] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.rows)


def _cell(value: Any) -> CellValue:
    """Map pandas missing markers (NaN, NaT) to None."""
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    return value


def _row_is_blank(values: Iterable[Any]) -> bool:
    return all(is_blank(v) for v in values)


def rows_from_records(records: Sequence[Mapping[str, Any]]) -> SheetRows:
    """Front end for header-keyed rows."""
    headers: list[str] = []
    seen: set[str] = set()
    rows: list[RawRow] = []

    for record in records:
        row = {str(k): _cell(v) for k, v in record.items()}
        for header in row:
            if header not in seen:
                seen.add(header)
                headers.append(header)
        if _row_is_blank(row.values()):
            continue
        rows.append(row)

    return SheetRows(headers=headers, rows=rows)


def rows_from_matrix(matrix: Sequence[Sequence[Any]]) -> SheetRows:
    """Front end for positional rows; the first non-blank row holds the headers."""
    cleaned = [[_cell(v) for v in line] for line in matrix]

    start = 0
    while start < len(cleaned) and _row_is_blank(cleaned[start]):
        start += 1
    if start == len(cleaned):
        return SheetRows()

    header_cells = [clean_text(h) for h in cleaned[start]]
    headers = [h for h in header_cells if h]
    rows: list[RawRow] = []

    for line in cleaned[start + 1:]:
        if _row_is_blank(line):
            continue
        row: RawRow = {}
        for idx, header in enumerate(header_cells):
            if not header or header in row:
                continue
            row[header] = line[idx] if idx < len(line) else None
        rows.append(row)

    return SheetRows(headers=headers, rows=rows)


def detect_file_type(filename: str, content: bytes | None = None) -> FileType:
    """Detect file type from filename or content.

    Args:
        filename: Original filename
        content: Optional file content for magic number detection

    Returns:
        Detected FileType
    """
    filename_lower = (filename or "").lower()

    if filename_lower.endswith('.csv'):
        return FileType.CSV
    elif filename_lower.endswith(('.xlsx', '.xlsm')):
        return FileType.EXCEL

    # Magic number detection if content provided
    if content:
        if content.startswith(b'PK\x03\x04'):  # ZIP/Office
            return FileType.EXCEL

    return FileType.UNKNOWN


def read_csv_rows(file_obj: BinaryIO) -> SheetRows:
    """Parse a CSV file; every cell is kept as text so leading zeros survive.

    Raises:
        ParseError: If CSV parsing fails
    """
    try:
        df = pd.read_csv(file_obj, dtype=str, keep_default_na=False, encoding='utf-8-sig')
    except pd.errors.EmptyDataError:
        logger.info("CSV file is empty")
        return SheetRows()
    except Exception as e:
        logger.error(f"CSV parsing failed: {e}")
        raise ParseError(f"Failed to parse CSV: {e}") from e

    logger.info(f"Parsed CSV with {len(df)} rows and {len(df.columns)} columns")
    sheet = rows_from_records(df.to_dict('records'))
    if not sheet.headers:
        sheet.headers = [str(c) for c in df.columns]
    return sheet


def read_excel_rows(file_obj: BinaryIO, sheet_name: str | int = 0) -> SheetRows:
    """Parse the first sheet of an Excel workbook.

    Raises:
        ParseError: If Excel parsing fails
    """
    try:
        df = pd.read_excel(file_obj, sheet_name=sheet_name, header=None, dtype=object, engine='openpyxl')
    except Exception as e:
        logger.error(f"Excel parsing failed: {e}")
        raise ParseError(f"Failed to parse Excel: {e}") from e

    logger.info(f"Parsed Excel with {len(df)} rows and {len(df.columns)} columns")
    return rows_from_matrix(df.values.tolist())


def parse_sheet(file_obj: BinaryIO, filename: str, content: bytes | None = None) -> SheetRows:
    """Decode an uploaded spreadsheet based on its type.

    Raises:
        ParseError: If file type unsupported or parsing fails
    """
    file_type = detect_file_type(filename, content)

    if file_type == FileType.CSV:
        return read_csv_rows(file_obj)
    elif file_type == FileType.EXCEL:
        return read_excel_rows(file_obj)
    else:
        raise ParseError(f"Unsupported file type: {filename}")
