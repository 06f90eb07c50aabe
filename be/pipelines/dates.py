"""Validity-date parsing for spreadsheet cells and JSON payloads.

Accepted shapes, in order:

1. ``datetime``/``date``/``pandas.Timestamp`` (cells the Excel reader
   already decoded as dates).
2. Numbers: spreadsheet serial dates. Day 25569 is 1970-01-01, so
   ``serial - 25569`` days (``* 86400`` seconds) after the Unix epoch.
3. ``DD-MM-YYYY`` text (1-2 digit day and month).
4. ``YYYY-MM-DD`` text.
5. Purely numeric text, read as a serial (CSV cells are always text).
6. Anything else goes through ``pandas.to_datetime`` with ``dayfirst=True``.

Ambiguous numeric dates such as ``03-04-2024`` are day-first (3 April), the
regional convention of the sheets this service receives. Unparseable input
yields ``None``; nothing here raises.
"""
from __future__ import annotations

import logging
import math
import numbers
import re
from datetime import date, datetime, timedelta
from typing import Any

import pandas as pd

logger = logging.getLogger(__name__)

SERIAL_EPOCH_OFFSET = 25569
SECONDS_PER_DAY = 86400
UNIX_EPOCH = date(1970, 1, 1)

_DMY = re.compile(r"^(\d{1,2})-(\d{1,2})-(\d{4})$")
_YMD = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")
_SERIAL_TEXT = re.compile(r"^\d+(\.\d+)?$")


def serial_to_date(serial: float) -> date | None:
    """Convert a spreadsheet serial to a calendar date.

    The serial is rounded to the nearest whole day first (halves round up).
    """
    if math.isnan(serial) or math.isinf(serial):
        return None
    whole = math.floor(serial + 0.5)
    try:
        return UNIX_EPOCH + timedelta(seconds=(whole - SERIAL_EPOCH_OFFSET) * SECONDS_PER_DAY)
    except OverflowError:
        return None


def _build_date(year: str, month: str, day: str) -> date | None:
    try:
        return date(int(year), int(month.zfill(2)), int(day.zfill(2)))
    except ValueError:
        return None


def parse_text_date(text: str) -> date | None:
    s = text.strip()
    if not s:
        return None

    match = _DMY.match(s)
    if match:
        day, month, year = match.groups()
        return _build_date(year, month, day)

    match = _YMD.match(s)
    if match:
        year, month, day = match.groups()
        return _build_date(year, month, day)

    # CSV cells arrive as text, serials included
    if _SERIAL_TEXT.match(s):
        return serial_to_date(float(s))

    # Last resort
    try:
        parsed = pd.to_datetime(s, dayfirst=True, errors="coerce")
    except (ValueError, TypeError, OverflowError) as e:
        logger.debug(f"General date parsing failed for {s!r}: {e}")
        return None
    if parsed is None or pd.isna(parsed):
        return None
    return parsed.date()


def parse_sheet_date(value: Any) -> date | None:
    """Parse a validity date from any cell/payload value; ``None`` on failure."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        # pandas.Timestamp subclasses datetime; NaT does too
        return None if pd.isna(value) else value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, numbers.Real):
        return serial_to_date(float(value))
    if isinstance(value, str):
        return parse_text_date(value)
    return None
