from __future__ import annotations

from datetime import date, datetime

import pandas as pd
import pytest

from be.pipelines.dates import parse_sheet_date, serial_to_date


def test_serial_date():
    assert parse_sheet_date(45000) == date(2023, 3, 15)


def test_serial_epoch_is_unix_epoch():
    assert serial_to_date(25569) == date(1970, 1, 1)


def test_serial_rounds_to_nearest_day():
    assert parse_sheet_date(45000.4) == date(2023, 3, 15)
    assert parse_sheet_date(45000.5) == date(2023, 3, 16)


@pytest.mark.parametrize(
    "text, expected",
    [
        ("15-03-2024", date(2024, 3, 15)),
        ("2024-03-15", date(2024, 3, 15)),
        ("2024-3-5", date(2024, 3, 5)),
        (" 5-3-2024 ", date(2024, 3, 5)),
    ],
)
def test_text_dates(text, expected):
    assert parse_sheet_date(text) == expected


def test_ambiguous_numeric_date_is_day_first():
    assert parse_sheet_date("03-04-2024") == date(2024, 4, 3)
    assert parse_sheet_date("3-4-2024") == date(2024, 4, 3)


def test_general_parsing_fallback():
    assert parse_sheet_date("15 March 2024") == date(2024, 3, 15)


@pytest.mark.parametrize("value", ["not a date", "", "   ", "31-02-2024", None, True, float("nan"), 1e12, [1]])
def test_unparseable_values_yield_none(value):
    assert parse_sheet_date(value) is None


def test_decoded_date_cells_pass_through():
    assert parse_sheet_date(datetime(2025, 1, 31, 12, 30)) == date(2025, 1, 31)
    assert parse_sheet_date(pd.Timestamp("2025-01-31")) == date(2025, 1, 31)
    assert parse_sheet_date(date(2025, 1, 31)) == date(2025, 1, 31)
    assert parse_sheet_date(pd.NaT) is None


@pytest.mark.parametrize("text", ["45000", "45000.0", " 45000 "])
def test_numeric_text_is_a_serial(text):
    assert parse_sheet_date(text) == date(2023, 3, 15)
