from __future__ import annotations

import asyncio
from datetime import date
from io import BytesIO

import pytest

from be.config import ImportSettings
from be.parsers import SheetRows, rows_from_matrix
from be.pipelines.importing import (
    REASON_DUPLICATE,
    REASON_INVALID_DATE,
    REASON_MISSING_IDENTITY,
    ImportAbortedError,
    import_file,
    import_rows,
    report_to_dict,
)
from tests.conftest import FailingPersonnelStore

HEADER = ["Name", "Designation", "Working Area", "Valid Upto", "Code No", "Adhaar no"]


def _sheet(*rows) -> SheetRows:
    return rows_from_matrix([HEADER, *rows])


def _run(coro):
    return asyncio.run(coro)


def test_end_to_end_three_rows(store):
    sheet = _sheet(
        ["Asha", "Clerk", "Office", "15-03-2024", "A100", ""],
        ["Asha Dup", "Clerk", "Office", "", "a100", ""],
        ["Nobody", "Helper", "Yard", "", "", ""],
    )
    report = _run(import_rows(store, sheet))

    assert report.total_rows == 3
    assert report.inserted == 1
    assert report.skipped == 2
    assert [d.reason for d in report.skipped_details] == [REASON_DUPLICATE, REASON_MISSING_IDENTITY]
    assert [d.row_number for d in report.skipped_details] == [2, 3]
    assert report.message == "Upload complete. Inserted: 1, Skipped: 2"

    (record,) = store.records.values()
    assert record.name == "Asha"
    assert record.code_no == "A100"
    assert record.valid_upto == date(2024, 3, 15)


def test_intra_batch_duplicate_keeps_first_row(store):
    sheet = _sheet(
        ["First", "", "", "", "X-1", ""],
        ["Second", "", "", "", "x-1", ""],
    )
    report = _run(import_rows(store, sheet))

    assert (report.inserted, report.skipped) == (1, 1)
    assert [r.name for r in store.records.values()] == ["First"]
    assert report.skipped_details[0].found_id == 1


def test_duplicate_of_existing_record_by_aadhaar(store):
    _run(store.insert({"name": "Old", "code_no": "", "adhaar_no": "123456789012"}))
    sheet = _sheet(["New", "", "", "", "Z9", "1234 5678 9012"])

    report = _run(import_rows(store, sheet))

    assert report.inserted == 0
    assert report.skipped_details[0].reason == REASON_DUPLICATE
    assert report.skipped_details[0].found_id == 1


def test_missing_identity_skipped_regardless_of_other_fields(store):
    sheet = _sheet(["Full Name", "Manager", "HQ", "2030-01-01", "  ", None])
    report = _run(import_rows(store, sheet))
    assert report.inserted == 0
    assert report.skipped_details[0].reason == REASON_MISSING_IDENTITY
    assert not store.records


def test_zero_rows_short_circuits(store):
    report = _run(import_rows(store, SheetRows(headers=HEADER)))
    assert report.total_rows == 0
    assert report.inserted == report.skipped == 0
    assert report.message == "No rows found in sheet"


def test_unparseable_date_is_lenient_by_default(store):
    report = _run(import_rows(store, _sheet(["A", "", "", "soon", "C1", ""])))
    assert report.inserted == 1
    assert store.records[1].valid_upto is None


def test_strict_dates_skip_unparseable_dates(store):
    options = ImportSettings(strict_dates=True)
    sheet = _sheet(
        ["A", "", "", "soon", "C1", ""],
        ["B", "", "", "", "C2", ""],
    )
    report = _run(import_rows(store, sheet, options=options))
    assert report.inserted == 1
    assert report.skipped_details[0].reason == REASON_INVALID_DATE


def test_skip_sample_is_bounded(store):
    rows = [["n", "", "", "", "", ""] for _ in range(15)]
    report = _run(import_rows(store, _sheet(*rows), options=ImportSettings(skip_sample_size=10)))
    assert report.skipped == 15
    assert len(report.skipped_details) == 10


def test_batch_insert_matches_row_by_row(store):
    rows = [
        ["A", "", "", "", "A100", ""],
        ["B", "", "", "", "a100", ""],
        ["C", "", "", "", "", "5555 6666"],
        ["D", "", "", "", "D1", "55556666"],
        ["E", "", "", "", "", ""],
    ]
    report = _run(import_rows(store, _sheet(*rows), options=ImportSettings(batch_insert=True)))

    assert (report.inserted, report.skipped) == (2, 3)
    assert store.insert_many_calls == 1
    assert sorted(r.name for r in store.records.values()) == ["A", "C"]


def test_storage_failure_aborts_import():
    store = FailingPersonnelStore(fail_after=1)
    sheet = _sheet(
        ["A", "", "", "", "C1", ""],
        ["B", "", "", "", "C2", ""],
        ["C", "", "", "", "C3", ""],
    )
    with pytest.raises(ImportAbortedError) as excinfo:
        _run(import_rows(store, sheet))
    assert excinfo.value.row_number == 2
    assert excinfo.value.inserted == 1


def test_batch_storage_failure_aborts_import():
    store = FailingPersonnelStore()
    with pytest.raises(ImportAbortedError) as excinfo:
        _run(import_rows(store, _sheet(["A", "", "", "", "C1", ""]), options=ImportSettings(batch_insert=True)))
    assert excinfo.value.inserted == 0


def test_import_file_from_csv(store):
    data = (
        "Name,Designation,Working Area,Valid Up-to,Code No.,Aadhaar No\n"
        "Asha,Clerk,Office,03-04-2024,K1,1111 2222 3333\n"
        "Ravi,Fitter,Shed,,k1,\n"
    ).encode("utf-8")
    report = _run(import_file(store, BytesIO(data), "staff.csv"))

    assert (report.inserted, report.skipped) == (1, 1)
    record = store.records[1]
    assert record.adhaar_no == "111122223333"
    assert record.valid_upto == date(2024, 4, 3)


def test_unresolved_fields_reported(store):
    sheet = rows_from_matrix([["Code No"], ["C1"]])
    report = _run(import_rows(store, sheet))
    assert "name" in report.unresolved_fields
    assert report_to_dict(report)["unresolvedFields"] == report.unresolved_fields


def test_csv_serial_dates_are_converted(store):
    data = b"Name,Valid Upto,Code No\nA,45000,C1\n"
    report = _run(import_file(store, BytesIO(data), "staff.csv", options=ImportSettings(strict_dates=True)))
    assert report.inserted == 1
    assert store.records[1].valid_upto == date(2023, 3, 15)
