"""Turn raw sheet rows and JSON payloads into personnel candidates."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable, Mapping, Sequence

from config.header_aliases import HEADER_ALIASES

from .dates import parse_sheet_date
from .headers import HeaderResolver
from .normalization import clean_text, is_blank, normalize_aadhaar, normalize_code_no

# Payload keys accepted for each field by ``candidate_from_payload``.
PAYLOAD_KEYS: dict[str, tuple[str, ...]] = {
    "name": ("name",),
    "designation": ("designation",),
    "working_area": ("workingArea", "working_area"),
    "valid_upto": ("validUpto", "valid_upto"),
    "code_no": ("codeNo", "code_no"),
    "adhaar_no": ("adhaarNo", "adhaar_no"),
}


@dataclass
class PersonnelCandidate:
    """Normalized record ready for duplicate checking and persistence."""
    name: str = ""
    designation: str = ""
    working_area: str = ""
    valid_upto: date | None = None
    code_no: str = ""
    adhaar_no: str = ""
    raw_valid_upto: Any = None

    @property
    def has_identity(self) -> bool:
        return bool(self.code_no or self.adhaar_no)

    @property
    def has_unparsed_date(self) -> bool:
        return self.valid_upto is None and not is_blank(self.raw_valid_upto)

    def to_fields(self) -> dict[str, Any]:
        """Column values for the store."""
        return {
            "name": self.name,
            "designation": self.designation,
            "working_area": self.working_area,
            "valid_upto": self.valid_upto,
            "code_no": self.code_no,
            "adhaar_no": self.adhaar_no,
        }


def build_candidate(values: Mapping[str, Any], *, uppercase_names: bool = False) -> PersonnelCandidate:
    """Apply the field extractors to raw values keyed by canonical field."""
    name = clean_text(values.get("name"))
    raw_date = values.get("valid_upto")
    return PersonnelCandidate(
        name=name.upper() if uppercase_names else name,
        designation=clean_text(values.get("designation")),
        working_area=clean_text(values.get("working_area")),
        valid_upto=parse_sheet_date(raw_date),
        code_no=normalize_code_no(values.get("code_no")),
        adhaar_no=normalize_aadhaar(values.get("adhaar_no")),
        raw_valid_upto=raw_date,
    )


class RowMapper:
    """Maps rows of one sheet; headers are resolved once at construction."""

    def __init__(
        self,
        headers: Iterable[str],
        alias_table: Mapping[str, Sequence[str]] = HEADER_ALIASES,
        *,
        uppercase_names: bool = False,
        fuzzy_threshold: int | None = None,
    ) -> None:
        resolver = HeaderResolver(headers, fuzzy_threshold=fuzzy_threshold)
        self.columns = resolver.resolve_all(alias_table)
        self.uppercase_names = uppercase_names

    @property
    def missing_fields(self) -> list[str]:
        return [field for field, column in self.columns.items() if column is None]

    def map_row(self, row: Mapping[str, Any]) -> PersonnelCandidate:
        values = {
            field: row.get(column) if column is not None else None
            for field, column in self.columns.items()
        }
        return build_candidate(values, uppercase_names=self.uppercase_names)


def candidate_from_payload(payload: Mapping[str, Any], *, uppercase_names: bool = False) -> PersonnelCandidate:
    """Build a candidate from a single-record JSON body (camelCase or snake_case)."""
    values: dict[str, Any] = {}
    for field, keys in PAYLOAD_KEYS.items():
        for key in keys:
            if key in payload:
                values[field] = payload[key]
                break
    return build_candidate(values, uppercase_names=uppercase_names)
