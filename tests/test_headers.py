from __future__ import annotations

from be.pipelines.headers import HeaderResolver
from config.header_aliases import HEADER_ALIASES


def test_alias_priority_prefers_first_listed_spelling():
    resolver = HeaderResolver(["Valid", "Valid Up-to"])
    assert resolver.resolve(["Valid Up-to", "valid"]) == "Valid Up-to"


def test_resolve_ignores_case_and_punctuation():
    resolver = HeaderResolver(["CODE NO.", "aadhaar no"])
    assert resolver.resolve(HEADER_ALIASES["code_no"]) == "CODE NO."
    assert resolver.resolve(HEADER_ALIASES["adhaar_no"]) == "aadhaar no"


def test_missing_field_is_none_not_error():
    resolver = HeaderResolver(["Name", "Designation"])
    assert resolver.resolve(HEADER_ALIASES["adhaar_no"]) is None


def test_leftmost_column_wins_when_headers_collide():
    resolver = HeaderResolver(["Code No", "code no."])
    assert resolver.resolve(["code no"]) == "Code No"


def test_blank_headers_are_ignored():
    resolver = HeaderResolver(["", None, "Name"])
    assert resolver.keys == ["name"]


def test_fuzzy_fallback_is_opt_in():
    assert HeaderResolver(["Designaton"]).resolve(["Designation"]) is None
    assert HeaderResolver(["Designaton"], fuzzy_threshold=90).resolve(["Designation"]) == "Designaton"


def test_fuzzy_fallback_respects_threshold():
    resolver = HeaderResolver(["Remarks"], fuzzy_threshold=90)
    assert resolver.resolve(HEADER_ALIASES["designation"]) is None


def test_exact_match_beats_fuzzy():
    resolver = HeaderResolver(["Nane", "Name"], fuzzy_threshold=50)
    assert resolver.resolve(["Name"]) == "Name"


def test_resolve_all():
    resolver = HeaderResolver(["Name", "Working Area", "Code No", "Valid Upto"])
    columns = resolver.resolve_all(HEADER_ALIASES)
    assert columns == {
        "name": "Name",
        "designation": None,
        "working_area": "Working Area",
        "valid_upto": "Valid Upto",
        "code_no": "Code No",
        "adhaar_no": None,
    }
