"""Accepted column-header spellings per canonical personnel field.

Lists are in priority order: when a sheet carries more than one matching
column, the spelling listed first wins. Matching ignores case, punctuation
and extra whitespace, so only genuinely different spellings need an entry.
"""

HEADER_ALIASES: dict[str, list[str]] = {
    "name": ["Name", "name"],
    "designation": ["Designation", "designation", "job title"],
    "working_area": ["Working Area", "working area", "workingarea", "area"],
    "valid_upto": [
        "Valid Up-to",
        "Valid Upto",
        "Valid U pto",
        "valid upto",
        "valid up to",
        "validupto",
        "valid",
    ],
    "code_no": ["Code No", "Code No.", "CodeNo", "code no", "codeno"],
    "adhaar_no": ["Adhaar no", "Aadhaar No", "Aadhaar", "adhaar", "aadhaar no", "aadhaar"],
}
