"""Import pipeline steps: normalization, header resolution, mapping, dedupe.

Each step is callable on its own so single-record endpoints and spreadsheet
imports share the same rules.
"""
