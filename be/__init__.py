"""Backend package: DB models, storage, pipelines, APIs.

This package orchestrates spreadsheet decoding, header resolution, field
normalization, duplicate detection, and persistence of personnel records.
"""
