from __future__ import annotations

import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Mapping, Sequence

import pytest

# Ensure project root is on sys.path for absolute imports like 'be.pipelines.importing'
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Test environment knobs; must be set before be.config is imported
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("DB_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOG_FORMAT", "text")

from be.repository import PersonnelRecord  # noqa: E402


class MemoryPersonnelStore:
    """In-memory PersonnelStore double."""

    def __init__(self) -> None:
        self.records: dict[int, PersonnelRecord] = {}
        self.insert_many_calls = 0
        self._next_id = 1

    def _new(self, fields: Mapping[str, Any]) -> PersonnelRecord:
        now = datetime.utcnow()
        record = PersonnelRecord(id=self._next_id, created_at=now, updated_at=now, **dict(fields))
        self.records[record.id] = record
        self._next_id += 1
        return record

    async def find_by_identity(self, code_no, adhaar_no, exclude_id=None):
        for record in self.records.values():
            if exclude_id is not None and record.id == exclude_id:
                continue
            if code_no and record.code_no.lower() == code_no.lower():
                return record
            if adhaar_no and record.adhaar_no == adhaar_no:
                return record
        return None

    async def get(self, record_id: int):
        return self.records.get(record_id)

    async def insert(self, fields: Mapping[str, Any]) -> PersonnelRecord:
        return self._new(fields)

    async def insert_many(self, records: Sequence[Mapping[str, Any]]) -> list[PersonnelRecord]:
        self.insert_many_calls += 1
        return [self._new(fields) for fields in records]

    async def update_by_id(self, record_id: int, fields: Mapping[str, Any]):
        current = self.records.get(record_id)
        if current is None:
            return None
        updated = current.model_copy(update={**dict(fields), "updated_at": datetime.utcnow()})
        self.records[record_id] = updated
        return updated

    async def delete_by_id(self, record_id: int) -> bool:
        return self.records.pop(record_id, None) is not None

    async def delete_many(self, record_ids: Sequence[int]) -> int:
        return sum(1 for rid in record_ids if self.records.pop(rid, None) is not None)

    async def find_all(self) -> list[PersonnelRecord]:
        return sorted(self.records.values(), key=lambda r: (r.created_at, r.id), reverse=True)

    async def search(self, text: str) -> list[PersonnelRecord]:
        needle = text.strip().lower()
        return [
            r for r in self.records.values()
            if needle in r.code_no.lower() or needle in r.adhaar_no.lower()
        ]

    async def lookup(self, query: str) -> list[PersonnelRecord]:
        text = query.strip()
        aadhaar = "".join(text.split())
        return [
            r for r in self.records.values()
            if (text and r.code_no.lower() == text.lower()) or (aadhaar and r.adhaar_no == aadhaar)
        ]


class FailingPersonnelStore(MemoryPersonnelStore):
    """Store whose writes start failing after ``fail_after`` successful inserts."""

    def __init__(self, fail_after: int = 0) -> None:
        super().__init__()
        self.fail_after = fail_after

    async def insert(self, fields):
        if len(self.records) >= self.fail_after:
            raise RuntimeError("database unavailable")
        return await super().insert(fields)

    async def insert_many(self, records):
        raise RuntimeError("database unavailable")


@pytest.fixture
def store() -> MemoryPersonnelStore:
    return MemoryPersonnelStore()


@pytest.fixture
def client(store):
    from fastapi.testclient import TestClient

    from be.api import app, get_store

    app.dependency_overrides[get_store] = lambda: store
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()
