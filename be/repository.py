"""Storage interface for personnel records and its SQLAlchemy implementation.

The pipelines only see ``PersonnelStore``; FastAPI wires a
``SqlPersonnelStore`` per request and tests substitute an in-memory double.
"""
from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Mapping, Protocol, Sequence

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from . import models
from .pipelines.normalization import normalize_aadhaar

logger = logging.getLogger(__name__)

RECORD_FIELDS = ("name", "designation", "working_area", "valid_upto", "code_no", "adhaar_no")


class StorageError(Exception):
    """Raised when the backing store fails to read or write."""
    pass


class PersonnelRecord(BaseModel):
    """Stored personnel record as seen by pipelines and the API."""
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)

    id: int
    name: str = ""
    designation: str = ""
    working_area: str = ""
    valid_upto: date | None = None
    code_no: str = ""
    adhaar_no: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None


class PersonnelStore(Protocol):
    async def find_by_identity(
        self,
        code_no: str | None,
        adhaar_no: str | None,
        exclude_id: int | None = None,
    ) -> PersonnelRecord | None:
        ...

    async def get(self, record_id: int) -> PersonnelRecord | None:
        ...

    async def insert(self, fields: Mapping[str, Any]) -> PersonnelRecord:
        ...

    async def insert_many(self, records: Sequence[Mapping[str, Any]]) -> list[PersonnelRecord]:
        ...

    async def update_by_id(self, record_id: int, fields: Mapping[str, Any]) -> PersonnelRecord | None:
        ...

    async def delete_by_id(self, record_id: int) -> bool:
        ...

    async def delete_many(self, record_ids: Sequence[int]) -> int:
        ...

    async def find_all(self) -> list[PersonnelRecord]:
        ...

    async def search(self, text: str) -> list[PersonnelRecord]:
        ...

    async def lookup(self, query: str) -> list[PersonnelRecord]:
        ...


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _record_fields(fields: Mapping[str, Any]) -> dict[str, Any]:
    return {key: fields[key] for key in RECORD_FIELDS if key in fields}


class SqlPersonnelStore:
    """``PersonnelStore`` over an async SQLAlchemy session; commits per write."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _fail(self, action: str, exc: Exception) -> StorageError:
        logger.error(f"Storage failure during {action}: {exc}")
        await self.session.rollback()
        return StorageError(f"{action} failed: {exc}")

    async def find_by_identity(
        self,
        code_no: str | None,
        adhaar_no: str | None,
        exclude_id: int | None = None,
    ) -> PersonnelRecord | None:
        conditions = []
        if code_no:
            conditions.append(func.lower(models.Personnel.code_no) == code_no.lower())
        if adhaar_no:
            conditions.append(models.Personnel.adhaar_no == adhaar_no)
        if not conditions:
            return None

        query = select(models.Personnel).where(or_(*conditions))
        if exclude_id is not None:
            query = query.where(models.Personnel.id != exclude_id)
        query = query.order_by(models.Personnel.id).limit(1)

        try:
            result = await self.session.execute(query)
        except SQLAlchemyError as e:
            raise await self._fail("duplicate lookup", e) from e
        row = result.scalars().first()
        return PersonnelRecord.model_validate(row) if row is not None else None

    async def get(self, record_id: int) -> PersonnelRecord | None:
        try:
            row = await self.session.get(models.Personnel, record_id)
        except SQLAlchemyError as e:
            raise await self._fail("get", e) from e
        return PersonnelRecord.model_validate(row) if row is not None else None

    async def insert(self, fields: Mapping[str, Any]) -> PersonnelRecord:
        row = models.Personnel(**_record_fields(fields))
        try:
            self.session.add(row)
            await self.session.commit()
            await self.session.refresh(row)
        except SQLAlchemyError as e:
            raise await self._fail("insert", e) from e
        return PersonnelRecord.model_validate(row)

    async def insert_many(self, records: Sequence[Mapping[str, Any]]) -> list[PersonnelRecord]:
        rows = [models.Personnel(**_record_fields(fields)) for fields in records]
        if not rows:
            return []
        try:
            self.session.add_all(rows)
            await self.session.commit()
            for row in rows:
                await self.session.refresh(row)
        except SQLAlchemyError as e:
            raise await self._fail("bulk insert", e) from e
        return [PersonnelRecord.model_validate(row) for row in rows]

    async def update_by_id(self, record_id: int, fields: Mapping[str, Any]) -> PersonnelRecord | None:
        try:
            row = await self.session.get(models.Personnel, record_id)
            if row is None:
                return None
            for key, value in _record_fields(fields).items():
                setattr(row, key, value)
            await self.session.commit()
            await self.session.refresh(row)
        except SQLAlchemyError as e:
            raise await self._fail("update", e) from e
        return PersonnelRecord.model_validate(row)

    async def delete_by_id(self, record_id: int) -> bool:
        try:
            result = await self.session.execute(
                delete(models.Personnel).where(models.Personnel.id == record_id)
            )
            await self.session.commit()
        except SQLAlchemyError as e:
            raise await self._fail("delete", e) from e
        return result.rowcount > 0

    async def delete_many(self, record_ids: Sequence[int]) -> int:
        if not record_ids:
            return 0
        try:
            result = await self.session.execute(
                delete(models.Personnel).where(models.Personnel.id.in_(list(record_ids)))
            )
            await self.session.commit()
        except SQLAlchemyError as e:
            raise await self._fail("bulk delete", e) from e
        return result.rowcount

    async def _select(self, query) -> list[PersonnelRecord]:
        try:
            result = await self.session.execute(query)
        except SQLAlchemyError as e:
            raise await self._fail("select", e) from e
        return [PersonnelRecord.model_validate(row) for row in result.scalars().all()]

    async def find_all(self) -> list[PersonnelRecord]:
        query = select(models.Personnel).order_by(
            models.Personnel.created_at.desc(),
            models.Personnel.id.desc(),
        )
        return await self._select(query)

    async def search(self, text: str) -> list[PersonnelRecord]:
        pattern = f"%{_escape_like(text.strip())}%"
        query = (
            select(models.Personnel)
            .where(
                or_(
                    models.Personnel.code_no.ilike(pattern, escape="\\"),
                    models.Personnel.adhaar_no.ilike(pattern, escape="\\"),
                )
            )
            .order_by(models.Personnel.id)
        )
        return await self._select(query)

    async def lookup(self, query: str) -> list[PersonnelRecord]:
        text = query.strip()
        conditions = []
        if text:
            conditions.append(func.lower(models.Personnel.code_no) == text.lower())
        aadhaar = normalize_aadhaar(text)
        if aadhaar:
            conditions.append(models.Personnel.adhaar_no == aadhaar)
        if not conditions:
            return []
        stmt = select(models.Personnel).where(or_(*conditions)).order_by(models.Personnel.id)
        return await self._select(stmt)
