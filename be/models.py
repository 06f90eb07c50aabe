"""Core SQLAlchemy models (2.x style) for the personnel schema."""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Date, Index, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class Personnel(Base):
    """Personnel records table.

    ``code_no`` and ``adhaar_no`` hold "" rather than NULL when absent, so
    neither carries a UNIQUE constraint; duplicates are prevented by the
    import pipeline's pre-check.
    """
    __tablename__ = "personnel"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    designation: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    working_area: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    valid_upto: Mapped[date | None] = mapped_column(Date)
    code_no: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    adhaar_no: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )

    __table_args__ = (
        Index("ix_personnel_code_no", "code_no"),
        Index("ix_personnel_adhaar_no", "adhaar_no"),
        Index("ix_personnel_created_at", "created_at"),
    )
