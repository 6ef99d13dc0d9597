"""
db/base.py

Declarative base, portable column types and the timestamp mixin shared by
the catalog, company and import ledger tables.
"""

from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# JSONB on PostgreSQL, plain JSON elsewhere (the test suite runs on SQLite).
JSONDocument = JSON().with_variant(JSONB(), "postgresql")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _timestamp_column(**kwargs):
    return mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=func.now(),
        **kwargs,
    )


class Base(DeclarativeBase):
    pass


class TimestampMixin:
    """
    created_at / updated_at, filled in Python so rows written through Core
    ``insert()`` executemany get them too; updated_at refreshes on UPDATE.
    """

    created_at: Mapped[datetime] = _timestamp_column()
    updated_at: Mapped[datetime] = _timestamp_column(onupdate=utc_now)
