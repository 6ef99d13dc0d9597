"""
db/models/import_batch.py

Audit ledger of bulk import attempts and their staged row snapshots.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, JSONDocument, TimestampMixin, utc_now


class ImportBatchStatus:
    VALIDATED = "validated"
    IMPORTED = "imported"
    FAILED = "failed"


class ImportBatch(Base, TimestampMixin):
    __tablename__ = "import_batches"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    token: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
        comment="Validation token required to commit this batch",
    )
    source_sha256: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="SHA-256 of the uploaded file bytes",
    )
    concept: Mapped[str | None] = mapped_column(String(500), nullable=True)
    source_filename: Mapped[str] = mapped_column(String(255), nullable=False)
    total_rows: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    valid_rows: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error_rows: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    inserted_rows: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=ImportBatchStatus.VALIDATED,
        comment="validated, imported, failed",
    )
    warnings: Mapped[list[dict[str, Any]] | None] = mapped_column(
        JSONDocument,
        nullable=True,
        comment="Non-blocking warnings raised while parsing",
    )
    committed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    rows: Mapped[list["ImportRow"]] = relationship(
        back_populates="batch",
        order_by="ImportRow.row_number",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("ix_import_batches_status", "status"),
        Index("ix_import_batches_created_at", "created_at"),
        Index("ix_import_batches_source_sha256_status", "source_sha256", "status"),
    )


class ImportRow(Base):
    __tablename__ = "import_rows"

    batch_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("import_batches.id", ondelete="CASCADE"),
        primary_key=True,
    )
    row_number: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        comment="1-based, header row excluded",
    )
    data: Mapped[dict[str, str]] = mapped_column(
        JSONDocument,
        nullable=False,
        comment="Canonical field -> raw cell string",
    )
    is_valid: Mapped[bool] = mapped_column(Boolean, nullable=False)
    errors: Mapped[list[dict[str, str]]] = mapped_column(
        JSONDocument,
        nullable=False,
        default=list,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=func.now(),
    )

    batch: Mapped[ImportBatch] = relationship(back_populates="rows")
