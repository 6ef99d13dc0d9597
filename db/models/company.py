"""
db/models/company.py

Target entity of the bulk import: companies, professionals and institutions
registered with the association.
"""

from __future__ import annotations

import uuid

from sqlalchemy import ForeignKey, Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin


class CompanyType:
    COMPANY = "company"
    PROFESSIONAL = "professional"
    INSTITUTION = "institution"


class Company(Base, TimestampMixin):
    __tablename__ = "companies"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        comment="company, professional, institution",
    )
    category_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("categories.id", ondelete="RESTRICT"),
        nullable=False,
    )
    phone: Mapped[str] = mapped_column(String(64), nullable=False)
    phone_digits: Mapped[str | None] = mapped_column(
        String(32),
        nullable=True,
        comment="Phone reduced to digits, used for duplicate detection",
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str] = mapped_column(String(500), nullable=False)
    contact: Mapped[str | None] = mapped_column(String(255), nullable=True)
    web: Mapped[str | None] = mapped_column(String(500), nullable=True)
    instagram: Mapped[str | None] = mapped_column(String(255), nullable=True)
    city: Mapped[str | None] = mapped_column(String(120), nullable=True)
    country: Mapped[str | None] = mapped_column(String(120), nullable=True)
    import_batch_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("import_batches.id", ondelete="SET NULL"),
        nullable=True,
        comment="Import batch that produced this record",
    )
    import_row_number: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
        comment="1-based data row of the uploaded file",
    )

    __table_args__ = (
        Index("ix_companies_email", "email"),
        Index("ix_companies_phone_digits", "phone_digits"),
        Index("ix_companies_category_id", "category_id"),
        Index("ix_companies_import_batch_row", "import_batch_id", "import_row_number"),
    )
