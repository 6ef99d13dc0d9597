"""create categories, import ledger and companies tables

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:30:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "categories",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False, comment="Canonical display name, e.g. Construcción"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )

    op.create_table(
        "import_batches",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column(
            "token",
            sa.String(length=64),
            nullable=False,
            comment="Validation token required to commit this batch",
        ),
        sa.Column("source_sha256", sa.String(length=64), nullable=False, comment="SHA-256 of the uploaded file bytes"),
        sa.Column("concept", sa.String(length=500), nullable=True),
        sa.Column("source_filename", sa.String(length=255), nullable=False),
        sa.Column("total_rows", sa.Integer(), nullable=False),
        sa.Column("valid_rows", sa.Integer(), nullable=False),
        sa.Column("error_rows", sa.Integer(), nullable=False),
        sa.Column("inserted_rows", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, comment="validated, imported, failed"),
        sa.Column(
            "warnings",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=True,
            comment="Non-blocking warnings raised while parsing",
        ),
        sa.Column("committed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("token"),
    )
    op.create_index("ix_import_batches_created_at", "import_batches", ["created_at"], unique=False)
    op.create_index("ix_import_batches_status", "import_batches", ["status"], unique=False)
    op.create_index(
        "ix_import_batches_source_sha256_status",
        "import_batches",
        ["source_sha256", "status"],
        unique=False,
    )

    op.create_table(
        "import_rows",
        sa.Column("batch_id", sa.Uuid(), nullable=False),
        sa.Column("row_number", sa.Integer(), nullable=False, comment="1-based, header row excluded"),
        sa.Column(
            "data",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            comment="Canonical field -> raw cell string",
        ),
        sa.Column("is_valid", sa.Boolean(), nullable=False),
        sa.Column("errors", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["batch_id"], ["import_batches.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("batch_id", "row_number"),
    )

    op.create_table(
        "companies",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("type", sa.String(length=32), nullable=False, comment="company, professional, institution"),
        sa.Column("category_id", sa.Uuid(), nullable=False),
        sa.Column("phone", sa.String(length=64), nullable=False),
        sa.Column(
            "phone_digits",
            sa.String(length=32),
            nullable=True,
            comment="Phone reduced to digits, used for duplicate detection",
        ),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("address", sa.String(length=500), nullable=False),
        sa.Column("contact", sa.String(length=255), nullable=True),
        sa.Column("web", sa.String(length=500), nullable=True),
        sa.Column("instagram", sa.String(length=255), nullable=True),
        sa.Column("city", sa.String(length=120), nullable=True),
        sa.Column("country", sa.String(length=120), nullable=True),
        sa.Column(
            "import_batch_id",
            sa.Uuid(),
            nullable=True,
            comment="Import batch that produced this record",
        ),
        sa.Column(
            "import_row_number",
            sa.Integer(),
            nullable=True,
            comment="1-based data row of the uploaded file",
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["category_id"], ["categories.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["import_batch_id"], ["import_batches.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_companies_email", "companies", ["email"], unique=False)
    op.create_index("ix_companies_phone_digits", "companies", ["phone_digits"], unique=False)
    op.create_index("ix_companies_category_id", "companies", ["category_id"], unique=False)
    op.create_index(
        "ix_companies_import_batch_row",
        "companies",
        ["import_batch_id", "import_row_number"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_companies_import_batch_row", table_name="companies")
    op.drop_index("ix_companies_category_id", table_name="companies")
    op.drop_index("ix_companies_phone_digits", table_name="companies")
    op.drop_index("ix_companies_email", table_name="companies")
    op.drop_table("companies")
    op.drop_table("import_rows")
    op.drop_index("ix_import_batches_source_sha256_status", table_name="import_batches")
    op.drop_index("ix_import_batches_status", table_name="import_batches")
    op.drop_index("ix_import_batches_created_at", table_name="import_batches")
    op.drop_table("import_batches")
    op.drop_table("categories")
