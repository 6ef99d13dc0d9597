"""
app/schemas/imports.py

Request and response schemas for the bulk entity import endpoints.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class RowErrorResponse(BaseModel):
    """
    One row-scoped problem. ``row`` is 0 for file-level failures and -1 for
    system failures.
    """

    row: int = Field(..., ge=-1)
    field: str
    message: str


class ValidateResponse(BaseModel):
    """
    API response model for an upload validation.
    """

    ok: bool
    batch_id: UUID | None = None
    total_rows: int = Field(default=0, ge=0)
    valid_rows: int = Field(default=0, ge=0)
    row_errors: list[RowErrorResponse] = Field(default_factory=list)
    warnings: list[RowErrorResponse] = Field(default_factory=list)
    missing_references: list[str] = Field(default_factory=list)
    preview: list[dict[str, str]] = Field(default_factory=list)
    token: str | None = None
    filename: str | None = None


class CommitRequest(BaseModel):
    """
    Body of a commit: the validation token plus the rows to write.

    Each row is a canonical-field object; ``row_number`` ties it back to the
    validated file and defaults to the row's 1-based position in ``rows``.
    """

    token: str = Field(..., min_length=1)
    concept: str = Field(..., min_length=1)
    filename: str | None = None
    rows: list[dict[str, Any]] = Field(..., min_length=1)

    @field_validator("token", "concept")
    @classmethod
    def _strip_required(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("must not be blank")
        return stripped


class CommitErrorResponse(BaseModel):
    row: int
    message: str
    field: str | None = None


class CommitData(BaseModel):
    batch_id: UUID
    inserted: int = Field(..., ge=0)
    failed: int = Field(..., ge=0)
    errors: list[CommitErrorResponse] = Field(default_factory=list)


class CommitResponse(BaseModel):
    data: CommitData | None = None
    error: str | None = None


class ImportRowResponse(BaseModel):
    model_config = {"from_attributes": True}

    row_number: int
    data: dict[str, Any]
    is_valid: bool
    errors: list[dict[str, Any]] = Field(default_factory=list)


class ImportBatchResponse(BaseModel):
    """
    Ledger entry of one import attempt with its staged rows.
    """

    model_config = {"from_attributes": True}

    id: UUID
    concept: str | None = None
    source_filename: str
    status: str
    total_rows: int
    valid_rows: int
    error_rows: int
    inserted_rows: int
    warnings: list[dict[str, Any]] | None = None
    created_at: datetime
    committed_at: datetime | None = None
    rows: list[ImportRowResponse] = Field(default_factory=list)
