"""
app/domain/imports.py

Domain models and exceptions used by the bulk entity import flow.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ImportPipelineError(Exception):
    """
    Base class for failures that stop an import operation as a whole.
    """


class FormatError(ImportPipelineError, ValueError):
    """
    Raised when the uploaded file cannot be read as a usable table.
    """


class InvalidTokenError(ImportPipelineError):
    """
    Raised when a commit references a token with no usable validation record.
    """


class LedgerPersistenceError(ImportPipelineError, RuntimeError):
    """
    Raised when the validation record could not be written to the ledger.
    """


class ReferenceLookupError(ImportPipelineError, RuntimeError):
    """
    Raised when the reference catalog could not be queried.
    """


# ---------------------------------------------------------------------------
# Value objects
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RowError:
    """
    One problem attributable to exactly one row and field.
    """

    row_number: int
    field: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"row": self.row_number, "field": self.field, "message": self.message}


@dataclass(frozen=True)
class EncodingIssue:
    """
    Non-blocking notice that a row contained bytes that were not valid UTF-8.
    """

    row_number: int
    field: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"row": self.row_number, "field": self.field, "message": self.message}


@dataclass(frozen=True)
class ParsedRow:
    """
    One data row as read from the file, keyed by the literal header text.
    """

    row_number: int
    values: dict[str, str]
    encoding_issues: tuple[EncodingIssue, ...] = ()


@dataclass(frozen=True)
class ParsedWorkbook:
    headers: tuple[str, ...]
    rows: list[ParsedRow]
    source_format: str
    delimiter: str | None = None


@dataclass
class ReferenceUsage:
    """
    Distinct values of one referential field across a batch, with the rows
    (and each row's own spelling) that used them. Keyed by comparison key.
    """

    field_name: str
    entries: dict[str, list[tuple[int, str]]] = field(default_factory=dict)

    def record(self, *, key: str, row_number: int, value: str) -> None:
        self.entries.setdefault(key, []).append((row_number, value))

    def display_value(self, key: str) -> str:
        return self.entries[key][0][1]

    def __len__(self) -> int:
        return len(self.entries)


@dataclass
class RowOutcome:
    """
    Validation outcome for one row, before and after reference resolution.
    """

    row_number: int
    data: dict[str, str]
    errors: list[RowError] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


@dataclass(frozen=True)
class ValidationReport:
    """
    End-of-run validation summary returned to the caller.
    """

    batch_id: uuid.UUID
    token: str
    filename: str
    total_rows: int
    valid_rows: int
    row_errors: list[RowError]
    warnings: list[EncodingIssue | RowError]
    missing_references: list[str]
    preview: list[dict[str, str]]

    @property
    def error_rows(self) -> int:
        return self.total_rows - self.valid_rows

    @property
    def ok(self) -> bool:
        return not self.row_errors and not self.missing_references


@dataclass(frozen=True)
class CommitRow:
    """
    Caller-supplied canonical row, tagged with its original row number.
    """

    row_number: int
    data: dict[str, str]


@dataclass(frozen=True)
class CommitSummary:
    batch_id: uuid.UUID
    inserted: int
    failed: int
    errors: list[RowError] = field(default_factory=list)
