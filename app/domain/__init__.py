"""
app/domain package marker.
"""

from app.domain.imports import (
    CommitRow,
    CommitSummary,
    EncodingIssue,
    FormatError,
    ImportPipelineError,
    InvalidTokenError,
    LedgerPersistenceError,
    ParsedRow,
    ParsedWorkbook,
    ReferenceLookupError,
    ReferenceUsage,
    RowError,
    RowOutcome,
    ValidationReport,
)

__all__ = [
    "CommitRow",
    "CommitSummary",
    "EncodingIssue",
    "FormatError",
    "ImportPipelineError",
    "InvalidTokenError",
    "LedgerPersistenceError",
    "ParsedRow",
    "ParsedWorkbook",
    "ReferenceLookupError",
    "ReferenceUsage",
    "RowError",
    "RowOutcome",
    "ValidationReport",
]
