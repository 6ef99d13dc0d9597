"""
app/schemas package marker.
"""

from app.schemas.imports import (
    CommitData,
    CommitErrorResponse,
    CommitRequest,
    CommitResponse,
    ImportBatchResponse,
    ImportRowResponse,
    RowErrorResponse,
    ValidateResponse,
)

__all__ = [
    "CommitData",
    "CommitErrorResponse",
    "CommitRequest",
    "CommitResponse",
    "ImportBatchResponse",
    "ImportRowResponse",
    "RowErrorResponse",
    "ValidateResponse",
]
