"""
app/services package marker.
"""

from app.services.batch_ledger import BatchLedger, get_batch_ledger
from app.services.commit_executor import CommitExecutor, get_commit_executor
from app.services.import_validation_service import (
    ImportValidationService,
    IssuedToken,
    get_import_validation_service,
    issue_token,
)
from app.services.reference_resolver import ReferenceResolution, ReferenceResolver

__all__ = [
    "BatchLedger",
    "get_batch_ledger",
    "CommitExecutor",
    "get_commit_executor",
    "ImportValidationService",
    "IssuedToken",
    "get_import_validation_service",
    "issue_token",
    "ReferenceResolution",
    "ReferenceResolver",
]
