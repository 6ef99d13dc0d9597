"""
app/services/import_validation_service.py

First phase of the bulk entity import: parse the upload, map its headers,
validate every row, check referential values against the catalog in one
batched query, and stage the outcome in the batch ledger.

Nothing is written to the target store here. The caller reviews the report
and commits with the returned token (see commit_executor).
"""

from __future__ import annotations

import hashlib
import logging
import time
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from functools import lru_cache

from sqlalchemy.orm import Session

from app.config import get_import_settings
from app.domain.imports import (
    EncodingIssue,
    ParsedWorkbook,
    ReferenceUsage,
    RowError,
    RowOutcome,
    ValidationReport,
)
from app.mappers.header_resolver import HeaderResolver
from app.normalization import normalize_text, phone_digits
from app.parsing.workbook_parser import WorkbookParser
from app.repositories.category_repository import CategoryRepository
from app.services.batch_ledger import BatchLedger, get_batch_ledger
from app.services.reference_resolver import ReferenceCatalog, ReferenceResolver
from app.validators.row_validator import RowValidator

logger = logging.getLogger(__name__)

CatalogFactory = Callable[[Session], Mapping[str, ReferenceCatalog]]


def default_catalogs(db: Session) -> dict[str, ReferenceCatalog]:
    return {"category": CategoryRepository(db)}


@dataclass(frozen=True)
class IssuedToken:
    """
    Identity of one validation attempt, fixed before the file is parsed.
    """

    batch_id: uuid.UUID
    token: str
    source_sha256: str
    issued_at_ns: int


def issue_token(content: bytes) -> IssuedToken:
    """
    Fingerprint the upload together with the moment of validation.

    The same bytes validated twice yield two different tokens.
    """

    batch_id = uuid.uuid4()
    issued_at_ns = time.time_ns()
    digest = hashlib.sha256()
    digest.update(content)
    digest.update(str(issued_at_ns).encode("ascii"))
    digest.update(batch_id.bytes)
    return IssuedToken(
        batch_id=batch_id,
        token=digest.hexdigest()[:32],
        source_sha256=hashlib.sha256(content).hexdigest(),
        issued_at_ns=issued_at_ns,
    )


class ImportValidationService:
    """
    Coordinates parsing, header mapping, row validation, reference
    resolution, and ledger staging for one upload.
    """

    def __init__(
        self,
        *,
        ledger: BatchLedger,
        parser: WorkbookParser | None = None,
        header_resolver: HeaderResolver | None = None,
        row_validator: RowValidator | None = None,
        catalog_factory: CatalogFactory = default_catalogs,
        preview_rows: int = 10,
        detect_duplicates: bool = True,
        log_row_errors: bool = True,
    ) -> None:
        self._ledger = ledger
        self._parser = parser or WorkbookParser()
        self._header_resolver = header_resolver or HeaderResolver()
        self._row_validator = row_validator or RowValidator()
        self._catalog_factory = catalog_factory
        self._preview_rows = max(0, preview_rows)
        self._detect_duplicates = detect_duplicates
        self._log_row_errors = log_row_errors

    def validate_upload(
        self,
        *,
        db: Session,
        content: bytes,
        filename: str,
        issued: IssuedToken,
        content_type: str | None = None,
        concept: str | None = None,
    ) -> ValidationReport:
        """
        Validate one upload and record the attempt.

        Raises FormatError (or its HeaderMappingError subclass) when the file
        cannot be read as a table, ReferenceLookupError when the catalog is
        unreachable, and LedgerPersistenceError when staging fails.
        """

        workbook = self._parser.parse(content, content_type=content_type, filename=filename)
        outcomes, warnings, references = self._validate_rows(workbook)
        missing_references = self._resolve_references(db=db, outcomes=outcomes, references=references)

        if self._detect_duplicates:
            warnings.extend(_in_file_duplicates(outcomes))

        row_errors = [error for outcome in outcomes for error in outcome.errors]
        if self._log_row_errors:
            for error in row_errors:
                logger.warning(
                    "Import row error row=%s field=%s message=%s",
                    error.row_number,
                    error.field,
                    error.message,
                )

        batch = self._ledger.record_validation(
            db=db,
            batch_id=issued.batch_id,
            token=issued.token,
            source_sha256=issued.source_sha256,
            concept=normalize_text(concept) or None,
            filename=filename,
            rows=outcomes,
            warnings=warnings,
        )

        return ValidationReport(
            batch_id=batch.id,
            token=issued.token,
            filename=filename,
            total_rows=batch.total_rows,
            valid_rows=batch.valid_rows,
            row_errors=row_errors,
            warnings=warnings,
            missing_references=missing_references,
            preview=[dict(outcome.data) for outcome in outcomes[: self._preview_rows]],
        )

    def _validate_rows(
        self,
        workbook: ParsedWorkbook,
    ) -> tuple[list[RowOutcome], list[EncodingIssue | RowError], dict[str, ReferenceUsage]]:
        resolution = self._header_resolver.resolve(workbook.headers)
        references = self._row_validator.new_reference_usages()

        outcomes: list[RowOutcome] = []
        warnings: list[EncodingIssue | RowError] = []
        for parsed_row in workbook.rows:
            data = self._header_resolver.map_row(values=parsed_row.values, resolution=resolution)
            errors = self._row_validator.validate_row(
                data=data,
                row_number=parsed_row.row_number,
                references=references,
            )
            outcomes.append(RowOutcome(row_number=parsed_row.row_number, data=data, errors=errors))
            warnings.extend(parsed_row.encoding_issues)

        return outcomes, warnings, references

    def _resolve_references(
        self,
        *,
        db: Session,
        outcomes: list[RowOutcome],
        references: Mapping[str, ReferenceUsage],
    ) -> list[str]:
        catalogs = self._catalog_factory(db)
        by_row = {outcome.row_number: outcome for outcome in outcomes}
        missing: list[str] = []

        for field, usage in references.items():
            resolution = ReferenceResolver(catalogs[field]).resolve(usage)
            missing.extend(resolution.missing)
            for error in resolution.errors:
                by_row[error.row_number].errors.append(error)

        return missing


def _in_file_duplicates(outcomes: list[RowOutcome]) -> list[RowError]:
    """
    Flag rows that repeat an email or phone already used earlier in the file.

    These are warnings only; the commit step decides what is skipped.
    """

    first_email: dict[str, int] = {}
    first_phone: dict[str, int] = {}
    warnings: list[RowError] = []

    for outcome in outcomes:
        email = normalize_text(outcome.data.get("email")).lower()
        if email:
            if email in first_email:
                warnings.append(
                    RowError(
                        row_number=outcome.row_number,
                        field="email",
                        message=f"Same email as row {first_email[email]}",
                    )
                )
            else:
                first_email[email] = outcome.row_number

        digits = phone_digits(outcome.data.get("phone"))
        if digits:
            if digits in first_phone:
                warnings.append(
                    RowError(
                        row_number=outcome.row_number,
                        field="phone",
                        message=f"Same phone as row {first_phone[digits]}",
                    )
                )
            else:
                first_phone[digits] = outcome.row_number

    return warnings


@lru_cache(maxsize=1)
def get_import_validation_service() -> ImportValidationService:
    """
    Build and cache the validation service with env-driven settings.
    """
    settings = get_import_settings()
    return ImportValidationService(
        ledger=get_batch_ledger(),
        preview_rows=settings.preview_rows,
        detect_duplicates=settings.dedupe_enabled,
        log_row_errors=settings.log_row_errors,
    )
