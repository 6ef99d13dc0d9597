"""
app/services/batch_ledger.py

Audit ledger of import attempts.

Validation writes one ImportBatch plus one ImportRow per parsed row inside a
single transaction: staged rows go out in fixed-size INSERT chunks to bound
statement size, and a failing chunk is logged with its position before the
whole record is rolled back. A half-recorded batch is never left behind.

Commit finalizes the same batch that validation created; the token checks
that guard it live here as well.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import get_import_settings
from app.domain.imports import (
    EncodingIssue,
    InvalidTokenError,
    LedgerPersistenceError,
    RowError,
    RowOutcome,
)
from db.models.import_batch import ImportBatch, ImportBatchStatus, ImportRow
from db.repositories.import_batch_repository import ImportBatchRepository

logger = logging.getLogger(__name__)


class BatchLedger:
    """
    Persists and finalizes import batch ledger entries.
    """

    def __init__(self, *, chunk_size: int = 500, token_ttl_seconds: int = 86400) -> None:
        self._chunk_size = max(1, chunk_size)
        self._token_ttl = timedelta(seconds=max(1, token_ttl_seconds))

    def record_validation(
        self,
        *,
        db: Session,
        batch_id: uuid.UUID,
        token: str,
        source_sha256: str,
        concept: str | None,
        filename: str,
        rows: Sequence[RowOutcome],
        warnings: Sequence[EncodingIssue | RowError] = (),
    ) -> ImportBatch:
        """
        Record one validation attempt, all-or-nothing.
        """

        repository = ImportBatchRepository(db)
        valid_rows = sum(1 for row in rows if row.is_valid)

        try:
            batch = repository.create_batch(
                batch_id=batch_id,
                token=token,
                source_sha256=source_sha256,
                source_filename=filename,
                concept=concept,
                total_rows=len(rows),
                valid_rows=valid_rows,
                warnings=[warning.to_dict() for warning in warnings],
            )

            for chunk_index, start in enumerate(range(0, len(rows), self._chunk_size), start=1):
                chunk = rows[start : start + self._chunk_size]
                try:
                    repository.insert_rows([_row_payload(batch_id, row) for row in chunk])
                except SQLAlchemyError:
                    logger.exception(
                        "Import ledger row chunk failed batch_id=%s chunk=%d first_row=%d size=%d",
                        batch_id,
                        chunk_index,
                        chunk[0].row_number,
                        len(chunk),
                    )
                    raise

            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise LedgerPersistenceError("The import attempt could not be recorded.") from exc

        logger.info(
            "Import batch recorded batch_id=%s filename=%r total_rows=%d valid_rows=%d warnings=%d",
            batch.id,
            filename,
            batch.total_rows,
            batch.valid_rows,
            len(warnings),
        )
        return batch

    def load_for_commit(
        self,
        *,
        db: Session,
        token: str,
        filename: str | None = None,
    ) -> ImportBatch:
        """
        Return the batch a commit token refers to, or raise InvalidTokenError.
        """

        repository = ImportBatchRepository(db)
        batch = repository.get_by_token(token.strip())
        if batch is None:
            raise InvalidTokenError("Unknown validation token. Validate the file again.")

        if batch.status != ImportBatchStatus.VALIDATED:
            raise InvalidTokenError(
                f"This validation was already committed (status: {batch.status}). Validate the file again."
            )

        created_at = batch.created_at
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        if datetime.now(timezone.utc) - created_at > self._token_ttl:
            raise InvalidTokenError("The validation token has expired. Validate the file again.")

        if filename and filename.strip() != batch.source_filename:
            raise InvalidTokenError("The validation token belongs to a different file.")

        if repository.has_newer_validation(batch):
            raise InvalidTokenError(
                "This file was validated again after this token was issued. Use the latest token."
            )

        return batch

    def finalize_commit(
        self,
        *,
        db: Session,
        batch: ImportBatch,
        inserted: int,
        failed: int,
        concept: str | None = None,
    ) -> ImportBatch:
        repository = ImportBatchRepository(db)
        try:
            repository.mark_committed(
                batch,
                inserted_rows=inserted,
                error_rows=failed,
                concept=concept,
            )
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Import batch finalization failed batch_id=%s", batch.id)
            raise LedgerPersistenceError("The import result could not be recorded.") from exc

        logger.info(
            "Import batch finalized batch_id=%s status=%s inserted=%d failed=%d",
            batch.id,
            batch.status,
            inserted,
            failed,
        )
        return batch

    def get_batch(self, *, db: Session, batch_id: uuid.UUID) -> ImportBatch | None:
        return ImportBatchRepository(db).get_batch(batch_id)

    def staged_row_numbers(self, *, db: Session, batch_id: uuid.UUID) -> set[int]:
        """
        Row numbers staged at validation. Blank spreadsheet lines are not
        staged, so these can have gaps and run past ``total_rows``.
        """

        return ImportBatchRepository(db).staged_row_numbers(batch_id)

    def list_rows(self, *, db: Session, batch_id: uuid.UUID) -> list[ImportRow]:
        return ImportBatchRepository(db).list_rows(batch_id)


def _row_payload(batch_id: uuid.UUID, row: RowOutcome) -> dict[str, Any]:
    return {
        "batch_id": batch_id,
        "row_number": row.row_number,
        "data": dict(row.data),
        "is_valid": row.is_valid,
        "errors": [{"field": error.field, "message": error.message} for error in row.errors],
        "created_at": datetime.now(timezone.utc),
    }


@lru_cache(maxsize=1)
def get_batch_ledger() -> BatchLedger:
    settings = get_import_settings()
    return BatchLedger(
        chunk_size=settings.ledger_chunk_size,
        token_ttl_seconds=settings.token_ttl_seconds,
    )
