"""
Repository for import batch ledger entries and their staged rows.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Select, exists, insert, select
from sqlalchemy.orm import Session

from db.models.import_batch import ImportBatch, ImportBatchStatus, ImportRow


class ImportBatchRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create_batch(
        self,
        *,
        batch_id: uuid.UUID,
        token: str,
        source_sha256: str,
        source_filename: str,
        concept: str | None,
        total_rows: int,
        valid_rows: int,
        warnings: list[dict[str, Any]] | None = None,
    ) -> ImportBatch:
        batch = ImportBatch(
            id=batch_id,
            token=token,
            source_sha256=source_sha256,
            source_filename=source_filename,
            concept=concept,
            total_rows=total_rows,
            valid_rows=valid_rows,
            error_rows=total_rows - valid_rows,
            inserted_rows=0,
            status=ImportBatchStatus.VALIDATED,
            warnings=warnings or None,
        )
        self._session.add(batch)
        self._session.flush()
        return batch

    def insert_rows(self, payloads: Sequence[dict[str, Any]]) -> int:
        """
        Insert one chunk of staged rows with a single executemany INSERT.
        """

        if not payloads:
            return 0
        self._session.execute(insert(ImportRow), list(payloads))
        return len(payloads)

    def get_batch(self, batch_id: uuid.UUID) -> ImportBatch | None:
        return self._session.get(ImportBatch, batch_id)

    def get_by_token(self, token: str) -> ImportBatch | None:
        stmt = select(ImportBatch).where(ImportBatch.token == token)
        return self._session.execute(stmt).scalars().first()

    def has_newer_validation(self, batch: ImportBatch) -> bool:
        """
        True when the same file content was validated again after ``batch``.
        """

        stmt = select(
            exists().where(
                ImportBatch.source_sha256 == batch.source_sha256,
                ImportBatch.id != batch.id,
                ImportBatch.created_at > batch.created_at,
            )
        )
        return bool(self._session.execute(stmt).scalar())

    def staged_row_numbers(self, batch_id: uuid.UUID) -> set[int]:
        stmt = select(ImportRow.row_number).where(ImportRow.batch_id == batch_id)
        return set(self._session.scalars(stmt).all())

    def list_rows(self, batch_id: uuid.UUID) -> list[ImportRow]:
        stmt: Select[tuple[ImportRow]] = (
            select(ImportRow)
            .where(ImportRow.batch_id == batch_id)
            .order_by(ImportRow.row_number)
        )
        return list(self._session.scalars(stmt).all())

    def mark_committed(
        self,
        batch: ImportBatch,
        *,
        inserted_rows: int,
        error_rows: int,
        concept: str | None = None,
    ) -> ImportBatch:
        batch.inserted_rows = inserted_rows
        batch.error_rows = error_rows
        batch.status = ImportBatchStatus.IMPORTED if inserted_rows > 0 else ImportBatchStatus.FAILED
        batch.committed_at = datetime.now(timezone.utc)
        if concept:
            batch.concept = concept
        return batch
