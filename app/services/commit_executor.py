"""
app/services/commit_executor.py

Second phase of the bulk entity import.

The caller posts back the (possibly edited) rows of a validated batch
together with its token. Rows are re-validated, their referential values are
resolved against the catalog again, duplicates of existing records are
skipped, and accepted rows are written in fixed-size chunks.

Each chunk is its own transaction, run on a bounded worker pool. A failing
chunk is reported as one system error and never rolls back or cancels the
others. The ledger entry is finalized with whatever was achieved.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from sqlalchemy.orm import Session

from app.config import get_import_settings
from app.domain.imports import CommitRow, CommitSummary, RowError
from app.failure_codes import SYSTEM_FIELD, SYSTEM_ROW
from app.mappers.header_resolver import CANONICAL_FIELDS
from app.normalization import (
    normalize_key,
    normalize_text,
    normalize_website,
    optional_text,
    phone_digits,
)
from app.repositories.company_repository import CompanyRepository
from app.services.batch_ledger import BatchLedger, get_batch_ledger
from app.services.import_validation_service import CatalogFactory, default_catalogs
from app.services.reference_resolver import ReferenceResolution, ReferenceResolver
from app.validators.row_validator import RowValidator
from db.models.import_batch import ImportBatch
from db.session import get_session_factory

logger = logging.getLogger(__name__)

ChunkWriter = Callable[[list[dict[str, Any]]], int]


@dataclass(frozen=True)
class _AcceptedRow:
    row_number: int
    payload: dict[str, Any]


class _ErrorSink:
    """
    Thread-safe collector for errors raised by concurrent chunk writers.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._errors: list[RowError] = []

    def add(self, error: RowError) -> None:
        with self._lock:
            self._errors.append(error)

    def drain(self) -> list[RowError]:
        with self._lock:
            errors, self._errors = self._errors, []
        return errors


class CommitExecutor:
    """
    Writes the accepted rows of a validated batch to the companies table.
    """

    def __init__(
        self,
        *,
        ledger: BatchLedger,
        session_factory: Callable[[], Session] | None = None,
        chunk_writer: ChunkWriter | None = None,
        row_validator: RowValidator | None = None,
        catalog_factory: CatalogFactory = default_catalogs,
        chunk_size: int = 200,
        max_workers: int = 4,
        dedupe_enabled: bool = True,
        log_row_errors: bool = True,
    ) -> None:
        self._ledger = ledger
        self._session_factory = session_factory
        self._chunk_writer = chunk_writer
        self._row_validator = row_validator or RowValidator()
        self._catalog_factory = catalog_factory
        self._chunk_size = max(1, chunk_size)
        self._max_workers = max(1, max_workers)
        self._dedupe_enabled = dedupe_enabled
        self._log_row_errors = log_row_errors

    def commit(
        self,
        *,
        db: Session,
        token: str,
        concept: str,
        filename: str | None,
        rows: Sequence[CommitRow],
    ) -> CommitSummary:
        """
        Commit the posted rows of the batch identified by ``token``.

        Raises InvalidTokenError before anything is written when the token
        is not usable. Row-level rejections and chunk failures are returned
        in the summary, never raised.
        """

        batch = self._ledger.load_for_commit(db=db, token=token, filename=filename)
        batch_id = batch.id

        # Nothing is written yet, so a failure here leaves the token usable.
        try:
            accepted, errors = self._prepare_rows(db=db, batch=batch, rows=rows)
        except Exception:
            db.rollback()
            logger.exception("Import commit preparation failed batch_id=%s", batch_id)
            raise

        inserted = 0
        try:
            inserted, chunk_errors = self._write_chunks(batch_id=batch_id, accepted=accepted)
            errors.extend(chunk_errors)
        except Exception:
            logger.exception("Import commit write failed batch_id=%s inserted=%d", batch_id, inserted)
            raise
        finally:
            self._ledger.finalize_commit(
                db=db,
                batch=batch,
                inserted=inserted,
                failed=len(rows) - inserted,
                concept=normalize_text(concept) or None,
            )

        errors.sort(key=lambda error: (error.row_number, error.message))
        if self._log_row_errors:
            for error in errors:
                logger.warning(
                    "Import commit row rejected batch_id=%s row=%s field=%s message=%s",
                    batch_id,
                    error.row_number,
                    error.field,
                    error.message,
                )

        return CommitSummary(
            batch_id=batch_id,
            inserted=inserted,
            failed=len(rows) - inserted,
            errors=errors,
        )

    # ------------------------------------------------------------------
    # Row preparation
    # ------------------------------------------------------------------

    def _prepare_rows(
        self,
        *,
        db: Session,
        batch: ImportBatch,
        rows: Sequence[CommitRow],
    ) -> tuple[list[_AcceptedRow], list[RowError]]:
        errors: list[RowError] = []
        candidates: list[tuple[int, dict[str, str]]] = []
        seen_numbers: set[int] = set()
        staged_numbers = self._ledger.staged_row_numbers(db=db, batch_id=batch.id)
        references = self._row_validator.new_reference_usages()

        for row in rows:
            row_number = row.row_number
            if row_number not in staged_numbers:
                errors.append(
                    RowError(
                        row_number=row_number,
                        field="row",
                        message=f"Row {row_number} is not part of this import",
                    )
                )
                continue
            if row_number in seen_numbers:
                errors.append(
                    RowError(
                        row_number=row_number,
                        field="row",
                        message=f"Row {row_number} was submitted more than once",
                    )
                )
                continue
            seen_numbers.add(row_number)

            data = {field: normalize_text(row.data.get(field)) for field in CANONICAL_FIELDS}
            row_errors = self._row_validator.validate_row(
                data=data,
                row_number=row_number,
                references=references,
            )
            if row_errors:
                errors.extend(row_errors)
                continue
            candidates.append((row_number, data))

        catalogs = self._catalog_factory(db)
        resolutions: dict[str, ReferenceResolution] = {}
        rejected: set[int] = set()
        for field, usage in references.items():
            resolution = ReferenceResolver(catalogs[field]).resolve(usage)
            resolutions[field] = resolution
            errors.extend(resolution.errors)
            rejected.update(error.row_number for error in resolution.errors)

        candidates = [(number, data) for number, data in candidates if number not in rejected]

        if self._dedupe_enabled and candidates:
            candidates, duplicate_errors = self._drop_duplicates(db=db, candidates=candidates)
            errors.extend(duplicate_errors)

        accepted = [
            _AcceptedRow(
                row_number=row_number,
                payload=self._build_payload(
                    batch_id=batch.id,
                    row_number=row_number,
                    data=data,
                    resolutions=resolutions,
                ),
            )
            for row_number, data in candidates
        ]
        return accepted, errors

    def _drop_duplicates(
        self,
        *,
        db: Session,
        candidates: list[tuple[int, dict[str, str]]],
    ) -> tuple[list[tuple[int, dict[str, str]]], list[RowError]]:
        repository = CompanyRepository(db)
        existing_emails = repository.find_existing_emails(
            [data["email"].lower() for _, data in candidates],
            chunk_size=self._chunk_size,
        )
        existing_phones = repository.find_existing_phone_digits(
            [phone_digits(data["phone"]) or "" for _, data in candidates],
            chunk_size=self._chunk_size,
        )

        kept: list[tuple[int, dict[str, str]]] = []
        errors: list[RowError] = []
        for row_number, data in candidates:
            email = data["email"].lower()
            digits = phone_digits(data["phone"])

            matched: list[str] = []
            if email and email in existing_emails:
                matched.append("email")
            if digits and digits in existing_phones:
                matched.append("phone")

            if email:
                existing_emails.add(email)
            if digits:
                existing_phones.add(digits)

            if matched:
                errors.append(
                    RowError(
                        row_number=row_number,
                        field="duplicate",
                        message=f"Duplicate by {' and '.join(matched)}",
                    )
                )
                continue
            kept.append((row_number, data))

        return kept, errors

    def _build_payload(
        self,
        *,
        batch_id: uuid.UUID,
        row_number: int,
        data: Mapping[str, str],
        resolutions: Mapping[str, ReferenceResolution],
    ) -> dict[str, Any]:
        category = resolutions["category"].id_for(normalize_key(data["category"]))
        return {
            "name": data["name"],
            "type": self._row_validator.canonical_type(data["type"]),
            "category_id": category,
            "phone": data["phone"],
            "phone_digits": phone_digits(data["phone"]),
            "email": data["email"].lower(),
            "address": data["address"],
            "contact": optional_text(data.get("contact")),
            "web": normalize_website(data.get("web")),
            "instagram": optional_text(data.get("instagram")),
            "city": optional_text(data.get("city")),
            "country": optional_text(data.get("country")),
            "import_batch_id": batch_id,
            "import_row_number": row_number,
        }

    # ------------------------------------------------------------------
    # Chunked writes
    # ------------------------------------------------------------------

    def _write_chunks(
        self,
        *,
        batch_id: uuid.UUID,
        accepted: list[_AcceptedRow],
    ) -> tuple[int, list[RowError]]:
        if not accepted:
            return 0, []

        chunks = [accepted[start : start + self._chunk_size] for start in range(0, len(accepted), self._chunk_size)]
        sink = _ErrorSink()
        workers = min(self._max_workers, len(chunks))

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="import-commit") as pool:
            futures = [
                pool.submit(self._write_chunk, batch_id, index, chunk, sink)
                for index, chunk in enumerate(chunks, start=1)
            ]
            inserted = sum(future.result() for future in futures)

        logger.info(
            "Import commit chunks written batch_id=%s chunks=%d workers=%d inserted=%d",
            batch_id,
            len(chunks),
            workers,
            inserted,
        )
        return inserted, sink.drain()

    def _write_chunk(
        self,
        batch_id: uuid.UUID,
        index: int,
        chunk: list[_AcceptedRow],
        sink: _ErrorSink,
    ) -> int:
        first_row = chunk[0].row_number
        last_row = chunk[-1].row_number
        try:
            return self._write_payloads([row.payload for row in chunk])
        except Exception as exc:
            logger.exception(
                "Import commit chunk failed batch_id=%s chunk=%d rows=%d-%d size=%d",
                batch_id,
                index,
                first_row,
                last_row,
                len(chunk),
            )
            sink.add(
                RowError(
                    row_number=SYSTEM_ROW,
                    field=SYSTEM_FIELD,
                    message=(
                        f"Chunk {index} (rows {first_row}-{last_row}) was not imported: "
                        f"{_describe_failure(exc)}"
                    ),
                )
            )
            return 0

    def _write_payloads(self, payloads: list[dict[str, Any]]) -> int:
        if self._chunk_writer is not None:
            return self._chunk_writer(payloads)

        session = self._get_session_factory()()
        try:
            inserted = CompanyRepository(session).insert_payloads(payloads)
            session.commit()
            return inserted
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def _get_session_factory(self) -> Callable[[], Session]:
        if self._session_factory is None:
            self._session_factory = get_session_factory()
        return self._session_factory


def _describe_failure(exc: Exception) -> str:
    detail = str(exc).strip().splitlines()
    if detail:
        return f"{type(exc).__name__}: {detail[0]}"
    return type(exc).__name__


@lru_cache(maxsize=1)
def get_commit_executor() -> CommitExecutor:
    """
    Build and cache the commit executor with env-driven settings.
    """
    settings = get_import_settings()
    return CommitExecutor(
        ledger=get_batch_ledger(),
        chunk_size=settings.commit_chunk_size,
        max_workers=settings.commit_max_workers,
        dedupe_enabled=settings.dedupe_enabled,
        log_row_errors=settings.log_row_errors,
    )
