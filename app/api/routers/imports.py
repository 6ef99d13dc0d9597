"""
app/api/routers/imports.py

Bulk entity import HTTP endpoints.

POST /imports/validate            multipart upload, returns the validation report and token
POST /imports/commit              JSON body {token, concept, filename, rows}
GET  /imports/template            CSV template download
GET  /imports/batches/{batch_id}  ledger entry with its staged rows
"""

from __future__ import annotations

import csv
import io
import logging
import uuid
from typing import Any

from fastapi import APIRouter, Body, Depends, Form, HTTPException, UploadFile, status
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.api.dependencies import get_spreadsheet_upload
from app.config import ImportSettings, get_import_settings
from app.domain.imports import (
    CommitRow,
    FormatError,
    ImportPipelineError,
    InvalidTokenError,
    ValidationReport,
)
from app.failure_codes import FILE_FIELD, FILE_ROW, HEADER_FIELD, SYSTEM_FIELD, SYSTEM_ROW
from app.mappers.header_resolver import CANONICAL_FIELDS
from app.schemas.imports import (
    CommitData,
    CommitErrorResponse,
    CommitRequest,
    CommitResponse,
    ImportBatchResponse,
    RowErrorResponse,
    ValidateResponse,
)
from app.services.batch_ledger import BatchLedger, get_batch_ledger
from app.services.commit_executor import CommitExecutor, get_commit_executor
from app.services.import_validation_service import (
    ImportValidationService,
    get_import_validation_service,
    issue_token,
)
from app.validators.mapping_validator import HeaderMappingError
from db.session import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/imports", tags=["imports"])

TEMPLATE_FILENAME = "entity_import_template.csv"

TEMPLATE_EXAMPLE_ROWS: tuple[dict[str, str], ...] = (
    {
        "name": "Example Company",
        "type": "company",
        "category": "Construction",
        "phone": "099123456",
        "email": "company@example.com",
        "address": "Av. Principal 123",
        "contact": "Juan Pérez",
        "web": "https://example.com",
        "instagram": "@example",
        "city": "Montevideo",
        "country": "Uruguay",
    },
    {
        "name": "Example Professional",
        "type": "professional",
        "category": "Services",
        "phone": "098765432",
        "email": "professional@example.com",
        "address": "Calle 456",
        "contact": "María García",
        "web": "",
        "instagram": "@professional",
        "city": "Canelones",
        "country": "Uruguay",
    },
    {
        "name": "Example Institution",
        "type": "institution",
        "category": "Education",
        "phone": "097654321",
        "email": "institution@example.edu.uy",
        "address": "Boulevard 789",
        "contact": "Pedro López",
        "web": "https://institution.edu.uy",
        "instagram": "",
        "city": "Montevideo",
        "country": "Uruguay",
    },
)


# ---------------------------------------------------------------------------
# Response helpers
# ---------------------------------------------------------------------------


def _validation_failure(
    *,
    status_code: int,
    row: int,
    field: str,
    message: str,
    token: str | None,
    filename: str | None,
) -> JSONResponse:
    body = ValidateResponse(
        ok=False,
        row_errors=[RowErrorResponse(row=row, field=field, message=message)],
        token=token,
        filename=filename,
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


def _to_validate_response(report: ValidationReport) -> ValidateResponse:
    return ValidateResponse(
        ok=report.ok,
        batch_id=report.batch_id,
        total_rows=report.total_rows,
        valid_rows=report.valid_rows,
        row_errors=[RowErrorResponse(**error.to_dict()) for error in report.row_errors],
        warnings=[RowErrorResponse(**warning.to_dict()) for warning in report.warnings],
        missing_references=report.missing_references,
        preview=report.preview,
        token=report.token,
        filename=report.filename,
    )


def _commit_failure(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=CommitResponse(data=None, error=message).model_dump(mode="json"),
    )


def _describe_validation_error(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())) or "body"
        parts.append(f"{location}: {error.get('msg', 'invalid')}")
    return "Invalid commit request. " + "; ".join(parts)


def _to_commit_rows(rows: list[dict[str, Any]]) -> list[CommitRow]:
    """
    Convert posted row objects, taking ``row_number`` from each row when
    present and its 1-based position otherwise.
    """

    commit_rows: list[CommitRow] = []
    for position, row in enumerate(rows, start=1):
        raw_number = row.get("row_number")
        if raw_number is None or raw_number == "":
            row_number = position
        else:
            try:
                row_number = int(raw_number)
            except (TypeError, ValueError) as exc:
                raise ValueError(f"rows.{position - 1}.row_number must be an integer.") from exc

        data = {
            field: "" if row.get(field) is None else str(row.get(field))
            for field in CANONICAL_FIELDS
        }
        commit_rows.append(CommitRow(row_number=row_number, data=data))
    return commit_rows


def _template_csv() -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=list(CANONICAL_FIELDS), lineterminator="\r\n")
    writer.writeheader()
    writer.writerows(TEMPLATE_EXAMPLE_ROWS)
    return buffer.getvalue()


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post("/validate", response_model=ValidateResponse)
def validate_import(
    file: UploadFile = Depends(get_spreadsheet_upload),
    concept: str | None = Form(default=None),
    db: Session = Depends(get_db),
    validation_service: ImportValidationService = Depends(get_import_validation_service),
    settings: ImportSettings = Depends(get_import_settings),
):
    """
    Validate one spreadsheet and stage it for commit.
    """

    filename = (file.filename or "upload").strip()
    try:
        content = file.file.read(settings.max_upload_bytes + 1)
    finally:
        file.file.close()

    if not content:
        return _validation_failure(
            status_code=status.HTTP_400_BAD_REQUEST,
            row=FILE_ROW,
            field=FILE_FIELD,
            message="The uploaded file is empty.",
            token=None,
            filename=filename,
        )
    if len(content) > settings.max_upload_bytes:
        return _validation_failure(
            status_code=status.HTTP_400_BAD_REQUEST,
            row=FILE_ROW,
            field=FILE_FIELD,
            message=f"The uploaded file exceeds the {settings.max_upload_bytes} byte limit.",
            token=None,
            filename=filename,
        )

    issued = issue_token(content)
    try:
        report = validation_service.validate_upload(
            db=db,
            content=content,
            filename=filename,
            issued=issued,
            content_type=file.content_type,
            concept=concept,
        )
    except HeaderMappingError as exc:
        return _validation_failure(
            status_code=status.HTTP_400_BAD_REQUEST,
            row=FILE_ROW,
            field=HEADER_FIELD,
            message=str(exc),
            token=issued.token,
            filename=filename,
        )
    except FormatError as exc:
        return _validation_failure(
            status_code=status.HTTP_400_BAD_REQUEST,
            row=FILE_ROW,
            field=FILE_FIELD,
            message=str(exc),
            token=issued.token,
            filename=filename,
        )
    except ImportPipelineError as exc:
        logger.exception("Import validation failed filename=%r", filename)
        return _validation_failure(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            row=SYSTEM_ROW,
            field=SYSTEM_FIELD,
            message=str(exc),
            token=issued.token,
            filename=filename,
        )

    return _to_validate_response(report)


@router.post("/commit", response_model=CommitResponse)
def commit_import(
    payload: Any = Body(default=None),
    db: Session = Depends(get_db),
    commit_executor: CommitExecutor = Depends(get_commit_executor),
):
    """
    Write the accepted rows of a validated upload.

    A commit in which every row is rejected is still a 200 with
    ``inserted == 0``; rejections are listed in ``errors``.
    """

    try:
        request = CommitRequest.model_validate(payload)
        rows = _to_commit_rows(request.rows)
    except ValidationError as exc:
        return _commit_failure(status.HTTP_400_BAD_REQUEST, _describe_validation_error(exc))
    except ValueError as exc:
        return _commit_failure(status.HTTP_400_BAD_REQUEST, f"Invalid commit request. {exc}")

    try:
        summary = commit_executor.commit(
            db=db,
            token=request.token,
            concept=request.concept,
            filename=request.filename,
            rows=rows,
        )
    except InvalidTokenError as exc:
        return _commit_failure(status.HTTP_400_BAD_REQUEST, str(exc))
    except ImportPipelineError as exc:
        logger.exception("Import commit failed")
        return _commit_failure(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))
    except Exception:
        logger.exception("Import commit failed unexpectedly")
        return _commit_failure(status.HTTP_500_INTERNAL_SERVER_ERROR, "Unexpected error while importing.")

    return CommitResponse(
        data=CommitData(
            batch_id=summary.batch_id,
            inserted=summary.inserted,
            failed=summary.failed,
            errors=[
                CommitErrorResponse(row=error.row_number, field=error.field, message=error.message)
                for error in summary.errors
            ],
        )
    )


@router.get("/template")
def download_template() -> Response:
    """
    Download a CSV template with the canonical header row and example rows.
    """

    return Response(
        content=_template_csv(),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{TEMPLATE_FILENAME}"'},
    )


@router.get("/batches/{batch_id}", response_model=ImportBatchResponse)
def get_import_batch(
    batch_id: uuid.UUID,
    db: Session = Depends(get_db),
    ledger: BatchLedger = Depends(get_batch_ledger),
) -> ImportBatchResponse:
    """
    Return one import attempt with its staged rows.
    """

    batch = ledger.get_batch(db=db, batch_id=batch_id)
    if batch is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Import batch {batch_id} not found.",
        )

    return ImportBatchResponse.model_validate(batch)
