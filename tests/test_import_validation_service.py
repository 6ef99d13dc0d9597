"""
tests/test_import_validation_service.py

End-to-end validation phase against a SQLite database: parse, map, validate,
resolve categories, and stage the attempt in the ledger.
"""

from __future__ import annotations

import pytest

from app.domain.imports import FormatError, ReferenceLookupError
from app.services.batch_ledger import BatchLedger
from app.services.import_validation_service import ImportValidationService, issue_token
from app.validators.mapping_validator import HeaderMappingError
from db.models.import_batch import ImportBatchStatus


@pytest.fixture()
def service() -> ImportValidationService:
    return ImportValidationService(ledger=BatchLedger(chunk_size=2), preview_rows=2)


def _validate(service, db, content: bytes, filename: str = "listado.csv", concept: str | None = None):
    return service.validate_upload(
        db=db,
        content=content,
        filename=filename,
        issued=issue_token(content),
        content_type="text/csv",
        concept=concept,
    )


def test_three_row_example_reports_missing_email_and_unknown_category(service, db, categories, make_csv) -> None:
    content = make_csv(
        [
            ["Acme", "empresa", "Servicios", "099123456", "info@acme.com", "Calle 1"],
            ["Beta", "profesional", "Servicios", "098765432", "", "Calle 2"],
            ["Gamma", "institucion", "Legal", "097654321", "gamma@edu.uy", "Calle 3"],
        ]
    )

    report = _validate(service, db, content, concept="Socios 2026")

    assert (report.total_rows, report.valid_rows, report.error_rows) == (3, 1, 2)
    assert [error.to_dict() for error in report.row_errors] == [
        {"row": 2, "field": "email", "message": "email is required"},
        {"row": 3, "field": "category", "message": '"Legal" not found'},
    ]
    assert report.missing_references == ["Legal"]
    assert report.ok is False
    assert len(report.preview) == 2
    assert report.preview[0]["name"] == "Acme"

    batch = service._ledger.get_batch(db=db, batch_id=report.batch_id)
    assert batch.status == ImportBatchStatus.VALIDATED
    assert batch.token == report.token
    assert batch.concept == "Socios 2026"
    rows = service._ledger.list_rows(db=db, batch_id=report.batch_id)
    assert [(row.row_number, row.is_valid) for row in rows] == [(1, True), (2, False), (3, False)]


def test_shared_missing_reference_is_reported_for_every_row(service, db, categories, make_csv) -> None:
    content = make_csv(
        [
            ["A", "empresa", "Legal", "1", "a@x.com", "c"],
            ["B", "empresa", "legal ", "2", "b@x.com", "c"],
            ["C", "empresa", "LEGAL", "3", "c@x.com", "c"],
        ]
    )

    report = _validate(service, db, content)

    assert report.missing_references == ["Legal"]
    assert [error.row_number for error in report.row_errors] == [1, 2, 3]
    assert report.valid_rows == 0


def test_clean_file_is_ok_and_categories_match_accent_insensitively(service, db, categories, make_csv) -> None:
    content = make_csv([["Acme", "Empresa", "construccion", "099123456", "info@acme.com", "Calle 1"]])

    report = _validate(service, db, content)

    assert report.ok is True
    assert report.valid_rows == report.total_rows == 1
    assert report.row_errors == []


def test_in_file_duplicates_are_warnings_not_errors(service, db, categories, make_csv) -> None:
    content = make_csv(
        [
            ["Acme", "empresa", "Servicios", "099 123 456", "info@acme.com", "Calle 1"],
            ["Acme bis", "empresa", "Servicios", "099-123-456", "INFO@acme.com", "Calle 2"],
        ]
    )

    report = _validate(service, db, content)

    assert report.ok is True
    assert [(warning.row_number, warning.field) for warning in report.warnings] == [(2, "email"), (2, "phone")]
    assert report.warnings[0].message == "Same email as row 1"


def test_encoding_anomalies_become_batch_warnings(service, db, categories) -> None:
    content = (
        b"nombre,tipo,rubro,telefono,email,direccion\n"
        b"Constructora Le\xf3n,empresa,Construcci\xf3n,099123456,leon@x.com,Calle 1\n"
    )

    report = _validate(service, db, content)

    assert report.ok is True
    assert report.preview[0]["name"] == "Constructora Le\u00f3n"
    assert {warning.field for warning in report.warnings} == {"nombre", "rubro"}


def test_missing_required_headers_fail_the_whole_file(service, db, categories, make_csv) -> None:
    content = make_csv([["Acme", "empresa"]], header=("nombre", "tipo"))

    with pytest.raises(HeaderMappingError) as exc_info:
        _validate(service, db, content)

    assert exc_info.value.missing_fields == ["category", "phone", "email", "address"]


def test_unreadable_file_is_a_format_error(service, db, categories) -> None:
    with pytest.raises(FormatError):
        _validate(service, db, b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1" + b"\x00" * 32, filename="viejo.xls")


def test_catalog_failure_surfaces_as_lookup_error(db, categories, make_csv) -> None:
    class _BrokenCatalog:
        def lookup(self, keys):
            from sqlalchemy.exc import OperationalError

            raise OperationalError("SELECT", {}, Exception("timeout"))

    service = ImportValidationService(
        ledger=BatchLedger(),
        catalog_factory=lambda _db: {"category": _BrokenCatalog()},
    )
    content = make_csv([["Acme", "empresa", "Servicios", "1", "a@x.com", "c"]])

    with pytest.raises(ReferenceLookupError):
        _validate(service, db, content)


def test_revalidating_the_same_file_issues_distinct_tokens(service, db, categories, make_csv) -> None:
    content = make_csv([["Acme", "empresa", "Servicios", "1", "a@x.com", "c"]])

    first = _validate(service, db, content)
    second = _validate(service, db, content)

    assert first.token != second.token
    assert first.batch_id != second.batch_id
    assert len(first.token) == 32
