"""
tests/test_row_validator.py

Pytest unit tests for RowValidator and the text normalization helpers it
relies on. Pure Python, no database.
"""

from __future__ import annotations

import pytest

from app.normalization import normalize_key, normalize_website, phone_digits
from app.validators.row_validator import RowValidator


def _row(**overrides: str) -> dict[str, str]:
    row = {
        "name": "Acme",
        "type": "empresa",
        "category": "Servicios",
        "phone": "099 123 456",
        "email": "info@acme.com",
        "address": "Calle 1",
        "contact": "",
        "web": "",
        "instagram": "",
        "city": "",
        "country": "",
    }
    row.update(overrides)
    return row


@pytest.fixture()
def validator() -> RowValidator:
    return RowValidator()


class TestRowValidator:
    def test_valid_row_has_no_errors(self, validator: RowValidator) -> None:
        assert validator.validate_row(data=_row(), row_number=1) == []

    def test_every_violation_is_reported(self, validator: RowValidator) -> None:
        errors = validator.validate_row(
            data=_row(name="", address="  ", type="cooperativa", email="not-an-email"),
            row_number=7,
        )

        assert [(error.row_number, error.field) for error in errors] == [
            (7, "name"),
            (7, "address"),
            (7, "type"),
            (7, "email"),
        ]
        assert errors[0].message == "name is required"
        assert errors[2].message == 'Invalid type "cooperativa". Allowed values: company, institution, professional.'
        assert errors[3].message == '"not-an-email" is not a valid email address'

    def test_empty_email_reports_presence_only(self, validator: RowValidator) -> None:
        errors = validator.validate_row(data=_row(email=""), row_number=2)

        assert [(error.field, error.message) for error in errors] == [("email", "email is required")]

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("company", "company"),
            ("EMPRESA", "company"),
            ("Profesional", "professional"),
            ("Institución", "institution"),
            ("institucion", "institution"),
            ("cooperativa", None),
        ],
    )
    def test_canonical_type(self, validator: RowValidator, value: str, expected: str | None) -> None:
        assert validator.canonical_type(value) == expected

    def test_referential_values_are_recorded_per_row(self, validator: RowValidator) -> None:
        references = validator.new_reference_usages()

        validator.validate_row(data=_row(category="Legal"), row_number=1, references=references)
        validator.validate_row(data=_row(category=" legal "), row_number=3, references=references)
        validator.validate_row(data=_row(category=""), row_number=4, references=references)

        usage = references["category"]
        assert len(usage) == 1
        assert usage.entries["legal"] == [(1, "Legal"), (3, "legal")]
        assert usage.display_value("legal") == "Legal"


class TestNormalizationHelpers:
    def test_normalize_key_ignores_accents_case_and_spacing(self) -> None:
        assert normalize_key("  Construcción   Civil ") == normalize_key("construccion civil")

    def test_phone_digits(self) -> None:
        assert phone_digits("+598 (99) 123-456") == "59899123456"
        assert phone_digits("  ") is None

    def test_normalize_website_adds_scheme(self) -> None:
        assert normalize_website("acme.com") == "https://acme.com"
        assert normalize_website("http://acme.com") == "http://acme.com"
        assert normalize_website("") is None
