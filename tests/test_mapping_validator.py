from __future__ import annotations

import unittest

from app.domain.imports import FormatError
from app.mappers.header_resolver import REQUIRED_CANONICAL_FIELDS
from app.validators.mapping_validator import HeaderMappingError, MappingValidator

SPANISH_HEADERS = {
    "name": "nombre",
    "type": "tipo",
    "category": "rubro",
    "phone": "telefono",
    "email": "email",
    "address": "direccion",
}


class TestMappingValidator(unittest.TestCase):
    def setUp(self) -> None:
        self.validator = MappingValidator(required_fields=REQUIRED_CANONICAL_FIELDS)

    def test_lists_every_missing_field_in_declaration_order(self) -> None:
        with self.assertRaises(HeaderMappingError) as ctx:
            self.validator.validate(
                mapping={"type": "tipo", "name": "nombre"},
                source_headers=("tipo", "nombre"),
            )

        self.assertEqual(ctx.exception.missing_fields, ["category", "phone", "email", "address"])
        self.assertEqual(str(ctx.exception), "Missing required columns: category, phone, email, address.")

    def test_header_mapping_error_is_a_format_error(self) -> None:
        with self.assertRaises(FormatError):
            self.validator.validate(mapping={}, source_headers=())

    def test_to_dict_carries_the_headers_that_were_found(self) -> None:
        mapping = {field: header for field, header in SPANISH_HEADERS.items() if field != "address"}

        with self.assertRaises(HeaderMappingError) as ctx:
            self.validator.validate(mapping=mapping, source_headers=tuple(mapping.values()))

        self.assertEqual(
            ctx.exception.to_dict(),
            {
                "message": "Missing required columns: address.",
                "missing_fields": ["address"],
                "source_headers": ["nombre", "tipo", "rubro", "telefono", "email"],
            },
        )

    def test_optional_fields_are_never_required(self) -> None:
        self.validator.validate(mapping=SPANISH_HEADERS, source_headers=tuple(SPANISH_HEADERS.values()))
        self.assertNotIn("web", self.validator.required_fields)


if __name__ == "__main__":
    unittest.main()
