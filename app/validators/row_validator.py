"""
app/validators/row_validator.py

Per-row validation of canonical import rows.
"""

from __future__ import annotations

import re
from typing import Mapping, Sequence

from app.domain.imports import ReferenceUsage, RowError
from app.mappers.header_resolver import REQUIRED_CANONICAL_FIELDS
from app.normalization import normalize_key, normalize_text
from db.models.company import CompanyType

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# Accepted spelling (compared with normalize_key) -> stored canonical type.
DEFAULT_TYPE_ALIASES: dict[str, str] = {
    CompanyType.COMPANY: CompanyType.COMPANY,
    CompanyType.PROFESSIONAL: CompanyType.PROFESSIONAL,
    CompanyType.INSTITUTION: CompanyType.INSTITUTION,
    "empresa": CompanyType.COMPANY,
    "profesional": CompanyType.PROFESSIONAL,
    "institucion": CompanyType.INSTITUTION,
}

REFERENTIAL_FIELDS: tuple[str, ...] = ("category",)


class RowValidator:
    """
    Applies presence, enumeration and format rules to one canonical row.

    Every rule runs independently so a row reports all of its problems.
    """

    def __init__(
        self,
        *,
        required_fields: Sequence[str] = REQUIRED_CANONICAL_FIELDS,
        type_aliases: Mapping[str, str] | None = None,
        referential_fields: Sequence[str] = REFERENTIAL_FIELDS,
    ) -> None:
        self._required_fields = tuple(required_fields)
        self._type_aliases = {
            normalize_key(alias): canonical
            for alias, canonical in (type_aliases or DEFAULT_TYPE_ALIASES).items()
        }
        self._allowed_types = sorted(set(self._type_aliases.values()))
        self._referential_fields = tuple(referential_fields)

    @property
    def referential_fields(self) -> tuple[str, ...]:
        return self._referential_fields

    def new_reference_usages(self) -> dict[str, ReferenceUsage]:
        return {field: ReferenceUsage(field_name=field) for field in self._referential_fields}

    def validate_row(
        self,
        *,
        data: Mapping[str, str],
        row_number: int,
        references: Mapping[str, ReferenceUsage] | None = None,
    ) -> list[RowError]:
        """
        Validate one row. Non-empty referential values are recorded in
        ``references`` for the batched catalog check.
        """

        errors: list[RowError] = []

        for field in self._required_fields:
            if not normalize_text(data.get(field)):
                errors.append(RowError(row_number=row_number, field=field, message=f"{field} is required"))

        type_value = normalize_text(data.get("type"))
        if type_value and self.canonical_type(type_value) is None:
            allowed = ", ".join(self._allowed_types)
            errors.append(
                RowError(
                    row_number=row_number,
                    field="type",
                    message=f'Invalid type "{type_value}". Allowed values: {allowed}.',
                )
            )

        email = normalize_text(data.get("email"))
        if email and not EMAIL_PATTERN.match(email):
            errors.append(
                RowError(
                    row_number=row_number,
                    field="email",
                    message=f'"{email}" is not a valid email address',
                )
            )

        if references is not None:
            for field in self._referential_fields:
                value = normalize_text(data.get(field))
                if value and field in references:
                    references[field].record(key=normalize_key(value), row_number=row_number, value=value)

        return errors

    def canonical_type(self, value: str | None) -> str | None:
        """
        Return the stored form of an accepted type spelling, or None.
        """

        return self._type_aliases.get(normalize_key(value))
