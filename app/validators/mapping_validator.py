"""
app/validators/mapping_validator.py

Whole-file check that the header row covers every required canonical field.
"""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from app.domain.imports import FormatError


class HeaderMappingError(FormatError):
    """
    Raised when required canonical fields have no matching column.

    No row of such a file can be read, so the upload fails as a whole and
    the API reports it under the ``header`` field.
    """

    def __init__(self, *, missing_fields: Sequence[str], source_headers: Sequence[str]) -> None:
        self.missing_fields = list(missing_fields)
        self.source_headers = tuple(source_headers)
        super().__init__(f"Missing required columns: {', '.join(self.missing_fields)}.")

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": str(self),
            "missing_fields": list(self.missing_fields),
            "source_headers": list(self.source_headers),
        }


class MappingValidator:
    def __init__(self, *, required_fields: Sequence[str]) -> None:
        self._required_fields = tuple(required_fields)

    @property
    def required_fields(self) -> tuple[str, ...]:
        return self._required_fields

    def validate(self, *, mapping: Mapping[str, str], source_headers: Sequence[str]) -> None:
        """
        Raise one HeaderMappingError naming every missing required field,
        in declaration order.
        """

        missing = [field for field in self._required_fields if field not in mapping]
        if missing:
            raise HeaderMappingError(missing_fields=missing, source_headers=source_headers)
