"""
app/mappers/header_resolver.py

Maps literal (often localized) spreadsheet headers to canonical field names
through a static synonym table.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping, Sequence

from app.normalization import normalize_header
from app.validators.mapping_validator import MappingValidator

logger = logging.getLogger(__name__)

CANONICAL_FIELDS: tuple[str, ...] = (
    "name",
    "type",
    "category",
    "phone",
    "email",
    "address",
    "contact",
    "web",
    "instagram",
    "city",
    "country",
)

REQUIRED_CANONICAL_FIELDS: tuple[str, ...] = (
    "name",
    "type",
    "category",
    "phone",
    "email",
    "address",
)

# Canonical field -> accepted literal headers. Entries are compared after
# normalize_header, so case, accents and spacing do not matter here.
DEFAULT_HEADER_SYNONYMS: dict[str, tuple[str, ...]] = {
    "name": ("nombre", "razon social", "business name", "entity name"),
    "type": ("tipo", "tipo empresa", "tipo entidad", "entity type"),
    "category": ("rubro", "categoria", "sector", "industry"),
    "phone": ("telefono", "tel", "celular", "phone number", "mobile"),
    "email": ("e-mail", "mail", "correo", "correo electronico", "email address"),
    "address": ("direccion", "domicilio", "street address"),
    "contact": ("contacto", "contact name", "persona de contacto"),
    "web": ("website", "sitio web", "pagina web", "web site", "url"),
    "instagram": ("ig", "insta"),
    "city": ("ciudad", "localidad", "town"),
    "country": ("pais",),
}


@dataclass(frozen=True)
class HeaderResolution:
    """
    Canonical field -> literal header, resolved once per file.
    """

    canonical_to_header: dict[str, str]
    source_headers: tuple[str, ...]
    unmapped_headers: tuple[str, ...]


class HeaderResolver:
    """
    Resolves a header row into canonical field mappings.
    """

    def __init__(
        self,
        *,
        synonyms: Mapping[str, Sequence[str]] | None = None,
        canonical_fields: Sequence[str] = CANONICAL_FIELDS,
        required_fields: Sequence[str] = REQUIRED_CANONICAL_FIELDS,
    ) -> None:
        self._canonical_fields = tuple(canonical_fields)
        self._validator = MappingValidator(required_fields=required_fields)
        self._lookup = self._build_lookup(synonyms or DEFAULT_HEADER_SYNONYMS)

    @property
    def canonical_fields(self) -> tuple[str, ...]:
        return self._canonical_fields

    def resolve(self, headers: Sequence[str]) -> HeaderResolution:
        """
        Map headers to canonical fields, raising HeaderMappingError when a
        required field has no column.
        """

        source_headers = tuple(header for header in headers if header and header.strip())
        resolved: dict[str, str] = {}
        unmapped: list[str] = []

        for header in source_headers:
            canonical = self._lookup.get(normalize_header(header))
            if canonical is None or canonical in resolved:
                unmapped.append(header)
                continue
            resolved[canonical] = header

        self._validator.validate(mapping=resolved, source_headers=source_headers)

        if unmapped:
            logger.info("Ignoring unmapped import columns columns=%s", unmapped)

        return HeaderResolution(
            canonical_to_header=resolved,
            source_headers=source_headers,
            unmapped_headers=tuple(unmapped),
        )

    def map_row(
        self,
        *,
        values: Mapping[str, str],
        resolution: HeaderResolution,
    ) -> dict[str, str]:
        """
        Map one parsed row into canonical fields. Absent optional fields are "".
        """

        return {
            field: values.get(resolution.canonical_to_header[field], "")
            if field in resolution.canonical_to_header
            else ""
            for field in self._canonical_fields
        }

    def _build_lookup(self, synonyms: Mapping[str, Sequence[str]]) -> dict[str, str]:
        lookup: dict[str, str] = {}
        for canonical in self._canonical_fields:
            for candidate in (canonical, *synonyms.get(canonical, ())):
                key = normalize_header(candidate)
                if not key:
                    continue
                owner = lookup.setdefault(key, canonical)
                if owner != canonical:
                    raise ValueError(
                        f"Header synonym '{candidate}' is claimed by both '{owner}' and '{canonical}'."
                    )
        return lookup
