"""
app/services/reference_resolver.py

Batched referential-integrity check of import rows against a catalog.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Collection
from dataclasses import dataclass, field
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError

from app.domain.imports import ReferenceLookupError, ReferenceUsage, RowError

logger = logging.getLogger(__name__)


class ReferenceCatalog(Protocol):
    def lookup(self, keys: Collection[str]) -> dict[str, uuid.UUID]:
        ...


@dataclass(frozen=True)
class ReferenceResolution:
    """
    Outcome of resolving one referential field for a whole batch.
    """

    field_name: str
    resolved: dict[str, uuid.UUID] = field(default_factory=dict)
    missing: list[str] = field(default_factory=list)
    errors: list[RowError] = field(default_factory=list)

    def id_for(self, key: str) -> uuid.UUID | None:
        return self.resolved.get(key)


class ReferenceResolver:
    """
    Queries the catalog once per batch and fans missing values back out to
    every row that used them.
    """

    def __init__(self, catalog: ReferenceCatalog) -> None:
        self._catalog = catalog

    def resolve(self, usage: ReferenceUsage) -> ReferenceResolution:
        if not usage.entries:
            return ReferenceResolution(field_name=usage.field_name)

        try:
            resolved = self._catalog.lookup(list(usage.entries))
        except SQLAlchemyError as exc:
            logger.exception("Reference catalog lookup failed field=%s", usage.field_name)
            raise ReferenceLookupError(
                f"Could not check {usage.field_name} values against the catalog."
            ) from exc

        missing: list[str] = []
        errors: list[RowError] = []
        for key, uses in usage.entries.items():
            if key in resolved:
                continue
            missing.append(usage.display_value(key))
            errors.extend(
                RowError(row_number=row_number, field=usage.field_name, message=f'"{value}" not found')
                for row_number, value in uses
            )

        if missing:
            logger.info(
                "Unresolved references field=%s values=%s affected_rows=%d",
                usage.field_name,
                missing,
                len(errors),
            )

        errors.sort(key=lambda error: error.row_number)
        return ReferenceResolution(
            field_name=usage.field_name,
            resolved=dict(resolved),
            missing=missing,
            errors=errors,
        )
