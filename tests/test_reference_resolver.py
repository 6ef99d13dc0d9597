from __future__ import annotations

import uuid
from collections.abc import Collection

import pytest
from sqlalchemy.exc import OperationalError

from app.domain.imports import ReferenceLookupError, ReferenceUsage
from app.repositories.category_repository import CategoryRepository
from app.services.reference_resolver import ReferenceResolver
from db.models.category import Category


class _CountingCatalog:
    def __init__(self, known: dict[str, uuid.UUID]) -> None:
        self.known = known
        self.calls: list[list[str]] = []

    def lookup(self, keys: Collection[str]) -> dict[str, uuid.UUID]:
        self.calls.append(sorted(keys))
        return {key: self.known[key] for key in keys if key in self.known}


class _BrokenCatalog:
    def lookup(self, keys: Collection[str]) -> dict[str, uuid.UUID]:
        raise OperationalError("SELECT", {}, Exception("connection refused"))


def _usage(*uses: tuple[str, int, str]) -> ReferenceUsage:
    usage = ReferenceUsage(field_name="category")
    for key, row_number, value in uses:
        usage.record(key=key, row_number=row_number, value=value)
    return usage


def test_missing_value_yields_one_error_per_row_from_a_single_query() -> None:
    services_id = uuid.uuid4()
    catalog = _CountingCatalog({"servicios": services_id})
    usage = _usage(
        ("legal", 5, "Legal"),
        ("servicios", 1, "Servicios"),
        ("legal", 2, "legal"),
        ("legal", 9, "LEGAL"),
    )

    resolution = ReferenceResolver(catalog).resolve(usage)

    assert len(catalog.calls) == 1
    assert resolution.missing == ["Legal"]
    assert [(error.row_number, error.field) for error in resolution.errors] == [
        (2, "category"),
        (5, "category"),
        (9, "category"),
    ]
    assert resolution.errors[0].message == '"legal" not found'
    assert resolution.id_for("servicios") == services_id


def test_empty_usage_skips_the_catalog() -> None:
    catalog = _CountingCatalog({})

    resolution = ReferenceResolver(catalog).resolve(ReferenceUsage(field_name="category"))

    assert catalog.calls == []
    assert resolution.missing == []


def test_catalog_failure_is_raised_as_lookup_error() -> None:
    with pytest.raises(ReferenceLookupError):
        ReferenceResolver(_BrokenCatalog()).resolve(_usage(("legal", 1, "Legal")))


def test_category_repository_matches_accent_and_case_insensitively(db, categories) -> None:
    found = CategoryRepository(db).lookup(["construccion", "tecnologia", "legal"])

    assert found == {
        "construccion": categories["Construcción"],
        "tecnologia": categories["Tecnología"],
    }


def test_names_sharing_a_key_resolve_to_the_first_by_name(db, categories) -> None:
    unaccented = Category(name="Construccion")
    db.add(unaccented)
    db.commit()

    found = CategoryRepository(db).lookup(["construccion"])

    assert found == {"construccion": unaccented.id}
