"""
app/repositories/category_repository.py

Read-only access to the category reference catalog.
"""

from __future__ import annotations

import uuid
from collections.abc import Collection

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.normalization import normalize_key
from db.models.category import Category


class CategoryRepository:
    """
    Looks up categories by accent/case/space-insensitive name.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def lookup(self, keys: Collection[str]) -> dict[str, uuid.UUID]:
        """
        Return comparison key -> category id for every requested key present.

        The catalog is small and stored names may differ from the upload in
        accents or spacing, so it is read in one query and matched here.
        """

        if not keys:
            return {}

        wanted = set(keys)
        found: dict[str, uuid.UUID] = {}
        # Names that normalize to the same key resolve to the first by name.
        stmt = select(Category.id, Category.name).order_by(Category.name, Category.id)
        for category_id, name in self._session.execute(stmt):
            key = normalize_key(name)
            if key in wanted and key not in found:
                found[key] = category_id
        return found
