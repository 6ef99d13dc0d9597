"""
app/repositories/company_repository.py

Persistence layer for imported company records.
"""

from __future__ import annotations

from collections.abc import Collection, Sequence
from typing import Any

from sqlalchemy import func, insert, select
from sqlalchemy.orm import Session

from db.models.company import Company

_LOOKUP_CHUNK_SIZE = 500


class CompanyRepository:
    """
    Repository for chunked inserts and duplicate lookups on companies.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def insert_payloads(self, payloads: Sequence[dict[str, Any]]) -> int:
        """
        Insert one chunk of prepared company payloads with a single statement.

        The caller owns the transaction.
        """

        if not payloads:
            return 0

        self._session.execute(insert(Company), list(payloads))
        return len(payloads)

    def find_existing_emails(
        self,
        emails: Collection[str],
        *,
        chunk_size: int = _LOOKUP_CHUNK_SIZE,
    ) -> set[str]:
        """
        Return the lowercased emails that already belong to a company.
        """

        size = max(1, chunk_size)
        wanted = sorted({email.lower() for email in emails if email})
        found: set[str] = set()
        for start in range(0, len(wanted), size):
            chunk = wanted[start : start + size]
            stmt = select(func.lower(Company.email)).where(func.lower(Company.email).in_(chunk))
            found.update(self._session.scalars(stmt).all())
        return found

    def find_existing_phone_digits(
        self,
        digits: Collection[str],
        *,
        chunk_size: int = _LOOKUP_CHUNK_SIZE,
    ) -> set[str]:
        size = max(1, chunk_size)
        wanted = sorted({value for value in digits if value})
        found: set[str] = set()
        for start in range(0, len(wanted), size):
            chunk = wanted[start : start + size]
            stmt = select(Company.phone_digits).where(Company.phone_digits.in_(chunk))
            found.update(value for value in self._session.scalars(stmt).all() if value)
        return found
