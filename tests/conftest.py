"""
tests/conftest.py

Shared fixtures: a throwaway SQLite database with the full schema, a seeded
category catalog, and a CSV builder for upload payloads.
"""

from __future__ import annotations

import csv
import io
import uuid
from collections.abc import Callable, Iterator, Sequence

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

import db.models  # noqa: F401 registers all ORM models on Base.metadata
from db.base import Base
from db.models.category import Category

SEED_CATEGORIES = ("Construcción", "Servicios", "Educación", "Tecnología")

DEFAULT_HEADER = ("nombre", "tipo", "rubro", "telefono", "email", "direccion")


@pytest.fixture()
def engine(tmp_path) -> Iterator[Engine]:
    engine = create_engine(
        f"sqlite:///{tmp_path / 'imports.db'}",
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _record) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def db(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def categories(db: Session) -> dict[str, uuid.UUID]:
    """Seed the category catalog and return name -> id."""
    rows = [Category(name=name) for name in SEED_CATEGORIES]
    db.add_all(rows)
    db.commit()
    return {row.name: row.id for row in rows}


@pytest.fixture()
def make_csv() -> Callable[..., bytes]:
    """Build UTF-8 CSV bytes from a header and data rows."""

    def _build(rows: Sequence[Sequence[str]], header: Sequence[str] = DEFAULT_HEADER, delimiter: str = ",") -> bytes:
        buffer = io.StringIO()
        writer = csv.writer(buffer, delimiter=delimiter, lineterminator="\r\n")
        writer.writerow(header)
        writer.writerows(rows)
        return buffer.getvalue().encode("utf-8")

    return _build
