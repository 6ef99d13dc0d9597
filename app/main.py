from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

logger = logging.getLogger(__name__)


def _validate_env() -> None:
    """
    Check the environment before any engine or service is built.

    Collects every problem (unresolvable or non-PostgreSQL database URL,
    non-integer IMPORT_* knobs) and raises them together.
    """

    from app.config import IMPORT_INTEGER_SETTINGS
    from db.config import load_env_files, require_postgres_url, resolve_database_url

    load_env_files()
    errors: list[str] = []

    try:
        require_postgres_url(resolve_database_url())
    except RuntimeError as exc:
        errors.append(str(exc))

    for name in IMPORT_INTEGER_SETTINGS:
        raw_value = os.getenv(name)
        if raw_value is None:
            continue
        try:
            int(raw_value)
        except ValueError:
            errors.append(f"{name}={raw_value!r} is not an integer.")

    if errors:
        raise RuntimeError(
            "Startup validation failed:\n" + "\n".join(f"  - {error}" for error in errors)
        )


def _configure_logging() -> None:
    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _check_database() -> None:
    """
    Confirm the database answers and holds every mapped import table.
    Does NOT auto-migrate.
    """

    from sqlalchemy import inspect, text
    from sqlalchemy.exc import SQLAlchemyError

    import db.models  # noqa: F401 registers all ORM models on Base.metadata
    from db.base import Base
    from db.session import get_engine

    engine = get_engine()
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        present = set(inspect(engine).get_table_names())
    except SQLAlchemyError as exc:
        raise RuntimeError("Database unavailable.") from exc
    logger.info("Database connectivity confirmed")

    missing = sorted(set(Base.metadata.tables) - present)
    if missing:
        logger.critical(
            "Schema mismatch missing_tables=%s. Run 'alembic upgrade head' and restart.",
            ",".join(missing),
        )
        raise RuntimeError(f"Schema mismatch: missing tables {', '.join(missing)}. Run migrations and restart.")
    logger.info("Database schema validated tables=%d", len(Base.metadata.tables))


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    _check_database()
    yield


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """

    _validate_env()
    _configure_logging()

    application = FastAPI(
        title="Entity Import API",
        version="1.0.0",
        lifespan=_lifespan,
    )

    from app.api.routers import imports_router

    application.include_router(imports_router)

    @application.get("/health")
    def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    return application


app = create_app()
