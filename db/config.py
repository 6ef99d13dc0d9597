"""
db/config.py

Environment-driven configuration shared by the API, the commit workers and
Alembic. Every setting is read through the helpers below so `.env` files are
loaded exactly once and malformed values fall back to defaults.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

_PROJECT_ROOT = Path(__file__).resolve().parents[1]
_ENV_FILENAMES = (".env", ".env.local")
_CLOUD_ENVIRONMENTS = frozenset({"prod", "production", "staging", "cloud"})
_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


@lru_cache(maxsize=1)
def load_env_files() -> None:
    """
    Copy KEY=VALUE lines from the project's `.env` files into os.environ.

    Variables already present in the process environment are left alone,
    so deployment settings always override the files.
    """

    for env_path in (_PROJECT_ROOT / name for name in _ENV_FILENAMES):
        if not env_path.is_file():
            continue

        for raw_line in env_path.read_text(encoding="utf-8").splitlines():
            line = raw_line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, _, value = line.partition("=")
            if key.strip():
                os.environ.setdefault(key.strip(), value.strip().strip("\"'"))


def env_bool(name: str, default: bool) -> bool:
    load_env_files()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in _TRUE_VALUES


def env_int(name: str, default: int, *, minimum: int | None = None, maximum: int | None = None) -> int:
    """
    Read an integer setting, clamped to ``[minimum, maximum]`` when given.
    Unparseable values yield ``default``; startup validation reports them.
    """

    load_env_files()
    raw_value = os.getenv(name)
    try:
        value = default if raw_value is None else int(raw_value)
    except ValueError:
        value = default
    if minimum is not None:
        value = max(minimum, value)
    if maximum is not None:
        value = min(maximum, value)
    return value


def normalize_postgres_url(url: str) -> str:
    """Rewrite bare postgres URLs to the psycopg (v3) driver form."""
    scheme, separator, rest = url.partition("://")
    if separator and scheme in {"postgres", "postgresql"}:
        return f"postgresql+psycopg://{rest}"
    return url


def require_postgres_url(url: str) -> str:
    if not url.startswith("postgresql"):
        raise RuntimeError("Only PostgreSQL database URLs are supported.")
    return url


def resolve_database_url() -> str:
    """
    Resolve the database URL.

    Priority:
    1) DATABASE_URL
    2) CLOUD_DATABASE_URL when ENVIRONMENT is cloud-like
    3) LOCAL_DATABASE_URL
    """

    load_env_files()
    environment = os.getenv("ENVIRONMENT", "local").strip().lower()

    candidates = [os.getenv("DATABASE_URL")]
    if environment in _CLOUD_ENVIRONMENTS:
        candidates.append(os.getenv("CLOUD_DATABASE_URL"))
    candidates.append(os.getenv("LOCAL_DATABASE_URL"))

    for candidate in candidates:
        if candidate:
            return normalize_postgres_url(candidate.strip())

    raise RuntimeError(
        "No database URL configured. Set DATABASE_URL, or configure "
        "LOCAL_DATABASE_URL / CLOUD_DATABASE_URL."
    )


@dataclass(frozen=True)
class DatabaseSettings:
    url: str
    echo: bool
    pool_size: int
    max_overflow: int
    pool_recycle_seconds: int


def load_database_settings() -> DatabaseSettings:
    """
    Engine settings from the environment.

    The pool always has room for the request session plus one connection per
    concurrent commit worker, whatever DB_POOL_SIZE says.
    """

    commit_workers = env_int("IMPORT_COMMIT_MAX_WORKERS", 4, minimum=1, maximum=8)
    return DatabaseSettings(
        url=require_postgres_url(resolve_database_url()),
        echo=env_bool("SQL_ECHO", False),
        pool_size=max(commit_workers + 1, env_int("DB_POOL_SIZE", 10, minimum=1)),
        max_overflow=env_int("DB_MAX_OVERFLOW", 10, minimum=0),
        pool_recycle_seconds=env_int("DB_POOL_RECYCLE", 1800, minimum=-1),
    )
