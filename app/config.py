"""
app/config.py

Runtime settings for the bulk entity import pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from db.config import env_bool, env_int

# Integer settings checked at startup; malformed values abort boot.
IMPORT_INTEGER_SETTINGS = (
    "IMPORT_LEDGER_CHUNK_SIZE",
    "IMPORT_COMMIT_CHUNK_SIZE",
    "IMPORT_COMMIT_MAX_WORKERS",
    "IMPORT_PREVIEW_ROWS",
    "IMPORT_TOKEN_TTL_SECONDS",
    "IMPORT_MAX_UPLOAD_BYTES",
)


@dataclass(frozen=True)
class ImportSettings:
    """
    Knobs for validation, staging and commit.

    ``commit_max_workers`` bounds the concurrent chunk writers and is capped
    at 8; the database pool is sized from the same variable.
    """

    ledger_chunk_size: int = 500
    commit_chunk_size: int = 200
    commit_max_workers: int = 4
    preview_rows: int = 10
    token_ttl_seconds: int = 86400
    max_upload_bytes: int = 10 * 1024 * 1024
    dedupe_enabled: bool = True
    log_row_errors: bool = True


@lru_cache(maxsize=1)
def get_import_settings() -> ImportSettings:
    defaults = ImportSettings()
    return ImportSettings(
        ledger_chunk_size=env_int("IMPORT_LEDGER_CHUNK_SIZE", defaults.ledger_chunk_size, minimum=1),
        commit_chunk_size=env_int("IMPORT_COMMIT_CHUNK_SIZE", defaults.commit_chunk_size, minimum=1),
        commit_max_workers=env_int("IMPORT_COMMIT_MAX_WORKERS", defaults.commit_max_workers, minimum=1, maximum=8),
        preview_rows=env_int("IMPORT_PREVIEW_ROWS", defaults.preview_rows, minimum=0),
        token_ttl_seconds=env_int("IMPORT_TOKEN_TTL_SECONDS", defaults.token_ttl_seconds, minimum=60),
        max_upload_bytes=env_int("IMPORT_MAX_UPLOAD_BYTES", defaults.max_upload_bytes, minimum=1024),
        dedupe_enabled=env_bool("IMPORT_DEDUPE_ENABLED", defaults.dedupe_enabled),
        log_row_errors=env_bool("IMPORT_LOG_ROW_ERRORS", defaults.log_row_errors),
    )
