"""
app/mappers package marker.
"""

from app.mappers.header_resolver import (
    CANONICAL_FIELDS,
    DEFAULT_HEADER_SYNONYMS,
    REQUIRED_CANONICAL_FIELDS,
    HeaderResolution,
    HeaderResolver,
)

__all__ = [
    "CANONICAL_FIELDS",
    "DEFAULT_HEADER_SYNONYMS",
    "REQUIRED_CANONICAL_FIELDS",
    "HeaderResolution",
    "HeaderResolver",
]
