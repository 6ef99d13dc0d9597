"""
app/normalization.py

Text normalization shared by header mapping, validation, and commit.
"""

from __future__ import annotations

import re
import unicodedata

_WHITESPACE_RE = re.compile(r"\s+")
_NON_WORD_RE = re.compile(r"[^a-z0-9]+")
_NON_DIGIT_RE = re.compile(r"\D+")


def normalize_text(value: object) -> str:
    """
    NFC-normalize, turn non-breaking spaces into spaces, and trim.
    """

    if value is None:
        return ""
    text = unicodedata.normalize("NFC", str(value))
    return text.replace("\u00a0", " ").strip()


def strip_accents(value: str) -> str:
    decomposed = unicodedata.normalize("NFKD", value)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_key(value: object) -> str:
    """
    Comparison key: accent-free, case-folded, single-spaced.

    "  Construcción " and "construccion" share the same key.
    """

    text = strip_accents(normalize_text(value)).casefold()
    return _WHITESPACE_RE.sub(" ", text).strip()


def normalize_header(value: object) -> str:
    """
    Header key: like normalize_key, with every run of non-alphanumerics
    collapsed to one underscore ("Sitio Web" -> "sitio_web").
    """

    return _NON_WORD_RE.sub("_", normalize_key(value)).strip("_")


def phone_digits(value: object) -> str | None:
    digits = _NON_DIGIT_RE.sub("", normalize_text(value))
    return digits or None


def normalize_website(value: object) -> str | None:
    url = normalize_text(value)
    if not url:
        return None
    if url.lower().startswith(("http://", "https://")):
        return url
    return f"https://{url}"


def optional_text(value: object) -> str | None:
    text = normalize_text(value)
    return text or None
