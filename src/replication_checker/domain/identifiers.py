"""Identifier canonicalisation and fingerprinting.

Normalisation output feeds every dedup index (ban registry, note merge, local
record lookup), so changes here invalidate data already stored by users.
"""

from __future__ import annotations

import hashlib
import re
import unicodedata
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Mapping

FINGERPRINT_LENGTH: Final[int] = 3

_DOI_URL_PREFIX = re.compile(r"^https?://(dx\.)?doi\.org/")
_DOI_LABEL_PREFIX = re.compile(r"^doi:\s*")
_REPEATED_SLASHES = re.compile(r"/+")
_TRAILING_SLASHES = re.compile(r"/+$")
_WHITESPACE = re.compile(r"\s+")
_EXTRA_DOI_LINE = re.compile(r"doi\s*[:=]\s*([^\n]+)", re.IGNORECASE)


def normalize_doi(raw: str | None) -> str | None:
    """Return the canonical lowercase DOI, or ``None`` if ``raw`` is not a DOI."""

    if not raw:
        return None
    value = raw.strip().lower()
    value = _DOI_URL_PREFIX.sub("", value)
    value = _DOI_LABEL_PREFIX.sub("", value)
    value = _REPEATED_SLASHES.sub("/", value)
    value = value.strip()
    if not value.startswith("10."):
        return None
    return value


def normalize_url(raw: str | None) -> str | None:
    if not raw:
        return None
    value = _TRAILING_SLASHES.sub("", raw.strip().lower())
    return value or None


def normalize_title(raw: str | None) -> str | None:
    if not raw:
        return None
    value = unicodedata.normalize("NFKC", raw).casefold()
    value = _WHITESPACE.sub(" ", value).strip()
    return value or None


def fingerprint(normalized_doi: str) -> str:
    """Return the 3 hex character MD5 prefix used as the privacy bucket id."""

    digest = hashlib.md5(normalized_doi.encode("utf-8"), usedforsecurity=False).hexdigest()
    return digest[:FINGERPRINT_LENGTH]


def extract_doi(fields: Mapping[str, str]) -> str | None:
    """Pull a DOI from a record's ``DOI`` field, falling back to a ``doi:`` line in ``extra``."""

    doi = normalize_doi(fields.get("DOI"))
    if doi is not None:
        return doi
    extra = fields.get("extra")
    if not extra:
        return None
    match = _EXTRA_DOI_LINE.search(extra)
    if match is None:
        return None
    return normalize_doi(match.group(1))
