"""FLoRA prefix-lookup response schemas."""

from __future__ import annotations

import json
import logging
import re
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

log = logging.getLogger(__name__)

_MISSING_MARKERS = frozenset({"", "na", "n/a", "nan", "null", "none"})
_YEAR = re.compile(r"\b(\d{4})\b")


def _text(value: object) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        value = str(int(value)) if float(value).is_integer() else str(value)
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    if stripped.lower() in _MISSING_MARKERS:
        return None
    return stripped


def _year(value: object) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        match = _YEAR.search(value)
        return int(match.group(1)) if match else None
    return None


def _authors(value: object) -> list[object]:
    """Accept author lists, single author objects, or the same serialised as JSON."""

    if value is None:
        return []
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return []
        try:
            value = json.loads(text)
        except json.JSONDecodeError:
            return [{"family": part.strip()} for part in text.split(";") if part.strip()]
    if isinstance(value, dict):
        return [value]
    if not isinstance(value, list):
        return []
    authors: list[object] = []
    for item in value:
        if isinstance(item, str):
            if item.strip():
                authors.append({"family": item.strip()})
        elif isinstance(item, dict):
            authors.append(item)
    return authors


class FloraBaseModel(BaseModel):
    model_config = ConfigDict(extra="allow")
    _logged_extra_keys: ClassVar[set[str]] = set()

    def model_post_init(self, _context: object, /) -> None:
        extras = self.__pydantic_extra__
        if not extras:
            return
        new_keys = set(extras).difference(self._logged_extra_keys)
        if not new_keys:
            return
        self._logged_extra_keys.update(new_keys)
        log.debug(
            "FLoRA %s: unmodeled keys: %s",
            type(self).__name__,
            ", ".join(sorted(new_keys)),
        )


class FloraAuthor(FloraBaseModel):
    given: str | None = None
    family: str | None = None
    sequence: str | None = None

    @field_validator("given", "family", "sequence", mode="before")
    @classmethod
    def _clean_text(cls, value: object) -> str | None:
        return _text(value)


class FloraStudy(FloraBaseModel):
    doi: str | None = None
    doi_hash: str | None = None
    rep_type: str | None = None
    title: str | None = None
    authors: list[FloraAuthor] = Field(default_factory=list["FloraAuthor"])
    journal: str | None = None
    year: int | None = None
    volume: str | None = None
    issue: str | None = None
    pages: str | None = None
    apa_ref: str | None = None
    bibtex_ref: str | None = None
    url: str | None = None
    outcome: str | None = None
    abstract: str | None = None
    outcome_quote: str | None = None

    @field_validator(
        "doi",
        "doi_hash",
        "rep_type",
        "title",
        "journal",
        "volume",
        "issue",
        "pages",
        "apa_ref",
        "bibtex_ref",
        "url",
        "outcome",
        "abstract",
        "outcome_quote",
        mode="before",
    )
    @classmethod
    def _clean_text(cls, value: object) -> str | None:
        return _text(value)

    @field_validator("year", mode="before")
    @classmethod
    def _clean_year(cls, value: object) -> int | None:
        return _year(value)

    @field_validator("authors", mode="before")
    @classmethod
    def _clean_authors(cls, value: object) -> list[object]:
        return _authors(value)


class FloraStats(FloraBaseModel):
    n_replications: int = 0
    n_unique_replication_dois: int = 0
    n_originals: int = 0
    n_unique_original_dois: int = 0
    n_reproductions: int = 0
    n_reproduction_only: int = 0


class FloraRecord(FloraBaseModel):
    stats: FloraStats | None = None
    replications: list[FloraStudy] = Field(default_factory=list["FloraStudy"])
    originals: list[FloraStudy] = Field(default_factory=list["FloraStudy"])
    reproductions: list[FloraStudy] = Field(default_factory=list["FloraStudy"])

    @field_validator("replications", "originals", "reproductions", mode="before")
    @classmethod
    def _null_as_empty(cls, value: object) -> object:
        return [] if value is None else value


class FloraArticle(FloraStudy):
    record: FloraRecord = Field(default_factory=FloraRecord)

    @field_validator("record", mode="before")
    @classmethod
    def _null_record(cls, value: object) -> object:
        return {} if value is None else value


class PrefixLookupResponse(FloraBaseModel):
    results: dict[str, list[FloraArticle]] = Field(default_factory=dict[str, list[FloraArticle]])

    @field_validator("results", mode="before")
    @classmethod
    def _null_results(cls, value: object) -> object:
        if value is None:
            return {}
        if isinstance(value, dict):
            return {key: [] if items is None else items for key, items in value.items()}
        return value
