"""Parse raw bibliographic references attached to related studies.

Only BibTeX is machine-readable; APA text is kept for display. Parsed fields are
used to fill gaps in a record built from the structured study payload.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Final

import bibtexparser
from bibtexparser.bparser import BibTexParser
from bibtexparser.customization import InvalidName, convert_to_unicode, splitname

from replication_checker.domain.model import Creator, ItemType, RecordField

if TYPE_CHECKING:
    from collections.abc import Mapping

log = getLogger(__name__)

ENTRY_TYPE_MAP: Final[Mapping[str, ItemType]] = {
    "article": ItemType.JOURNAL_ARTICLE,
    "book": ItemType.BOOK,
    "incollection": ItemType.BOOK_SECTION,
    "inbook": ItemType.BOOK_SECTION,
    "inproceedings": ItemType.CONFERENCE_PAPER,
    "conference": ItemType.CONFERENCE_PAPER,
    "phdthesis": ItemType.THESIS,
    "mastersthesis": ItemType.THESIS,
    "techreport": ItemType.REPORT,
    "misc": ItemType.DOCUMENT,
    "unpublished": ItemType.DOCUMENT,
    "online": ItemType.WEBPAGE,
}

_FIELD_MAP: Final[Mapping[str, RecordField]] = {
    "title": RecordField.TITLE,
    "doi": RecordField.DOI,
    "url": RecordField.URL,
    "year": RecordField.DATE,
    "journal": RecordField.PUBLICATION_TITLE,
    "volume": RecordField.VOLUME,
    "number": RecordField.ISSUE,
    "pages": RecordField.PAGES,
    "publisher": RecordField.PUBLISHER,
    "address": RecordField.PLACE,
    "institution": RecordField.INSTITUTION,
    "school": RecordField.INSTITUTION,
    "booktitle": RecordField.BOOK_TITLE,
    "isbn": RecordField.ISBN,
    "abstract": RecordField.ABSTRACT,
}


@dataclass(frozen=True, slots=True)
class ParsedReference:
    item_type: ItemType | None = None
    fields: Mapping[str, str] = field(default_factory=dict[str, str])
    creators: tuple[Creator, ...] = ()


def parse_bibtex(text: str | None) -> ParsedReference | None:
    """Parse the first entry of ``text``; return ``None`` if nothing usable is found."""

    references = parse_bibtex_entries(text)
    return references[0] if references else None


def parse_bibtex_entries(text: str | None) -> list[ParsedReference]:
    """Parse every entry of a BibTeX document, in document order."""

    if not text or not text.strip():
        return []
    parser = BibTexParser(common_strings=True)
    parser.customization = convert_to_unicode
    try:
        database = bibtexparser.loads(text, parser=parser)
    except Exception as exc:  # noqa: BLE001 - pyparsing raises assorted error types
        log.debug("Unparseable BibTeX reference: %s", exc)
        return []
    return [_reference_from_entry(entry) for entry in database.entries]


def _reference_from_entry(entry: Mapping[str, str]) -> ParsedReference:
    fields: dict[str, str] = {}
    for key, target in _FIELD_MAP.items():
        value = _clean(entry.get(key))
        if value is not None and str(target) not in fields:
            fields[str(target)] = value
    entry_type = str(entry.get("ENTRYTYPE", "")).lower()
    return ParsedReference(
        item_type=ENTRY_TYPE_MAP.get(entry_type),
        fields=fields,
        creators=_parse_creators(entry.get("author")),
    )


def merge_reference(
    item_type: ItemType,
    fields: dict[str, str],
    creators: list[Creator],
    reference: ParsedReference | None,
) -> ItemType:
    """Fill missing ``fields``/``creators`` from ``reference`` in place.

    Returns the record type to use: a mapped BibTeX type replaces the default
    unless it only maps to the generic document type.
    """

    if reference is None:
        return item_type
    for key, value in reference.fields.items():
        if not fields.get(key):
            fields[key] = value
    if not creators:
        creators.extend(reference.creators)
    if reference.item_type is not None and reference.item_type is not ItemType.DOCUMENT:
        return reference.item_type
    return item_type


def _parse_creators(raw: str | None) -> tuple[Creator, ...]:
    if not raw:
        return ()
    creators: list[Creator] = []
    for name in raw.replace("\n", " ").split(" and "):
        cleaned = name.strip()
        if not cleaned or cleaned.lower() == "others":
            continue
        try:
            parts = splitname(cleaned, strict_mode=False)
        except InvalidName:
            creators.append(Creator(last_name=cleaned))
            continue
        last = " ".join([*parts.get("von", []), *parts.get("last", [])]).strip()
        first = " ".join(parts.get("first", [])).strip()
        creators.append(Creator(first_name=first or None, last_name=last or None))
    return tuple(creators)


def _clean(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    cleaned = " ".join(value.replace("{", "").replace("}", "").split())
    return cleaned or None


__all__ = [
    "ENTRY_TYPE_MAP",
    "ParsedReference",
    "merge_reference",
    "parse_bibtex",
    "parse_bibtex_entries",
]
