"""Local lookup and record construction for related studies."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from replication_checker.domain.identifiers import extract_doi
from replication_checker.domain.model import Creator, ItemType, RecordField, RelationKind
from replication_checker.domain.references import merge_reference, parse_bibtex

if TYPE_CHECKING:
    from replication_checker.domain.model import LibraryRecord, RelatedStudy
    from replication_checker.domain.ports import HostLibrary

    from .profiles import RelationProfile


@dataclass(slots=True)
class RecordDraft:
    item_type: ItemType
    fields: dict[str, str] = field(default_factory=dict[str, str])
    creators: list[Creator] = field(default_factory=list[Creator])


async def find_existing(
    library: HostLibrary,
    library_id: int,
    profile: RelationProfile,
    study: RelatedStudy,
) -> int | None:
    """Look up a local record for ``study``: by DOI, then URL, then title plus marker tag."""

    if study.doi is not None:
        found_id = await find_by_doi(library, library_id, study.doi)
        if found_id is not None:
            return found_id

    if study.url:
        variants = [study.url.strip()]
        normalized = study.normalized_url
        if normalized is not None and normalized not in variants:
            variants.append(normalized)
        for variant in variants:
            found = await library.search_by_field(library_id, RecordField.URL, variant)
            if found:
                return min(found)

    if study.title:
        by_title = set(await library.search_by_field(library_id, RecordField.TITLE, study.title))
        if by_title:
            tagged = set(await library.search_by_tag(library_id, profile.is_tag))
            matches = by_title & tagged
            if matches:
                return min(matches)
    return None


async def find_by_doi(library: HostLibrary, library_id: int, doi: str) -> int | None:
    """Find a live record carrying ``doi`` in any form ``extract_doi`` accepts.

    The exact field match covers the common case. Otherwise records whose ``DOI`` or
    ``extra`` field merely contains the DOI are re-checked by extraction.
    """

    found = await library.search_by_field(library_id, RecordField.DOI, doi)
    if found:
        return min(found)

    loose: set[int] = set()
    for name in (RecordField.DOI, RecordField.EXTRA):
        loose.update(await library.search_containing(library_id, name, doi))
    for record_id in sorted(loose):
        record = await library.get_record(record_id)
        if extract_doi(record.fields) == doi:
            return record_id
    return None


def draft_from_study(profile: RelationProfile, study: RelatedStudy) -> RecordDraft:
    """Build the record to create for ``study``; BibTeX only fills gaps."""

    draft = RecordDraft(item_type=profile.new_item_type)
    candidates = {
        RecordField.TITLE: study.title,
        RecordField.DOI: study.doi,
        RecordField.URL: study.url.strip() if study.url else None,
        RecordField.DATE: str(study.year) if study.year is not None else None,
        RecordField.PUBLICATION_TITLE: study.journal,
        RecordField.VOLUME: study.volume,
        RecordField.ISSUE: study.issue,
        RecordField.PAGES: study.pages,
    }
    for key, value in candidates.items():
        if value:
            draft.fields[str(key)] = value

    extra = _extra_lines(profile, study)
    if extra:
        draft.fields[str(RecordField.EXTRA)] = extra

    draft.creators.extend(
        Creator(first_name=author.given, last_name=author.family)
        for author in study.authors
        if author.given or author.family
    )

    reference = parse_bibtex(study.reference.bibtex) if study.reference else None
    draft.item_type = merge_reference(draft.item_type, draft.fields, draft.creators, reference)
    return draft


def draft_from_record(record: LibraryRecord) -> RecordDraft:
    """Copy every populated field and creator of ``record``."""

    fields = {key: value for key, value in record.fields.items() if value and value.strip()}
    try:
        item_type = ItemType(record.item_type)
    except ValueError:
        item_type = ItemType.DOCUMENT
    return RecordDraft(item_type=item_type, fields=fields, creators=list(record.creators))


def _extra_lines(profile: RelationProfile, study: RelatedStudy) -> str | None:
    if profile.kind is RelationKind.ORIGINAL:
        return None
    label = profile.kind.value.capitalize()
    lines: list[str] = []
    if study.outcome_label:
        lines.append(f"{label} Outcome: {study.outcome_label}")
    if study.outcome_quote:
        lines.append(f"Outcome Quote: {study.outcome_quote}")
    return "\n".join(lines) or None


__all__ = [
    "RecordDraft",
    "draft_from_record",
    "draft_from_study",
    "find_by_doi",
    "find_existing",
]
