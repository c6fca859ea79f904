"""Translate FLoRA payloads into domain candidates."""

from __future__ import annotations

from typing import TYPE_CHECKING

from replication_checker.domain.identifiers import normalize_doi
from replication_checker.domain.model import (
    Author,
    Candidate,
    Outcome,
    RawReference,
    RelatedStudy,
    RelationKind,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .schema import FloraArticle, FloraStudy, PrefixLookupResponse


def translate_study(study: FloraStudy, kind: RelationKind) -> RelatedStudy:
    reference = (
        RawReference(bibtex=study.bibtex_ref, apa=study.apa_ref)
        if study.bibtex_ref or study.apa_ref
        else None
    )
    return RelatedStudy(
        kind=kind,
        title=study.title,
        doi=normalize_doi(study.doi),
        url=study.url,
        authors=tuple(
            Author(given=author.given, family=author.family)
            for author in study.authors
            if author.given or author.family
        ),
        year=study.year,
        journal=study.journal,
        volume=study.volume,
        issue=study.issue,
        pages=study.pages,
        outcome=Outcome.parse(study.outcome),
        outcome_label=study.outcome,
        outcome_quote=study.outcome_quote,
        reference=reference,
    )


def _translate_all(studies: Iterable[FloraStudy], kind: RelationKind) -> tuple[RelatedStudy, ...]:
    return tuple(translate_study(study, kind) for study in studies)


def translate_article(fingerprint: str, article: FloraArticle) -> Candidate:
    record = article.record
    return Candidate(
        fingerprint=fingerprint,
        doi=article.doi,
        title=article.title,
        replications=_translate_all(record.replications, RelationKind.REPLICATION),
        reproductions=_translate_all(record.reproductions, RelationKind.REPRODUCTION),
        originals=_translate_all(record.originals, RelationKind.ORIGINAL),
    )


def translate_response(response: PrefixLookupResponse) -> list[Candidate]:
    return [
        translate_article(fingerprint.lower(), article)
        for fingerprint, articles in response.results.items()
        for article in articles
    ]
