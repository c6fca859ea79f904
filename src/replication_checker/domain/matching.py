"""Privacy-preserving batch matching against the candidate source.

Only 3 hex character fingerprints (4096 buckets) leave the process. Which
candidate belongs to which local identifier is decided here, never remotely.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Final

from replication_checker.domain.identifiers import fingerprint, normalize_doi
from replication_checker.domain.model import MatchResult, RelationKind

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from replication_checker.domain.model import Candidate, RelatedStudy
    from replication_checker.domain.ports import CandidateSource

log = getLogger(__name__)

MAX_FINGERPRINTS_PER_QUERY: Final[int] = 100


def dedupe_studies(studies: Iterable[RelatedStudy]) -> list[RelatedStudy]:
    """Drop repeated studies by DOI, else URL, else normalised title; keep first seen.

    Studies with none of the three cannot be told apart and are dropped.
    """

    seen: set[tuple[str, str]] = set()
    unique: list[RelatedStudy] = []
    for study in studies:
        key = study.identity_key
        if key is None:
            log.debug("Dropping related study without DOI, URL or title")
            continue
        if key in seen:
            continue
        seen.add(key)
        unique.append(study)
    return unique


def chunked(values: Sequence[str], size: int) -> list[list[str]]:
    return [list(values[index : index + size]) for index in range(0, len(values), size)]


@dataclass(slots=True)
class HashPrefixMatcher:
    """Resolve identifiers to related studies through fingerprint bucket queries."""

    source: CandidateSource
    batch_size: int = MAX_FINGERPRINTS_PER_QUERY

    def __post_init__(self) -> None:
        if not 1 <= self.batch_size <= MAX_FINGERPRINTS_PER_QUERY:
            raise ValueError(
                f"batch_size must be between 1 and {MAX_FINGERPRINTS_PER_QUERY}, "
                f"got {self.batch_size}"
            )

    async def check_batch(self, identifiers: Iterable[str | None]) -> list[MatchResult]:
        """Return one result per distinct valid identifier, in first-seen order.

        Raises ``SourceUnavailableError`` if any bucket query fails; nothing is
        returned for the chunks that did succeed.
        """

        fingerprints_by_doi: dict[str, str] = {}
        for raw in identifiers:
            doi = normalize_doi(raw)
            if doi is None or doi in fingerprints_by_doi:
                continue
            fingerprints_by_doi[doi] = fingerprint(doi)

        if not fingerprints_by_doi:
            return []

        buckets = sorted(set(fingerprints_by_doi.values()))
        candidates_by_fingerprint: dict[str, list[Candidate]] = defaultdict(list)
        for index, chunk in enumerate(chunked(buckets, self.batch_size), start=1):
            log.debug("Querying fingerprint chunk %s with %s buckets", index, len(chunk))
            candidates = await self.source.query_by_fingerprints(chunk)
            for candidate in candidates:
                candidates_by_fingerprint[candidate.fingerprint].append(candidate)

        results = [
            self._verify(doi, bucket, candidates_by_fingerprint.get(bucket, ()))
            for doi, bucket in fingerprints_by_doi.items()
        ]
        log.debug(
            "Matched %s of %s identifiers across %s buckets",
            sum(1 for result in results if result.has_matches),
            len(results),
            len(buckets),
        )
        return results

    @staticmethod
    def _verify(doi: str, bucket: str, candidates: Iterable[Candidate]) -> MatchResult:
        verified = [
            candidate
            for candidate in candidates
            if candidate.fingerprint == bucket and normalize_doi(candidate.doi) == doi
        ]
        result = MatchResult(identifier=doi)
        for kind in RelationKind:
            collected = [
                study
                for candidate in verified
                for study in _candidate_studies(candidate, kind)
            ]
            result.studies(kind).extend(dedupe_studies(collected))
        return result


def _candidate_studies(candidate: Candidate, kind: RelationKind) -> tuple[RelatedStudy, ...]:
    if kind is RelationKind.REPLICATION:
        return candidate.replications
    if kind is RelationKind.REPRODUCTION:
        return candidate.reproductions
    return candidate.originals


__all__ = ["MAX_FINGERPRINTS_PER_QUERY", "HashPrefixMatcher", "chunked", "dedupe_studies"]
