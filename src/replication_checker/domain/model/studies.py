"""Value objects describing matches returned by the candidate source."""

from __future__ import annotations

from dataclasses import dataclass, field

from replication_checker.domain.identifiers import normalize_title, normalize_url

from .enums import Outcome, RelationKind

type IdentityKey = tuple[str, str]


@dataclass(frozen=True, slots=True)
class Author:
    given: str | None = None
    family: str | None = None

    @property
    def citation_name(self) -> str | None:
        """Render as ``Family, G.`` (or whichever half is available)."""

        family = (self.family or "").strip()
        given = (self.given or "").strip()
        if family and given:
            return f"{family}, {given[0]}."
        return family or given or None


@dataclass(frozen=True, slots=True)
class RawReference:
    """Unparsed bibliographic reference text attached to a related study."""

    bibtex: str | None = None
    apa: str | None = None


@dataclass(frozen=True, slots=True)
class RelatedStudy:
    kind: RelationKind
    title: str | None = None
    doi: str | None = None
    url: str | None = None
    authors: tuple[Author, ...] = ()
    year: int | None = None
    journal: str | None = None
    volume: str | None = None
    issue: str | None = None
    pages: str | None = None
    outcome: Outcome = Outcome.UNKNOWN
    outcome_label: str | None = None
    outcome_quote: str | None = None
    reference: RawReference | None = None

    @property
    def normalized_url(self) -> str | None:
        return normalize_url(self.url)

    @property
    def has_identifier(self) -> bool:
        return self.doi is not None or self.normalized_url is not None

    @property
    def identity_key(self) -> IdentityKey | None:
        """Dedup key: DOI, else URL, else normalised title."""

        if self.doi is not None:
            return ("doi", self.doi)
        url = self.normalized_url
        if url is not None:
            return ("url", url)
        title = normalize_title(self.title)
        if title is not None:
            return ("title", title)
        return None

    @property
    def report_url(self) -> str | None:
        if self.url is None:
            return None
        url = self.url.strip()
        return url if url.lower().startswith("https") else None


@dataclass(frozen=True, slots=True)
class Candidate:
    """One original study returned for a fingerprint bucket."""

    fingerprint: str
    doi: str | None
    title: str | None = None
    replications: tuple[RelatedStudy, ...] = ()
    reproductions: tuple[RelatedStudy, ...] = ()
    originals: tuple[RelatedStudy, ...] = ()


@dataclass(slots=True)
class MatchResult:
    """Verified related studies for one queried identifier."""

    identifier: str
    replications: list[RelatedStudy] = field(default_factory=list["RelatedStudy"])
    reproductions: list[RelatedStudy] = field(default_factory=list["RelatedStudy"])
    originals: list[RelatedStudy] = field(default_factory=list["RelatedStudy"])

    def studies(self, kind: RelationKind) -> list[RelatedStudy]:
        if kind is RelationKind.REPLICATION:
            return self.replications
        if kind is RelationKind.REPRODUCTION:
            return self.reproductions
        return self.originals

    @property
    def has_matches(self) -> bool:
        return bool(self.replications or self.reproductions or self.originals)

    @property
    def total(self) -> int:
        return len(self.replications) + len(self.reproductions) + len(self.originals)
