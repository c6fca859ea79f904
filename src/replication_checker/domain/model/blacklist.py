"""Ban registry entries."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

from replication_checker.domain.identifiers import normalize_doi, normalize_url

from .enums import BanReason, RelationKind


@dataclass(frozen=True, slots=True)
class BlacklistEntry:
    """A related study the user never wants materialized again.

    Either ``doi`` or ``url`` may be missing; URL-only entries are common for
    reproductions.
    """

    kind: RelationKind
    doi: str | None = None
    url: str | None = None
    title: str | None = None
    original_title: str | None = None
    original_doi: str | None = None
    record_id: int | None = None
    reason: BanReason = BanReason.MANUAL
    added_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def doi_key(self) -> str | None:
        return normalize_doi(self.doi)

    @property
    def url_key(self) -> str | None:
        return normalize_url(self.url)
