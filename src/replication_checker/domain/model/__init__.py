"""Public domain model surface."""

from __future__ import annotations

from replication_checker.domain.model.blacklist import BlacklistEntry
from replication_checker.domain.model.enums import (
    BanReason,
    ItemType,
    Outcome,
    RecordField,
    RelationKind,
)
from replication_checker.domain.model.library import (
    Collection,
    Creator,
    LibraryInfo,
    LibraryRecord,
    Note,
)
from replication_checker.domain.model.studies import (
    Author,
    Candidate,
    IdentityKey,
    MatchResult,
    RawReference,
    RelatedStudy,
)

__all__ = [  # noqa: RUF022
    # studies
    "Author",
    "Candidate",
    "IdentityKey",
    "MatchResult",
    "RawReference",
    "RelatedStudy",
    # library
    "Collection",
    "Creator",
    "LibraryInfo",
    "LibraryRecord",
    "Note",
    # blacklist
    "BlacklistEntry",
    # enums
    "BanReason",
    "ItemType",
    "Outcome",
    "RecordField",
    "RelationKind",
]
