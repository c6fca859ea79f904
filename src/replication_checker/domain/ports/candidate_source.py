"""Port for the remote replication database."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from replication_checker.domain.model import Candidate


@runtime_checkable
class CandidateSource(Protocol):
    """Answers fingerprint bucket queries with candidate original studies.

    Implementations raise ``SourceUnavailableError`` for any transport or
    remote failure; partial answers are never returned.
    """

    async def query_by_fingerprints(self, fingerprints: Sequence[str]) -> list[Candidate]: ...


__all__ = ["CandidateSource"]
