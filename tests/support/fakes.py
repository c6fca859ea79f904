"""Fakes for the candidate source, key-value storage and user interface ports."""

from __future__ import annotations

from typing import TYPE_CHECKING

from replication_checker.domain.errors import SourceUnavailableError

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from replication_checker.domain.model import Candidate


class FakeCandidateSource:
    """Serve candidates by fingerprint bucket and record every query."""

    def __init__(self, candidates: Iterable[Candidate] = (), *, fail: bool = False) -> None:
        self.candidates = list(candidates)
        self.fail = fail
        self.fail_on_call: int | None = None
        self.queries: list[list[str]] = []

    async def query_by_fingerprints(self, fingerprints: Sequence[str]) -> list[Candidate]:
        self.queries.append(list(fingerprints))
        if self.fail or self.fail_on_call == len(self.queries):
            raise SourceUnavailableError("source offline")
        wanted = set(fingerprints)
        return [candidate for candidate in self.candidates if candidate.fingerprint in wanted]

    @property
    def queried_fingerprints(self) -> list[str]:
        return [value for query in self.queries for value in query]


class MemoryStore:
    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.values: dict[str, str] = dict(initial or {})
        self.writes = 0

    async def get(self, key: str) -> str | None:
        return self.values.get(key)

    async def set(self, key: str, value: str) -> None:
        self.writes += 1
        self.values[key] = value


class RecordingUserInterface:
    """Answer confirmations from a queue (default ``answer``) and keep transcripts."""

    def __init__(self, *, answer: bool = True, answers: Iterable[bool] = ()) -> None:
        self.answer = answer
        self.answers = list(answers)
        self.confirms: list[tuple[str, str]] = []
        self.alerts: list[tuple[str, str]] = []

    async def confirm(self, title: str, message: str) -> bool:
        self.confirms.append((title, message))
        if self.answers:
            return self.answers.pop(0)
        return self.answer

    async def alert(self, title: str, message: str) -> None:
        self.alerts.append((title, message))
