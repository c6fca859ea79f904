"""Turn match results into idempotent host library mutations.

Per record and relation kind the engine tags the record, materializes related
studies into the shared relation folder and merges the relation note. Running it
again on unchanged input adds nothing.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, fields
from logging import getLogger
from typing import TYPE_CHECKING

from replication_checker.domain.identifiers import extract_doi
from replication_checker.domain.matching import dedupe_studies
from replication_checker.domain.model import RecordField

from .materialize import draft_from_record, draft_from_study, find_by_doi, find_existing
from .notes import find_note, merge_note, render_note
from .profiles import (
    PROFILES,
    TAG_ADDED_BY_CHECKER,
    TAG_READONLY_ORIGIN,
    readonly_collection_name,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable, Mapping, Sequence

    from replication_checker.domain.blacklist import BanRegistry
    from replication_checker.domain.guard import ReentrancyGuard
    from replication_checker.domain.model import (
        Collection,
        LibraryRecord,
        MatchResult,
        RelatedStudy,
        RelationKind,
    )
    from replication_checker.domain.ports import HostLibrary

    from .profiles import RelationProfile

log = getLogger(__name__)

type RelationPlan = tuple[RelationProfile, list[RelatedStudy]]


@dataclass(slots=True)
class ReconciliationResult:
    """Counts of mutations performed for one or more records."""

    records_reconciled: int = 0
    originals_copied: int = 0
    tags_added: int = 0
    tags_removed: int = 0
    records_created: int = 0
    records_reused: int = 0
    relations_added: int = 0
    notes_created: int = 0
    note_entries_added: int = 0
    skipped_banned: int = 0
    skipped_unidentified: int = 0
    target_id: int | None = None

    def absorb(self, other: ReconciliationResult) -> None:
        for counter in fields(self):
            if counter.name == "target_id":
                continue
            setattr(self, counter.name, getattr(self, counter.name) + getattr(other, counter.name))


class LibraryLocks:
    """Advisory per-library locks around search-then-create sequences."""

    def __init__(self) -> None:
        self._locks: dict[int, asyncio.Lock] = {}

    def for_library(self, library_id: int) -> asyncio.Lock:
        lock = self._locks.get(library_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[library_id] = lock
        return lock


@dataclass(slots=True)
class ReconciliationEngine:
    library: HostLibrary
    bans: BanRegistry
    guard: ReentrancyGuard
    locks: LibraryLocks = field(default_factory=LibraryLocks)
    create_notes: bool = True
    create_folders: bool = True
    profiles: Mapping[RelationKind, RelationProfile] = field(default_factory=lambda: PROFILES)

    def plan(self, match: MatchResult) -> list[RelationPlan]:
        plans: list[RelationPlan] = []
        for kind, profile in self.profiles.items():
            studies = dedupe_studies(match.studies(kind))
            if studies:
                plans.append((profile, studies))
        return plans

    async def reconcile(self, record_id: int, match: MatchResult) -> ReconciliationResult:
        """Apply ``match`` to ``record_id`` in its own (editable) library."""

        record = await self.library.get_record(record_id)
        result = ReconciliationResult(target_id=record.id)
        plans = self.plan(match)
        if not plans:
            return result

        await self.bans.ensure_loaded()
        async with self.locks.for_library(record.library_id):
            async with self._transaction() as created:
                await self._apply(
                    record.id, record.library_id, plans, result, created, related_tags=()
                )
            await self._merge_notes(record.id, plans, result)

        result.records_reconciled = 1
        log.debug(
            "Reconciled record %s: %s tags, %s created, %s reused, %s note entries",
            record.id,
            result.tags_added,
            result.records_created,
            result.records_reused,
            result.note_entries_added,
        )
        return result

    async def reconcile_copy(
        self,
        record_id: int,
        match: MatchResult,
        *,
        personal_library_id: int | None = None,
    ) -> ReconciliationResult:
        """Apply ``match`` to a personal-library copy of a read-only record.

        The copy is reused when one with the same DOI already exists, and lands in
        a collection named after the read-only library.
        """

        record = await self.library.get_record(record_id)
        result = ReconciliationResult()
        plans = self.plan(match)
        if not plans:
            return result

        source = await self.library.library_info(record.library_id)
        target_library = personal_library_id or await self.library.personal_library_id()

        await self.bans.ensure_loaded()
        async with self.locks.for_library(target_library):
            async with self._transaction() as created:
                copy_id = await self._copy_or_reuse(record, target_library, result, created)
                added = await self.library.add_tags(
                    copy_id, {TAG_ADDED_BY_CHECKER, TAG_READONLY_ORIGIN}
                )
                result.tags_added += len(added)
                collection = await self._ensure_collection(
                    target_library, readonly_collection_name(source.name)
                )
                await self.library.add_to_collection(collection.id, copy_id)
                await self._apply(
                    copy_id,
                    target_library,
                    plans,
                    result,
                    created,
                    related_tags=(TAG_READONLY_ORIGIN,),
                )
            await self._merge_notes(copy_id, plans, result)

        result.target_id = copy_id
        result.records_reconciled = 1
        return result

    async def _apply(
        self,
        target_id: int,
        library_id: int,
        plans: Sequence[RelationPlan],
        result: ReconciliationResult,
        created: list[int],
        *,
        related_tags: Iterable[str],
    ) -> None:
        extra = tuple(related_tags)
        for profile, studies in plans:
            await self._tag_target(target_id, profile, studies, result)
            if self.create_folders:
                await self._materialize(
                    target_id, library_id, profile, studies, result, created, extra
                )

    async def _tag_target(
        self,
        target_id: int,
        profile: RelationProfile,
        studies: Sequence[RelatedStudy],
        result: ReconciliationResult,
    ) -> None:
        markers = profile.outcome_markers(study.outcome for study in studies)
        added = await self.library.add_tags(target_id, {profile.has_tag} | markers)
        result.tags_added += len(added)
        if not markers:
            return
        # Outcome markers describe the current set of outcomes; drop superseded ones.
        stale = (profile.outcome_vocabulary - markers) & await self.library.get_tags(target_id)
        if stale:
            removed = await self.library.remove_tags(target_id, stale)
            result.tags_removed += len(removed)

    async def _materialize(
        self,
        target_id: int,
        library_id: int,
        profile: RelationProfile,
        studies: Sequence[RelatedStudy],
        result: ReconciliationResult,
        created: list[int],
        extra_tags: tuple[str, ...],
    ) -> None:
        folder: Collection | None = None
        if profile.folder is not None:
            folder = await self._ensure_collection(library_id, profile.folder)

        for study in studies:
            if not study.has_identifier:
                result.skipped_unidentified += 1
                continue
            if self.bans.is_banned(doi=study.doi, url=study.url):
                result.skipped_banned += 1
                continue

            related_id = await find_existing(self.library, library_id, profile, study)
            if related_id == target_id:
                continue
            if related_id is None:
                draft = draft_from_study(profile, study)
                related_id = await self.library.create_record(
                    library_id, draft.item_type, draft.fields, draft.creators
                )
                created.append(related_id)
                tags = {profile.is_tag, TAG_ADDED_BY_CHECKER, *extra_tags}
                result.records_created += 1
            else:
                tags = {profile.is_tag, *extra_tags}
                result.records_reused += 1

            added = await self.library.add_tags(related_id, tags)
            result.tags_added += len(added)
            if folder is not None:
                await self.library.add_to_collection(folder.id, related_id)
            if await self.library.add_relation(target_id, related_id):
                result.relations_added += 1

    async def _merge_notes(
        self,
        target_id: int,
        plans: Sequence[RelationPlan],
        result: ReconciliationResult,
    ) -> None:
        if not self.create_notes:
            return
        for profile, studies in plans:
            notes = await self.library.get_notes(target_id)
            existing = find_note(notes, profile)
            if existing is None:
                await self.library.create_note(target_id, render_note(profile, studies))
                result.notes_created += 1
                result.note_entries_added += len(studies)
                continue
            merged = merge_note(existing.html, profile, studies)
            if merged.changed:
                await self.library.update_note(existing.id, merged.html)
                result.note_entries_added += merged.added

    async def _copy_or_reuse(
        self,
        record: LibraryRecord,
        library_id: int,
        result: ReconciliationResult,
        created: list[int],
    ) -> int:
        doi = extract_doi(record.fields)
        if doi is not None:
            found_id = await find_by_doi(self.library, library_id, doi)
            if found_id is not None:
                return found_id

        draft = draft_from_record(record)
        if doi is not None and not draft.fields.get(str(RecordField.DOI)):
            draft.fields[str(RecordField.DOI)] = doi
        copy_id = await self.library.create_record(
            library_id, draft.item_type, draft.fields, draft.creators
        )
        created.append(copy_id)
        result.originals_copied += 1
        return copy_id

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[list[int]]:
        """Host transaction collecting the ids of records created inside it.

        The ids enter the guard just before the commit announces them and leave it
        again if the transaction fails.
        """

        created: list[int] = []
        try:
            async with self.library.transaction():
                yield created
                self.guard.register(created)
        except BaseException:
            self.guard.discard(created)
            raise

    async def _ensure_collection(self, library_id: int, name: str) -> Collection:
        collection = await self.library.find_collection(library_id, name)
        if collection is None:
            collection = await self.library.create_collection(library_id, name)
        return collection


__all__ = ["LibraryLocks", "ReconciliationEngine", "ReconciliationResult", "RelationPlan"]
