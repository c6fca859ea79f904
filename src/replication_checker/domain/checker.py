"""Entry points that drive matching and reconciliation from user triggers.

Every scan scope (selected records, a collection, a whole library, freshly
added records) funnels into one routine: gather records with DOIs, match them
in one all-or-nothing batch, partition the matches by library, then reconcile
in place or, for read-only libraries, via a confirmed personal copy.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING, Final

from replication_checker.config.checker import CheckerSettings
from replication_checker.domain.errors import RecordNotFoundError, SourceUnavailableError
from replication_checker.domain.identifiers import extract_doi
from replication_checker.domain.model import BanReason, BlacklistEntry, RecordField
from replication_checker.domain.reconciliation import ReconciliationResult
from replication_checker.domain.reconciliation.profiles import (
    REPLICATION_PROFILE,
    REPRODUCTION_PROFILE,
)
from replication_checker.domain.scheduling import Debouncer

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from replication_checker.domain.blacklist import BanRegistry
    from replication_checker.domain.guard import ReentrancyGuard
    from replication_checker.domain.matching import HashPrefixMatcher
    from replication_checker.domain.model import LibraryInfo, LibraryRecord, MatchResult
    from replication_checker.domain.ports import HostLibrary, UserInterface
    from replication_checker.domain.reconciliation import ReconciliationEngine

log = getLogger(__name__)

ALERT_TITLE: Final[str] = "Replication Checker"
ERROR_TITLE: Final[str] = "Replication Checker - Error"
SOURCE_ERROR_MESSAGE: Final[str] = (
    "Could not retrieve data from the replication database. "
    "Check your internet connection or retry later."
)
PROMPT_PREVIEW_LIMIT: Final[int] = 3


class CheckScope(StrEnum):
    RECORDS = "records"
    COLLECTION = "collection"
    LIBRARY = "library"
    NEW_RECORDS = "new-records"


_SUMMARY_TITLES: Final[dict[CheckScope, str]] = {
    CheckScope.RECORDS: "Selected Items Scan Complete",
    CheckScope.COLLECTION: "Collection Scan Complete",
    CheckScope.LIBRARY: "Library Scan Complete",
}

_NO_DOI_MESSAGES: Final[dict[CheckScope, str]] = {
    CheckScope.RECORDS: "No DOIs found in selected items.",
    CheckScope.COLLECTION: "No items with DOIs found in collection.",
    CheckScope.LIBRARY: "No items with DOIs found in library.",
}


@dataclass(slots=True)
class CheckReport:
    """Summary of one scan; record counts only include successful reconciliations."""

    scope: CheckScope
    items_checked: int = 0
    items_with_doi: int = 0
    items_with_matches: int = 0
    items_reconciled: int = 0
    items_declined: int = 0
    items_failed: int = 0
    source_failed: bool = False
    reconciliation: ReconciliationResult = field(default_factory=ReconciliationResult)


type MatchedRecord = tuple[LibraryRecord, MatchResult]


class ReplicationChecker:
    """Application service wiring matcher, engine, ban registry and guard together."""

    def __init__(
        self,
        *,
        library: HostLibrary,
        matcher: HashPrefixMatcher,
        engine: ReconciliationEngine,
        bans: BanRegistry,
        guard: ReentrancyGuard,
        ui: UserInterface,
        settings: CheckerSettings | None = None,
    ) -> None:
        self.library = library
        self.matcher = matcher
        self.engine = engine
        self.bans = bans
        self.guard = guard
        self.ui = ui
        self.settings = settings or CheckerSettings()
        self.debouncer: Debouncer[int] = Debouncer(
            self.settings.new_record_delay_seconds, self._check_new_record
        )

    async def check_records(self, record_ids: Iterable[int]) -> CheckReport:
        records = await self._load_records(record_ids)
        return await self._run(CheckScope.RECORDS, records)

    async def check_collection(self, collection_id: int) -> CheckReport:
        record_ids = await self._collection_record_ids(collection_id)
        records = await self._load_records(record_ids)
        return await self._run(CheckScope.COLLECTION, records)

    async def check_library(self, library_id: int | None = None) -> CheckReport:
        target = library_id
        if target is None:
            target = await self.library.personal_library_id()
        records = [
            record
            for record in await self.library.list_records(target)
            if record.is_regular and not record.deleted
        ]
        return await self._run(CheckScope.LIBRARY, records)

    async def check_all_libraries(self) -> list[CheckReport]:
        return [await self.check_library(info.id) for info in await self.library.list_libraries()]

    async def process_newly_added(self, record_ids: Iterable[int]) -> CheckReport:
        """Check records the user just added, asking before touching each one."""

        fresh = [record_id for record_id in record_ids if not self.guard.consume(record_id)]
        records = await self._load_records(fresh)
        return await self._run(CheckScope.NEW_RECORDS, records)

    def on_records_added(self, record_ids: Sequence[int]) -> None:
        """Host change-notification handler; must run inside the event loop."""

        if not self.settings.auto_check_new_items:
            return
        for record_id in record_ids:
            if self.guard.consume(record_id):
                log.debug("Skipping record %s created by reconciliation", record_id)
                continue
            self.debouncer.schedule(record_id)

    async def _check_new_record(self, record_id: int) -> None:
        await self.process_newly_added([record_id])

    async def ban(self, record_ids: Iterable[int], *, reason: BanReason = BanReason.MANUAL) -> int:
        """Trash replication/reproduction records and keep them from coming back."""

        await self.bans.ensure_loaded()
        banned = 0
        for record_id in record_ids:
            try:
                entry = await self._ban_one(record_id, reason)
            except RecordNotFoundError:
                log.warning("Cannot ban unknown record %s", record_id)
                continue
            if entry is None:
                continue
            await self.bans.add(entry)
            banned += 1
        log.info("Banned %s record(s)", banned)
        return banned

    async def unban(self, identifier: str) -> int:
        return await self.bans.remove(identifier)

    async def clear_bans(self) -> int:
        return await self.bans.clear()

    async def _ban_one(self, record_id: int, reason: BanReason) -> BlacklistEntry | None:
        record = await self.library.get_record(record_id)
        tags = await self.library.get_tags(record_id)
        if REPLICATION_PROFILE.is_tag in tags:
            profile = REPLICATION_PROFILE
        elif REPRODUCTION_PROFILE.is_tag in tags:
            profile = REPRODUCTION_PROFILE
        else:
            log.info("Record %s is not a replication or reproduction; not banned", record_id)
            return None

        doi = extract_doi(record.fields)
        url = record.field_value(RecordField.URL)
        if doi is None and url is None:
            log.info("Record %s has neither DOI nor URL; not banned", record_id)
            return None

        originals: list[LibraryRecord] = []
        for related_id in sorted(await self.library.get_related(record_id)):
            if profile.has_tag in await self.library.get_tags(related_id):
                originals.append(await self.library.get_record(related_id))

        async with self.library.transaction():
            for original in originals:
                await self.library.remove_relation(record_id, original.id)
            for collection in await self.library.record_collections(record_id):
                if collection.name == profile.folder and collection.parent_id is None:
                    await self.library.remove_from_collection(collection.id, record_id)
            await self.library.trash_record(record_id)

        first_original = originals[0] if originals else None
        return BlacklistEntry(
            kind=profile.kind,
            doi=doi,
            url=url,
            title=record.title,
            original_title=first_original.title if first_original else None,
            original_doi=extract_doi(first_original.fields) if first_original else None,
            record_id=record_id,
            reason=reason,
        )

    async def _run(self, scope: CheckScope, records: Sequence[LibraryRecord]) -> CheckReport:
        report = CheckReport(scope=scope, items_checked=len(records))
        targets: list[tuple[LibraryRecord, str]] = []
        for record in records:
            doi = extract_doi(record.fields)
            if doi is not None:
                targets.append((record, doi))
        report.items_with_doi = len(targets)
        log.info(
            "Checking %s: %s item(s), %s with DOIs", scope.value, len(records), len(targets)
        )

        if not targets:
            if scope in _NO_DOI_MESSAGES:
                await self.ui.alert(ALERT_TITLE, _NO_DOI_MESSAGES[scope])
            return report

        try:
            matches = await self.matcher.check_batch(doi for _, doi in targets)
        except SourceUnavailableError:
            log.exception("Replication database unavailable during %s check", scope.value)
            report.source_failed = True
            await self.ui.alert(ERROR_TITLE, SOURCE_ERROR_MESSAGE)
            return report

        by_identifier = {match.identifier: match for match in matches}
        matched: list[MatchedRecord] = []
        for record, doi in targets:
            match = by_identifier.get(doi)
            if match is not None and match.has_matches:
                matched.append((record, match))
        report.items_with_matches = len(matched)

        for library_id, items in _partition_by_library(matched).items():
            info = await self.library.library_info(library_id)
            if info.editable:
                await self._reconcile_in_place(report, items)
            else:
                await self._reconcile_via_copy(report, info, items)

        if scope in _SUMMARY_TITLES:
            await self.ui.alert(_SUMMARY_TITLES[scope], _summary_message(report))
        log.info(
            "Finished %s check: matches=%s, reconciled=%s, failed=%s, declined=%s",
            scope.value,
            report.items_with_matches,
            report.items_reconciled,
            report.items_failed,
            report.items_declined,
        )
        return report

    async def _reconcile_in_place(
        self, report: CheckReport, items: Sequence[MatchedRecord]
    ) -> None:
        prompt = report.scope is CheckScope.NEW_RECORDS
        for record, match in items:
            if prompt and not await self._confirm_new(record, match):
                report.items_declined += 1
                continue
            await self._reconcile_one(report, record, match, copy=False)

    async def _reconcile_via_copy(
        self,
        report: CheckReport,
        info: LibraryInfo,
        items: Sequence[MatchedRecord],
    ) -> None:
        related = sum(len(match.replications) + len(match.reproductions) for _, match in items)
        message = (
            f'The library "{info.name}" is read-only. We found {len(items)} item(s) with '
            f"{related} replication(s) or reproduction(s).\n\n"
            "Would you like to copy the original articles and their related studies "
            "to your personal library?"
        )
        if not await self.ui.confirm("Read-Only Library Detected", message):
            report.items_declined += len(items)
            return
        for record, match in items:
            await self._reconcile_one(report, record, match, copy=True)

    async def _reconcile_one(
        self,
        report: CheckReport,
        record: LibraryRecord,
        match: MatchResult,
        *,
        copy: bool,
    ) -> None:
        try:
            if copy:
                result = await self.engine.reconcile_copy(record.id, match)
            else:
                result = await self.engine.reconcile(record.id, match)
        except Exception:
            log.exception("Failed to reconcile record %s", record.id)
            report.items_failed += 1
            return
        report.reconciliation.absorb(result)
        report.items_reconciled += 1

    async def _confirm_new(self, record: LibraryRecord, match: MatchResult) -> bool:
        title = record.title or "Untitled"
        if match.replications or match.reproductions:
            related = [*match.replications, *match.reproductions]
            lines = [f'Replication studies found for:\n"{title}"', ""]
            lines.append(f"Found {len(related)} related study(ies):")
            for index, study in enumerate(related[:PROMPT_PREVIEW_LIMIT], start=1):
                year = study.year if study.year is not None else "N/A"
                outcome = study.outcome_label or "N/A"
                name = study.title or "Untitled"
                lines.append(f"{index}. {name}\n   ({year}) Outcome: {outcome}")
            if len(related) > PROMPT_PREVIEW_LIMIT:
                lines.append(f"...and {len(related) - PROMPT_PREVIEW_LIMIT} more")
            lines.extend(["", "Would you like to add replication information?"])
            return await self.ui.confirm("Replication Studies Found", "\n".join(lines))
        return await self.ui.confirm(
            "Original Study Found",
            "No replications found, but this appears to be a replication study.\n\n"
            "Would you like to add the original article(s)?",
        )

    async def _load_records(self, record_ids: Iterable[int]) -> list[LibraryRecord]:
        records: list[LibraryRecord] = []
        seen: set[int] = set()
        for record_id in record_ids:
            if record_id in seen:
                continue
            seen.add(record_id)
            try:
                record = await self.library.get_record(record_id)
            except RecordNotFoundError:
                log.warning("Skipping unknown record %s", record_id)
                continue
            if record.is_regular and not record.deleted:
                records.append(record)
        return records

    async def _collection_record_ids(self, collection_id: int) -> list[int]:
        ordered: dict[int, None] = {}
        pending = [collection_id]
        visited: set[int] = set()
        while pending:
            current = pending.pop(0)
            if current in visited:
                continue
            visited.add(current)
            for record_id in await self.library.collection_members(current):
                ordered.setdefault(record_id, None)
            pending.extend(child.id for child in await self.library.child_collections(current))
        return list(ordered)


def _partition_by_library(items: Sequence[MatchedRecord]) -> dict[int, list[MatchedRecord]]:
    partitions: dict[int, list[MatchedRecord]] = defaultdict(list)
    for record, match in items:
        partitions[record.library_id].append((record, match))
    return dict(partitions)


def _summary_message(report: CheckReport) -> str:
    lines = [
        f"Total items checked: {report.items_checked}",
        f"Items with DOIs: {report.items_with_doi}",
    ]
    if report.items_with_matches:
        lines.append(f"{report.items_with_matches} item(s) have replications or reproductions.")
    else:
        lines.append("No replications found.")
    if report.items_declined:
        lines.append(f"{report.items_declined} item(s) were left unchanged.")
    if report.items_failed:
        lines.append(f"{report.items_failed} item(s) could not be updated.")
    lines.extend(["", "View notes for details or select items to re-check."])
    return "\n".join(lines)


__all__ = ["CheckReport", "CheckScope", "ReplicationChecker"]
