"""Application wiring and orchestration entry points."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from replication_checker.adapters.flora import build_flora_source
from replication_checker.adapters.sqlalchemy import (
    SqlAlchemyLibrary,
    SqlAlchemySettingsStore,
    is_started,
    startup,
)
from replication_checker.config import get_checker_settings, get_flora_config
from replication_checker.domain.blacklist import BanRegistry
from replication_checker.domain.checker import ReplicationChecker
from replication_checker.domain.guard import ReentrancyGuard
from replication_checker.domain.matching import MAX_FINGERPRINTS_PER_QUERY, HashPrefixMatcher
from replication_checker.domain.reconciliation import LibraryLocks, ReconciliationEngine
from replication_checker.domain.scheduling import AutoCheckScheduler

if TYPE_CHECKING:
    from replication_checker.config import CheckerSettings, FloraConfig
    from replication_checker.domain.ports import (
        CandidateSource,
        HostLibrary,
        KeyValueStore,
        Unsubscribe,
        UserInterface,
    )

log = getLogger(__name__)


@dataclass(slots=True)
class Application:
    """Long-lived object graph shared by every trigger."""

    library: HostLibrary
    store: KeyValueStore
    bans: BanRegistry
    guard: ReentrancyGuard
    checker: ReplicationChecker
    scheduler: AutoCheckScheduler
    settings: CheckerSettings
    _unsubscribe: Unsubscribe | None = None

    @property
    def running(self) -> bool:
        return self._unsubscribe is not None

    async def start(self) -> None:
        """Load the ban registry and listen for records added to the host."""

        await self.bans.ensure_loaded()
        if self._unsubscribe is None:
            self._unsubscribe = self.library.subscribe(self.checker.on_records_added)
        log.info("Replication checker started (%s banned studies)", len(self.bans))

    async def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.checker.debouncer.cancel_all()
        log.info("Replication checker stopped")

    async def watch(self, *, poll_interval: float = 3600.0) -> None:
        """Run scheduled checks until cancelled, reacting to new records meanwhile."""

        await self.start()
        try:
            await self.scheduler.run_forever(poll_interval=poll_interval)
            # Auto checks disabled: keep serving new-record notifications.
            await asyncio.Event().wait()
        finally:
            await self.stop()


def build_application(
    *,
    ui: UserInterface,
    library: HostLibrary | None = None,
    store: KeyValueStore | None = None,
    source: CandidateSource | None = None,
    settings: CheckerSettings | None = None,
    flora_config: FloraConfig | None = None,
    database_uri: str | None = None,
) -> Application:
    """Assemble the checker with the configured adapters.

    The SQLAlchemy adapter is started on demand when no library or store is
    supplied.
    """

    if (library is None or store is None) and not is_started():
        startup(database_uri=database_uri)
    effective_library: HostLibrary = library or SqlAlchemyLibrary()
    effective_store: KeyValueStore = store or SqlAlchemySettingsStore()
    effective_settings = settings or get_checker_settings()

    batch_size = MAX_FINGERPRINTS_PER_QUERY
    if source is None:
        config = flora_config or get_flora_config()
        source = build_flora_source(config)
        batch_size = config.batch_size
    elif flora_config is not None:
        batch_size = flora_config.batch_size

    bans = BanRegistry(effective_store)
    guard = ReentrancyGuard()
    engine = ReconciliationEngine(
        library=effective_library,
        bans=bans,
        guard=guard,
        locks=LibraryLocks(),
        create_notes=effective_settings.create_notes,
        create_folders=effective_settings.create_folders,
    )
    checker = ReplicationChecker(
        library=effective_library,
        matcher=HashPrefixMatcher(source, batch_size=batch_size),
        engine=engine,
        bans=bans,
        guard=guard,
        ui=ui,
        settings=effective_settings,
    )
    scheduler = AutoCheckScheduler(
        frequency=effective_settings.auto_check_frequency,
        store=effective_store,
        run_check=checker.check_all_libraries,
    )
    log.debug(
        "Built application: batch_size=%s, auto_check=%s, notes=%s, folders=%s",
        batch_size,
        effective_settings.auto_check_frequency.value,
        effective_settings.create_notes,
        effective_settings.create_folders,
    )
    return Application(
        library=effective_library,
        store=effective_store,
        bans=bans,
        guard=guard,
        checker=checker,
        scheduler=scheduler,
        settings=effective_settings,
    )


__all__ = ["Application", "build_application"]
