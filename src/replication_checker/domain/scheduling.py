"""Delayed and recurring triggers for automatic checks."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING, Final

from replication_checker.config.checker import AutoCheckFrequency

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Hashable

    from replication_checker.domain.ports import KeyValueStore

log = getLogger(__name__)

LAST_AUTO_CHECK_KEY: Final[str] = "replication-checker.lastAutoCheck"


class Debouncer[K: Hashable]:
    """Run ``callback(key)`` once ``delay`` seconds after the latest ``schedule(key)``.

    A newer schedule for the same key cancels the pending task and replaces it.
    Failures in the callback are logged, never raised into the event loop.
    """

    def __init__(self, delay: float, callback: Callable[[K], Awaitable[None]]) -> None:
        self._delay = delay
        self._callback = callback
        self._tasks: dict[K, asyncio.Task[None]] = {}

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def schedule(self, key: K) -> asyncio.Task[None]:
        previous = self._tasks.pop(key, None)
        if previous is not None and not previous.done():
            previous.cancel()
        task = asyncio.get_running_loop().create_task(self._run(key))
        self._tasks[key] = task
        return task

    async def _run(self, key: K) -> None:
        await asyncio.sleep(self._delay)
        current = asyncio.current_task()
        if self._tasks.get(key) is current:
            del self._tasks[key]
        try:
            await self._callback(key)
        except Exception:
            log.exception("Delayed check failed for %s", key)

    async def drain(self) -> None:
        """Wait until every pending task has fired (or been superseded)."""

        while self._tasks:
            await asyncio.gather(*self._tasks.values(), return_exceptions=True)

    def cancel_all(self) -> None:
        for task in self._tasks.values():
            task.cancel()
        self._tasks.clear()


class AutoCheckScheduler:
    """Run a library-wide check whenever the configured interval has elapsed."""

    def __init__(
        self,
        *,
        frequency: AutoCheckFrequency,
        store: KeyValueStore,
        run_check: Callable[[], Awaitable[object]],
        key: str = LAST_AUTO_CHECK_KEY,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._frequency = frequency
        self._store = store
        self._run_check = run_check
        self._key = key
        self._clock = clock or (lambda: datetime.now(UTC))

    async def last_run(self) -> datetime | None:
        raw = await self._store.get(self._key)
        if raw is None:
            return None
        try:
            value = datetime.fromisoformat(raw)
        except ValueError:
            log.warning("Ignoring unreadable last auto-check timestamp %r", raw)
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)

    async def is_due(self) -> bool:
        interval = self._frequency.interval
        if interval is None:
            return False
        last = await self.last_run()
        return last is None or self._clock() - last >= interval

    async def run_if_due(self) -> bool:
        if not await self.is_due():
            return False
        log.info("Running scheduled %s replication check", self._frequency.value)
        await self._run_check()
        await self._store.set(self._key, self._clock().isoformat())
        return True

    async def run_forever(self, *, poll_interval: float = 3600.0) -> None:
        if self._frequency is AutoCheckFrequency.NEVER:
            log.info("Automatic checks disabled")
            return
        while True:
            try:
                await self.run_if_due()
            except Exception:
                log.exception("Scheduled replication check failed")
            await asyncio.sleep(poll_interval)
