"""Suppression of change notifications caused by our own record creations."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable


class ReentrancyGuard:
    """Transient set of record ids created during reconciliation.

    The host reports every new record, including the ones reconciliation has just
    materialized. Consuming an id here stops the auto-check path from running on
    it and prompting the user about a record they did not add.
    """

    def __init__(self) -> None:
        self._ids: set[int] = set()

    def register(self, record_ids: Iterable[int]) -> None:
        self._ids.update(record_ids)

    def discard(self, record_ids: Iterable[int]) -> None:
        self._ids.difference_update(record_ids)

    def consume(self, record_id: int) -> bool:
        if record_id in self._ids:
            self._ids.discard(record_id)
            return True
        return False

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)
