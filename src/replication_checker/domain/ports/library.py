"""Port for the host bibliography library."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping, Sequence
    from contextlib import AbstractAsyncContextManager

    from replication_checker.domain.model import (
        Collection,
        Creator,
        LibraryInfo,
        LibraryRecord,
        Note,
    )

type RecordsAddedHandler = Callable[[Sequence[int]], None]
type Unsubscribe = Callable[[], None]


@runtime_checkable
class HostLibrary(Protocol):
    """Record, collection, search and transaction operations offered by the host.

    Search methods never return trashed records. ``create_note`` and
    ``update_note`` must not be called while a transaction is open.
    """

    async def list_libraries(self) -> list[LibraryInfo]: ...

    async def library_info(self, library_id: int) -> LibraryInfo: ...

    async def personal_library_id(self) -> int: ...

    async def get_record(self, record_id: int) -> LibraryRecord: ...

    async def list_records(self, library_id: int) -> list[LibraryRecord]: ...

    async def create_record(
        self,
        library_id: int,
        item_type: str,
        fields: Mapping[str, str],
        creators: Sequence[Creator] = (),
    ) -> int: ...

    async def set_fields(self, record_id: int, fields: Mapping[str, str]) -> None: ...

    async def set_creators(self, record_id: int, creators: Sequence[Creator]) -> None: ...

    async def trash_record(self, record_id: int) -> None: ...

    async def get_tags(self, record_id: int) -> set[str]: ...

    async def add_tags(self, record_id: int, tags: Iterable[str]) -> set[str]:
        """Add ``tags`` and return the subset that was not present before."""
        ...

    async def remove_tags(self, record_id: int, tags: Iterable[str]) -> set[str]:
        """Remove ``tags`` and return the subset that was present."""
        ...

    async def get_notes(self, record_id: int) -> list[Note]: ...

    async def create_note(self, record_id: int, html: str) -> int: ...

    async def update_note(self, note_id: int, html: str) -> None: ...

    async def get_related(self, record_id: int) -> set[int]: ...

    async def add_relation(self, record_id: int, other_id: int) -> bool:
        """Link both records in both directions; return whether an edge was added."""
        ...

    async def remove_relation(self, record_id: int, other_id: int) -> None: ...

    async def find_collection(
        self, library_id: int, name: str, parent_id: int | None = None
    ) -> Collection | None: ...

    async def create_collection(
        self, library_id: int, name: str, parent_id: int | None = None
    ) -> Collection: ...

    async def get_collection(self, collection_id: int) -> Collection: ...

    async def child_collections(self, collection_id: int) -> list[Collection]: ...

    async def collection_members(self, collection_id: int) -> list[int]: ...

    async def record_collections(self, record_id: int) -> list[Collection]: ...

    async def add_to_collection(self, collection_id: int, record_id: int) -> bool: ...

    async def remove_from_collection(self, collection_id: int, record_id: int) -> None: ...

    async def search_by_field(self, library_id: int, field: str, value: str) -> list[int]:
        """Return ids whose ``field`` equals ``value`` ignoring case and outer whitespace."""
        ...

    async def search_by_tag(self, library_id: int, tag: str) -> list[int]: ...

    async def search_containing(self, library_id: int, field: str, text: str) -> list[int]: ...

    def transaction(self) -> AbstractAsyncContextManager[None]: ...

    def subscribe(self, handler: RecordsAddedHandler) -> Unsubscribe: ...


__all__ = ["HostLibrary", "RecordsAddedHandler", "Unsubscribe"]
