"""In-memory host library fake honouring the ``HostLibrary`` contract."""

from __future__ import annotations

import copy
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from replication_checker.domain.errors import NestedTransactionError, RecordNotFoundError
from replication_checker.domain.model import (
    Collection,
    Creator,
    ItemType,
    LibraryInfo,
    LibraryRecord,
    Note,
    RecordField,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable, Mapping, Sequence

    from replication_checker.domain.ports import RecordsAddedHandler, Unsubscribe

_STATE_ATTRS = (
    "libraries",
    "records",
    "tags",
    "notes",
    "relations",
    "collections",
    "members",
    "_next_id",
)


class InMemoryLibrary:
    """Dict-backed host library; mutating calls are counted in ``mutations``."""

    def __init__(self) -> None:
        self.libraries: dict[int, LibraryInfo] = {}
        self.records: dict[int, LibraryRecord] = {}
        self.tags: dict[int, set[str]] = {}
        self.notes: dict[int, Note] = {}
        self.relations: dict[int, set[int]] = {}
        self.collections: dict[int, Collection] = {}
        self.members: dict[int, set[int]] = {}
        self.mutations = 0
        self.transactions = 0
        self._next_id = 1
        self._in_transaction = False
        self._pending_created: list[int] = []
        self._handlers: list[RecordsAddedHandler] = []

    # Setup helpers -------------------------------------------------------------

    def add_library(self, name: str, *, editable: bool = True, personal: bool = False) -> int:
        library_id = self._allocate()
        self.libraries[library_id] = LibraryInfo(
            id=library_id, name=name, editable=editable, personal=personal
        )
        return library_id

    def add_record(
        self,
        library_id: int,
        *,
        title: str | None = None,
        doi: str | None = None,
        item_type: str = ItemType.JOURNAL_ARTICLE,
        fields: Mapping[str, str] | None = None,
        tags: Iterable[str] = (),
    ) -> int:
        record_fields = dict(fields or {})
        if title is not None:
            record_fields[str(RecordField.TITLE)] = title
        if doi is not None:
            record_fields[str(RecordField.DOI)] = doi
        record_id = self._insert_record(library_id, str(item_type), record_fields, ())
        self.tags[record_id].update(tags)
        return record_id

    def records_in(self, library_id: int, *, include_deleted: bool = False) -> list[LibraryRecord]:
        return [
            record
            for record in self.records.values()
            if record.library_id == library_id and (include_deleted or not record.deleted)
        ]

    def collection_named(self, library_id: int, name: str) -> Collection | None:
        for collection in self.collections.values():
            if collection.library_id == library_id and collection.name == name:
                return collection
        return None

    def emit(self, record_ids: Sequence[int]) -> None:
        for handler in list(self._handlers):
            handler(list(record_ids))

    # Libraries -----------------------------------------------------------------

    async def list_libraries(self) -> list[LibraryInfo]:
        return list(self.libraries.values())

    async def library_info(self, library_id: int) -> LibraryInfo:
        try:
            return self.libraries[library_id]
        except KeyError:
            raise RecordNotFoundError("library", library_id) from None

    async def personal_library_id(self) -> int:
        for info in self.libraries.values():
            if info.personal:
                return info.id
        raise RecordNotFoundError("library", 0)

    # Records -------------------------------------------------------------------

    async def get_record(self, record_id: int) -> LibraryRecord:
        try:
            return self.records[record_id]
        except KeyError:
            raise RecordNotFoundError("record", record_id) from None

    async def list_records(self, library_id: int) -> list[LibraryRecord]:
        return self.records_in(library_id)

    async def create_record(
        self,
        library_id: int,
        item_type: str,
        fields: Mapping[str, str],
        creators: Sequence[Creator] = (),
    ) -> int:
        await self.library_info(library_id)
        self.mutations += 1
        record_id = self._insert_record(library_id, str(item_type), dict(fields), creators)
        if self._in_transaction:
            self._pending_created.append(record_id)
        else:
            self.emit([record_id])
        return record_id

    async def set_fields(self, record_id: int, fields: Mapping[str, str]) -> None:
        record = await self.get_record(record_id)
        self.mutations += 1
        merged = {**record.fields, **fields}
        self.records[record_id] = replace(
            record, fields={key: value for key, value in merged.items() if value}
        )

    async def set_creators(self, record_id: int, creators: Sequence[Creator]) -> None:
        record = await self.get_record(record_id)
        self.mutations += 1
        self.records[record_id] = replace(record, creators=tuple(creators))

    async def trash_record(self, record_id: int) -> None:
        record = await self.get_record(record_id)
        self.mutations += 1
        self.records[record_id] = replace(record, deleted=True)

    # Tags ----------------------------------------------------------------------

    async def get_tags(self, record_id: int) -> set[str]:
        await self.get_record(record_id)
        return set(self.tags[record_id])

    async def add_tags(self, record_id: int, tags: Iterable[str]) -> set[str]:
        await self.get_record(record_id)
        added = set(tags) - self.tags[record_id]
        if added:
            self.mutations += 1
            self.tags[record_id].update(added)
        return added

    async def remove_tags(self, record_id: int, tags: Iterable[str]) -> set[str]:
        await self.get_record(record_id)
        removed = set(tags) & self.tags[record_id]
        if removed:
            self.mutations += 1
            self.tags[record_id].difference_update(removed)
        return removed

    # Notes ---------------------------------------------------------------------

    async def get_notes(self, record_id: int) -> list[Note]:
        return [note for note in self.notes.values() if note.parent_id == record_id]

    async def create_note(self, record_id: int, html: str) -> int:
        self._reject_transaction()
        await self.get_record(record_id)
        self.mutations += 1
        note_id = self._allocate()
        self.notes[note_id] = Note(id=note_id, parent_id=record_id, html=html)
        return note_id

    async def update_note(self, note_id: int, html: str) -> None:
        self._reject_transaction()
        note = self.notes.get(note_id)
        if note is None:
            raise RecordNotFoundError("note", note_id)
        self.mutations += 1
        self.notes[note_id] = replace(note, html=html)

    # Relations -----------------------------------------------------------------

    async def get_related(self, record_id: int) -> set[int]:
        return set(self.relations.get(record_id, set()))

    async def add_relation(self, record_id: int, other_id: int) -> bool:
        await self.get_record(record_id)
        await self.get_record(other_id)
        if record_id == other_id:
            return False
        forward = self.relations.setdefault(record_id, set())
        backward = self.relations.setdefault(other_id, set())
        if other_id in forward and record_id in backward:
            return False
        self.mutations += 1
        forward.add(other_id)
        backward.add(record_id)
        return True

    async def remove_relation(self, record_id: int, other_id: int) -> None:
        self.mutations += 1
        self.relations.get(record_id, set()).discard(other_id)
        self.relations.get(other_id, set()).discard(record_id)

    # Collections ---------------------------------------------------------------

    async def find_collection(
        self, library_id: int, name: str, parent_id: int | None = None
    ) -> Collection | None:
        for collection in self.collections.values():
            if (
                collection.library_id == library_id
                and collection.name == name
                and collection.parent_id == parent_id
            ):
                return collection
        return None

    async def create_collection(
        self, library_id: int, name: str, parent_id: int | None = None
    ) -> Collection:
        self.mutations += 1
        collection_id = self._allocate()
        collection = Collection(
            id=collection_id, library_id=library_id, name=name, parent_id=parent_id
        )
        self.collections[collection_id] = collection
        self.members[collection_id] = set()
        return collection

    async def get_collection(self, collection_id: int) -> Collection:
        try:
            return self.collections[collection_id]
        except KeyError:
            raise RecordNotFoundError("collection", collection_id) from None

    async def child_collections(self, collection_id: int) -> list[Collection]:
        return [c for c in self.collections.values() if c.parent_id == collection_id]

    async def collection_members(self, collection_id: int) -> list[int]:
        return sorted(
            record_id
            for record_id in self.members.get(collection_id, set())
            if not self.records[record_id].deleted
        )

    async def record_collections(self, record_id: int) -> list[Collection]:
        return [
            self.collections[collection_id]
            for collection_id, members in self.members.items()
            if record_id in members
        ]

    async def add_to_collection(self, collection_id: int, record_id: int) -> bool:
        members = self.members[collection_id]
        if record_id in members:
            return False
        self.mutations += 1
        members.add(record_id)
        return True

    async def remove_from_collection(self, collection_id: int, record_id: int) -> None:
        self.mutations += 1
        self.members[collection_id].discard(record_id)

    # Search --------------------------------------------------------------------

    async def search_by_field(self, library_id: int, field: str, value: str) -> list[int]:
        needle = value.strip().lower()
        return sorted(
            record.id
            for record in self.records_in(library_id)
            if (record.fields.get(str(field)) or "").strip().lower() == needle
        )

    async def search_by_tag(self, library_id: int, tag: str) -> list[int]:
        return sorted(
            record.id for record in self.records_in(library_id) if tag in self.tags[record.id]
        )

    async def search_containing(self, library_id: int, field: str, text: str) -> list[int]:
        needle = text.strip().lower()
        return sorted(
            record.id
            for record in self.records_in(library_id)
            if needle in (record.fields.get(str(field)) or "").lower()
        )

    # Transactions --------------------------------------------------------------

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        if self._in_transaction:
            raise NestedTransactionError("A library transaction is already open")
        snapshot = {name: copy.deepcopy(getattr(self, name)) for name in _STATE_ATTRS}
        self._in_transaction = True
        self.transactions += 1
        try:
            yield
        except BaseException:
            for name, value in snapshot.items():
                setattr(self, name, value)
            self._pending_created.clear()
            raise
        finally:
            self._in_transaction = False
        created, self._pending_created = self._pending_created, []
        if created:
            self.emit(created)

    def subscribe(self, handler: RecordsAddedHandler) -> Unsubscribe:
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def _reject_transaction(self) -> None:
        if self._in_transaction:
            raise NestedTransactionError("Note writes are not allowed inside a transaction")

    def _allocate(self) -> int:
        value = self._next_id
        self._next_id += 1
        return value

    def _insert_record(
        self,
        library_id: int,
        item_type: str,
        fields: dict[str, str],
        creators: Sequence[Creator],
    ) -> int:
        record_id = self._allocate()
        self.records[record_id] = LibraryRecord(
            id=record_id,
            library_id=library_id,
            item_type=item_type,
            fields=fields,
            creators=tuple(creators),
            date_added=datetime.now(UTC),
        )
        self.tags[record_id] = set()
        return record_id
