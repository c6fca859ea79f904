"""Host library backed by a SQLAlchemy database.

Lets the checker run outside a reference manager: libraries, records, tags,
notes, relations and collections live in the tables from ``mappings``.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from contextlib import asynccontextmanager, contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import and_, delete, func, insert, or_, select, update

from replication_checker.domain.errors import (
    NestedTransactionError,
    RecordNotFoundError,
    ReplicationCheckerError,
)
from replication_checker.domain.model import Collection, Creator, LibraryInfo, LibraryRecord, Note

from . import database
from .mappings import (
    collection_item_table,
    collection_table,
    creator_table,
    library_table,
    note_table,
    record_field_table,
    record_table,
    record_tag_table,
    relation_table,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable, Iterator, Mapping, Sequence

    from sqlalchemy import ColumnElement, Row
    from sqlalchemy.orm import Session, sessionmaker

    from replication_checker.domain.ports import RecordsAddedHandler, Unsubscribe

log = logging.getLogger(__name__)

DEFAULT_PERSONAL_LIBRARY_NAME = "My Library"


@dataclass(slots=True)
class _Transaction:
    owner: SqlAlchemyLibrary
    session: Session
    created: list[int] = field(default_factory=list[int])


_ACTIVE: ContextVar[_Transaction | None] = ContextVar("sqlalchemy_library_tx", default=None)


class SqlAlchemyLibrary:
    """``HostLibrary`` implementation over SQLAlchemy Core tables.

    Calls made inside ``transaction()`` share one session and commit together;
    calls made outside commit on their own. Ids of records created in a
    transaction are announced to subscribers only after it commits.
    """

    def __init__(self, session_factory: sessionmaker[Session] | None = None) -> None:
        self._session_factory = session_factory or database.session_factory()
        self._handlers: list[RecordsAddedHandler] = []

    # Libraries -----------------------------------------------------------------

    async def list_libraries(self) -> list[LibraryInfo]:
        with self._session() as session:
            rows = session.execute(select(library_table).order_by(library_table.c.id)).all()
        return [_library_info(row) for row in rows]

    async def library_info(self, library_id: int) -> LibraryInfo:
        with self._session() as session:
            row = session.execute(
                select(library_table).where(library_table.c.id == library_id)
            ).one_or_none()
        if row is None:
            raise RecordNotFoundError("library", library_id)
        return _library_info(row)

    async def personal_library_id(self) -> int:
        with self._session() as session:
            library_id = session.execute(
                select(library_table.c.id)
                .where(library_table.c.personal.is_(True))
                .order_by(library_table.c.id)
                .limit(1)
            ).scalar_one_or_none()
        if library_id is None:
            raise ReplicationCheckerError("No personal library configured")
        return library_id

    async def add_library(
        self, name: str, *, editable: bool = True, personal: bool = False
    ) -> LibraryInfo:
        with self._session() as session:
            library_id = session.execute(
                insert(library_table).values(name=name, editable=editable, personal=personal)
            ).inserted_primary_key[0]
        log.info("Created library %s (%s)", library_id, name)
        return LibraryInfo(id=library_id, name=name, editable=editable, personal=personal)

    async def ensure_personal_library(
        self, name: str = DEFAULT_PERSONAL_LIBRARY_NAME
    ) -> LibraryInfo:
        try:
            return await self.library_info(await self.personal_library_id())
        except ReplicationCheckerError:
            return await self.add_library(name, personal=True)

    # Records -------------------------------------------------------------------

    async def get_record(self, record_id: int) -> LibraryRecord:
        with self._session() as session:
            records = _load_records(session, record_table.c.id == record_id)
        if not records:
            raise RecordNotFoundError("record", record_id)
        return records[0]

    async def list_records(self, library_id: int) -> list[LibraryRecord]:
        with self._session() as session:
            return _load_records(
                session,
                and_(record_table.c.library_id == library_id, record_table.c.deleted.is_(False)),
            )

    async def create_record(
        self,
        library_id: int,
        item_type: str,
        fields: Mapping[str, str],
        creators: Sequence[Creator] = (),
    ) -> int:
        with self._session() as session:
            exists = session.execute(
                select(library_table.c.id).where(library_table.c.id == library_id)
            ).scalar_one_or_none()
            if exists is None:
                raise RecordNotFoundError("library", library_id)
            record_id = session.execute(
                insert(record_table).values(
                    library_id=library_id,
                    item_type=str(item_type),
                    deleted=False,
                    date_added=datetime.now(UTC),
                )
            ).inserted_primary_key[0]
            _write_fields(session, record_id, fields)
            _write_creators(session, record_id, creators)

        active = self._active()
        if active is not None:
            active.created.append(record_id)
        else:
            self._emit([record_id])
        return record_id

    async def set_fields(self, record_id: int, fields: Mapping[str, str]) -> None:
        with self._session() as session:
            _require_record(session, record_id)
            session.execute(
                delete(record_field_table)
                .where(record_field_table.c.record_id == record_id)
                .where(record_field_table.c.name.in_(list(fields)))
            )
            _write_fields(session, record_id, fields)

    async def set_creators(self, record_id: int, creators: Sequence[Creator]) -> None:
        with self._session() as session:
            _require_record(session, record_id)
            session.execute(delete(creator_table).where(creator_table.c.record_id == record_id))
            _write_creators(session, record_id, creators)

    async def trash_record(self, record_id: int) -> None:
        with self._session() as session:
            result = session.execute(
                update(record_table).where(record_table.c.id == record_id).values(deleted=True)
            )
            if result.rowcount == 0:
                raise RecordNotFoundError("record", record_id)

    # Tags ----------------------------------------------------------------------

    async def get_tags(self, record_id: int) -> set[str]:
        with self._session() as session:
            return _tags(session, record_id)

    async def add_tags(self, record_id: int, tags: Iterable[str]) -> set[str]:
        with self._session() as session:
            _require_record(session, record_id)
            wanted = {tag.strip() for tag in tags if tag and tag.strip()}
            added = wanted - _tags(session, record_id)
            if added:
                session.execute(
                    insert(record_tag_table),
                    [{"record_id": record_id, "tag": tag} for tag in sorted(added)],
                )
        return added

    async def remove_tags(self, record_id: int, tags: Iterable[str]) -> set[str]:
        with self._session() as session:
            _require_record(session, record_id)
            removed = {tag.strip() for tag in tags if tag} & _tags(session, record_id)
            if removed:
                session.execute(
                    delete(record_tag_table)
                    .where(record_tag_table.c.record_id == record_id)
                    .where(record_tag_table.c.tag.in_(sorted(removed)))
                )
        return removed

    # Notes ---------------------------------------------------------------------

    async def get_notes(self, record_id: int) -> list[Note]:
        with self._session() as session:
            rows = session.execute(
                select(note_table)
                .where(note_table.c.parent_id == record_id)
                .order_by(note_table.c.id)
            ).all()
        return [Note(id=row.id, parent_id=row.parent_id, html=row.html) for row in rows]

    async def create_note(self, record_id: int, html: str) -> int:
        self._reject_open_transaction("create_note")
        with self._session() as session:
            _require_record(session, record_id)
            return session.execute(
                insert(note_table).values(parent_id=record_id, html=html)
            ).inserted_primary_key[0]

    async def update_note(self, note_id: int, html: str) -> None:
        self._reject_open_transaction("update_note")
        with self._session() as session:
            result = session.execute(
                update(note_table).where(note_table.c.id == note_id).values(html=html)
            )
            if result.rowcount == 0:
                raise RecordNotFoundError("note", note_id)

    # Relations -----------------------------------------------------------------

    async def get_related(self, record_id: int) -> set[int]:
        with self._session() as session:
            return set(
                session.execute(
                    select(relation_table.c.object_id).where(
                        relation_table.c.subject_id == record_id
                    )
                ).scalars()
            )

    async def add_relation(self, record_id: int, other_id: int) -> bool:
        if record_id == other_id:
            return False
        with self._session() as session:
            _require_record(session, record_id)
            _require_record(session, other_id)
            existing = set(
                session.execute(
                    select(relation_table.c.subject_id, relation_table.c.object_id).where(
                        _edge_clause(record_id, other_id)
                    )
                ).tuples()
            )
            missing = [
                {"subject_id": subject, "object_id": obj}
                for subject, obj in ((record_id, other_id), (other_id, record_id))
                if (subject, obj) not in existing
            ]
            if missing:
                session.execute(insert(relation_table), missing)
        return bool(missing)

    async def remove_relation(self, record_id: int, other_id: int) -> None:
        with self._session() as session:
            session.execute(delete(relation_table).where(_edge_clause(record_id, other_id)))

    # Collections ---------------------------------------------------------------

    async def find_collection(
        self, library_id: int, name: str, parent_id: int | None = None
    ) -> Collection | None:
        parent_clause = (
            collection_table.c.parent_id.is_(None)
            if parent_id is None
            else collection_table.c.parent_id == parent_id
        )
        with self._session() as session:
            row = session.execute(
                select(collection_table)
                .where(collection_table.c.library_id == library_id)
                .where(collection_table.c.name == name)
                .where(parent_clause)
                .order_by(collection_table.c.id)
                .limit(1)
            ).one_or_none()
        return _collection(row) if row is not None else None

    async def create_collection(
        self, library_id: int, name: str, parent_id: int | None = None
    ) -> Collection:
        with self._session() as session:
            collection_id = session.execute(
                insert(collection_table).values(
                    library_id=library_id, name=name, parent_id=parent_id
                )
            ).inserted_primary_key[0]
        log.debug("Created collection %s (%s) in library %s", collection_id, name, library_id)
        return Collection(id=collection_id, library_id=library_id, name=name, parent_id=parent_id)

    async def get_collection(self, collection_id: int) -> Collection:
        with self._session() as session:
            row = session.execute(
                select(collection_table).where(collection_table.c.id == collection_id)
            ).one_or_none()
        if row is None:
            raise RecordNotFoundError("collection", collection_id)
        return _collection(row)

    async def child_collections(self, collection_id: int) -> list[Collection]:
        with self._session() as session:
            rows = session.execute(
                select(collection_table)
                .where(collection_table.c.parent_id == collection_id)
                .order_by(collection_table.c.id)
            ).all()
        return [_collection(row) for row in rows]

    async def collection_members(self, collection_id: int) -> list[int]:
        with self._session() as session:
            return list(
                session.execute(
                    select(collection_item_table.c.record_id)
                    .join(record_table, record_table.c.id == collection_item_table.c.record_id)
                    .where(collection_item_table.c.collection_id == collection_id)
                    .where(record_table.c.deleted.is_(False))
                    .order_by(collection_item_table.c.record_id)
                ).scalars()
            )

    async def record_collections(self, record_id: int) -> list[Collection]:
        with self._session() as session:
            rows = session.execute(
                select(collection_table)
                .join(
                    collection_item_table,
                    collection_item_table.c.collection_id == collection_table.c.id,
                )
                .where(collection_item_table.c.record_id == record_id)
                .order_by(collection_table.c.id)
            ).all()
        return [_collection(row) for row in rows]

    async def add_to_collection(self, collection_id: int, record_id: int) -> bool:
        with self._session() as session:
            present = session.execute(
                select(collection_item_table.c.record_id)
                .where(collection_item_table.c.collection_id == collection_id)
                .where(collection_item_table.c.record_id == record_id)
            ).scalar_one_or_none()
            if present is not None:
                return False
            session.execute(
                insert(collection_item_table).values(
                    collection_id=collection_id, record_id=record_id
                )
            )
        return True

    async def remove_from_collection(self, collection_id: int, record_id: int) -> None:
        with self._session() as session:
            session.execute(
                delete(collection_item_table)
                .where(collection_item_table.c.collection_id == collection_id)
                .where(collection_item_table.c.record_id == record_id)
            )

    # Search --------------------------------------------------------------------

    async def search_by_field(self, library_id: int, field: str, value: str) -> list[int]:
        needle = value.strip().lower()
        if not needle:
            return []
        return self._search_fields(
            library_id,
            str(field),
            func.lower(func.trim(record_field_table.c.value)) == needle,
        )

    async def search_containing(self, library_id: int, field: str, text: str) -> list[int]:
        needle = text.strip().lower()
        if not needle:
            return []
        return self._search_fields(
            library_id,
            str(field),
            func.lower(record_field_table.c.value).contains(needle, autoescape=True),
        )

    async def search_by_tag(self, library_id: int, tag: str) -> list[int]:
        with self._session() as session:
            return list(
                session.execute(
                    select(record_table.c.id)
                    .join(record_tag_table, record_tag_table.c.record_id == record_table.c.id)
                    .where(_live_in(library_id))
                    .where(record_tag_table.c.tag == tag)
                    .order_by(record_table.c.id)
                ).scalars()
            )

    def _search_fields(
        self, library_id: int, name: str, condition: ColumnElement[bool]
    ) -> list[int]:
        with self._session() as session:
            return list(
                session.execute(
                    select(record_table.c.id)
                    .join(record_field_table, record_field_table.c.record_id == record_table.c.id)
                    .where(_live_in(library_id))
                    .where(record_field_table.c.name == name)
                    .where(condition)
                    .distinct()
                    .order_by(record_table.c.id)
                ).scalars()
            )

    # Transactions and notifications --------------------------------------------

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        if self._active() is not None:
            raise NestedTransactionError("A library transaction is already open")
        session = self._session_factory()
        state = _Transaction(owner=self, session=session)
        token = _ACTIVE.set(state)
        try:
            with session.begin():
                yield
        finally:
            _ACTIVE.reset(token)
            session.close()
        if state.created:
            self._emit(state.created)

    def subscribe(self, handler: RecordsAddedHandler) -> Unsubscribe:
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def _emit(self, record_ids: Sequence[int]) -> None:
        ids = list(record_ids)
        for handler in list(self._handlers):
            try:
                handler(ids)
            except Exception:
                log.exception("Records-added handler failed for %s", ids)

    def _active(self) -> _Transaction | None:
        active = _ACTIVE.get()
        if active is None or active.owner is not self:
            return None
        return active

    def _reject_open_transaction(self, operation: str) -> None:
        if self._active() is not None:
            raise NestedTransactionError(f"{operation} cannot run inside a library transaction")

    @contextmanager
    def _session(self) -> Iterator[Session]:
        active = self._active()
        if active is not None:
            yield active.session
            return
        with self._session_factory() as session, session.begin():
            yield session


def _live_in(library_id: int) -> ColumnElement[bool]:
    return and_(record_table.c.library_id == library_id, record_table.c.deleted.is_(False))


def _edge_clause(record_id: int, other_id: int) -> ColumnElement[bool]:
    return or_(
        and_(relation_table.c.subject_id == record_id, relation_table.c.object_id == other_id),
        and_(relation_table.c.subject_id == other_id, relation_table.c.object_id == record_id),
    )


def _require_record(session: Session, record_id: int) -> None:
    found = session.execute(
        select(record_table.c.id).where(record_table.c.id == record_id)
    ).scalar_one_or_none()
    if found is None:
        raise RecordNotFoundError("record", record_id)


def _tags(session: Session, record_id: int) -> set[str]:
    return set(
        session.execute(
            select(record_tag_table.c.tag).where(record_tag_table.c.record_id == record_id)
        ).scalars()
    )


def _write_fields(session: Session, record_id: int, fields: Mapping[str, str]) -> None:
    rows = [
        {"record_id": record_id, "name": str(name), "value": value}
        for name, value in fields.items()
        if value and value.strip()
    ]
    if rows:
        session.execute(insert(record_field_table), rows)


def _write_creators(session: Session, record_id: int, creators: Sequence[Creator]) -> None:
    rows = [
        {
            "record_id": record_id,
            "position": position,
            "first_name": creator.first_name,
            "last_name": creator.last_name,
            "creator_type": creator.creator_type,
        }
        for position, creator in enumerate(creators)
    ]
    if rows:
        session.execute(insert(creator_table), rows)


def _load_records(session: Session, condition: ColumnElement[bool]) -> list[LibraryRecord]:
    rows = session.execute(select(record_table).where(condition).order_by(record_table.c.id)).all()
    if not rows:
        return []

    fields: dict[int, dict[str, str]] = defaultdict(dict)
    field_rows = session.execute(
        select(record_field_table)
        .join(record_table, record_table.c.id == record_field_table.c.record_id)
        .where(condition)
    )
    for row in field_rows:
        fields[row.record_id][row.name] = row.value

    creators: dict[int, list[Creator]] = defaultdict(list)
    creator_rows = session.execute(
        select(creator_table)
        .join(record_table, record_table.c.id == creator_table.c.record_id)
        .where(condition)
        .order_by(creator_table.c.record_id, creator_table.c.position)
    )
    for row in creator_rows:
        creators[row.record_id].append(
            Creator(
                first_name=row.first_name,
                last_name=row.last_name,
                creator_type=row.creator_type,
            )
        )

    return [
        LibraryRecord(
            id=row.id,
            library_id=row.library_id,
            item_type=row.item_type,
            fields=dict(fields.get(row.id, {})),
            creators=tuple(creators.get(row.id, ())),
            deleted=row.deleted,
            date_added=row.date_added,
        )
        for row in rows
    ]


def _library_info(row: Row[tuple[object, ...]]) -> LibraryInfo:
    return LibraryInfo(
        id=row.id,
        name=row.name,
        editable=bool(row.editable),
        personal=bool(row.personal),
    )


def _collection(row: Row[tuple[object, ...]]) -> Collection:
    return Collection(
        id=row.id,
        library_id=row.library_id,
        name=row.name,
        parent_id=row.parent_id,
    )


__all__ = ["DEFAULT_PERSONAL_LIBRARY_NAME", "SqlAlchemyLibrary"]
