"""SQLAlchemy Core tables backing the standalone host library."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Dialect,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    TypeDecorator,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


metadata = MetaData(
    naming_convention={
        "ix": "ix_%(column_0_label)s",
        "uq": "uq_%(table_name)s_%(column_0_label)s",
        "ck": "ck_%(table_name)s_%(constraint_name)s",
        "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
        "pk": "pk_%(table_name)s",
    }
)

library_table = Table(
    "library",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String, nullable=False),
    Column("editable", Boolean, nullable=False, default=True),
    Column("personal", Boolean, nullable=False, default=False),
)

record_table = Table(
    "record",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "library_id", Integer, ForeignKey("library.id", ondelete="CASCADE"), nullable=False
    ),
    Column("item_type", String, nullable=False),
    Column("deleted", Boolean, nullable=False, default=False),
    Column("date_added", UTCDateTime(), nullable=False),
    Index("ix_record_library_deleted", "library_id", "deleted"),
)

record_field_table = Table(
    "record_field",
    metadata,
    Column("record_id", Integer, ForeignKey("record.id", ondelete="CASCADE"), primary_key=True),
    Column("name", String, primary_key=True),
    Column("value", Text, nullable=False),
    Index("ix_record_field_name", "name"),
)

creator_table = Table(
    "creator",
    metadata,
    Column("record_id", Integer, ForeignKey("record.id", ondelete="CASCADE"), primary_key=True),
    Column("position", Integer, primary_key=True),
    Column("first_name", String, nullable=True),
    Column("last_name", String, nullable=True),
    Column("creator_type", String, nullable=False, default="author"),
)

record_tag_table = Table(
    "record_tag",
    metadata,
    Column("record_id", Integer, ForeignKey("record.id", ondelete="CASCADE"), primary_key=True),
    Column("tag", String, primary_key=True),
    Index("ix_record_tag_tag", "tag"),
)

note_table = Table(
    "note",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("parent_id", Integer, ForeignKey("record.id", ondelete="CASCADE"), nullable=False),
    Column("html", Text, nullable=False),
)

collection_table = Table(
    "collection",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "library_id", Integer, ForeignKey("library.id", ondelete="CASCADE"), nullable=False
    ),
    Column("name", String, nullable=False),
    Column(
        "parent_id", Integer, ForeignKey("collection.id", ondelete="CASCADE"), nullable=True
    ),
)

collection_item_table = Table(
    "collection_item",
    metadata,
    Column(
        "collection_id",
        Integer,
        ForeignKey("collection.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("record_id", Integer, ForeignKey("record.id", ondelete="CASCADE"), primary_key=True),
)

relation_table = Table(
    "relation",
    metadata,
    Column("subject_id", Integer, ForeignKey("record.id", ondelete="CASCADE"), primary_key=True),
    Column("object_id", Integer, ForeignKey("record.id", ondelete="CASCADE"), primary_key=True),
)

setting_table = Table(
    "setting",
    metadata,
    Column("key", String, primary_key=True),
    Column("value", Text, nullable=True),
)


def create_all_tables(engine: Engine) -> None:
    log.debug("Creating tables on %s", engine.url.render_as_string(hide_password=True))
    metadata.create_all(engine)


__all__ = [
    "UTCDateTime",
    "collection_item_table",
    "collection_table",
    "create_all_tables",
    "creator_table",
    "library_table",
    "metadata",
    "note_table",
    "record_field_table",
    "record_table",
    "record_tag_table",
    "relation_table",
    "setting_table",
]
