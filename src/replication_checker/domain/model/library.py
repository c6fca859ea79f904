"""Snapshots of host-owned library objects."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime  # noqa: TC003
from typing import TYPE_CHECKING

from .enums import ItemType, RecordField

if TYPE_CHECKING:
    from collections.abc import Mapping


@dataclass(frozen=True, slots=True)
class Creator:
    first_name: str | None = None
    last_name: str | None = None
    creator_type: str = "author"


@dataclass(frozen=True, slots=True)
class LibraryInfo:
    id: int
    name: str
    editable: bool = True
    personal: bool = False


@dataclass(frozen=True, slots=True)
class LibraryRecord:
    id: int
    library_id: int
    item_type: str
    fields: Mapping[str, str] = field(default_factory=dict[str, str])
    creators: tuple[Creator, ...] = ()
    deleted: bool = False
    date_added: datetime | None = None

    def field_value(self, name: RecordField | str) -> str | None:
        value = self.fields.get(str(name))
        if value is None or not value.strip():
            return None
        return value

    @property
    def title(self) -> str | None:
        return self.field_value(RecordField.TITLE)

    @property
    def is_regular(self) -> bool:
        return self.item_type not in {ItemType.NOTE, ItemType.ATTACHMENT}


@dataclass(frozen=True, slots=True)
class Note:
    id: int
    parent_id: int
    html: str


@dataclass(frozen=True, slots=True)
class Collection:
    id: int
    library_id: int
    name: str
    parent_id: int | None = None
