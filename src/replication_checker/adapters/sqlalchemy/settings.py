"""Key-value settings persisted in the ``setting`` table."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import delete, insert, select

from . import database
from .mappings import setting_table

if TYPE_CHECKING:
    from sqlalchemy.orm import Session, sessionmaker


class SqlAlchemySettingsStore:
    """``KeyValueStore`` where every ``set`` commits immediately."""

    def __init__(self, session_factory: sessionmaker[Session] | None = None) -> None:
        self._session_factory = session_factory or database.session_factory()

    async def get(self, key: str) -> str | None:
        with self._session_factory() as session:
            return session.execute(
                select(setting_table.c.value).where(setting_table.c.key == key)
            ).scalar_one_or_none()

    async def set(self, key: str, value: str | None) -> None:
        with self._session_factory() as session, session.begin():
            session.execute(delete(setting_table).where(setting_table.c.key == key))
            if value is not None:
                session.execute(insert(setting_table).values(key=key, value=value))


__all__ = ["SqlAlchemySettingsStore"]
