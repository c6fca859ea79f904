from __future__ import annotations

import json
import os
from pathlib import Path
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine  # noqa: TC002
from sqlalchemy.pool import StaticPool

from replication_checker.adapters.sqlalchemy import (
    SqlAlchemyLibrary,
    SqlAlchemySettingsStore,
    create_all_tables,
    shutdown,
    startup,
)
from tests.support.harness import CheckerHarness, build_harness

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Iterator

DATA_DIR = Path(__file__).resolve().parent / "data"


@pytest.fixture(scope="session")
def prefix_lookup_payload() -> dict[str, object]:
    with (DATA_DIR / "flora" / "prefix_lookup.json").open(encoding="utf-8") as handle:
        return json.load(handle)


@pytest.fixture
def harness() -> CheckerHarness:
    return build_harness()


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    create_all_tables(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def sqlite_started(sqlite_engine: Engine) -> Iterator[Engine]:
    startup(engine=sqlite_engine, force=True)
    try:
        yield sqlite_engine
    finally:
        shutdown()


@pytest.fixture
def sqlite_library(sqlite_started: Engine) -> SqlAlchemyLibrary:
    _ = sqlite_started
    return SqlAlchemyLibrary()


@pytest.fixture
def sqlite_store(sqlite_started: Engine) -> SqlAlchemySettingsStore:
    _ = sqlite_started
    return SqlAlchemySettingsStore()
