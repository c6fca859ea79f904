from __future__ import annotations

import asyncio
import json
import logging

import pytest

from replication_checker.domain.blacklist import (
    BLACKLIST_FORMAT_VERSION,
    BLACKLIST_STORAGE_KEY,
    BanRegistry,
    decode_registry,
)
from replication_checker.domain.errors import RegistryCorruptError
from replication_checker.domain.model import BanReason, BlacklistEntry, RelationKind
from tests.support.fakes import MemoryStore


def _load(store: MemoryStore) -> BanRegistry:
    registry = BanRegistry(store)
    asyncio.run(registry.load())
    return registry


def test_add_is_persisted_and_survives_reload() -> None:
    store = MemoryStore()
    registry = _load(store)

    added = asyncio.run(
        registry.add(
            BlacklistEntry(
                kind=RelationKind.REPRODUCTION,
                doi="10.1000/REP.1",
                title="Banned",
                original_doi="10.1037/pspa0000073",
                record_id=7,
            )
        )
    )

    assert added
    reloaded = _load(store)
    assert reloaded.is_banned(doi="https://doi.org/10.1000/rep.1")
    [entry] = reloaded.entries
    assert entry.kind is RelationKind.REPRODUCTION
    assert entry.original_doi == "10.1037/pspa0000073"
    assert entry.record_id == 7
    payload = json.loads(store.values[BLACKLIST_STORAGE_KEY])
    assert payload["version"] == BLACKLIST_FORMAT_VERSION
    assert payload["entries"][0]["originalDOI"] == "10.1037/pspa0000073"


def test_url_only_entries_match_normalised_urls() -> None:
    registry = _load(MemoryStore())

    asyncio.run(
        registry.add(BlacklistEntry(kind=RelationKind.REPRODUCTION, url="https://OSF.io/abc/"))
    )

    assert registry.is_banned(url="https://osf.io/abc")
    assert not registry.is_banned(url="https://osf.io/other")
    assert not registry.is_banned()


def test_add_ignores_entries_without_identifiers_and_duplicates() -> None:
    store = MemoryStore()
    registry = _load(store)
    entry = BlacklistEntry(kind=RelationKind.REPLICATION, doi="10.1000/a")

    assert asyncio.run(registry.add(entry))
    duplicate = BlacklistEntry(kind=RelationKind.REPLICATION, doi="10.1000/A")
    unidentified = BlacklistEntry(kind=RelationKind.REPLICATION, title="x")
    assert not asyncio.run(registry.add(duplicate))
    assert not asyncio.run(registry.add(unidentified))
    assert len(registry) == 1
    assert store.writes == 1


def test_remove_matches_doi_or_url() -> None:
    registry = _load(MemoryStore())
    asyncio.run(registry.add(BlacklistEntry(kind=RelationKind.REPLICATION, doi="10.1000/a")))
    asyncio.run(
        registry.add(BlacklistEntry(kind=RelationKind.REPRODUCTION, url="https://osf.io/b"))
    )

    assert asyncio.run(registry.remove("https://doi.org/10.1000/A")) == 1
    assert asyncio.run(registry.remove("https://osf.io/b/")) == 1
    assert asyncio.run(registry.remove("10.1000/missing")) == 0
    assert len(registry) == 0
    assert not registry.is_banned(doi="10.1000/a")


def test_clear_empties_the_registry() -> None:
    store = MemoryStore()
    registry = _load(store)
    asyncio.run(registry.add(BlacklistEntry(kind=RelationKind.REPLICATION, doi="10.1000/a")))

    assert asyncio.run(registry.clear()) == 1
    assert _load(store).entries == []


def test_corrupt_blob_is_reset_and_repersisted(caplog: pytest.LogCaptureFixture) -> None:
    store = MemoryStore({BLACKLIST_STORAGE_KEY: "{not json"})

    with caplog.at_level(logging.WARNING):
        registry = _load(store)

    assert registry.loaded
    assert len(registry) == 0
    assert json.loads(store.values[BLACKLIST_STORAGE_KEY]) == {
        "version": BLACKLIST_FORMAT_VERSION,
        "entries": [],
    }
    assert "corrupt" in caplog.text


def test_legacy_entries_default_to_replication() -> None:
    raw = json.dumps(
        {
            "version": 1,
            "entries": [{"doi": "10.1000/a", "title": "Old", "dateAdded": "2024-01-02T03:04:05Z"}],
        }
    )

    [entry] = decode_registry(raw)

    assert entry.kind is RelationKind.REPLICATION
    assert entry.reason is BanReason.MANUAL
    assert entry.added_at.year == 2024


@pytest.mark.parametrize(
    "raw",
    [
        "[]",
        json.dumps({"entries": []}),
        json.dumps({"version": 2, "entries": {}}),
        json.dumps({"version": 2, "entries": ["x"]}),
        json.dumps({"version": 2, "entries": [{"type": "sibling"}]}),
    ],
)
def test_decode_rejects_bad_structure(raw: str) -> None:
    with pytest.raises(RegistryCorruptError):
        decode_registry(raw)
