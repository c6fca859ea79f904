"""Persistent ban registry for related studies."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING, Any, Final

from replication_checker.domain.errors import RegistryCorruptError
from replication_checker.domain.identifiers import normalize_doi, normalize_url
from replication_checker.domain.model import BanReason, BlacklistEntry, RelationKind

if TYPE_CHECKING:
    from collections.abc import Mapping

    from replication_checker.domain.ports import KeyValueStore

log = getLogger(__name__)

BLACKLIST_STORAGE_KEY: Final[str] = "replication-checker.blacklist"
BLACKLIST_FORMAT_VERSION: Final[int] = 2


class BanRegistry:
    """Set of banned related studies with O(1) lookup by DOI or URL.

    The registry must be loaded before use. Every mutation is persisted before
    the coroutine returns, so callers should await each one in turn.
    """

    def __init__(self, store: KeyValueStore, *, key: str = BLACKLIST_STORAGE_KEY) -> None:
        self._store = store
        self._key = key
        self._entries: list[BlacklistEntry] = []
        self._by_doi: dict[str, BlacklistEntry] = {}
        self._by_url: dict[str, BlacklistEntry] = {}
        self._loaded = False

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def entries(self) -> list[BlacklistEntry]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    async def load(self) -> None:
        raw = await self._store.get(self._key)
        if raw is None:
            self._replace([])
        else:
            try:
                entries = decode_registry(raw)
            except RegistryCorruptError as exc:
                log.warning("Ban registry was corrupt and has been reset: %s", exc)
                self._replace([])
                await self._persist()
            else:
                self._replace(entries)
        self._loaded = True
        log.debug("Loaded %s ban registry entries", len(self._entries))

    async def ensure_loaded(self) -> None:
        if not self._loaded:
            await self.load()

    def is_banned(self, *, doi: str | None = None, url: str | None = None) -> bool:
        doi_key = normalize_doi(doi)
        if doi_key is not None and doi_key in self._by_doi:
            return True
        url_key = normalize_url(url)
        return url_key is not None and url_key in self._by_url

    async def add(self, entry: BlacklistEntry) -> bool:
        """Persist ``entry`` unless either of its identifiers is already banned."""

        await self.ensure_loaded()
        doi_key = entry.doi_key
        url_key = entry.url_key
        if doi_key is None and url_key is None:
            log.debug("Ignoring ban entry without identifiers")
            return False
        if (doi_key is not None and doi_key in self._by_doi) or (
            url_key is not None and url_key in self._by_url
        ):
            return False
        self._entries.append(entry)
        self._index(entry)
        await self._persist()
        return True

    async def remove(self, identifier: str) -> int:
        """Drop every entry whose DOI or URL matches ``identifier``."""

        await self.ensure_loaded()
        doi_key = normalize_doi(identifier)
        url_key = normalize_url(identifier)
        remaining = [
            entry
            for entry in self._entries
            if not (
                (doi_key is not None and entry.doi_key == doi_key)
                or (url_key is not None and entry.url_key == url_key)
            )
        ]
        removed = len(self._entries) - len(remaining)
        if removed:
            self._replace(remaining)
            await self._persist()
        return removed

    async def clear(self) -> int:
        await self.ensure_loaded()
        removed = len(self._entries)
        self._replace([])
        await self._persist()
        return removed

    def _replace(self, entries: list[BlacklistEntry]) -> None:
        self._entries = []
        self._by_doi = {}
        self._by_url = {}
        for entry in entries:
            self._entries.append(entry)
            self._index(entry)

    def _index(self, entry: BlacklistEntry) -> None:
        if entry.doi_key is not None:
            self._by_doi.setdefault(entry.doi_key, entry)
        if entry.url_key is not None:
            self._by_url.setdefault(entry.url_key, entry)

    async def _persist(self) -> None:
        await self._store.set(self._key, encode_registry(self._entries))


def encode_registry(entries: list[BlacklistEntry]) -> str:
    payload = {
        "version": BLACKLIST_FORMAT_VERSION,
        "entries": [_entry_to_payload(entry) for entry in entries],
    }
    return json.dumps(payload)


def decode_registry(raw: str) -> list[BlacklistEntry]:
    """Parse a persisted registry blob, raising ``RegistryCorruptError`` on bad structure."""

    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise RegistryCorruptError("Ban registry is not valid JSON") from exc
    if not isinstance(payload, dict):
        raise RegistryCorruptError("Ban registry payload is not an object")
    version = payload.get("version")
    if not isinstance(version, int) or isinstance(version, bool):
        raise RegistryCorruptError("Ban registry version is not a number")
    entries = payload.get("entries")
    if not isinstance(entries, list):
        raise RegistryCorruptError("Ban registry entries are not a list")
    return [_entry_from_payload(item) for item in entries]


def _entry_to_payload(entry: BlacklistEntry) -> dict[str, Any]:
    return {
        "doi": entry.doi,
        "url": entry.url,
        "title": entry.title,
        "originalTitle": entry.original_title,
        "originalDOI": entry.original_doi,
        "itemID": entry.record_id,
        "dateAdded": entry.added_at.isoformat(),
        "reason": entry.reason.value,
        "type": entry.kind.value,
    }


def _entry_from_payload(item: object) -> BlacklistEntry:
    if not isinstance(item, dict):
        raise RegistryCorruptError("Ban registry entry is not an object")
    payload: Mapping[str, Any] = item
    try:
        kind = RelationKind(payload.get("type") or RelationKind.REPLICATION)
        reason = BanReason(payload.get("reason") or BanReason.MANUAL)
        added_at = _parse_timestamp(payload.get("dateAdded"))
    except (TypeError, ValueError) as exc:
        raise RegistryCorruptError(f"Ban registry entry is malformed: {exc}") from exc
    record_id = payload.get("itemID")
    return BlacklistEntry(
        kind=kind,
        doi=_optional_str(payload.get("doi")),
        url=_optional_str(payload.get("url")),
        title=_optional_str(payload.get("title")),
        original_title=_optional_str(payload.get("originalTitle")),
        original_doi=_optional_str(payload.get("originalDOI")),
        record_id=record_id if isinstance(record_id, int) else None,
        reason=reason,
        added_at=added_at,
    )


def _parse_timestamp(value: object) -> datetime:
    if value is None:
        return datetime.now(UTC)
    if not isinstance(value, str):
        raise TypeError("dateAdded must be a string")
    normalized = value.strip()
    if normalized.endswith("Z"):
        normalized = normalized[:-1] + "+00:00"
    parsed = datetime.fromisoformat(normalized)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _optional_str(value: object) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


__all__ = [
    "BLACKLIST_FORMAT_VERSION",
    "BLACKLIST_STORAGE_KEY",
    "BanRegistry",
    "decode_registry",
    "encode_registry",
]
