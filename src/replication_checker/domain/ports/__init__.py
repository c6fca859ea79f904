"""Domain port definitions for adapters."""

from __future__ import annotations

from .candidate_source import CandidateSource
from .interaction import UserInterface
from .library import HostLibrary, RecordsAddedHandler, Unsubscribe
from .storage import KeyValueStore

__all__ = [
    "CandidateSource",
    "HostLibrary",
    "KeyValueStore",
    "RecordsAddedHandler",
    "Unsubscribe",
    "UserInterface",
]
