"""Reconciliation of match results into host library mutations."""

from __future__ import annotations

from .engine import LibraryLocks, ReconciliationEngine, ReconciliationResult
from .profiles import PROFILES, RelationProfile

__all__ = [
    "PROFILES",
    "LibraryLocks",
    "ReconciliationEngine",
    "ReconciliationResult",
    "RelationProfile",
]
