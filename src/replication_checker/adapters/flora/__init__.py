"""FLoRA (FORRT Replication Database) adapter."""

from __future__ import annotations

from .client import FloraAPIError, FloraClient
from .source import FloraCandidateSource, build_flora_source

__all__ = ["FloraAPIError", "FloraCandidateSource", "FloraClient", "build_flora_source"]
