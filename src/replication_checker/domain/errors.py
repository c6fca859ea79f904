"""Domain-level error taxonomy."""

from __future__ import annotations


class ReplicationCheckerError(RuntimeError):
    """Base class for errors raised by the replication checker domain."""


class SourceUnavailableError(ReplicationCheckerError):
    """Raised when the candidate source cannot answer a fingerprint query."""


class RegistryCorruptError(ReplicationCheckerError):
    """Raised when a persisted ban registry blob cannot be parsed."""


class RecordNotFoundError(ReplicationCheckerError):
    """Raised by a host library for unknown record, note or collection ids."""

    def __init__(self, kind: str, identifier: int) -> None:
        super().__init__(f"Unknown {kind} id: {identifier}")
        self.kind = kind
        self.identifier = identifier


class NestedTransactionError(ReplicationCheckerError):
    """Raised when a host write transaction contract is violated."""
