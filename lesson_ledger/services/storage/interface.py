"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Keep the ledger state in a local JSON file today
2. Use in-memory storage for testing
3. Swap in another key-value slot later without touching the store

The interface is deliberately tiny: the whole ledger is one document
stored in one slot. Calls are synchronous because the store saves on
every committed change and never waits for an acknowledgement.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from lesson_ledger.models.audit import AuditEvent


class StateStorageInterface(ABC):
    """
    Abstract interface for the persisted ledger document.

    Any storage implementation (file, browser-like key-value slot, etc.)
    must implement these methods.
    """

    @abstractmethod
    def save(self, document: dict[str, Any]) -> bool:
        """
        Persist the full ledger document.

        Args:
            document: JSON-compatible ledger document

        Returns:
            True if the write succeeded, False if it was given up on.
            Implementations must not raise for write failures.
        """
        pass

    @abstractmethod
    def load(self) -> Optional[Any]:
        """
        Read the raw persisted document back.

        Returns:
            The decoded document, or None if nothing is stored yet or the
            stored data cannot be decoded. The result is NOT validated;
            callers run it through migration.
        """
        pass

    @abstractmethod
    def clear(self) -> None:
        """Remove the stored document."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity, oldest first.
        """
        pass

    @abstractmethod
    def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events, newest first.
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class CorruptDocumentError(StorageError):
    """Stored data exists but cannot be decoded."""
    pass


class StorageUnavailableError(StorageError):
    """The storage location cannot be read or written."""
    pass
