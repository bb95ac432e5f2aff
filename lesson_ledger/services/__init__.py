"""Services package."""

from lesson_ledger.services.storage import (
    AuditStorageInterface,
    CorruptDocumentError,
    InMemoryAuditStorage,
    InMemoryStorage,
    JsonFileStorage,
    StateStorageInterface,
    StorageError,
    StorageUnavailableError,
)

__all__ = [
    "AuditStorageInterface",
    "CorruptDocumentError",
    "InMemoryAuditStorage",
    "InMemoryStorage",
    "JsonFileStorage",
    "StateStorageInterface",
    "StorageError",
    "StorageUnavailableError",
]
