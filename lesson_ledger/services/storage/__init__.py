"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
The ledger document is kept in a local JSON file; in-memory variants serve
tests and embedding.
"""

from lesson_ledger.services.storage.interface import (
    AuditStorageInterface,
    CorruptDocumentError,
    StateStorageInterface,
    StorageError,
    StorageUnavailableError,
)
from lesson_ledger.services.storage.json_file import JsonFileStorage
from lesson_ledger.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "StateStorageInterface",
    # Exceptions
    "CorruptDocumentError",
    "StorageError",
    "StorageUnavailableError",
    # Implementations
    "InMemoryAuditStorage",
    "InMemoryStorage",
    "JsonFileStorage",
]
