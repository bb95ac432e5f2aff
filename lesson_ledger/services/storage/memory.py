"""
In-memory storage implementations.

Used by tests and by embedders that persist the document themselves.
The ledger document is kept as serialized JSON text so that a load
returns a fresh, independent copy exactly as a file round trip would.
"""

import json
from collections import deque
from itertools import islice
from typing import Any, Optional

from lesson_ledger.models.audit import AuditEvent
from lesson_ledger.services.storage.interface import (
    AuditStorageInterface,
    StateStorageInterface,
)


class InMemoryStorage(StateStorageInterface):
    """Ledger document held in a single string slot."""

    def __init__(self, initial: Optional[str] = None):
        self._slot: Optional[str] = initial
        self.save_count = 0

    def save(self, document: dict[str, Any]) -> bool:
        self._slot = json.dumps(document, ensure_ascii=False)
        self.save_count += 1
        return True

    def load(self) -> Optional[Any]:
        if not self._slot:
            return None
        try:
            return json.loads(self._slot)
        except json.JSONDecodeError:
            return None

    def clear(self) -> None:
        self._slot = None

    @property
    def raw(self) -> Optional[str]:
        return self._slot


class InMemoryAuditStorage(AuditStorageInterface):
    """
    Audit log kept in memory.

    With ``max_events`` set, the oldest events are dropped once the limit
    is reached.
    """

    def __init__(self, max_events: Optional[int] = None):
        self._events: deque[AuditEvent] = deque(maxlen=max_events)

    def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        return [
            event for event in self._events
            if event.entity_type == entity_type and event.entity_id == entity_id
        ]

    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return list(islice(reversed(self._events), max(limit, 0)))

    def __len__(self) -> int:
        return len(self._events)
