"""Shared fixtures: an in-memory ledger wired the way the application wires it."""

from datetime import datetime, timezone

import pytest

from lesson_ledger.actions import LedgerActions
from lesson_ledger.audit import AuditLogger
from lesson_ledger.notifications import InMemoryNotificationSink, Notifier
from lesson_ledger.services.storage import InMemoryAuditStorage, InMemoryStorage
from lesson_ledger.store import LedgerStore


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def sink():
    return InMemoryNotificationSink()


@pytest.fixture
def store(storage, audit_logger):
    return LedgerStore(storage, audit_logger)


@pytest.fixture
def actions(store, sink, audit_logger):
    return LedgerActions(
        store,
        notifier=Notifier(sink, duration_ms=4000, error_duration_ms=5000),
        audit_logger=audit_logger,
    )


@pytest.fixture
def student(actions, sink):
    """A student with one package of 10 lessons at 1600."""
    created = actions.add_student(
        "Anna Petrova",
        contact="+7 900 000-00-00",
        packages=[{"count": 10, "price": "1600"}],
    )
    sink.notifications.clear()
    return created


@pytest.fixture
def lesson_start():
    return datetime(2024, 3, 5, 10, 0, tzinfo=timezone.utc)
