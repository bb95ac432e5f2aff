"""
Ledger Store

DESIGN DECISION: One store owns the one ledger state.
- Every change goes through ``dispatch`` (or a ``batch`` of dispatches)
- The reducer computes the next state, the store commits it
- A commit saves the whole document and then notifies subscribers

The store is the single writer. A re-entrant lock is held for the whole
transition, so a reader never sees a half-applied batch.

Persistence is best-effort: a failed save is audited and logged, the
in-memory state stays authoritative and the next commit tries again.
"""

import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Optional

import structlog

from lesson_ledger.audit import AuditLogger
from lesson_ledger.migration import migrate
from lesson_ledger.models.actions import LedgerAction
from lesson_ledger.models.audit import AuditEventBuilder, AuditEventType
from lesson_ledger.models.ledger import LedgerState
from lesson_ledger.reducer import reduce
from lesson_ledger.services.storage import StateStorageInterface

logger = structlog.get_logger(__name__)

Listener = Callable[[LedgerState], None]


class LedgerBatch:
    """
    Working copy handed out by ``LedgerStore.batch``.

    Actions dispatched here are applied to the working state only; the
    store commits the final result once the ``with`` block exits cleanly.
    """

    def __init__(self, state: LedgerState):
        self.state = state
        self.dispatched = 0

    def dispatch(self, action: LedgerAction) -> LedgerState:
        self.state = reduce(self.state, action)
        self.dispatched += 1
        return self.state


class LedgerStore:
    """
    Holds the current ledger state and persists every change.

    Usage:
        store = LedgerStore(JsonFileStorage())
        store.dispatch(AddStudent(student=student))

        with store.batch() as batch:
            batch.dispatch(UpdateStudent(...))
            batch.dispatch(UpdateLesson(...))
    """

    def __init__(
        self,
        storage: StateStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        initial_state: Optional[LedgerState] = None,
    ):
        """
        Initialize the store.

        Args:
            storage: Where the ledger document is read from and saved to.
            audit_logger: Receives load/save failures. Local-only if None.
            initial_state: Start from this state instead of loading storage.
        """
        self._storage = storage
        self._audit_logger = audit_logger or AuditLogger()
        self._lock = threading.RLock()
        self._listeners: list[Listener] = []
        self._state = migrate(initial_state) if initial_state is not None else self._load()

    # =========================================================================
    # READ
    # =========================================================================

    @property
    def state(self) -> LedgerState:
        with self._lock:
            return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a read-only observer. Returns a function that unsubscribes it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    # =========================================================================
    # WRITE
    # =========================================================================

    def dispatch(self, action: LedgerAction) -> LedgerState:
        """Apply one action and commit the result."""
        with self._lock:
            self._commit(reduce(self._state, action))
            return self._state

    @contextmanager
    def batch(self) -> Iterator[LedgerBatch]:
        """
        Apply several actions as one transition.

        The lock is held for the whole block. If the block raises, the
        working copy is discarded and nothing is committed.
        """
        with self._lock:
            working = LedgerBatch(self._state)
            yield working
            self._commit(working.state)

    def _commit(self, new_state: LedgerState) -> None:
        if new_state is self._state:
            return
        self._state = new_state
        self._save()
        self._notify(new_state)

    def _notify(self, state: LedgerState) -> None:
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception as e:
                logger.error("listener_failed", error=str(e), listener=repr(listener))

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    def _load(self) -> LedgerState:
        try:
            raw = self._storage.load()
        except Exception as e:
            logger.error("state_load_failed", error=str(e))
            self._audit_logger.log_storage_failure(AuditEventType.LOAD_FAILED, str(e))
            raw = None

        state = migrate(raw)
        self._audit_logger.log(AuditEventBuilder.state_replaced(
            AuditEventType.STATE_LOADED,
            students=len(state.students),
            lessons=len(state.lessons),
        ))
        return state

    def _save(self) -> None:
        try:
            saved = self._storage.save(self._state.to_document())
        except Exception as e:
            saved = False
            logger.error("state_save_failed", error=str(e))
            error_message = str(e)
        else:
            error_message = "Storage reported a failed write"

        if not saved:
            self._audit_logger.log_storage_failure(AuditEventType.SAVE_FAILED, error_message)

    def reload(self) -> LedgerState:
        """Discard the in-memory state and read storage again."""
        with self._lock:
            self._state = self._load()
            self._notify(self._state)
            return self._state
