"""
Transaction scoping for mutating dispatches.

A TransactionScope wraps one begin / commit / rollback-and-cleanup cycle on a
transactional store. TransactionCoordinator.scope() hands one out as a
context manager and guarantees rollback-and-cleanup on every exit path,
including KeyboardInterrupt; rollback is a no-op once commit has succeeded.
"""

from contextlib import contextmanager
from typing import Iterator, Optional

from catalog_parity.utils.logger import StructuredLogger, get_logger
from catalog_parity.verification.exceptions import TransactionStateError


class TransactionScope:
    """
    One begin/commit/rollback cycle against ``store``.

    The store must provide ``begin_transaction()``,
    ``commit_transaction() -> bool`` and ``rollback_transaction()``.
    """

    def __init__(self, store, sink: StructuredLogger):
        self.store = store
        self.sink = sink
        self.begun = False
        self.committed = False
        self.commit_attempted = False
        self.closed = False

    def begin(self) -> None:
        if self.begun:
            raise TransactionStateError("Transaction scope already begun")
        self.store.begin_transaction()
        self.begun = True

    def commit(self) -> bool:
        """
        Commit the scope. May be attempted only once.

        Returns:
            True if the store reported a successful commit
        """
        if not self.begun:
            raise TransactionStateError("Cannot commit a transaction scope that was not begun")
        if self.commit_attempted:
            raise TransactionStateError("Transaction scope commit already attempted")
        self.commit_attempted = True
        self.committed = bool(self.store.commit_transaction())
        return self.committed

    def rollback_and_cleanup(self) -> None:
        """Roll back unless commit succeeded. Acts at most once per scope."""
        if self.closed:
            return
        self.closed = True
        if self.committed or not self.begun:
            return
        self.sink.warning("Rolling back uncommitted transaction", operation="rollback")
        self.store.rollback_transaction()


class TransactionCoordinator:
    """Hands out transaction scopes over one transactional store."""

    def __init__(self, store, sink: Optional[StructuredLogger] = None):
        self.store = store
        self.sink = sink or get_logger(__name__)

    @contextmanager
    def scope(self) -> Iterator[TransactionScope]:
        """
        Begin a transaction scope; roll it back on exit unless committed.

        Usage:
            with coordinator.scope() as scope:
                ...
                scope.commit()
        """
        transaction = TransactionScope(self.store, self.sink)
        try:
            transaction.begin()
            yield transaction
        finally:
            transaction.rollback_and_cleanup()
