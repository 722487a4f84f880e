from __future__ import annotations

import threading
import time
from collections.abc import Callable
from typing import Any, TypeVar

from sqlalchemy.engine import Connection
from sqlalchemy.engine.base import RootTransaction

from ..errors import TransactionAlreadyFinishedError
from .context import Context
from .dialects import Dialect
from .interfaces import QueryLogger
from .querier import Querier

T = TypeVar("T")


class _TxState:
    """State shared by a Transaction and every querier derived from it."""

    def __init__(self, connection: Connection, transaction: RootTransaction) -> None:
        self.connection = connection
        self.transaction = transaction
        self.lock = threading.Lock()
        self.finished = False
        self.on_commit_calls: list[Callable[[], Any]] = []


class Transaction(Querier):
    """
    Querier bound to one open database transaction.

    The first commit() or rollback() terminates the transaction and closes
    its connection. Every later commit(), rollback() or statement raises
    TransactionAlreadyFinishedError instead of reaching the driver.

    ⚠️ A Transaction is owned by the thread that drives it. Running
    statements on it from several threads at once is not supported; only the
    terminal transition is guarded against concurrent calls.

    Usage:
        tx = db.begin()
        try:
            insert(tx, person)
            tx.commit()
        except Exception:
            tx.rollback()
            raise
    """

    def __init__(
        self,
        connection: Connection,
        transaction: RootTransaction,
        dialect: Dialect,
        query_logger: QueryLogger | None = None,
        *,
        tag: str = "",
        context: Context | None = None,
    ) -> None:
        super().__init__(
            connection,
            dialect,
            query_logger,
            tag=tag,
            context=context,
            in_transaction=True,
        )
        self._state = _TxState(connection, transaction)

    @property
    def finished(self) -> bool:
        return self._state.finished

    def _ensure_open(self) -> None:
        if self._state.finished:
            raise TransactionAlreadyFinishedError("transaction already finished")

    def add_on_commit_call(self, fn: Callable[[], Any]) -> None:
        """
        Queue fn to run after a successful commit by Database.in_transaction().

        Callbacks run in registration order. They are not part of the atomic
        unit: a failing callback does not undo the commit.
        """
        self._ensure_open()
        self._state.on_commit_calls.append(fn)

    def run_on_commit_calls(self) -> None:
        """Run queued callbacks in order, stopping at the first one that raises."""
        for call in list(self._state.on_commit_calls):
            call()

    def in_transaction(self, fn: Callable[[Transaction], T]) -> T:
        """Run fn inside this already open transaction; commit stays with the outer owner."""
        return fn(self)

    def commit(self) -> None:
        """
        Commit the transaction and close the connection.

        Raises:
            TransactionAlreadyFinishedError: If commit() or rollback() already ran
        """
        self._finish("COMMIT", self._state.transaction.commit)

    def rollback(self) -> None:
        """
        Roll back the transaction and close the connection.

        Raises:
            TransactionAlreadyFinishedError: If commit() or rollback() already ran
        """
        self._finish("ROLLBACK", self._state.transaction.rollback)

    def _finish(self, command: str, action: Callable[[], None]) -> None:
        state = self._state
        with state.lock:
            if state.finished:
                raise TransactionAlreadyFinishedError("transaction already finished")
            state.finished = True

        self._log_before(command, ())
        start = time.monotonic()
        error: BaseException | None = None
        try:
            action()
        except Exception as exc:
            error = exc
            raise
        finally:
            try:
                state.connection.close()
            finally:
                self._log_after(command, (), time.monotonic() - start, error)
