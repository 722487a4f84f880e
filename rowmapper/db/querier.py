from __future__ import annotations

import copy
import random
import time
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, TypeVar

from sqlalchemy import text
from sqlalchemy.engine import Connection, CursorResult, Engine, Row

from ..errors import UsageError
from .context import Context
from .dialects import Dialect, InsertMode
from .interfaces import QueryLogger

# SystemRandom keeps no generator state, so concurrent callers can share it.
_random = random.SystemRandom()

Q = TypeVar("Q", bound="Querier")
T = TypeVar("T")


@dataclass(frozen=True)
class ExecResult:
    """Outcome of a statement that returns no rows."""

    rowcount: int
    lastrowid: Any = None


def _is_select(query: str) -> bool:
    return query.lstrip()[:6].upper() == "SELECT"


def _interrupter(conn: Connection) -> Callable[[], None]:
    dbapi_connection = conn.connection.dbapi_connection

    def _interrupt() -> None:
        # sqlite3 exposes interrupt(), psycopg exposes cancel()
        for name in ("interrupt", "cancel"):
            method = getattr(dbapi_connection, name, None)
            if callable(method):
                method()
                return

    return _interrupt


class Querier:
    """
    Executes statements against one connection target.

    A Querier binds an Engine (each statement runs in its own short
    transaction) or a Connection inside an open transaction, together with a
    dialect, an optional query logger, a tag appended to emitted SQL, a
    cancellation Context and, for engine-bound queriers, read replicas.

    Statements use the dialect's positional placeholders:

        q.execute("UPDATE people SET name = ? WHERE id = ?", "Ann", 1)
        rows = q.query("SELECT id, name FROM people WHERE id > ?", 10)

    Deriving a querier (with_tag(), with_context()) returns a copy; the
    original is never modified. Queriers bound to an open transaction are not
    safe for concurrent use; the transaction belongs to whoever drives it.
    """

    def __init__(
        self,
        bind: Engine | Connection,
        dialect: Dialect,
        query_logger: QueryLogger | None = None,
        *,
        tag: str = "",
        context: Context | None = None,
        replicas: Sequence[Engine] = (),
        in_transaction: bool = False,
    ) -> None:
        self.dialect = dialect
        self.query_logger = query_logger
        self._bind = bind
        self._tag = tag
        self._context = context if context is not None else Context()
        self._replicas = tuple(replicas)
        self._in_transaction = in_transaction

    def _clone(self: Q) -> Q:
        return copy.copy(self)

    @property
    def tag(self) -> str:
        return self._tag

    def with_tag(self: Q, fmt: str, *args: Any) -> Q:
        """Return a copy that appends ``/* tag */`` to every statement."""
        q = self._clone()
        q._tag = fmt % args if args else fmt
        return q

    @property
    def context(self) -> Context:
        return self._context

    def with_context(self: Q, context: Context) -> Q:
        """Return a copy bound to another cancellation context."""
        q = self._clone()
        q._context = context
        return q

    @property
    def is_in_transaction(self) -> bool:
        return self._in_transaction

    def add_on_commit_call(self, fn: Callable[[], Any]) -> None:
        raise UsageError("on-commit callback added outside transaction")

    def replica_querier(self) -> Querier:
        """Return a querier bound to a random replica, or self inside a transaction or without replicas."""
        if self._in_transaction or not self._replicas:
            return self
        return Querier(
            _random.choice(self._replicas),
            self.dialect,
            self.query_logger,
            tag=self._tag,
            context=self._context,
        )

    def _ensure_open(self) -> None:
        pass

    def _select_bind(self, query: str) -> Engine | Connection:
        if self._in_transaction or not self._replicas or not _is_select(query):
            return self._bind
        return _random.choice(self._replicas)

    @contextmanager
    def _connection(self, bind: Engine | Connection) -> Iterator[Connection]:
        if isinstance(bind, Connection):
            yield bind
        else:
            with bind.begin() as conn:
                yield conn

    def _tagged(self, query: str) -> str:
        if not self._tag:
            return query
        return f"{query} /* {self._tag.replace('*/', '* /')} */"

    def _log_before(self, query: str, args: Sequence[Any]) -> None:
        if self.query_logger is not None:
            self.query_logger.before(query, args)

    def _log_after(
        self,
        query: str,
        args: Sequence[Any],
        duration_s: float,
        error: BaseException | None,
    ) -> None:
        if self.query_logger is not None:
            self.query_logger.after(query, args, duration_s, error)

    def _run(self, query: str, args: Sequence[Any], consume: Callable[[CursorResult], T]) -> T:
        self._ensure_open()
        tagged = self._tagged(query)
        self._log_before(tagged, args)
        start = time.monotonic()
        error: BaseException | None = None
        try:
            sql, params = self.dialect.bind(tagged, args)
            self._context.check()
            with self._connection(self._select_bind(query)) as conn:
                with self._context.interrupting(_interrupter(conn)):
                    # re-check once the interrupt hook is registered
                    self._context.check()
                    result = conn.execute(text(sql), params)
                    try:
                        return consume(result)
                    finally:
                        result.close()
        except Exception as exc:
            error = exc
            raise
        finally:
            self._log_after(tagged, args, time.monotonic() - start, error)

    def execute(self, query: str, *args: Any) -> ExecResult:
        """
        Execute a statement that returns no rows.

        Returns:
            ExecResult with the affected row count and, for last-insert-id
            dialects, the driver-reported last insert id

        Raises:
            RuntimeError: If the driver reports no rowcount
        """

        def _consume(result: CursorResult) -> ExecResult:
            if result.rowcount is None:
                raise RuntimeError(
                    "execute() received None rowcount for statement. "
                    "This may indicate a DDL statement or unsupported operation type."
                )
            lastrowid = None
            if self.dialect.insert_mode is InsertMode.LAST_INSERT_ID:
                lastrowid = result.lastrowid
            return ExecResult(rowcount=int(result.rowcount), lastrowid=lastrowid)

        return self._run(query, args, _consume)

    def query(self, query: str, *args: Any) -> list[Row]:
        """Execute a statement returning rows, typically a SELECT."""
        return self._run(query, args, lambda result: list(result.all()))

    def query_row(self, query: str, *args: Any) -> Row | None:
        """Execute a statement expected to return at most one row; extra rows are discarded."""
        return self._run(query, args, lambda result: result.first())
