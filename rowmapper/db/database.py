from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import TypeVar

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from ..config import DbConfig
from .context import Context
from .dialects import Dialect, for_driver
from .interfaces import QueryLogger
from .logger import CompositeQueryLogger, LoggingQueryLogger
from .metrics import MetricsQueryLogger
from .querier import Querier
from .tx import Transaction

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Database(Querier):
    """
    Querier bound to a SQLAlchemy Engine, plus transaction management.

    Outside a transaction every statement runs in its own short transaction.
    SELECT statements are spread over read replicas when any are registered;
    callers that need read-after-write consistency should read inside a
    transaction or through master_querier().

    Usage:
        db = Database(engine, query_logger=LoggingQueryLogger())

        def transfer(tx: Transaction) -> None:
            update(tx, account)
            tx.add_on_commit_call(notify)

        db.in_transaction(transfer)
    """

    def __init__(
        self,
        engine: Engine,
        dialect: Dialect | None = None,
        query_logger: QueryLogger | None = None,
        *,
        context: Context | None = None,
    ) -> None:
        """
        Args:
            engine: SQLAlchemy Engine for the primary database
            dialect: SQL dialect; inferred from engine.dialect.name when omitted
            query_logger: Receives before/after events for every statement
            context: Default cancellation context

        Raises:
            ValueError: If no dialect is given and none matches the engine
        """
        if dialect is None:
            dialect = for_driver(engine.dialect.name)
            if dialect is None:
                raise ValueError(
                    f"no dialect for driver {engine.dialect.name!r}; pass one explicitly"
                )
        super().__init__(engine, dialect, query_logger, context=context)
        self.engine = engine

    @property
    def replicas(self) -> tuple[Engine, ...]:
        return self._replicas

    def add_replicas(self, *engines: Engine) -> None:
        """Register read replicas. Call during setup, before the Database is shared."""
        self._replicas = self._replicas + tuple(engines)

    def master_querier(self) -> Querier:
        """Return a querier that always uses the primary."""
        return Querier(
            self.engine,
            self.dialect,
            self.query_logger,
            tag=self._tag,
            context=self._context,
        )

    def begin(self, context: Context | None = None) -> Transaction:
        """
        Begin a new transaction on a dedicated connection.

        Args:
            context: Cancellation context for the transaction (defaults to this querier's)
        """
        ctx = context if context is not None else self._context
        self._log_before("BEGIN", ())
        start = time.monotonic()
        error: BaseException | None = None
        try:
            ctx.check()
            conn = self.engine.connect()
            try:
                sa_tx = conn.begin()
            except Exception:
                conn.close()
                raise
        except Exception as exc:
            error = exc
            raise
        finally:
            self._log_after("BEGIN", (), time.monotonic() - start, error)

        return Transaction(
            conn,
            sa_tx,
            self.dialect,
            self.query_logger,
            tag=self._tag,
            context=ctx,
        )

    @contextmanager
    def transaction(self, context: Context | None = None) -> Iterator[Transaction]:
        """
        Run a block in a transaction: commit on success, roll back otherwise.

        Queued on-commit callbacks run after the commit, in order; the first
        failing callback's exception propagates and the rest are skipped.
        A rollback failure during cleanup is logged and never replaces the
        block's own exception.

        Usage:
            with db.transaction() as tx:
                insert(tx, person)
        """
        tx = self.begin(context)
        tx._state.on_commit_calls.clear()
        committed = False
        try:
            yield tx
            tx.commit()
            committed = True
        finally:
            if not committed and not tx.finished:
                self._rollback_quietly(tx)
        tx.run_on_commit_calls()

    def in_transaction(self, fn: Callable[[Transaction], T], context: Context | None = None) -> T:
        """
        Call fn(tx) in a transaction and return its result.

        Exceptions raised by fn roll the transaction back and propagate
        unchanged.
        """
        with self.transaction(context) as tx:
            result = fn(tx)
        return result

    def _rollback_quietly(self, tx: Transaction) -> None:
        try:
            tx.rollback()
        except Exception:
            logger.warning("Rollback of aborted transaction failed", exc_info=True)

    def dispose(self) -> None:
        """Dispose the connection pools of the primary and all replicas."""
        self.engine.dispose()
        for replica in self._replicas:
            replica.dispose()


def create_database(config: DbConfig) -> Database:
    """
    Build a Database, its replicas and query loggers from configuration.

    Usage:
        db = create_database(DbConfig.from_env())
    """
    dialect = None
    if config.dialect:
        dialect = for_driver(config.dialect)
        if dialect is None:
            raise ValueError(f"Unknown dialect: {config.dialect}")

    loggers: list[QueryLogger] = []
    if config.log_queries:
        loggers.append(LoggingQueryLogger(level=config.log_level))
    if config.metrics:
        loggers.append(MetricsQueryLogger())

    query_logger: QueryLogger | None = None
    if len(loggers) == 1:
        query_logger = loggers[0]
    elif loggers:
        query_logger = CompositeQueryLogger(loggers)

    engine = create_engine(config.url, pool_pre_ping=config.pool_pre_ping)
    db = Database(engine, dialect, query_logger)
    db.add_replicas(
        *(create_engine(url, pool_pre_ping=config.pool_pre_ping) for url in config.replica_urls)
    )
    return db
