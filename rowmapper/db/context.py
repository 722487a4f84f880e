from __future__ import annotations

import itertools
import logging
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from sqlalchemy.exc import DBAPIError

from ..errors import DeadlineExceededError, QueryCancelledError

logger = logging.getLogger(__name__)


class Context:
    """
    Cancellation and deadline handle carried by a Querier.

    A Querier checks its context before dispatching each statement. While a
    statement runs, cancel() interrupts it through the DBAPI connection when
    the driver supports it (sqlite3 interrupt(), psycopg cancel()). A deadline
    is checked before dispatch and, while a statement runs, enforced by a timer
    that interrupts it the same way.

    Contexts are independent: cancelling one never affects a sibling. A child
    created with child() is cancelled together with its parent.

    Usage:
        ctx = Context(timeout=5.0)
        q = db.with_context(ctx)
        rows = q.query("SELECT id FROM people")

        # from another thread
        ctx.cancel()
    """

    def __init__(self, timeout: float | None = None, *, parent: Context | None = None) -> None:
        self._parent = parent
        self._cancelled = threading.Event()
        self._lock = threading.Lock()
        self._hooks: dict[int, Callable[[], None]] = {}
        self._keys = itertools.count()

        deadline = None if timeout is None else time.monotonic() + timeout
        if parent is not None and parent.deadline is not None:
            deadline = parent.deadline if deadline is None else min(deadline, parent.deadline)
        self.deadline = deadline

    def child(self, timeout: float | None = None) -> Context:
        """Return a context cancelled with this one, with an optional tighter deadline."""
        return Context(timeout, parent=self)

    @property
    def cancelled(self) -> bool:
        if self._cancelled.is_set():
            return True
        return self._parent is not None and self._parent.cancelled

    def cancel(self) -> None:
        """Cancel the context and interrupt statements currently running under it."""
        self._cancelled.set()
        with self._lock:
            hooks = list(self._hooks.values())
        for hook in hooks:
            try:
                hook()
            except Exception:
                logger.warning("Failed to interrupt running statement", exc_info=True)

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None without a deadline."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def check(self) -> None:
        """
        Raises:
            QueryCancelledError: If the context was cancelled
            DeadlineExceededError: If the deadline has passed
        """
        if self.cancelled:
            raise QueryCancelledError("context cancelled")
        remaining = self.remaining()
        if remaining is not None and remaining <= 0:
            raise DeadlineExceededError("context deadline exceeded")

    def _chain(self) -> Iterator[Context]:
        ctx: Context | None = self
        while ctx is not None:
            yield ctx
            ctx = ctx._parent

    def _add_hook(self, hook: Callable[[], None]) -> int:
        with self._lock:
            key = next(self._keys)
            self._hooks[key] = hook
        return key

    def _remove_hook(self, key: int) -> None:
        with self._lock:
            self._hooks.pop(key, None)

    @contextmanager
    def interrupting(self, interrupt: Callable[[], None]) -> Iterator[None]:
        """
        Run a statement with interrupt registered as this context's cancel hook.

        With a deadline, a timer calls interrupt once the deadline passes.
        A driver error raised after cancellation is re-raised as
        QueryCancelledError, and one raised after the deadline fired as
        DeadlineExceededError.
        """
        lock = threading.Lock()
        running = True
        expired = False

        def _expire() -> None:
            nonlocal expired
            # the statement may have finished while the timer was firing
            with lock:
                if not running:
                    return
                expired = True
                interrupt()

        timer = None
        remaining = self.remaining()
        if remaining is not None:
            timer = threading.Timer(remaining, _expire)
            timer.daemon = True
            timer.start()

        registered = [(ctx, ctx._add_hook(interrupt)) for ctx in self._chain()]
        try:
            yield
        except DBAPIError as exc:
            if self.cancelled:
                raise QueryCancelledError("statement interrupted by context cancellation") from exc
            if expired:
                raise DeadlineExceededError("statement interrupted by context deadline") from exc
            raise
        finally:
            with lock:
                running = False
            if timer is not None:
                timer.cancel()
            for ctx, key in registered:
                ctx._remove_hook(key)
