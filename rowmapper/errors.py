class RowMapperError(Exception):
    """Base exception for rowmapper errors."""


class NoRowsError(RowMapperError):
    """A statement expected to affect or return exactly one row did not."""


class NoPrimaryKeyError(RowMapperError):
    """An update-style operation was attempted on a record without a primary key."""


class UniqueViolationError(RowMapperError):
    """The database rejected a write because of a unique constraint."""


class TransactionAlreadyFinishedError(RowMapperError):
    """Commit or rollback was called on a transaction that already ended."""


class QueryCancelledError(RowMapperError):
    """The querier's context was cancelled before or while a statement ran."""


class DeadlineExceededError(QueryCancelledError):
    """The querier's context deadline passed before a statement was dispatched."""


class UsageError(RuntimeError):
    """
    Caller bug, e.g. a stray column passed to update_only().

    Not a RowMapperError on purpose: handlers for runtime database conditions
    must not catch it.
    """
