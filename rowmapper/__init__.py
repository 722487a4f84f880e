from .config import DbConfig
from .db import Context, Database, Record, Struct, Transaction, column, create_database, table, view
from .errors import (
    DeadlineExceededError,
    NoPrimaryKeyError,
    NoRowsError,
    QueryCancelledError,
    RowMapperError,
    TransactionAlreadyFinishedError,
    UniqueViolationError,
    UsageError,
)
from .types import JSONText

__all__ = [
    "DbConfig",
    "Database",
    "Transaction",
    "Context",
    "create_database",
    "Struct",
    "Record",
    "column",
    "view",
    "table",
    "JSONText",
    "RowMapperError",
    "NoRowsError",
    "NoPrimaryKeyError",
    "UniqueViolationError",
    "TransactionAlreadyFinishedError",
    "QueryCancelledError",
    "DeadlineExceededError",
    "UsageError",
]
