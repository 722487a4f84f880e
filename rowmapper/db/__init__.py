from .changes import changed_fields, copy_struct
from .commands import apply, delete, insert, save, update, update_only, upsert
from .context import Context
from .database import Database, create_database
from .dialects import MySQL, PostgreSQL, SQLite, for_driver
from .interfaces import MappedRecord, QueryLogger
from .logger import CompositeQueryLogger, LoggingQueryLogger
from .metrics import MetricsQueryLogger
from .models import Record, Struct, Table, View, column, table, view
from .querier import ExecResult, Querier
from .queries import (
    find_all_from,
    find_by_primary_key,
    find_one_from,
    find_one_to,
    reload,
    select_all_from,
    select_one_from,
    select_one_to,
    select_query,
    select_rows,
)
from .tx import Transaction

__all__ = [
    "Database",
    "Transaction",
    "Querier",
    "ExecResult",
    "Context",
    "create_database",
    "View",
    "Table",
    "Struct",
    "Record",
    "MappedRecord",
    "column",
    "view",
    "table",
    "PostgreSQL",
    "MySQL",
    "SQLite",
    "for_driver",
    "QueryLogger",
    "LoggingQueryLogger",
    "CompositeQueryLogger",
    "MetricsQueryLogger",
    "copy_struct",
    "changed_fields",
    "insert",
    "update",
    "update_only",
    "upsert",
    "save",
    "delete",
    "apply",
    "select_query",
    "select_rows",
    "select_one_from",
    "select_one_to",
    "select_all_from",
    "find_one_from",
    "find_one_to",
    "find_all_from",
    "find_by_primary_key",
    "reload",
]
