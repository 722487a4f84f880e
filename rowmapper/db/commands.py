from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from typing import Any, TypeVar

from sqlalchemy.exc import DBAPIError

from ..errors import NoPrimaryKeyError, NoRowsError, UniqueViolationError, UsageError
from .changes import changed_fields, copy_struct
from .dialects import Dialect, InsertMode
from .interfaces import MappedRecord
from .models import Table
from .queries import _key_args, _primary_key_condition, find_by_primary_key
from .querier import Querier

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=MappedRecord)


@contextmanager
def _unique_violations(dialect: Dialect) -> Iterator[None]:
    try:
        yield
    except DBAPIError as exc:
        if dialect.is_unique_violation(exc):
            raise UniqueViolationError(str(exc.orig if exc.orig is not None else exc)) from exc
        raise


def _insert_columns(record: MappedRecord) -> tuple[list[str], list[Any]]:
    table = record.table()
    columns: list[str] = []
    values: list[Any] = []
    for column, value, omit_empty, zero in zip(
        table.columns, record.values(), table.omit_empty, table.zero_values
    ):
        if omit_empty and value == zero:
            continue
        columns.append(column)
        values.append(value)
    return columns, values


def insert(q: Querier, record: MappedRecord) -> None:
    """
    Insert record and store the generated primary key back into it.

    Omit-empty columns holding their zero value are left out of the
    statement. RETURNING dialects read the key from the inserted row; other
    dialects use the driver-reported last insert id, which only replaces an
    empty single-column key.

    Raises:
        UniqueViolationError: If the row violates a unique constraint
        NoRowsError: If a RETURNING insert returned no row
        NoPrimaryKeyError: If the key is empty and the driver reported no id
    """
    record.before_insert()
    table = record.table()
    dialect = q.dialect
    key_empty = record.primary_key_empty()
    single_key = len(table.primary_key_columns) == 1

    if dialect.insert_mode is InsertMode.LAST_INSERT_ID and key_empty and not single_key:
        raise NoPrimaryKeyError(
            f"{table.qualified_name}: composite primary key must be set before insert"
        )

    columns, values = _insert_columns(record)
    if columns:
        placeholders = ", ".join(dialect.placeholders(len(columns)))
        sql = f"INSERT INTO {table.qualified_name} ({', '.join(columns)}) VALUES ({placeholders})"
    else:
        sql = f"INSERT INTO {table.qualified_name} {dialect.default_values}"

    if dialect.insert_mode is InsertMode.RETURNING:
        sql += f" RETURNING {', '.join(table.primary_key_columns)}"
        with _unique_violations(dialect):
            row = q.query_row(sql, *values)
        if row is None:
            raise NoRowsError(f"{table.qualified_name}: insert returned no primary key")
        record.set_primary_key(*row)
        return

    with _unique_violations(dialect):
        result = q.execute(sql, *values)

    if not key_empty:
        return
    if result.lastrowid is None:
        raise NoPrimaryKeyError(f"{table.qualified_name}: driver reported no last insert id")
    record.set_primary_key(result.lastrowid)


def update_only(q: Querier, record: MappedRecord, columns: Sequence[str]) -> None:
    """
    Update the given non-key columns of record, matched by primary key.

    Every name in columns must match a non-key column exactly once.

    Raises:
        NoPrimaryKeyError: If the record's primary key is empty
        UsageError: If a name matches no non-key column, repeats, or columns is empty
        UniqueViolationError: If the new values violate a unique constraint
        NoRowsError: If the statement did not affect exactly one row
    """
    record.before_update()
    if record.primary_key_empty():
        raise NoPrimaryKeyError(f"{type(record).__name__}: primary key is not set")

    table = record.table()
    k = len(table.primary_key_columns)
    values = record.values()
    remaining = list(columns)

    set_columns: list[str] = []
    args: list[Any] = []
    for column, value in zip(table.columns[k:], values[k:]):
        if column in remaining:
            remaining.remove(column)
            set_columns.append(column)
            args.append(value)

    if remaining:
        raise UsageError(
            f"{table.qualified_name}: columns {remaining!r} do not match any non-key column"
        )
    if not set_columns:
        raise UsageError(f"{table.qualified_name}: no columns to update")

    dialect = q.dialect
    assignments = ", ".join(
        f"{column} = {ph}"
        for column, ph in zip(set_columns, dialect.placeholders(len(set_columns)))
    )
    condition = _primary_key_condition(dialect, table, len(set_columns) + 1)
    sql = f"UPDATE {table.qualified_name} SET {assignments} WHERE {condition}"

    with _unique_violations(dialect):
        result = q.execute(sql, *args, *values[:k])
    if result.rowcount != 1:
        raise NoRowsError(
            f"{table.qualified_name}: update affected {result.rowcount} rows, expected 1"
        )


def update(q: Querier, record: MappedRecord) -> None:
    """Update every non-key column of record."""
    table = record.table()
    update_only(q, record, table.columns[len(table.primary_key_columns):])


def upsert(q: Querier, record: MappedRecord) -> None:
    """Update record if its primary key is set, insert it otherwise. The database is not queried first."""
    if record.primary_key_empty():
        insert(q, record)
    else:
        update(q, record)


def save(q: Querier, record: MappedRecord) -> None:
    """Like upsert(), but insert when an update finds no row for the explicit key."""
    try:
        upsert(q, record)
    except NoRowsError:
        logger.debug(
            "No %s row for key %r, inserting",
            record.table().qualified_name,
            record.primary_key_values(),
        )
        insert(q, record)


def delete(q: Querier, record: MappedRecord) -> None:
    """
    Delete record by primary key.

    Raises:
        NoRowsError: If the statement did not affect exactly one row
    """
    table = record.table()
    condition = _primary_key_condition(q.dialect, table, 1)
    result = q.execute(
        f"DELETE FROM {table.qualified_name} WHERE {condition}",
        *record.primary_key_values(),
    )
    if result.rowcount != 1:
        raise NoRowsError(
            f"{table.qualified_name}: delete affected {result.rowcount} rows, expected 1"
        )


def apply(q: Querier, table: Table, mutate: Callable[[R], None], pk: Any) -> R:
    """
    Fetch-or-create the record with primary key pk, mutate it, and write back.

    An existing row is updated with only the columns mutate() changed, plus
    the table's updated column when one is configured. When nothing changed
    no statement is issued. A missing row is created with pk preset and
    inserted after mutate() runs.

    Usage:
        def rename(person: Person) -> None:
            person.name = "Ann"

        person = apply(db, Person.__table__, rename, 42)
    """
    try:
        record = find_by_primary_key(q, table, pk)
    except NoRowsError:
        record = table.new_record()
        record.set_primary_key(*_key_args(pk))
        old = None
    else:
        old = copy_struct(record)

    mutate(record)

    if old is None:
        insert(q, record)
        return record

    columns = changed_fields(old, record)
    if not columns:
        return record
    if table.updated_column and table.updated_column not in columns:
        columns.append(table.updated_column)
    update_only(q, record, columns)
    return record
