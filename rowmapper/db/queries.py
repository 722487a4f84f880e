from __future__ import annotations

from typing import Any

from sqlalchemy.engine import Row

from ..errors import NoRowsError
from .dialects import Dialect
from .interfaces import Described, Keyed
from .models import Struct, Table, View
from .querier import Querier


def select_query(view: View, tail: str = "") -> str:
    """Build ``SELECT <view>.<col>, ... FROM <view> <tail>``; tail is not validated."""
    name = view.qualified_name
    columns = ", ".join(f"{name}.{column}" for column in view.columns)
    query = f"SELECT {columns} FROM {name}"
    if tail:
        query += " " + tail
    return query


def _primary_key_condition(dialect: Dialect, table: Table, first_placeholder: int) -> str:
    columns = table.primary_key_columns
    placeholders = dialect.placeholders(len(columns), start=first_placeholder)
    return " AND ".join(f"{column} = {ph}" for column, ph in zip(columns, placeholders))


def _key_args(pk: Any) -> tuple[Any, ...]:
    return tuple(pk) if isinstance(pk, tuple) else (pk,)


def _equal_condition(dialect: Dialect, column: str, arg: Any) -> tuple[str, tuple[Any, ...]]:
    if arg is None:
        return f"{column} IS NULL", ()
    return f"{column} = {dialect.placeholder(1)}", (arg,)


def select_rows(q: Querier, view: View, tail: str = "", *args: Any) -> list[Row]:
    return q.query(select_query(view, tail), *args)


def select_one_to(q: Querier, s: Described, tail: str = "", *args: Any) -> None:
    """
    Scan the first row matching tail into s.

    Raises:
        NoRowsError: If no row matches
    """
    row = q.query_row(select_query(s.view(), tail), *args)
    if row is None:
        raise NoRowsError(f"no rows in {s.view().qualified_name}")
    s.scan(row)


def select_one_from(q: Querier, view: View, tail: str = "", *args: Any) -> Struct:
    """
    Return a new struct for the first row matching tail.

    Raises:
        NoRowsError: If no row matches
    """
    s = view.new_struct()
    select_one_to(q, s, tail, *args)
    return s


def select_all_from(q: Querier, view: View, tail: str = "", *args: Any) -> list[Struct]:
    structs = []
    for row in select_rows(q, view, tail, *args):
        s = view.new_struct()
        s.scan(row)
        structs.append(s)
    return structs


def find_one_to(q: Querier, s: Described, column: str, arg: Any) -> None:
    condition, args = _equal_condition(q.dialect, column, arg)
    select_one_to(q, s, f"WHERE {condition} LIMIT 1", *args)


def find_one_from(q: Querier, view: View, column: str, arg: Any) -> Struct:
    condition, args = _equal_condition(q.dialect, column, arg)
    return select_one_from(q, view, f"WHERE {condition} LIMIT 1", *args)


def find_all_from(q: Querier, view: View, column: str, *args: Any) -> list[Struct]:
    """Return all structs whose column is one of args."""
    if not args:
        return []
    placeholders = ", ".join(q.dialect.placeholders(len(args)))
    return select_all_from(q, view, f"WHERE {column} IN ({placeholders})", *args)


def find_by_primary_key(q: Querier, table: Table, pk: Any) -> Struct:
    """
    Return the record with the given primary key; composite keys are passed as a tuple.

    Raises:
        NoRowsError: If no such row exists
    """
    tail = f"WHERE {_primary_key_condition(q.dialect, table, 1)} LIMIT 1"
    return select_one_from(q, table, tail, *_key_args(pk))


def reload(q: Querier, record: Keyed) -> None:
    """Refresh record from the database by its primary key."""
    table = record.table()
    tail = f"WHERE {_primary_key_condition(q.dialect, table, 1)} LIMIT 1"
    select_one_to(q, record, tail, *record.primary_key_values())
