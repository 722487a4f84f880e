from __future__ import annotations

import copy
import dataclasses
import inspect
import types
import typing
from dataclasses import MISSING, dataclass, field
from decimal import Decimal
from typing import Any, Callable, ClassVar, Sequence, TypeVar

from ..errors import UsageError
from .helpers import _validate_identifier

_COLUMN_KEY = "rowmapper"

# Marks a column whose zero value is derived from its annotation.
_NO_ZERO = object()

_SCALAR_ZEROS: dict[Any, Any] = {
    int: 0,
    float: 0.0,
    str: "",
    bool: False,
    bytes: b"",
    Decimal: Decimal(0),
}
_CONTAINER_TYPES = (list, dict, set)

# Field names that would shadow Struct/Record methods.
_RESERVED_NAMES = frozenset(
    {
        "view",
        "values",
        "scan",
        "table",
        "primary_key_values",
        "primary_key_empty",
        "set_primary_key",
        "before_insert",
        "before_update",
    }
)

S = TypeVar("S", bound="type[Struct]")


@dataclass(frozen=True)
class View:
    """
    Read-oriented entity metadata: name and ordered columns.

    columns, fields (attribute names), omit_empty and zero_values are parallel
    sequences in column order.
    """

    name: str
    columns: tuple[str, ...]
    fields: tuple[str, ...]
    omit_empty: tuple[bool, ...]
    zero_values: tuple[Any, ...]
    struct_type: type
    schema: str = ""

    def __post_init__(self) -> None:
        for attr in ("columns", "fields", "omit_empty", "zero_values"):
            object.__setattr__(self, attr, tuple(getattr(self, attr)))

        n = len(self.columns)
        if not (len(self.fields) == len(self.omit_empty) == len(self.zero_values) == n):
            raise ValueError(
                f"{self.name}: columns, fields, omit_empty and zero_values must have the same length"
            )

    @property
    def qualified_name(self) -> str:
        if self.schema:
            return f"{self.schema}.{self.name}"
        return self.name

    def new_struct(self) -> "Struct":
        return self.struct_type()


@dataclass(frozen=True)
class Table(View):
    """A View with a primary key prefix and an optional updated-at column."""

    primary_key_columns: tuple[str, ...] = ()
    updated_column: str = ""

    def __post_init__(self) -> None:
        super().__post_init__()
        object.__setattr__(self, "primary_key_columns", tuple(self.primary_key_columns))

        k = len(self.primary_key_columns)
        if k == 0:
            raise ValueError(f"table {self.name} has no primary key columns")
        if self.columns[:k] != self.primary_key_columns:
            raise ValueError(f"table {self.name}: primary key columns must come first")
        if not all(self.omit_empty[:k]):
            raise ValueError(f"table {self.name}: primary key columns must be omit-empty")
        if self.updated_column and self.updated_column not in self.columns[k:]:
            raise ValueError(
                f"table {self.name}: updated column {self.updated_column!r} is not a non-key column"
            )

    def new_record(self) -> "Record":
        return self.struct_type()


class Struct:
    """
    A typed row: ordered field values matching the view's columns.

    Subclasses are declared with the view() or table() decorators.
    """

    __view__: ClassVar[View]

    def view(self) -> View:
        return type(self).__view__

    def values(self) -> list[Any]:
        return [getattr(self, name) for name in self.__view__.fields]

    def scan(self, row: Sequence[Any]) -> None:
        """Assign a row's values to the fields, in column order."""
        names = self.__view__.fields
        if len(row) != len(names):
            raise UsageError(
                f"{type(self).__name__}: expected {len(names)} values, got {len(row)}"
            )
        for name, value in zip(names, row):
            setattr(self, name, value)


class Record(Struct):
    """A Struct backed by a table, with primary key accessors and write hooks."""

    __table__: ClassVar[Table]

    def table(self) -> Table:
        return type(self).__table__

    def primary_key_values(self) -> list[Any]:
        k = len(self.__table__.primary_key_columns)
        return [getattr(self, name) for name in self.__table__.fields[:k]]

    def primary_key_empty(self) -> bool:
        zeros = self.__table__.zero_values
        return any(value == zero for value, zero in zip(self.primary_key_values(), zeros))

    def set_primary_key(self, *ids: Any) -> None:
        names = self.__table__.fields[: len(self.__table__.primary_key_columns)]
        if len(ids) != len(names):
            raise UsageError(
                f"{type(self).__name__}: expected {len(names)} primary key values, got {len(ids)}"
            )
        for name, value in zip(names, ids):
            setattr(self, name, value)

    def before_insert(self) -> None:
        """Called by insert() before the column list is built."""

    def before_update(self) -> None:
        """Called by update_only() before the SET list is built."""


@dataclass(frozen=True)
class _ColumnSpec:
    name: str | None = None
    pk: bool = False
    omit_empty: bool = False
    zero: Any = _NO_ZERO


def column(
    name: str | None = None,
    *,
    pk: bool = False,
    omit_empty: bool = False,
    zero: Any = _NO_ZERO,
    default: Any = MISSING,
    default_factory: Callable[[], Any] | Any = MISSING,
) -> Any:
    """
    Declare a mapped field.

    Args:
        name: Column name (defaults to the attribute name)
        pk: Part of the primary key; key fields must be declared first
        omit_empty: Leave the column out of INSERT while it equals its zero value
        zero: Zero value (defaults to one derived from the annotation)
        default: Field default (defaults to the zero value)
        default_factory: Field default factory
    """
    return field(
        default=default,
        default_factory=default_factory,
        metadata={_COLUMN_KEY: _ColumnSpec(name, pk, omit_empty, zero)},
    )


def _zero_for(annotation: Any) -> Any:
    origin = typing.get_origin(annotation)
    if origin is typing.Union or origin is types.UnionType:
        return None
    target = origin or annotation
    if target in _SCALAR_ZEROS:
        return _SCALAR_ZEROS[target]
    if target in _CONTAINER_TYPES:
        return target()
    return None


def _set_default(target: dataclasses.Field | None, zero: Any) -> Any:
    """Default a field to its zero value; returns the object to put on the class."""
    if target is None:
        target = field()
    if isinstance(zero, _CONTAINER_TYPES):
        target.default_factory = lambda: copy.copy(zero)
    else:
        target.default = zero
    return target


def _as_dataclass(cls: type) -> type:
    if "__dataclass_fields__" in cls.__dict__:
        return cls

    hints = typing.get_type_hints(cls)
    for name in inspect.get_annotations(cls):
        hint = hints.get(name)
        if hint is ClassVar or typing.get_origin(hint) is ClassVar:
            continue

        current = cls.__dict__.get(name, MISSING)
        if current is MISSING:
            setattr(cls, name, _set_default(None, _zero_for(hint)))
        elif isinstance(current, dataclasses.Field):
            if current.default is MISSING and current.default_factory is MISSING:
                spec = current.metadata.get(_COLUMN_KEY, _ColumnSpec())
                zero = _zero_for(hint) if spec.zero is _NO_ZERO else spec.zero
                _set_default(current, zero)

    return dataclass(cls)


def _describe(cls: type) -> tuple[list[str], list[str], list[bool], list[Any], list[str]]:
    hints = typing.get_type_hints(cls)
    columns: list[str] = []
    names: list[str] = []
    omit_empty: list[bool] = []
    zero_values: list[Any] = []
    primary_key: list[str] = []

    for f in dataclasses.fields(cls):
        if f.name in _RESERVED_NAMES:
            raise TypeError(f"{cls.__name__}.{f.name} shadows a record method")

        spec = f.metadata.get(_COLUMN_KEY, _ColumnSpec())
        column_name = _validate_identifier(spec.name or f.name, "column")
        if spec.pk:
            if len(primary_key) != len(columns):
                raise TypeError(f"{cls.__name__}: primary key columns should come first")
            primary_key.append(column_name)

        columns.append(column_name)
        names.append(f.name)
        omit_empty.append(spec.omit_empty or spec.pk)
        zero_values.append(_zero_for(hints.get(f.name)) if spec.zero is _NO_ZERO else spec.zero)

    return columns, names, omit_empty, zero_values, primary_key


def view(name: str, *, schema: str = "") -> Callable[[S], S]:
    """
    Register a Struct subclass as a read-only view.

    Usage:
        @view("people")
        class PersonName(Struct):
            id: int = column()
            name: str = column()
    """

    def decorate(cls: S) -> S:
        if not (isinstance(cls, type) and issubclass(cls, Struct)):
            raise TypeError("@view() must decorate a Struct subclass")
        cls = _as_dataclass(cls)
        columns, names, omit_empty, zero_values, _ = _describe(cls)
        cls.__view__ = View(
            name=_validate_identifier(name, "view"),
            columns=columns,
            fields=names,
            omit_empty=omit_empty,
            zero_values=zero_values,
            struct_type=cls,
            schema=_validate_identifier(schema, "schema") if schema else "",
        )
        return cls

    return decorate


def table(name: str, *, schema: str = "", updated_column: str = "") -> Callable[[S], S]:
    """
    Register a Record subclass as a table.

    Every field defaults to its zero value so table.new_record() needs no
    arguments. Primary key fields must be declared first.

    Usage:
        @table("people", updated_column="updated_at")
        class Person(Record):
            id: int = column(pk=True)
            name: str = column()
            email: Optional[str] = column(omit_empty=True)
            updated_at: Optional[datetime] = column()
    """

    def decorate(cls: S) -> S:
        if not (isinstance(cls, type) and issubclass(cls, Record)):
            raise TypeError("@table() must decorate a Record subclass")
        cls = _as_dataclass(cls)
        columns, names, omit_empty, zero_values, primary_key = _describe(cls)
        meta = Table(
            name=_validate_identifier(name, "table"),
            columns=columns,
            fields=names,
            omit_empty=omit_empty,
            zero_values=zero_values,
            struct_type=cls,
            schema=_validate_identifier(schema, "schema") if schema else "",
            primary_key_columns=primary_key,
            updated_column=updated_column,
        )
        cls.__view__ = meta
        cls.__table__ = meta
        return cls

    return decorate
