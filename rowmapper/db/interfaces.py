from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, Sequence, runtime_checkable

if TYPE_CHECKING:
    from .models import Table, View


@runtime_checkable
class Described(Protocol):
    """A row that knows its view and exposes its values in column order."""

    def view(self) -> View:
        ...

    def values(self) -> list[Any]:
        ...

    def scan(self, row: Sequence[Any]) -> None:
        """Assign values to the fields, in column order."""
        ...


@runtime_checkable
class Keyed(Protocol):
    """A row with a primary key prefix."""

    def table(self) -> Table:
        ...

    def primary_key_values(self) -> list[Any]:
        ...

    def primary_key_empty(self) -> bool:
        ...

    def set_primary_key(self, *ids: Any) -> None:
        ...


@runtime_checkable
class Hookable(Protocol):
    """Extension points invoked before generated writes."""

    def before_insert(self) -> None:
        ...

    def before_update(self) -> None:
        ...


@runtime_checkable
class MappedRecord(Described, Keyed, Hookable, Protocol):
    """Everything the command engine needs from a record."""


@runtime_checkable
class QueryLogger(Protocol):
    """
    Receives an event before and after every statement a Querier runs.

    duration_s is the elapsed wall time in seconds; error is the exception
    raised by the statement, or None.
    """

    def before(self, query: str, args: Sequence[Any]) -> None:
        ...

    def after(
        self,
        query: str,
        args: Sequence[Any],
        duration_s: float,
        error: BaseException | None,
    ) -> None:
        ...
