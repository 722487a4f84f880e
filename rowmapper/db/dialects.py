from __future__ import annotations

import itertools
import re
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Iterator, Sequence

from sqlalchemy.exc import DBAPIError, IntegrityError

from ..errors import UsageError

# Quoted literals and comments are matched first so placeholders inside them
# are left alone.
_SKIPPED = r"'(?:[^']|'')*'|\"(?:[^\"]|\"\")*\"|/\*(?s:.*?)\*/|--[^\n]*"

# MySQL also accepts backslash escapes inside quoted literals.
_MYSQL_SKIPPED = (
    r"'(?:[^'\\]|\\[\s\S]|'')*'|\"(?:[^\"\\]|\\[\s\S]|\"\")*\"|/\*(?s:.*?)\*/|--[^\n]*"
)

# Same shape sqlalchemy.text() treats as a bind parameter; escaped so only
# the parameters produced by bind() are seen as binds.
_BIND_NAME_RE = re.compile(r"(?<![:\w\\]):(\w+)(?!:)")


class InsertMode(str, Enum):
    RETURNING = "returning"
    LAST_INSERT_ID = "last_insert_id"


def _driver_error(exc: BaseException) -> BaseException:
    if isinstance(exc, DBAPIError) and exc.orig is not None:
        return exc.orig
    return exc


class Dialect(ABC):
    """
    Per-backend SQL placeholder and error-classification rules.

    Dialects are stateless values; a Database receives one explicitly (or
    infers it with for_driver()).
    """

    name: str = ""
    insert_mode: InsertMode = InsertMode.LAST_INSERT_ID
    default_values: str = "DEFAULT VALUES"
    _placeholder_re: re.Pattern[str]

    @abstractmethod
    def placeholder(self, n: int) -> str:
        """Return the placeholder for the n-th (1-based) parameter."""
        ...

    def placeholders(self, n: int, start: int = 1) -> list[str]:
        """Return placeholders for n parameters numbered from start."""
        return [self.placeholder(i) for i in range(start, start + n)]

    @abstractmethod
    def is_unique_violation(self, exc: BaseException) -> bool:
        """Classify a driver-reported error as a unique constraint violation."""
        ...

    @abstractmethod
    def _placeholder_number(self, match: re.Match[str], counter: Iterator[int]) -> int:
        ...

    def bind(self, query: str, args: Sequence[Any]) -> tuple[str, dict[str, Any]]:
        """
        Translate positional placeholders into sqlalchemy.text() bind parameters.

        Args:
            query: SQL using this dialect's placeholders
            args: Positional arguments, one per placeholder number

        Returns:
            (sql, params) where sql uses :p1, :p2, ... and params maps them to args

        Raises:
            UsageError: If placeholders and arguments do not match
        """
        counter = itertools.count(1)
        used: set[int] = set()

        def _replace(match: re.Match[str]) -> str:
            if match.group("ph") is None:
                return match.group(0)
            n = self._placeholder_number(match, counter)
            if not 1 <= n <= len(args):
                raise UsageError(
                    f"placeholder {match.group('ph')} has no argument ({len(args)} given)"
                )
            used.add(n)
            # text() does not see ":p1::int" as a bind, ":p1 ::int" is fine
            if match.string.startswith(":", match.end()):
                return f":p{n} "
            return f":p{n}"

        sql = self._placeholder_re.sub(_replace, _BIND_NAME_RE.sub(r"\\:\1", query))
        if len(used) != len(args):
            raise UsageError(f"{len(args)} arguments given for {len(used)} placeholders")
        return sql, {f"p{n}": args[n - 1] for n in sorted(used)}

    def __eq__(self, other: object) -> bool:
        return type(self) is type(other)

    def __hash__(self) -> int:
        return hash(type(self))

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class _QuestionMarkDialect(Dialect):
    _placeholder_re = re.compile(rf"{_SKIPPED}|(?P<ph>\?)")

    def placeholder(self, n: int) -> str:
        return "?"

    def _placeholder_number(self, match: re.Match[str], counter: Iterator[int]) -> int:
        return next(counter)


class PostgreSQL(Dialect):
    name = "postgresql"
    insert_mode = InsertMode.RETURNING
    _placeholder_re = re.compile(rf"{_SKIPPED}|(?P<ph>\$(?P<num>\d+))")

    def placeholder(self, n: int) -> str:
        return f"${n}"

    def _placeholder_number(self, match: re.Match[str], counter: Iterator[int]) -> int:
        return int(match.group("num"))

    def is_unique_violation(self, exc: BaseException) -> bool:
        # psycopg2 exposes pgcode, psycopg 3 and asyncpg expose sqlstate
        orig = _driver_error(exc)
        code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
        return code == "23505"


class MySQL(_QuestionMarkDialect):
    name = "mysql"
    default_values = "() VALUES ()"
    _placeholder_re = re.compile(rf"{_MYSQL_SKIPPED}|(?P<ph>\?)")

    def is_unique_violation(self, exc: BaseException) -> bool:
        if not isinstance(exc, IntegrityError):
            return False
        # MySQL error code 1062 is ER_DUP_ENTRY
        orig = _driver_error(exc)
        args = getattr(orig, "args", ())
        error_code = args[0] if args else None
        return error_code == 1062 or "Duplicate entry" in str(orig)


class SQLite(_QuestionMarkDialect):
    name = "sqlite"

    def is_unique_violation(self, exc: BaseException) -> bool:
        if not isinstance(exc, IntegrityError):
            return False
        orig = _driver_error(exc)
        error_name = getattr(orig, "sqlite_errorname", "")
        return error_name in (
            "SQLITE_CONSTRAINT_UNIQUE",
            "SQLITE_CONSTRAINT_PRIMARYKEY",
        ) or "UNIQUE constraint failed" in str(orig)


def for_driver(driver: str) -> Dialect | None:
    """Return a dialect for a SQLAlchemy dialect or driver name, or None."""
    if driver in ("postgresql", "postgres", "pgx"):
        return PostgreSQL()
    if driver in ("mysql", "mariadb"):
        return MySQL()
    if driver in ("sqlite", "sqlite3"):
        return SQLite()
    return None
