from __future__ import annotations

from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any, Sequence

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine

from rowmapper.db import Database


PEOPLE_DDL = """
    CREATE TABLE people (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL DEFAULT '',
        email TEXT NULL UNIQUE,
        score INTEGER NOT NULL DEFAULT 0,
        updated_at INTEGER NOT NULL DEFAULT 0
    )
"""

PROJECT_MEMBERS_DDL = """
    CREATE TABLE project_members (
        project_id INTEGER NOT NULL,
        user_id INTEGER NOT NULL,
        role TEXT NOT NULL DEFAULT '',
        PRIMARY KEY (project_id, user_id)
    )
"""


class RecordingLogger:
    """Query logger spy keeping every before/after event."""

    def __init__(self) -> None:
        self.events: list[tuple[Any, ...]] = []

    def before(self, query: str, args: Sequence[Any]) -> None:
        self.events.append(("before", query, tuple(args)))

    def after(
        self,
        query: str,
        args: Sequence[Any],
        duration_s: float,
        error: BaseException | None,
    ) -> None:
        self.events.append(("after", query, tuple(args), error))

    @property
    def queries(self) -> list[str]:
        return [event[1] for event in self.events if event[0] == "before"]

    def clear(self) -> None:
        self.events.clear()


class StatementCounter:
    """Counts statements a SQLAlchemy engine sends to its driver."""

    def __init__(self, engine: Engine) -> None:
        self.statements: list[str] = []
        event.listen(engine, "before_cursor_execute", self._on_execute)

    def _on_execute(self, conn, cursor, statement, parameters, context, executemany) -> None:
        self.statements.append(statement)

    def count(self, marker: str) -> int:
        return sum(1 for statement in self.statements if marker in statement)


@pytest.fixture
def engine_factory(tmp_path: Path) -> Iterator[Callable[[str], Engine]]:
    """
    Factory fixture creating file-backed SQLite engines, disposed after the test.

    Usage:
        replica = engine_factory("replica1")
    """
    created: list[Engine] = []

    def _create(name: str) -> Engine:
        eng = create_engine(f"sqlite:///{tmp_path / name}.db")
        created.append(eng)
        return eng

    yield _create

    for eng in created:
        eng.dispose()


@pytest.fixture
def engine(engine_factory: Callable[[str], Engine]) -> Engine:
    return engine_factory("main")


@pytest.fixture
def create_table(engine: Engine) -> Callable[[str], None]:
    """
    Run CREATE TABLE DDL on the main engine.

    Usage:
        create_table("CREATE TABLE t (id INTEGER PRIMARY KEY)")
    """

    def _create(ddl: str) -> None:
        with engine.begin() as conn:
            conn.exec_driver_sql(ddl)

    return _create


@pytest.fixture
def schema(create_table: Callable[[str], None]) -> None:
    """The people and project_members tables used across DB tests."""
    create_table(PEOPLE_DDL)
    create_table(PROJECT_MEMBERS_DDL)


@pytest.fixture
def recorder() -> RecordingLogger:
    return RecordingLogger()


@pytest.fixture
def db(engine: Engine, schema: None, recorder: RecordingLogger) -> Database:
    return Database(engine, query_logger=recorder)


@pytest.fixture
def statement_counter() -> Callable[[Engine], StatementCounter]:
    """
    Attach a StatementCounter to an engine.

    Usage:
        counter = statement_counter(engine)
    """
    return StatementCounter
