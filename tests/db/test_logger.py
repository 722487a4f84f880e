from __future__ import annotations

import logging
from datetime import datetime
from unittest.mock import MagicMock, call

import pytest
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError

from rowmapper.db import CompositeQueryLogger, Database, LoggingQueryLogger
from rowmapper.db.logger import format_query
from rowmapper.types import JSONText


def test_format_query_inlines_question_marks() -> None:
    query = format_query(
        "INSERT INTO t VALUES (?, ?, ?, ?, ?)",
        ["Ann", None, True, 3, datetime(2024, 5, 1, 12, 30, 5)],
    )

    assert query == "INSERT INTO t VALUES ('Ann', NULL, 't', 3, '2024-05-01 12:30:05')"


def test_format_query_inlines_numbered_placeholders() -> None:
    assert format_query("SELECT $2, $1, $2", [False, JSONText('{"a": 1}')]) == (
        "SELECT '{\"a\": 1}', 'f', '{\"a\": 1}'"
    )


def test_format_query_leaves_unmatched_placeholders() -> None:
    assert format_query("SELECT ?, ?", [1]) == "SELECT 1, ?"


def test_format_query_skips_literals_and_comments() -> None:
    assert format_query("SELECT 'why?', ? /* ? */ -- $1", [1]) == (
        "SELECT 'why?', 1 /* ? */ -- $1"
    )


def test_statements_are_logged_with_duration(engine: Engine, schema, caplog) -> None:
    db = Database(engine, query_logger=LoggingQueryLogger(logging.getLogger("test.sql")))

    with caplog.at_level(logging.DEBUG, logger="test.sql"):
        db.query("SELECT name FROM people WHERE id = ?", 7)

    messages = [record.getMessage() for record in caplog.records]
    assert messages[0] == "SELECT name FROM people WHERE id = 7"
    assert messages[1].startswith("SELECT name FROM people WHERE id = 7 -- ")
    assert messages[1].endswith(" ms")
    assert all(record.levelno == logging.DEBUG for record in caplog.records)


def test_failed_statement_is_logged_as_warning(engine: Engine, caplog) -> None:
    db = Database(engine, query_logger=LoggingQueryLogger(logging.getLogger("test.sql")))

    with caplog.at_level(logging.WARNING, logger="test.sql"):
        with pytest.raises(OperationalError):
            db.query("SELECT * FROM missing_table")

    assert len(caplog.records) == 1
    assert caplog.records[0].levelno == logging.WARNING
    assert "failed" in caplog.records[0].getMessage()


def test_custom_level(engine: Engine, caplog) -> None:
    query_logger = LoggingQueryLogger(logging.getLogger("test.sql"), level=logging.INFO)
    db = Database(engine, query_logger=query_logger)

    with caplog.at_level(logging.INFO, logger="test.sql"):
        db.query("SELECT 1")

    assert [record.levelno for record in caplog.records] == [logging.INFO, logging.INFO]


def test_composite_logger_order() -> None:
    parent = MagicMock()
    composite = CompositeQueryLogger([parent.first, parent.second])

    composite.before("SELECT 1", ())
    composite.after("SELECT 1", (), 0.5, None)

    assert parent.mock_calls == [
        call.first.before("SELECT 1", ()),
        call.second.before("SELECT 1", ()),
        call.second.after("SELECT 1", (), 0.5, None),
        call.first.after("SELECT 1", (), 0.5, None),
    ]
