from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any, Sequence

from ..types import JSONText
from .dialects import _SKIPPED
from .interfaces import QueryLogger

_PLACEHOLDER_RE = re.compile(rf"{_SKIPPED}|(?P<ph>\$(?P<num>\d+)|\?)")


def _inline(value: Any) -> str:
    # Meant to make the log read like SQL, not to be a correct translation.
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "'t'" if value else "'f'"
    if isinstance(value, datetime):
        return "'" + value.strftime("%Y-%m-%d %H:%M:%S") + "'"
    if isinstance(value, (str, JSONText)):
        return "'" + value + "'"
    return str(value)


def format_query(query: str, args: Sequence[Any]) -> str:
    """
    Inline positional arguments ($n or ?) into a query for logging.

    Placeholders inside quoted literals and comments are left as written.
    """
    sequence = iter(range(len(args)))

    def _replace(match: re.Match[str]) -> str:
        if match.group("ph") is None:
            return match.group(0)
        if match.group("num") is not None:
            index = int(match.group("num")) - 1
        else:
            index = next(sequence, len(args))
        if 0 <= index < len(args):
            return _inline(args[index])
        return match.group(0)

    return _PLACEHOLDER_RE.sub(_replace, query)


class LoggingQueryLogger:
    """
    Query logger writing statements to a stdlib logger.

    Statements are logged at ``level`` with arguments inlined; failed
    statements are logged at WARNING.
    """

    def __init__(self, logger: logging.Logger | None = None, level: int = logging.DEBUG) -> None:
        self.logger = logger or logging.getLogger("rowmapper.sql")
        self.level = level

    def before(self, query: str, args: Sequence[Any]) -> None:
        if self.logger.isEnabledFor(self.level):
            self.logger.log(self.level, "%s", format_query(query, args))

    def after(
        self,
        query: str,
        args: Sequence[Any],
        duration_s: float,
        error: BaseException | None,
    ) -> None:
        if error is not None:
            self.logger.warning(
                "%s -- %.3f ms, failed: %s",
                format_query(query, args),
                duration_s * 1000,
                error,
            )
        elif self.logger.isEnabledFor(self.level):
            self.logger.log(self.level, "%s -- %.3f ms", format_query(query, args), duration_s * 1000)


class CompositeQueryLogger:
    """
    Fans events out to several query loggers.

    before() runs in order, after() in reverse order.
    """

    def __init__(self, loggers: Sequence[QueryLogger]) -> None:
        self.loggers = list(loggers)

    def before(self, query: str, args: Sequence[Any]) -> None:
        for query_logger in self.loggers:
            query_logger.before(query, args)

    def after(
        self,
        query: str,
        args: Sequence[Any],
        duration_s: float,
        error: BaseException | None,
    ) -> None:
        for query_logger in reversed(self.loggers):
            query_logger.after(query, args, duration_s, error)
