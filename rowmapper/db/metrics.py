from __future__ import annotations

from typing import Any, Sequence

from ..metrics.registry import DB_STATEMENT_LATENCY_SECONDS, DB_STATEMENT_TOTAL
from .helpers import _parse_sql_operation


def observe_statement(table: str, op_type: str, status: str, latency_s: float) -> None:
    """Record one executed statement."""
    DB_STATEMENT_TOTAL.labels(table=table, op_type=op_type, status=status).inc()
    DB_STATEMENT_LATENCY_SECONDS.labels(table=table, op_type=op_type).observe(latency_s)


class MetricsQueryLogger:
    """Query logger that records a Prometheus sample for every finished statement."""

    def before(self, query: str, args: Sequence[Any]) -> None:
        pass

    def after(
        self,
        query: str,
        args: Sequence[Any],
        duration_s: float,
        error: BaseException | None,
    ) -> None:
        table, op_type = _parse_sql_operation(query)
        observe_statement(
            table=table,
            op_type=op_type,
            status="error" if error is not None else "success",
            latency_s=duration_s,
        )
