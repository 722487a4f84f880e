from prometheus_client import Counter, Histogram

DB_STATEMENT_TOTAL = Counter(
    "rowmapper_db_statement_total",
    "Statements executed through a Querier",
    ["table", "op_type", "status"],
)

DB_STATEMENT_LATENCY_SECONDS = Histogram(
    "rowmapper_db_statement_latency_seconds",
    "Statement latency in seconds",
    ["table", "op_type"],
)
