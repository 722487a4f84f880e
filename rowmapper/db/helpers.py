from __future__ import annotations

import re

_IDENTIFIER_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")

_OPERATION_RES = (
    ("insert", re.compile(r"^\s*INSERT\s+INTO\s+([\w.]+)", re.IGNORECASE)),
    ("update", re.compile(r"^\s*UPDATE\s+([\w.]+)", re.IGNORECASE)),
    ("delete", re.compile(r"^\s*DELETE\s+FROM\s+([\w.]+)", re.IGNORECASE)),
    ("select", re.compile(r"^\s*SELECT\s.*?\sFROM\s+([\w.]+)", re.IGNORECASE | re.DOTALL)),
)

_CONTROL_COMMANDS = {"BEGIN": "begin", "COMMIT": "commit", "ROLLBACK": "rollback"}


def _validate_identifier(name: str, identifier_type: str = "identifier") -> str:
    """
    Validate that an identifier (table/column name) is safe for SQL interpolation.

    Generated statements interpolate table and column names directly, so they
    are restricted to letters, digits and underscores.

    ⚠️ SECURITY CONTRACT ⚠️
    This function validates identifier format but does NOT make identifiers
    taken from untrusted user input safe. Mapped tables and columns MUST be
    declared in code.

    Args:
        name: The identifier to validate
        identifier_type: Description of the identifier (for error messages)

    Returns:
        The validated identifier (unchanged if valid)

    Raises:
        TypeError: If identifier is not a string
        ValueError: If identifier contains unsafe characters or is empty

    Example:
        >>> _validate_identifier("people", "table")
        'people'
        >>> _validate_identifier("'; DROP TABLE--", "table")
        ValueError: Invalid table "'; DROP TABLE--": ...
    """
    if not isinstance(name, str):
        raise TypeError(f"{identifier_type} must be a string, got {type(name).__name__}")

    if not name:
        raise ValueError(f"{identifier_type} cannot be empty")

    if not _IDENTIFIER_RE.match(name):
        raise ValueError(
            f"Invalid {identifier_type} {name!r}: "
            "must start with letter/underscore and contain only alphanumeric characters and underscores"
        )

    return name


def _parse_sql_operation(sql: str) -> tuple[str, str]:
    """
    Classify a statement for metrics.

    Returns:
        (table, op_type) where op_type is one of insert/update/delete/select,
        begin/commit/rollback, or "unknown". table is "" when it does not apply.
    """
    command = sql.strip().split(None, 1)[0].upper() if sql.strip() else ""
    if command in _CONTROL_COMMANDS:
        return "", _CONTROL_COMMANDS[command]

    for op_type, pattern in _OPERATION_RES:
        match = pattern.match(sql)
        if match:
            return match.group(1), op_type

    return "", "unknown"
