from __future__ import annotations

import copy
import json
from datetime import datetime, timezone
from typing import Any, TypeVar

from ..errors import UsageError
from ..types import JSONText
from .interfaces import Described

D = TypeVar("D", bound=Described)


def _semi_deep_copy(value: Any) -> Any:
    # One level only: a list gets a new backing list holding the same
    # elements, an object gets a new holder sharing its attribute values.
    if value is None:
        return None
    return copy.copy(value)


def copy_struct(s: D) -> D:
    """
    Semi-deep copy of a struct, used as the "before" snapshot for change tracking.

    Containers and mutable holders are duplicated one level deep, so mutating
    them on the original does not affect the copy.
    """
    result = type(s)()
    result.scan([_semi_deep_copy(value) for value in s.values()])
    return result


def _as_instant(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _decode_json(value: JSONText) -> tuple[bool, Any]:
    try:
        return True, json.loads(value)
    except ValueError:
        return False, None


def _attributes(value: Any) -> dict[str, Any]:
    attrs = dict(getattr(value, "__dict__", {}))
    for klass in type(value).__mro__:
        slots = klass.__dict__.get("__slots__", ())
        if isinstance(slots, str):
            slots = (slots,)
        for name in slots:
            if name in ("__dict__", "__weakref__"):
                continue
            if name.startswith("__") and not name.endswith("__"):
                name = f"_{klass.__name__.lstrip('_')}{name}"
            if hasattr(value, name):
                attrs[name] = getattr(value, name)
    return attrs


def _has_slots(value: Any) -> bool:
    return any(klass.__dict__.get("__slots__") for klass in type(value).__mro__)


def _has_identity_eq(value: Any) -> bool:
    if type(value).__eq__ is not object.__eq__:
        return False
    return hasattr(value, "__dict__") or _has_slots(value)


def _equal(old: Any, new: Any) -> bool:
    if isinstance(old, datetime) and isinstance(new, datetime):
        # same instant in different zones is not a change
        return _as_instant(old) == _as_instant(new)

    if isinstance(old, JSONText) and isinstance(new, JSONText):
        old_ok, old_doc = _decode_json(old)
        new_ok, new_doc = _decode_json(new)
        if old_ok and new_ok:
            return old_doc == new_doc
        return str(old) == str(new)

    if type(old) is type(new) and _has_identity_eq(old):
        # distinct holders with equal content are not a change
        return _attributes(old) == _attributes(new)

    return old == new


def changed_fields(old: Described, new: Described) -> list[str]:
    """
    Return the columns whose values differ between two snapshots of a record.

    The result follows column declaration order.

    Raises:
        UsageError: If old and new are not the same record type
    """
    if type(old) is not type(new):
        raise UsageError(
            f"cannot diff {type(old).__name__} against {type(new).__name__}"
        )

    columns = old.view().columns
    return [
        column
        for column, old_value, new_value in zip(columns, old.values(), new.values())
        if not _equal(old_value, new_value)
    ]
