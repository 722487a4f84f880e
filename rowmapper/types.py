from __future__ import annotations

import json
from typing import Any


class JSONText(str):
    """
    Encoded JSON stored in a text column.

    Change tracking compares JSONText values by their decoded form, so two
    encodings of the same document (e.g. with reordered keys) are equal.
    """

    def decode(self) -> Any:
        return json.loads(self)

    @classmethod
    def encode(cls, value: Any) -> "JSONText":
        return cls(json.dumps(value))
