"""
Canonical call signatures used as deduplication keys.

A signature is ``name + ":" + canonical(args)`` where ``canonical`` sorts
mapping keys recursively, keeps sequence order, JSON-encodes primitives and
renders a missing value as ``undefined`` (distinct from ``null``).
"""

import json
from typing import Any


class _Missing:
    """Sentinel for an absent value."""

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


def canonicalize(value: Any = MISSING) -> str:
    """Render a value as a deterministic, key-order independent string."""
    if value is MISSING:
        return "undefined"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float, str)):
        return json.dumps(value)
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(canonicalize(item) for item in value) + "]"
    if isinstance(value, dict):
        parts = [
            f"{json.dumps(str(key))}:{canonicalize(value[key])}"
            for key in sorted(value, key=str)
        ]
        return "{" + ",".join(parts) + "}"
    return json.dumps(str(value))


def sign(name: str, args: Any = MISSING) -> str:
    """Build the signature for an operation name and its argument bag."""
    return f"{name}:{canonicalize(args)}"
