"""
Domain — preference value helpers (pure).

``gsettings get`` prints GVariant text (``'Mint-Y'``, ``true``,
``@as []``, ``uint32 5``, ``['a', 'b']``). These helpers convert it to
Python values and back, and express list-valued read-modify-write
(favorites, enabled-extensions, toolbar items) as pure functions.
"""

from __future__ import annotations

import ast
import re
from collections.abc import Iterable
from typing import Any

_TYPE_ANNOTATION = re.compile(r"^@[a-z{}()]+\s+")
_TYPE_PREFIX = re.compile(r"^(?:byte|int16|uint16|int32|uint32|int64|uint64|handle|double|objectpath|signature)\s+")
_TOKENS = re.compile(r"'(?:[^'\\]|\\.)*'|\"(?:[^\"\\]|\\.)*\"|\btrue\b|\bfalse\b|\bnothing\b")
_KEYWORDS = {"true": "True", "false": "False", "nothing": "None"}


def parse_gvariant(text: str) -> Any:
    """Parse GVariant text into a Python value.

    Unparseable text (variants, dict-of-variant, etc.) is returned as
    the stripped raw string so comparisons still work textually.
    """
    raw = text.strip()
    if not raw:
        return None

    body = _TYPE_ANNOTATION.sub("", raw)
    body = _TYPE_PREFIX.sub("", body)
    body = _TOKENS.sub(lambda m: _KEYWORDS.get(m.group(0), m.group(0)), body)

    try:
        return ast.literal_eval(body)
    except (ValueError, SyntaxError):
        return raw


def format_gvariant(value: Any) -> str:
    """Render a Python value as GVariant text accepted by ``gsettings set``."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, str):
        escaped = value.replace("\\", "\\\\").replace("'", "\\'")
        return f"'{escaped}'"
    if isinstance(value, list):
        return "[" + ", ".join(format_gvariant(v) for v in value) + "]"
    if isinstance(value, tuple):
        return "(" + ", ".join(format_gvariant(v) for v in value) + ("," if len(value) == 1 else "") + ")"
    if isinstance(value, dict):
        items = ", ".join(f"{format_gvariant(k)}: {format_gvariant(v)}" for k, v in value.items())
        return "{" + items + "}"
    raise TypeError(f"Cannot express {type(value).__name__} as GVariant")


def append_items(current: Any, items: Iterable[Any]) -> list[Any]:
    """Return ``current`` with ``items`` appended when missing (order kept)."""
    result = _as_list(current)
    for item in items:
        if item not in result:
            result.append(item)
    return result


def remove_items(current: Any, items: Iterable[Any]) -> list[Any]:
    """Return ``current`` without any of ``items``."""
    drop = list(items)
    return [v for v in _as_list(current) if v not in drop]


def values_equal(current: Any, desired: Any) -> bool:
    """Compare a parsed store value with a desired value.

    Tuples and lists compare equal element-wise; a raw string from an
    unparseable value compares against the formatted desired value.
    """
    if isinstance(current, (list, tuple)) and isinstance(desired, (list, tuple)):
        return list(current) == list(desired)
    if isinstance(current, str) and not isinstance(desired, str):
        try:
            return current == format_gvariant(desired)
        except TypeError:
            return False
    return current == desired


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]
