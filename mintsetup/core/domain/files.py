"""
Domain — file content rendering (pure).

Every function maps ``current text (or None) → desired text``. Applying
one to its own output returns the same text, which is what lets the
file adapter probe by comparing strings.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable, Mapping, Sequence
from string import Template
from typing import Any


def expand(text: str, variables: Mapping[str, str]) -> str:
    """Substitute ``$NAME`` / ``${NAME}``; unknown names are left as-is."""
    return Template(text).safe_substitute(variables)


def deep_merge(base: Mapping[str, Any], overlay: Mapping[str, Any]) -> dict[str, Any]:
    """Recursive object merge; ``overlay`` wins on conflicts (jq ``*``)."""
    merged = dict(base)
    for key, value in overlay.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def merge_json_object(current: str | None, data: Mapping[str, Any]) -> str:
    """Deep-merge ``data`` into the JSON object held in ``current``."""
    existing = _load_json(current, default={})
    if not isinstance(existing, dict):
        raise ValueError("Existing file is not a JSON object")
    return _dump_json(deep_merge(existing, data))


def merge_json_list(
    current: str | None,
    items: Sequence[Mapping[str, Any]],
    unique_by: Sequence[str],
) -> str:
    """Append ``items`` to the JSON list in ``current`` unless an entry
    with the same ``unique_by`` key values already exists."""
    existing = _load_json(current, default=[])
    if not isinstance(existing, list):
        raise ValueError("Existing file is not a JSON list")

    def identity(entry: Any) -> tuple:
        if isinstance(entry, Mapping) and unique_by:
            return tuple(entry.get(k) for k in unique_by)
        return (json.dumps(entry, sort_keys=True),)

    seen = {identity(e) for e in existing}
    merged = list(existing)
    for item in items:
        key = identity(item)
        if key not in seen:
            merged.append(dict(item))
            seen.add(key)
    return _dump_json(merged)


def block_markers(marker: str, comment: str = "#") -> tuple[str, str]:
    return f"{comment} >>> {marker} >>>", f"{comment} <<< {marker} <<<"


def managed_block(
    current: str | None,
    body: str,
    marker: str,
    comment: str = "#",
    remove_patterns: Iterable[str] = (),
) -> str:
    """Replace (or append) a marker-delimited block.

    Lines outside the block matching any of ``remove_patterns`` are
    dropped, so settings the block now owns are not defined twice.
    """
    begin, end = block_markers(marker, comment)
    block = [begin, *body.rstrip("\n").splitlines(), end]
    patterns = [re.compile(p) for p in remove_patterns]

    lines = (current or "").splitlines()
    before: list[str] = lines
    after: list[str] = []
    found = False
    if begin in lines:
        start = lines.index(begin)
        # without its end marker only the begin line is ours to replace
        stop = lines.index(end, start) if end in lines[start:] else start
        before, after = lines[:start], lines[stop + 1:]
        found = True

    def keep(line: str) -> bool:
        return not any(p.search(line) for p in patterns)

    before = [ln for ln in before if keep(ln)]
    after = [ln for ln in after if keep(ln)]

    if not found and before and before[-1].strip():
        before.append("")

    return "\n".join([*before, *block, *after]) + "\n"


def _load_json(text: str | None, default: Any) -> Any:
    if text is None or not text.strip():
        return default
    return json.loads(text)


def _dump_json(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False) + "\n"
