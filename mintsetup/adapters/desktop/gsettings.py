"""
Preference store — the seam between preference resources and gsettings.

``PreferenceStore`` is what the preference and extension adapters
need; ``GSettingsStore`` implements it on top of the ``gsettings`` CLI.
Values cross the seam as Python values, not GVariant text.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

from mintsetup.adapters.shell.command import CommandRunner
from mintsetup.core.domain.values import format_gvariant, parse_gvariant
from mintsetup.core.errors import MintSetupError

logger = logging.getLogger(__name__)


class PreferenceStore(Protocol):
    def has_schema(self, schema: str) -> bool: ...

    def has_key(self, schema: str, key: str) -> bool: ...

    def get(self, schema: str, key: str) -> Any: ...

    def set(self, schema: str, key: str, value: Any) -> None: ...

    def writable(self, schema: str, key: str) -> bool: ...


class GSettingsStore:
    """``gsettings`` CLI store.

    Schema and key listings are cached for the lifetime of the store
    (one run); they do not change while we write values.

    Raises:
        CommandNotFound: gsettings is not installed (from the runner).
    """

    def __init__(self, runner: CommandRunner, timeout: float = 30.0):
        self._runner = runner
        self._timeout = timeout
        self._schemas: set[str] | None = None
        self._keys: dict[str, set[str]] = {}

    def is_available(self) -> bool:
        return self._runner.available("gsettings")

    def list_schemas(self) -> set[str]:
        if self._schemas is None:
            result = self._gsettings("list-schemas")
            self._schemas = set(result.stdout.split()) if result.ok else set()
            logger.debug("gsettings: %d schemas", len(self._schemas))
        return self._schemas

    def list_keys(self, schema: str) -> set[str]:
        if schema not in self._keys:
            result = self._gsettings("list-keys", schema)
            self._keys[schema] = set(result.stdout.split()) if result.ok else set()
        return self._keys[schema]

    def has_schema(self, schema: str) -> bool:
        return schema in self.list_schemas()

    def has_key(self, schema: str, key: str) -> bool:
        return self.has_schema(schema) and key in self.list_keys(schema)

    def get(self, schema: str, key: str) -> Any:
        result = self._gsettings("get", schema, key)
        if not result.ok:
            raise MintSetupError(f"gsettings get {schema} {key} failed ({result.summary()})")
        return parse_gvariant(result.stdout)

    def set(self, schema: str, key: str, value: Any) -> None:
        text = format_gvariant(value)
        result = self._gsettings("set", schema, key, text)
        if not result.ok:
            raise MintSetupError(f"gsettings set {schema} {key} {text} failed ({result.summary()})")

    def writable(self, schema: str, key: str) -> bool:
        result = self._gsettings("writable", schema, key)
        return result.ok and result.stdout.strip() == "true"

    def _gsettings(self, *args: str):
        return self._runner.run(["gsettings", *args], timeout=self._timeout)
