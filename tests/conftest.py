"""
Shared test fixtures and fakes.

Nothing here touches the real system: commands go to ``FakeRunner``,
preferences to ``MemoryStore``, downloads to ``FakeDownloader``.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest

from mintsetup.adapters.base import ExecutionContext
from mintsetup.adapters.registry import AdapterRegistry
from mintsetup.adapters.shell.command import CmdResult, CommandRunner
from mintsetup.core.models.resource import Resource
from mintsetup.core.reliability.retry import RetryPolicy

# ── Command runner ───────────────────────────────────────────────────


@dataclass
class Call:
    argv: list[str]
    privileged: bool = False
    env: dict[str, str] | None = None
    input_text: str | None = None
    cwd: str | None = None


@dataclass
class Rule:
    prefix: list[str]
    returncode: int = 0
    stdout: str = ""
    stderr: str = ""
    raises: Exception | None = None
    effect: Callable[[Call], None] | None = None
    respond: Callable[[Call], CmdResult] | None = None


class FakeRunner(CommandRunner):
    """Records commands and answers them from prefix rules.

    The most recently added matching rule wins; unmatched commands
    succeed with no output.
    """

    def __init__(self, binaries: tuple[str, ...] = ("apt-get", "dpkg-query", "flatpak", "gsettings", "git", "bash")):
        super().__init__(use_sudo=False)
        self.binaries = set(binaries)
        self.calls: list[Call] = []
        self._rules: list[Rule] = []

    def on(self, *prefix: str, **kwargs: Any) -> FakeRunner:
        self._rules.append(Rule(prefix=list(prefix), **kwargs))
        return self

    def which(self, binary: str) -> str | None:
        return f"/usr/bin/{binary}" if binary in self.binaries else None

    def authenticate(self) -> bool:
        return True

    def run(self, argv, *, privileged=False, timeout=None, env=None, input_text=None, cwd=None) -> CmdResult:
        call = Call(list(argv), privileged, dict(env) if env else None, input_text, cwd)
        self.calls.append(call)
        for rule in reversed(self._rules):
            if call.argv[: len(rule.prefix)] == rule.prefix:
                if rule.effect is not None:
                    rule.effect(call)
                if rule.raises is not None:
                    raise rule.raises
                if rule.respond is not None:
                    return rule.respond(call)
                return CmdResult(call.argv, rule.returncode, rule.stdout, rule.stderr)
        return CmdResult(call.argv, 0, "", "")

    @property
    def commands(self) -> list[list[str]]:
        return [c.argv for c in self.calls]

    def ran(self, *prefix: str) -> bool:
        return any(argv[: len(prefix)] == list(prefix) for argv in self.commands)

    def find(self, *prefix: str) -> Call:
        for call in self.calls:
            if call.argv[: len(prefix)] == list(prefix):
                return call
        raise AssertionError(f"command not run: {' '.join(prefix)}")


# ── Preference store ─────────────────────────────────────────────────


class MemoryStore:
    """In-memory PreferenceStore keyed by ``(schema, key)``."""

    def __init__(self, values: dict[tuple[str, str], Any] | None = None, readonly: tuple = ()):
        self.values: dict[tuple[str, str], Any] = dict(values or {})
        self.readonly = set(readonly)
        self.writes: list[tuple[str, str, Any]] = []

    def has_schema(self, schema: str) -> bool:
        return any(s == schema for s, _ in self.values)

    def has_key(self, schema: str, key: str) -> bool:
        return (schema, key) in self.values

    def get(self, schema: str, key: str) -> Any:
        return self.values[(schema, key)]

    def set(self, schema: str, key: str, value: Any) -> None:
        self.values[(schema, key)] = value
        self.writes.append((schema, key, value))

    def writable(self, schema: str, key: str) -> bool:
        return (schema, key) not in self.readonly


# ── Downloader ───────────────────────────────────────────────────────


@dataclass
class FakeDownloader:
    payloads: dict[str, bytes] = field(default_factory=dict)
    error: Exception | None = None
    fetched: list[tuple[str, Path]] = field(default_factory=list)

    def fetch(self, url: str, dest: Path, checksum: str | None = None) -> Path:
        self.fetched.append((url, dest))
        if self.error is not None:
            raise self.error
        dest.write_bytes(self.payloads.get(url, b"#!/bin/sh\nexit 0\n"))
        return dest


# ── Fixtures ─────────────────────────────────────────────────────────


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def downloader() -> FakeDownloader:
    return FakeDownloader()


@pytest.fixture
def make_context(tmp_path: Path) -> Callable[..., ExecutionContext]:
    """Build an ExecutionContext; ``HOME`` points into tmp_path."""

    def _make(resource: Resource, **kwargs: Any) -> ExecutionContext:
        variables = {"HOME": str(tmp_path / "home"), **kwargs.pop("variables", {})}
        return ExecutionContext(resource=resource, variables=variables, **kwargs)

    return _make


@pytest.fixture
def mock_registry() -> AdapterRegistry:
    """Registry in mock mode: one MockAdapter per kind."""
    return AdapterRegistry(mock_mode=True)


@pytest.fixture
def no_wait() -> RetryPolicy:
    """Retry policy that never sleeps."""
    return RetryPolicy(sleep=lambda _delay: None)
