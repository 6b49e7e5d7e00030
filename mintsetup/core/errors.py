"""
Error taxonomy — every failure the engine knows how to classify.

    ValidationError          pre-run, blocks planning entirely
    ├── DuplicateIdError
    ├── DanglingDependencyError
    ├── CycleError
    └── UnknownAdapterError
    ConfigError              unreadable or malformed configuration document
    UnsupportedEnvironment   adapter-level: becomes a Skipped outcome
    └── CommandNotFound
    TransientFailure         network/download: retried, then Failed
    CommandTimeout           a backend command exceeded its timeout: Failed
    FatalFailure             a fatal resource failed and the run halted

Adapters raise only these classes (or return a failed Outcome). Raw
backend exceptions never reach the executor.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mintsetup.core.engine.report import RunReport


class MintSetupError(Exception):
    """Base class for all mintsetup errors."""


# ── Validation (pre-run) ────────────────────────────────────────────


class ValidationError(MintSetupError):
    """The resource set cannot be planned."""


class DuplicateIdError(ValidationError):
    """Two resources share an id."""

    def __init__(self, resource_id: str):
        super().__init__(f"Duplicate resource id: '{resource_id}'")
        self.resource_id = resource_id


class DanglingDependencyError(ValidationError):
    """A resource depends on an id that is not declared."""

    def __init__(self, resource_id: str, missing: str):
        super().__init__(f"Resource '{resource_id}' depends on unknown resource '{missing}'")
        self.resource_id = resource_id
        self.missing = missing


class CycleError(ValidationError):
    """``depends_on`` edges form a cycle."""

    def __init__(self, cycle: list[str]):
        path = " -> ".join(cycle)
        super().__init__(f"Dependency cycle detected: {path}")
        self.cycle = cycle


class UnknownAdapterError(ValidationError):
    """No adapter is registered for a resource kind."""

    def __init__(self, resource_id: str, kind: str):
        super().__init__(f"No adapter registered for kind '{kind}' (resource '{resource_id}')")
        self.resource_id = resource_id
        self.kind = kind


class ConfigError(MintSetupError):
    """Raised when the configuration document is missing or invalid."""


# ── Adapter-level classification ────────────────────────────────────


class UnsupportedEnvironment(MintSetupError):
    """The target system cannot host this resource (schema, binary, profile missing)."""


class CommandNotFound(UnsupportedEnvironment):
    """The backend binary is not installed."""

    def __init__(self, binary: str):
        super().__init__(f"Command not found: {binary}")
        self.binary = binary


class TransientFailure(MintSetupError):
    """A failure worth retrying (network, download)."""


class CommandTimeout(MintSetupError):
    """A backend command exceeded its timeout."""

    def __init__(self, command: str, timeout: float):
        super().__init__(f"Command timed out after {timeout:g}s: {command}")
        self.command = command
        self.timeout = timeout


class FatalFailure(MintSetupError):
    """A fatal resource failed; the run halted."""

    def __init__(self, report: RunReport):
        ids = ", ".join(o.resource_id for o in report.fatal_failures)
        super().__init__(f"Run halted by fatal failure: {ids}")
        self.report = report
