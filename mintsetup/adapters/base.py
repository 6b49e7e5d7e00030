"""
Adapter base — the protocol contract between engine and backends.

This defines the abstract interface that every adapter must implement.
The engine only talks to adapters through this protocol, never
directly to apt, flatpak, gsettings or the filesystem.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Any

from pydantic import BaseModel, Field

from mintsetup.core.models.outcome import Outcome
from mintsetup.core.models.resource import AdvisoryFlag, Resource, ResourceKind


class ExecutionContext(BaseModel):
    """Everything an adapter needs to probe or apply a resource.

    This is the adapter's view of the world: the resource, the document
    variables for templates and paths, the per-command timeout and the
    host facts.
    """

    resource: Resource
    variables: dict[str, str] = Field(default_factory=dict)
    timeout: float | None = None
    dry_run: bool = False
    facts: dict[str, str] = Field(default_factory=dict)

    @property
    def resource_id(self) -> str:
        return self.resource.id

    @property
    def spec(self) -> Any:
        return self.resource.spec


class Adapter(ABC):
    """Abstract base class for all resource adapters.

    ``probe`` answers "is the desired state already in place?" and
    ``apply`` converges the system towards it, returning an Outcome.

    Adapters classify backend errors instead of leaking them:
        UnsupportedEnvironment   raised; the executor records Skipped
        TransientFailure         raised (or ``transient=True`` outcome); retried
        anything else            a failed Outcome

    To create a new adapter:
        1. Subclass Adapter
        2. Implement name, kind, is_available, probe, apply
        3. Register it in the AdapterRegistry
    """

    # Safe to apply alongside other steps of the same independent set.
    concurrency_safe: bool = False

    @property
    @abstractmethod
    def name(self) -> str:
        """The adapter identifier (e.g., 'apt', 'flatpak', 'gsettings')."""

    @property
    @abstractmethod
    def kind(self) -> ResourceKind:
        """The resource kind this adapter applies."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this adapter's underlying tool is available.

        Should be fast and never raise.
        """

    @abstractmethod
    def probe(self, context: ExecutionContext) -> bool:
        """Return True when the resource is already satisfied.

        Must have no side effects on the system.
        """

    @abstractmethod
    def apply(self, context: ExecutionContext) -> Outcome:
        """Converge the resource and return its outcome."""

    # ── Outcome helpers ─────────────────────────────────────────

    def applied(
        self,
        context: ExecutionContext,
        reason: str = "",
        flags: Iterable[AdvisoryFlag] = (),
        **kwargs: Any,
    ) -> Outcome:
        """Applied outcome carrying the resource's declared flags plus ``flags``."""
        raised = list(dict.fromkeys([*context.resource.flags, *flags]))
        return Outcome.success(
            resource_id=context.resource_id,
            kind=str(self.kind),
            reason=reason,
            flags=raised,
            metadata={"adapter": self.name, **kwargs.pop("metadata", {})},
            **kwargs,
        )

    def skipped(self, context: ExecutionContext, reason: str, **kwargs: Any) -> Outcome:
        return Outcome.skip(
            resource_id=context.resource_id,
            kind=str(self.kind),
            reason=reason,
            metadata={"adapter": self.name, **kwargs.pop("metadata", {})},
            **kwargs,
        )

    def failed(
        self,
        context: ExecutionContext,
        error: str,
        transient: bool = False,
        **kwargs: Any,
    ) -> Outcome:
        return Outcome.failure(
            resource_id=context.resource_id,
            kind=str(self.kind),
            error=error,
            transient=transient,
            metadata={"adapter": self.name, **kwargs.pop("metadata", {})},
            **kwargs,
        )

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r} kind={self.kind!s}>"
