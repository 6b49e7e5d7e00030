"""
Mock adapter — universal test double for every resource kind.

Used in mock mode (``mintsetup apply --mock``) to walk a whole plan
without touching the system, and by the tests. Configurable per
resource id: already satisfied, failing, or a custom outcome.
"""

from __future__ import annotations

from mintsetup.adapters.base import Adapter, ExecutionContext
from mintsetup.core.models.outcome import Outcome
from mintsetup.core.models.resource import ResourceKind


class MockAdapter(Adapter):
    """Universal mock adapter.

    By default nothing is satisfied and every apply succeeds. Once a
    resource has been applied it probes as satisfied, so a second run
    through the same mock is all Skipped.
    """

    def __init__(
        self,
        kind: ResourceKind | str = ResourceKind.PACKAGE,
        adapter_name: str = "mock",
        available: bool = True,
        concurrency_safe: bool = True,
    ):
        self._kind = ResourceKind(kind)
        self._name = adapter_name
        self._available = available
        self.concurrency_safe = concurrency_safe
        self._satisfied: set[str] = set()
        self._responses: dict[str, Outcome] = {}
        self._errors: dict[str, Exception] = {}
        self._call_log: list[ExecutionContext] = []
        self._probe_log: list[str] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def kind(self) -> ResourceKind:
        return self._kind

    @property
    def call_log(self) -> list[ExecutionContext]:
        """All execution contexts ``apply`` has received."""
        return self._call_log

    @property
    def call_count(self) -> int:
        """Number of times apply has been called."""
        return len(self._call_log)

    @property
    def applied_ids(self) -> list[str]:
        return [c.resource_id for c in self._call_log]

    @property
    def probe_log(self) -> list[str]:
        return self._probe_log

    def is_available(self) -> bool:
        return self._available

    def set_satisfied(self, *resource_ids: str) -> None:
        """Make these resources probe as already satisfied."""
        self._satisfied.update(resource_ids)

    def set_response(self, resource_id: str, outcome: Outcome) -> None:
        """Set a custom outcome for a specific resource id."""
        self._responses[resource_id] = outcome

    def set_failure(self, resource_id: str, error: str = "Mock failure", transient: bool = False) -> None:
        """Configure a specific resource to fail."""
        self._responses[resource_id] = Outcome.failure(
            resource_id=resource_id,
            kind=str(self._kind),
            error=error,
            transient=transient,
        )

    def set_error(self, resource_id: str, error: Exception) -> None:
        """Configure ``apply`` to raise ``error`` for a resource."""
        self._errors[resource_id] = error

    def probe(self, context: ExecutionContext) -> bool:
        self._probe_log.append(context.resource_id)
        return context.resource_id in self._satisfied

    def apply(self, context: ExecutionContext) -> Outcome:
        self._call_log.append(context)
        rid = context.resource_id

        if rid in self._errors:
            raise self._errors[rid]
        if rid in self._responses:
            return self._responses[rid]

        self._satisfied.add(rid)
        return self.applied(context, reason="[mock] applied", metadata={"mock": True})

    def reset(self) -> None:
        """Clear call logs, satisfied set and custom responses."""
        self._call_log.clear()
        self._probe_log.clear()
        self._satisfied.clear()
        self._responses.clear()
        self._errors.clear()
