"""
Planner — validated resources → ordered plan steps.

Validation happens first and fails fast: no adapter is touched when the
resource graph is invalid. The order is Kahn's topological sort with a
declaration-order tie-break, so the same document always produces the
same plan.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from mintsetup.adapters.base import Adapter, ExecutionContext
from mintsetup.adapters.registry import AdapterRegistry
from mintsetup.core.domain.dag import ancestors, dependency_levels
from mintsetup.core.models.resource import Resource, ResourceKind, validate_resources

logger = logging.getLogger(__name__)


@dataclass
class PlanStep:
    """A resource in dependency order, bound to its adapter."""

    index: int
    resource: Resource
    adapter: Adapter
    level: int = 0

    @property
    def id(self) -> str:
        return self.resource.id

    @property
    def kind(self) -> ResourceKind:
        return self.resource.kind

    @property
    def concurrency_safe(self) -> bool:
        return self.adapter.concurrency_safe

    def already_satisfied(self, context: ExecutionContext) -> bool:
        """Ask the adapter whether the desired state already holds."""
        return self.adapter.probe(context)

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "id": self.id,
            "kind": str(self.kind),
            "adapter": self.adapter.name,
            "level": self.level,
            "depends_on": list(self.resource.depends_on),
            "failure_policy": str(self.resource.failure_policy),
            "description": self.resource.description,
        }


@dataclass
class Plan:
    """Ordered plan steps plus the dependency graph they came from."""

    steps: list[PlanStep] = field(default_factory=list)
    deps: dict[str, list[str]] = field(default_factory=dict)

    @property
    def ids(self) -> list[str]:
        return [s.id for s in self.steps]

    @property
    def total_steps(self) -> int:
        return len(self.steps)

    def step(self, resource_id: str) -> PlanStep:
        for s in self.steps:
            if s.id == resource_id:
                return s
        raise KeyError(resource_id)

    def levels(self) -> list[list[PlanStep]]:
        """Independent sets: steps grouped by dependency depth, plan order within."""
        grouped: dict[int, list[PlanStep]] = {}
        for s in self.steps:
            grouped.setdefault(s.level, []).append(s)
        return [grouped[level] for level in sorted(grouped)]

    def ancestors(self, resource_id: str) -> set[str]:
        return ancestors(resource_id, self.deps)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total_steps,
            "steps": [s.to_dict() for s in self.steps],
            "levels": [[s.id for s in level] for level in self.levels()],
        }


def build_plan(resources: Sequence[Resource], registry: AdapterRegistry) -> Plan:
    """Validate ``resources`` and order them into a Plan.

    Raises:
        DuplicateIdError, DanglingDependencyError, CycleError:
            the resource graph is invalid.
        UnknownAdapterError: no adapter is registered for a kind.
    """
    order = validate_resources(resources)
    by_id = {r.id: r for r in resources}
    deps = {r.id: list(r.depends_on) for r in resources}

    # resolve every adapter before returning anything
    adapters = {rid: registry.resolve(by_id[rid]) for rid in order}
    levels = dependency_levels(order, deps)

    steps = [
        PlanStep(index=i, resource=by_id[rid], adapter=adapters[rid], level=levels[rid])
        for i, rid in enumerate(order)
    ]
    logger.debug("Planned %d steps in %d levels", len(steps), len(set(levels.values())))
    return Plan(steps=steps, deps=deps)
