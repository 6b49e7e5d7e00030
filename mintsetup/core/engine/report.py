"""
Run report — ordered outcomes plus the summary shown to the user.

The report is the single source of truth for a run: every resource
that was reached has exactly one outcome in it, in plan order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from mintsetup.core.errors import FatalFailure
from mintsetup.core.models.outcome import Outcome
from mintsetup.core.models.resource import AdvisoryFlag


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


@dataclass
class RunReport:
    """Result of executing a plan."""

    outcomes: list[Outcome] = field(default_factory=list)
    fatal_ids: list[str] = field(default_factory=list)
    halted: bool = False
    dry_run: bool = False
    started_at: str = field(default_factory=_now_iso)
    ended_at: str = ""

    def add(self, outcome: Outcome, fatal: bool = False) -> None:
        """Record an outcome; ``fatal`` marks a failure under the fatal policy."""
        self.outcomes.append(outcome)
        if fatal and outcome.failed:
            self.fatal_ids.append(outcome.resource_id)

    def finish(self) -> RunReport:
        self.ended_at = _now_iso()
        return self

    def outcome(self, resource_id: str) -> Outcome | None:
        for o in self.outcomes:
            if o.resource_id == resource_id:
                return o
        return None

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def applied(self) -> int:
        return sum(1 for o in self.outcomes if o.applied)

    @property
    def skipped(self) -> int:
        return sum(1 for o in self.outcomes if o.skipped)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if o.failed)

    @property
    def fatal_failures(self) -> list[Outcome]:
        return [o for o in self.outcomes if o.resource_id in self.fatal_ids]

    @property
    def flags(self) -> set[AdvisoryFlag]:
        """Advisory flags raised by any applied outcome (accumulated)."""
        raised: set[AdvisoryFlag] = set()
        for o in self.outcomes:
            raised.update(o.flags)
        return raised

    @property
    def reboot_required(self) -> bool:
        return AdvisoryFlag.REBOOT_REQUIRED in self.flags

    @property
    def exit_code(self) -> int:
        return 1 if self.fatal_failures else 0

    @property
    def status(self) -> str:
        if self.halted:
            return "halted"
        if self.failed == 0:
            return "ok"
        return "partial"

    def raise_on_fatal(self) -> RunReport:
        """Raise ``FatalFailure`` carrying this report if a fatal resource failed."""
        if self.fatal_failures:
            raise FatalFailure(self)
        return self

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "halted": self.halted,
            "dry_run": self.dry_run,
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "total": self.total,
            "applied": self.applied,
            "skipped": self.skipped,
            "failed": self.failed,
            "fatal_failures": [o.resource_id for o in self.fatal_failures],
            "flags": sorted(str(f) for f in self.flags),
            "exit_code": self.exit_code,
            "outcomes": [o.model_dump(mode="json") for o in self.outcomes],
        }
