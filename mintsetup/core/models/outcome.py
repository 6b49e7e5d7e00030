"""
Outcome model — the terminal result of attempting one resource.

Adapters and the executor produce Outcomes; nothing mutates them once
recorded. The RunReport is an ordered list of these.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from mintsetup.core.models.resource import AdvisoryFlag


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class OutcomeStatus(StrEnum):
    APPLIED = "applied"
    SKIPPED = "skipped"
    FAILED = "failed"


class Outcome(BaseModel):
    """Result of one resource.

    ``reason`` explains a skip (already satisfied, excluded, dependency
    failed, unsupported environment); ``error`` explains a failure.
    ``transient`` marks failures worth retrying.
    """

    model_config = ConfigDict(frozen=True)

    resource_id: str
    kind: str = ""
    status: OutcomeStatus

    reason: str = ""
    error: str | None = None
    transient: bool = False
    attempts: int = 1

    started_at: str = Field(default_factory=_now_iso)
    ended_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    flags: list[AdvisoryFlag] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """Whether the resource is in its desired state (applied or skipped)."""
        return self.status != OutcomeStatus.FAILED

    @property
    def applied(self) -> bool:
        return self.status == OutcomeStatus.APPLIED

    @property
    def skipped(self) -> bool:
        return self.status == OutcomeStatus.SKIPPED

    @property
    def failed(self) -> bool:
        return self.status == OutcomeStatus.FAILED

    @property
    def message(self) -> str:
        return self.error or self.reason

    @classmethod
    def success(
        cls,
        resource_id: str,
        kind: str = "",
        reason: str = "",
        **kwargs: Any,
    ) -> Outcome:
        """Create an applied outcome."""
        return cls(
            resource_id=resource_id,
            kind=kind,
            status=OutcomeStatus.APPLIED,
            reason=reason,
            **kwargs,
        )

    @classmethod
    def skip(
        cls,
        resource_id: str,
        kind: str = "",
        reason: str = "",
        **kwargs: Any,
    ) -> Outcome:
        """Create a skipped outcome."""
        return cls(
            resource_id=resource_id,
            kind=kind,
            status=OutcomeStatus.SKIPPED,
            reason=reason,
            **kwargs,
        )

    @classmethod
    def failure(
        cls,
        resource_id: str,
        error: str,
        kind: str = "",
        transient: bool = False,
        **kwargs: Any,
    ) -> Outcome:
        """Create a failed outcome."""
        return cls(
            resource_id=resource_id,
            kind=kind,
            status=OutcomeStatus.FAILED,
            error=error,
            transient=transient,
            **kwargs,
        )

    def with_timing(self, started_at: str, duration_ms: int, attempts: int = 1) -> Outcome:
        """Copy with the executor's timestamps and attempt count."""
        return self.model_copy(
            update={
                "started_at": started_at,
                "ended_at": _now_iso(),
                "duration_ms": duration_ms,
                "attempts": attempts,
            }
        )
