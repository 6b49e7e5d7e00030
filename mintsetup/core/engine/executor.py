"""
Engine executor — applies plan steps and collects outcomes.

Per step:
    pending → probing → skipped
                      → applying → applied | failed

Flow:
    excluded / condition / failed dependency? → probe → apply (retry
    transient failures) → outcome → halt on a fatal failure

Sequential by default. With ``workers > 1`` each independent set
(dependency level) runs its concurrency-safe steps in a bounded thread
pool; the others still run one at a time, each after the pooled steps
before it in plan order have finished. Outcomes are reported in plan
order either way.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import UTC, datetime

from mintsetup.adapters.base import ExecutionContext
from mintsetup.core.engine.planner import Plan, PlanStep
from mintsetup.core.engine.report import RunReport
from mintsetup.core.errors import MintSetupError, TransientFailure, UnsupportedEnvironment
from mintsetup.core.models.outcome import Outcome
from mintsetup.core.reliability.retry import RetryPolicy

logger = logging.getLogger(__name__)

_MARKERS = {"applied": "✓", "skipped": "⊘", "failed": "✗"}


@dataclass
class ExecutorOptions:
    """Run-wide knobs for the executor."""

    skip: set[str] = field(default_factory=set)
    facts: dict[str, str] = field(default_factory=dict)
    dry_run: bool = False
    workers: int = 1
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    default_timeout: float | None = None
    variables: dict[str, str] = field(default_factory=dict)


class Executor:
    """Runs one plan once. Not reusable across runs."""

    def __init__(self, plan: Plan, options: ExecutorOptions | None = None):
        self.plan = plan
        self.options = options or ExecutorOptions()
        self._outcomes: dict[str, Outcome] = {}
        # failed, or skipped because something they need failed
        self._blocked: set[str] = set()
        self._halted = False

    def run(self) -> RunReport:
        if self.options.workers > 1:
            self._run_levels()
        else:
            self._run_sequential()
        return self._report()

    # ── Scheduling ──────────────────────────────────────────────

    def _run_sequential(self) -> None:
        for step in self.plan.steps:
            outcome = self.run_step(step)
            self._record(step, outcome)
            if self._halts(step, outcome):
                break

    def _run_levels(self) -> None:
        with ThreadPoolExecutor(max_workers=self.options.workers, thread_name_prefix="mintsetup") as pool:
            for level in self.plan.levels():
                safe = [s for s in level if s.concurrency_safe]
                unsafe = [s for s in level if not s.concurrency_safe]
                futures: dict[str, Future[Outcome]] = {s.id: pool.submit(self.run_step, s) for s in safe}

                for step in unsafe:
                    # pooled steps earlier in plan order must settle first
                    self._collect(safe, futures, before=step.index)
                    if self._halted:
                        break
                    outcome = self.run_step(step)
                    self._record(step, outcome)
                    if self._halts(step, outcome):
                        break

                if self._halted:
                    # started steps finish; queued ones never start
                    for future in futures.values():
                        future.cancel()

                self._collect(safe, futures)

                if self._halted:
                    break

    def _collect(
        self,
        steps: list[PlanStep],
        futures: dict[str, Future[Outcome]],
        before: int | None = None,
    ) -> None:
        """Record pooled outcomes not yet recorded.

        With ``before``, waits only for steps earlier in plan order and
        takes whatever else has already finished.
        """
        for step in steps:
            future = futures[step.id]
            if step.id in self._outcomes or future.cancelled():
                continue
            if before is not None and step.index > before and not future.done():
                continue
            outcome = future.result()
            self._record(step, outcome)
            self._halts(step, outcome)

    def _record(self, step: PlanStep, outcome: Outcome) -> None:
        self._outcomes[step.id] = outcome
        if outcome.failed or outcome.metadata.get("blocked_by"):
            self._blocked.add(step.id)

        marker = _MARKERS.get(str(outcome.status), "?")
        detail = f" ({outcome.message})" if outcome.message else ""
        log = logger.warning if outcome.failed else logger.info
        log("%s %s [%s] → %s%s", marker, step.id, step.kind, outcome.status, detail)

    def _halts(self, step: PlanStep, outcome: Outcome) -> bool:
        if outcome.failed and step.resource.fatal:
            logger.error("Fatal failure in %s; halting run", step.id)
            self._halted = True
        return self._halted

    def _report(self) -> RunReport:
        report = RunReport(halted=self._halted, dry_run=self.options.dry_run)
        for step in self.plan.steps:
            outcome = self._outcomes.get(step.id)
            if outcome is not None:
                report.add(outcome, fatal=step.resource.fatal)
        return report.finish()

    # ── One step ────────────────────────────────────────────────

    def run_step(self, step: PlanStep) -> Outcome:
        """Run the state machine for one step and return its outcome."""
        started_at = datetime.now(UTC).isoformat()
        start = time.monotonic()
        resource = step.resource
        opts = self.options

        outcome: Outcome | None = None
        attempts = 0

        tag = resource.excluded_by(opts.skip)
        if tag is not None:
            outcome = self._skip(step, f"excluded: {tag}")

        if outcome is None:
            unmet = resource.unmet_condition(opts.facts)
            if unmet is not None:
                outcome = self._skip(step, f"condition not met: {unmet}")

        if outcome is None:
            blocker = self._blocker(resource.depends_on)
            if blocker is not None:
                outcome = self._skip(step, f"dependency '{blocker}' failed", blocked_by=blocker)

        if outcome is None:
            context = ExecutionContext(
                resource=resource,
                variables=opts.variables,
                timeout=resource.timeout if resource.timeout is not None else opts.default_timeout,
                dry_run=opts.dry_run,
                facts=opts.facts,
            )
            while True:
                attempts += 1
                outcome = self._attempt(step, context)
                if not (outcome.failed and outcome.transient and attempts <= opts.retry.max_retries):
                    break
                logger.warning("%s: transient failure (%s)", step.id, outcome.error)
                opts.retry.wait(attempts, step.id)

        elapsed_ms = int((time.monotonic() - start) * 1000)
        return outcome.with_timing(started_at, elapsed_ms, attempts=max(attempts, 1))

    def _blocker(self, depends_on: Iterable[str]) -> str | None:
        for dep in depends_on:
            if dep in self._blocked:
                return dep
        return None

    def _attempt(self, step: PlanStep, context: ExecutionContext) -> Outcome:
        """One probe + apply cycle, with adapter errors classified."""
        try:
            logger.debug("%s: pending → probing", step.id)
            if step.already_satisfied(context):
                logger.debug("%s: probing → skipped", step.id)
                return self._skip(step, "already satisfied")
            if context.dry_run:
                return self._skip(step, "dry-run: would apply")

            logger.debug("%s: probing → applying", step.id)
            outcome = step.adapter.apply(context)
        except UnsupportedEnvironment as e:
            return self._skip(step, f"unsupported: {e}")
        except TransientFailure as e:
            return self._fail(step, str(e), transient=True)
        except MintSetupError as e:
            return self._fail(step, str(e))
        except Exception as e:
            # adapter bug: still recorded, never propagated
            logger.error("Adapter %s raised during %s: %s", step.adapter.name, step.id, e)
            return self._fail(step, f"Unexpected error: {e}")

        if outcome.resource_id != step.id:
            outcome = outcome.model_copy(update={"resource_id": step.id})
        logger.debug("%s: applying → %s", step.id, outcome.status)
        return outcome

    @staticmethod
    def _skip(step: PlanStep, reason: str, blocked_by: str | None = None) -> Outcome:
        metadata = {"blocked_by": blocked_by} if blocked_by else {}
        return Outcome.skip(step.id, kind=str(step.kind), reason=reason, metadata=metadata)

    @staticmethod
    def _fail(step: PlanStep, error: str, transient: bool = False) -> Outcome:
        return Outcome.failure(step.id, error=error, kind=str(step.kind), transient=transient)


def execute_plan(plan: Plan, options: ExecutorOptions | None = None) -> RunReport:
    """Execute all steps of ``plan`` and return the report."""
    return Executor(plan, options).run()
