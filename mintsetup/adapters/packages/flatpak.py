"""
Flatpak adapter — applications from Flathub (or another remote).

An app may be published under several ids over time; any of them
installed counts as present, and install tries them in order.
"""

from __future__ import annotations

import logging

from mintsetup.adapters.base import Adapter, ExecutionContext
from mintsetup.adapters.shell.command import CmdResult, CommandRunner
from mintsetup.core.models.outcome import Outcome
from mintsetup.core.models.resource import ResourceKind
from mintsetup.core.models.specs import FlatpakSpec

logger = logging.getLogger(__name__)

_NETWORK_MARKERS = (
    "unable to connect",
    "could not resolve",
    "couldn't resolve",
    "timeout was reached",
    "error fetching",
    "server returned status",
)


def _already_installed(result: CmdResult) -> bool:
    return "already installed" in result.output.lower()


class FlatpakAdapter(Adapter):
    """``flatpak`` CLI adapter."""

    def __init__(self, runner: CommandRunner):
        self._runner = runner

    @property
    def name(self) -> str:
        return "flatpak"

    @property
    def kind(self) -> ResourceKind:
        return ResourceKind.FLATPAK

    def is_available(self) -> bool:
        return self._runner.available("flatpak")

    def probe(self, context: ExecutionContext) -> bool:
        spec: FlatpakSpec = context.spec
        installed = self._installed(spec, context.timeout)
        if spec.state == "absent":
            return not installed
        return bool(installed)

    def _installed(self, spec: FlatpakSpec, timeout: float | None) -> list[str]:
        found = []
        for app_id in spec.candidates:
            result = self._runner.run(["flatpak", "info", f"--{spec.scope}", app_id], timeout=timeout)
            if result.ok:
                found.append(app_id)
        return found

    def apply(self, context: ExecutionContext) -> Outcome:
        spec: FlatpakSpec = context.spec
        if spec.state == "absent":
            return self._uninstall(context, spec)

        if spec.remote not in self._remotes(spec, context.timeout):
            result = self._flatpak(
                spec,
                ["remote-add", "--if-not-exists", spec.remote, spec.remote_url],
                context.timeout,
            )
            if not result.ok:
                return self._failed(context, f"remote-add {spec.remote}", result)
            logger.info("Added flatpak remote %s", spec.remote)

        last: CmdResult | None = None
        for app_id in spec.candidates:
            result = self._flatpak(
                spec,
                ["install", "-y", "--noninteractive", spec.remote, app_id],
                context.timeout,
            )
            if _already_installed(result):
                return self.skipped(context, f"{app_id} already installed")
            if result.ok:
                return self.applied(context, reason=f"installed {app_id}", metadata={"app_id": app_id})
            logger.warning("flatpak install %s failed (%s)", app_id, result.summary())
            last = result

        assert last is not None
        return self._failed(context, f"install {spec.app_id}", last)

    def _uninstall(self, context: ExecutionContext, spec: FlatpakSpec) -> Outcome:
        removed = []
        for app_id in self._installed(spec, context.timeout):
            result = self._flatpak(spec, ["uninstall", "-y", "--noninteractive", app_id], context.timeout)
            if not result.ok:
                return self._failed(context, f"uninstall {app_id}", result)
            removed.append(app_id)
        return self.applied(context, reason=f"removed {', '.join(removed) or spec.app_id}")

    def _remotes(self, spec: FlatpakSpec, timeout: float | None) -> set[str]:
        result = self._runner.run(
            ["flatpak", "remotes", f"--{spec.scope}", "--columns=name"],
            timeout=timeout,
        )
        return {line.strip() for line in result.stdout.splitlines() if line.strip()}

    def _flatpak(self, spec: FlatpakSpec, args: list[str], timeout: float | None) -> CmdResult:
        # system-wide installations need root
        return self._runner.run(
            ["flatpak", args[0], f"--{spec.scope}", *args[1:]],
            privileged=spec.scope == "system",
            timeout=timeout,
        )

    def _failed(self, context: ExecutionContext, what: str, result: CmdResult) -> Outcome:
        output = result.output.lower()
        return self.failed(
            context,
            f"flatpak {what} failed ({result.summary()})",
            transient=any(marker in output for marker in _NETWORK_MARKERS),
            metadata={"command": result.argv, "return_code": result.returncode},
        )
