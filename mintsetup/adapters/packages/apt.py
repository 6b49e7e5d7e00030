"""
Package adapter — Debian packages through dpkg-query and apt-get.

Probe:
    present / absent   ``dpkg-query -W`` status of every name
    latest             ``apt-get -s`` simulation reports nothing to do

Apply:
    add PPA / third-party source if missing → refresh the index when
    asked (or when a source was added) → install / remove / upgrade.

All apt-get calls run with ``DEBIAN_FRONTEND=noninteractive``.
"""

from __future__ import annotations

import logging
import tempfile
from pathlib import Path

from mintsetup.adapters.base import Adapter, ExecutionContext
from mintsetup.adapters.net.download import Downloader
from mintsetup.adapters.shell.command import CmdResult, CommandRunner
from mintsetup.core.models.outcome import Outcome
from mintsetup.core.models.resource import AdvisoryFlag, ResourceKind
from mintsetup.core.models.specs import AptSource, PackageSpec

logger = logging.getLogger(__name__)

APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}

# dpkg states that mean "something of this package is on disk"
_NOT_INSTALLED = {"not-installed", "config-files"}

# apt/dpkg lock contention is worth a retry
_LOCK_MARKERS = ("could not get lock", "unable to acquire the dpkg frontend lock", "is another process using it")


def parse_dpkg_status(output: str) -> dict[str, str]:
    """Map package → dpkg state from ``${Package} ${Status}`` lines.

    ``Status`` is ``want flag state`` (``install ok installed``).
    """
    states: dict[str, str] = {}
    for line in output.splitlines():
        parts = line.split()
        if len(parts) >= 4:
            states[parts[0]] = parts[3]
    return states


def simulation_changes(output: str) -> list[str]:
    """Package names ``apt-get -s`` would install or upgrade."""
    return [line.split()[1] for line in output.splitlines() if line.startswith("Inst ")]


def _is_glob(name: str) -> bool:
    return any(c in name for c in "*?[")


class PackageAdapter(Adapter):
    """apt/dpkg package adapter.

    Args:
        runner: Command runner used for every backend call.
        downloader: Fetches signing keys for third-party sources.
        sources_dir: apt sources directory (PPA detection).
        reboot_marker: File Debian creates when a reboot is required.
    """

    def __init__(
        self,
        runner: CommandRunner,
        downloader: Downloader | None = None,
        sources_dir: Path = Path("/etc/apt/sources.list.d"),
        reboot_marker: Path = Path("/var/run/reboot-required"),
    ):
        self._runner = runner
        self._downloader = downloader or Downloader()
        self._sources_dir = sources_dir
        self._reboot_marker = reboot_marker

    @property
    def name(self) -> str:
        return "apt"

    @property
    def kind(self) -> ResourceKind:
        return ResourceKind.PACKAGE

    def is_available(self) -> bool:
        return self._runner.available("apt-get") and self._runner.available("dpkg-query")

    # ── Probe ───────────────────────────────────────────────────

    def probe(self, context: ExecutionContext) -> bool:
        spec: PackageSpec = context.spec
        if spec.state == "latest":
            return not self._pending_changes(spec, context.timeout)

        states = self._installed_states(spec.names, context.timeout)
        if spec.state == "present":
            return all(self._is_installed(name, states) for name in spec.names)

        # absent: with purge, leftover config files still count
        gone = {"not-installed"} if spec.purge else _NOT_INSTALLED
        return all(state in gone for state in states.values())

    def _installed_states(self, names: list[str], timeout: float | None) -> dict[str, str]:
        result = self._runner.run(
            ["dpkg-query", "-W", "-f=${Package} ${Status}\n", *names],
            timeout=timeout,
        )
        # exit 1 only means some names are unknown to dpkg
        return parse_dpkg_status(result.stdout)

    @staticmethod
    def _is_installed(name: str, states: dict[str, str]) -> bool:
        if _is_glob(name):
            return any(state not in _NOT_INSTALLED for state in states.values())
        return states.get(name.split(":")[0], "not-installed") not in _NOT_INSTALLED

    def _pending_changes(self, spec: PackageSpec, timeout: float | None) -> list[str]:
        if spec.names:
            argv = ["apt-get", "-s", "install", *spec.names]
        else:
            argv = ["apt-get", "-s", "dist-upgrade"]
        result = self._runner.run(argv, timeout=timeout, env=APT_ENV)
        if not result.ok:
            # unknown package or broken index: let apply report the real error
            return spec.names or ["<dist-upgrade>"]
        return simulation_changes(result.stdout)

    # ── Apply ───────────────────────────────────────────────────

    def apply(self, context: ExecutionContext) -> Outcome:
        spec: PackageSpec = context.spec
        timeout = context.timeout
        refresh = spec.update_index

        if spec.ppa and not self._ppa_present(spec.ppa):
            result = self._sudo(["add-apt-repository", "-y", spec.ppa], timeout)
            if not result.ok:
                return self._command_failed(context, f"add-apt-repository {spec.ppa}", result)
            refresh = True

        if spec.source and not self._list_path(spec.source).exists():
            failure = self._add_source(context, spec.source)
            if failure is not None:
                return failure
            refresh = True

        if refresh:
            result = self._sudo(["apt-get", "update"], timeout)
            if not result.ok:
                if spec.refresh_fatal:
                    return self._command_failed(context, "apt-get update", result)
                logger.warning("apt-get update failed for %s (%s); continuing", context.resource_id, result.summary())

        for argv in self._commands(spec):
            result = self._sudo(argv, timeout)
            if not result.ok:
                return self._command_failed(context, " ".join(argv[:2]), result)

        flags = [AdvisoryFlag.REBOOT_REQUIRED] if self._reboot_marker.exists() else []
        return self.applied(context, reason=self._describe(spec), flags=flags)

    def _commands(self, spec: PackageSpec) -> list[list[str]]:
        if spec.state == "absent":
            remove = ["apt-get", "remove", "-y"]
            if spec.purge:
                remove.append("--purge")
            return [[*remove, *spec.names], ["apt-get", "autoremove", "-y"]]

        if spec.state == "latest" and not spec.names:
            return [
                ["apt-get", "-o", "Dpkg::Options::=--force-confnew", "dist-upgrade", "-y"],
                ["apt-get", "autoremove", "-y"],
            ]

        install = ["apt-get", "install", "-y"]
        if not spec.recommends:
            install.append("--no-install-recommends")
        return [[*install, *spec.names]]

    @staticmethod
    def _describe(spec: PackageSpec) -> str:
        names = " ".join(spec.names) or "system"
        verb = {"present": "installed", "absent": "removed", "latest": "upgraded"}[spec.state]
        return f"{verb} {names}"

    def _sudo(self, argv: list[str], timeout: float | None) -> CmdResult:
        return self._runner.run(argv, privileged=True, timeout=timeout, env=APT_ENV)

    def _command_failed(self, context: ExecutionContext, what: str, result: CmdResult) -> Outcome:
        stderr = result.stderr.lower()
        transient = any(marker in stderr for marker in _LOCK_MARKERS)
        return self.failed(
            context,
            f"{what} failed ({result.summary()})",
            transient=transient,
            metadata={"command": result.argv, "return_code": result.returncode},
        )

    # ── Sources ─────────────────────────────────────────────────

    def _list_path(self, source: AptSource) -> Path:
        return self._sources_dir / f"{source.name}.list"

    def _ppa_present(self, ppa: str) -> bool:
        """Whether any apt source already points at ``ppa:owner/name``."""
        needle = ppa.removeprefix("ppa:")
        if not self._sources_dir.is_dir():
            return False
        for path in sorted(self._sources_dir.iterdir()):
            if path.suffix not in (".list", ".sources"):
                continue
            try:
                if needle in path.read_text(encoding="utf-8", errors="replace"):
                    return True
            except OSError:
                continue
        return False

    def _add_source(self, context: ExecutionContext, source: AptSource) -> Outcome | None:
        """Install the signing key and the sources.list entry."""
        timeout = context.timeout
        list_path = self._list_path(source)
        if source.key_url:
            with tempfile.TemporaryDirectory(prefix="mintsetup-key-") as tmp:
                key_file = self._downloader.fetch(source.key_url, Path(tmp) / f"{source.name}.asc")
                armored = key_file.read_text(encoding="utf-8", errors="replace")
            result = self._runner.run(
                ["gpg", "--dearmor", "--yes", "-o", source.keyring_path],
                privileged=True,
                timeout=timeout,
                input_text=armored,
            )
            if not result.ok:
                return self._command_failed(context, f"gpg --dearmor {source.name}", result)

        result = self._runner.run(
            ["tee", str(list_path)],
            privileged=True,
            timeout=timeout,
            input_text=source.line.rstrip("\n") + "\n",
        )
        if not result.ok:
            return self._command_failed(context, f"write {list_path}", result)
        logger.info("Added apt source %s → %s", source.name, list_path)
        return None
