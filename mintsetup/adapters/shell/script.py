"""
Script install adapter — run an installer until its check passes.

Remote installers are downloaded into a private temp directory that is
removed whatever happens (success, failed installer, failed download).
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import tempfile
from pathlib import Path
from urllib.parse import urlparse

from mintsetup.adapters.base import Adapter, ExecutionContext
from mintsetup.adapters.net.download import Downloader
from mintsetup.adapters.packages.apt import APT_ENV
from mintsetup.adapters.shell.command import CmdResult, CommandRunner, format_argv
from mintsetup.core.domain.files import expand
from mintsetup.core.models.outcome import Outcome
from mintsetup.core.models.resource import ResourceKind
from mintsetup.core.models.specs import ScriptInstallSpec

logger = logging.getLogger(__name__)

_SAFE_NAME = re.compile(r"[^A-Za-z0-9._-]+")


def download_name(url: str, fmt: str) -> str:
    """Local file name for a download (``dotnet-install.sh``, ``package.deb``)."""
    name = _SAFE_NAME.sub("-", Path(urlparse(url).path).name).strip("-.")
    if fmt == "deb":
        return name if name.endswith(".deb") else "package.deb"
    return name or "installer.sh"


class ScriptInstallAdapter(Adapter):
    """Runs installer scripts, local installer commands and downloaded .debs."""

    def __init__(self, runner: CommandRunner, downloader: Downloader | None = None):
        self._runner = runner
        self._downloader = downloader or Downloader()

    @property
    def name(self) -> str:
        return "script"

    @property
    def kind(self) -> ResourceKind:
        return ResourceKind.SCRIPT

    def is_available(self) -> bool:
        return self._runner.available("bash")

    def probe(self, context: ExecutionContext) -> bool:
        spec: ScriptInstallSpec = context.spec
        if spec.creates and not self._path(spec.creates, context).exists():
            return False
        if spec.check:
            result = self._runner.run(self._argv(spec.check, context), timeout=context.timeout)
            return result.ok
        return True

    def apply(self, context: ExecutionContext) -> Outcome:
        spec: ScriptInstallSpec = context.spec
        if spec.command:
            result = self._run(spec, self._argv(spec.command, context), context)
            if not result.ok:
                return self._failed(context, result)
        else:
            outcome = self._install_download(context, spec)
            if outcome is not None:
                return outcome

        for argv in spec.post_commands:
            result = self._run(spec, self._argv(argv, context), context)
            if not result.ok:
                return self._failed(context, result)

        if not self.probe(context):
            return self.failed(context, "installer finished but the install check still fails")
        return self.applied(context, reason=f"installed from {spec.url or format_argv(spec.command or [])}")

    def _install_download(self, context: ExecutionContext, spec: ScriptInstallSpec) -> Outcome | None:
        """Fetch and run the installer; a failed Outcome, or None on success."""
        assert spec.url is not None
        workdir = Path(tempfile.mkdtemp(prefix="mintsetup-"))
        try:
            os.chmod(workdir, 0o700)
            name = download_name(spec.url, spec.format)
            self._downloader.fetch(spec.url, workdir / name, checksum=spec.checksum)

            if spec.format == "deb":
                result = self._runner.run(
                    ["apt-get", "install", "-y", f"./{name}"],
                    privileged=True,
                    timeout=context.timeout,
                    env=APT_ENV,
                    cwd=str(workdir),
                )
            else:
                argv = [*spec.interpreter, str(workdir / name), *self._argv(spec.args, context)]
                result = self._run(spec, argv, context, cwd=str(workdir))

            if not result.ok:
                return self._failed(context, result)
            return None
        finally:
            shutil.rmtree(workdir, ignore_errors=True)
            logger.debug("Removed %s", workdir)

    def _run(
        self,
        spec: ScriptInstallSpec,
        argv: list[str],
        context: ExecutionContext,
        cwd: str | None = None,
    ) -> CmdResult:
        return self._runner.run(argv, privileged=spec.privileged, timeout=context.timeout, cwd=cwd)

    def _failed(self, context: ExecutionContext, result: CmdResult) -> Outcome:
        return self.failed(
            context,
            f"{format_argv(result.argv)} failed ({result.summary()})",
            metadata={"command": result.argv, "return_code": result.returncode},
        )

    @staticmethod
    def _argv(argv: list[str], context: ExecutionContext) -> list[str]:
        return [expand(a, context.variables) for a in argv]

    @staticmethod
    def _path(raw: str, context: ExecutionContext) -> Path:
        return Path(os.path.expanduser(expand(raw, context.variables)))
