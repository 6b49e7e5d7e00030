"""
Command runner — the SINGLE PLACE where ``subprocess.run`` is called.

Every adapter that talks to a backend binary (apt-get, dpkg-query,
flatpak, gsettings, git, bash) goes through ``CommandRunner.run`` so
logging, privilege escalation and timeouts are handled once.
"""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from mintsetup.core.errors import CommandNotFound, CommandTimeout

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 1800.0


@dataclass(frozen=True)
class CmdResult:
    argv: list[str]
    returncode: int
    stdout: str
    stderr: str
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        return f"{self.stdout}\n{self.stderr}"

    def summary(self) -> str:
        """Short failure description: last stderr line, or the exit code."""
        lines = [ln for ln in self.stderr.strip().splitlines() if ln.strip()]
        detail = lines[-1].strip() if lines else ""
        if detail:
            return f"exit {self.returncode}: {detail}"
        return f"exit {self.returncode}"


def format_argv(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(a) for a in argv)


class CommandRunner:
    """Run backend commands with consistent logging.

    Args:
        default_timeout: Seconds before a command is killed, unless the
            caller passes its own.
        use_sudo: Prefix privileged commands with ``sudo -n``. Defaults
            to True when not running as root.
    """

    def __init__(
        self,
        default_timeout: float = DEFAULT_TIMEOUT,
        use_sudo: bool | None = None,
    ):
        self.default_timeout = default_timeout
        self.use_sudo = (os.geteuid() != 0) if use_sudo is None else use_sudo

    def which(self, binary: str) -> str | None:
        return shutil.which(binary)

    def available(self, binary: str) -> bool:
        return self.which(binary) is not None

    def authenticate(self) -> bool:
        """Prompt for sudo credentials once so later ``sudo -n`` calls pass.

        Interactive: the terminal is handed to sudo, nothing is captured.
        """
        if not self.use_sudo:
            return True
        logger.info("Requesting sudo privileges...")
        try:
            return subprocess.run(["sudo", "-v"], check=False).returncode == 0
        except FileNotFoundError:
            return False

    def run(
        self,
        argv: Sequence[str],
        *,
        privileged: bool = False,
        timeout: float | None = None,
        env: Mapping[str, str] | None = None,
        input_text: str | None = None,
        cwd: str | None = None,
    ) -> CmdResult:
        """Run ``argv`` and capture its output.

        A non-zero exit is returned, not raised; callers decide what
        it means.

        Raises:
            CommandNotFound: the binary does not exist.
            CommandTimeout: the command exceeded ``timeout``.
        """
        cmd = list(argv)
        if privileged and self.use_sudo:
            cmd = ["sudo", "-n", *cmd]
        limit = timeout if timeout is not None else self.default_timeout

        # ── Environment ──
        full_env = os.environ.copy()
        if env:
            full_env.update(env)

        logger.info("CMD %s", format_argv(cmd))
        start = time.monotonic()
        try:
            proc = subprocess.run(
                cmd,
                input=input_text,
                capture_output=True,
                text=True,
                timeout=limit,
                env=full_env,
                cwd=cwd,
            )
        except FileNotFoundError as e:
            raise CommandNotFound(cmd[0]) from e
        except subprocess.TimeoutExpired as e:
            raise CommandTimeout(format_argv(cmd), limit) from e

        elapsed_ms = int((time.monotonic() - start) * 1000)
        if proc.stdout:
            logger.debug("STDOUT %s", proc.stdout.strip())
        if proc.stderr:
            logger.debug("STDERR %s", proc.stderr.strip())
        if proc.returncode != 0:
            logger.debug("exit %d after %dms: %s", proc.returncode, elapsed_ms, format_argv(cmd))

        return CmdResult(
            argv=cmd,
            returncode=proc.returncode,
            stdout=proc.stdout or "",
            stderr=proc.stderr or "",
            duration_ms=elapsed_ms,
        )
