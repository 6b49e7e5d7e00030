"""
Extension install adapter — Cinnamon extensions (Spices).

An extension is installed when ``<install_dir>/<uuid>`` exists and is
enabled when its uuid is in ``org.cinnamon enabled-extensions``.
Sources are a zip/tar archive or a git repository, fetched into a
private temp directory that is always removed.
"""

from __future__ import annotations

import logging
import os
import shutil
import tarfile
import tempfile
import zipfile
from pathlib import Path

from mintsetup.adapters.base import Adapter, ExecutionContext
from mintsetup.adapters.desktop.gsettings import PreferenceStore
from mintsetup.adapters.net.download import Downloader
from mintsetup.adapters.shell.command import CommandRunner, format_argv
from mintsetup.core.domain.files import expand
from mintsetup.core.domain.values import append_items
from mintsetup.core.errors import MintSetupError, TransientFailure, UnsupportedEnvironment
from mintsetup.core.models.outcome import Outcome
from mintsetup.core.models.resource import AdvisoryFlag, ResourceKind
from mintsetup.core.models.specs import ExtensionInstallSpec

logger = logging.getLogger(__name__)

_GIT_NETWORK_MARKERS = ("could not resolve host", "unable to access", "connection timed out", "early eof")


def _within(root: Path, member: str) -> bool:
    target = (root / member).resolve()
    return target == root or root in target.parents


def extract_archive(archive: Path, dest: Path) -> None:
    """Extract a zip or tar archive, refusing members that escape ``dest``.

    Raises:
        MintSetupError: unknown format or a path traversal attempt.
    """
    dest.mkdir(parents=True, exist_ok=True)
    root = dest.resolve()

    if zipfile.is_zipfile(archive):
        with zipfile.ZipFile(archive) as zf:
            for name in zf.namelist():
                if not _within(root, name):
                    raise MintSetupError(f"Refusing archive member outside target: {name}")
            zf.extractall(dest)
        return

    if tarfile.is_tarfile(archive):
        with tarfile.open(archive) as tf:
            for member in tf.getmembers():
                if not _within(root, member.name):
                    raise MintSetupError(f"Refusing archive member outside target: {member.name}")
            try:
                # the data filter also rejects links pointing outside dest
                tf.extractall(dest, filter="data")
            except tarfile.TarError as e:
                raise MintSetupError(f"Refusing archive {archive.name}: {e}") from e
        return

    raise MintSetupError(f"Unsupported archive format: {archive.name}")


class ExtensionInstallAdapter(Adapter):
    """Installs and enables Cinnamon extensions."""

    def __init__(
        self,
        runner: CommandRunner,
        store: PreferenceStore,
        downloader: Downloader | None = None,
    ):
        self._runner = runner
        self._store = store
        self._downloader = downloader or Downloader()

    @property
    def name(self) -> str:
        return "cinnamon-extension"

    @property
    def kind(self) -> ResourceKind:
        return ResourceKind.EXTENSION

    def is_available(self) -> bool:
        return self._runner.available("git")

    # ── Probe ───────────────────────────────────────────────────

    def probe(self, context: ExecutionContext) -> bool:
        spec: ExtensionInstallSpec = context.spec
        if not self._target(spec, context).is_dir():
            return False
        if not self._has_schema(spec):
            return True
        return spec.uuid in self._enabled(spec)

    def _target(self, spec: ExtensionInstallSpec, context: ExecutionContext) -> Path:
        base = Path(os.path.expanduser(expand(spec.install_dir, context.variables)))
        return base / spec.uuid

    def _has_schema(self, spec: ExtensionInstallSpec) -> bool:
        try:
            return self._store.has_key(spec.enable_schema, spec.enable_key)
        except UnsupportedEnvironment:
            return False

    def _enabled(self, spec: ExtensionInstallSpec) -> list:
        current = self._store.get(spec.enable_schema, spec.enable_key)
        return list(current) if isinstance(current, (list, tuple)) else []

    # ── Apply ───────────────────────────────────────────────────

    def apply(self, context: ExecutionContext) -> Outcome:
        spec: ExtensionInstallSpec = context.spec
        target = self._target(spec, context)
        steps = []

        if not target.is_dir():
            try:
                self._install(spec, context, target)
            except (TransientFailure, UnsupportedEnvironment):
                raise
            except MintSetupError as e:
                return self.failed(context, str(e), metadata={"path": str(target)})
            except OSError as e:
                return self.failed(context, f"Cannot install {spec.uuid}: {e}", metadata={"path": str(target)})
            steps.append(f"installed to {target}")

        if self._has_schema(spec):
            try:
                current = self._store.get(spec.enable_schema, spec.enable_key)
                desired = append_items(current, [spec.uuid])
                if desired != list(current or []):
                    self._store.set(spec.enable_schema, spec.enable_key, desired)
                    steps.append("enabled")
            except MintSetupError as e:
                return self.failed(context, f"{spec.uuid} installed but not enabled: {e}")
        else:
            logger.warning(
                "%s::%s not available; %s installed but not enabled",
                spec.enable_schema, spec.enable_key, spec.uuid,
            )
            steps.append("not enabled (no extension settings)")

        return self.applied(
            context,
            reason=f"{spec.uuid} " + ", ".join(steps),
            flags=[AdvisoryFlag.SESSION_RELOAD_RECOMMENDED],
            metadata={"path": str(target)},
        )

    def _install(self, spec: ExtensionInstallSpec, context: ExecutionContext, target: Path) -> None:
        workdir = Path(tempfile.mkdtemp(prefix="mintsetup-ext-"))
        try:
            tree = self._fetch(spec, context, workdir)
            if spec.install_command:
                argv = [expand(a, context.variables) for a in spec.install_command]
                result = self._runner.run(argv, timeout=context.timeout, cwd=str(tree))
                if not result.ok:
                    raise MintSetupError(f"{format_argv(argv)} failed ({result.summary()})")
                if not target.is_dir():
                    raise MintSetupError(f"{format_argv(argv)} did not create {target}")
            else:
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copytree(tree, target, ignore=shutil.ignore_patterns(".git"))
            logger.info("Installed extension %s → %s", spec.uuid, target)
        finally:
            shutil.rmtree(workdir, ignore_errors=True)

    def _fetch(self, spec: ExtensionInstallSpec, context: ExecutionContext, workdir: Path) -> Path:
        """Fetch the source into ``workdir`` and return the extension tree."""
        src = workdir / "src"
        if spec.git_url:
            result = self._runner.run(
                ["git", "clone", "--depth=1", spec.git_url, str(src)],
                timeout=context.timeout,
            )
            if not result.ok:
                message = f"git clone {spec.git_url} failed ({result.summary()})"
                if any(m in result.stderr.lower() for m in _GIT_NETWORK_MARKERS):
                    raise TransientFailure(message)
                raise MintSetupError(message)
        else:
            assert spec.archive_url is not None
            archive = self._downloader.fetch(spec.archive_url, workdir / "archive")
            extract_archive(archive, src)

        tree = src / spec.subdir if spec.subdir else src
        # Spices archives wrap the extension in a <uuid>/ directory
        if not (tree / "metadata.json").exists() and (tree / spec.uuid).is_dir():
            tree = tree / spec.uuid
        if not tree.is_dir():
            raise MintSetupError(f"{spec.subdir or 'source'} not found in fetched {spec.uuid}")
        return tree
