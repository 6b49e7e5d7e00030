"""
File write adapter — rendered files written atomically with backups.

Probe renders the desired content from the current content and
compares; apply backs up the existing file, writes a temp file in the
same directory, fsyncs it and renames it over the target, so a crash
never leaves a half-written file behind.
"""

from __future__ import annotations

import glob
import logging
import os
import shutil
import stat
import tempfile
import time
from collections.abc import Mapping
from pathlib import Path

from mintsetup.adapters.base import Adapter, ExecutionContext
from mintsetup.core.domain.files import expand
from mintsetup.core.errors import UnsupportedEnvironment
from mintsetup.core.models.outcome import Outcome
from mintsetup.core.models.resource import ResourceKind
from mintsetup.core.models.specs import FileWriteSpec

logger = logging.getLogger(__name__)


def resolve_path(raw: str, variables: Mapping[str, str]) -> Path:
    """Expand ``${VAR}`` and ``~``; resolve a glob in the parent directory.

    The first match (sorted) wins, like ``find ... | head -n 1``.

    Raises:
        UnsupportedEnvironment: the parent pattern matches no directory.
    """
    path = Path(os.path.expanduser(expand(raw, variables)))
    parent = str(path.parent)
    if not glob.has_magic(parent):
        return path

    matches = sorted(p for p in glob.glob(parent) if os.path.isdir(p))
    if not matches:
        raise UnsupportedEnvironment(f"no directory matches {parent}")
    return Path(matches[0]) / path.name


def backup_file(path: Path) -> Path:
    """Copy ``path`` to ``path.bak.<YYYYmmdd-HHMMSS>`` (metadata kept).

    A second backup within the same second gets a ``.1``, ``.2``, ... suffix.
    """
    ts = time.strftime("%Y%m%d-%H%M%S")
    dest = path.with_name(f"{path.name}.bak.{ts}")
    n = 0
    while dest.exists():
        n += 1
        dest = path.with_name(f"{path.name}.bak.{ts}.{n}")
    shutil.copy2(path, dest)
    logger.info("Backed up %s → %s", path, dest)
    return dest


def atomic_write(path: Path, text: str, mode: int | None = None) -> None:
    """Write ``text`` to ``path`` via temp file + fsync + rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    if mode is None and path.exists():
        mode = stat.S_IMODE(path.stat().st_mode)

    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        if mode is not None:
            os.chmod(tmp, mode)
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


class FileWriteAdapter(Adapter):
    """Writes files rendered from ``FileWriteSpec``."""

    concurrency_safe = True

    @property
    def name(self) -> str:
        return "file"

    @property
    def kind(self) -> ResourceKind:
        return ResourceKind.FILE

    def is_available(self) -> bool:
        return True  # filesystem is always available

    def probe(self, context: ExecutionContext) -> bool:
        spec: FileWriteSpec = context.spec
        target = resolve_path(spec.path, context.variables)
        if not target.is_file():
            return False

        try:
            current = _read(target)
        except (OSError, UnicodeDecodeError):
            # unreadable: apply reports it
            return False
        try:
            desired = spec.render(current, context.variables)
        except ValueError:
            # unparseable current content: apply reports it
            return False
        if desired != current:
            return False
        if spec.file_mode is not None:
            return stat.S_IMODE(target.stat().st_mode) == spec.file_mode
        return True

    def apply(self, context: ExecutionContext) -> Outcome:
        spec: FileWriteSpec = context.spec
        target = resolve_path(spec.path, context.variables)
        try:
            current = _read(target) if target.is_file() else None
        except (OSError, UnicodeDecodeError) as e:
            return self.failed(context, f"Cannot read {target}: {e}", metadata={"path": str(target)})

        try:
            desired = spec.render(current, context.variables)
        except ValueError as e:
            return self.failed(context, f"Cannot render {target}: {e}", metadata={"path": str(target)})

        backup: Path | None = None
        try:
            if current is not None and spec.backup and current != desired:
                backup = backup_file(target)
            atomic_write(target, desired, spec.file_mode)
        except OSError as e:
            return self.failed(context, f"Cannot write {target}: {e}", metadata={"path": str(target)})

        logger.info("Wrote %s (%s)", target, spec.mode)
        return self.applied(
            context,
            reason=f"wrote {target}",
            metadata={"path": str(target), "backup": str(backup) if backup else None},
        )


def _read(path: Path) -> str:
    return path.read_text(encoding="utf-8")
