"""
Logging configuration — one console stream plus an optional run transcript.

``setup_logging`` is called once by the CLI group; every module logs
through ``logging.getLogger(__name__)`` and inherits it.

Console level, highest precedence first:
    --debug  >  --verbose  >  --quiet  >  MINTSETUP_LOG_LEVEL  >  WARNING

The transcript (--log-file / MINTSETUP_LOG_FILE) records at
MINTSETUP_LOG_FILE_LEVEL, INFO unless set, so every command a run
issued is on disk even when the console only shows the summary.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

ENV_LOG_LEVEL = "MINTSETUP_LOG_LEVEL"
ENV_LOG_FILE = "MINTSETUP_LOG_FILE"
ENV_LOG_FILE_LEVEL = "MINTSETUP_LOG_FILE_LEVEL"

# ── Formats ─────────────────────────────────────────────────────

# (threshold, format, datefmt): first threshold >= level wins
_CONSOLE_FORMATS = (
    (logging.DEBUG, "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s", "%H:%M:%S"),
    (logging.INFO, "%(asctime)s %(message)s", "%H:%M:%S"),
    (logging.CRITICAL, "%(message)s", None),
)

# worker threads show up as mintsetup_0, mintsetup_1, ...
_TRANSCRIPT_FORMAT = "%(asctime)s %(levelname)-7s [%(threadName)s] %(name)s — %(message)s"
_TRANSCRIPT_DATEFMT = "%Y-%m-%d %H:%M:%S"

# thread pool and event loop chatter
_NOISY_LOGGERS = ("asyncio", "concurrent.futures")


def resolve_level(debug: bool = False, verbose: bool = False, quiet: bool = False) -> str:
    """Console level name for the CLI flags, falling back to the environment."""
    for flag, name in ((debug, "DEBUG"), (verbose, "INFO"), (quiet, "ERROR")):
        if flag:
            return name
    return os.environ.get(ENV_LOG_LEVEL, "WARNING")


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
    quiet_third_party: bool = True,
) -> None:
    """Install the root handlers for this process, replacing any present.

    Args:
        level: Console level name; unknown names mean WARNING.
        log_file: Transcript path (``~`` expanded, parents created,
            appended to). Falls back to ``MINTSETUP_LOG_FILE``.
        log_file_level: Transcript level. Falls back to
            ``MINTSETUP_LOG_FILE_LEVEL``, then INFO.
        quiet_third_party: Hold thread-pool loggers at WARNING unless
            the console is at DEBUG.
    """
    console_level = _parse_level(level)
    handlers: list[logging.Handler] = [_console_handler(console_level)]

    transcript = log_file or os.environ.get(ENV_LOG_FILE)
    if transcript:
        file_level = _parse_level(log_file_level or os.environ.get(ENV_LOG_FILE_LEVEL) or "INFO")
        handlers.append(_transcript_handler(Path(transcript).expanduser(), file_level))

    root = logging.getLogger()
    root.handlers.clear()
    for handler in handlers:
        root.addHandler(handler)
    # root passes everything either handler wants
    root.setLevel(min(h.level for h in handlers))

    if quiet_third_party and console_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.raiseExceptions = False


def _console_handler(level: int) -> logging.Handler:
    fmt, datefmt = next((f, d) for threshold, f, d in _CONSOLE_FORMATS if level <= threshold)
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    return handler


def _transcript_handler(path: Path, level: int) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_TRANSCRIPT_FORMAT, datefmt=_TRANSCRIPT_DATEFMT))
    return handler


def _parse_level(level: str | None) -> int:
    numeric = getattr(logging, (level or "").upper(), None) if level else None
    return numeric if isinstance(numeric, int) else logging.WARNING
