"""Packaged data — the default workstation configuration document."""

from __future__ import annotations

from pathlib import Path

DATA_DIR = Path(__file__).parent

DEFAULT_CONFIG = DATA_DIR / "workstation.yml"
