"""Adapters — backend bindings for apt, flatpak, gsettings, files and installers.

Public re-exports for convenient access.
"""

from mintsetup.adapters.base import Adapter, ExecutionContext
from mintsetup.adapters.mock import MockAdapter
from mintsetup.adapters.registry import AdapterRegistry

__all__ = [
    "Adapter",
    "AdapterRegistry",
    "ExecutionContext",
    "MockAdapter",
]
