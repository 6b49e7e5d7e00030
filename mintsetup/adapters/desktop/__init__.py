"""Desktop adapters — gsettings preferences and Cinnamon extensions."""

from mintsetup.adapters.desktop.extensions import ExtensionInstallAdapter
from mintsetup.adapters.desktop.gsettings import GSettingsStore, PreferenceStore
from mintsetup.adapters.desktop.preferences import PreferenceAdapter

__all__ = [
    "ExtensionInstallAdapter",
    "GSettingsStore",
    "PreferenceAdapter",
    "PreferenceStore",
]
