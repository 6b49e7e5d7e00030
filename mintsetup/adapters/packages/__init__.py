"""Package adapters — apt/dpkg and flatpak."""

from mintsetup.adapters.packages.apt import PackageAdapter
from mintsetup.adapters.packages.flatpak import FlatpakAdapter

__all__ = ["FlatpakAdapter", "PackageAdapter"]
