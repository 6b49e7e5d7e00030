"""mintsetup — declarative, idempotent workstation provisioning for Linux Mint."""

__version__ = "0.1.0"
