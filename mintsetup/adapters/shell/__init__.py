"""Shell adapters — command runner, file writer, script installer."""

from mintsetup.adapters.shell.command import CmdResult, CommandRunner
from mintsetup.adapters.shell.filesystem import FileWriteAdapter
from mintsetup.adapters.shell.script import ScriptInstallAdapter

__all__ = ["CmdResult", "CommandRunner", "FileWriteAdapter", "ScriptInstallAdapter"]
