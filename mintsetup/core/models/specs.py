"""
Kind-specific resource payloads.

Each resource kind has one spec model. Specs are pure data plus the
pure "what should this look like" logic (rendered file content,
desired preference value); the adapters own every side effect.
"""

from __future__ import annotations

import shlex
from collections.abc import Callable, Mapping
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from mintsetup.core.domain.files import expand, managed_block, merge_json_list, merge_json_object
from mintsetup.core.domain.values import append_items, remove_items


class SpecBase(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


def _as_list(value: Any) -> Any:
    if isinstance(value, str):
        return [value]
    return value


def _as_argv(value: Any) -> Any:
    if isinstance(value, str):
        return shlex.split(value)
    return value


# ── Package (apt/dpkg) ──────────────────────────────────────────────


class AptSource(SpecBase):
    """A third-party apt repository (e.g. Microsoft's VS Code repo)."""

    name: str                       # sources.list.d/<name>.list
    line: str                       # "deb [signed-by=...] URL suite components"
    key_url: str | None = None      # armored key, dearmored into the keyring
    keyring: str | None = None      # default /usr/share/keyrings/<name>.gpg

    @property
    def keyring_path(self) -> str:
        return self.keyring or f"/usr/share/keyrings/{self.name}.gpg"


class PackageSpec(SpecBase):
    """Debian packages.

    ``state: latest`` with no names means a full dist-upgrade.
    ``names`` may contain apt globs (``libreoffice*``) for removal.
    """

    names: list[str] = Field(default_factory=list)
    state: Literal["present", "absent", "latest"] = "present"
    update_index: bool = False
    refresh_fatal: bool = False
    recommends: bool = True
    purge: bool = False
    ppa: str | None = None
    source: AptSource | None = None

    @field_validator("names", mode="before")
    @classmethod
    def _coerce_names(cls, value: Any) -> Any:
        return _as_list(value)

    @model_validator(mode="after")
    def _check_names(self) -> PackageSpec:
        if not self.names and self.state != "latest":
            raise ValueError("package spec needs at least one name (or state: latest)")
        return self


# ── Flatpak ─────────────────────────────────────────────────────────


class FlatpakSpec(SpecBase):
    """A Flatpak application.

    ``alternatives`` are other ids the same app has been published
    under (FreeCAD moved from org.freecadweb to org.freecad); the first
    one that installs wins and any of them counts as installed.
    """

    app_id: str
    alternatives: list[str] = Field(default_factory=list)
    remote: str = "flathub"
    remote_url: str = "https://flathub.org/repo/flathub.flatpakrepo"
    scope: Literal["system", "user"] = "system"
    state: Literal["present", "absent"] = "present"

    @property
    def candidates(self) -> list[str]:
        return [self.app_id, *self.alternatives]


# ── File write ──────────────────────────────────────────────────────


FileMode = Literal["replace", "json_merge", "json_list_merge", "block"]


class FileWriteSpec(SpecBase):
    """A file whose content is rendered from the current content.

    Modes:
        replace          content is written as-is
        json_merge       ``data`` (object) deep-merged into the existing object
        json_list_merge  ``data`` (list) appended, unique by ``unique_by`` keys
        block            ``content`` kept inside a ``marker``-delimited block
    """

    path: str
    mode: FileMode = "replace"
    content: str | None = None
    template: bool = False
    data: Any = None
    unique_by: list[str] = Field(default_factory=list)
    marker: str | None = None
    comment: str = "#"
    remove_lines_matching: list[str] = Field(default_factory=list)
    file_mode: int | None = None
    backup: bool = True

    @field_validator("file_mode", mode="before")
    @classmethod
    def _octal(cls, value: Any) -> Any:
        if isinstance(value, str):
            return int(value, 8)
        return value

    @model_validator(mode="after")
    def _check_mode(self) -> FileWriteSpec:
        if self.mode in ("replace", "block") and self.content is None:
            raise ValueError(f"file mode '{self.mode}' requires 'content'")
        if self.mode == "block" and not self.marker:
            raise ValueError("file mode 'block' requires 'marker'")
        if self.mode == "json_merge" and not isinstance(self.data, dict):
            raise ValueError("file mode 'json_merge' requires an object in 'data'")
        if self.mode == "json_list_merge" and not isinstance(self.data, list):
            raise ValueError("file mode 'json_list_merge' requires a list in 'data'")
        return self

    def render(self, current: str | None, variables: Mapping[str, str]) -> str:
        """Desired file text given the current text (``None`` = absent)."""
        text = self.content or ""
        if self.template:
            text = expand(text, variables)

        if self.mode == "json_merge":
            return merge_json_object(current, self.data)
        if self.mode == "json_list_merge":
            return merge_json_list(current, self.data, self.unique_by)
        if self.mode == "block":
            return managed_block(
                current,
                text,
                marker=self.marker or "",
                comment=self.comment,
                remove_patterns=self.remove_lines_matching,
            )
        return text


# ── Preference (gsettings) ──────────────────────────────────────────


class PreferenceTarget(SpecBase):
    """One candidate ``schema::key`` location for a preference."""

    schema_name: str = Field(alias="schema")
    key: str

    def __str__(self) -> str:
        return f"{self.schema_name}::{self.key}"


class PreferenceSpec(SpecBase):
    """A desktop preference, written to the first candidate that exists.

    Candidates are ``targets`` followed by every ``schemas`` × ``keys``
    combination (schema-major), because key names drift across
    Cinnamon/Nemo versions.

    The desired value is ``value`` under ``op`` (set | append | remove),
    or ``transform(current)`` when a callable is supplied from Python.
    """

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    targets: list[PreferenceTarget] = Field(default_factory=list)
    schema_name: str | None = Field(default=None, alias="schema")
    schemas: list[str] = Field(default_factory=list)
    key: str | None = None
    keys: list[str] = Field(default_factory=list)
    value: Any = None
    op: Literal["set", "append", "remove"] = "set"
    transform: Callable[[Any], Any] | None = Field(default=None, exclude=True)
    require_writable: bool = False

    @model_validator(mode="after")
    def _check_targets(self) -> PreferenceSpec:
        if not self.candidates():
            raise ValueError("preference spec needs 'targets' or schema(s) and key(s)")
        if self.transform is None and self.value is None:
            raise ValueError("preference spec needs 'value' (or a transform)")
        if self.op in ("append", "remove") and not isinstance(self.value, list):
            raise ValueError(f"preference op '{self.op}' requires a list 'value'")
        return self

    def candidates(self) -> list[PreferenceTarget]:
        found = list(self.targets)
        schemas = ([self.schema_name] if self.schema_name else []) + self.schemas
        keys = ([self.key] if self.key else []) + self.keys
        for schema in schemas:
            for key in keys:
                target = PreferenceTarget(schema=schema, key=key)
                if target not in found:
                    found.append(target)
        return found

    def desired(self, current: Any) -> Any:
        if self.transform is not None:
            return self.transform(current)
        if self.op == "append":
            return append_items(current, self.value)
        if self.op == "remove":
            return remove_items(current, self.value)
        return self.value


# ── Script install ──────────────────────────────────────────────────


class ScriptInstallSpec(SpecBase):
    """An installer run once until its check passes.

    With ``url`` the installer is fetched to a private temp dir and
    executed with ``interpreter``; ``format: deb`` installs the download
    with apt instead. With ``command`` a local installer command runs
    (``ubuntu-drivers autoinstall``, ``code --install-extension X``).
    ``creates`` / ``check`` tell whether the install is already done;
    at least one is required so repeated runs converge.
    """

    url: str | None = None
    command: list[str] | None = None
    format: Literal["script", "deb"] = "script"
    interpreter: list[str] = Field(default_factory=lambda: ["bash"])
    args: list[str] = Field(default_factory=list)
    privileged: bool = False
    checksum: str | None = None
    creates: str | None = None
    check: list[str] | None = None
    post_commands: list[list[str]] = Field(default_factory=list)

    @field_validator("interpreter", "check", "command", mode="before")
    @classmethod
    def _coerce_argv(cls, value: Any) -> Any:
        return _as_argv(value)

    @field_validator("post_commands", mode="before")
    @classmethod
    def _coerce_post(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [_as_argv(v) for v in value]
        return value

    @model_validator(mode="after")
    def _check_probe(self) -> ScriptInstallSpec:
        if bool(self.url) == bool(self.command):
            raise ValueError("script spec needs exactly one of 'url' or 'command'")
        if not self.creates and not self.check:
            raise ValueError("script spec needs 'creates' or 'check' to detect a completed install")
        if self.checksum and ":" not in self.checksum:
            raise ValueError("checksum must look like 'sha256:<hex>'")
        return self


# ── Extension install ───────────────────────────────────────────────


class ExtensionInstallSpec(SpecBase):
    """A Cinnamon extension fetched from an archive or a git repo.

    The fetched tree (or its ``subdir``) is copied to
    ``install_dir/<uuid>``, unless ``install_command`` is given; that
    command then runs inside the fetched tree and installs it itself.
    """

    uuid: str
    archive_url: str | None = None
    git_url: str | None = None
    subdir: str | None = None
    install_dir: str = "~/.local/share/cinnamon/extensions"
    enable_schema: str = "org.cinnamon"
    enable_key: str = "enabled-extensions"
    install_command: list[str] | None = None

    @field_validator("install_command", mode="before")
    @classmethod
    def _coerce_install(cls, value: Any) -> Any:
        return _as_argv(value)

    @model_validator(mode="after")
    def _check_source(self) -> ExtensionInstallSpec:
        if bool(self.archive_url) == bool(self.git_url):
            raise ValueError("extension spec needs exactly one of 'archive_url' or 'git_url'")
        return self


ResourceSpec = (
    PackageSpec
    | FlatpakSpec
    | FileWriteSpec
    | PreferenceSpec
    | ScriptInstallSpec
    | ExtensionInstallSpec
)
