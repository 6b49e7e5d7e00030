"""
Resource model — a declared unit of desired system state.

Resources are loaded once per run from the configuration document and
never change during the run. ``validate_resources`` checks the graph
they form before anything else happens.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from enum import StrEnum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from mintsetup.core.domain.dag import check_ids, topological_order
from mintsetup.core.models.specs import (
    ExtensionInstallSpec,
    FileWriteSpec,
    FlatpakSpec,
    PackageSpec,
    PreferenceSpec,
    ResourceSpec,
    ScriptInstallSpec,
)


class ResourceKind(StrEnum):
    """The six resource kinds the engine knows how to apply."""

    PACKAGE = "package"
    FLATPAK = "flatpak"
    FILE = "file"
    PREFERENCE = "preference"
    SCRIPT = "script"
    EXTENSION = "extension"


class FailurePolicy(StrEnum):
    """Whether a failed resource halts the run."""

    FATAL = "fatal"
    BEST_EFFORT = "best_effort"


class AdvisoryFlag(StrEnum):
    """Follow-up actions surfaced once at the end of a run."""

    REBOOT_RECOMMENDED = "reboot-recommended"
    REBOOT_REQUIRED = "reboot-required"
    RELOGIN_RECOMMENDED = "relogin-recommended"
    SESSION_RELOAD_RECOMMENDED = "session-reload-recommended"


SPEC_TYPES: dict[ResourceKind, type[BaseModel]] = {
    ResourceKind.PACKAGE: PackageSpec,
    ResourceKind.FLATPAK: FlatpakSpec,
    ResourceKind.FILE: FileWriteSpec,
    ResourceKind.PREFERENCE: PreferenceSpec,
    ResourceKind.SCRIPT: ScriptInstallSpec,
    ResourceKind.EXTENSION: ExtensionInstallSpec,
}

# Long-form names accepted in configuration documents.
_KIND_ALIASES = {
    "package": ResourceKind.PACKAGE,
    "flatpakapp": ResourceKind.FLATPAK,
    "flatpak": ResourceKind.FLATPAK,
    "filewrite": ResourceKind.FILE,
    "file": ResourceKind.FILE,
    "preferenceset": ResourceKind.PREFERENCE,
    "preference": ResourceKind.PREFERENCE,
    "scriptinstall": ResourceKind.SCRIPT,
    "script": ResourceKind.SCRIPT,
    "extensioninstall": ResourceKind.EXTENSION,
    "extension": ResourceKind.EXTENSION,
}

_POLICY_ALIASES = {
    "fatal": FailurePolicy.FATAL,
    "besteffort": FailurePolicy.BEST_EFFORT,
}


def _normalize(value: str) -> str:
    return value.replace("_", "").replace("-", "").lower()


class Resource(BaseModel):
    """A declared unit of desired system state.

    ``spec`` is validated into the spec model for ``kind``; a payload
    of the wrong shape for its kind is rejected.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str = Field(min_length=1)
    kind: ResourceKind
    spec: ResourceSpec
    depends_on: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("depends_on", "dependsOn"),
    )
    failure_policy: FailurePolicy = Field(
        default=FailurePolicy.BEST_EFFORT,
        validation_alias=AliasChoices("failure_policy", "failurePolicy"),
    )
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    when: dict[str, list[str]] = Field(default_factory=dict)
    flags: list[AdvisoryFlag] = Field(default_factory=list)
    timeout: float | None = None

    @model_validator(mode="before")
    @classmethod
    def _coerce(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        data = dict(data)

        kind = data.get("kind")
        if isinstance(kind, str) and not isinstance(kind, ResourceKind):
            kind = _KIND_ALIASES.get(_normalize(kind), kind)
            data["kind"] = kind

        for key in ("failure_policy", "failurePolicy"):
            policy = data.get(key)
            if isinstance(policy, str) and not isinstance(policy, FailurePolicy):
                data[key] = _POLICY_ALIASES.get(_normalize(policy), policy)

        spec = data.get("spec")
        if kind in SPEC_TYPES and (spec is None or isinstance(spec, Mapping)):
            data["spec"] = SPEC_TYPES[kind].model_validate(spec or {})
        return data

    @field_validator("depends_on")
    @classmethod
    def _dedupe(cls, value: list[str]) -> list[str]:
        return list(dict.fromkeys(value))

    @field_validator("when", mode="before")
    @classmethod
    def _condition_lists(cls, value: Any) -> Any:
        if isinstance(value, Mapping):
            return {k: [v] if isinstance(v, str) else v for k, v in value.items()}
        return value

    @model_validator(mode="after")
    def _check_spec_kind(self) -> Resource:
        expected = SPEC_TYPES[self.kind]
        if not isinstance(self.spec, expected):
            raise ValueError(
                f"resource '{self.id}': kind '{self.kind}' needs a {expected.__name__}, "
                f"got {type(self.spec).__name__}"
            )
        return self

    @property
    def fatal(self) -> bool:
        return self.failure_policy == FailurePolicy.FATAL

    @property
    def label(self) -> str:
        return self.description or self.id

    def excluded_by(self, skip: Iterable[str]) -> str | None:
        """The first skipped feature this resource belongs to, if any."""
        skipped = set(skip)
        for tag in [self.id, *self.tags]:
            if tag in skipped:
                return tag
        return None

    def unmet_condition(self, facts: Mapping[str, str]) -> str | None:
        """Describe the first ``when`` condition the facts do not satisfy."""
        for fact, allowed in self.when.items():
            actual = facts.get(fact)
            if actual not in allowed:
                return f"{fact}={actual or 'unknown'} (needs {'|'.join(allowed)})"
        return None


def validate_resources(resources: Sequence[Resource]) -> list[str]:
    """Check ids and the dependency graph.

    Returns the ids in dependency order.

    Raises:
        DuplicateIdError, DanglingDependencyError, CycleError
    """
    ids = [r.id for r in resources]
    deps = {r.id: r.depends_on for r in resources}
    check_ids(ids, deps)
    return topological_order(ids, deps)


# ── Builders (Python API) ───────────────────────────────────────────


def make_resource(
    kind: ResourceKind | str,
    resource_id: str,
    spec: BaseModel | Mapping[str, Any],
    *,
    failure_policy: FailurePolicy | str = FailurePolicy.BEST_EFFORT,
    depends_on: Sequence[str] = (),
    **fields: Any,
) -> Resource:
    return Resource.model_validate(
        {
            "id": resource_id,
            "kind": kind,
            "spec": spec,
            "failure_policy": failure_policy,
            "depends_on": list(depends_on),
            **fields,
        }
    )


def package(
    name: str,
    failure_policy: FailurePolicy | str = FailurePolicy.BEST_EFFORT,
    *,
    resource_id: str | None = None,
    **fields: Any,
) -> Resource:
    """``package("git", "fatal")`` — one apt package, id defaults to the name."""
    return make_resource(
        ResourceKind.PACKAGE,
        resource_id or name,
        {"names": [name]},
        failure_policy=failure_policy,
        **fields,
    )


def preference(
    resource_id: str,
    schema: str,
    key: str,
    value: Any,
    failure_policy: FailurePolicy | str = FailurePolicy.BEST_EFFORT,
    **fields: Any,
) -> Resource:
    """``preference("icon-theme", "org.cinnamon.desktop.interface", "icon-theme", "Papirus-Dark")``."""
    return make_resource(
        ResourceKind.PREFERENCE,
        resource_id,
        {"schema": schema, "key": key, "value": value},
        failure_policy=failure_policy,
        **fields,
    )
