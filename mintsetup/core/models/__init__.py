"""
Domain models — Pydantic types for resources and their outcomes.

All models are re-exported here for convenient access:

    from mintsetup.core.models import Resource, ResourceKind, Outcome
"""

from mintsetup.core.models.outcome import Outcome, OutcomeStatus
from mintsetup.core.models.resource import (
    SPEC_TYPES,
    AdvisoryFlag,
    FailurePolicy,
    Resource,
    ResourceKind,
    make_resource,
    package,
    preference,
    validate_resources,
)
from mintsetup.core.models.specs import (
    AptSource,
    ExtensionInstallSpec,
    FileWriteSpec,
    FlatpakSpec,
    PackageSpec,
    PreferenceSpec,
    PreferenceTarget,
    ResourceSpec,
    ScriptInstallSpec,
)

__all__ = [
    # resource.py
    "SPEC_TYPES",
    "AdvisoryFlag",
    # specs.py
    "AptSource",
    "ExtensionInstallSpec",
    "FailurePolicy",
    "FileWriteSpec",
    "FlatpakSpec",
    # outcome.py
    "Outcome",
    "OutcomeStatus",
    "PackageSpec",
    "PreferenceSpec",
    "PreferenceTarget",
    "Resource",
    "ResourceKind",
    "ResourceSpec",
    "ScriptInstallSpec",
    "make_resource",
    "package",
    "preference",
    "validate_resources",
]
