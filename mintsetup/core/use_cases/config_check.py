"""
Config check use case — validate workstation.yml and report issues.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from mintsetup.core.config.loader import Configuration, find_config_file, load_configuration
from mintsetup.core.errors import ConfigError, ValidationError
from mintsetup.core.models.resource import ResourceKind, validate_resources


@dataclass
class ConfigCheckResult:
    """Result of configuration validation."""

    valid: bool = False
    config: Configuration | None = None
    config_path: Path | None = None
    order: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        kinds: dict[str, int] = {}
        for r in self.config.resources if self.config else []:
            kinds[str(r.kind)] = kinds.get(str(r.kind), 0) + 1
        return {
            "valid": self.valid,
            "config_path": str(self.config_path) if self.config_path else None,
            "errors": self.errors,
            "warnings": self.warnings,
            "name": self.config.name if self.config else None,
            "resource_count": len(self.config.resources) if self.config else 0,
            "kinds": kinds,
        }


def check_config(config_path: Path | None = None) -> ConfigCheckResult:
    """Validate a workstation document: schema, then dependency graph.

    Args:
        config_path: Optional explicit path to the document.

    Returns:
        ConfigCheckResult with validation status and any issues.
    """
    result = ConfigCheckResult()
    result.config_path = config_path or find_config_file()

    try:
        config = load_configuration(result.config_path)
        result.config = config
    except ConfigError as e:
        result.errors.append(str(e))
        return result

    try:
        result.order = validate_resources(config.resources)
    except ValidationError as e:
        result.errors.append(str(e))
        return result

    # Semantic checks
    if not config.resources:
        result.warnings.append("No resources defined. The document has nothing to apply.")

    known_tags = {t for r in config.resources for t in r.tags}
    for r in config.resources:
        if r.kind == ResourceKind.FILE and not r.spec.backup:
            result.warnings.append(f"Resource '{r.id}' overwrites {r.spec.path} without a backup.")
        for fact in r.when:
            if fact not in ("gpu", "desktop"):
                result.warnings.append(f"Resource '{r.id}' has a condition on unknown fact '{fact}'.")
    if not known_tags:
        result.warnings.append("No resource has tags; --skip can only name resource ids.")

    result.valid = len(result.errors) == 0
    return result
