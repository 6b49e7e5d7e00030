"""
Configuration loader — reads workstation.yml into domain models.

This is the primary entry point for loading the workstation document.
It reads YAML, validates against Pydantic schemas, and returns typed
domain objects. The dependency graph itself is checked by the planner.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from mintsetup.core.domain.files import expand
from mintsetup.core.errors import ConfigError
from mintsetup.core.models.resource import FailurePolicy, Resource
from mintsetup.data import DEFAULT_CONFIG

logger = logging.getLogger(__name__)

# Default config filename
CONFIG_FILE = "workstation.yml"
ENV_CONFIG = "MINTSETUP_CONFIG"


class Defaults(BaseModel):
    """Values applied to every resource that does not set its own."""

    model_config = ConfigDict(extra="forbid")

    failure_policy: FailurePolicy = FailurePolicy.BEST_EFFORT
    timeout: float | None = None


class Configuration(BaseModel):
    """A workstation document: variables plus the resources to apply."""

    model_config = ConfigDict(extra="forbid")

    version: int = 1
    name: str = "workstation"
    description: str = ""
    defaults: Defaults = Field(default_factory=Defaults)
    vars: dict[str, str] = Field(default_factory=dict)
    resources: list[Resource] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _apply_defaults(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        data = dict(data)
        defaults = data.get("defaults") or {}
        if not isinstance(defaults, Mapping) or not isinstance(data.get("resources"), list):
            return data

        resources = []
        for item in data["resources"]:
            if isinstance(item, Mapping):
                item = dict(item)
                if "failure_policy" in defaults and not {"failure_policy", "failurePolicy"} & item.keys():
                    item["failure_policy"] = defaults["failure_policy"]
                if defaults.get("timeout") is not None:
                    item.setdefault("timeout", defaults["timeout"])
            resources.append(item)
        data["resources"] = resources
        return data

    def variables(self, environ: Mapping[str, str] | None = None) -> dict[str, str]:
        """Template variables: the environment, overlaid with ``vars``.

        ``vars`` may reference the environment and earlier vars
        (``${HOME}/source``); ``~`` is expanded.
        """
        env = dict(os.environ if environ is None else environ)
        for key, value in self.vars.items():
            env[key] = os.path.expanduser(expand(value, env))
        return env


def find_config_file(start_dir: Path | None = None, environ: Mapping[str, str] | None = None) -> Path:
    """Locate the workstation document.

    Search order:
        1. ``$MINTSETUP_CONFIG``
        2. ``./workstation.yml``
        3. ``$XDG_CONFIG_HOME/mintsetup/workstation.yml`` (``~/.config`` default)
        4. the packaged default workstation
    """
    env = os.environ if environ is None else environ
    if env.get(ENV_CONFIG):
        return Path(env[ENV_CONFIG]).expanduser()

    local = (start_dir or Path.cwd()) / CONFIG_FILE
    if local.is_file():
        return local

    xdg = Path(env.get("XDG_CONFIG_HOME") or Path.home() / ".config")
    user = xdg / "mintsetup" / CONFIG_FILE
    if user.is_file():
        return user

    return DEFAULT_CONFIG


def load_configuration(path: Path | None = None) -> Configuration:
    """Load and validate a workstation document.

    Args:
        path: Explicit path to the document. If None, searches.

    Returns:
        Validated Configuration model.

    Raises:
        ConfigError: If the file is missing or invalid.
    """
    if path is None:
        path = find_config_file()

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading configuration from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    try:
        config = Configuration.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e

    logger.info("Loaded '%s' with %d resources", config.name, len(config.resources))
    return config
