"""
Run use case — apply a set of resources to this machine.

``run(resources, options)`` is the core entry point: plan, execute,
report. ``run_configuration`` is the vertical slice the CLI uses: load
the document, detect host facts, then ``run``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from mintsetup.adapters.registry import AdapterRegistry
from mintsetup.core.config.loader import Configuration, find_config_file, load_configuration
from mintsetup.core.engine.executor import ExecutorOptions, execute_plan
from mintsetup.core.engine.planner import Plan, build_plan
from mintsetup.core.engine.report import RunReport
from mintsetup.core.errors import ConfigError, ValidationError
from mintsetup.core.models.resource import Resource
from mintsetup.core.reliability.retry import RetryPolicy
from mintsetup.core.services.facts import detect_facts

logger = logging.getLogger(__name__)


@dataclass
class RunOptions:
    """Options for one run.

    ``skip`` names features (resource tags or ids) to leave out;
    ``facts`` are matched against resource ``when`` conditions.
    """

    skip: set[str] = field(default_factory=set)
    facts: dict[str, str] = field(default_factory=dict)
    dry_run: bool = False
    workers: int = 1
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    default_timeout: float | None = None
    variables: dict[str, str] = field(default_factory=dict)
    registry: AdapterRegistry | None = None
    mock: bool = False


def build_registry(mock: bool = False) -> AdapterRegistry:
    """Registry with the six system adapters sharing one runner and store."""
    from mintsetup.adapters.desktop.extensions import ExtensionInstallAdapter
    from mintsetup.adapters.desktop.gsettings import GSettingsStore
    from mintsetup.adapters.desktop.preferences import PreferenceAdapter
    from mintsetup.adapters.net.download import Downloader
    from mintsetup.adapters.packages.apt import PackageAdapter
    from mintsetup.adapters.packages.flatpak import FlatpakAdapter
    from mintsetup.adapters.shell.command import CommandRunner
    from mintsetup.adapters.shell.filesystem import FileWriteAdapter
    from mintsetup.adapters.shell.script import ScriptInstallAdapter

    runner = CommandRunner()
    downloader = Downloader()
    store = GSettingsStore(runner)

    registry = AdapterRegistry(mock_mode=mock)
    registry.register(PackageAdapter(runner, downloader))
    registry.register(FlatpakAdapter(runner))
    registry.register(FileWriteAdapter())
    registry.register(PreferenceAdapter(store))
    registry.register(ScriptInstallAdapter(runner, downloader))
    registry.register(ExtensionInstallAdapter(runner, store, downloader))
    return registry


def plan(resources: Sequence[Resource], options: RunOptions | None = None) -> Plan:
    """Validate and order ``resources`` without touching the system."""
    options = options or RunOptions()
    registry = options.registry or build_registry(mock=options.mock)
    return build_plan(resources, registry)


def run(resources: Sequence[Resource], options: RunOptions | None = None) -> RunReport:
    """Apply ``resources`` and return the run report.

    Raises:
        ValidationError: the resource set cannot be planned; nothing ran.
    """
    options = options or RunOptions()
    execution_plan = plan(resources, options)
    logger.info("Applying %d resources", execution_plan.total_steps)

    report = execute_plan(
        execution_plan,
        ExecutorOptions(
            skip=set(options.skip),
            facts=dict(options.facts),
            dry_run=options.dry_run,
            workers=max(1, options.workers),
            retry=options.retry,
            default_timeout=options.default_timeout,
            variables=dict(options.variables),
        ),
    )
    logger.info(
        "Run %s: %d applied, %d skipped, %d failed",
        report.status, report.applied, report.skipped, report.failed,
    )
    return report


@dataclass
class RunResult:
    """Result of running a workstation document."""

    report: RunReport | None = None
    config: Configuration | None = None
    config_path: Path | None = None
    facts: dict[str, str] = field(default_factory=dict)
    error: str | None = None

    @property
    def exit_code(self) -> int:
        if self.error:
            return 2
        return self.report.exit_code if self.report else 0

    def to_dict(self) -> dict:
        result: dict = {}
        if self.error:
            result["error"] = self.error
            return result

        result["name"] = self.config.name if self.config else ""
        result["config_path"] = str(self.config_path)
        result["facts"] = self.facts
        if self.report:
            result["report"] = self.report.to_dict()
        return result


def load_for_run(
    config_path: Path | None = None,
    gpu_mode: str = "auto",
) -> RunResult:
    """Load the document and detect host facts (the run's inputs)."""
    result = RunResult()
    try:
        result.config_path = config_path or find_config_file()
        result.config = load_configuration(result.config_path)
        result.facts = detect_facts(gpu_mode)
    except (ConfigError, ValueError) as e:
        result.error = str(e)
    return result


def run_configuration(
    config_path: Path | None = None,
    skip: Iterable[str] = (),
    gpu_mode: str = "auto",
    dry_run: bool = False,
    mock: bool = False,
    workers: int = 1,
    registry: AdapterRegistry | None = None,
) -> RunResult:
    """Apply a workstation document.

    Args:
        config_path: Optional explicit path to the document.
        skip: Feature tags (or resource ids) to exclude.
        gpu_mode: auto | nvidia | amd | intel | none.
        dry_run: If True, probe only.
        mock: If True, use mock adapters for everything.
        workers: Thread pool size for concurrency-safe steps.
        registry: Optional pre-configured adapter registry.

    Returns:
        RunResult with the run report, or an error.
    """
    result = load_for_run(config_path, gpu_mode)
    if result.error or result.config is None:
        return result

    config = result.config
    options = RunOptions(
        skip=set(skip),
        facts=result.facts,
        dry_run=dry_run,
        workers=workers,
        default_timeout=config.defaults.timeout,
        variables=config.variables(),
        registry=registry,
        mock=mock,
    )
    try:
        result.report = run(config.resources, options)
    except ValidationError as e:
        result.error = str(e)
    return result
