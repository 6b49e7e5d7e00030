"""
mintsetup — CLI entrypoint.

Usage:
    mintsetup --help
    mintsetup apply --dry-run
    mintsetup apply --skip vulkan --gpu amd
    mintsetup config check
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from mintsetup import __version__
from mintsetup.core.observability.logging_config import resolve_level, setup_logging
from mintsetup.core.services.facts import GPU_MODES

_MARKERS = {
    "applied": ("✓", "green"),
    "skipped": ("⊘", "yellow"),
    "failed": ("✗", "red"),
}


@click.group()
@click.version_option(version=__version__, prog_name="mintsetup")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    envvar="MINTSETUP_CONFIG",
    help="Path to workstation.yml (default: auto-detect).",
)
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Also write the log to this file.",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
    log_file: str | None,
) -> None:
    """mintsetup — declarative Linux Mint workstation setup."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path).expanduser() if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    setup_logging(
        level=resolve_level(debug=debug, verbose=verbose, quiet=quiet),
        log_file=log_file,
        quiet_third_party=not debug,
    )


# ── apply ───────────────────────────────────────────────────────────


@cli.command()
@click.option(
    "--skip",
    "skip",
    multiple=True,
    metavar="FEATURE",
    help="Leave out resources with this tag or id (repeatable).",
)
@click.option(
    "--gpu",
    "gpu_mode",
    type=click.Choice(GPU_MODES),
    default="auto",
    show_default=True,
    help="GPU stack to install (auto detects via lspci).",
)
@click.option("--dry-run", is_flag=True, help="Probe only, change nothing.")
@click.option("--mock", is_flag=True, help="Use mock adapters (no real execution).")
@click.option(
    "--workers",
    type=click.IntRange(min=1),
    default=1,
    show_default=True,
    help="Parallel workers for independent, concurrency-safe steps.",
)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def apply(
    ctx: click.Context,
    skip: tuple[str, ...],
    gpu_mode: str,
    dry_run: bool,
    mock: bool,
    workers: int,
    as_json: bool,
) -> None:
    """Apply the workstation configuration.

    Examples:

        mintsetup apply

        mintsetup apply --skip vulkan --gpu none

        mintsetup apply --dry-run
    """
    from mintsetup.adapters.shell.command import CommandRunner
    from mintsetup.core.use_cases.run import run_configuration

    if not (dry_run or mock) and not CommandRunner().authenticate():
        click.secho("⚠️  No sudo credentials; privileged steps will fail.", fg="yellow", err=True)

    result = run_configuration(
        config_path=ctx.obj.get("config_path"),
        skip=skip,
        gpu_mode=gpu_mode,
        dry_run=dry_run,
        mock=mock,
        workers=workers,
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(result.exit_code)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(result.exit_code)

    report = result.report
    assert report is not None
    assert result.config is not None

    mode_label = "[dry-run] " if dry_run else "[mock] " if mock else ""
    click.secho(f"\n⚡ {mode_label}{result.config.name}", fg="cyan", bold=True)
    facts = ", ".join(f"{k}={v}" for k, v in result.facts.items())
    click.echo(f"   Resources: {len(result.config.resources)} | Facts: {facts}")
    if skip:
        click.echo(f"   Skipping: {', '.join(skip)}")
    click.echo()

    verbose = ctx.obj.get("verbose", False)
    for outcome in report.outcomes:
        marker, color = _MARKERS[str(outcome.status)]
        click.secho(f"   {marker} {outcome.resource_id}", fg=color, nl=False)
        timing = f" ({outcome.duration_ms}ms)" if outcome.duration_ms else ""
        if outcome.failed:
            click.echo(timing)
            for line in (outcome.error or "").split("\n")[:5]:
                click.echo(f"     │ {line}")
        elif outcome.skipped:
            click.echo(f" ({outcome.reason})")
        else:
            detail = f" {outcome.reason}" if verbose and outcome.reason else ""
            click.echo(f"{timing}{detail}")

    # Summary
    click.echo()
    status_color = {"ok": "green", "partial": "yellow", "halted": "red"}.get(report.status, "white")
    click.secho(
        f"   Result: {report.applied} applied, {report.skipped} skipped, "
        f"{report.failed} failed ({report.status})",
        fg=status_color,
        bold=True,
    )

    if report.halted:
        ids = ", ".join(o.resource_id for o in report.fatal_failures)
        click.secho(f"   ❌ Halted after fatal failure: {ids}", fg="red")

    if report.flags:
        click.echo()
        for flag in sorted(report.flags):
            click.secho(f"   ⚠️  {flag}", fg="yellow")

    click.echo()
    sys.exit(report.exit_code)


# ── plan ────────────────────────────────────────────────────────────


@cli.command("plan")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def plan_cmd(ctx: click.Context, as_json: bool) -> None:
    """Show the ordered plan and its independent sets."""
    from mintsetup.core.config.loader import find_config_file, load_configuration
    from mintsetup.core.errors import ConfigError, ValidationError
    from mintsetup.core.use_cases.run import plan

    try:
        config = load_configuration(ctx.obj.get("config_path") or find_config_file())
        execution_plan = plan(config.resources)
    except (ConfigError, ValidationError) as e:
        if as_json:
            click.echo(json.dumps({"error": str(e)}, indent=2))
        else:
            click.secho(f"❌ {e}", fg="red")
        sys.exit(2)

    if as_json:
        click.echo(json.dumps(execution_plan.to_dict(), indent=2))
        return

    click.secho(f"\n📋 {config.name} — {execution_plan.total_steps} steps", fg="cyan", bold=True)
    for step in execution_plan.steps:
        r = step.resource
        policy = " [fatal]" if r.fatal else ""
        deps = f"  ← {', '.join(r.depends_on)}" if r.depends_on else ""
        click.echo(f"   {step.index + 1:3d}. {r.id} ({r.kind}){policy}{deps}")
        if r.when:
            cond = ", ".join(f"{k}={'|'.join(v)}" for k, v in r.when.items())
            click.echo(f"        when {cond}")

    click.echo()
    click.secho("   Independent sets:", fg="white", bold=True)
    for depth, level in enumerate(execution_plan.levels()):
        click.echo(f"     {depth}: {', '.join(s.id for s in level)}")
    click.echo()


# ── config ──────────────────────────────────────────────────────────


@cli.group()
def config() -> None:
    """Workstation configuration commands."""


@config.command("check")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_check(ctx: click.Context, as_json: bool) -> None:
    """Validate workstation.yml (schema and dependency graph)."""
    from mintsetup.core.use_cases.config_check import check_config

    result = check_config(config_path=ctx.obj.get("config_path"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else 1)

    if result.valid:
        assert result.config is not None  # guaranteed when valid
        click.secho("✅ Configuration is valid", fg="green", bold=True)
        click.echo(f"   File: {result.config_path}")
        click.echo(f"   Name: {result.config.name}")
        click.echo(f"   Resources: {len(result.config.resources)}")
    else:
        click.secho("❌ Configuration errors:", fg="red", bold=True)
        for err in result.errors:
            click.echo(f"   • {err}")

    if result.warnings:
        click.echo()
        click.secho("⚠️  Warnings:", fg="yellow")
        for warn in result.warnings:
            click.echo(f"   • {warn}")

    if not result.valid:
        click.echo()
        sys.exit(1)

    click.echo()


# ── adapters / facts ────────────────────────────────────────────────


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def adapters(as_json: bool) -> None:
    """Show backend adapter availability."""
    from mintsetup.core.use_cases.run import build_registry

    status = build_registry().adapter_status()

    if as_json:
        click.echo(json.dumps(status, indent=2))
        return

    click.secho("\n🔌 Adapters", fg="cyan", bold=True)
    for kind, info in status.items():
        if info["available"]:
            click.secho(f"   ✓ {kind}", fg="green", nl=False)
        else:
            click.secho(f"   ✗ {kind}", fg="red", nl=False)
        parallel = ", parallel" if info["concurrency_safe"] else ""
        click.echo(f" ({info['name']}{parallel})")
    click.echo()


@cli.command()
@click.option(
    "--gpu",
    "gpu_mode",
    type=click.Choice(GPU_MODES),
    default="auto",
    show_default=True,
    help="GPU mode (auto detects via lspci).",
)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def facts(gpu_mode: str, as_json: bool) -> None:
    """Show the host facts resource conditions are matched against."""
    from mintsetup.core.services.facts import detect_facts

    detected = detect_facts(gpu_mode)

    if as_json:
        click.echo(json.dumps(detected, indent=2))
        return

    click.secho("\n🖥  Host facts", fg="cyan", bold=True)
    for key, value in detected.items():
        click.echo(f"   {key}: {value}")
    click.echo()


if __name__ == "__main__":
    cli()
