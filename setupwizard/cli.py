"""
Command-line interface for the setup wizard.

Provides the interactive wizard plus commands for inspecting the session,
reconfiguring an installation, and undo, restore and reset.
"""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

import click
from rich.console import Console
from rich.prompt import Confirm
from rich.table import Table

from .authority.http import ApiClient, HttpPrerequisiteService
from .config import load_settings
from .config.defaults import RECONFIGURATION_ACTIONS
from .config.models import WizardSettings
from .errors import ConfigError
from .logging_utils import configure_logging
from .preflight import PrerequisiteChecker
from .recovery.operations import OperationLog
from .recovery.outcome import OutcomeLevel, RecoveryOutcome
from .wizard.engine import WizardEngine
from .wizard.runner import OUTCOME_STYLES, WizardRunner

console = Console()

STATUS_STYLES = {
    "completed": "green",
    "failed": "red",
    "cancelled": "dim",
    "rolled-back": "yellow",
}


def _confirm(assume_yes: bool) -> Callable[[str], bool]:
    if assume_yes:
        return lambda prompt: True
    return lambda prompt: Confirm.ask(f"[yellow]{prompt}[/yellow]", default=False)


def _with_engine(
    settings: WizardSettings,
    action: Callable[[WizardEngine], Awaitable[Any]],
    assume_yes: bool = False,
) -> Any:
    """Build an engine against the configured backend and run an async action."""

    async def main() -> Any:
        async with ApiClient.from_settings(settings) as api:
            engine = WizardEngine.from_settings(settings, api=api, confirm=_confirm(assume_yes))
            return await action(engine)

    return asyncio.run(main())


def _print_outcome(outcome: RecoveryOutcome) -> None:
    style = OUTCOME_STYLES[outcome.level]
    console.print(f"[{style}]{outcome.message or outcome.level.value}[/{style}]")
    if outcome.level == OutcomeLevel.ERROR:
        sys.exit(1)


# ============================================================
# Main CLI Group
# ============================================================

@click.group()
@click.version_option(version="1.0.0", prog_name="setupwizard")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Settings file (defaults to ./setupwizard.yaml if present)",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx, config_path: Optional[str], verbose: bool):
    """
    Setup Wizard

    Guided installation with resume, undo and rollback.
    """
    ctx.ensure_object(dict)

    try:
        settings = load_settings(config_path)
    except ConfigError as e:
        console.print(f"[red]Configuration error: {e.message}[/red]")
        sys.exit(1)

    configure_logging(
        level=logging.DEBUG if verbose else settings.log_level,
        log_file=settings.log_file,
    )
    ctx.obj["settings"] = settings


# ============================================================
# RUN / STATUS
# ============================================================

@cli.command()
@click.pass_context
def run(ctx):
    """Run the interactive wizard, resuming an interrupted session if possible."""
    settings = ctx.obj["settings"]

    async def action(engine: WizardEngine) -> bool:
        runner = WizardRunner(engine, console=console)
        return await runner.run()

    success = _with_engine(settings, action)
    sys.exit(0 if success else 1)


@cli.command()
@click.argument("action", type=click.Choice(sorted(RECONFIGURATION_ACTIONS)))
@click.pass_context
def reconfigure(ctx, action: str):
    """Change an existing installation: add or remove profiles, or modify settings."""
    settings = ctx.obj["settings"]

    async def run_flow(engine: WizardEngine) -> bool:
        runner = WizardRunner(engine, console=console)
        return await runner.run(reconfigure=action)

    success = _with_engine(settings, run_flow)
    sys.exit(0 if success else 1)


@cli.command()
@click.pass_context
def status(ctx):
    """Show the saved wizard session."""
    settings = ctx.obj["settings"]

    async def action(engine: WizardEngine) -> dict:
        return engine.status()

    info = _with_engine(settings, action)

    table = Table(show_header=False)
    table.add_column("Field", style="dim")
    table.add_column("Value")
    step_label = f"{info['title']} ({info['step_id']})"
    if info["display_number"]:
        step_label = f"{info['display_number']} of {info['visible_total']}: {step_label}"
    table.add_row("Step", step_label)
    table.add_row("Path", info["navigation_path"])
    table.add_row("Template", info["selected_template"] or "-")
    table.add_row("Profiles", ", ".join(info["selected_profiles"]) or "-")
    table.add_row("Phase", info["installation_phase"] or "-")
    table.add_row("Installed", "yes" if info["installation_complete"] else "no")
    console.print(table)


# ============================================================
# CHECK Command
# ============================================================

@cli.command()
@click.option("--remote", is_flag=True, help="Ask the backend host instead of checking locally")
@click.option("--verbose", "-v", "show_details", is_flag=True, help="Show detailed output")
@click.pass_context
def check(ctx, remote: bool, show_details: bool):
    """Run prerequisite checks."""
    settings = ctx.obj["settings"]
    console.print("\n[bold blue]Running Prerequisite Checks[/bold blue]\n")

    if remote:
        async def fetch():
            async with ApiClient.from_settings(settings) as api:
                return await HttpPrerequisiteService(api, settings.required_ports).run()
        result = asyncio.run(fetch())
    else:
        checker = PrerequisiteChecker(
            min_cpu_cores=settings.min_cpu_cores,
            min_memory_gb=settings.min_memory_gb,
            min_disk_gb=settings.min_disk_gb,
            required_ports=settings.required_ports,
        )
        result = checker.run_all()

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Check")
    table.add_column("Status")
    table.add_column("Details")

    for item in result.checks:
        if item.passed:
            status_text = "[green]PASS[/green]"
        elif item in result.hard_failures:
            status_text = "[red]FAIL[/red]"
        else:
            status_text = "[yellow]WARN[/yellow]"

        details = item.message
        if show_details and item.details:
            details += f" ({'; '.join(item.details[:2])})"

        table.add_row(item.name, status_text, details)

    console.print(table)

    console.print()
    if result.can_proceed:
        console.print(f"[green]{result.summary()}[/green]")
    else:
        console.print(f"[red]{result.summary()}[/red]")
        console.print("\n[bold]Please install the missing tools before running the wizard.[/bold]")
        sys.exit(1)


# ============================================================
# VERSION Commands
# ============================================================

@cli.command()
@click.option("--limit", "-n", type=int, default=None, help="Number of versions to show")
@click.pass_context
def history(ctx, limit: Optional[int]):
    """List saved configuration versions."""
    settings = ctx.obj["settings"]

    async def action(engine: WizardEngine) -> RecoveryOutcome:
        return await engine.versions.load_history(limit)

    outcome = _with_engine(settings, action)
    if not outcome.ok:
        _print_outcome(outcome)
        return

    versions = outcome.data["versions"]
    if not versions:
        console.print("[dim]No saved versions.[/dim]")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Version", style="cyan")
    table.add_column("Action")
    table.add_column("Description")
    table.add_column("Profiles", style="dim")
    table.add_column("Saved")
    for version in versions:
        table.add_row(
            version.version_id,
            version.metadata.action,
            version.metadata.description,
            ", ".join(version.profiles),
            version.age or version.metadata.timestamp,
        )
    console.print(table)


@cli.command()
@click.option("--restart", is_flag=True, help="Restart services with the restored profiles")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def undo(ctx, restart: bool, yes: bool):
    """Revert to the previous configuration version."""
    outcome = _with_engine(ctx.obj["settings"], lambda engine: engine.undo(restart), assume_yes=yes)
    _print_outcome(outcome)


@cli.command("restore-version")
@click.argument("version_id")
@click.option("--restart", is_flag=True, help="Restart services with the restored profiles")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def restore_version(ctx, version_id: str, restart: bool, yes: bool):
    """Restore a saved configuration version."""
    outcome = _with_engine(
        ctx.obj["settings"],
        lambda engine: engine.restore_version(version_id, restart),
        assume_yes=yes,
    )
    _print_outcome(outcome)


# ============================================================
# CHECKPOINT Commands
# ============================================================

@cli.command()
@click.pass_context
def checkpoints(ctx):
    """List installation checkpoints."""
    outcome = _with_engine(ctx.obj["settings"], lambda engine: engine.checkpoints.list())
    if not outcome.ok:
        _print_outcome(outcome)
        return

    items = outcome.data["checkpoints"]
    if not items:
        console.print("[dim]No checkpoints.[/dim]")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Checkpoint", style="cyan")
    table.add_column("Stage")
    table.add_column("Step")
    table.add_column("Created")
    for item in items:
        table.add_row(
            item.checkpoint_id,
            item.stage,
            str(item.data.get("current_step", "-")),
            item.timestamp,
        )
    console.print(table)


@cli.command("restore-checkpoint")
@click.argument("checkpoint_id")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def restore_checkpoint(ctx, checkpoint_id: str, yes: bool):
    """Restore the session to an installation checkpoint."""
    outcome = _with_engine(
        ctx.obj["settings"],
        lambda engine: engine.restore_checkpoint(checkpoint_id),
        assume_yes=yes,
    )
    _print_outcome(outcome)


@cli.command("delete-checkpoint")
@click.argument("checkpoint_id")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete_checkpoint(ctx, checkpoint_id: str, yes: bool):
    """Delete an installation checkpoint."""
    outcome = _with_engine(
        ctx.obj["settings"],
        lambda engine: engine.delete_checkpoint(checkpoint_id),
        assume_yes=yes,
    )
    _print_outcome(outcome)


@cli.command("start-over")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def start_over(ctx, yes: bool):
    """Discard the saved session and start fresh."""
    outcome = _with_engine(ctx.obj["settings"], lambda engine: engine.start_over(), assume_yes=yes)
    _print_outcome(outcome)


@cli.command()
@click.option("--keep-data", is_flag=True, help="Keep containers and volumes")
@click.option("--keep-config", is_flag=True, help="Keep the generated configuration")
@click.option("--delete-backups", is_flag=True, help="Also delete saved versions and checkpoints")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def reset(ctx, keep_data: bool, keep_config: bool, delete_backups: bool, yes: bool):
    """Stop services and remove the installation from the host."""
    outcome = _with_engine(
        ctx.obj["settings"],
        lambda engine: engine.reset_system(
            delete_data=not keep_data,
            delete_config=not keep_config,
            delete_backups=delete_backups,
        ),
        assume_yes=yes,
    )
    for failed in outcome.data.get("failed", []):
        console.print(f"  [red]• {failed}[/red]")
    _print_outcome(outcome)


@cli.command()
@click.pass_context
def storage(ctx):
    """Show disk space used by configuration backups."""
    outcome = _with_engine(ctx.obj["settings"], lambda engine: engine.storage_usage())
    if not outcome.ok:
        _print_outcome(outcome)
        return

    usage = outcome.data["usage"]
    table = Table(show_header=False)
    table.add_column("Field", style="dim")
    table.add_column("Value")
    table.add_row("Backups", str(usage.file_count))
    table.add_row("Size", f"{usage.total_size_mb:.2f} MB")
    table.add_row("Directory", usage.backup_dir or "-")
    console.print(table)


# ============================================================
# OPERATIONS Command
# ============================================================

@cli.command()
@click.option("--clear", "clear_log", is_flag=True, help="Delete the operation history")
@click.option("--export", "export_path", type=click.Path(dir_okay=False), help="Write the history to a JSON file")
@click.pass_context
def operations(ctx, clear_log: bool, export_path: Optional[str]):
    """Show the reconfiguration operation history."""
    log = OperationLog(ctx.obj["settings"].operations_file)

    if export_path:
        Path(export_path).write_text(json.dumps(log.export(), indent=2))
        console.print(f"[green]Exported {len(log.records)} operations to {export_path}[/green]")

    if clear_log:
        if Confirm.ask("[yellow]Clear the operation history?[/yellow]", default=False):
            log.clear()
            console.print("[green]Operation history cleared.[/green]")
        return

    if not log.records:
        console.print("[dim]No operations recorded.[/dim]")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim")
    table.add_column("Type")
    table.add_column("Title")
    table.add_column("Status")
    table.add_column("Started")
    for record in log.records:
        style = STATUS_STYLES.get(record.status.value, "cyan")
        table.add_row(
            record.id,
            record.type,
            record.title,
            f"[{style}]{record.status.value}[/{style}]",
            record.timestamp,
        )
    console.print(table)


# ============================================================
# Entry Point
# ============================================================

if __name__ == "__main__":
    cli()
