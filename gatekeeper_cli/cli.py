"""Typer-based CLI for the Gatekeeper governance engine."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from . import __version__, config
from .cli_dashboard import score_dashboard
from .config_manager import ConfigError, ProjectConfig, load_config, save_config
from .diff_engine import DiffEngine
from .models import SEVERITY_ICONS, ValidationReport
from .validation_engine import ValidationEngine
from .validators import VALIDATOR_CLASSES
from .validators.remediation import FIX_RULE_IDS, RemediationValidator

console = Console()

app = typer.Typer(
    help="🏭 Gatekeeper: multi-pass governance checks for TypeScript/JavaScript projects.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.command("score")(score_dashboard)


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"Gatekeeper CLI v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    )
):
    """Gatekeeper: architecture, security, performance and testing governance in one report."""
    pass


def configure_logging(verbose: bool) -> None:
    """Route library logging through rich when ``--verbose`` is given."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=False, show_path=False)],
        force=True,
    )


def load_project_config(root: Path) -> ProjectConfig:
    try:
        return load_config(root)
    except ConfigError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _print_summary(result: ValidationReport) -> None:
    table = Table(title="Validation Summary", show_header=True)
    table.add_column("Validator", style="cyan")
    table.add_column("Status")
    table.add_column("Findings", justify="right")
    table.add_column("Worst", justify="center")
    table.add_column("Score", justify="right")

    for name, outcome in result.outcomes:
        status = "[red]❌ failed[/red]" if outcome.has_errors else "[green]✅ passed[/green]"
        worst = ""
        if outcome.details:
            top = max(outcome.details, key=lambda f: f.severity.weight)
            worst = SEVERITY_ICONS[top.severity]
        score = f"{outcome.score:g} ({outcome.grade})" if outcome.score is not None else ""
        table.add_row(name, status, str(len(outcome.details)), worst, score)

    console.print(table)
    console.print(
        f"\n[bold]{result.validators_run}[/bold] run, "
        f"[green]{result.validators_passed}[/green] passed, "
        f"[red]{result.validators_failed}[/red] failed"
    )


@app.command("run")
def run_validators(
    project_path: Path = typer.Argument(Path("."), exists=True, file_okay=False, help="Project root to analyze."),
    only: Optional[List[str]] = typer.Option(None, "--only", "-o", help="Run only these validator keys."),
    skip: Optional[List[str]] = typer.Option(None, "--skip", "-s", help="Skip these validator keys."),
    output: Optional[Path] = typer.Option(None, "--output", help="Report file (default: GOVERNANCE_REPORT.md)."),
    strict: bool = typer.Option(False, "--strict", help="Exit with status 1 when any validator fails."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging."),
):
    """🔍 Run the validators and write the governance report.

    Example:
      gk run . --skip remediation --strict
    """
    configure_logging(verbose)
    root = project_path.resolve()
    cfg = load_project_config(root)
    engine = ValidationEngine(root, cfg)

    try:
        selected = engine.select(only, skip)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    console.print(f"\n[bold cyan]🏭 Running {len(selected)} validator(s) on {root}[/bold cyan]\n")
    result = engine.run(only, skip)
    report_path = engine.write_report(result, output)

    _print_summary(result)
    console.print(f"\n📄 Report written to [bold]{report_path}[/bold]")

    if strict and result.validators_failed:
        raise typer.Exit(1)


@app.command("list")
def list_validators():
    """📋 List registered validators in run order."""
    table = Table(title="Validators", show_header=True)
    table.add_column("#", justify="right")
    table.add_column("Key", style="cyan")
    table.add_column("Name")
    table.add_column("Description")
    for index, cls in enumerate(VALIDATOR_CLASSES, start=1):
        table.add_row(str(index), cls.key, cls.name, cls.description)
    console.print(table)


@app.command("fix")
def fix_project(
    project_path: Path = typer.Argument(Path("."), exists=True, file_okay=False, help="Project root to remediate."),
    rules: Optional[List[str]] = typer.Option(None, "--rule", "-r", help="Fix rule ids to apply (default: all)."),
    apply: bool = typer.Option(False, "--apply", help="Write the changes (backup and rollback on failure)."),
    diff: bool = typer.Option(False, "--diff", help="Show a unified diff of every change."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging."),
):
    """🔧 Analyze available automatic fixes, and optionally apply them.

    Example:
      gk fix . --rule strict-types --diff
      gk fix . --apply
    """
    configure_logging(verbose)
    root = project_path.resolve()
    cfg = load_project_config(root)

    try:
        remediation = RemediationValidator(root, cfg, rules=rules)
    except ValueError as exc:
        raise typer.BadParameter(f"{exc}. Known rules: {', '.join(FIX_RULE_IDS)}") from exc

    remediation.validate()
    plan = remediation.plan
    if plan.is_empty:
        console.print("[green]✓[/green] Nothing to fix.")
        return

    engine = DiffEngine(root)
    if diff:
        typer.echo(engine.preview_changes(plan))
    else:
        table = Table(title=plan.description, show_header=True)
        table.add_column("File", style="cyan")
        table.add_column("Change")
        table.add_column("Rules")
        for change in plan.changes:
            table.add_row(change.file_path, change.change_type, ", ".join(change.rules))
        console.print(table)

    if not apply:
        console.print("\n[dim]Analysis only. Re-run with --apply to write these changes.[/dim]")
        return

    result = engine.apply_changes(plan)
    if not result.success:
        console.print(f"[red]✗[/red] {result}")
        raise typer.Exit(1)
    console.print(f"[green]{result}[/green]")
    if result.backup_id:
        console.print(f"[dim]Backup: {result.backup_id} (undo with: gk rollback {result.backup_id} --path {root})[/dim]")


@app.command("backups")
def list_backups(
    project_path: Path = typer.Argument(Path("."), exists=True, file_okay=False, help="Project root."),
):
    """📦 List remediation backups, newest first."""
    backups = DiffEngine(project_path.resolve()).list_backups()
    if not backups:
        console.print("No backups found.")
        return

    table = Table(title=f"{len(backups)} backup(s)", show_header=True)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Description")
    table.add_column("Timestamp")
    table.add_column("Files", justify="right")
    for backup in backups:
        table.add_row(backup["backup_id"], backup["description"], backup["timestamp"], str(len(backup["files"])))
    console.print(table)


@app.command("rollback")
def rollback_changes(
    backup_id: str = typer.Argument(..., help="Backup ID to roll back to."),
    project_path: Path = typer.Option(Path("."), "--path", "-p", exists=True, file_okay=False, help="Project root."),
):
    """🔄 Restore the files an applied fix changed."""
    if DiffEngine(project_path.resolve()).rollback(backup_id):
        console.print(f"[green]✓[/green] Rolled back {backup_id}")
    else:
        console.print(f"[red]✗[/red] Backup not found: {backup_id}")
        raise typer.Exit(1)


@app.command("init")
def init_config(
    project_path: Path = typer.Argument(Path("."), exists=True, file_okay=False, help="Project root."),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing config file."),
):
    """⚙️  Write a default .gatekeeper.toml."""
    path = config.config_path_for(project_path.resolve())
    if path.exists() and not force:
        console.print(f"[yellow]⚠[/yellow] {path} already exists (use --force to overwrite).")
        raise typer.Exit(1)
    save_config(ProjectConfig(), path)
    console.print(f"[green]✓[/green] Wrote {path}")


if __name__ == "__main__":
    app()
