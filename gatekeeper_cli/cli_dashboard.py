"""Score dashboard for the security, performance and testing passes."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, TextColumn
from rich.table import Table

from .config_manager import ConfigError, load_config
from .models import ValidatorResult
from .scoring import grade
from .validation_engine import ValidationEngine

console = Console()

SCORED_KEYS = ("security", "performance", "testing")


def _render_bar(percentage: float) -> str:
    """Render a simple text progress bar."""
    filled = int(percentage / 10)
    empty = 10 - filled
    bar = "█" * filled + "░" * empty
    return f"[{_score_color(percentage)}]{bar}[/{_score_color(percentage)}] {percentage:.0f}%"


def _score_color(score: float) -> str:
    if score >= 80:
        return "green"
    elif score >= 60:
        return "yellow"
    return "red"


def _category_rows(result: ValidatorResult) -> List[Dict[str, Any]]:
    metrics = result.metrics or {}
    rows = list(metrics.get("categories", []))
    vitals = metrics.get("web_vitals")
    if vitals:
        rows = list(vitals.get("categories", [])) + rows
    return rows


def score_dashboard(
    project_path: Path = typer.Argument(Path("."), exists=True, file_okay=False, help="Project root to score."),
):
    """🏆 Security, performance and testing scores with grades.

    Example:
      gk score .
    """
    root = project_path.resolve()
    try:
        cfg = load_config(root)
    except ConfigError as exc:
        raise typer.BadParameter(str(exc)) from exc

    engine = ValidationEngine(root, cfg)
    selected = engine.select(only=SCORED_KEYS)
    console.print(f"\n[bold cyan]🏆 Scoring {root}...[/bold cyan]\n")

    outcomes = []
    with Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        console=console,
    ) as progress:
        task = progress.add_task("[cyan]Running scored validators...", total=len(selected))
        for validator in selected:
            progress.update(task, description=f"[cyan]Analyzing {validator.name.lower()}...")
            outcomes.append((validator.name, engine.run_validator(validator)))
            progress.advance(task)

    scored = [(name, r) for name, r in outcomes if r.score is not None]
    if scored:
        overall = sum(r.score for _, r in scored) / len(scored)
        color = _score_color(overall)
        console.print(
            Panel.fit(
                f"[bold {color}]{overall:.0f}/100  {grade(overall)}[/bold {color}]",
                title="[bold]Overall Governance Score[/bold]",
                border_style=color,
            )
        )

    table = Table(title="\nScores", show_header=True, show_lines=False)
    table.add_column("Area", style="cyan", width=14)
    table.add_column("Score", width=24)
    table.add_column("Grade", justify="center")
    table.add_column("Findings", justify="right")
    for name, result in outcomes:
        if result.score is None:
            table.add_row(name, "[red]not scored[/red]", "-", str(len(result.details)))
        else:
            table.add_row(name, _render_bar(result.score), result.grade, str(len(result.details)))
    console.print(table)

    for name, result in scored:
        rows = _category_rows(result)
        if not rows:
            continue
        breakdown = Table(title=f"\n{name} by category", show_header=True)
        breakdown.add_column("Category", style="cyan")
        breakdown.add_column("Score", width=24)
        breakdown.add_column("Grade", justify="center")
        breakdown.add_column("Issues", justify="right")
        for row in rows:
            breakdown.add_row(row["label"], _render_bar(row["normalized"]), row["grade"], str(row["issues"]))
        console.print(breakdown)

    failures = [f for _, r in outcomes for f in r.details if f.category == "engine"]
    if failures:
        console.print(
            Panel(
                "\n".join(f"  • {f.message}" for f in failures),
                title="[bold red]Validator errors[/bold red]",
                border_style="red",
            )
        )
