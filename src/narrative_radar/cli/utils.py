"""
CLI utility helpers — output formatting and error reporting.
"""

from __future__ import annotations

import json
from typing import Any

import typer
from pydantic import BaseModel
from rich.console import Console
from rich.table import Table

from narrative_radar.core.errors import RadarError
from narrative_radar.eval.calibration import CalibrationReport
from narrative_radar.eval.compare import ModelComparison
from narrative_radar.narratives.models import ReportDiff

console = Console()
err_console = Console(stderr=True)


def print_json(data: Any) -> None:
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json", by_alias=True)
    console.print_json(json.dumps(data, default=str))


def fail(error: Exception) -> None:
    """Print an error and exit with status 1."""
    if isinstance(error, RadarError):
        err_console.print(f"[bold red]Error[/bold red] ({error.category.value}): {error.message}")
    else:
        err_console.print(f"[bold red]Error[/bold red]: {error}")
    raise typer.Exit(code=1)


def print_calibration(report: CalibrationReport) -> None:
    console.print(
        f"[bold]Calibration[/bold] over {report.report_count} report(s) "
        f"([cyan]{report.date_range.from_date}[/cyan] to [cyan]{report.date_range.to_date}[/cyan])"
    )
    if report.report_count < 2:
        console.print("[yellow]Need at least 2 reports for calibration.[/yellow]")
        return

    console.print(f"  Brier score: [bold]{report.brier_score:.4f}[/bold] (lower = better calibrated)")
    console.print(f"  Overall persistence: {report.overall_persistence_rate:.1%}")

    table = Table(title="Confidence buckets", pad_edge=False)
    table.add_column("Confidence")
    table.add_column("Count", justify="right")
    table.add_column("Persisted", justify="right")
    table.add_column("Rate", justify="right")
    table.add_column("Advanced", justify="right")
    table.add_column("Momentum acc.", justify="right")
    for b in report.populated_buckets:
        table.add_row(
            f"{b.range[0]}-{b.range[1]}%",
            str(b.total),
            str(b.persisted),
            f"{b.persistence_rate:.1%}",
            str(b.stage_advanced),
            f"{b.momentum_accuracy:.1%}",
        )
    console.print(table)


def print_diff(diff: ReportDiff) -> None:
    if diff.is_empty:
        console.print("[dim]No changes.[/dim]")
        return
    for name in diff.new_narratives:
        console.print(f"  [green]+[/green] {name}")
    for name in diff.removed_narratives:
        console.print(f"  [red]-[/red] {name}")
    for t in diff.stage_transitions:
        console.print(f"  [cyan]~[/cyan] {t.name}: {t.from_stage.value} → {t.to_stage.value}")
    for c in diff.confidence_changes:
        console.print(f"  [yellow]Δ[/yellow] {c.name}: {c.delta:+g}")


def print_comparison(comparison: ModelComparison) -> None:
    a = comparison.analysis
    run_a, run_b = comparison.models
    console.print(f"[bold]Comparison[/bold] on {comparison.date}")
    console.print(f"  Narrative overlap: {a.narrative_overlap:.1%}")
    console.print(f"  Stage agreement: {a.stage_agreement:.1%}")
    console.print(f"  Avg confidence delta: {a.avg_confidence_delta:.1f} points")

    table = Table(pad_edge=False)
    table.add_column("Model")
    table.add_column("Narratives", justify="right")
    table.add_column("Tokens", justify="right")
    table.add_column("Latency", justify="right")
    table.add_column("Cost", justify="right")
    for run in (run_a, run_b):
        table.add_row(
            run.model,
            str(len(run.narratives)),
            str(run.tokens_used),
            f"{run.latency_ms:.0f}ms",
            f"${run.cost_usd:.4f}",
        )
    console.print(table)
    if a.unique_to_a:
        console.print(f"  Unique to A: {', '.join(a.unique_to_a)}")
    if a.unique_to_b:
        console.print(f"  Unique to B: {', '.join(a.unique_to_b)}")
