"""
Root Typer application for the narrative-radar CLI.

Offline commands over the dated snapshots in the reports directory.
Settings come from ``RADAR_*`` environment variables (or ``.env``); options
override them per invocation.
"""

from __future__ import annotations

import sys
from pathlib import Path

import typer
from typer import Typer

from narrative_radar.cli.utils import console, fail, print_calibration, print_comparison, print_diff, print_json
from narrative_radar.core.errors import ConfigError, RadarError
from narrative_radar.core.logging import configure_logging
from narrative_radar.core.settings import get_settings

app = Typer(
    name="narrative-radar",
    help="narrative-radar — ecosystem narrative detection and evaluation.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        try:
            v = pkg_version("narrative-radar")
        except PackageNotFoundError:
            from narrative_radar import __version__ as v
        typer.echo(f"narrative-radar {v}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="Override RADAR_LOG_LEVEL."),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit JSON log lines."),
) -> None:
    """narrative-radar CLI — calibrate, diff and compare stored snapshots."""
    settings = get_settings()
    level = log_level or ("DEBUG" if settings.debug else settings.log_level)
    configure_logging(level=level, json_format=json_logs, stream=sys.stderr)


@app.command("calibrate")
def calibrate(
    reports_dir: Path | None = typer.Option(None, "--reports-dir", "-r", help="Snapshot directory."),
    output: Path | None = typer.Option(None, "--output", "-o", help="Report path."),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Score stated confidence against narrative persistence (Brier score)."""
    from narrative_radar.eval.calibration import run_calibration
    from narrative_radar.narratives.identity import NameNormalizer

    settings = get_settings()
    reports_dir = reports_dir or settings.reports_dir
    report, path = run_calibration(
        reports_dir,
        output,
        threshold=settings.match_threshold,
        normalizer=NameNormalizer(settings.stop_words),
    )
    if json_out:
        print_json(report)
        return
    print_calibration(report)
    console.print(f"\n[dim]Full report: {path}[/dim]")


@app.command("diff")
def diff(
    previous: Path = typer.Argument(..., help="Earlier snapshot file."),
    current: Path = typer.Argument(..., help="Later snapshot file."),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show new, removed and shifted narratives between two snapshots."""
    from narrative_radar.eval.snapshots import read_snapshot
    from narrative_radar.narratives.history import compute_report_diff
    from narrative_radar.narratives.identity import NameNormalizer

    settings = get_settings()
    try:
        prev = read_snapshot(previous)
        curr = read_snapshot(current)
    except RadarError as e:
        fail(e)

    result = compute_report_diff(
        curr.narratives,
        prev.narratives,
        threshold=settings.match_threshold,
        normalizer=NameNormalizer(settings.stop_words),
    )
    if json_out:
        print_json(result)
        return
    console.print(f"[bold]{prev.date}[/bold] → [bold]{curr.date}[/bold]")
    print_diff(result)


@app.command("compare")
def compare(
    date: str = typer.Option(..., "--date", "-d", help="Snapshot date (YYYY-MM-DD)."),
    models: str = typer.Option(..., "--models", "-m", help="Two comma-separated model ids."),
    reports_dir: Path | None = typer.Option(None, "--reports-dir", "-r"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Re-cluster one snapshot with two models and compare their narratives."""
    from narrative_radar.eval.compare import comparison_output_path, run_comparison, write_comparison
    from narrative_radar.eval.snapshots import read_snapshot, snapshot_path
    from narrative_radar.llm.caller import ResilientModelCaller
    from narrative_radar.llm.ledger import CostLedger
    from narrative_radar.llm.openrouter import OpenRouterProvider

    names = [m.strip() for m in models.split(",") if m.strip()]
    if len(names) != 2:
        fail(ConfigError("Provide exactly two comma-separated model ids via --models"))

    settings = get_settings()
    reports_dir = reports_dir or settings.reports_dir
    try:
        snapshot = read_snapshot(snapshot_path(reports_dir, date))
        ledger = CostLedger.from_settings(settings)
        with OpenRouterProvider.from_settings(settings) as provider:
            caller = ResilientModelCaller.from_settings(settings, provider=provider)
            result = run_comparison(snapshot, caller, names[0], names[1], ledger=ledger)
    except RadarError as e:
        fail(e)

    path = write_comparison(result, comparison_output_path(reports_dir, date))
    if json_out:
        print_json(result)
        return
    print_comparison(result)
    console.print(f"\n[dim]Estimated spend: ${ledger.spent_usd:.4f} over {ledger.call_count} call(s)[/dim]")
    console.print(f"[dim]Full comparison: {path}[/dim]")


if __name__ == "__main__":  # pragma: no cover
    app()
