"""Main CLI application."""

from pathlib import Path
from typing import Optional, Dict, Any

import typer
from rich.console import Console
from rich.table import Table

from .. import app_api
from ..config.constants import DEFAULT_OBSERVATION_COLUMNS, MANDATORY_ROLES, ROLE_DEFAULTS
from ..contracts.errors import PKDataError
from ..contracts.types import Severity
from ..services.export import write_subjects
from ..validation.reporter import DiagnosticReport

app = typer.Typer(
    name="pkdata",
    help="PK dataset checker - validate and normalize NONMEM-style trial data",
    no_args_is_help=True
)
console = Console()

# Rows shown in the terminal table; the CSV report always has all of them
MAX_TABLE_ROWS = 50


def _load_config(config: Optional[Path]):
    if config:
        cfg = app_api.load_config_from_file(config)
        console.print(f"✓ Loaded configuration from {config}")
    else:
        cfg = app_api.get_default_config()
        console.print("✓ Using default configuration")
    return cfg


def _print_report(report: DiagnosticReport) -> None:
    if len(report):
        table = Table(title="Diagnostics")
        table.add_column("Severity")
        table.add_column("Component")
        table.add_column("Subject")
        table.add_column("Row")
        table.add_column("Message")

        shown = (report.errors + report.warnings)[:MAX_TABLE_ROWS]
        for d in shown:
            style = "red" if d.severity is Severity.ERROR else "yellow"
            table.add_row(
                d.severity.value,
                d.component.value,
                "" if d.subject_id is None else str(d.subject_id),
                "" if d.row_index is None else str(d.row_index),
                d.message,
                style=style,
            )
        console.print(table)
        if len(report) > len(shown):
            console.print(f"... ({len(report) - len(shown)} more diagnostics)")

    summary = report.summary()
    style = "red" if report.has_errors else "green"
    console.print(
        f"{summary['errors']} error(s), {summary['warnings']} warning(s), "
        f"{summary['subjects_affected']} subject(s) affected",
        style=style,
    )


@app.command()
def check(
    data: Path = typer.Argument(..., help="Dataset CSV file"),
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Configuration file path"
    ),
    threads: Optional[int] = typer.Option(
        None, "--threads", help="Worker threads for per-subject checks"
    ),
    no_event_data: bool = typer.Option(
        False, "--no-event-data", help="Treat every row as an observation"
    ),
    report_path: Optional[Path] = typer.Option(
        None, "--report", "-o", help="Write all diagnostics to this CSV file"
    ),
):
    """Check a dataset and report every diagnostic."""

    try:
        cfg = _load_config(config)

        options: Dict[str, Any] = {}
        if threads is not None:
            options["threads"] = threads
        if no_event_data:
            options["event_data"] = False

        with console.status("Checking dataset..."):
            result = app_api.read_pkdata(data, config=cfg, **options)

        _print_report(result.report)

        if report_path:
            report_path.parent.mkdir(parents=True, exist_ok=True)
            result.report.to_frame().to_csv(report_path, index=False)
            console.print(f"✓ Report saved to {report_path}")

    except PKDataError as e:
        console.print(f"❌ {e.message}", style="red")
        if e.details:
            console.print(f"Details: {e.details}")
        raise typer.Exit(1)

    if not result.ok:
        raise typer.Exit(1)
    console.print(f"✅ {len(result.subjects)} subject(s) ready", style="green")


@app.command()
def export(
    data: Path = typer.Argument(..., help="Dataset CSV file"),
    output: Path = typer.Argument(..., help="Output CSV file"),
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Configuration file path"
    ),
    expand_doses: bool = typer.Option(
        False, "--expand-doses", help="Write one row per administration"
    ),
):
    """Validate a dataset and write its subjects in long format."""

    try:
        cfg = _load_config(config)
        with console.status("Checking dataset..."):
            result = app_api.read_pkdata(data, config=cfg)

        if not result.ok:
            _print_report(result.report)
            console.print("❌ Dataset has errors; nothing written", style="red")
            raise typer.Exit(1)

        write_subjects(result.subjects, output, expand_doses=expand_doses)
        if result.report.warnings:
            console.print(f"⚠ {len(result.report.warnings)} warning(s)", style="yellow")
        console.print(f"✅ Exported {len(result.subjects)} subject(s) to {output}", style="green")

    except PKDataError as e:
        console.print(f"❌ {e.message}", style="red")
        raise typer.Exit(1)


@app.command()
def validate(
    config: Path = typer.Argument(..., help="Configuration file to validate")
):
    """Validate a configuration file."""

    try:
        app_api.load_config_from_file(config)
        console.print(f"✅ Configuration {config} is valid", style="green")

    except PKDataError as e:
        console.print(f"❌ {e.message}", style="red")
        raise typer.Exit(1)


@app.command()
def info():
    """Display package information and recognized column roles."""

    from .. import __version__

    console.print(f"pkdata v{__version__}")
    console.print()

    table = Table(title="Column roles")
    table.add_column("Role")
    table.add_column("Default column")
    table.add_column("Required")
    for role, column in ROLE_DEFAULTS.items():
        table.add_row(role, column, "yes" if role in MANDATORY_ROLES else "")
    table.add_row("observations", ", ".join(DEFAULT_OBSERVATION_COLUMNS), "")
    console.print(table)

    defaults = app_api.get_default_config()
    console.print(f"Dose code: {defaults.events.dose_code}, observation code: {defaults.events.observation_code}")
    console.print(f"Missing markers: {', '.join(repr(v) for v in defaults.table.missing_values)}")


if __name__ == "__main__":
    app()
