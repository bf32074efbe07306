from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer
import uvicorn
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from secwatch.config import settings
from secwatch.contracts import ScanResult
from secwatch.engine import ScanEngine, build_engine
from secwatch.flows import run_scan
from secwatch.server import create_app

app = typer.Typer(add_completion=False, no_args_is_help=True)
console = Console()

_SEVERITY_STYLES = {
    "critical": "bold red",
    "high": "red",
    "medium": "yellow",
    "low": "cyan",
    "info": "dim",
}


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


def _print_results(results: List[ScanResult]) -> int:
    table = Table(title="Alerts")
    table.add_column("Severity")
    table.add_column("Rule")
    table.add_column("Location")
    table.add_column("Message")
    total = 0
    for result in results:
        for alert in result.alerts:
            total += 1
            style = _SEVERITY_STYLES.get(alert.severity, "")
            table.add_row(
                f"[{style}]{alert.severity}[/{style}]" if style else alert.severity,
                alert.rule_id,
                f"{alert.file_path}:{alert.line}:{alert.column}",
                alert.message,
            )
    if total:
        console.print(table)
    return total


def _print_rules(engine: ScanEngine) -> None:
    table = Table(title="Rules")
    table.add_column("ID")
    table.add_column("Severity")
    table.add_column("Name")
    for rule in engine.rules():
        table.add_row(rule.id, rule.severity, rule.name)
    console.print(table)


@app.command()
def scan(
    path: Path = typer.Argument(..., help="File or directory to scan"),
    disable: Optional[List[str]] = typer.Option(None, "--disable", help="Rule id to turn off (repeatable)"),
    skip_tests: bool = typer.Option(False, "--skip-tests", help="Ignore files that look like tests"),
):
    """Scan a file or tree once and print the alerts."""
    _configure_logging(settings.log_level)
    engine = build_engine(tuple(settings.disabled_rules) + tuple(disable or ()))
    try:
        results = run_scan(path, engine, skip_tests=skip_tests)
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=2)

    total = _print_results(results)
    console.print(f"Scanned {len(results)} file(s): {total} alert(s)")
    if total:
        raise typer.Exit(code=1)


@app.command()
def rules(
    disable: Optional[List[str]] = typer.Option(None, "--disable", help="Rule id to turn off (repeatable)"),
):
    """List the registered rules."""
    _print_rules(build_engine(tuple(settings.disabled_rules) + tuple(disable or ())))


@app.command()
def watch(
    watch_dir: Optional[Path] = typer.Argument(None, help="Directory to watch (default: SECWATCH_WATCH_DIR or cwd)"),
    host: Optional[str] = typer.Option(None, "--host"),
    port: Optional[int] = typer.Option(None, "--port"),
    debounce_ms: Optional[int] = typer.Option(None, "--debounce-ms", min=0),
    disable: Optional[List[str]] = typer.Option(None, "--disable", help="Rule id to turn off (repeatable)"),
):
    """Watch a tree and serve alerts and fixes to connected clients."""
    config = settings.with_overrides(
        watch_dir=watch_dir.resolve() if watch_dir else None,
        host=host,
        port=port,
        debounce_ms=debounce_ms,
        disabled_rules=tuple(settings.disabled_rules) + tuple(disable) if disable else None,
    )
    if not config.watch_dir.is_dir():
        console.print(f"[red]Not a directory:[/red] {config.watch_dir}")
        raise typer.Exit(code=2)

    _configure_logging(config.log_level)
    console.print(
        Panel.fit(
            f"Server:   http://{config.host}:{config.port}\n"
            f"Events:   ws://{config.host}:{config.port}/ws\n"
            f"Watching: {config.watch_dir}\n"
            f"Debounce: {config.debounce_ms} ms",
            title="secwatch",
        )
    )
    uvicorn.run(create_app(config), host=config.host, port=config.port, log_level=config.log_level.lower())
