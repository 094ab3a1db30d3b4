# src/usagestats/cli.py
"""
usagestats Command Line Interface (CLI).

This module implements the host-side terminal interface using `typer` and `rich`.
It is the only place where the analytics opt-out is enforced: when opted out,
the reporting service is never constructed.

Commands
--------
- **run**: Start the background reporting service until Ctrl-C (or `--duration`).
- **show**: Render the persisted snapshot, with the kind of every field.
- **preview**: Print the JSON payload the next upload would send, without sending it.

Usage
-----
    $ usagestats run --data-dir ./data
    $ USAGESTATS_ANALYTICS_OPT_OUT=true usagestats run
    $ usagestats show
    $ usagestats preview
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from usagestats import __version__
from usagestats.core.builder import SnapshotBuilder
from usagestats.core.contracts.snapshot import SNAPSHOT_FIELDS, Snapshot
from usagestats.core.lifecycle import AnalyticsService
from usagestats.core.merger import merge
from usagestats.core.settings import load_settings
from usagestats.core.stats import CounterStatsProvider
from usagestats.core.storage import FileStorage

# Ensure env vars (like USAGESTATS_ANALYTICS_OPT_OUT) are loaded before any logic runs
load_dotenv()

app = typer.Typer(
    help="usagestats: anonymized usage analytics for the profiling server.",
    rich_markup_mode="markdown",
)
console = Console()

DataDirOption = Annotated[
    Path | None,
    typer.Option(
        "--data-dir",
        "-d",
        file_okay=False,
        help="Storage directory (defaults to USAGESTATS_DATA_DIR or ./data).",
    ),
]


# --------------------------------------------------------------------------- #
# Helpers: Rendering
# --------------------------------------------------------------------------- #


def _render_snapshot(snapshot: Snapshot, title: str) -> None:
    """Helper: Render every field of `snapshot` as a table row."""
    table = Table(title=title, show_lines=False)
    table.add_column("Field", style="cyan")
    table.add_column("Kind")
    table.add_column("Value", justify="right")

    for spec in SNAPSHOT_FIELDS:
        kind = "[magenta]counter[/magenta]" if spec.is_counter else "[dim]gauge[/dim]"
        table.add_row(spec.name, kind, str(getattr(snapshot, spec.name)))

    console.print(table)


# --------------------------------------------------------------------------- #
# Commands
# --------------------------------------------------------------------------- #


@app.command()  # type: ignore[misc]
def run(
    data_dir: DataDirOption = None,
    analytics_opt_out: Annotated[
        bool,
        typer.Option(
            "--analytics-opt-out",
            help="Disable usage analytics (same as USAGESTATS_ANALYTICS_OPT_OUT=true).",
        ),
    ] = False,
    duration: Annotated[
        float | None,
        typer.Option(
            "--duration",
            min=0,
            help="Stop after this many seconds instead of waiting for Ctrl-C.",
        ),
    ] = None,
) -> None:
    """
    Run the background reporting service.

    Snapshots are persisted every few seconds and uploaded on a slower cadence.
    On exit, one final snapshot is persisted before the command returns.
    """
    cfg = load_settings()
    if analytics_opt_out or cfg.analytics_opt_out:
        console.print("[yellow]Usage analytics disabled (opt-out); nothing is collected.[/yellow]")
        raise typer.Exit(code=0)

    storage = FileStorage(data_dir)
    service = AnalyticsService(storage, CounterStatsProvider())

    console.print(
        Panel.fit(
            f"[bold cyan]usagestats {__version__}[/bold cyan]\n"
            f"Data: [u]{storage.base_dir}[/u]\nCollector: {cfg.analytics_url}",
            border_style="cyan",
        )
    )

    service.start()
    try:
        if duration is None:
            while True:
                time.sleep(1.0)
        else:
            time.sleep(duration)
    except KeyboardInterrupt:
        console.print("\n[dim]Interrupted.[/dim]")
    finally:
        with console.status("[cyan]Persisting final snapshot..."):
            service.stop()

    console.print(
        f"[bold green]✅ Stopped[/bold green] after {service.uploads} upload(s); "
        f"snapshot saved to {storage.snapshot_path}"
    )


@app.command()  # type: ignore[misc]
def show(data_dir: DataDirOption = None) -> None:
    """Show the persisted snapshot (the baseline of the next run)."""
    storage = FileStorage(data_dir)
    if not storage.snapshot_path.exists():
        console.print(f"[dim]No snapshot persisted yet in {storage.base_dir}.[/dim]")
    _render_snapshot(storage.read(), title=f"Persisted snapshot ({storage.snapshot_path})")


@app.command()  # type: ignore[misc]
def preview(data_dir: DataDirOption = None) -> None:
    """
    Print the JSON payload the next upload would send.

    The snapshot is built now and reconciled against the persisted baseline,
    exactly as the service does, but it is neither uploaded nor persisted.
    """
    storage = FileStorage(data_dir)
    builder = SnapshotBuilder(storage, CounterStatsProvider())
    payload = merge(storage.read(), builder.build())
    console.print_json(payload.model_dump_json())


if __name__ == "__main__":
    app()
