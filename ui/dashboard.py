"""
Rich-based terminal dashboard for measurement results.

All formatting helpers live in ``meter.rate`` -- this module only does
presentation via the ``rich`` library.
"""
from __future__ import annotations

from typing import Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from meter.rate import format_latency, format_speed
from meter.sequencer import MeasurementPhase, MeasurementReport, MeasurementSnapshot

console = Console()
err_console = Console(stderr=True)

STATUS_TEXT = {
    MeasurementPhase.IDLE: "Ready",
    MeasurementPhase.PING: "Testing Latency...",
    MeasurementPhase.DOWNLOAD: "Downloading Target File...",
    MeasurementPhase.UPLOAD: "Uploading Data...",
    MeasurementPhase.COMPLETE: "Analysis Complete",
}


# ---------------------------------------------------------------------------
# Print helpers
# ---------------------------------------------------------------------------

def print_header(base_url: str) -> None:
    console.print()
    console.print(
        Panel.fit(
            "[bold cyan]NET.SPEED[/bold cyan]\n"
            f"[dim]Ping, download and upload against {base_url}[/dim]",
            border_style="cyan",
        )
    )
    console.print()


def result_table(report: MeasurementReport) -> Table:
    """Three result boxes side by side."""
    grid = Table.grid(expand=False, padding=(0, 1))
    cells = []
    for label, value in (
        ("Ping", format_latency(report.ping_ms)),
        ("Download", format_speed(report.download_mbps)),
        ("Upload", format_speed(report.upload_mbps)),
    ):
        cells.append(
            Panel(
                f"[bold]{value}[/bold]",
                title=f"[dim]{label.upper()}[/dim]",
                box=box.ROUNDED,
                border_style="grey37",
                width=20,
            )
        )
        grid.add_column(justify="center")
    grid.add_row(*cells)
    return grid


def print_final_results(report: MeasurementReport, base_url: str) -> None:
    console.print()
    console.print(
        Panel.fit(
            result_table(report),
            title="[bold]Results[/bold]",
            subtitle=f"[dim]{base_url}[/dim]",
            border_style="cyan",
        )
    )
    console.print()


# ---------------------------------------------------------------------------
# Live gauge
# ---------------------------------------------------------------------------

class GaugeDisplay:
    """
    Sequencer subscriber that mirrors the live sample onto a ``rich``
    progress bar (0-100), with the phase status as its description.
    """

    def __init__(self) -> None:
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold]{task.description:<28}"),
            BarColumn(bar_width=40),
            TextColumn("[bold cyan]{task.fields[value]:>12}[/bold cyan]"),
            TimeElapsedColumn(),
            console=console,
            transient=True,
        )
        self._task_id: Optional[TaskID] = None
        self._phase: Optional[MeasurementPhase] = None

    def start(self) -> None:
        self.progress.start()
        self._task_id = self.progress.add_task(STATUS_TEXT[MeasurementPhase.IDLE], total=100, value="")
        self._phase = MeasurementPhase.IDLE

    def update(self, snapshot: MeasurementSnapshot) -> None:
        if self._task_id is None:
            return

        if snapshot.phase is not self._phase:
            self._announce(snapshot)
            self._phase = snapshot.phase

        self.progress.update(
            self._task_id,
            description=STATUS_TEXT[snapshot.phase],
            completed=snapshot.sample,
            value=_live_value(snapshot),
        )

    def stop(self) -> None:
        self.progress.stop()
        self._task_id = None

    def _announce(self, snapshot: MeasurementSnapshot) -> None:
        """Print the finished phase's result when the next one begins."""
        report = snapshot.report
        if self._phase is MeasurementPhase.PING:
            self.progress.console.print(f"  Ping      [bold green]{format_latency(report.ping_ms)}[/bold green]")
        elif self._phase is MeasurementPhase.DOWNLOAD:
            self.progress.console.print(f"  Download  [bold blue]{format_speed(report.download_mbps)}[/bold blue]")
        elif self._phase is MeasurementPhase.UPLOAD:
            self.progress.console.print(f"  Upload    [bold magenta]{format_speed(report.upload_mbps)}[/bold magenta]")


def _live_value(snapshot: MeasurementSnapshot) -> str:
    report = snapshot.report
    if snapshot.phase is MeasurementPhase.DOWNLOAD and report.download_mbps:
        return format_speed(report.download_mbps)
    if snapshot.phase is MeasurementPhase.UPLOAD and report.upload_mbps:
        return format_speed(report.upload_mbps)
    if snapshot.phase in (MeasurementPhase.DOWNLOAD, MeasurementPhase.UPLOAD):
        return "..."
    return ""
