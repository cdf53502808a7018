from __future__ import annotations

from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Optional

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from sketchbench.domain.models import (
    BenchmarkReport,
    Measurement,
    MeasurementStatus,
    OperationName,
)

_STATUS_STYLES = {
    MeasurementStatus.OK: "green",
    MeasurementStatus.FAILED: "bold red",
    MeasurementStatus.SKIPPED: "yellow",
}


def group_by_operation(
    measurements: Iterable[Measurement],
) -> "OrderedDict[OperationName, List[Measurement]]":
    """
    Group measurements by operation in run order, keeping strategy order within each.

    Operations with no measurements are omitted.
    """
    grouped: "OrderedDict[OperationName, List[Measurement]]" = OrderedDict(
        (operation, []) for operation in OperationName
    )
    for measurement in measurements:
        grouped[measurement.operation].append(measurement)
    return OrderedDict((op, items) for op, items in grouped.items() if items)


def format_bytes(num_bytes: int) -> str:
    """Human-readable byte count (B, KB, MB, GB; powers of 1024)."""
    value = float(num_bytes)
    for unit in ("B", "KB", "MB"):
        if abs(value) < 1024:
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.2f} {unit}"
        value /= 1024
    return f"{value:.2f} GB"


def _format_value(measurement: Measurement) -> str:
    return escape(_plain_value(measurement))


def _plain_value(measurement: Measurement) -> str:
    if measurement.status is not MeasurementStatus.OK:
        return measurement.error or "-"
    value: Any = measurement.value
    if value is None:
        return "-"
    if isinstance(value, bool):
        return "yes" if value else "no"
    if isinstance(value, int):
        return f"{value:,}"
    if isinstance(value, (list, tuple)):
        return ", ".join(str(item) for item in value) if value else "(empty)"
    return str(value)


def _operation_table(operation: OperationName, measurements: List[Measurement]) -> Table:
    table = Table(title=operation.label, box=box.ROUNDED, title_justify="left")
    table.add_column("Strategy", style="cyan", no_wrap=True)
    table.add_column("Elapsed (ms)", justify="right", style="bold green")
    if operation is OperationName.INITIALIZE:
        table.add_column("Peak RSS (MB)", justify="right", style="yellow")
    table.add_column("Result", style="magenta", overflow="fold")
    table.add_column("Status", justify="center")

    for m in measurements:
        elapsed = "-"
        if m.status is not MeasurementStatus.SKIPPED:
            elapsed = f"{m.duration_seconds * 1000:,.3f}"
        status = f"[{_STATUS_STYLES[m.status]}]{m.status.value}[/]"
        row = [escape(m.strategy), elapsed]
        if operation is OperationName.INITIALIZE:
            row.append(f"{m.peak_rss_bytes / (1024 * 1024):.2f}" if m.peak_rss_bytes else "N/A")
        row.extend([_format_value(m), status])
        table.add_row(*row)
    return table


def _sizes_table(sizes: Dict[str, int]) -> Table:
    table = Table(title="Sizes", box=box.ROUNDED, title_justify="left")
    table.add_column("Structure", style="cyan", no_wrap=True)
    table.add_column("Bytes", justify="right", style="magenta")
    table.add_column("Size", justify="right", style="yellow")
    for label, num_bytes in sizes.items():
        table.add_row(escape(label), f"{num_bytes:,}", format_bytes(num_bytes))
    return table


def print_report(report: BenchmarkReport, console: Optional[Console] = None) -> None:
    """
    Render a finished benchmark report as rich tables.

    One table per operation (each strategy's elapsed time under its name),
    followed by the merged size listing. Only call this after the run is over:
    it never touches the backends.
    """
    console = console or Console()

    if not report.measurements:
        console.print("[yellow]No measurements to display.[/yellow]")
        return

    console.rule("[bold]sketchbench results[/bold]")
    console.print(
        f"Corpus: {report.corpus_tokens:,} tokens, {report.corpus_distinct:,} distinct │ "
        f"probe='{escape(report.probe_token)}' │ k={report.top_k}"
    )

    grouped = group_by_operation(report.measurements)
    for operation, measurements in grouped.items():
        console.print(_operation_table(operation, measurements))

    if report.sizes:
        console.print(_sizes_table(report.sizes))
    else:
        console.print("[yellow]No size entries were reported.[/yellow]")

    failures = report.failures()
    if failures:
        console.print(
            f"[bold red]{len(failures)} operation(s) failed[/bold red]: "
            + ", ".join(f"{m.strategy}.{m.operation.value}" for m in failures)
        )


__all__ = ["format_bytes", "group_by_operation", "print_report"]
