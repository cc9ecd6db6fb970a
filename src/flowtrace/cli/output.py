"""
Output formatting module for the flowtrace CLI.

This module handles formatted output for the CLI, supporting both:
- Human-readable text output with Rich formatting
- Machine-readable JSON output for automation
"""

import json
import logging
import sys
from collections.abc import Hashable
from dataclasses import asdict, dataclass

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

logger = logging.getLogger(__name__)


@dataclass
class NetworkSummary:
    """Headline numbers for a loaded flow graph."""

    segments: int
    outlets: int
    headwaters: int
    components: int
    diversions: int
    total_length: float
    max_strahler: int

    def __post_init__(self) -> None:
        """Validate summary counts."""
        for name in ("segments", "outlets", "headwaters", "components", "diversions"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative, got {getattr(self, name)}")


@dataclass
class GageResult:
    """Per-gauge outcome of a batch run."""

    gage_id: str
    gage_name: str
    segment_id: Hashable
    upstream_segments: int
    upstream_length: float
    distance_to_outlet: float


class OutputFormatter:
    """Handles CLI output formatting for text and JSON modes."""

    def __init__(self, output_format: str = "text", quiet: bool = False, verbose: bool = False) -> None:
        """
        Initialize the output formatter.

        Args:
            output_format: Output format ("text" or "json")
            quiet: Suppress progress output
            verbose: Show detailed progress information

        Raises:
            ValueError: If output_format is not "text" or "json"
        """
        if output_format not in ("text", "json"):
            raise ValueError(f"output_format must be 'text' or 'json', got '{output_format}'")

        self.output_format = output_format
        self.quiet = quiet
        self.verbose = verbose
        self.console = Console(file=sys.stdout, force_terminal=False, soft_wrap=True)

        logger.debug(f"OutputFormatter initialized: format={output_format}, quiet={quiet}, verbose={verbose}")

    def _print_json(self, payload: object) -> None:
        print(json.dumps(payload, indent=2, default=str))

    def print_traversal(self, query: str, start_id: Hashable, segment_ids: list[Hashable]) -> None:
        """Print the result of an upstream, mainstem or downstream trace."""
        if self.output_format == "json":
            self._print_json({"query": query, "start": start_id, "count": len(segment_ids), "segments": segment_ids})
            return

        self.console.print(f"[bold]{query}[/bold] from [cyan]{start_id}[/cyan]: {len(segment_ids)} segment(s)")
        for sid in segment_ids:
            self.console.print(f"  {sid}")

    def print_distances(self, distances: dict[Hashable, float], limit: int | None = None) -> None:
        """
        Print a distance table.

        Args:
            distances: Mapping of segment id to distance
            limit: Show at most this many rows in text mode (JSON is never truncated)
        """
        if self.output_format == "json":
            self._print_json([{"id": sid, "distance": dist} for sid, dist in distances.items()])
            return

        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("Segment", style="cyan")
        table.add_column("Distance", justify="right")

        rows = list(distances.items())
        shown = rows if limit is None else rows[:limit]
        for sid, dist in shown:
            table.add_row(str(sid), f"{dist:,.3f}")

        self.console.print(table)
        if len(shown) < len(rows):
            self.console.print(f"[dim]... {len(rows) - len(shown)} more row(s)[/dim]")

    def print_value(self, label: str, value: float) -> None:
        """Print a single labelled number."""
        if self.output_format == "json":
            self._print_json({label: value})
        else:
            self.console.print(f"{label}: [bold]{value:,.3f}[/bold]")

    def print_summary(self, summary: NetworkSummary) -> None:
        """Print network summary statistics."""
        if self.output_format == "json":
            self._print_json(asdict(summary))
            return

        table = Table(show_header=False, box=None)
        table.add_column("Metric", style="cyan")
        table.add_column("Value", justify="right")
        table.add_row("Segments", f"{summary.segments:,}")
        table.add_row("Outlets", f"{summary.outlets:,}")
        table.add_row("Headwaters", f"{summary.headwaters:,}")
        table.add_row("Components", f"{summary.components:,}")
        table.add_row("Diversions", f"{summary.diversions:,}")
        table.add_row("Total length", f"{summary.total_length:,.3f}")
        table.add_row("Max Strahler order", str(summary.max_strahler))
        self.console.print(Panel(table, title="Flow network", expand=False))

    def print_gage_results(self, results: list[GageResult], failed: int, failed_log: str | None) -> None:
        """Print the outcome of a gauge batch run."""
        if self.output_format == "json":
            self._print_json(
                {
                    "gages": [asdict(r) for r in results],
                    "succeeded": len(results),
                    "failed": failed,
                    "failed_log": failed_log,
                }
            )
            return

        if results:
            table = Table(show_header=True, header_style="bold cyan")
            table.add_column("Gauge", style="cyan")
            table.add_column("Name")
            table.add_column("Segment")
            table.add_column("Upstream segs", justify="right")
            table.add_column("Upstream length", justify="right")
            table.add_column("To outlet", justify="right")
            for r in results:
                table.add_row(
                    r.gage_id,
                    r.gage_name,
                    str(r.segment_id),
                    f"{r.upstream_segments:,}",
                    f"{r.upstream_length:,.3f}",
                    f"{r.distance_to_outlet:,.3f}",
                )
            self.console.print(table)

        self.console.print(f"  Total: [bold]{len(results)}[/bold] succeeded, [bold]{failed}[/bold] failed")
        if failed_log:
            self.console.print(f"  Failed gauges logged to: [yellow]{failed_log}[/yellow]")

    def print_error(self, message: str, hint: str | None = None) -> None:
        """
        Print error with optional hint.

        Args:
            message: The main error message
            hint: Optional hint for fixing the error
        """
        if self.output_format == "json":
            error_obj = {"error": message}
            if hint:
                error_obj["hint"] = hint
            self._print_json(error_obj)
        else:
            self.console.print(f"[bold red]Error:[/bold red] {message}")
            if hint:
                self.console.print(f"[bold cyan]Fix:[/bold cyan] {hint}")

        logger.error(f"Error: {message}")

    def print_progress(self, message: str, style: str = "") -> None:
        """Print progress message (only if not quiet and format is text)."""
        if self.quiet or self.output_format == "json":
            return

        if style:
            self.console.print(message, style=style)
        else:
            self.console.print(message)

    def print_verbose(self, message: str, style: str = "") -> None:
        """Print verbose message (only if verbose mode is enabled and format is text)."""
        if not self.verbose:
            return
        self.print_progress(message, style=style)
