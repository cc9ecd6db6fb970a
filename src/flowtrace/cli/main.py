"""
Main Typer CLI application for flowtrace.

This module provides the command-line interface with these subcommands:
- upstream / mainstem / downstream: network traversals from a segment
- distance: distance from every segment to its outlet
- between: along-network distance between two segments
- summary: headline statistics for the network
- gages: batch report for a list of gauges
"""

import logging
import sys
import time
from collections.abc import Callable, Hashable
from pathlib import Path
from typing import Annotated

import typer
from pydantic import ValidationError

from flowtrace.cli.output import GageResult, NetworkSummary, OutputFormatter
from flowtrace.config import FlowtraceConfig, load_config, load_gages
from flowtrace.core import (
    AmbiguousOutletError,
    FlowGraph,
    GraphIntegrityError,
    InvalidInputError,
    MeasureFrom,
    NetworkData,
    NotFoundError,
    OutletPolicy,
    OutputWriter,
    distance_to_outlet,
    downstream_trace,
    load_network,
    mainstem_trace,
    path_distance,
    stream_orders,
    subset_frame,
    upstream_trace,
)
from flowtrace.logging_config import log_query, setup_logging

# Initialize Typer app
app = typer.Typer(
    name="flowtrace",
    help="River network traversal and path-distance queries",
    no_args_is_help=True,
    add_completion=False,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

ConfigArg = Annotated[
    Path,
    typer.Argument(
        help="Path to configuration file (flowtrace.toml)",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
]
OutputDirOpt = Annotated[
    Path | None,
    typer.Option("--output", "-o", help="Write results to this directory (overrides config output_dir)"),
]
FormatOpt = Annotated[str, typer.Option("--output-format", help="Output format: text or json")]
QuietOpt = Annotated[bool, typer.Option("--quiet", "-q", help="Suppress progress output")]
VerboseOpt = Annotated[bool, typer.Option("--verbose", "-v", help="Show detailed progress")]
ForceOpt = Annotated[bool, typer.Option("--force", "-f", help="Overwrite existing output files")]
MaxDistanceOpt = Annotated[
    float | None,
    typer.Option("--max-distance", help="Stop the trace beyond this along-network distance", min=0),
]


def _setup_logging(verbose: bool, quiet: bool) -> None:
    """
    Configure logging level based on verbosity flags.

    Args:
        verbose: Enable debug logging
        quiet: Suppress all logging except errors
    """
    if quiet:
        logging.getLogger().setLevel(logging.ERROR)
    elif verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    else:
        logging.getLogger().setLevel(logging.WARNING)


def _make_formatter(output_format: str, quiet: bool, verbose: bool) -> OutputFormatter:
    if output_format not in ("text", "json"):
        OutputFormatter().print_error(f"Invalid output format '{output_format}'. Must be 'text' or 'json'.")
        raise typer.Exit(2)
    return OutputFormatter(output_format=output_format, quiet=quiet, verbose=verbose)


def _load(config_file: Path, out: OutputFormatter) -> tuple[FlowtraceConfig, NetworkData]:
    """Load the configuration and build the flow graph, mapping failures to exit codes."""
    try:
        config = load_config(config_file)
    except (FileNotFoundError, ValueError, ValidationError) as e:
        out.print_error(f"Invalid configuration: {e}", hint=f"Check {config_file}")
        raise typer.Exit(2) from None

    network = config.network
    diversions = config.diversions
    out.print_verbose(f"Loading network from {network.path}", style="cyan")

    try:
        data = load_network(
            Path(network.path),
            topology=network.topology.value,
            id_field=network.id_field,
            length_field=network.length_field,
            to_field=network.to_field,
            order_field=network.order_field,
            up_fields=network.up_fields,
            from_node_field=network.from_node_field,
            to_node_field=network.to_node_field,
            layer=network.layer,
            diversions_path=Path(diversions.path) if diversions else None,
            diversion_from_field=diversions.from_field if diversions else "FROMCOMID",
            diversion_to_field=diversions.to_field if diversions else "TOCOMID",
            terminal_ids=network.terminal_values,
            validate=config.settings.validate_graph,
        )
    except FileNotFoundError as e:
        out.print_error(str(e), hint="Fix the network path in the configuration file")
        raise typer.Exit(2) from None
    except InvalidInputError as e:
        out.print_error(f"Invalid network table: {e}")
        raise typer.Exit(2) from None
    except GraphIntegrityError as e:
        out.print_error(str(e), hint="Repair the flow relation or set validate_graph = false")
        raise typer.Exit(1) from None

    out.print_verbose(f"Loaded {len(data.graph)} segments")
    return config, data


def _segment_id(graph: FlowGraph, raw: str) -> Hashable:
    """Match a command-line identifier to the graph's identifier type."""
    if raw in graph:
        return raw
    for convert in (int, float):
        try:
            value = convert(raw)
        except ValueError:
            continue
        if value in graph:
            return value
    return raw


def _exit_for(error: Exception, out: OutputFormatter) -> typer.Exit:
    """Report a query error and return the exit to raise."""
    if isinstance(error, NotFoundError):
        out.print_error(str(error), hint="Check the segment identifier")
        return typer.Exit(2)
    if isinstance(error, InvalidInputError):
        out.print_error(str(error))
        return typer.Exit(2)
    if isinstance(error, AmbiguousOutletError):
        out.print_error(str(error), hint="Pass --outlet, use --policy per_component, or narrow the network table")
        return typer.Exit(1)
    out.print_error(str(error))
    return typer.Exit(1)


def _error_code(error: Exception) -> str:
    return {
        NotFoundError: "NOT_FOUND",
        InvalidInputError: "INVALID_INPUT",
        GraphIntegrityError: "CYCLE",
        AmbiguousOutletError: "AMBIGUOUS_OUTLET",
    }.get(type(error), "FAILED")


def _writer(
    config: FlowtraceConfig, output: Path | None, force: bool, name: str, out: OutputFormatter
) -> OutputWriter:
    writer = OutputWriter(
        output if output is not None else Path(config.settings.output_dir),
        output_format=config.settings.output_format,
    )
    if writer.check_output_exists(name) and not force:
        out.print_error(
            f"Output already exists for '{name}' in {writer.output_dir}", hint="Use --force to overwrite"
        )
        raise typer.Exit(2)
    return writer


def _run_trace(
    query: str,
    trace: Callable[[FlowGraph, Hashable], list[Hashable]],
    config_file: Path,
    segment: str,
    output: Path | None,
    output_format: str,
    quiet: bool,
    verbose: bool,
    force: bool,
) -> None:
    _setup_logging(verbose=verbose, quiet=quiet)
    out = _make_formatter(output_format, quiet, verbose)
    config, data = _load(config_file, out)
    query_log = setup_logging(stream=sys.stderr) if verbose else None

    start_id = _segment_id(data.graph, segment)
    started = time.perf_counter()
    try:
        result = trace(data.graph, start_id)
    except (NotFoundError, InvalidInputError, GraphIntegrityError) as e:
        if query_log:
            log_query(query_log, query, start_id, "ERROR", time.perf_counter() - started, error_code=_error_code(e))
        raise _exit_for(e, out) from None

    if query_log:
        log_query(query_log, query, start_id, "SUCCESS", time.perf_counter() - started, result_size=len(result))

    out.print_traversal(query, start_id, result)

    if output is not None:
        name = f"{query}_{start_id}"
        writer = _writer(config, output, force, name, out)
        try:
            path = writer.write_segments(name, subset_frame(data.frame, result, data.id_field))
        except ValueError as e:
            out.print_error(str(e))
            raise typer.Exit(2) from None
        out.print_progress(f"[green]✓[/green] Wrote {path}")


@app.command("upstream")
def upstream_command(
    config_file: ConfigArg,
    segment: Annotated[str, typer.Argument(help="Segment to trace from")],
    max_distance: MaxDistanceOpt = None,
    output: OutputDirOpt = None,
    output_format: FormatOpt = "text",
    quiet: QuietOpt = False,
    verbose: VerboseOpt = False,
    force: ForceOpt = False,
) -> None:
    """
    List SEGMENT and every segment upstream of it (the full tributary network).

    \b
    EXAMPLES:
        flowtrace upstream flowtrace.toml 41000001
        flowtrace upstream flowtrace.toml 41000001 --max-distance 25
        flowtrace upstream flowtrace.toml 41000001 -o ./output
    """
    _run_trace(
        "upstream",
        lambda g, s: upstream_trace(g, s, max_distance=max_distance),
        config_file,
        segment,
        output,
        output_format,
        quiet,
        verbose,
        force,
    )


@app.command("mainstem")
def mainstem_command(
    config_file: ConfigArg,
    segment: Annotated[str, typer.Argument(help="Segment to trace from")],
    max_distance: MaxDistanceOpt = None,
    output: OutputDirOpt = None,
    output_format: FormatOpt = "text",
    quiet: QuietOpt = False,
    verbose: VerboseOpt = False,
    force: ForceOpt = False,
) -> None:
    """
    Follow the upstream mainstem from SEGMENT to its headwater.

    \b
    EXAMPLE:
        flowtrace mainstem flowtrace.toml 41000001
    """
    _run_trace(
        "mainstem",
        lambda g, s: mainstem_trace(g, s, max_distance=max_distance),
        config_file,
        segment,
        output,
        output_format,
        quiet,
        verbose,
        force,
    )


@app.command("downstream")
def downstream_command(
    config_file: ConfigArg,
    segment: Annotated[str, typer.Argument(help="Segment to trace from")],
    diversions: Annotated[
        bool,
        typer.Option("--diversions", help="Also follow diversion edges"),
    ] = False,
    max_distance: MaxDistanceOpt = None,
    output: OutputDirOpt = None,
    output_format: FormatOpt = "text",
    quiet: QuietOpt = False,
    verbose: VerboseOpt = False,
    force: ForceOpt = False,
) -> None:
    """
    Follow the flow from SEGMENT down to the outlet.

    \b
    EXAMPLES:
        flowtrace downstream flowtrace.toml 41000007
        flowtrace downstream flowtrace.toml 41000007 --diversions
    """
    _run_trace(
        "downstream_diversions" if diversions else "downstream",
        lambda g, s: downstream_trace(g, s, include_diversions=diversions, max_distance=max_distance),
        config_file,
        segment,
        output,
        output_format,
        quiet,
        verbose,
        force,
    )


@app.command("distance")
def distance_command(
    config_file: ConfigArg,
    policy: Annotated[
        OutletPolicy | None,
        typer.Option("--policy", help="strict or per_component (overrides config)"),
    ] = None,
    measure_from: Annotated[
        MeasureFrom | None,
        typer.Option("--measure-from", help="upstream or downstream end of each segment (overrides config)"),
    ] = None,
    outlet: Annotated[
        str | None,
        typer.Option("--outlet", help="Only measure the network draining to this outlet"),
    ] = None,
    limit: Annotated[
        int | None,
        typer.Option("--limit", help="Show at most N rows in text mode", min=1),
    ] = 50,
    output: OutputDirOpt = None,
    output_format: FormatOpt = "text",
    quiet: QuietOpt = False,
    verbose: VerboseOpt = False,
    force: ForceOpt = False,
) -> None:
    """
    Compute the along-network distance from every segment to its outlet.

    \b
    EXAMPLES:
        flowtrace distance flowtrace.toml
        flowtrace distance flowtrace.toml --policy per_component
        flowtrace distance flowtrace.toml --outlet 41000001 -o ./output
    """
    _setup_logging(verbose=verbose, quiet=quiet)
    out = _make_formatter(output_format, quiet, verbose)
    config, data = _load(config_file, out)

    outlet_id = _segment_id(data.graph, outlet) if outlet is not None else None
    try:
        distances = distance_to_outlet(
            data.graph,
            policy=policy or config.settings.outlet_policy,
            measure_from=measure_from or config.settings.measure_from,
            outlet_id=outlet_id,
        )
    except (NotFoundError, AmbiguousOutletError, GraphIntegrityError) as e:
        raise _exit_for(e, out) from None

    out.print_distances(distances, limit=limit)

    if output is not None:
        name = f"pathlength_{outlet_id}" if outlet_id is not None else "pathlength"
        writer = _writer(config, output, force, name, out)
        path = writer.write_distances(name, distances, id_field=data.id_field)
        out.print_progress(f"[green]✓[/green] Wrote {path}")


@app.command("between")
def between_command(
    config_file: ConfigArg,
    from_segment: Annotated[str, typer.Argument(help="Upstream segment")],
    to_segment: Annotated[str, typer.Argument(help="Downstream segment")],
    output_format: FormatOpt = "text",
    quiet: QuietOpt = False,
    verbose: VerboseOpt = False,
) -> None:
    """
    Measure the river distance from FROM_SEGMENT down to TO_SEGMENT.

    \b
    EXAMPLE:
        flowtrace between flowtrace.toml 41000007 41000001
    """
    _setup_logging(verbose=verbose, quiet=quiet)
    out = _make_formatter(output_format, quiet, verbose)
    _, data = _load(config_file, out)

    try:
        value = path_distance(
            data.graph,
            _segment_id(data.graph, from_segment),
            _segment_id(data.graph, to_segment),
        )
    except (NotFoundError, GraphIntegrityError) as e:
        raise _exit_for(e, out) from None

    out.print_value("distance", value)


@app.command("summary")
def summary_command(
    config_file: ConfigArg,
    output_format: FormatOpt = "text",
    quiet: QuietOpt = False,
    verbose: VerboseOpt = False,
) -> None:
    """
    Show headline statistics for the network.

    \b
    EXAMPLE:
        flowtrace summary flowtrace.toml
    """
    _setup_logging(verbose=verbose, quiet=quiet)
    out = _make_formatter(output_format, quiet, verbose)
    _, data = _load(config_file, out)
    graph = data.graph

    try:
        strahler, _ = stream_orders(graph)
    except GraphIntegrityError as e:
        raise _exit_for(e, out) from None

    summary = NetworkSummary(
        segments=len(graph),
        outlets=len(graph.outlets()),
        headwaters=len(graph.headwaters()),
        components=len(graph.components()),
        diversions=graph.diversion_count,
        total_length=sum(graph.length(sid) for sid in graph),
        max_strahler=max(strahler.values(), default=0),
    )
    out.print_summary(summary)


@app.command("gages")
def gages_command(
    config_file: ConfigArg,
    gages_file: Annotated[
        Path | None,
        typer.Option("--gages", help="Gauges file (overrides config)"),
    ] = None,
    max_fails: Annotated[
        int | None,
        typer.Option("--max-fails", help="Stop after N failures (overrides config)", min=1),
    ] = None,
    output: OutputDirOpt = None,
    output_format: FormatOpt = "text",
    quiet: QuietOpt = False,
    verbose: VerboseOpt = False,
    force: ForceOpt = False,
) -> None:
    """
    Report upstream network size and outlet distance for every gauge.

    The report is always written to the output directory: settings.output_dir
    from the configuration, or -o when given. A second run into the same
    directory stops with exit code 2 unless --force is passed. Gauges whose
    segment is missing from the network are logged to FAILED.csv there too.

    \b
    GAUGES FILE FORMAT (gauges.toml):
        [[gages]]
        gage_id = "01013500"       # Required
        segment_id = 41000001      # Required
        gage_name = "Fish River"   # Optional

    \b
    EXIT CODES:
        0 all gauges succeeded, 1 partial success, 2 all failed or bad input
    """
    _setup_logging(verbose=verbose, quiet=quiet)
    out = _make_formatter(output_format, quiet, verbose)
    config, data = _load(config_file, out)
    graph = data.graph

    gages_path = gages_file or (Path(config.gages) if config.gages else None)
    if gages_path is None:
        out.print_error("No gauges file given", hint="Pass --gages or set 'gages' in the configuration file")
        raise typer.Exit(2)

    try:
        gages = load_gages(gages_path)
    except (FileNotFoundError, ValueError, ValidationError) as e:
        out.print_error(f"Invalid gauges file: {e}")
        raise typer.Exit(2) from None

    try:
        distances = distance_to_outlet(
            graph,
            policy=OutletPolicy.PER_COMPONENT,
            measure_from=config.settings.measure_from,
        )
    except GraphIntegrityError as e:
        raise _exit_for(e, out) from None

    writer = _writer(config, output, force, "gages", out)
    max_fails_value = max_fails or config.settings.max_fails
    results: list[GageResult] = []
    fail_count = 0

    for gage in gages:
        segment_id = _segment_id(graph, str(gage.segment_id))
        try:
            upstream = upstream_trace(graph, segment_id)
        except (NotFoundError, GraphIntegrityError) as e:
            writer.record_failure(gage.gage_id, gage.segment_id, str(e))
            fail_count += 1
            out.print_verbose(f"  [red]✗[/red] {gage.gage_id}: {e}")
            if max_fails_value is not None and fail_count >= max_fails_value:
                writer.finalize()
                out.print_error(f"Reached maximum failures ({max_fails_value})")
                raise typer.Exit(2) from None
            continue

        results.append(
            GageResult(
                gage_id=gage.gage_id,
                gage_name=gage.gage_name,
                segment_id=segment_id,
                upstream_segments=len(upstream),
                upstream_length=sum(graph.length(sid) for sid in upstream),
                distance_to_outlet=distances[segment_id],
            )
        )
        out.print_verbose(f"  [green]✓[/green] {gage.gage_id}: {len(upstream)} upstream segment(s)")

    if results:
        writer.write_report("gages", [vars(r) for r in results])
    failed_csv = writer.finalize()

    out.print_gage_results(results, fail_count, str(failed_csv) if failed_csv else None)

    if fail_count == 0:
        raise typer.Exit(0)
    elif results:
        raise typer.Exit(1)  # Partial success
    else:
        raise typer.Exit(2)


if __name__ == "__main__":
    app()
