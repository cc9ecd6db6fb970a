"""
Along-network distances over a FlowGraph.

distance_to_outlet() is the path-length computation: for every segment, the
length of the flow path from that segment to the outlet of its network. It
runs one pass outward from each outlet along the reverse-adjacency index, so
no flow path is walked more than once.

path_distance() measures the stretch of river between two segments on the same
flow path, e.g. between two gauges.
"""

import logging
from collections.abc import Hashable
from enum import Enum

from flowtrace.core.exceptions import AmbiguousOutletError, GraphIntegrityError, NotFoundError
from flowtrace.core.network import FlowGraph

logger = logging.getLogger(__name__)


class OutletPolicy(str, Enum):
    """How distance_to_outlet treats a graph with several outlets."""

    STRICT = "strict"  # exactly one outlet, else AmbiguousOutletError
    PER_COMPONENT = "per_component"  # measure each network against its own outlet


class MeasureFrom(str, Enum):
    """Which end of a segment its distance is measured from."""

    UPSTREAM = "upstream"  # segment's own length included
    DOWNSTREAM = "downstream"  # NHDPlus pathlength, outlet is 0


def distance_to_outlet(
    graph: FlowGraph,
    policy: OutletPolicy | str = OutletPolicy.STRICT,
    measure_from: MeasureFrom | str = MeasureFrom.UPSTREAM,
    outlet_id: Hashable | None = None,
) -> dict[Hashable, float]:
    """
    Compute the along-network distance from every segment to its outlet.

    Args:
        graph: Flow graph to measure
        policy: STRICT requires the graph to have a single outlet;
            PER_COMPONENT measures each connected network separately
        measure_from: UPSTREAM includes each segment's own length (the outlet
            gets its own length); DOWNSTREAM measures from the segment's
            downstream end (the outlet gets 0)
        outlet_id: Only measure the network draining to this outlet. The policy
            is not consulted when an outlet is given.

    Returns:
        Mapping of segment id to distance, in the unit of the segment lengths

    Raises:
        AmbiguousOutletError: STRICT policy and the graph has several outlets
            (or is empty), or outlet_id is not an outlet
        NotFoundError: outlet_id is not in the graph
        GraphIntegrityError: Some segments never reach an outlet. A non-empty
            graph with zero outlets raises this rather than
            AmbiguousOutletError under either policy, since every segment then
            lies on or drains into a cycle.
    """
    policy = OutletPolicy(policy)
    measure_from = MeasureFrom(measure_from)

    if outlet_id is not None:
        graph.require(outlet_id)
        if not graph.is_outlet(outlet_id):
            down = graph.downstream_of(outlet_id)[0]
            raise AmbiguousOutletError(
                f"Segment {outlet_id!r} is not an outlet: it drains to {down!r}",
                [outlet_id],
            )
        roots = [outlet_id]
    else:
        roots = graph.outlets()
        if not roots and len(graph):
            raise GraphIntegrityError(
                "Flow graph has no outlet: every segment lies on or drains into a cycle",
                graph.ids,
            )
        if policy is OutletPolicy.STRICT and len(roots) != 1:
            shown = ", ".join(repr(r) for r in roots[:10])
            raise AmbiguousOutletError(
                f"Expected exactly one outlet, found {len(roots)}: {shown}. "
                "Narrow the segment table or use the per_component policy.",
                roots,
            )

    include_own = measure_from is MeasureFrom.UPSTREAM
    distances: dict[Hashable, float] = {}

    for root in roots:
        distances[root] = graph.length(root) if include_own else 0.0
        stack = [root]
        while stack:
            node = stack.pop()
            step_base = distances[node]
            for up_id in graph.upstream_of(node):
                step = graph.length(up_id) if include_own else graph.length(node)
                distances[up_id] = step_base + step
                stack.append(up_id)

    if outlet_id is None and len(distances) != len(graph):
        unreached = [sid for sid in graph if sid not in distances]
        raise GraphIntegrityError(
            f"{len(unreached)} segment(s) never reach an outlet, e.g. {unreached[0]!r}",
            unreached,
        )

    logger.info(f"Computed distances for {len(distances)} segment(s) across {len(roots)} outlet(s)")
    return distances


def path_distance(graph: FlowGraph, from_id: Hashable, to_id: Hashable) -> float:
    """
    Along-network distance between two segments on one primary flow path.

    Sums the lengths from from_id (inclusive) down to to_id (exclusive), which
    equals the difference of their distances to the outlet under either
    measuring convention.

    Raises:
        NotFoundError: Either id is unknown, or to_id is not downstream of from_id
        GraphIntegrityError: The flow path from from_id runs into a cycle
    """
    graph.require(from_id)
    graph.require(to_id)

    total = 0.0
    node = from_id
    seen = {from_id}
    while node != to_id:
        total += graph.length(node)
        targets = graph.downstream_of(node)
        if not targets:
            raise NotFoundError(f"Segment {to_id!r} is not downstream of {from_id!r}", to_id)
        node = targets[0]
        if node in seen:
            raise GraphIntegrityError(f"Cycle detected at segment {node!r} while tracing from {from_id!r}", [node])
        seen.add(node)

    return total
