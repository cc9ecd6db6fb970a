"""
Upstream and downstream traversals over a FlowGraph.

These are the network navigation queries used when working with a named
watershed: the full upstream tributary tree, the upstream mainstem, and the
downstream flow path with or without diversions.

Every traversal returns an ordered list of segment identifiers starting with
the queried segment. An unknown start raises NotFoundError rather than yielding
an empty result, and a traversal that runs into a cycle raises
GraphIntegrityError.
"""

import heapq
import itertools
import logging
from collections import deque
from collections.abc import Hashable
from numbers import Real

from flowtrace.core.exceptions import GraphIntegrityError, InvalidInputError
from flowtrace.core.network import FlowGraph

logger = logging.getLogger(__name__)


def _check_max_distance(max_distance: float | None) -> None:
    if max_distance is None:
        return
    if isinstance(max_distance, bool) or not isinstance(max_distance, Real) or max_distance != max_distance:
        raise InvalidInputError(f"max_distance must be a number, got {max_distance!r}")
    if max_distance < 0:
        raise InvalidInputError(f"max_distance must be non-negative, got {max_distance}")


def _cycle_error(segment_id: Hashable, start_id: Hashable) -> GraphIntegrityError:
    return GraphIntegrityError(
        f"Cycle detected at segment {segment_id!r} while tracing from {start_id!r}",
        [segment_id],
    )


def upstream_trace(
    graph: FlowGraph,
    start_id: Hashable,
    max_distance: float | None = None,
) -> list[Hashable]:
    """
    Collect start_id and every segment that drains through it.

    Breadth-first over the reverse-adjacency index, so tributaries closer to
    start_id come first.

    Args:
        graph: Flow graph to query
        start_id: Segment to trace from
        max_distance: Stop expanding upstream of a segment once the along-network
            distance from the downstream end of start_id to that segment's
            upstream end exceeds this bound. The segment straddling the bound is
            kept.

    Returns:
        Segment ids, start_id first

    Raises:
        NotFoundError: start_id is not in the graph
        InvalidInputError: max_distance is negative or not a number
        GraphIntegrityError: The trace reached a cycle
    """
    graph.require(start_id)
    _check_max_distance(max_distance)

    collected = [start_id]
    visited = {start_id}
    queue = deque([(start_id, graph.length(start_id))])

    while queue:
        node, reach = queue.popleft()
        if max_distance is not None and reach > max_distance:
            continue

        for up_id in graph.upstream_of(node):
            # A segment has a single to_id, so a second visit can only come from a cycle
            if up_id in visited:
                raise _cycle_error(up_id, start_id)
            visited.add(up_id)
            collected.append(up_id)
            queue.append((up_id, reach + graph.length(up_id)))

    logger.debug(f"Upstream trace from {start_id!r}: {len(collected)} segment(s)")
    return collected


def _mainstem_parent(graph: FlowGraph, candidates: tuple[Hashable, ...]) -> Hashable:
    """Pick the upstream branch the mainstem follows at a confluence."""
    segments = [graph[sid] for sid in candidates]
    if all(s.order is not None for s in segments):
        chosen = max(segments, key=lambda s: (s.order, s.length))
    else:
        chosen = max(segments, key=lambda s: s.length)
    return chosen.id


def mainstem_trace(
    graph: FlowGraph,
    start_id: Hashable,
    max_distance: float | None = None,
) -> list[Hashable]:
    """
    Follow the upstream mainstem from start_id to its headwater.

    At each confluence the branch with the larger order attribute wins (for
    example cumulative drainage area). If any branch lacks that attribute the
    longer segment wins instead. Remaining ties go to the branch listed first
    in the input table.

    Returns:
        Linear chain of segment ids from start_id upstream

    Raises:
        NotFoundError: start_id is not in the graph
        InvalidInputError: max_distance is negative or not a number
        GraphIntegrityError: The trace reached a cycle
    """
    graph.require(start_id)
    _check_max_distance(max_distance)

    chain = [start_id]
    seen = {start_id}
    node = start_id
    reach = graph.length(start_id)

    while max_distance is None or reach <= max_distance:
        candidates = graph.upstream_of(node)
        if not candidates:
            break
        node = _mainstem_parent(graph, candidates)
        if node in seen:
            raise _cycle_error(node, start_id)
        seen.add(node)
        chain.append(node)
        reach += graph.length(node)

    logger.debug(f"Mainstem trace from {start_id!r}: {len(chain)} segment(s)")
    return chain


def _primary_downstream(
    graph: FlowGraph,
    start_id: Hashable,
    max_distance: float | None,
) -> list[Hashable]:
    path = [start_id]
    seen = {start_id}
    node = start_id
    offset = 0.0  # distance from the downstream end of start_id to the upstream end of node

    while True:
        targets = graph.downstream_of(node)
        if not targets:
            break
        if node != start_id:
            offset += graph.length(node)
        node = targets[0]
        if max_distance is not None and offset > max_distance:
            break
        if node in seen:
            raise _cycle_error(node, start_id)
        seen.add(node)
        path.append(node)

    return path


def _diverted_downstream(
    graph: FlowGraph,
    start_id: Hashable,
    max_distance: float | None,
) -> list[Hashable]:
    # Paths may split and rejoin, so settle each segment at its shortest offset
    counter = itertools.count()
    heap: list[tuple[float, int, Hashable]] = [(0.0, next(counter), start_id)]
    offsets: dict[Hashable, float] = {}
    order: list[Hashable] = []

    while heap:
        offset, _, node = heapq.heappop(heap)
        if node in offsets:
            continue
        offsets[node] = offset
        order.append(node)

        reach = 0.0 if node == start_id else offset + graph.length(node)
        for target in graph.downstream_of(node, include_diversions=True):
            if target in offsets:
                continue
            if max_distance is not None and reach > max_distance:
                continue
            heapq.heappush(heap, (reach, next(counter), target))

    _raise_on_cycle(graph, order, start_id)
    return order


def _raise_on_cycle(graph: FlowGraph, members: list[Hashable], start_id: Hashable) -> None:
    """Kahn's algorithm restricted to the edges among the collected segments."""
    member_set = set(members)
    in_degree = dict.fromkeys(members, 0)
    for node in members:
        for target in graph.downstream_of(node, include_diversions=True):
            if target in member_set:
                in_degree[target] += 1

    queue = [node for node, deg in in_degree.items() if deg == 0]
    processed = 0
    while queue:
        node = queue.pop()
        processed += 1
        for target in graph.downstream_of(node, include_diversions=True):
            if target in member_set:
                in_degree[target] -= 1
                if in_degree[target] == 0:
                    queue.append(target)

    if processed != len(members):
        cyclic = [node for node, deg in in_degree.items() if deg > 0]
        raise GraphIntegrityError(
            f"Cycle detected downstream of {start_id!r} through segments {', '.join(map(repr, cyclic[:10]))}",
            cyclic,
        )


def downstream_trace(
    graph: FlowGraph,
    start_id: Hashable,
    include_diversions: bool = False,
    max_distance: float | None = None,
) -> list[Hashable]:
    """
    Follow the flow downstream from start_id to the outlet of the graph.

    Without diversions this is the single primary flow path (downstream
    mainstem), in flow order. With diversions it is the union of all paths
    through primary and diversion edges, ordered by along-network distance
    from start_id.

    Args:
        graph: Flow graph to query
        start_id: Segment to trace from
        include_diversions: Also follow diversion edges
        max_distance: Keep segments whose upstream end lies within this
            distance of the downstream end of start_id

    Returns:
        Segment ids, start_id first

    Raises:
        NotFoundError: start_id is not in the graph
        InvalidInputError: max_distance is negative or not a number
        GraphIntegrityError: The trace reached a cycle
    """
    graph.require(start_id)
    _check_max_distance(max_distance)

    if include_diversions:
        result = _diverted_downstream(graph, start_id, max_distance)
    else:
        result = _primary_downstream(graph, start_id, max_distance)

    logger.debug(
        f"Downstream trace from {start_id!r} (diversions={include_diversions}): {len(result)} segment(s)"
    )
    return result
