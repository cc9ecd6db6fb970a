"""
Strahler and Shreve stream orders for a flow graph.
"""

import logging
from collections.abc import Hashable

from flowtrace.core.exceptions import GraphIntegrityError
from flowtrace.core.network import FlowGraph

logger = logging.getLogger(__name__)


def stream_orders(graph: FlowGraph) -> tuple[dict[Hashable, int], dict[Hashable, int]]:
    """
    Calculate Strahler and Shreve stream orders over primary edges.

    Uses topological sort to process segments from headwaters downstream.

    Strahler order rules:
    - Headwater streams: order = 1
    - When streams of different orders merge: max order
    - When two or more streams of the same order merge: order + 1

    Shreve order rules:
    - Headwater streams: order = 1
    - At confluences: sum of all upstream orders

    Args:
        graph: Flow graph to classify

    Returns:
        Tuple of (strahler_orders, shreve_orders) dicts mapping id -> order

    Raises:
        GraphIntegrityError: The graph contains a cycle
    """
    if not len(graph):
        return {}, {}

    # Kahn's algorithm, headwaters first
    in_degree = {sid: len(graph.upstream_of(sid)) for sid in graph}
    queue = [sid for sid, deg in in_degree.items() if deg == 0]
    topo_order: list[Hashable] = []

    while queue:
        node = queue.pop(0)
        topo_order.append(node)
        for downstream in graph.downstream_of(node):
            in_degree[downstream] -= 1
            if in_degree[downstream] == 0:
                queue.append(downstream)

    if len(topo_order) != len(graph):
        cyclic = [sid for sid, deg in in_degree.items() if deg > 0]
        raise GraphIntegrityError(f"Cannot order a cyclic network (segments {cyclic[:10]!r})", cyclic)

    strahler: dict[Hashable, int] = {}
    shreve: dict[Hashable, int] = {}

    for sid in topo_order:
        upstream_ids = graph.upstream_of(sid)

        if not upstream_ids:
            strahler[sid] = 1
            shreve[sid] = 1
        else:
            # Strahler
            upstream_orders = [strahler[up] for up in upstream_ids]
            max_order = max(upstream_orders)
            if upstream_orders.count(max_order) >= 2:
                strahler[sid] = max_order + 1
            else:
                strahler[sid] = max_order

            # Shreve
            shreve[sid] = sum(shreve[up] for up in upstream_ids)

    logger.debug(f"Stream orders computed for {len(topo_order)} segment(s), max Strahler {max(strahler.values())}")
    return strahler, shreve
