"""River network traversal and path-distance engine."""

from flowtrace.core import (
    AmbiguousOutletError,
    Diversion,
    FlowGraph,
    FlowNetworkError,
    GraphIntegrityError,
    InvalidInputError,
    MeasureFrom,
    NotFoundError,
    OutletPolicy,
    Segment,
    build_flow_graph,
    distance_to_outlet,
    downstream_trace,
    mainstem_trace,
    path_distance,
    stream_orders,
    upstream_trace,
)

__version__ = "0.1.0"

__all__ = [
    "AmbiguousOutletError",
    "Diversion",
    "FlowGraph",
    "FlowNetworkError",
    "GraphIntegrityError",
    "InvalidInputError",
    "MeasureFrom",
    "NotFoundError",
    "OutletPolicy",
    "Segment",
    "build_flow_graph",
    "distance_to_outlet",
    "downstream_trace",
    "mainstem_trace",
    "path_distance",
    "stream_orders",
    "upstream_trace",
]
