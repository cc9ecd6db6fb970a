"""
Core flow network engine.

This module contains core functionality for:
- Building an immutable flow graph from a segment table
- Upstream, mainstem and downstream traversals
- Along-network distances to the outlet and between segments
- Strahler and Shreve stream orders
- Conversions between attribute tables and graph records
- Output writing for query results
"""

from .distance import MeasureFrom, OutletPolicy, distance_to_outlet, path_distance
from .exceptions import (
    AmbiguousOutletError,
    FlowNetworkError,
    GraphIntegrityError,
    InvalidInputError,
    NotFoundError,
)
from .loader import NetworkData, load_network
from .network import DEFAULT_TERMINAL_IDS, Diversion, FlowGraph, Segment, build_flow_graph
from .orders import stream_orders
from .output_writer import FailedQuery, OutputFormat, OutputWriter
from .tables import (
    distances_to_frame,
    diversions_from_frame,
    join_distances,
    read_network_table,
    segments_from_frame,
    segments_from_nodes,
    segments_from_upstream_columns,
    subset_frame,
)
from .traversal import downstream_trace, mainstem_trace, upstream_trace

__all__ = [
    # Graph
    "DEFAULT_TERMINAL_IDS",
    "Diversion",
    "FlowGraph",
    "Segment",
    "build_flow_graph",
    # Traversals
    "downstream_trace",
    "mainstem_trace",
    "upstream_trace",
    # Distances
    "MeasureFrom",
    "OutletPolicy",
    "distance_to_outlet",
    "path_distance",
    # Loading
    "NetworkData",
    "load_network",
    # Stream orders
    "stream_orders",
    # Errors
    "AmbiguousOutletError",
    "FlowNetworkError",
    "GraphIntegrityError",
    "InvalidInputError",
    "NotFoundError",
    # Tables
    "distances_to_frame",
    "diversions_from_frame",
    "join_distances",
    "read_network_table",
    "segments_from_frame",
    "segments_from_nodes",
    "segments_from_upstream_columns",
    "subset_frame",
    # Output writing
    "FailedQuery",
    "OutputFormat",
    "OutputWriter",
]
