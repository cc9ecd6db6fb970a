"""
Load a segment table from disk and build its flow graph.
"""

import logging
from collections.abc import Hashable, Sequence
from dataclasses import dataclass
from pathlib import Path

import pandas as pd

from flowtrace.core.exceptions import InvalidInputError
from flowtrace.core.network import DEFAULT_TERMINAL_IDS, Diversion, FlowGraph, build_flow_graph
from flowtrace.core.tables import (
    diversions_from_frame,
    read_network_table,
    segments_from_frame,
    segments_from_nodes,
    segments_from_upstream_columns,
)

logger = logging.getLogger(__name__)


@dataclass
class NetworkData:
    """A flowline table together with the graph built from it."""

    frame: pd.DataFrame
    graph: FlowGraph
    id_field: str


def load_network(
    path: Path,
    topology: str = "to_id",
    id_field: str = "COMID",
    length_field: str = "LENGTHKM",
    to_field: str = "toCOMID",
    order_field: str | None = None,
    up_fields: Sequence[str] = ("up1", "up2", "up3", "up4"),
    from_node_field: str = "FromNode",
    to_node_field: str = "ToNode",
    layer: str | None = None,
    diversions_path: Path | None = None,
    diversion_from_field: str = "FROMCOMID",
    diversion_to_field: str = "TOCOMID",
    terminal_ids: Sequence[Hashable] = DEFAULT_TERMINAL_IDS,
    validate: bool = True,
) -> NetworkData:
    """
    Read a flowline table and build a FlowGraph from it.

    Args:
        path: Flowline table (GeoPackage, Shapefile, GeoJSON or CSV)
        topology: "to_id", "upstream_columns" or "nodes"
        id_field: Segment identifier field
        length_field: Segment length field
        to_field: Downstream id field (to_id topology)
        order_field: Optional mainstem ordering attribute
        up_fields: Upstream id fields (upstream_columns topology)
        from_node_field: From-node field (nodes topology)
        to_node_field: To-node field (nodes topology)
        layer: Layer name for multi-layer sources
        diversions_path: Optional edge table with diversion connections
        diversion_from_field: Upstream id field in the diversion table
        diversion_to_field: Diverted-to id field in the diversion table
        terminal_ids: Values meaning "no downstream segment"
        validate: Reject cyclic networks

    Returns:
        NetworkData with the table and its graph

    Raises:
        FileNotFoundError: If a table file does not exist
        InvalidInputError: If the table is malformed or the topology unknown
        GraphIntegrityError: If validate is set and the network has a cycle
    """
    frame = read_network_table(path, layer=layer)
    diversions: list[Diversion] = []

    topology = str(getattr(topology, "value", topology))
    if topology == "to_id":
        segments = segments_from_frame(frame, id_field, to_field, length_field, order_field)
    elif topology == "upstream_columns":
        segments = segments_from_upstream_columns(
            frame,
            id_field=id_field,
            up_fields=up_fields,
            length_field=length_field,
            order_field=order_field,
        )
    elif topology == "nodes":
        segments, diversions = segments_from_nodes(
            frame,
            id_field=id_field,
            from_node_field=from_node_field,
            to_node_field=to_node_field,
            length_field=length_field,
            order_field=order_field,
        )
    else:
        raise InvalidInputError(f"Unknown topology format '{topology}'")

    if diversions_path is not None:
        diversion_frame = read_network_table(diversions_path)
        diversions.extend(diversions_from_frame(diversion_frame, diversion_from_field, diversion_to_field))
        logger.info(f"  Loaded {len(diversion_frame)} diversion edge(s) from {diversions_path}")

    graph = build_flow_graph(segments, diversions=diversions, terminal_ids=terminal_ids, validate=validate)
    return NetworkData(frame=frame, graph=graph, id_field=id_field)
