"""
Shared pytest fixtures for core module tests.

Provides synthetic segment tables and GeoDataFrames for testing graph logic
without requiring real hydrography files.
"""

import geopandas as gpd
import pandas as pd
import pytest
from shapely.geometry import LineString

from flowtrace.core import FlowGraph, Segment, build_flow_graph


def make_rivers_gdf(
    comids: list[int],
    downstream_coords: list[tuple[float, float]],
    upstream_connections: list[dict[str, int]],
    upareas: list[float],
    lengths: list[float] | None = None,
) -> gpd.GeoDataFrame:
    """
    Create a synthetic MERIT-style rivers GeoDataFrame with network topology.

    Args:
        comids: List of COMID identifiers
        downstream_coords: List of (lng, lat) for downstream end of each river
        upstream_connections: List of dicts with keys 'up1', 'up2', 'up3', 'up4'
        upareas: List of upstream areas in km2
        lengths: Optional reach lengths in km (default 1.0 each)

    Returns:
        GeoDataFrame with a COMID column and network topology columns
    """
    if lengths is None:
        lengths = [1.0] * len(comids)

    geometries = [
        LineString([(lng, lat), (lng, lat + 0.04)])  # Simple north-flowing river
        for lng, lat in downstream_coords
    ]

    data = {
        "COMID": comids,
        "lengthkm": lengths,
        "uparea": upareas,
        "up1": [conn.get("up1", 0) for conn in upstream_connections],
        "up2": [conn.get("up2", 0) for conn in upstream_connections],
        "up3": [conn.get("up3", 0) for conn in upstream_connections],
        "up4": [conn.get("up4", 0) for conn in upstream_connections],
    }

    return gpd.GeoDataFrame(data, geometry=geometries, crs="EPSG:4326")


@pytest.fixture
def scenario_segments() -> list[Segment]:
    """
    Four segments, two confluences deep.

    Structure:
        D -> B -> A (outlet)
             C -> A
    """
    return [
        Segment("A", None, 5.0),
        Segment("B", "A", 3.0),
        Segment("C", "A", 2.0),
        Segment("D", "B", 4.0),
    ]


@pytest.fixture
def scenario_graph(scenario_segments: list[Segment]) -> FlowGraph:
    return build_flow_graph(scenario_segments)


@pytest.fixture
def complex_segments() -> list[Segment]:
    """
    Seven segments in a binary tree, with drainage area as the order attribute.

    Structure:
                1 (outlet, 5000 km2)
               / \\
              2   3 (2000, 3000 km2)
             / \\ / \\
            4  5 6  7 (headwaters)
    """
    return [
        Segment(1, 0, 10.0, 5000.0),
        Segment(2, 1, 4.0, 2000.0),
        Segment(3, 1, 6.0, 3000.0),
        Segment(4, 2, 2.0, 500.0),
        Segment(5, 2, 3.0, 500.0),
        Segment(6, 3, 1.0, 1000.0),
        Segment(7, 3, 5.0, 1000.0),
    ]


@pytest.fixture
def complex_graph(complex_segments: list[Segment]) -> FlowGraph:
    return build_flow_graph(complex_segments)


@pytest.fixture
def two_network_graph() -> FlowGraph:
    """Two disconnected chains, each with its own outlet."""
    return build_flow_graph(
        [
            ("A1", None, 2.0),
            ("B1", "A1", 1.0),
            ("A2", None, 7.0),
            ("B2", "A2", 3.0),
            ("C2", "B2", 1.5),
        ]
    )


@pytest.fixture
def braided_graph() -> FlowGraph:
    """
    A split that rejoins downstream.

    Structure:
        S -> M1 -> O (outlet)
        S => M2 -> O   (S => M2 is a diversion)
    """
    return build_flow_graph(
        [
            ("S", "M1", 1.0),
            ("M1", "O", 2.0),
            ("M2", "O", 5.0),
            ("O", None, 3.0),
        ],
        diversions=[("S", "M2")],
    )


@pytest.fixture
def cyclic_graph() -> FlowGraph:
    """
    Unvalidated graph with a three-segment loop, a tail feeding it and a
    separate clean outlet.

    Structure:
        A -> B -> C -> A (loop)
        D -> A
        E (outlet, disconnected)
    """
    return build_flow_graph(
        [
            ("A", "B", 1.0),
            ("B", "C", 1.0),
            ("C", "A", 1.0),
            ("D", "A", 1.0),
            ("E", None, 1.0),
        ],
        validate=False,
    )


@pytest.fixture
def linear_rivers_gdf() -> gpd.GeoDataFrame:
    """
    Create a linear river network (3 reaches in series).

    Structure:
        41000003 -> 41000002 -> 41000001 (outlet)
    """
    return make_rivers_gdf(
        comids=[41000001, 41000002, 41000003],
        downstream_coords=[(-105.0, 40.0), (-105.0, 40.05), (-105.0, 40.1)],
        upstream_connections=[
            {"up1": 41000002},
            {"up1": 41000003},
            {},
        ],
        upareas=[3000.0, 2000.0, 1000.0],
        lengths=[4.0, 5.0, 6.0],
    )


@pytest.fixture
def complex_rivers_gdf() -> gpd.GeoDataFrame:
    """
    Create the seven-reach binary tree as MERIT-style upstream columns.

    Structure:
                41000001 (outlet)
               /        \\
          41000002    41000003
           /    \\      /    \\
      41000004 41000005 41000006 41000007
    """
    return make_rivers_gdf(
        comids=[41000001, 41000002, 41000003, 41000004, 41000005, 41000006, 41000007],
        downstream_coords=[
            (-105.0, 40.0),
            (-105.05, 40.05),
            (-104.95, 40.05),
            (-105.1, 40.1),
            (-105.0, 40.1),
            (-104.9, 40.1),
            (-104.85, 40.1),
        ],
        upstream_connections=[
            {"up1": 41000002, "up2": 41000003},
            {"up1": 41000004, "up2": 41000005},
            {"up1": 41000006, "up2": 41000007},
            {},
            {},
            {},
            {},
        ],
        upareas=[5000.0, 2000.0, 3000.0, 500.0, 500.0, 1000.0, 1000.0],
        lengths=[10.0, 4.0, 6.0, 2.0, 3.0, 1.0, 5.0],
    )


@pytest.fixture
def nhd_flowlines() -> pd.DataFrame:
    """
    Node-topology table with a divergence at node 20.

    Structure:
        1 -> (node 20) -> 2 -> 4 -> 6 (outlet)
                       -> 3 -> 5 -> 6
    """
    return pd.DataFrame(
        {
            "COMID": [1, 2, 3, 4, 5, 6],
            "FromNode": [10, 20, 20, 30, 40, 50],
            "ToNode": [20, 30, 40, 50, 50, 60],
            "LENGTHKM": [1.0, 2.0, 2.5, 1.0, 1.0, 3.0],
            "TotDASqKM": [10.0, 4.0, 6.0, 4.5, 6.5, 12.0],
        }
    )
