"""
Tests for table adapters: reading flowline tables, converting rows to segment
records, and joining results back onto the table.
"""

import math
from pathlib import Path

import geopandas as gpd
import numpy as np
import pandas as pd
import pytest

from flowtrace.core import (
    Diversion,
    InvalidInputError,
    build_flow_graph,
    distance_to_outlet,
    distances_to_frame,
    diversions_from_frame,
    downstream_trace,
    join_distances,
    mainstem_trace,
    read_network_table,
    segments_from_frame,
    segments_from_nodes,
    segments_from_upstream_columns,
    subset_frame,
    upstream_trace,
)


@pytest.fixture
def nhd_table() -> pd.DataFrame:
    """NHDPlus-style table with toCOMID pointers (0 marks the outlet)."""
    return pd.DataFrame(
        {
            "COMID": [101, 102, 103, 104],
            "toCOMID": [0, 101, 101, 102],
            "LENGTHKM": [5.0, 3.0, 2.0, 4.0],
            "TotDASqKM": [40.0, 25.0, 10.0, 12.0],
        }
    )


class TestReadNetworkTable:
    """Tests for read_network_table()."""

    def test_reads_csv(self, tmp_path: Path, nhd_table: pd.DataFrame):
        path = tmp_path / "flowlines.csv"
        nhd_table.to_csv(path, index=False)

        frame = read_network_table(path)

        assert list(frame["COMID"]) == [101, 102, 103, 104]

    def test_reads_geopackage(self, tmp_path: Path, complex_rivers_gdf: gpd.GeoDataFrame):
        path = tmp_path / "rivers.gpkg"
        complex_rivers_gdf.to_file(path, driver="GPKG")

        frame = read_network_table(path)

        assert isinstance(frame, gpd.GeoDataFrame)
        assert len(frame) == 7
        assert set(frame.columns) >= {"COMID", "up1", "lengthkm"}

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            read_network_table(tmp_path / "missing.gpkg")

    def test_unsupported_format(self, tmp_path: Path):
        path = tmp_path / "flowlines.txt"
        path.write_text("COMID\n1\n")
        with pytest.raises(InvalidInputError, match="Unsupported"):
            read_network_table(path)

    @pytest.mark.parametrize(
        "content",
        [
            "",  # no columns at all
            "COMID,toCOMID\n1,0\n2,1,7,9\n",  # ragged row
        ],
    )
    def test_unparseable_csv(self, tmp_path: Path, content: str):
        path = tmp_path / "flowlines.csv"
        path.write_text(content)
        with pytest.raises(InvalidInputError, match="Could not read network table"):
            read_network_table(path)

    def test_corrupt_geopackage(self, tmp_path: Path):
        path = tmp_path / "flowlines.gpkg"
        path.write_bytes(b"this is not a geopackage")
        with pytest.raises(InvalidInputError, match="Could not read network table"):
            read_network_table(path)


class TestSegmentsFromFrame:
    """Tests for segments_from_frame()."""

    def test_to_id_columns(self, nhd_table: pd.DataFrame):
        segments = segments_from_frame(nhd_table, order_field="TotDASqKM")
        graph = build_flow_graph(segments)

        assert graph.outlets() == [101]
        assert upstream_trace(graph, 101) == [101, 102, 103, 104]
        assert mainstem_trace(graph, 101) == [101, 102, 104]

    def test_values_are_python_scalars(self, nhd_table: pd.DataFrame):
        segment = segments_from_frame(nhd_table)[1]
        assert type(segment.id) is int
        assert type(segment.to_id) is int
        assert type(segment.length) is float
        assert segment.order is None

    def test_missing_to_id_becomes_none(self):
        frame = pd.DataFrame({"COMID": [1, 2], "toCOMID": [np.nan, 1], "LENGTHKM": [1.0, 2.0]})
        segments = segments_from_frame(frame)
        assert segments[0].to_id is None
        graph = build_flow_graph(segments)
        assert graph.upstream_of(1) == (2,)

    def test_id_from_index(self, nhd_table: pd.DataFrame):
        segments = segments_from_frame(nhd_table.set_index("COMID"))
        assert [s.id for s in segments] == [101, 102, 103, 104]

    def test_custom_fields(self):
        frame = pd.DataFrame({"id": ["a", "b"], "toid": ["", "a"], "len_m": [100.0, 250.0]})
        segments = segments_from_frame(frame, id_field="id", to_field="toid", length_field="len_m")
        graph = build_flow_graph(segments, terminal_ids=("",))
        assert distance_to_outlet(graph) == {"a": 100.0, "b": 350.0}

    def test_missing_field(self, nhd_table: pd.DataFrame):
        with pytest.raises(InvalidInputError, match="missing required field"):
            segments_from_frame(nhd_table, order_field="uparea")

    def test_bad_length_rejected_by_graph(self):
        frame = pd.DataFrame({"COMID": [1], "toCOMID": [0], "LENGTHKM": [-2.0]})
        with pytest.raises(InvalidInputError):
            build_flow_graph(segments_from_frame(frame))


class TestSegmentsFromUpstreamColumns:
    """Tests for MERIT-Hydro style up1..up4 topology."""

    def test_complex_network(self, complex_rivers_gdf: gpd.GeoDataFrame):
        graph = build_flow_graph(segments_from_upstream_columns(complex_rivers_gdf))

        assert graph.outlets() == [41000001]
        assert len(upstream_trace(graph, 41000001)) == 7
        assert mainstem_trace(graph, 41000001) == [41000001, 41000003, 41000007]

    def test_linear_network(self, linear_rivers_gdf: gpd.GeoDataFrame):
        graph = build_flow_graph(segments_from_upstream_columns(linear_rivers_gdf))

        assert downstream_trace(graph, 41000003) == [41000003, 41000002, 41000001]
        assert distance_to_outlet(graph) == {41000001: 4.0, 41000002: 9.0, 41000003: 15.0}

    def test_reach_listed_twice_rejected(self):
        frame = pd.DataFrame(
            {
                "COMID": [1, 2, 3],
                "up1": [3, 3, 0],
                "lengthkm": [1.0, 1.0, 1.0],
                "uparea": [1.0, 1.0, 1.0],
            }
        )
        with pytest.raises(InvalidInputError, match="listed upstream of both"):
            segments_from_upstream_columns(frame, up_fields=["up1"])

    def test_missing_up_field(self, linear_rivers_gdf: gpd.GeoDataFrame):
        with pytest.raises(InvalidInputError):
            segments_from_upstream_columns(linear_rivers_gdf, up_fields=["up1", "up9"])


class TestSegmentsFromNodes:
    """Tests for from-node / to-node topology."""

    def test_divergence_without_order(self, nhd_flowlines: pd.DataFrame):
        segments, diversions = segments_from_nodes(nhd_flowlines)
        to_ids = {s.id: s.to_id for s in segments}

        assert to_ids == {1: 2, 2: 4, 3: 5, 4: 6, 5: 6, 6: None}
        assert diversions == [Diversion(1, 3)]

    def test_divergence_follows_larger_order(self, nhd_flowlines: pd.DataFrame):
        segments, diversions = segments_from_nodes(nhd_flowlines, order_field="TotDASqKM")

        assert segments[0].to_id == 3
        assert diversions == [Diversion(1, 2)]

    def test_traversals_over_node_topology(self, nhd_flowlines: pd.DataFrame):
        segments, diversions = segments_from_nodes(nhd_flowlines)
        graph = build_flow_graph(segments, diversions=diversions)

        assert downstream_trace(graph, 1) == [1, 2, 4, 6]
        assert downstream_trace(graph, 1, include_diversions=True) == [1, 2, 3, 4, 5, 6]


class TestDiversionsFromFrame:
    """Tests for diversions_from_frame()."""

    def test_edge_table(self):
        frame = pd.DataFrame({"FROMCOMID": [1, 1], "TOCOMID": [2, 3]})
        assert diversions_from_frame(frame) == [Diversion(1, 2), Diversion(1, 3)]

    def test_missing_field(self):
        with pytest.raises(InvalidInputError):
            diversions_from_frame(pd.DataFrame({"FROMCOMID": [1]}))


class TestResultFrames:
    """Tests for turning query results back into tables."""

    def test_distances_to_frame(self):
        frame = distances_to_frame({101: 5.0, 102: 8.0})
        assert list(frame.columns) == ["COMID", "pathlength"]
        assert frame["pathlength"].tolist() == [5.0, 8.0]

    def test_subset_keeps_traversal_order(self, complex_rivers_gdf: gpd.GeoDataFrame):
        subset = subset_frame(complex_rivers_gdf, [41000007, 41000003, 41000001, 99], "COMID")

        assert isinstance(subset, gpd.GeoDataFrame)
        assert subset["COMID"].tolist() == [41000007, 41000003, 41000001]

    def test_subset_by_index(self, nhd_table: pd.DataFrame):
        indexed = nhd_table.set_index("COMID")
        subset = subset_frame(indexed, [104, 102], "COMID")
        assert subset.index.tolist() == [104, 102]

    def test_subset_empty(self, nhd_table: pd.DataFrame):
        assert subset_frame(nhd_table, [], "COMID").empty

    def test_join_distances(self, nhd_table: pd.DataFrame):
        joined = join_distances(nhd_table, {101: 5.0, 102: 8.0})

        assert joined["pathlength"].tolist()[:2] == [5.0, 8.0]
        assert math.isnan(joined["pathlength"].iloc[3])
        assert "pathlength" not in nhd_table.columns
