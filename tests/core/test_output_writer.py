"""
Tests for output writer module.

Uses tmp_path fixture for actual file operations and synthetic river tables.
"""

import csv
from pathlib import Path

import geopandas as gpd
import pandas as pd
import pytest

from flowtrace.core.output_writer import FailedQuery, OutputFormat, OutputWriter


class TestFailedQuery:
    """Tests for FailedQuery dataclass."""

    def test_create_failed_query(self) -> None:
        """Test basic creation of FailedQuery."""
        failure = FailedQuery(name="gauge_001", segment_id="41000099", error="Segment not in network")

        assert failure.name == "gauge_001"
        assert failure.segment_id == "41000099"
        assert failure.error == "Segment not in network"


class TestOutputWriter:
    """Tests for OutputWriter class."""

    def test_init_sets_attributes(self, tmp_path: Path) -> None:
        """Test initialization sets output_dir and the default format."""
        writer = OutputWriter(output_dir=tmp_path)

        assert writer.output_dir == tmp_path
        assert writer.output_format is OutputFormat.GEOPACKAGE
        assert writer.failed_queries == []

    def test_format_from_string(self, tmp_path: Path) -> None:
        """Test that a plain string is accepted as output format."""
        writer = OutputWriter(output_dir=tmp_path, output_format="shp")

        assert writer.output_format is OutputFormat.SHAPEFILE
        assert writer.segments_path("upstream_1") == tmp_path / "upstream_1.shp"

    def test_write_segments_geopackage(self, tmp_path: Path, complex_rivers_gdf: gpd.GeoDataFrame) -> None:
        """Test that a GeoPackage is created and can be read back."""
        writer = OutputWriter(output_dir=tmp_path / "out")

        result = writer.write_segments("upstream_41000001", complex_rivers_gdf)

        assert result == tmp_path / "out" / "upstream_41000001.gpkg"
        gdf = gpd.read_file(result)
        assert len(gdf) == 7
        assert set(gdf["COMID"]) == set(complex_rivers_gdf["COMID"])

    def test_write_segments_shapefile(self, tmp_path: Path, linear_rivers_gdf: gpd.GeoDataFrame) -> None:
        """Test that shapefile sidecar files are created."""
        writer = OutputWriter(output_dir=tmp_path, output_format=OutputFormat.SHAPEFILE)

        result = writer.write_segments("mainstem_41000001", linear_rivers_gdf)

        assert result.exists()
        assert (tmp_path / "mainstem_41000001.dbf").exists()
        assert (tmp_path / "mainstem_41000001.shx").exists()

    def test_write_segments_csv(self, tmp_path: Path) -> None:
        """Test that plain tables can be written as CSV."""
        writer = OutputWriter(output_dir=tmp_path, output_format=OutputFormat.CSV)
        frame = pd.DataFrame({"COMID": [3, 1], "LENGTHKM": [1.5, 2.0]})

        result = writer.write_segments("downstream_3", frame)

        assert result.name == "downstream_3.csv"
        assert pd.read_csv(result)["COMID"].tolist() == [3, 1]

    def test_write_segments_empty_raises(self, tmp_path: Path) -> None:
        """Test that an empty table raises ValueError."""
        writer = OutputWriter(output_dir=tmp_path)

        with pytest.raises(ValueError, match="no rows provided"):
            writer.write_segments("empty", pd.DataFrame({"COMID": []}))

    def test_write_segments_without_geometry_raises(self, tmp_path: Path) -> None:
        """Test that vector formats require a geometry column."""
        writer = OutputWriter(output_dir=tmp_path)

        with pytest.raises(ValueError, match="no geometry"):
            writer.write_segments("upstream_1", pd.DataFrame({"COMID": [1]}))

    def test_write_distances(self, tmp_path: Path) -> None:
        """Test that distance tables are written with id and value columns."""
        writer = OutputWriter(output_dir=tmp_path)

        result = writer.write_distances("pathlength", {"A": 5.0, "B": 8.0})

        assert result.name == "pathlength_distances.csv"
        frame = pd.read_csv(result)
        assert list(frame.columns) == ["COMID", "pathlength"]
        assert frame["pathlength"].tolist() == [5.0, 8.0]

    def test_write_report(self, tmp_path: Path) -> None:
        """Test that report rows become CSV rows."""
        writer = OutputWriter(output_dir=tmp_path)

        result = writer.write_report("gages", [{"gage_id": "g1", "upstream_segments": 3}])

        assert result == tmp_path / "gages.csv"
        assert pd.read_csv(result)["upstream_segments"].tolist() == [3]

    def test_write_report_empty_raises(self, tmp_path: Path) -> None:
        """Test that an empty report raises ValueError."""
        writer = OutputWriter(output_dir=tmp_path)

        with pytest.raises(ValueError, match="no rows provided"):
            writer.write_report("gages", [])

    def test_check_output_exists(self, tmp_path: Path) -> None:
        """Test detection of earlier output under the same name."""
        writer = OutputWriter(output_dir=tmp_path)

        assert not writer.check_output_exists("pathlength")
        writer.write_distances("pathlength", {1: 1.0})
        assert writer.check_output_exists("pathlength")


class TestRecordFailure:
    """Tests for failure recording."""

    def test_record_failure_adds_to_list(self, tmp_path: Path) -> None:
        """Test that record_failure adds to failed_queries list."""
        writer = OutputWriter(output_dir=tmp_path)

        writer.record_failure("gauge_001", 41000099, "Segment not in network")

        assert len(writer.failed_queries) == 1
        failure = writer.failed_queries[0]
        assert failure.segment_id == "41000099"
        assert failure.error == "Segment not in network"


class TestWriteFailedCsv:
    """Tests for FAILED.csv writing."""

    def test_write_failed_csv_correct_content(self, tmp_path: Path) -> None:
        """Test that CSV content is correct."""
        writer = OutputWriter(output_dir=tmp_path)
        writer.record_failure("gauge_001", 99, "Error 1")
        writer.record_failure("gauge_002", "X", "Error 2")

        result = writer.write_failed_csv()

        assert result == tmp_path / "FAILED.csv"
        with open(result) as f:
            rows = list(csv.reader(f))

        assert rows[0] == ["name", "segment_id", "error"]
        assert rows[1:] == [["gauge_001", "99", "Error 1"], ["gauge_002", "X", "Error 2"]]

    def test_write_failed_csv_no_failures_returns_none(self, tmp_path: Path) -> None:
        """Test that None is returned when no failures recorded."""
        writer = OutputWriter(output_dir=tmp_path)

        assert writer.write_failed_csv() is None
        assert not (tmp_path / "FAILED.csv").exists()


class TestFinalize:
    """Tests for finalize method."""

    def test_finalize_writes_failed_csv(self, tmp_path: Path) -> None:
        """Test that finalize calls write_failed_csv."""
        writer = OutputWriter(output_dir=tmp_path)
        writer.record_failure("gauge_001", 1, "Error")

        result = writer.finalize()

        assert result is not None
        assert result.name == "FAILED.csv"

    def test_finalize_no_failures_returns_none(self, tmp_path: Path) -> None:
        """Test finalize with no failures."""
        assert OutputWriter(output_dir=tmp_path).finalize() is None
