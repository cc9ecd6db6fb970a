"""
Output writer for flow network query results.

Writes the rows of a flowline table selected by a traversal to GeoPackage,
Shapefile or CSV, distance tables to CSV, and keeps a FAILED.csv log of
queries that could not be answered during a batch run.
"""

import csv
import logging
from collections.abc import Hashable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import geopandas as gpd
import pandas as pd

from flowtrace.core.tables import distances_to_frame

logger = logging.getLogger(__name__)


class OutputFormat(str, Enum):
    """Supported file formats for segment subsets."""

    GEOPACKAGE = "gpkg"
    SHAPEFILE = "shp"
    CSV = "csv"


_DRIVERS = {
    OutputFormat.GEOPACKAGE: "GPKG",
    OutputFormat.SHAPEFILE: "ESRI Shapefile",
}


@dataclass
class FailedQuery:
    """
    Record of a query that failed during a batch run.

    Attributes:
        name: Label of the query (e.g. a gauge id)
        segment_id: Segment the query started from
        error: Description of what went wrong
    """

    name: str
    segment_id: str
    error: str


class OutputWriter:
    """Handles output file writing for query results."""

    def __init__(self, output_dir: Path, output_format: OutputFormat = OutputFormat.GEOPACKAGE) -> None:
        """
        Initialize writer with output directory.

        Args:
            output_dir: Base directory for all outputs
            output_format: File format used for segment subsets
        """
        self.output_dir = Path(output_dir)
        self.output_format = OutputFormat(output_format)
        self.failed_queries: list[FailedQuery] = []

    def segments_path(self, name: str) -> Path:
        return self.output_dir / f"{name}.{self.output_format.value}"

    def distances_path(self, name: str) -> Path:
        return self.output_dir / f"{name}_distances.csv"

    def report_path(self, name: str) -> Path:
        return self.output_dir / f"{name}.csv"

    def check_output_exists(self, name: str) -> bool:
        """Check whether any output for this name was already written."""
        paths = (self.segments_path(name), self.distances_path(name), self.report_path(name))
        return any(p.exists() for p in paths)

    def write_segments(self, name: str, frame: pd.DataFrame) -> Path:
        """
        Write a subset of the flowline table.

        Args:
            name: Base file name (without extension)
            frame: Rows to write; must be a GeoDataFrame with geometry for the
                GeoPackage and Shapefile formats

        Returns:
            Path to the written file

        Raises:
            ValueError: If frame is empty, or a vector format is requested for
                a table without geometry
        """
        if frame.empty:
            raise ValueError(f"Cannot write segments for '{name}': no rows provided")

        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.segments_path(name)
        logger.info(f"Writing {len(frame)} segments to {path}")

        if self.output_format is OutputFormat.CSV:
            pd.DataFrame(frame).to_csv(path, index=frame.index.name is not None)
            return path

        if not isinstance(frame, gpd.GeoDataFrame) or frame.active_geometry_name is None:
            raise ValueError(
                f"Cannot write '{name}' as {self.output_format.value}: table has no geometry (use csv)"
            )

        frame.to_file(path, driver=_DRIVERS[self.output_format])
        logger.info(f"Successfully wrote {path}")
        return path

    def write_distances(
        self,
        name: str,
        distances: dict[Hashable, float],
        id_field: str = "COMID",
        value_name: str = "pathlength",
    ) -> Path:
        """Write a distance table to {name}_distances.csv."""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.distances_path(name)
        distances_to_frame(distances, id_field=id_field, value_name=value_name).to_csv(path, index=False)
        logger.info(f"Wrote {len(distances)} distances to {path}")
        return path

    def write_report(self, name: str, rows: list[dict[str, object]]) -> Path:
        """Write per-query summary rows (one dict per row) to {name}.csv."""
        if not rows:
            raise ValueError(f"Cannot write report '{name}': no rows provided")
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.report_path(name)
        pd.DataFrame(rows).to_csv(path, index=False)
        logger.info(f"Wrote report with {len(rows)} rows to {path}")
        return path

    def record_failure(self, name: str, segment_id: object, error: str) -> None:
        """Record a failed query for later writing to FAILED.csv."""
        self.failed_queries.append(FailedQuery(name=name, segment_id=str(segment_id), error=error))
        logger.warning(f"Recorded failure for {name} (segment {segment_id}): {error}")

    def write_failed_csv(self) -> Path | None:
        """
        Write all recorded failures to FAILED.csv.

        CSV columns: name, segment_id, error

        Returns:
            Path to FAILED.csv if any failures were recorded, else None
        """
        if not self.failed_queries:
            logger.info("No failures to write")
            return None

        self.output_dir.mkdir(parents=True, exist_ok=True)
        failed_csv = self.output_dir / "FAILED.csv"

        with open(failed_csv, "w", newline="") as f:
            writer = csv.writer(f)
            writer.writerow(["name", "segment_id", "error"])
            for failure in self.failed_queries:
                writer.writerow([failure.name, failure.segment_id, failure.error])

        logger.info(f"Wrote {len(self.failed_queries)} failures to {failed_csv}")
        return failed_csv

    def finalize(self) -> Path | None:
        """
        Finalize output by writing FAILED.csv.

        Returns:
            Path to FAILED.csv if any failures occurred, else None
        """
        return self.write_failed_csv()
