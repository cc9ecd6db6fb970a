"""
Conversions between attribute tables and flow graph records.

The engine itself never sees a data frame: these helpers turn a flowline table
(pandas DataFrame or geopandas GeoDataFrame) into Segment / Diversion records,
and turn query results back into something a caller can join onto its own
attribute table.

Three topology encodings are supported:
- to-id columns (NHDPlus toCOMID, HYFeatures toid)
- MERIT-Hydro style upstream columns (up1..up4)
- from-node / to-node pairs (NHD FromNode / ToNode), where a node with several
  outgoing segments yields one primary edge and diversions for the rest
"""

import logging
from collections.abc import Hashable, Iterable, Sequence
from pathlib import Path

import geopandas as gpd
import pandas as pd

from flowtrace.core.exceptions import InvalidInputError
from flowtrace.core.network import Diversion, Segment

logger = logging.getLogger(__name__)

VECTOR_SUFFIXES = {".gpkg", ".shp", ".geojson", ".json", ".fgb"}
TABLE_SUFFIXES = {".csv"}


def read_network_table(path: Path, layer: str | None = None) -> pd.DataFrame:
    """
    Read a flowline table from disk.

    Vector formats (GeoPackage, Shapefile, GeoJSON, FlatGeobuf) are read with
    geopandas; CSV files with pandas.

    Args:
        path: File to read
        layer: Layer name for multi-layer sources such as GeoPackage

    Returns:
        DataFrame or GeoDataFrame with one row per segment

    Raises:
        FileNotFoundError: If the file does not exist
        InvalidInputError: If the file type is not supported or the file cannot
            be parsed
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Could not find network table: {path}")

    suffix = path.suffix.lower()
    logger.info(f"Reading network table: {path}")

    if suffix not in VECTOR_SUFFIXES | TABLE_SUFFIXES:
        supported = ", ".join(sorted(VECTOR_SUFFIXES | TABLE_SUFFIXES))
        raise InvalidInputError(f"Unsupported network table format '{suffix}' (supported: {supported})")

    try:
        if suffix in VECTOR_SUFFIXES:
            frame = gpd.read_file(path, layer=layer) if layer else gpd.read_file(path)
        else:
            frame = pd.read_csv(path)
    except (ValueError, RuntimeError) as e:
        # pandas ParserError/EmptyDataError and UnicodeDecodeError are ValueErrors;
        # pyogrio DataSourceError/DataLayerError are RuntimeErrors
        raise InvalidInputError(f"Could not read network table {path}: {e}") from e

    logger.info(f"  Loaded {len(frame)} rows")
    return frame


def _clean(value: object) -> object:
    """Normalise pandas/numpy scalars: missing values become None, numpy scalars become Python ones."""
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    if hasattr(value, "item"):
        return value.item()
    return value


def _column(frame: pd.DataFrame, field: str) -> pd.Series:
    """Return a column, falling back to the index when it carries the field name."""
    if field in frame.columns:
        return frame[field]
    if frame.index.name == field:
        return pd.Series(frame.index, index=frame.index, name=field)
    raise InvalidInputError(f"Network table has no '{field}' column")


def _require_fields(frame: pd.DataFrame, fields: Iterable[str | None]) -> None:
    available = set(frame.columns) | {frame.index.name}
    missing = [f for f in fields if f is not None and f not in available]
    if missing:
        raise InvalidInputError(f"Network table is missing required field(s): {', '.join(missing)}")


def _lengths(frame: pd.DataFrame, length_field: str) -> list[object]:
    """Lengths as Python values; non-numeric entries are passed through for the graph to reject."""
    return [_clean(v) for v in _column(frame, length_field)]


def _orders(frame: pd.DataFrame, order_field: str | None) -> list[object]:
    if order_field is None:
        return [None] * len(frame)
    return [_clean(v) for v in _column(frame, order_field)]


def segments_from_frame(
    frame: pd.DataFrame,
    id_field: str = "COMID",
    to_field: str = "toCOMID",
    length_field: str = "LENGTHKM",
    order_field: str | None = None,
) -> list[Segment]:
    """
    Build segments from a table that carries an explicit downstream-id column.

    Args:
        frame: Flowline table (the id may be a column or the index)
        id_field: Segment identifier column
        to_field: Downstream segment identifier column
        length_field: Segment length column
        order_field: Optional mainstem ordering attribute (e.g. drainage area)

    Returns:
        Segments in table order

    Raises:
        InvalidInputError: A required field is missing
    """
    _require_fields(frame, [id_field, to_field, length_field, order_field])

    ids = [_clean(v) for v in _column(frame, id_field)]
    to_ids = [_clean(v) for v in _column(frame, to_field)]

    return [
        Segment(id=sid, to_id=to_id, length=length, order=order)
        for sid, to_id, length, order in zip(
            ids, to_ids, _lengths(frame, length_field), _orders(frame, order_field), strict=True
        )
    ]


def segments_from_upstream_columns(
    frame: pd.DataFrame,
    id_field: str = "COMID",
    up_fields: Sequence[str] = ("up1", "up2", "up3", "up4"),
    length_field: str = "lengthkm",
    order_field: str | None = "uparea",
    empty_value: Hashable = 0,
) -> list[Segment]:
    """
    Build segments from MERIT-Hydro style upstream columns.

    Each row lists the ids of up to four immediate upstream reaches; the
    downstream id of every listed reach is the row's own id.

    Raises:
        InvalidInputError: A required field is missing, or a reach is listed
            upstream of two different segments
    """
    _require_fields(frame, [id_field, length_field, order_field, *up_fields])

    ids = [_clean(v) for v in _column(frame, id_field)]
    to_of: dict[Hashable, Hashable] = {}

    for field in up_fields:
        for sid, up_id in zip(ids, _column(frame, field), strict=True):
            up_id = _clean(up_id)
            if up_id is None or up_id == empty_value:
                continue
            if up_id in to_of and to_of[up_id] != sid:
                raise InvalidInputError(
                    f"Segment {up_id!r} is listed upstream of both {to_of[up_id]!r} and {sid!r}"
                )
            to_of[up_id] = sid

    return [
        Segment(id=sid, to_id=to_of.get(sid), length=length, order=order)
        for sid, length, order in zip(ids, _lengths(frame, length_field), _orders(frame, order_field), strict=True)
    ]


def segments_from_nodes(
    frame: pd.DataFrame,
    id_field: str = "COMID",
    from_node_field: str = "FromNode",
    to_node_field: str = "ToNode",
    length_field: str = "LENGTHKM",
    order_field: str | None = None,
) -> tuple[list[Segment], list[Diversion]]:
    """
    Derive downstream ids from node topology.

    A segment flows into every segment that starts at its to-node. When there
    is more than one, the primary edge goes to the candidate with the largest
    order attribute (or the first one in table order when the attribute is not
    available for all of them); the others are returned as diversions.

    Returns:
        Tuple of (segments, diversions)

    Raises:
        InvalidInputError: A required field is missing
    """
    _require_fields(frame, [id_field, from_node_field, to_node_field, length_field, order_field])

    ids = [_clean(v) for v in _column(frame, id_field)]
    from_nodes = [_clean(v) for v in _column(frame, from_node_field)]
    to_nodes = [_clean(v) for v in _column(frame, to_node_field)]
    lengths = _lengths(frame, length_field)
    orders = _orders(frame, order_field)
    order_of = dict(zip(ids, orders, strict=True))

    starts_at: dict[Hashable, list[Hashable]] = {}
    for sid, node in zip(ids, from_nodes, strict=True):
        if node is not None:
            starts_at.setdefault(node, []).append(sid)

    segments: list[Segment] = []
    diversions: list[Diversion] = []

    for sid, node, length, order in zip(ids, to_nodes, lengths, orders, strict=True):
        candidates = [c for c in starts_at.get(node, []) if c != sid] if node is not None else []
        if not candidates:
            segments.append(Segment(id=sid, to_id=None, length=length, order=order))
            continue

        if all(order_of[c] is not None for c in candidates):
            primary = max(candidates, key=lambda c: order_of[c])
        else:
            primary = candidates[0]

        segments.append(Segment(id=sid, to_id=primary, length=length, order=order))
        diversions.extend(Diversion(from_id=sid, to_id=c) for c in candidates if c != primary)

    if diversions:
        logger.info(f"Derived {len(diversions)} diversion(s) from node topology")
    return segments, diversions


def diversions_from_frame(
    frame: pd.DataFrame,
    from_field: str = "FROMCOMID",
    to_field: str = "TOCOMID",
) -> list[Diversion]:
    """Build diversion edges from a two-column edge table (e.g. NHDPlus PlusFlow)."""
    _require_fields(frame, [from_field, to_field])
    return [
        Diversion(from_id=_clean(src), to_id=_clean(dst))
        for src, dst in zip(_column(frame, from_field), _column(frame, to_field), strict=True)
    ]


def distances_to_frame(
    distances: dict[Hashable, float],
    id_field: str = "COMID",
    value_name: str = "pathlength",
) -> pd.DataFrame:
    """Turn a distance table into a two-column DataFrame ready for merging."""
    return pd.DataFrame({id_field: list(distances), value_name: list(distances.values())})


def subset_frame(frame: pd.DataFrame, ids: Iterable[Hashable], id_field: str = "COMID") -> pd.DataFrame:
    """
    Keep the rows of frame whose id appears in a traversal result.

    Rows come back in traversal order; ids that are not in the table are ignored.
    """
    ordered = list(dict.fromkeys(ids))
    column = _column(frame, id_field)
    rank = {sid: i for i, sid in enumerate(ordered)}
    keys = column.map(lambda v: rank.get(_clean(v))).astype(float).to_numpy()
    mask = ~pd.isna(keys)
    subset = frame.loc[mask]
    return subset.iloc[keys[mask].argsort(kind="stable")].copy()


def join_distances(
    frame: pd.DataFrame,
    distances: dict[Hashable, float],
    id_field: str = "COMID",
    value_name: str = "pathlength",
) -> pd.DataFrame:
    """Return a copy of frame with a distance column mapped on by id (NaN where absent)."""
    joined = frame.copy()
    joined[value_name] = _column(frame, id_field).map(lambda v: distances.get(_clean(v))).astype(float).to_numpy()
    return joined
