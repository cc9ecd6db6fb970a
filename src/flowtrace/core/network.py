"""
In-memory flow graph built from a flat table of stream segments.

Each segment names its single immediate downstream neighbour (to_id). The graph
keeps that forward relation alongside a reverse-adjacency index (id -> ids of
segments draining into it), plus an optional set of diversion edges that only
the "downstream including diversions" traversal consults.

A graph is built once per area of interest and never mutated afterwards. With
validation enabled (the default) construction runs a topological sort over all
edges and refuses to return a graph that contains a cycle.
"""

import logging
import math
from collections import defaultdict
from collections.abc import Hashable, Iterable, Iterator, Mapping
from dataclasses import dataclass, replace
from numbers import Real

from flowtrace.core.exceptions import GraphIntegrityError, InvalidInputError, NotFoundError

logger = logging.getLogger(__name__)

DEFAULT_TERMINAL_IDS: tuple[Hashable, ...] = (0,)


@dataclass(frozen=True)
class Segment:
    """A single reach of the stream network."""

    id: Hashable
    to_id: Hashable | None
    length: float
    order: float | None = None  # e.g. cumulative drainage area, used for mainstem tie-breaks


@dataclass(frozen=True)
class Diversion:
    """An alternate downstream edge leaving a segment."""

    from_id: Hashable
    to_id: Hashable


def _is_missing(value: object) -> bool:
    """True for None, float NaN and pd.NA (the pandas missing-value markers)."""
    if value is None:
        return True
    try:
        unequal = value != value
    except (TypeError, ValueError):
        return False
    if unequal is True or unequal is False:
        return unequal
    try:
        return bool(unequal)
    except (TypeError, ValueError):
        # pd.NA compares to NA, which has no truth value
        return True


def _coerce_segment(record: object) -> Segment:
    if isinstance(record, Segment):
        return record
    if isinstance(record, Mapping):
        try:
            return Segment(**record)
        except TypeError as e:
            raise InvalidInputError(f"Malformed segment record {record!r}: {e}") from e
    if isinstance(record, tuple | list) and 3 <= len(record) <= 4:
        return Segment(*record)
    raise InvalidInputError(f"Cannot interpret {record!r} as a segment")


def _coerce_diversion(record: object) -> Diversion:
    if isinstance(record, Diversion):
        return record
    if isinstance(record, Mapping):
        try:
            return Diversion(**record)
        except TypeError as e:
            raise InvalidInputError(f"Malformed diversion record {record!r}: {e}") from e
    if isinstance(record, tuple | list) and len(record) == 2:
        return Diversion(*record)
    raise InvalidInputError(f"Cannot interpret {record!r} as a diversion")


def _validate_length(segment: Segment) -> float:
    length = segment.length
    if isinstance(length, bool) or not isinstance(length, Real):
        raise InvalidInputError(f"Segment {segment.id!r} has non-numeric length {length!r}")
    length = float(length)
    if not math.isfinite(length):
        raise InvalidInputError(f"Segment {segment.id!r} has non-finite length {length!r}")
    if length < 0:
        raise InvalidInputError(f"Segment {segment.id!r} has negative length {length}")
    return length


def _validate_order(segment: Segment) -> float | None:
    order = segment.order
    if _is_missing(order):
        return None
    if isinstance(order, bool) or not isinstance(order, Real):
        raise InvalidInputError(f"Segment {segment.id!r} has non-numeric order attribute {order!r}")
    return float(order)


class FlowGraph:
    """
    Immutable directed flow graph.

    Use build_flow_graph() to construct one; the constructor assumes its inputs
    are already validated.
    """

    def __init__(
        self,
        segments: dict[Hashable, Segment],
        downstream: dict[Hashable, Hashable | None],
        upstream: dict[Hashable, tuple[Hashable, ...]],
        diversions: dict[Hashable, tuple[Hashable, ...]],
        terminal_ids: frozenset,
    ) -> None:
        self._segments = segments
        self._downstream = downstream
        self._upstream = upstream
        self._diversions = diversions
        self.terminal_ids = terminal_ids

    def __len__(self) -> int:
        return len(self._segments)

    def __contains__(self, segment_id: object) -> bool:
        try:
            return segment_id in self._segments
        except TypeError:
            return False

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self._segments)

    def __getitem__(self, segment_id: Hashable) -> Segment:
        self.require(segment_id)
        return self._segments[segment_id]

    def __repr__(self) -> str:
        return f"FlowGraph(segments={len(self)}, diversions={self.diversion_count})"

    @property
    def ids(self) -> list[Hashable]:
        """Segment identifiers in input order."""
        return list(self._segments)

    @property
    def diversion_count(self) -> int:
        return sum(len(targets) for targets in self._diversions.values())

    def require(self, segment_id: Hashable) -> None:
        """Raise NotFoundError unless segment_id is part of the graph."""
        if segment_id not in self:
            raise NotFoundError(f"Segment {segment_id!r} is not in the flow graph", segment_id)

    def length(self, segment_id: Hashable) -> float:
        return self[segment_id].length

    def upstream_of(self, segment_id: Hashable) -> tuple[Hashable, ...]:
        """Immediate upstream neighbours (segments whose to_id is segment_id)."""
        self.require(segment_id)
        return self._upstream.get(segment_id, ())

    def downstream_of(self, segment_id: Hashable, include_diversions: bool = False) -> tuple[Hashable, ...]:
        """
        Immediate downstream neighbours inside the graph.

        The primary to_id comes first; diversion targets follow when requested.
        An empty tuple means the segment is an outlet of the graph.
        """
        self.require(segment_id)
        primary = self._downstream[segment_id]
        targets: tuple[Hashable, ...] = () if primary is None else (primary,)
        if include_diversions:
            targets += tuple(t for t in self._diversions.get(segment_id, ()) if t not in targets)
        return targets

    def is_outlet(self, segment_id: Hashable) -> bool:
        """True when the segment has no primary downstream neighbour in the graph."""
        self.require(segment_id)
        return self._downstream[segment_id] is None

    def outlets(self) -> list[Hashable]:
        """Segments whose to_id is terminal or points outside the graph."""
        return [sid for sid, down in self._downstream.items() if down is None]

    def headwaters(self) -> list[Hashable]:
        """Segments with no upstream neighbour."""
        return [sid for sid in self._segments if not self._upstream.get(sid)]

    def components(self) -> list[list[Hashable]]:
        """
        Weakly connected components over primary edges, in input order.

        Works on graphs built with validate=False as well: a cyclic component
        is returned like any other.
        """
        parent: dict[Hashable, Hashable] = {sid: sid for sid in self._segments}

        def find(node: Hashable) -> Hashable:
            while parent[node] != node:
                parent[node] = parent[parent[node]]
                node = parent[node]
            return node

        for sid, down in self._downstream.items():
            if down is not None:
                root_a, root_b = find(sid), find(down)
                if root_a != root_b:
                    parent[root_b] = root_a

        grouped: dict[Hashable, list[Hashable]] = {}
        for sid in self._segments:
            grouped.setdefault(find(sid), []).append(sid)
        return list(grouped.values())


def _find_cyclic_segments(
    ids: Iterable[Hashable],
    downstream: dict[Hashable, Hashable | None],
    diversions: dict[Hashable, tuple[Hashable, ...]],
) -> list[Hashable]:
    """
    Kahn's algorithm over primary and diversion edges.

    Returns the segments that never reach in-degree zero: members of a cycle
    and anything only reachable through one. Empty for an acyclic graph.
    """
    targets_of: dict[Hashable, set[Hashable]] = defaultdict(set)
    for sid, down in downstream.items():
        if down is not None:
            targets_of[sid].add(down)
    for sid, extra in diversions.items():
        targets_of[sid].update(extra)

    in_degree: dict[Hashable, int] = dict.fromkeys(ids, 0)
    for targets in targets_of.values():
        for target in targets:
            in_degree[target] += 1

    queue = [sid for sid, deg in in_degree.items() if deg == 0]
    processed = 0
    while queue:
        node = queue.pop()
        processed += 1
        for target in targets_of.get(node, ()):
            in_degree[target] -= 1
            if in_degree[target] == 0:
                queue.append(target)

    if processed == len(in_degree):
        return []
    return [sid for sid, deg in in_degree.items() if deg > 0]


def build_flow_graph(
    segments: Iterable[Segment | tuple | Mapping],
    diversions: Iterable[Diversion | tuple | Mapping] = (),
    terminal_ids: Iterable[Hashable] = DEFAULT_TERMINAL_IDS,
    validate: bool = True,
) -> FlowGraph:
    """
    Build a FlowGraph from a table of segments.

    Args:
        segments: Segment records, or (id, to_id, length[, order]) tuples, or
            mappings with those keys.
        diversions: Alternate downstream edges as Diversion records or
            (from_id, to_id) pairs. Targets outside the table are dropped.
        terminal_ids: to_id values meaning "no downstream segment". None, NaN
            and pd.NA are always terminal. A to_id that names a segment in the
            table is an edge even if it is also listed here.
        validate: Reject cyclic input up front. With validate=False cycles are
            only reported by the traversals that run into them.

    Returns:
        The immutable FlowGraph

    Raises:
        InvalidInputError: Duplicate or missing ids, malformed lengths, or a
            diversion leaving an unknown segment
        GraphIntegrityError: The flow relation contains a cycle (validate=True)
    """
    terminals = frozenset(terminal_ids)

    def is_terminal(value: object) -> bool:
        if _is_missing(value):
            return True
        try:
            return value in terminals
        except TypeError:
            return False

    by_id: dict[Hashable, Segment] = {}
    for record in segments:
        segment = _coerce_segment(record)
        if _is_missing(segment.id):
            raise InvalidInputError(f"Segment record {record!r} has no identifier")
        try:
            hash(segment.id)
        except TypeError as e:
            raise InvalidInputError(f"Segment identifier {segment.id!r} is not hashable") from e
        if segment.id in by_id:
            raise InvalidInputError(f"Duplicate segment identifier {segment.id!r}")
        by_id[segment.id] = Segment(
            id=segment.id,
            to_id=None if _is_missing(segment.to_id) else segment.to_id,
            length=_validate_length(segment),
            order=_validate_order(segment),
        )

    # A to_id naming a segment in the table is an edge even when it also
    # equals a terminal value (e.g. a reach whose id is 0)
    downstream: dict[Hashable, Hashable | None] = {}
    upstream: dict[Hashable, list[Hashable]] = defaultdict(list)
    exits = 0
    for sid, segment in by_id.items():
        down = segment.to_id
        if down is not None and down not in by_id:
            if is_terminal(down):
                by_id[sid] = replace(segment, to_id=None)
            else:
                # Drains to a segment outside this table: an outlet of the subset
                exits += 1
            down = None
        downstream[sid] = down
        if down is not None:
            upstream[down].append(sid)

    diversion_targets: dict[Hashable, list[Hashable]] = defaultdict(list)
    for record in diversions:
        diversion = _coerce_diversion(record)
        if diversion.from_id not in by_id:
            raise InvalidInputError(f"Diversion leaves unknown segment {diversion.from_id!r}")
        if _is_missing(diversion.to_id) or diversion.to_id not in by_id:
            logger.debug(f"Dropping diversion {diversion.from_id!r} -> {diversion.to_id!r} (leaves the graph)")
            continue
        if diversion.to_id == downstream[diversion.from_id]:
            continue
        if diversion.to_id not in diversion_targets[diversion.from_id]:
            diversion_targets[diversion.from_id].append(diversion.to_id)

    frozen_diversions = {sid: tuple(t) for sid, t in diversion_targets.items() if t}

    if validate:
        cyclic = _find_cyclic_segments(by_id, downstream, frozen_diversions)
        if cyclic:
            shown = ", ".join(repr(sid) for sid in cyclic[:10])
            more = f" and {len(cyclic) - 10} more" if len(cyclic) > 10 else ""
            raise GraphIntegrityError(f"Flow relation contains a cycle through segments {shown}{more}", cyclic)

    graph = FlowGraph(
        segments=by_id,
        downstream=downstream,
        upstream={sid: tuple(ups) for sid, ups in upstream.items()},
        diversions=frozen_diversions,
        terminal_ids=terminals,
    )
    logger.info(
        f"Built flow graph with {len(graph)} segments, {len(graph.outlets())} outlet(s), "
        f"{graph.diversion_count} diversion(s)"
    )
    if exits:
        logger.debug(f"  {exits} segment(s) drain outside the table")
    return graph
