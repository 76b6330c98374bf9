"""Network state model: per-line station trees and their service states."""

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, List, Optional, Tuple

from .models import (
    EventRecord,
    LineMeta,
    LineSnapshot,
    RangeSpec,
    Route,
    RouteItem,
    RouteSegment,
    ServiceState,
    StationSnapshot,
    StationsSpec,
    format_station_id,
)
from .route import compute_levels, extract_route_stations, resolve_routes

logger = logging.getLogger(__name__)


@dataclass
class StationNode:
    """A station in its line's tree. Parent and children are station ids."""
    parent: Optional[str] = None
    children: List[str] = field(default_factory=list)
    state: ServiceState = ServiceState.NEVER
    edge_state: ServiceState = ServiceState.NEVER  # edge towards the parent
    level: int = 0


@dataclass
class LineState:
    station_ids: List[str]
    names: Dict[str, str]  # local station name -> station id
    routes: List[Route]
    nodes: Dict[str, StationNode]
    state: ServiceState = ServiceState.NEVER


class MetroModel:
    """
    Holds the station tree and current service states of every line.

    All mutation goes through apply_event(); snapshot() is a pure read.
    The topology is fixed at construction, only activation states change.
    """

    def __init__(self, metas: List[LineMeta]):
        """
        Build the station trees.

        Args:
            metas: Static line metadata.

        Raises:
            ValueError: If a route references an unknown station or the routes do
                not form a tree.
        """
        self.lines: Dict[str, LineState] = {}

        for meta in metas:
            station_ids = [format_station_id(meta.id, name) for name in meta.station_names]
            names = dict(zip(meta.station_names, station_ids))

            raw_routes = None
            if meta.routes is not None:
                raw_routes = [
                    [self._route_item_to_ids(meta.id, names, item) for item in route]
                    for route in meta.routes
                ]
            routes = resolve_routes(station_ids, raw_routes)
            nodes = {sid: StationNode() for sid in station_ids}

            for route in routes:
                for parent_id, sid in zip(route.stations, route.stations[1:]):
                    node = nodes[sid]
                    if node.parent is None:
                        node.parent = parent_id
                        nodes[parent_id].children.append(sid)
                    elif node.parent != parent_id:
                        raise ValueError(
                            f"Station '{sid}' has conflicting parents '{node.parent}' and "
                            f"'{parent_id}' on line '{meta.id}'"
                        )

            compute_levels(routes, nodes)

            self.lines[meta.id] = LineState(
                station_ids=station_ids,
                names=names,
                routes=routes,
                nodes=nodes,
            )
            logger.info(f"Full route for line {meta.id}: {[r.stations for r in routes]}")

    @staticmethod
    def _route_item_to_ids(line_id: str, names: Dict[str, str], item: RouteItem) -> RouteItem:
        def to_id(name: str) -> str:
            if name not in names:
                raise ValueError(f"Station '{name}' not found on line '{line_id}'")
            return names[name]

        if isinstance(item, RangeSpec):
            return RangeSpec(start=to_id(item.start), end=to_id(item.end))
        return to_id(item)

    def _get_line(self, line_id: str) -> LineState:
        if line_id not in self.lines:
            raise ValueError(f"Unknown line ID '{line_id}'")
        return self.lines[line_id]

    @staticmethod
    def _station_id(line_id: str, line: LineState, name: str) -> str:
        if name not in line.names:
            raise ValueError(f"Unknown station '{name}' on line '{line_id}'")
        return line.names[name]

    def apply_event(self, event: EventRecord) -> None:
        """
        Apply an operational event to its line.

        Args:
            event: The event to apply.

        Raises:
            ValueError: If the event references an unknown line, station or type.
        """
        line = self._get_line(event.line)
        new_state = event.new_state
        segment, targets = self._resolve_operated_stations(event.line, event.stations)
        logger.debug(f"[{event.date}] Applying '{event.type}' on line '{event.line}' for stations: {targets}")

        # Deferred stations of a phased opening are reserved as suspended. The
        # primary update below runs afterwards so it wins for shared stations.
        if new_state == ServiceState.OPEN and event.full_stations is not None:
            full_segment, full_targets = self._resolve_operated_stations(event.line, event.full_stations)
            self._update_states(line, full_targets, full_segment, ServiceState.SUSPENDED)

        self._update_states(line, targets, segment, new_state)

        states = [node.state for node in line.nodes.values()]
        if ServiceState.OPEN in states:
            line.state = ServiceState.OPEN
        elif ServiceState.SUSPENDED in states:
            line.state = ServiceState.SUSPENDED
        else:
            line.state = ServiceState.NEVER

    @staticmethod
    def _update_states(line: LineState, targets: List[str], segment: List[str], new_state: ServiceState) -> None:
        for sid in targets:
            line.nodes[sid].state = new_state

        # Edges follow the whole segment, not the trimmed targets.
        in_segment = set(segment)
        for sid in segment:
            node = line.nodes[sid]
            if node.parent is not None and node.parent in in_segment:
                node.edge_state = new_state

    @staticmethod
    def _is_realtime_terminus(line: LineState, sid: str) -> bool:
        """Whether a station currently ends a run of service."""
        node = line.nodes[sid]
        return (
            node.parent is None
            or not node.children
            or node.edge_state != ServiceState.OPEN
            or all(line.nodes[child].edge_state != ServiceState.OPEN for child in node.children)
        )

    def _resolve_operated_stations(self, line_id: str, spec: StationsSpec) -> Tuple[List[str], List[str]]:
        """
        Resolve a station spec against the line's current state.

        Returns:
            (segment, subset): the full path whose edges are updated, and the stations
            whose own state is updated. Range endpoints are only part of the subset
            while they are realtime termini.
        """
        line = self._get_line(line_id)

        if not isinstance(spec, RangeSpec):
            ids = [self._station_id(line_id, line, name) for name in spec]
            return ids, list(ids)

        segment = extract_route_stations(
            line.routes,
            self._station_id(line_id, line, spec.start),
            self._station_id(line_id, line, spec.end),
        )

        subset = list(segment)
        if subset and not self._is_realtime_terminus(line, subset[0]):
            subset.pop(0)
        if subset and not self._is_realtime_terminus(line, subset[-1]):
            subset.pop()

        if spec.exclude:
            excluded = {self._station_id(line_id, line, name) for name in spec.exclude}
            subset = [sid for sid in subset if sid not in excluded]

        if not subset:
            current = ", ".join(f"{sid}: {node.state.name}" for sid, node in line.nodes.items())
            logger.warning(
                f"No stations resolved for line '{line_id}' from '{spec.start}' to '{spec.end}'. "
                f"Current station states: {current}"
            )
        return segment, subset

    def snapshot(self, line_id: str) -> LineSnapshot:
        """Take an immutable snapshot of a line's current state."""
        line = self._get_line(line_id)
        stations = MappingProxyType({
            sid: StationSnapshot(state=node.state, level=node.level)
            for sid, node in line.nodes.items()
        })
        return LineSnapshot(
            line_state=line.state,
            stations=stations,
            routes=tuple(self._snapshot_routes(line)),
        )

    @staticmethod
    def _snapshot_routes(line: LineState) -> List[RouteSegment]:
        """
        Group the line's edges into route segments.

        Each route is walked upward from its tail, collecting maximal runs of edges
        with the same non-Never state. Runs stop at branch points, each edge is
        claimed by the first route that reaches it, and segments are listed top-down.
        """
        claimed = set()
        segments: List[RouteSegment] = []

        for route in line.routes:
            stations = route.stations
            runs: List[RouteSegment] = []
            i = len(stations) - 1
            while i > 0:
                sid = stations[i]
                state = line.nodes[sid].edge_state
                if state == ServiceState.NEVER or sid in claimed:
                    i -= 1
                    continue

                run = [sid]
                claimed.add(sid)
                j = i - 1
                while True:
                    prev = stations[j]
                    run.append(prev)
                    prev_node = line.nodes[prev]
                    if (
                        j == 0
                        or len(prev_node.children) > 1
                        or prev_node.edge_state != state
                        or prev in claimed
                    ):
                        break
                    claimed.add(prev)
                    j -= 1

                runs.append(RouteSegment(stations=tuple(reversed(run)), state=state))
                i = j

            # Runs were found bottom-up; keep them in top-down order.
            segments.extend(reversed(runs))

        return _merge_segments(segments)


def _merge_segments(segments: List[RouteSegment]) -> List[RouteSegment]:
    """Fuse segments meeting end-to-start at a station no third segment touches."""
    segments = list(segments)
    merged = True
    while merged:
        merged = False
        for a_idx, a in enumerate(segments):
            joint = a.stations[-1]
            touching = sum(1 for s in segments if joint in (s.stations[0], s.stations[-1]))
            if touching != 2:
                continue
            for b_idx, b in enumerate(segments):
                if b_idx != a_idx and b.stations[0] == joint and b.state == a.state:
                    segments[a_idx] = RouteSegment(stations=a.stations + b.stations[1:], state=a.state)
                    del segments[b_idx]
                    merged = True
                    break
            if merged:
                break
    return segments
