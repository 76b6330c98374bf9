"""Resolution of declarative route specs into concrete station paths."""

import logging
from typing import Dict, List, Optional, Tuple

from .models import RangeSpec, Route, RouteItem

logger = logging.getLogger(__name__)


def resolve_routes(station_ids: List[str], raw_routes: Optional[List[List[RouteItem]]] = None) -> List[Route]:
    """
    Expand route specs into concrete routes.

    Args:
        station_ids: Nominal station order of the line.
        raw_routes: Route specs, each a list of station ids and ranges. When omitted,
            a single route spanning the whole nominal order is used.

    Returns:
        One Route per spec, in spec order.

    Raises:
        ValueError: If a spec references a station outside the line.
    """
    if raw_routes is None:
        if not station_ids:
            return []
        raw_routes = [[RangeSpec(start=station_ids[0], end=station_ids[-1])]]

    return [Route(stations=resolve_route(station_ids, raw)) for raw in raw_routes]


def resolve_route(station_ids: List[str], raw_route: List[RouteItem]) -> List[str]:
    """Resolve a single route spec into an ordered list of station ids."""
    result: List[str] = []
    for item in raw_route:
        if isinstance(item, RangeSpec):
            segment, _, _ = extract_range_stations(station_ids, item.start, item.end)
            result.extend(segment)
        else:
            if item not in station_ids:
                raise ValueError(f"Station '{item}' not found")
            result.append(item)

    if not result:
        raise ValueError("Route spec resolved to no stations")
    return result


def extract_range_stations(station_ids: List[str], start: str, end: str) -> Tuple[List[str], int, int]:
    """
    Slice the nominal station order between two stations, both inclusive.

    Returns:
        (segment, low index, high index). The segment runs from `start` to `end`,
        so it is reversed when `start` comes after `end`.
    """
    for sid in (start, end):
        if sid not in station_ids:
            raise ValueError(f"Station '{sid}' not found when extracting range stations")

    start_idx = station_ids.index(start)
    end_idx = station_ids.index(end)
    low, high = min(start_idx, end_idx), max(start_idx, end_idx)

    segment = station_ids[low:high + 1]
    if start_idx > end_idx:
        segment.reverse()
    return segment, low, high


def _slice_towards(stations: List[str], from_idx: int, to_idx: int) -> List[str]:
    """Stations walking from `from_idx` towards `to_idx`, excluding the one at `to_idx`."""
    if from_idx < to_idx:
        return stations[from_idx:to_idx]
    return stations[to_idx + 1:from_idx + 1][::-1]


def extract_route_stations(routes: List[Route], start: str, end: str) -> List[str]:
    """
    Get the ordered path between two stations of the same line.

    When both stations sit on one route the contiguous slice is returned. Otherwise
    the path is bridged through a single junction station shared by the two routes.
    Branch routes may repeat the trunk above their junction, so the junction is the
    deepest station the two routes share.

    Raises:
        ValueError: If the stations are not connected through at most one junction,
            or the bridged path would pass a station twice.
    """
    # Same route
    for route in routes:
        if start in route.stations and end in route.stations:
            start_idx = route.stations.index(start)
            end_idx = route.stations.index(end)
            low, high = min(start_idx, end_idx), max(start_idx, end_idx)
            segment = route.stations[low:high + 1]
            if start_idx > end_idx:
                segment.reverse()
            return segment

    # Different routes, bridged by exactly one junction
    for route_a in routes:
        if start not in route_a.stations:
            continue
        for route_b in routes:
            if end not in route_b.stations:
                continue
            junction = next((sid for sid in reversed(route_a.stations) if sid in route_b.stations), None)
            if junction is None:
                continue

            head = _slice_towards(route_a.stations, route_a.stations.index(start), route_a.stations.index(junction))
            tail = _slice_towards(route_b.stations, route_b.stations.index(end), route_b.stations.index(junction))
            path = head + [junction] + tail[::-1]
            if len(set(path)) != len(path):
                raise ValueError(
                    f"Stations '{start}' and '{end}' are not on diverging branches of junction '{junction}'"
                )
            logger.debug(f"Bridged '{start}' -> '{end}' through junction '{junction}'")
            return path

    raise ValueError(
        f"Stations '{start}' and '{end}' are not connected through a single junction in any route"
    )


def compute_levels(routes: List[Route], nodes: Dict[str, object]) -> None:
    """
    Assign each station its vertical level.

    A route continues numbering from the level already held by its first station,
    so branches starting at a junction sit below it rather than restarting at 0.

    Args:
        routes: Resolved routes, trunk first.
        nodes: Station id -> node object carrying a `level` attribute.
    """
    for route in routes:
        for sid in route.stations:
            if sid not in nodes:
                raise ValueError(f"Unknown station ID '{sid}' when computing levels")

        base_level = nodes[route.stations[0]].level
        for i, sid in enumerate(route.stations):
            nodes[sid].level = base_level + i
