"""Station layout: on-screen positions from levels and route segments."""

from dataclasses import dataclass
from typing import Dict, List, Mapping, Sequence

from .models import Position, RouteSegment, ServiceState, StationSnapshot

VISIBLE_STATES = (ServiceState.OPEN, ServiceState.SUSPENDED)


@dataclass
class LayoutConfig:
    """Canvas geometry used to place stations."""
    width: int = 1920
    height: int = 1080
    top_padding: float = 50
    bottom_padding: float = 105
    branch_offset: float = 50
    first_line_x: float = 160  # x of the first line without an explicit x
    line_spacing: float = 80

    @property
    def top_y(self) -> float:
        return self.top_padding

    @property
    def bottom_y(self) -> float:
        return self.height - self.bottom_padding

    def default_line_x(self, index: int) -> float:
        return self.first_line_x + index * self.line_spacing


def _level_map(route: RouteSegment, visible: Dict[str, StationSnapshot]) -> Dict[int, str]:
    """Level -> station for the visible stations of a route segment."""
    return {visible[sid].level: sid for sid in route.stations if sid in visible}


def _conflicts(a: Dict[int, str], b: Dict[int, str]) -> bool:
    """
    Two routes overlap when they hold different stations on a common level.

    Sharing a station, such as the junction a branch starts from, is not a conflict.
    """
    return any(level in b and b[level] != sid for level, sid in a.items())


def calculate_station_positions(
    routes: Sequence[RouteSegment],
    stations: Mapping[str, StationSnapshot],
    base_x: float,
    top_y: float,
    bottom_y: float,
    branch_offset: float,
) -> Dict[str, Position]:
    """
    Compute the position of every open or suspended station of a line.

    The y coordinate interpolates the station's level between top_y and bottom_y
    over the range of levels visible today. Routes holding different stations on
    the same level form a conflict group and are fanned out symmetrically around
    base_x. A station keeps the x of the first group that placed it.

    Args:
        routes: Current route segments of the line, in order.
        stations: Station id -> snapshot for the line.
        base_x: Nominal x of the line.
        top_y: y of the lowest visible level.
        bottom_y: y of the highest visible level.
        branch_offset: Horizontal distance between conflicting routes.

    Returns:
        Station id -> Position, in the order of `stations`.
    """
    visible = {sid: st for sid, st in stations.items() if st.state in VISIBLE_STATES}
    if not visible:
        return {}

    levels = [st.level for st in visible.values()]
    min_level, max_level = min(levels), max(levels)
    span = max_level - min_level

    def y_of(level: int) -> float:
        if span == 0:
            return top_y
        return top_y + (level - min_level) * (bottom_y - top_y) / span

    xs: Dict[str, float] = {}
    level_maps: List[Dict[int, str]] = [_level_map(route, visible) for route in routes]
    processed = [False] * len(routes)

    for i in range(len(routes)):
        if processed[i]:
            continue
        group = [i] + [
            j for j in range(i + 1, len(routes))
            if not processed[j] and _conflicts(level_maps[i], level_maps[j])
        ]
        for index, route_idx in enumerate(group):
            processed[route_idx] = True
            offset = (index - (len(group) - 1) / 2) * branch_offset
            for sid in routes[route_idx].stations:
                if sid in visible and sid not in xs:
                    xs[sid] = base_x + offset

    positions: Dict[str, Position] = {}
    for sid, st in visible.items():
        positions[sid] = Position(x=xs.get(sid, base_x), y=y_of(st.level))
    return positions
