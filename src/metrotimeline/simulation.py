"""Day-by-day simulation producing the sparse network timeline."""

import logging
from collections import deque
from dataclasses import dataclass
from typing import Dict, List, Optional

from .layout import LayoutConfig, calculate_station_positions
from .models import (
    EventRecord,
    LineData,
    LineMeta,
    Position,
    ServiceState,
    StationData,
    TimelineData,
    format_station_id,
)
from .network_model import MetroModel

logger = logging.getLogger(__name__)

TOTAL_KEY = "total"


@dataclass
class _TrackedStation:
    service: Optional[ServiceState] = None
    position: Optional[Position] = None


@dataclass
class _TrackedLine:
    """Last recorded values of a line, used to emit change-points only."""
    stations: Dict[str, _TrackedStation]
    service: Optional[ServiceState] = None
    routes: tuple = ()
    routes_recorded: bool = False


class TimelineSimulator:
    """
    Runs the event/ridership loop over a list of days.

    For each day the due events are applied to the model, every line is
    snapshotted and laid out, and only the values that differ from the previous
    day are appended to the output.
    """

    def __init__(self, metas: List[LineMeta], layout_config: Optional[LayoutConfig] = None):
        self.metas = metas
        self.layout_config = layout_config or LayoutConfig()
        self.model = MetroModel(metas)

        self.lines: Dict[str, LineData] = {}
        self._tracked: Dict[str, _TrackedLine] = {}
        for index, meta in enumerate(metas):
            stations = [
                StationData(
                    id=format_station_id(meta.id, s.name),
                    name=s.name,
                    translation=s.translation,
                )
                for s in meta.stations
            ]
            self.lines[meta.id] = LineData(
                id=meta.id,
                color_hex=meta.color,
                x=meta.x if meta.x is not None else self.layout_config.default_line_x(index),
                stations=stations,
            )
            self._tracked[meta.id] = _TrackedLine(
                stations={s.id: _TrackedStation() for s in stations},
            )

    def run(
        self,
        ridership: Dict[str, Dict[str, float]],
        days: List[str],
        events: List[EventRecord],
    ) -> TimelineData:
        """
        Simulate every day in `days`.

        Args:
            ridership: ISO date -> {line id or "total": count}.
            days: Sorted ISO dates to simulate.
            events: Operational events. Same-day events keep their input order.

        Returns:
            The complete timeline.

        Raises:
            ValueError: If an event references an unknown line, station or type.
        """
        queue = deque(sorted(events, key=lambda e: e.date))
        total_riderships: List[float] = []

        for day_index, date in enumerate(days):
            while queue and queue[0].date <= date:
                event = queue.popleft()
                if len(event.date) != 10:
                    logger.warning(f"Skipping event with malformed date '{event.date}' on line {event.line}")
                    continue
                self.model.apply_event(event)

            daily_counts = ridership.get(date, {})
            total_riderships.append(daily_counts.get(TOTAL_KEY, 0))

            for meta in self.metas:
                self._process_line(meta, day_index, date, daily_counts)

        for event in queue:
            logger.warning(f"Unapplied event on {event.date} for line {event.line}")

        return TimelineData(
            days=list(days),
            total_riderships=total_riderships,
            lines=self.lines,
            width=self.layout_config.width,
            height=self.layout_config.height,
        )

    def _process_line(self, meta: LineMeta, day_index: int, date: str, daily_counts: Dict[str, float]) -> None:
        line_data = self.lines[meta.id]
        tracked = self._tracked[meta.id]
        snapshot = self.model.snapshot(meta.id)

        if tracked.service != snapshot.line_state:
            line_data.state_points.append({"day": day_index, "state": int(snapshot.line_state)})
            tracked.service = snapshot.line_state

        # Ridership starts on the first open day.
        if tracked.service == ServiceState.OPEN:
            if meta.id not in daily_counts and not meta.dummy_ridership:
                logger.warning(f"No ridership data for line {meta.id} on date {date}")
            if line_data.first_day is None:
                line_data.first_day = day_index
        if line_data.first_day is not None:
            line_data.ridership.append(daily_counts.get(meta.id, meta.dummy_ridership or 0))

        if snapshot.routes or tracked.routes_recorded:
            if snapshot.routes != tracked.routes:
                line_data.route_points.append({"day": day_index, "value": list(snapshot.routes)})
                tracked.routes = snapshot.routes
                tracked.routes_recorded = True
                logger.debug(
                    f"Day {day_index} ({date}): line {meta.id} routes changed: "
                    f"{[list(seg.stations) for seg in snapshot.routes]}"
                )

        config = self.layout_config
        positions = calculate_station_positions(
            tracked.routes,
            snapshot.stations,
            line_data.x,
            config.top_y,
            config.bottom_y,
            config.branch_offset,
        )

        for station_data in line_data.stations:
            station_snapshot = snapshot.stations[station_data.id]
            station = tracked.stations[station_data.id]

            if station.service != station_snapshot.state:
                station_data.service.append({"day": day_index, "state": int(station_snapshot.state)})
                station.service = station_snapshot.state

            pos = positions.get(station_data.id)
            if pos is not None and pos != station.position:
                station_data.positions.append({"day": day_index, "x": pos.x, "y": pos.y})
                station.position = pos


def simulate(
    ridership: Dict[str, Dict[str, float]],
    days: List[str],
    events: List[EventRecord],
    metas: List[LineMeta],
    layout_config: Optional[LayoutConfig] = None,
) -> TimelineData:
    """Build the model for `metas` and run the simulation over `days`."""
    return TimelineSimulator(metas, layout_config).run(ridership, days, events)
