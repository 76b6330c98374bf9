"""Data models for the metro network timeline."""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, List, Mapping, Optional, Union


class ServiceState(IntEnum):
    """Service state of a line, station or route edge."""
    NEVER = 0  # not yet existing, excluded from rendering
    OPEN = 1
    SUSPENDED = 2  # temporarily inactive but visible
    CLOSED = 3  # permanently retired from this day onward


EVENT_TYPES = {
    "open": ServiceState.OPEN,
    "close": ServiceState.CLOSED,
    "suspend": ServiceState.SUSPENDED,
    "resume": ServiceState.OPEN,
}


def format_station_id(line_id: str, name: str) -> str:
    """Build the globally unique id of a station from its line and local name."""
    return f"{line_id}:{name}"


@dataclass(frozen=True)
class RangeSpec:
    """A `from`/`to` station range, optionally with stations to leave out."""
    start: str
    end: str
    exclude: List[str] = field(default_factory=list)


# A route item is either a bare station name or a range.
RouteItem = Union[str, RangeSpec]
# An event target is either an explicit station list or a range.
StationsSpec = Union[List[str], RangeSpec]


def parse_range(data: Dict[str, Any]) -> RangeSpec:
    """Parse a `{"from": ..., "to": ..., "except": [...]}` mapping."""
    try:
        return RangeSpec(
            start=data["from"],
            end=data["to"],
            exclude=list(data.get("except") or []),
        )
    except KeyError as e:
        raise ValueError(f"Station range {data!r} is missing key {e}") from e


def parse_route_item(item: Union[str, Dict[str, Any]]) -> RouteItem:
    """Parse one item of a declarative route spec."""
    if isinstance(item, str):
        return item
    if isinstance(item, dict):
        return parse_range(item)
    raise ValueError(f"Invalid route item {item!r}")


def parse_stations_spec(spec: Union[List[str], Dict[str, Any]]) -> StationsSpec:
    """Parse an event's `stations` or `fullStations` value."""
    if isinstance(spec, list):
        return [str(s) for s in spec]
    if isinstance(spec, dict):
        return parse_range(spec)
    raise ValueError(f"Invalid stations spec {spec!r}")


@dataclass
class StationMeta:
    """Static description of a station."""
    name: str
    translation: Optional[str] = None


@dataclass
class LineMeta:
    """Static description of a metro line."""
    id: str
    color: str
    stations: List[StationMeta]
    x: Optional[float] = None
    routes: Optional[List[List[RouteItem]]] = None
    dummy_ridership: Optional[float] = None

    @property
    def station_names(self) -> List[str]:
        return [s.name for s in self.stations]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LineMeta":
        """Build a LineMeta from its JSON representation."""
        try:
            line_id = str(data["id"])
            color = data["color"]
            raw_stations = data["stations"]
        except KeyError as e:
            raise ValueError(f"Line metadata {data.get('id')!r} is missing key {e}") from e

        stations = []
        for entry in raw_stations:
            if isinstance(entry, str):
                stations.append(StationMeta(name=entry))
            else:
                name = entry[0]
                translation = entry[1] if len(entry) > 1 else None
                stations.append(StationMeta(name=name, translation=translation))

        routes = None
        if data.get("routes") is not None:
            routes = [[parse_route_item(item) for item in route] for route in data["routes"]]

        return cls(
            id=line_id,
            color=color,
            stations=stations,
            x=data.get("x"),
            routes=routes,
            dummy_ridership=data.get("dummyRidership"),
        )


@dataclass
class EventRecord:
    """An operational event applied to a line on a given date."""
    date: str  # "YYYY-MM-DD"
    line: str
    type: str  # open, close, suspend or resume
    stations: StationsSpec
    full_stations: Optional[StationsSpec] = None

    @property
    def new_state(self) -> ServiceState:
        """The service state this event moves its stations into."""
        if self.type not in EVENT_TYPES:
            raise ValueError(f"Unknown event type '{self.type}'")
        return EVENT_TYPES[self.type]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EventRecord":
        """Build an EventRecord from its JSON representation."""
        try:
            full = data.get("fullStations")
            return cls(
                date=str(data["date"]),
                line=str(data["line"]),
                type=data["type"],
                stations=parse_stations_spec(data["stations"]),
                full_stations=parse_stations_spec(full) if full is not None else None,
            )
        except KeyError as e:
            raise ValueError(f"Event {data!r} is missing key {e}") from e


@dataclass
class Route:
    """A resolved route: ordered station ids from the top of the line downward."""
    stations: List[str]


@dataclass(frozen=True)
class RouteSegment:
    """A contiguous run of route edges sharing one service state."""
    stations: tuple
    state: ServiceState

    def to_dict(self) -> Dict[str, Any]:
        return {"stations": list(self.stations), "state": int(self.state)}


@dataclass(frozen=True)
class StationSnapshot:
    state: ServiceState
    level: int


@dataclass(frozen=True)
class LineSnapshot:
    """Immutable view of a line on one simulated day."""
    line_state: ServiceState
    stations: Mapping[str, StationSnapshot]  # read-only, station id -> snapshot, in nominal order
    routes: tuple  # of RouteSegment


@dataclass(frozen=True)
class Position:
    x: float
    y: float


@dataclass
class StationData:
    """Output timeline of a single station."""
    id: str
    name: str
    translation: Optional[str] = None
    positions: List[Dict[str, Any]] = field(default_factory=list)  # {day, x, y}
    service: List[Dict[str, Any]] = field(default_factory=list)  # {day, state}

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id": self.id, "name": self.name}
        if self.translation is not None:
            data["translation"] = self.translation
        data["positions"] = self.positions
        data["service"] = self.service
        return data


@dataclass
class LineData:
    """Output timeline of a single line."""
    id: str
    color_hex: str
    x: float
    stations: List[StationData]
    first_day: Optional[int] = None  # day index ridership[0] belongs to
    ridership: List[float] = field(default_factory=list)
    state_points: List[Dict[str, Any]] = field(default_factory=list)  # {day, state}
    route_points: List[Dict[str, Any]] = field(default_factory=list)  # {day, value}

    def get_station(self, station_id: str) -> StationData:
        for station in self.stations:
            if station.id == station_id:
                return station
        raise ValueError(f"Station {station_id} not found on line {self.id}")

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "colorHex": self.color_hex,
            "x": self.x,
        }
        if self.first_day is not None:
            data["firstDay"] = self.first_day
        data["ridership"] = self.ridership
        data["statePoints"] = self.state_points
        data["routePoints"] = [
            {"day": p["day"], "value": [seg.to_dict() for seg in p["value"]]}
            for p in self.route_points
        ]
        data["stations"] = [s.to_dict() for s in self.stations]
        return data


@dataclass
class TimelineData:
    """Complete simulation output."""
    days: List[str]
    total_riderships: List[float]
    lines: Dict[str, LineData]
    width: int = 1920
    height: int = 1080

    def to_dict(self) -> Dict[str, Any]:
        return {
            "meta": {"width": self.width, "height": self.height},
            "days": self.days,
            "totalRiderships": self.total_riderships,
            "lines": {line_id: line.to_dict() for line_id, line in self.lines.items()},
        }
