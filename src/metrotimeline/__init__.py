"""MetroTimeline - Day-indexed metro network state, topology and layout timeline."""

__version__ = "0.1.0"

from .models import ServiceState, LineMeta, EventRecord, RouteSegment, TimelineData
from .network_model import MetroModel
from .layout import LayoutConfig, calculate_station_positions
from .simulation import simulate
from .data_loader import MetroDataLoader
from .timeline_generator import MetroTimelineGenerator

__all__ = [
    "MetroTimelineGenerator",
    "MetroDataLoader",
    "MetroModel",
    "LayoutConfig",
    "calculate_station_positions",
    "simulate",
    "ServiceState",
    "LineMeta",
    "EventRecord",
    "RouteSegment",
    "TimelineData",
]
