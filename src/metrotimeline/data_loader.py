"""Loader for line metadata, events and ridership inputs."""

import io
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import pandas as pd
import requests

from .models import EventRecord, LineMeta

logger = logging.getLogger(__name__)

LINES_META_FILE = "lines_meta.json"
LINES_LAYOUT_FILE = "lines_layout.json"
EVENTS_FILE = "events.json"
RIDERSHIP_FILE = "ridership.csv"

REQUEST_TIMEOUT = 30

# Keys a layout override may replace in the line metadata.
LAYOUT_KEYS = ("x", "color", "routes", "dummyRidership")


class MetroDataLoader:
    """Loads and indexes the simulation inputs."""

    def __init__(self):
        """Initialize the loader."""
        self.lines: List[LineMeta] = []
        self.events: List[EventRecord] = []
        self.ridership: Dict[str, Dict[str, Union[int, float]]] = {}  # date -> {line id: count}
        self.days: List[str] = []  # sorted ridership dates

    def load_from_files(
        self,
        meta_path: str,
        events_path: str,
        ridership_path: str,
        layout_path: Optional[str] = None,
    ) -> None:
        """
        Load inputs from local files.

        Args:
            meta_path: Path to the line metadata JSON.
            events_path: Path to the events JSON.
            ridership_path: Path to the pre-aggregated ridership CSV.
            layout_path: Optional path to per-line layout overrides.
        """
        logger.info("Loading metro data from local files")
        layout_content = None
        if layout_path is not None:
            layout_content = Path(layout_path).read_text(encoding="utf-8")

        self._load_lines(Path(meta_path).read_text(encoding="utf-8"), layout_content)
        self._load_events(Path(events_path).read_text(encoding="utf-8"))
        self._load_ridership(Path(ridership_path).read_text(encoding="utf-8"))
        logger.info(f"Loaded {len(self.lines)} lines, {len(self.events)} events and {len(self.days)} days")

    def load_from_directory(self, data_dir: str) -> None:
        """Load inputs stored under their default file names in one directory."""
        base = Path(data_dir)
        layout_path = base / LINES_LAYOUT_FILE
        self.load_from_files(
            str(base / LINES_META_FILE),
            str(base / EVENTS_FILE),
            str(base / RIDERSHIP_FILE),
            str(layout_path) if layout_path.exists() else None,
        )

    def load_from_url(self, base_url: str, with_layout: bool = True) -> None:
        """Download inputs stored under their default file names below `base_url`."""
        base_url = base_url.rstrip("/")
        logger.info(f"Downloading metro data from {base_url}")
        try:
            meta = self._fetch(f"{base_url}/{LINES_META_FILE}")
            layout = self._fetch(f"{base_url}/{LINES_LAYOUT_FILE}") if with_layout else None
            events = self._fetch(f"{base_url}/{EVENTS_FILE}")
            ridership = self._fetch(f"{base_url}/{RIDERSHIP_FILE}")
        except requests.RequestException as e:
            logger.error(f"Failed to download metro data: {e}")
            raise

        self._load_lines(meta, layout)
        self._load_events(events)
        self._load_ridership(ridership)
        logger.info(f"Loaded {len(self.lines)} lines, {len(self.events)} events and {len(self.days)} days")

    @staticmethod
    def _fetch(url: str) -> str:
        logger.debug(f"Fetching {url}")
        response = requests.get(url, timeout=REQUEST_TIMEOUT)
        response.raise_for_status()
        response.encoding = "utf-8"
        return response.text

    @staticmethod
    def _parse_json(content: str, what: str) -> Any:
        try:
            return json.loads(content)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {what}: {e}") from e

    def _load_lines(self, meta_content: str, layout_content: Optional[str] = None) -> None:
        """Parse line metadata, merging per-line layout overrides over it."""
        raw_lines = self._parse_json(meta_content, "line metadata")
        if not isinstance(raw_lines, list):
            raise ValueError("Line metadata must be a list of lines")

        overrides: Dict[str, Dict[str, Any]] = {}
        if layout_content is not None:
            overrides = self._parse_json(layout_content, "line layout")

        self.lines = []
        for raw in raw_lines:
            merged = dict(raw)
            override = overrides.get(str(raw.get("id")), {})
            for key in LAYOUT_KEYS:
                if key in override:
                    merged[key] = override[key]
            self.lines.append(LineMeta.from_dict(merged))

    def _load_events(self, content: str) -> None:
        raw_events = self._parse_json(content, "events")
        if not isinstance(raw_events, list):
            raise ValueError("Events must be a list of records")
        self.events = [EventRecord.from_dict(raw) for raw in raw_events]

    def _load_ridership(self, csv_content: str) -> None:
        """Parse the ridership CSV: a date column followed by one column per line id."""
        self.ridership = {}
        if not csv_content.strip():
            self.days = []
            return

        df = pd.read_csv(io.StringIO(csv_content), dtype=str, skip_blank_lines=True)
        df.columns = [str(c).strip() for c in df.columns]
        date_col = df.columns[0]

        for _, row in df.iterrows():
            date = row[date_col]
            if pd.isna(date) or not str(date).strip():
                continue
            counts: Dict[str, Union[int, float]] = {}
            for col in df.columns[1:]:
                value = row[col]
                if pd.isna(value) or not str(value).strip():
                    continue
                number = float(value)
                # Whole counts stay ints so they serialize as 10, not 10.0
                counts[col] = int(number) if number.is_integer() else number
            self.ridership[str(date).strip()] = counts

        self.days = sorted(self.ridership)


def extend_dummy_days(sorted_days: List[str], events: List[EventRecord]) -> List[str]:
    """
    Prepend calendar days so events predating the ridership data are simulated.

    When the earliest event is on or before the first ridership day, every day from
    the day before that event up to the first ridership day (exclusive) is added.
    """
    if not sorted_days or not events:
        return list(sorted_days)

    event_dates = [e.date for e in events if len(e.date) == 10]
    if not event_dates:
        return list(sorted_days)

    first_event_date = min(event_dates)
    first_ridership_date = sorted_days[0]
    if first_event_date > first_ridership_date:
        return list(sorted_days)

    start = pd.Timestamp(first_event_date) - pd.Timedelta(days=1)
    end = pd.Timestamp(first_ridership_date) - pd.Timedelta(days=1)
    dummy_days = [d.strftime("%Y-%m-%d") for d in pd.date_range(start, end, freq="D")]
    logger.info(f"Adding {len(dummy_days)} dummy days from {first_event_date} to {first_ridership_date}")
    return dummy_days + list(sorted_days)
