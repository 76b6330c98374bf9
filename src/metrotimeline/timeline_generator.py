"""Main metro timeline generator class."""

import json
import logging
from pathlib import Path
from typing import Optional

from .data_loader import MetroDataLoader, extend_dummy_days
from .layout import LayoutConfig
from .models import LineData, TimelineData
from .simulation import simulate

logger = logging.getLogger(__name__)


class MetroTimelineGenerator:
    """
    Builds the day-indexed metro network timeline.

    This class provides methods to:
    - Load line metadata, events and ridership from files or a URL
    - Run the simulation over the ridership days (plus leading dummy days)
    - Write the resulting timeline as a single JSON document
    """

    def __init__(self, layout_config: Optional[LayoutConfig] = None):
        """
        Initialize the generator.

        Args:
            layout_config: Canvas geometry. Defaults to a 1920x1080 canvas.
        """
        self.layout_config = layout_config or LayoutConfig()
        self.data_loader = MetroDataLoader()
        self.timeline: Optional[TimelineData] = None

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
            meta_path: Path to lines_meta.json
            events_path: Path to events.json
            ridership_path: Path to ridership.csv
            layout_path: Optional path to lines_layout.json
        """
        self.data_loader.load_from_files(meta_path, events_path, ridership_path, layout_path)

    def load_from_directory(self, data_dir: str) -> None:
        """Load inputs from a directory holding the default file names."""
        self.data_loader.load_from_directory(data_dir)

    def load_from_url(self, base_url: str) -> None:
        """Download inputs from a base URL holding the default file names."""
        self.data_loader.load_from_url(base_url)

    def generate(self) -> TimelineData:
        """
        Run the simulation over the loaded inputs.

        Returns:
            The generated timeline.

        Raises:
            ValueError: If no line metadata is loaded, or the inputs are structurally invalid.
        """
        loader = self.data_loader
        if not loader.lines:
            raise ValueError("No line metadata loaded")

        days = extend_dummy_days(loader.days, loader.events)
        self.timeline = simulate(loader.ridership, days, loader.events, loader.lines, self.layout_config)
        logger.info(f"Simulated {len(days)} days for {len(loader.lines)} lines")
        return self.timeline

    def get_line_data(self, line_id: str) -> LineData:
        """
        Get the generated timeline of one line.

        Raises:
            ValueError: If nothing was generated yet or the line is unknown.
        """
        if self.timeline is None:
            raise ValueError("Timeline has not been generated")
        if line_id not in self.timeline.lines:
            raise ValueError(f"Line {line_id} not found")
        return self.timeline.lines[line_id]

    def to_json(self) -> str:
        """Serialize the generated timeline."""
        if self.timeline is None:
            self.generate()
        return json.dumps(self.timeline.to_dict(), ensure_ascii=False, separators=(",", ":"))

    def write(self, out_path: str) -> None:
        """Write the generated timeline to `out_path`, creating parent directories."""
        path = Path(out_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_json(), encoding="utf-8")
        logger.info(f"Wrote timeline to {path}")
