"""Example usage of MetroTimelineGenerator."""

import logging
import sys
from pathlib import Path

# Add src to path so we can import metrotimeline
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from metrotimeline.timeline_generator import MetroTimelineGenerator

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


def generate(data_dir: str, out_path: str):
    """
    Generate the timeline for a data directory and print a short summary.

    Args:
        data_dir: Directory holding lines_meta.json, events.json and ridership.csv
        out_path: Where to write the timeline JSON
    """
    generator = MetroTimelineGenerator()
    generator.load_from_directory(data_dir)
    timeline = generator.generate()
    generator.write(out_path)

    if not timeline.days:
        print("No days to simulate")
        return

    print(f"\n{'='*70}")
    print(f"Simulated {len(timeline.days)} days ({timeline.days[0]} to {timeline.days[-1]})")
    print(f"{'='*70}\n")
    for line in timeline.lines.values():
        opened = sum(1 for s in line.stations if s.service and s.service[-1]["state"] == 1)
        first = timeline.days[line.first_day] if line.first_day is not None else "never"
        print(f"  Line {line.id}: first open {first}, {opened}/{len(line.stations)} stations open at end")


if __name__ == "__main__":
    if len(sys.argv) != 3:
        print("Usage: python generate_timeline.py <data_dir> <out_path>")
        sys.exit(1)
    try:
        generate(sys.argv[1], sys.argv[2])
    except ValueError as e:
        logger.error(f"Invalid input data: {e}")
        sys.exit(1)
