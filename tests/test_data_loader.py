"""Tests for input loading and the timeline generator."""

import json
import tempfile
import unittest
from unittest.mock import patch, MagicMock
import sys
from pathlib import Path

import requests

# Add src to path so we can import metrotimeline
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from metrotimeline.data_loader import MetroDataLoader, extend_dummy_days
from metrotimeline.models import EventRecord, RangeSpec
from metrotimeline.timeline_generator import MetroTimelineGenerator

LINES_META = [
    {"id": "1", "color": "#ff0000", "stations": [["S1", "One"], ["S2", "Two"], ["S3", "Three"]]},
    {
        "id": "2",
        "color": "#0000ff",
        "stations": [["P", "P"], ["J", "J"], ["R", "R"], ["T", "T"]],
        "routes": [[{"from": "P", "to": "R"}], ["J", "T"]],
    },
]

LINES_LAYOUT = {"1": {"x": 240, "dummyRidership": 2, "ignored": True}}

EVENTS = [
    {"date": "2020-01-01", "line": "1", "type": "open", "stations": ["S1", "S2", "S3"]},
    {
        "date": "2020-01-02",
        "line": "2",
        "type": "open",
        "stations": {"from": "P", "to": "R", "except": ["J"]},
        "fullStations": ["P", "J", "R", "T"],
    },
]

RIDERSHIP_CSV = """date,1,2,total
2020-01-02,10,,10
2020-01-01,8,,8
2020-01-03,11,4,15
"""


class TestMetroDataLoader(unittest.TestCase):
    """Test parsing of the input files."""

    def test_load_ridership_csv(self):
        loader = MetroDataLoader()
        loader._load_ridership(RIDERSHIP_CSV)

        self.assertEqual(loader.days, ["2020-01-01", "2020-01-02", "2020-01-03"])
        self.assertEqual(loader.ridership["2020-01-02"], {"1": 10, "total": 10})
        self.assertEqual(loader.ridership["2020-01-03"]["2"], 4)

    def test_whole_counts_are_ints(self):
        loader = MetroDataLoader()
        loader._load_ridership("date,1,2\n2020-01-01,12,3.5\n2020-01-02,7.0,\n")

        self.assertIsInstance(loader.ridership["2020-01-01"]["1"], int)
        self.assertEqual(loader.ridership["2020-01-01"]["2"], 3.5)
        self.assertIsInstance(loader.ridership["2020-01-02"]["1"], int)
        self.assertEqual(loader.ridership["2020-01-02"], {"1": 7})

    def test_load_empty_ridership(self):
        loader = MetroDataLoader()
        loader._load_ridership("")
        self.assertEqual(loader.days, [])
        self.assertEqual(loader.ridership, {})

    def test_load_lines_with_layout_overrides(self):
        loader = MetroDataLoader()
        loader._load_lines(json.dumps(LINES_META), json.dumps(LINES_LAYOUT))

        line1, line2 = loader.lines
        self.assertEqual(line1.x, 240)
        self.assertEqual(line1.dummy_ridership, 2)
        self.assertEqual(line1.station_names, ["S1", "S2", "S3"])
        self.assertEqual(line1.stations[0].translation, "One")
        self.assertIsNone(line1.routes)
        self.assertEqual(line2.routes, [[RangeSpec("P", "R")], ["J", "T"]])

    def test_load_events(self):
        loader = MetroDataLoader()
        loader._load_events(json.dumps(EVENTS))

        first, second = loader.events
        self.assertEqual(first.stations, ["S1", "S2", "S3"])
        self.assertIsNone(first.full_stations)
        self.assertEqual(second.stations, RangeSpec("P", "R", exclude=["J"]))
        self.assertEqual(second.full_stations, ["P", "J", "R", "T"])

    def test_invalid_json(self):
        loader = MetroDataLoader()
        with self.assertRaises(ValueError):
            loader._load_events("{not json")

    def test_missing_keys(self):
        loader = MetroDataLoader()
        with self.assertRaises(ValueError):
            loader._load_events(json.dumps([{"date": "2020-01-01", "line": "1"}]))
        with self.assertRaises(ValueError):
            loader._load_lines(json.dumps([{"id": "1", "stations": []}]))

    def test_load_from_directory(self):
        with tempfile.TemporaryDirectory() as tmp:
            base = Path(tmp)
            (base / "lines_meta.json").write_text(json.dumps(LINES_META), encoding="utf-8")
            (base / "events.json").write_text(json.dumps(EVENTS), encoding="utf-8")
            (base / "ridership.csv").write_text(RIDERSHIP_CSV, encoding="utf-8")

            loader = MetroDataLoader()
            loader.load_from_directory(tmp)

        self.assertEqual(len(loader.lines), 2)
        self.assertEqual(len(loader.events), 2)
        self.assertIsNone(loader.lines[0].x)

    @patch("metrotimeline.data_loader.requests.get")
    def test_load_from_url(self, mock_get):
        bodies = {
            "https://example.com/data/lines_meta.json": json.dumps(LINES_META),
            "https://example.com/data/lines_layout.json": json.dumps(LINES_LAYOUT),
            "https://example.com/data/events.json": json.dumps(EVENTS),
            "https://example.com/data/ridership.csv": RIDERSHIP_CSV,
        }

        def fake_get(url, timeout):
            response = MagicMock()
            response.text = bodies[url]
            return response

        mock_get.side_effect = fake_get

        loader = MetroDataLoader()
        loader.load_from_url("https://example.com/data/")

        self.assertEqual(mock_get.call_count, 4)
        self.assertEqual(loader.lines[0].x, 240)
        self.assertEqual(loader.days[0], "2020-01-01")

    @patch("metrotimeline.data_loader.requests.get")
    def test_load_from_url_failure(self, mock_get):
        mock_get.side_effect = requests.ConnectionError("unreachable")
        loader = MetroDataLoader()
        with self.assertRaises(requests.ConnectionError):
            loader.load_from_url("https://example.com/data")


class TestExtendDummyDays(unittest.TestCase):
    """Test prepending of days before the ridership data."""

    def event(self, date):
        return EventRecord(date=date, line="1", type="open", stations=["A"])

    def test_prepends_days_from_day_before_first_event(self):
        days = extend_dummy_days(["2020-01-03", "2020-01-04"], [self.event("2020-01-01")])
        self.assertEqual(
            days,
            ["2019-12-31", "2020-01-01", "2020-01-02", "2020-01-03", "2020-01-04"],
        )

    def test_event_on_first_ridership_day(self):
        days = extend_dummy_days(["2020-01-03"], [self.event("2020-01-03")])
        self.assertEqual(days, ["2020-01-02", "2020-01-03"])

    def test_no_extension_for_later_events(self):
        days = extend_dummy_days(["2020-01-03"], [self.event("2020-02-01")])
        self.assertEqual(days, ["2020-01-03"])

    def test_malformed_dates_ignored(self):
        days = extend_dummy_days(["2020-01-03"], [self.event("2019"), self.event("2020-01-05")])
        self.assertEqual(days, ["2020-01-03"])


class TestMetroTimelineGenerator(unittest.TestCase):
    """Test the generator facade end to end."""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        base = Path(self.tmp.name)
        (base / "lines_meta.json").write_text(json.dumps(LINES_META), encoding="utf-8")
        (base / "lines_layout.json").write_text(json.dumps(LINES_LAYOUT), encoding="utf-8")
        (base / "events.json").write_text(json.dumps(EVENTS), encoding="utf-8")
        (base / "ridership.csv").write_text(RIDERSHIP_CSV, encoding="utf-8")
        self.base = base

        self.generator = MetroTimelineGenerator()
        self.generator.load_from_directory(self.tmp.name)

    def tearDown(self):
        self.tmp.cleanup()

    def test_generate(self):
        timeline = self.generator.generate()

        # The first event falls on the first ridership day, so one dummy day is added.
        self.assertEqual(timeline.days, ["2019-12-31", "2020-01-01", "2020-01-02", "2020-01-03"])
        self.assertEqual(timeline.total_riderships, [0, 8, 10, 15])

        line1 = self.generator.get_line_data("1")
        self.assertEqual(line1.x, 240)
        self.assertEqual(line1.first_day, 1)
        self.assertEqual(line1.ridership, [8, 10, 11])

    def test_deferred_branch_opening(self):
        self.generator.generate()
        line2 = self.generator.get_line_data("2")

        states = {s.name: s.service[-1]["state"] for s in line2.stations}
        self.assertEqual(states, {"P": 1, "J": 2, "R": 1, "T": 2})
        # Line 2 has no count on 2020-01-02 and no dummy value.
        self.assertEqual(line2.ridership, [0, 4])

    def test_get_line_data_errors(self):
        with self.assertRaises(ValueError):
            self.generator.get_line_data("1")
        self.generator.generate()
        with self.assertRaises(ValueError):
            self.generator.get_line_data("9")

    def test_write_is_byte_identical(self):
        first_path = self.base / "out" / "first.json"
        second_path = self.base / "out" / "second.json"
        self.generator.generate()
        self.generator.write(str(first_path))

        other = MetroTimelineGenerator()
        other.load_from_directory(self.tmp.name)
        other.generate()
        other.write(str(second_path))

        self.assertEqual(first_path.read_bytes(), second_path.read_bytes())
        document = json.loads(first_path.read_text(encoding="utf-8"))
        self.assertEqual(document["meta"], {"width": 1920, "height": 1080})
        self.assertIn("routePoints", document["lines"]["2"])
        self.assertIn(b'"totalRiderships":[0,8,10,15]', first_path.read_bytes())

    def test_generate_without_data(self):
        with self.assertRaises(ValueError):
            MetroTimelineGenerator().generate()


if __name__ == "__main__":
    unittest.main()
