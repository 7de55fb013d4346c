"""Reference trace parsing tests."""

import os
import unittest

from tests.common import EVENT_TRACE, write_trace

from padding_machines.errors import TraceLoadError
from padding_machines.trace import (
    CUTOFF_LENGTH,
    Direction,
    TraceEvent,
    bursts_from_counts,
    detect_format,
    parse_burst_counts,
    parse_events,
    read_records,
    segment_bursts,
)


class TestRecords(unittest.TestCase):
    """Test raw record reading and format detection."""

    def test_comments_and_blank_lines(self):
        """Test that comments and blank lines are skipped but numbering is kept."""
        path = write_trace("# header\n\n1.0\t1\n2.0 -1   # trailing\n")
        try:
            records = read_records(path)
        finally:
            os.remove(path)
        self.assertEqual(records, [(3, ["1.0", "1"]), (4, ["2.0", "-1"])])

    def test_detect_format(self):
        """Test automatic format detection."""
        self.assertEqual(detect_format([(1, ["3"]), (2, ["0"])]), "bursts")
        self.assertEqual(detect_format([(1, ["0.1", "1"])]), "events")
        self.assertEqual(detect_format([(1, ["3"]), (2, ["0.5", "-1"])]), "events")
        self.assertEqual(detect_format([]), "events")

    def test_unreadable_file(self):
        """Test that a missing file raises a load error naming it."""
        with self.assertRaises(TraceLoadError) as ctx:
            read_records("/nonexistent/trace")
        self.assertIn("/nonexistent/trace", str(ctx.exception))


class TestParseEvents(unittest.TestCase):
    """Test timestamped record parsing."""

    def test_directions(self):
        """Test that the sign of the direction column decides the side."""
        events = parse_events([(1, ["0.0", "1"]), (2, ["0.5", "-1", "extra"]), (3, ["0.7", "+3"])])
        self.assertEqual([e.direction for e in events],
                         [Direction.OUTGOING, Direction.INCOMING, Direction.OUTGOING])
        self.assertEqual(events[1].timestamp, 0.5)

    def test_malformed_records(self):
        """Test that malformed records name their line."""
        cases = [
            [(7, ["0.5"])],
            [(7, ["abc", "1"])],
            [(7, ["0.5", "0"])],
            [(7, ["0.5", "nan"])],
        ]
        for records in cases:
            with self.subTest(records=records):
                with self.assertRaises(TraceLoadError) as ctx:
                    parse_events(records, "ref.trace")
                self.assertEqual(ctx.exception.line, 7)
                self.assertTrue(str(ctx.exception).startswith("ref.trace:7:"))


class TestParseBurstCounts(unittest.TestCase):
    """Test burst-count record parsing."""

    def test_valid(self):
        self.assertEqual(parse_burst_counts([(1, ["3"]), (2, ["0"]), (3, ["12"])]), [3, 0, 12])

    def test_invalid(self):
        """Test non-integer, negative and multi-column records."""
        for cols in (["1.5"], ["-2"], ["1", "2"], ["x"]):
            with self.subTest(cols=cols):
                with self.assertRaises(TraceLoadError):
                    parse_burst_counts([(1, cols)])


class TestSegmentation(unittest.TestCase):
    """Test burst segmentation."""

    def test_consecutive_directions(self):
        """Test that same-direction runs form one burst."""
        path = write_trace(EVENT_TRACE)
        try:
            bursts = segment_bursts(parse_events(read_records(path), path))
        finally:
            os.remove(path)
        self.assertEqual([(b.direction, b.count) for b in bursts],
                         [(Direction.OUTGOING, 3), (Direction.INCOMING, 2), (Direction.OUTGOING, 4)])
        self.assertEqual(len(bursts[0].inter_event_times), 2)
        self.assertAlmostEqual(bursts[2].inter_event_times[2], 3000.0, places=3)

    def test_event_cutoff(self):
        """Test that segmentation stops at the burst cutoff."""
        events = [
            TraceEvent(float(i), Direction.OUTGOING if i % 2 == 0 else Direction.INCOMING)
            for i in range(CUTOFF_LENGTH + 10)
        ]
        with self.assertLogs("padding_machines.trace", level="WARNING"):
            bursts = segment_bursts(events)
        self.assertEqual(len(bursts), CUTOFF_LENGTH)

    def test_count_cutoff(self):
        """Test that burst counts stop at the cutoff and zeros do not count."""
        with self.assertLogs("padding_machines.trace", level="WARNING"):
            bursts = bursts_from_counts([1, 0] * (CUTOFF_LENGTH + 5))
        self.assertEqual(len(bursts), CUTOFF_LENGTH)
        self.assertTrue(all(b.direction == Direction.OUTGOING for b in bursts))

    def test_counts_alternate(self):
        """Test that sides alternate after every entry."""
        bursts = bursts_from_counts([2, 3, 4])
        self.assertEqual([b.direction for b in bursts],
                         [Direction.OUTGOING, Direction.INCOMING, Direction.OUTGOING])
        self.assertEqual(bursts[1].inter_event_times, ())


if __name__ == "__main__":
    unittest.main()
