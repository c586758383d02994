"""Unit tests for meter.stats -- pure functions and dataclasses."""

import unittest

from meter.history import LatencyPoint
from meter.stats import (
    LatencyStats,
    calculate_jitter,
    format_bitrate,
    format_latency,
    format_throughput,
)


class TestCalculateJitter(unittest.TestCase):
    def test_empty(self):
        self.assertEqual(calculate_jitter([]), 0.0)

    def test_single(self):
        self.assertEqual(calculate_jitter([10.0]), 0.0)

    def test_constant(self):
        self.assertAlmostEqual(calculate_jitter([5.0, 5.0, 5.0]), 0.0)

    def test_varying(self):
        # |15-10| + |10-15| + |20-10| = 20 over 3 gaps
        result = calculate_jitter([10.0, 15.0, 10.0, 20.0])
        self.assertAlmostEqual(result, 20.0 / 3, places=3)


class TestLatencyStats(unittest.TestCase):
    def test_from_points_ignores_sentinels_in_summary(self):
        points = [
            LatencyPoint(1.0, 10.0),
            LatencyPoint(2.0, -1.0),
            LatencyPoint(3.0, 20.0),
            LatencyPoint(4.0, 30.0),
        ]
        s = LatencyStats.from_points(points)
        self.assertEqual(s.count, 3)
        self.assertEqual(s.failures, 1)
        self.assertEqual(s.attempts, 4)
        self.assertAlmostEqual(s.loss_percent, 25.0)
        self.assertAlmostEqual(s.min, 10.0)
        self.assertAlmostEqual(s.max, 30.0)
        self.assertAlmostEqual(s.mean, 20.0)
        self.assertAlmostEqual(s.median, 20.0)
        self.assertAlmostEqual(s.jitter, 10.0)

    def test_all_failed(self):
        s = LatencyStats.from_points([LatencyPoint(1.0, -1.0)] * 3)
        self.assertEqual(s.count, 0)
        self.assertAlmostEqual(s.loss_percent, 100.0)
        self.assertEqual(s.mean, 0.0)

    def test_empty(self):
        s = LatencyStats.from_points([])
        self.assertEqual(s.attempts, 0)
        self.assertEqual(s.loss_percent, 0.0)

    def test_to_dict(self):
        s = LatencyStats.from_points([LatencyPoint(1.0, 12.3456)])
        d = s.to_dict()
        self.assertEqual(d["count"], 1)
        self.assertAlmostEqual(d["mean"], 12.346)
        self.assertEqual(d["loss_percent"], 0.0)


class TestFormatThroughput(unittest.TestCase):
    def test_bytes(self):
        self.assertEqual(format_throughput(0), "0B")
        self.assertEqual(format_throughput(1023), "1023B")

    def test_kilobytes(self):
        self.assertEqual(format_throughput(1024), "1.0K")
        self.assertEqual(format_throughput(1536), "1.5K")

    def test_megabytes(self):
        self.assertEqual(format_throughput(1024 ** 2), "1.0M")

    def test_gigabytes(self):
        self.assertEqual(format_throughput(2.5 * 1024 ** 3), "2.5G")

    def test_bad_values(self):
        self.assertEqual(format_throughput(-5), "0B")
        self.assertEqual(format_throughput(float("nan")), "0B")


class TestFormatBitrate(unittest.TestCase):
    def test_bps(self):
        self.assertEqual(format_bitrate(100), "800 bps")

    def test_kbps(self):
        self.assertEqual(format_bitrate(125), "1.0 Kbps")

    def test_mbps(self):
        self.assertEqual(format_bitrate(12_500_000), "100.0 Mbps")

    def test_gbps(self):
        self.assertEqual(format_bitrate(125_000_000), "1.00 Gbps")


class TestFormatLatency(unittest.TestCase):
    def test_ms(self):
        self.assertEqual(format_latency(23.44), "23.4 ms")

    def test_seconds(self):
        self.assertEqual(format_latency(1500), "1.50 s")

    def test_sentinel(self):
        self.assertEqual(format_latency(-1.0), "timeout")


if __name__ == "__main__":
    unittest.main()
