"""Tests for meter.counters -- interface filtering over psutil counters."""

import unittest
from types import SimpleNamespace
from unittest import mock

from meter import counters
from meter.counters import ByteCounterSnapshot, InterfaceCounterSource


def _io(recv, sent):
    return SimpleNamespace(bytes_recv=recv, bytes_sent=sent)


def _if(up):
    return SimpleNamespace(isup=up)


class _FakePsutil:
    def __init__(self, io, stats):
        self._io = io
        self._stats = stats

    def net_io_counters(self, pernic=False):
        return self._io

    def net_if_stats(self):
        return self._stats


class TestInterfaceCounterSource(unittest.TestCase):
    def test_sums_active_matching_interfaces(self):
        fake = _FakePsutil(
            io={
                "lo": _io(10**9, 10**9),
                "eth0": _io(1000, 200),
                "wlan0": _io(500, 50),
                "utun3": _io(7, 3),
                "docker0": _io(99, 99),
                "en1": _io(4000, 4000),
            },
            stats={
                "lo": _if(True),
                "eth0": _if(True),
                "wlan0": _if(True),
                "utun3": _if(True),
                "docker0": _if(True),
                "en1": _if(False),
            },
        )
        with mock.patch.object(counters, "psutil", fake):
            snap = InterfaceCounterSource(clock=lambda: 42.0).read()

        self.assertEqual(snap, ByteCounterSnapshot(timestamp=42.0, rx_bytes=1507, tx_bytes=253))

    def test_interface_missing_from_stats_is_skipped(self):
        fake = _FakePsutil(io={"eth0": _io(1, 1)}, stats={})
        with mock.patch.object(counters, "psutil", fake):
            snap = InterfaceCounterSource(clock=lambda: 1.0).read()
        self.assertEqual((snap.rx_bytes, snap.tx_bytes), (0, 0))

    def test_os_error_degrades_to_zero_snapshot(self):
        fake = mock.Mock()
        fake.net_io_counters.side_effect = OSError("no /proc")
        with mock.patch.object(counters, "psutil", fake):
            snap = InterfaceCounterSource(clock=lambda: 5.0).read()
        self.assertEqual(snap, ByteCounterSnapshot(timestamp=5.0))

    def test_custom_prefixes(self):
        source = InterfaceCounterSource(prefixes=("veth",))
        self.assertTrue(source.accepts("veth12"))
        self.assertFalse(source.accepts("eth0"))

    def test_default_prefixes_reject_loopback(self):
        source = InterfaceCounterSource()
        self.assertFalse(source.accepts("lo"))
        self.assertFalse(source.accepts("lo0"))
        self.assertTrue(source.accepts("pdp_ip0"))


if __name__ == "__main__":
    unittest.main()
