"""Network meter engine -- throughput, latency and speed-test measurement."""

from .constants import LATENCY_SENTINEL
from .counters import ByteCounterSnapshot, InterfaceCounterSource
from .history import LatencyHistory, LatencyPoint
from .latency import CompletionGuard, LatencyProbe
from .monitor import NetworkMonitor
from .speedtest import (
    Completed,
    Failed,
    Idle,
    Phase,
    SpeedTestController,
    SpeedTestState,
    Testing,
)
from .stats import LatencyStats, format_bitrate, format_latency, format_throughput
from .throughput import ThroughputSample, ThroughputSampler

__all__ = [
    "ByteCounterSnapshot",
    "Completed",
    "CompletionGuard",
    "Failed",
    "Idle",
    "InterfaceCounterSource",
    "LATENCY_SENTINEL",
    "LatencyHistory",
    "LatencyPoint",
    "LatencyProbe",
    "LatencyStats",
    "NetworkMonitor",
    "Phase",
    "SpeedTestController",
    "SpeedTestState",
    "Testing",
    "ThroughputSample",
    "ThroughputSampler",
    "format_bitrate",
    "format_latency",
    "format_throughput",
]
