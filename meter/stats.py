"""
Latency statistics and number formatting.

Pure functions and lightweight dataclasses -- no I/O, no side effects.
"""
from __future__ import annotations

import math
import statistics
from dataclasses import dataclass, field
from typing import Iterable, List

from .constants import LATENCY_SENTINEL
from .history import LatencyPoint


# ---------------------------------------------------------------------------
# Dataclasses
# ---------------------------------------------------------------------------

@dataclass
class LatencyStats:
    """Summary of a latency window; sentinel points count as lost probes."""

    samples: List[float] = field(default_factory=list)
    failures: int = 0
    min: float = 0.0
    max: float = 0.0
    mean: float = 0.0
    median: float = 0.0
    jitter: float = 0.0
    count: int = 0

    @classmethod
    def from_points(cls, points: Iterable[LatencyPoint]) -> LatencyStats:
        stats = cls()
        for p in points:
            if p.failed:
                stats.failures += 1
            else:
                stats.samples.append(p.latency_ms)
        stats.calculate()
        return stats

    @property
    def attempts(self) -> int:
        return len(self.samples) + self.failures

    @property
    def loss_percent(self) -> float:
        if not self.attempts:
            return 0.0
        return self.failures / self.attempts * 100

    def calculate(self) -> None:
        if not self.samples:
            return
        self.count = len(self.samples)
        self.min = min(self.samples)
        self.max = max(self.samples)
        self.mean = statistics.mean(self.samples)
        self.median = statistics.median(self.samples)
        self.jitter = calculate_jitter(self.samples)

    def to_dict(self) -> dict:
        return {
            "count": self.count,
            "failures": self.failures,
            "loss_percent": round(self.loss_percent, 1),
            "min": round(self.min, 3),
            "max": round(self.max, 3),
            "mean": round(self.mean, 3),
            "median": round(self.median, 3),
            "jitter": round(self.jitter, 3),
        }


# ---------------------------------------------------------------------------
# Pure helper functions
# ---------------------------------------------------------------------------

def calculate_jitter(samples: List[float]) -> float:
    """Mean absolute difference between consecutive samples (Ookla method)."""
    if len(samples) < 2:
        return 0.0
    diffs = [abs(samples[i] - samples[i - 1]) for i in range(1, len(samples))]
    return statistics.mean(diffs)


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

def _clean(value: float) -> float:
    if value is None or not math.isfinite(value) or value < 0:
        return 0.0
    return value


def format_throughput(bytes_per_sec: float) -> str:
    """Compact byte rate with binary steps: ``512B``, ``1.5K``, ``3.2M``."""
    v = _clean(bytes_per_sec)
    if v < 1024:
        return f"{v:.0f}B"
    if v < 1024 ** 2:
        return f"{v / 1024:.1f}K"
    if v < 1024 ** 3:
        return f"{v / 1024 ** 2:.1f}M"
    return f"{v / 1024 ** 3:.1f}G"


def format_bitrate(bytes_per_sec: float) -> str:
    """Speed-test result in bits per second with decimal steps."""
    bits = _clean(bytes_per_sec) * 8
    if bits < 1000:
        return f"{bits:.0f} bps"
    if bits < 1e6:
        return f"{bits / 1e3:.1f} Kbps"
    if bits < 1e9:
        return f"{bits / 1e6:.1f} Mbps"
    return f"{bits / 1e9:.2f} Gbps"


def format_latency(latency_ms: float) -> str:
    """Human-readable latency string."""
    if latency_ms == LATENCY_SENTINEL:
        return "timeout"
    if latency_ms >= 1000:
        return f"{latency_ms / 1000:.2f} s"
    return f"{latency_ms:.1f} ms"
