"""
Time-windowed latency history.

Points are appended in time order, so dropping everything older than the
window is always a prefix trim.  Points are never reordered or mutated after
insertion.
"""
from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Deque, List, Optional

from .constants import HISTORY_WINDOW_SECONDS, LATENCY_SENTINEL


@dataclass(frozen=True)
class LatencyPoint:
    """One probe result; ``latency_ms == -1`` marks a timeout or failure."""

    timestamp: float
    latency_ms: float

    @property
    def failed(self) -> bool:
        return self.latency_ms == LATENCY_SENTINEL


class LatencyHistory:
    """Append-only buffer of the latency points seen in the last window."""

    def __init__(self, window_seconds: float = HISTORY_WINDOW_SECONDS) -> None:
        self.window_seconds = window_seconds
        self._points: Deque[LatencyPoint] = deque()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._points)

    def record(self, point: LatencyPoint) -> None:
        with self._lock:
            self._points.append(point)
            self._prune(point.timestamp)

    def get_recent(self, now: Optional[float] = None) -> List[LatencyPoint]:
        """Return the points inside the window ending at *now*, oldest first."""
        if now is None:
            now = time.time()
        with self._lock:
            self._prune(now)
            return list(self._points)

    def latest(self) -> Optional[LatencyPoint]:
        with self._lock:
            return self._points[-1] if self._points else None

    def clear(self) -> None:
        with self._lock:
            self._points.clear()

    def _prune(self, now: float) -> None:
        cutoff = now - self.window_seconds
        points = self._points
        while points and points[0].timestamp < cutoff:
            points.popleft()
