"""
Instantaneous throughput from cumulative byte counters.

Each poll compares the current snapshot with the previous one (the
*baseline*) and divides the byte delta by the elapsed time.  Anything that
makes the delta meaningless -- first call, a clock going backwards, a long
gap such as sleep, or counters going down after an adapter restart --
yields a zero reading and replaces the baseline instead.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Optional

from .constants import STALE_BASELINE_SECONDS
from .counters import ByteCounterSnapshot

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class ThroughputSample:
    """Rates in bytes per second."""

    download_bps: float = 0.0
    upload_bps: float = 0.0


_ZERO = ThroughputSample()


class ThroughputSampler:
    """Turn successive counter snapshots into per-second rates.

    ``poll`` and ``reset`` share one lock, so the sampler may be driven from
    more than one thread.
    """

    def __init__(self, stale_after: float = STALE_BASELINE_SECONDS) -> None:
        self.stale_after = stale_after
        self._lock = threading.Lock()
        self._last_rx = 0
        self._last_tx = 0
        self._last_time = 0.0

    @property
    def has_baseline(self) -> bool:
        with self._lock:
            return self._last_rx > 0

    def poll(
        self,
        current: ByteCounterSnapshot,
        now: Optional[float] = None,
    ) -> ThroughputSample:
        if now is None:
            now = current.timestamp

        with self._lock:
            elapsed = now - self._last_time
            rebase = (
                self._last_rx == 0
                or not 0 < elapsed < self.stale_after
                or current.rx_bytes < self._last_rx
                or current.tx_bytes < self._last_tx
            )

            if rebase:
                if self._last_rx and (
                    current.rx_bytes < self._last_rx or current.tx_bytes < self._last_tx
                ):
                    LOGGER.debug("Byte counters went backwards, rebasing")
                sample = _ZERO
            else:
                sample = ThroughputSample(
                    download_bps=(current.rx_bytes - self._last_rx) / elapsed,
                    upload_bps=(current.tx_bytes - self._last_tx) / elapsed,
                )

            self._last_rx = current.rx_bytes
            self._last_tx = current.tx_bytes
            self._last_time = now

        return sample

    def reset(self) -> None:
        """Forget the baseline; the next poll rebases silently."""
        with self._lock:
            self._last_rx = 0
            self._last_tx = 0
            self._last_time = 0.0
