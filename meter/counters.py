"""
Cumulative interface byte counters.

Sums received/sent bytes over every active, non-loopback adapter whose name
looks like a physical, VPN or cellular interface.  The counters are
cumulative since boot and may reset when an adapter restarts.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Tuple

import psutil

LOGGER = logging.getLogger(__name__)

INTERFACE_PREFIXES: Tuple[str, ...] = (
    "en",      # ethernet / wifi on macOS, predictable names on Linux
    "eth",
    "wl",
    "utun",    # VPN tunnels
    "tun",
    "wg",
    "ppp",
    "pdp_ip",  # cellular
    "ww",
)


@dataclass(frozen=True)
class ByteCounterSnapshot:
    """Cumulative byte counters at one instant."""

    timestamp: float
    rx_bytes: int = 0
    tx_bytes: int = 0


class InterfaceCounterSource:
    """Read the summed counters of the interfaces we care about."""

    def __init__(
        self,
        prefixes: Tuple[str, ...] = INTERFACE_PREFIXES,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.prefixes = tuple(prefixes)
        self._clock = clock

    def accepts(self, name: str) -> bool:
        return name.startswith(self.prefixes)

    def read(self) -> ByteCounterSnapshot:
        now = self._clock()
        try:
            counters = psutil.net_io_counters(pernic=True)
            nic_stats = psutil.net_if_stats()
        except OSError as exc:
            # A zero snapshot makes the sampler rebase on the next good read.
            LOGGER.debug("Failed to read interface counters: %s", exc)
            return ByteCounterSnapshot(timestamp=now)

        rx = tx = 0
        for name, io in counters.items():
            if not self.accepts(name):
                continue
            st = nic_stats.get(name)
            if st is None or not st.isup:
                continue
            rx += int(io.bytes_recv)
            tx += int(io.bytes_sent)

        return ByteCounterSnapshot(timestamp=now, rx_bytes=rx, tx_bytes=tx)
