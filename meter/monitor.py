"""
Periodic monitoring loop.

Two asyncio tasks share one event loop: the sampler ticks about once a
second and feeds throughput readings to ``on_throughput``; the prober runs a
latency probe about every two seconds, records it in the history and hands
the point to ``on_latency``.  Probes are issued serially, so history order
is time order.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, List, Optional, Sequence

from .constants import PROBE_INTERVAL, SAMPLE_INTERVAL, STALE_BASELINE_SECONDS
from .counters import ByteCounterSnapshot, InterfaceCounterSource
from .history import LatencyHistory, LatencyPoint
from .latency import LatencyProbe
from .throughput import ThroughputSample, ThroughputSampler

LOGGER = logging.getLogger(__name__)


class NetworkMonitor:
    """Drive the sampler and the latency probe on fixed intervals."""

    def __init__(
        self,
        counter_source: Optional[Callable[[], ByteCounterSnapshot]] = None,
        sampler: Optional[ThroughputSampler] = None,
        probe: Optional[LatencyProbe] = None,
        history: Optional[LatencyHistory] = None,
        sample_interval: float = SAMPLE_INTERVAL,
        probe_interval: float = PROBE_INTERVAL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if counter_source is None:
            counter_source = InterfaceCounterSource(clock=clock).read
        self.read_counters = counter_source
        self.sampler = sampler if sampler is not None else ThroughputSampler()
        self.probe = probe if probe is not None else LatencyProbe()
        self.history = history if history is not None else LatencyHistory()
        self.sample_interval = sample_interval
        self.probe_interval = probe_interval
        self._clock = clock

        self.on_throughput: Optional[Callable[[ThroughputSample], None]] = None
        self.on_latency: Optional[Callable[[LatencyPoint], None]] = None

        self._tasks: List[asyncio.Task] = []
        self._last_tick: Optional[float] = None

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._tasks)

    # -- Single steps -------------------------------------------------------

    def sample_once(self) -> ThroughputSample:
        now = self._clock()
        if self._last_tick is not None and now - self._last_tick >= STALE_BASELINE_SECONDS:
            LOGGER.info("Clock jumped %.0fs between samples, assuming wake", now - self._last_tick)
            self.sampler.reset()
        self._last_tick = now

        sample = self.sampler.poll(self.read_counters(), now)
        self._notify(self.on_throughput, sample)
        return sample

    async def probe_once(self) -> LatencyPoint:
        started = self._clock()
        latency_ms = await self.probe.measure()
        point = LatencyPoint(timestamp=started, latency_ms=latency_ms)
        self.history.record(point)
        self._notify(self.on_latency, point)
        return point

    # -- Scheduling ---------------------------------------------------------

    def start(self) -> None:
        """Schedule both loops on the running event loop."""
        if self.running:
            return
        if not self.sampler.has_baseline:
            # Establish a baseline so the first tick reports a real rate.
            self.sample_once()
        self._schedule()

    async def stop(self) -> None:
        tasks, self._tasks = self._tasks, []
        for t in tasks:
            t.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    def handle_wake(self) -> None:
        """Response to a system resume: drop the baseline and restart timers."""
        LOGGER.info("System wake: resetting throughput baseline")
        self.sampler.reset()
        self._last_tick = None
        if not self._tasks:
            return
        retired = self._tasks
        for t in retired:
            t.cancel()
        self._schedule(retired)

    def _schedule(self, retired: Sequence[asyncio.Task] = ()) -> None:
        loop = asyncio.get_running_loop()
        self._tasks = [
            loop.create_task(self._sample_loop()),
            loop.create_task(self._probe_loop(retired)),
        ]

    def _notify(self, callback: Optional[Callable[[Any], None]], value: Any) -> None:
        if callback is None:
            return
        try:
            callback(value)
        except Exception:
            LOGGER.exception("Monitor callback failed")

    async def _sample_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sample_interval)
            self.sample_once()

    async def _probe_loop(self, retired: Sequence[asyncio.Task] = ()) -> None:
        # Probes stay serial across a reschedule: let the old loop unwind first.
        if retired:
            await asyncio.gather(*retired, return_exceptions=True)
        while True:
            await self.probe_once()
            await asyncio.sleep(self.probe_interval)
