"""
TCP-handshake latency probe.

One measurement opens a TCP connection to a fixed, well-known endpoint and
times the handshake; no payload is exchanged.  Three triggers race to
produce the result:

    ready    -- the connection is established: deliver the elapsed ms
    timeout  -- the timer fires first: deliver the sentinel (-1)
    failure  -- the handshake errors out: deliver the sentinel (-1)

A ``CompletionGuard`` lets exactly one of them through; the others become
no-ops.  Every connection the probe opens gets closed, including one that
completes after the timeout has already won.
"""
from __future__ import annotations

import asyncio
import logging
import threading
import time
from typing import Callable, Optional, Tuple

from .constants import LATENCY_SENTINEL, PROBE_HOST, PROBE_PORT, PROBE_TIMEOUT

LOGGER = logging.getLogger(__name__)

Target = Tuple[str, int]


# ---------------------------------------------------------------------------
# Exactly-once guard
# ---------------------------------------------------------------------------

class CompletionGuard:
    """One-shot flag: ``claim()`` returns True for the first caller only."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._claimed = False

    @property
    def claimed(self) -> bool:
        with self._lock:
            return self._claimed

    def claim(self) -> bool:
        with self._lock:
            if self._claimed:
                return False
            self._claimed = True
            return True


# ---------------------------------------------------------------------------
# Probe
# ---------------------------------------------------------------------------

class LatencyProbe:
    """Measure TCP connect latency to ``target`` in milliseconds."""

    def __init__(
        self,
        host: str = PROBE_HOST,
        port: int = PROBE_PORT,
        timeout: float = PROBE_TIMEOUT,
    ) -> None:
        self.target: Target = (host, port)
        self.timeout = timeout
        self.on_result: Optional[Callable[[float], None]] = None

    async def measure(
        self,
        target: Optional[Target] = None,
        timeout: Optional[float] = None,
    ) -> float:
        """Return the handshake time in ms, or ``LATENCY_SENTINEL``."""
        host, port = target or self.target
        timeout = self.timeout if timeout is None else timeout

        loop = asyncio.get_running_loop()
        outcome: asyncio.Future = loop.create_future()
        guard = CompletionGuard()

        def _deliver(value: float) -> bool:
            if outcome.done() or not guard.claim():
                return False
            outcome.set_result(value)
            return True

        t0 = time.perf_counter()

        async def _handshake() -> None:
            opening = asyncio.ensure_future(self._open(host, port))
            try:
                _, writer = await opening
            except asyncio.CancelledError:
                # The connection may have been established just before the cancel landed.
                opening.add_done_callback(_discard)
                raise
            try:
                _deliver((time.perf_counter() - t0) * 1000)
            finally:
                writer.close()
                try:
                    await writer.wait_closed()
                except OSError as exc:
                    LOGGER.debug("Closing probe connection to %s:%s: %s", host, port, exc)

        connect = asyncio.ensure_future(_handshake())

        # -- Triggers -------------------------------------------------------

        def _on_connect_done(task: asyncio.Future) -> None:
            if task.cancelled():
                return
            exc = task.exception()
            if exc is not None:
                LOGGER.debug("Latency probe to %s:%s failed: %s", host, port, exc)
                _deliver(LATENCY_SENTINEL)

        def _on_timeout() -> None:
            if _deliver(LATENCY_SENTINEL):
                LOGGER.debug("Latency probe to %s:%s timed out after %.1fs", host, port, timeout)
                connect.cancel()

        connect.add_done_callback(_on_connect_done)
        timer = loop.call_later(timeout, _on_timeout)

        try:
            result = await outcome
        except BaseException:
            timer.cancel()
            connect.cancel()
            raise
        timer.cancel()
        # A delivered latency leaves the handshake task closing its connection.
        await asyncio.wait({connect})

        if self.on_result:
            self.on_result(result)
        return result

    @staticmethod
    async def _open(host: str, port: int):
        return await asyncio.open_connection(host, port)


def _discard(opening: asyncio.Future) -> None:
    if opening.cancelled() or opening.exception() is not None:
        return
    _, writer = opening.result()
    writer.close()
