"""
Active bandwidth speed test.

A run goes through a fixed sequence of states::

    Idle -> Testing(0, Connecting)
         -> Testing(0..0.6, Download)   first working candidate URL wins
         -> Testing(0.6..1, Upload)     one 1 MiB POST
         -> Testing(1, Complete)
         -> Completed(download, upload) | Failed

Rates are bytes per second.  ``Failed`` is only reported when both phases
measured nothing.

Concurrency discipline: a single run at a time.  ``start()`` while a run is
active is rejected (returns False, emits nothing).  ``cancel()`` sets the
run's flag, which the worker checks every ``checkpoint_interval`` seconds
while waiting on the network; the in-flight request is aborted at that
checkpoint and the run ends without emitting anything else.
"""
from __future__ import annotations

import asyncio
import logging
import math
import os
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Sequence, Union

import aiohttp

from .constants import (
    CHECKPOINT_INTERVAL,
    CHUNK_SIZE,
    COMMON_HEADERS,
    COMPLETE_PAUSE,
    DOWNLOAD_MAX_BYTES,
    DOWNLOAD_PROGRESS_END,
    DOWNLOAD_PROGRESS_START,
    DOWNLOAD_URLS,
    REQUEST_TIMEOUT,
    UPLOAD_CONTENT_TYPE,
    UPLOAD_PAYLOAD_SIZE,
    UPLOAD_PROGRESS_END,
    UPLOAD_PROGRESS_START,
    UPLOAD_URL,
)

LOGGER = logging.getLogger(__name__)

_TRANSFER_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, OSError)


# ---------------------------------------------------------------------------
# States
# ---------------------------------------------------------------------------

class Phase(Enum):
    CONNECTING = "Connecting"
    DOWNLOAD = "Download"
    UPLOAD = "Upload"
    COMPLETE = "Complete"


@dataclass(frozen=True)
class Idle:
    is_terminal = False


@dataclass(frozen=True)
class Testing:
    progress: float
    phase: Phase

    is_terminal = False


@dataclass(frozen=True)
class Completed:
    download_bps: float
    upload_bps: float

    is_terminal = True


@dataclass(frozen=True)
class Failed:
    is_terminal = True


SpeedTestState = Union[Idle, Testing, Completed, Failed]
StateListener = Callable[[SpeedTestState], None]


class SpeedTestCancelled(Exception):
    """Unwinds a run once its cancellation flag has been seen."""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _band(low: float, high: float, fraction: float) -> float:
    return low + (high - low) * min(max(fraction, 0.0), 1.0)


def _rate(nbytes: int, elapsed: float) -> float:
    if nbytes <= 0 or elapsed <= 0:
        return 0.0
    rate = nbytes / elapsed
    return rate if math.isfinite(rate) else 0.0


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------

class SpeedTestController:
    """Cancellable download-then-upload bandwidth test with a state stream."""

    def __init__(
        self,
        download_urls: Sequence[str] = DOWNLOAD_URLS,
        upload_url: str = UPLOAD_URL,
        request_timeout: float = REQUEST_TIMEOUT,
        checkpoint_interval: float = CHECKPOINT_INTERVAL,
        complete_pause: float = COMPLETE_PAUSE,
        payload_size: int = UPLOAD_PAYLOAD_SIZE,
        download_max_bytes: int = DOWNLOAD_MAX_BYTES,
    ) -> None:
        self.download_urls = list(download_urls)
        self.upload_url = upload_url
        self.request_timeout = request_timeout
        self.checkpoint_interval = checkpoint_interval
        self.complete_pause = complete_pause
        self.payload_size = payload_size
        self.download_max_bytes = download_max_bytes

        self.download_bps = 0.0
        self.upload_bps = 0.0

        self._state: SpeedTestState = Idle()
        self._listeners: List[StateListener] = []
        self._task: Optional[asyncio.Task] = None
        self._cancel_flag: Optional[threading.Event] = None
        # Reentrant: a listener may call cancel() from inside _emit.
        self._emit_lock = threading.RLock()
        self._progress = 0.0

    # -- Public API ---------------------------------------------------------

    @property
    def state(self) -> SpeedTestState:
        return self._state

    @property
    def is_running(self) -> bool:
        task, flag = self._task, self._cancel_flag
        return (
            task is not None
            and not task.done()
            and flag is not None
            and not flag.is_set()
        )

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register *listener* for every state; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def start(self) -> bool:
        """Begin a run on the running event loop.

        Returns False without side effects if a run is already active.
        Raises ``RuntimeError`` when called outside a running loop.
        """
        if self.is_running:
            LOGGER.warning("Speed test already running; start() ignored")
            return False

        loop = asyncio.get_running_loop()
        flag = threading.Event()
        self._cancel_flag = flag
        self._progress = 0.0
        self.download_bps = 0.0
        self.upload_bps = 0.0
        # A listener may cancel on Connecting; that must not see the last run's task.
        self._task = None

        LOGGER.info("Speed test started")
        self._emit(Testing(0.0, Phase.CONNECTING), flag)
        if flag.is_set():
            return True
        self._task = loop.create_task(self._run(flag))
        return True

    def cancel(self) -> None:
        """Stop the active run; no further states are emitted for it."""
        with self._emit_lock:
            flag = self._cancel_flag
            if flag is None or flag.is_set():
                return
            if self._task is not None and self._task.done():
                return
            flag.set()
            self._state = Idle()
        LOGGER.info("Speed test cancelled")

    async def wait(self) -> None:
        """Wait until the current run (if any) has finished or unwound."""
        task = self._task
        if task is not None:
            await asyncio.wait({task})

    # -- Run ----------------------------------------------------------------

    async def _run(self, flag: threading.Event) -> None:
        try:
            async with self._open_session() as session:
                download = await self._download_phase(session, flag)
                upload = await self._upload_phase(session, flag)
        except SpeedTestCancelled:
            LOGGER.debug("Speed test run unwound after cancellation")
            return

        if flag.is_set():
            return
        self.download_bps = download
        self.upload_bps = upload

        self._emit(Testing(1.0, Phase.COMPLETE), flag)
        await asyncio.sleep(self.complete_pause)

        if download > 0 or upload > 0:
            LOGGER.info(
                "Speed test finished: download %.0f B/s, upload %.0f B/s",
                download,
                upload,
            )
            self._emit(Completed(download_bps=download, upload_bps=upload), flag)
        else:
            LOGGER.warning("Speed test failed: no endpoint produced a measurement")
            self._emit(Failed(), flag)

    def _open_session(self) -> aiohttp.ClientSession:
        timeout = aiohttp.ClientTimeout(
            total=None,
            connect=self.request_timeout,
            sock_read=self.request_timeout,
        )
        return aiohttp.ClientSession(headers=COMMON_HEADERS, timeout=timeout)

    # -- Download -----------------------------------------------------------

    async def _download_phase(
        self,
        session: aiohttp.ClientSession,
        flag: threading.Event,
    ) -> float:
        self._advance(DOWNLOAD_PROGRESS_START, Phase.DOWNLOAD, flag)

        for url in self.download_urls:
            rate = await self._download_one(session, url, flag)
            if rate > 0:
                LOGGER.info("Download measured %.0f B/s from %s", rate, url)
                return rate
            LOGGER.info("Download candidate %s gave no measurement", url)

        return 0.0

    async def _download_one(
        self,
        session: aiohttp.ClientSession,
        url: str,
        flag: threading.Event,
    ) -> float:
        received = 0
        expected = 0
        start = time.perf_counter()

        async def _transfer() -> None:
            nonlocal received, expected
            async with session.get(url) as resp:
                resp.raise_for_status()
                expected = min(resp.content_length or 0, self.download_max_bytes)
                async for chunk in resp.content.iter_chunked(CHUNK_SIZE):
                    received += len(chunk)
                    if received >= self.download_max_bytes:
                        break

        def _tick() -> None:
            fraction = (time.perf_counter() - start) / self.request_timeout
            if expected:
                fraction = max(fraction, received / expected)
            self._advance(
                _band(DOWNLOAD_PROGRESS_START, DOWNLOAD_PROGRESS_END, fraction),
                Phase.DOWNLOAD,
                flag,
            )

        try:
            finished = await self._checkpointed(
                _transfer(), flag, start + self.request_timeout, _tick
            )
        except _TRANSFER_ERRORS as exc:
            LOGGER.debug("Download from %s failed: %s", url, exc)
            return 0.0

        if not finished:
            LOGGER.debug(
                "Download from %s hit the %.0fs deadline after %d bytes",
                url,
                self.request_timeout,
                received,
            )
        return _rate(received, time.perf_counter() - start)

    # -- Upload -------------------------------------------------------------

    async def _upload_phase(
        self,
        session: aiohttp.ClientSession,
        flag: threading.Event,
    ) -> float:
        self._advance(UPLOAD_PROGRESS_START, Phase.UPLOAD, flag)

        payload = os.urandom(self.payload_size)
        start = time.perf_counter()

        async def _transfer() -> None:
            async with session.post(
                self.upload_url,
                data=payload,
                headers={"Content-Type": UPLOAD_CONTENT_TYPE},
            ) as resp:
                resp.raise_for_status()
                await resp.read()

        def _tick() -> None:
            fraction = (time.perf_counter() - start) / self.request_timeout
            self._advance(
                _band(UPLOAD_PROGRESS_START, UPLOAD_PROGRESS_END, fraction),
                Phase.UPLOAD,
                flag,
            )

        try:
            finished = await self._checkpointed(
                _transfer(), flag, start + self.request_timeout, _tick
            )
        except _TRANSFER_ERRORS as exc:
            LOGGER.info("Upload to %s failed: %s", self.upload_url, exc)
            return 0.0

        if not finished:
            LOGGER.info(
                "Upload to %s timed out after %.0fs",
                self.upload_url,
                self.request_timeout,
            )
            return 0.0

        rate = _rate(len(payload), time.perf_counter() - start)
        LOGGER.info("Upload measured %.0f B/s to %s", rate, self.upload_url)
        return rate

    # -- Internals ----------------------------------------------------------

    async def _checkpointed(
        self,
        transfer: Awaitable[None],
        flag: threading.Event,
        deadline: float,
        on_tick: Callable[[], None],
    ) -> bool:
        """Drive *transfer*, checking *flag* every checkpoint interval.

        Returns True if the transfer completed, False if *deadline* passed
        first.  Transfer errors propagate; a set flag raises
        ``SpeedTestCancelled``.  The transfer is aborted in both early exits.
        """
        task = asyncio.ensure_future(transfer)
        try:
            while not task.done():
                if flag.is_set():
                    raise SpeedTestCancelled()
                remaining = deadline - time.perf_counter()
                if remaining <= 0:
                    return False
                await asyncio.wait(
                    {task}, timeout=min(self.checkpoint_interval, remaining)
                )
                if not task.done():
                    on_tick()

            if flag.is_set():
                raise SpeedTestCancelled()
            task.result()
            return True
        finally:
            if not task.done():
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)

    def _advance(self, progress: float, phase: Phase, flag: threading.Event) -> None:
        # Progress only moves forward within a run.
        if flag.is_set() or progress <= self._progress:
            return
        self._progress = progress
        self._emit(Testing(progress, phase), flag)

    def _emit(self, state: SpeedTestState, flag: threading.Event) -> None:
        with self._emit_lock:
            if flag.is_set():
                return
            self._state = state
            for listener in list(self._listeners):
                try:
                    listener(state)
                except Exception:
                    LOGGER.exception("Speed test state listener failed")
