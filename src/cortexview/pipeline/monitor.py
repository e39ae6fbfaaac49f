"""Periodic monitoring of one window.

Connects a :class:`MonitoringScheduler` tick (timer thread) to
:meth:`AnalysisOrchestrator.run_pipeline` (event loop). A tick that
arrives while the previous scheduled run is still in flight is skipped,
so slow analyses never stack up behind each other.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import threading
from collections.abc import Callable
from datetime import timedelta

from cortexview.domain.models import AnalysisResponse, Persona
from cortexview.pipeline.orchestrator import AnalysisOrchestrator
from cortexview.pipeline.scheduler import MonitoringScheduler

logger = logging.getLogger(__name__)

ResultCallback = Callable[[AnalysisResponse], None]


class MonitoringSession:
    """Watches one window on a schedule and accepts manual "capture now" requests.

    Scheduled runs respect change detection; manual runs force analysis.
    Both go through the same orchestrator, which serializes them.

    Must be started from a running event loop; scheduled runs execute on
    that loop.

    Example usage::

        session = MonitoringSession(orchestrator, hwnd, "Editor", persona,
                                    on_result=print_response)
        session.start()
        ...
        await session.capture_now()
        session.close()
    """

    def __init__(
        self,
        orchestrator: AnalysisOrchestrator,
        window_handle: int,
        window_title: str,
        persona: Persona,
        sensitivity: float = 0.10,
        interval: float | timedelta = 5.0,
        on_result: ResultCallback | None = None,
    ) -> None:
        self._orchestrator = orchestrator
        self._window_handle = window_handle
        self._window_title = window_title
        self._persona = persona
        self._sensitivity = sensitivity
        self._on_result = on_result
        self._scheduler = MonitoringScheduler(self._on_tick, interval=interval)
        self._loop: asyncio.AbstractEventLoop | None = None
        self._cancel: asyncio.Event | None = None
        self._inflight: concurrent.futures.Future | None = None
        self._inflight_lock = threading.Lock()
        self._skipped_ticks = 0
        self._completed_runs = 0

    @property
    def is_running(self) -> bool:
        return self._scheduler.is_running

    @property
    def scheduler(self) -> MonitoringScheduler:
        return self._scheduler

    @property
    def skipped_ticks(self) -> int:
        return self._skipped_ticks

    @property
    def completed_runs(self) -> int:
        return self._completed_runs

    @property
    def persona(self) -> Persona:
        return self._persona

    @persona.setter
    def persona(self, persona: Persona) -> None:
        self._persona = persona

    @property
    def sensitivity(self) -> float:
        return self._sensitivity

    @sensitivity.setter
    def sensitivity(self, value: float) -> None:
        if not 0.0 <= value <= 1.0:
            raise ValueError("sensitivity must be within [0, 1]")
        self._sensitivity = value

    def start(self) -> None:
        """Start scheduled monitoring on the current event loop."""
        self._loop = asyncio.get_running_loop()
        self._cancel = asyncio.Event()
        self._scheduler.start()

    def stop(self) -> None:
        """Stop scheduling and abort the in-flight scheduled run, if any."""
        self._scheduler.stop()
        if self._cancel is not None and self._loop is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._cancel.set)

    def set_interval(self, interval: float | timedelta) -> None:
        self._scheduler.set_interval(interval)

    def close(self) -> None:
        self.stop()
        self._scheduler.close()

    async def capture_now(self, cancel: asyncio.Event | None = None) -> AnalysisResponse:
        """Run one forced analysis immediately (waits for any in-flight run)."""
        response = await self._orchestrator.run_pipeline(
            self._window_handle,
            self._window_title,
            self._persona,
            self._sensitivity,
            force=True,
            cancel=cancel,
        )
        self._deliver(response)
        return response

    async def wait_idle(self) -> None:
        """Wait until no scheduled run is in flight."""
        with self._inflight_lock:
            inflight = self._inflight
        if inflight is not None and not inflight.done():
            await asyncio.wrap_future(inflight)

    def _on_tick(self) -> None:
        """Timer-thread callback: submit a run unless one is still in flight."""
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        with self._inflight_lock:
            if self._inflight is not None and not self._inflight.done():
                self._skipped_ticks += 1
                logger.debug("Previous run still in flight, skipping tick")
                return
            self._inflight = asyncio.run_coroutine_threadsafe(self._scheduled_run(), loop)

    async def _scheduled_run(self) -> AnalysisResponse:
        response = await self._orchestrator.run_pipeline(
            self._window_handle,
            self._window_title,
            self._persona,
            self._sensitivity,
            force=False,
            cancel=self._cancel,
        )
        self._completed_runs += 1
        self._deliver(response)
        return response

    def _deliver(self, response: AnalysisResponse) -> None:
        if self._on_result is None:
            return
        try:
            self._on_result(response)
        except Exception:
            logger.exception("Result callback raised")
