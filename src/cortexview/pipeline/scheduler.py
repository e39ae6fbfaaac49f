"""Thread-safe periodic trigger.

:class:`MonitoringScheduler` fires a callback from a dedicated daemon
thread every ``interval`` seconds until stopped. It knows nothing about
the pipeline; :class:`~cortexview.pipeline.monitor.MonitoringSession`
supplies a trigger that hands each tick to the event loop.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from datetime import timedelta

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 5.0


class SchedulerClosedError(RuntimeError):
    """Raised when starting a scheduler that has been closed."""


def _to_seconds(interval: float | timedelta) -> float:
    if isinstance(interval, timedelta):
        return interval.total_seconds()
    return float(interval)


class MonitoringScheduler:
    """Invokes ``trigger`` periodically from a background thread.

    All state (running flag, interval, timer thread) is guarded by one
    lock, so ``start``, ``stop``, ``set_interval`` and ``close`` are
    atomic with respect to each other and may be called from any thread,
    including from inside ``trigger``. Exceptions raised by ``trigger``
    are logged and do not stop the scheduler.

    Example usage::

        with MonitoringScheduler(on_tick, interval=5.0) as scheduler:
            scheduler.start()
            ...
            scheduler.set_interval(timedelta(seconds=30))
    """

    def __init__(
        self,
        trigger: Callable[[], None],
        interval: float | timedelta = DEFAULT_INTERVAL_SECONDS,
        name: str = "monitoring-scheduler",
    ) -> None:
        seconds = _to_seconds(interval)
        if seconds <= 0:
            raise ValueError("Interval must be greater than zero.")
        self._trigger = trigger
        self._name = name
        self._interval = seconds
        self._lock = threading.Lock()
        self._wakeup = threading.Condition(self._lock)
        self._thread: threading.Thread | None = None
        self._stop_event: threading.Event | None = None
        self._rescheduled = False
        self._running = False
        self._closed = False
        self._fire_count = 0

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._running

    @property
    def is_closed(self) -> bool:
        with self._lock:
            return self._closed

    @property
    def interval(self) -> float:
        """Current period in seconds."""
        with self._lock:
            return self._interval

    @property
    def fire_count(self) -> int:
        with self._lock:
            return self._fire_count

    def start(self) -> None:
        """Begin firing the trigger every ``interval``. No-op if already running.

        Raises:
            SchedulerClosedError: If the scheduler has been closed.
        """
        with self._lock:
            if self._closed:
                raise SchedulerClosedError("MonitoringScheduler has been closed")
            if self._running:
                return
            self._stop_event = threading.Event()
            self._rescheduled = False
            self._thread = threading.Thread(
                target=self._run, args=(self._stop_event,), daemon=True, name=self._name
            )
            self._running = True
            self._thread.start()
            interval = self._interval
        logger.info("Monitoring started (interval=%.1fs)", interval)

    def stop(self) -> None:
        """Stop firing. No-op if not running."""
        with self._lock:
            thread = self._stop_locked()
        self._join(thread)

    def set_interval(self, interval: float | timedelta) -> None:
        """Change the period; a running scheduler restarts its countdown with it.

        Raises:
            ValueError: If the interval is not positive.
        """
        seconds = _to_seconds(interval)
        if seconds <= 0:
            raise ValueError("Interval must be greater than zero.")
        with self._lock:
            self._interval = seconds
            if self._running:
                self._rescheduled = True
                self._wakeup.notify_all()
        logger.info("Monitoring interval set to %.1fs", seconds)

    def close(self) -> None:
        """Stop if running and make the scheduler permanently unusable."""
        with self._lock:
            if self._closed:
                return
            thread = self._stop_locked()
            self._closed = True
        self._join(thread)

    def __enter__(self) -> MonitoringScheduler:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        self.close()

    def _stop_locked(self) -> threading.Thread | None:
        """Mark stopped and wake the timer thread. Caller holds the lock."""
        if not self._running:
            return None
        self._running = False
        if self._stop_event is not None:
            self._stop_event.set()
        self._wakeup.notify_all()
        thread, self._thread = self._thread, None
        self._stop_event = None
        logger.info("Monitoring stopped")
        return thread

    def _join(self, thread: threading.Thread | None) -> None:
        # The trigger may stop the scheduler from the timer thread itself.
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=5.0)

    def _run(self, stop_event: threading.Event) -> None:
        while True:
            with self._lock:
                deadline = time.monotonic() + self._interval
                self._rescheduled = False
                while not stop_event.is_set():
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        break
                    self._wakeup.wait(remaining)
                    if self._rescheduled:
                        self._rescheduled = False
                        deadline = time.monotonic() + self._interval
                if stop_event.is_set():
                    return
                self._fire_count += 1
            self._fire()

    def _fire(self) -> None:
        try:
            self._trigger()
        except Exception:
            logger.exception("Monitoring trigger raised")
