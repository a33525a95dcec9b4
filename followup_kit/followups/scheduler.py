"""Periodic driver for follow-up dispatch passes."""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timedelta
from typing import Optional, Protocol

from .models import Clock, utcnow
from .schemas import DispatchSummary, SchedulerStatus

logger = logging.getLogger(__name__)

THREAD_NAME = "follow-up-scheduler"


class Dispatcher(Protocol):
    def dispatch_due(self) -> DispatchSummary: ...


class FollowUpScheduler:
    """Runs :meth:`Dispatcher.dispatch_due` on a single background thread.

    The first pass fires immediately on :meth:`start`; later passes follow a
    fixed-rate cadence measured on the monotonic clock. A pass that overruns
    the interval makes the next one start right away instead of queueing
    several.
    """

    def __init__(
        self,
        dispatcher: Dispatcher,
        interval_seconds: float = 60.0,
        *,
        clock: Clock = utcnow,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._dispatcher = dispatcher
        self._interval = float(interval_seconds)
        self._clock = clock
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._started_at: Optional[datetime] = None
        self._last_run_at: Optional[datetime] = None
        self._last_summary: Optional[DispatchSummary] = None

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._thread is not None

    def start(self, interval_seconds: Optional[float] = None) -> bool:
        """Start the loop; returns ``False`` when it is already running."""

        with self._lock:
            if self._thread is not None:
                logger.info("Follow-up scheduler already running")
                return False
            if interval_seconds is not None:
                if interval_seconds <= 0:
                    raise ValueError("interval_seconds must be positive")
                self._interval = float(interval_seconds)
            self._stop_event = threading.Event()
            self._started_at = self._clock()
            thread = threading.Thread(
                target=self._run, args=(self._stop_event,), name=THREAD_NAME, daemon=True
            )
            self._thread = thread
            thread.start()
        logger.info("Follow-up scheduler started (interval %.1fs)", self._interval)
        return True

    def stop(self, timeout: Optional[float] = None) -> bool:
        """Stop the loop and wait for the running pass to finish."""

        with self._lock:
            thread = self._thread
            if thread is None:
                return False
            self._stop_event.set()
        if thread is not threading.current_thread():
            thread.join(timeout)
        with self._lock:
            self._thread = None
            self._started_at = None
        logger.info("Follow-up scheduler stopped")
        return True

    def trigger_once(self) -> DispatchSummary:
        """Run one pass in the calling thread."""

        logger.info("Manual follow-up dispatch triggered")
        return self._tick()

    def status(self) -> SchedulerStatus:
        with self._lock:
            running = self._thread is not None
            last_run = self._last_run_at
            next_check = None
            if running:
                base = last_run or self._started_at
                if base is not None:
                    next_check = base + timedelta(seconds=self._interval)
            return SchedulerStatus(
                is_running=running,
                interval_seconds=self._interval,
                next_check_estimate=next_check,
                started_at=self._started_at,
                last_run_at=last_run,
                last_summary=self._last_summary,
            )

    def _tick(self) -> DispatchSummary:
        summary = self._dispatcher.dispatch_due()
        with self._lock:
            self._last_run_at = self._clock()
            self._last_summary = summary
        return summary

    def _run(self, stop_event: threading.Event) -> None:
        next_at = time.monotonic()
        while not stop_event.is_set():
            try:
                self._tick()
            except Exception:
                logger.exception("Follow-up dispatch pass failed")
            next_at += self._interval
            now = time.monotonic()
            if next_at <= now:
                next_at = now
                continue
            stop_event.wait(next_at - now)


__all__ = ["FollowUpScheduler"]
