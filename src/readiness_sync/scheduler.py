"""Periodic full sweeps on a background timer.

A daemon ``threading.Timer`` fires every ``interval_minutes``. Ticks outside
the configured business hours are skipped. Failed runs back off
exponentially (capped) before the next attempt.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from readiness_sync.config import ScheduleConfig
from readiness_sync.errors import ReadinessSyncError
from readiness_sync.models import RunSummary
from readiness_sync.triggers import Runner

logger = logging.getLogger(__name__)

_MAX_BACKOFF_SECONDS = 300.0


def within_business_hours(moment: datetime, schedule: ScheduleConfig) -> bool:
    if schedule.weekdays_only and moment.weekday() >= 5:
        return False
    if schedule.business_hours is None:
        return True
    start, end = schedule.business_hours
    return start <= moment.hour < end


@dataclass
class SweepScheduler:
    """Runs full sweeps on an interval."""

    runner: Runner
    schedule: ScheduleConfig
    now: Callable[[], datetime] = datetime.now
    _timer: Optional[threading.Timer] = field(default=None, init=False, repr=False)
    _running: bool = field(default=False, init=False, repr=False)
    _backoff_seconds: float = field(default=30.0, init=False, repr=False)
    _consecutive_failures: int = field(default=0, init=False, repr=False)
    _last_summary: Optional[RunSummary] = field(default=None, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def start(self) -> None:
        with self._lock:
            if self._running:
                return
            self._running = True
        self._schedule_next()
        logger.info("Sweep scheduler started (interval=%.1fm)", self.schedule.interval_minutes)

    def stop(self) -> None:
        with self._lock:
            self._running = False
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        logger.info("Sweep scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    @property
    def last_summary(self) -> Optional[RunSummary]:
        return self._last_summary

    def run_now(self, *, dry_run: bool | None = None) -> RunSummary:
        """Run a sweep immediately, serialised with timer ticks."""
        with self._lock:
            return self._sweep(self.schedule.dry_run if dry_run is None else dry_run)

    def tick(self) -> Optional[RunSummary]:
        """One timer tick: sweep when inside business hours."""
        if not within_business_hours(self.now(), self.schedule):
            logger.debug("Outside business hours, skipping scheduled sweep")
            return None
        try:
            return self.run_now()
        except Exception:
            return None

    def _sweep(self, dry_run: bool) -> RunSummary:
        try:
            summary = self.runner.run_full_sweep(dry_run=dry_run)
        except ReadinessSyncError as exc:
            self._record_failure()
            logger.error(
                "Scheduled sweep failed (attempt %d, next backoff %.0fs): %s",
                self._consecutive_failures,
                self._backoff_seconds,
                exc,
            )
            raise
        except Exception:
            self._record_failure()
            logger.exception(
                "Scheduled sweep crashed (attempt %d, next backoff %.0fs)",
                self._consecutive_failures,
                self._backoff_seconds,
            )
            raise
        self._consecutive_failures = 0
        self._backoff_seconds = 30.0
        self._last_summary = summary
        return summary

    def _record_failure(self) -> None:
        self._consecutive_failures += 1
        self._backoff_seconds = min(self._backoff_seconds * 2, _MAX_BACKOFF_SECONDS)

    def _next_interval(self) -> float:
        if self._consecutive_failures > 0:
            return min(self._backoff_seconds, self.schedule.interval_minutes * 60.0)
        return self.schedule.interval_minutes * 60.0

    def _schedule_next(self) -> None:
        if not self._running:
            return
        self._timer = threading.Timer(self._next_interval(), self._on_timer)
        self._timer.daemon = True
        self._timer.start()

    def _on_timer(self) -> None:
        if not self._running:
            return
        try:
            self.tick()
        finally:
            self._schedule_next()
