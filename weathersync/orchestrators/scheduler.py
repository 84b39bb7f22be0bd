"""
Sync scheduler for weathersync.

This module implements the periodic driver that runs alert sync and then
retention cleanup on every tick, and shuts down cooperatively: stopping
ends the timer and waits for a cycle already in progress.
"""

import asyncio
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from weathersync.core.results import CleanupResult, CycleResult
from weathersync.observability import metrics
from weathersync.observability.logging_setup import get_logger
from weathersync.services.alerts import AlertService

log = get_logger("weathersync.scheduler")

class SchedulerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    DRAINING = "draining"
    TERMINATED = "terminated"

class SyncScheduler:
    """Periodic alert sync + cleanup"""

    def __init__(self, alerts: AlertService, interval_sec: float = 10.0):
        """
        Args:
            alerts: Alert service driven on every tick
            interval_sec: Time between the end of one cycle and the next tick
        """
        if interval_sec <= 0:
            raise ValueError("interval_sec must be > 0")

        self.alerts = alerts
        self.interval = interval_sec
        self.state = SchedulerState.IDLE
        self.last_result: Optional[CycleResult] = None
        self._stop = asyncio.Event()
        self._cycle_lock = asyncio.Lock()
        self._timer: Optional[asyncio.Task] = None

    def start(self) -> None:
        """Starts the timer. Calling it again while running is a no-op."""
        if self.state in (SchedulerState.DRAINING, SchedulerState.TERMINATED):
            raise RuntimeError(f"scheduler is {self.state.value}")
        if self._timer is not None:
            return
        self._timer = asyncio.create_task(self._tick_loop(), name="sync-scheduler")
        log.info("Scheduler started", interval_sec=self.interval)

    async def _tick_loop(self) -> None:
        while not self._stop.is_set():
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                await self.run_cycle()

    async def run_cycle(self) -> CycleResult:
        """
        Runs one alert sync followed by one cleanup.

        Failures are logged and recorded on the result; nothing is raised.
        Cycles never overlap: a call made while another cycle runs waits
        for it.
        """
        async with self._cycle_lock:
            if self.state == SchedulerState.IDLE:
                self.state = SchedulerState.RUNNING

            t0 = time.perf_counter()
            result = CycleResult(started_at=datetime.now(timezone.utc))
            try:
                try:
                    result.sync = await self.alerts.sync()
                except Exception as e:
                    log.opt(exception=e).error("Alert sync failed")
                    result.sync_error = e

                try:
                    result.cleanup = await self.alerts.cleanup()
                except Exception as e:
                    log.opt(exception=e).error("Alert cleanup failed")
                    result.cleanup = CleanupResult(fails=[e])
            finally:
                if self.state == SchedulerState.RUNNING:
                    self.state = SchedulerState.IDLE

            result.duration_sec = time.perf_counter() - t0
            metrics.cycle_seconds.observe(result.duration_sec)
            metrics.scheduler_cycles.labels(outcome=self._outcome(result)).inc()
            self.last_result = result

            log.debug("Sync cycle finished", duration_sec=round(result.duration_sec, 3),
                      ok=result.ok)
            return result

    @staticmethod
    def _outcome(result: CycleResult) -> str:
        if result.ok:
            return "ok"
        if result.sync_error is not None:
            return "failed"
        return "partial"

    async def stop(self) -> None:
        """
        Stops the timer and waits for an in-flight cycle to finish.

        The scheduler ends up TERMINATED and cannot be started again.
        """
        if self.state == SchedulerState.TERMINATED:
            return

        self.state = SchedulerState.DRAINING
        log.info("Scheduler draining")
        self._stop.set()
        if self._timer is not None:
            await self._timer
            self._timer = None
        # a cycle started through run_cycle() directly
        async with self._cycle_lock:
            pass

        self.state = SchedulerState.TERMINATED
        log.info("Scheduler terminated")
