"""Periodic trigger for aggregation runs."""

from __future__ import annotations

import logging
from functools import lru_cache
from threading import Event, Lock, Thread
from typing import Optional

from services.aggregation import AggregationResult, AggregationService, build_default_aggregation_service
from services.errors import ServiceError
from settings import get_settings

logger = logging.getLogger(__name__)


class AggregationScheduler:
    """Calls ``run_aggregation`` on a fixed interval, never overlapping runs.

    A tick that arrives while a run is still active is skipped. ``stop``
    ends the timer and cancels the active run cooperatively; a run that
    begins after ``stop`` and before the next ``start`` is cancelled up front.
    """

    def __init__(
        self,
        service: AggregationService,
        interval_seconds: float,
        run_on_start: bool = False,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive.")
        self.service = service
        self.interval_seconds = interval_seconds
        self.run_on_start = run_on_start
        self._run_lock = Lock()
        # Guards _active_cancel against a concurrent stop().
        self._state_lock = Lock()
        self._stop = Event()
        self._active_cancel: Optional[Event] = None
        self._thread: Optional[Thread] = None

    @property
    def running(self) -> bool:
        return self._run_lock.locked()

    def trigger(self) -> Optional[AggregationResult]:
        """Run one aggregation now, or return ``None`` if one is in progress."""
        if not self._run_lock.acquire(blocking=False):
            logger.info(
                "Skipping aggregation trigger",
                extra={"operation": "run_aggregation", "reason": "previous run still active"},
            )
            return None
        cancel = Event()
        with self._state_lock:
            if self._stop.is_set():
                cancel.set()
            self._active_cancel = cancel
        try:
            return self.service.run_aggregation(cancel_event=cancel)
        finally:
            with self._state_lock:
                self._active_cancel = None
            self._run_lock.release()

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = Thread(target=self._loop, name="aggregation-scheduler", daemon=True)
        self._thread.start()
        logger.info(
            "Aggregation scheduler started",
            extra={"reason": f"every {self.interval_seconds}s"},
        )

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        with self._state_lock:
            self._stop.set()
            if self._active_cancel is not None:
                self._active_cancel.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
        logger.info("Aggregation scheduler stopped")

    def _loop(self) -> None:
        if self.run_on_start:
            self._tick()
        while not self._stop.wait(self.interval_seconds):
            self._tick()

    def _tick(self) -> None:
        try:
            self.trigger()
        except ServiceError as exc:
            # Already alerted by the orchestrator; the next tick retries.
            logger.warning(
                "Scheduled aggregation failed: %s",
                exc,
                extra={"operation": "run_aggregation", "reason": type(exc).__name__},
            )
        except Exception:  # noqa: BLE001 - keep the timer thread alive
            logger.exception("Unexpected error in scheduled aggregation")


@lru_cache
def build_default_scheduler() -> AggregationScheduler:
    settings = get_settings()
    return AggregationScheduler(
        service=build_default_aggregation_service(),
        interval_seconds=settings.aggregation_interval_seconds,
    )
