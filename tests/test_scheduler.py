from __future__ import annotations

import threading
import time
from typing import List, Optional

import pytest

from services.aggregation import AggregationResult
from services.errors import UpstreamUnavailable
from services.scheduler import AggregationScheduler


class FakeService:
    def __init__(self, block: Optional[threading.Event] = None, error: Exception | None = None) -> None:
        self.block = block
        self.error = error
        self.cancel_events: List[threading.Event] = []
        self.started = threading.Event()
        self.calls = 0

    def run_aggregation(self, cancel_event: Optional[threading.Event] = None) -> AggregationResult:
        self.calls += 1
        assert cancel_event is not None
        self.cancel_events.append(cancel_event)
        self.started.set()
        if self.error is not None:
            raise self.error
        if self.block is not None:
            while not self.block.is_set() and not cancel_event.is_set():
                time.sleep(0.01)
        return AggregationResult(succeeded=1, cancelled=cancel_event.is_set())


def test_trigger_runs_aggregation() -> None:
    service = FakeService()
    scheduler = AggregationScheduler(service, interval_seconds=60)  # type: ignore[arg-type]

    result = scheduler.trigger()

    assert result == AggregationResult(succeeded=1)
    assert scheduler.running is False


def test_trigger_is_skipped_while_a_run_is_active() -> None:
    release = threading.Event()
    service = FakeService(block=release)
    scheduler = AggregationScheduler(service, interval_seconds=60)  # type: ignore[arg-type]
    worker = threading.Thread(target=scheduler.trigger)
    worker.start()
    assert service.started.wait(timeout=1.0)

    try:
        assert scheduler.running is True
        assert scheduler.trigger() is None
    finally:
        release.set()
        worker.join(timeout=1.0)

    assert service.calls == 1


def test_trigger_propagates_run_failures_and_releases_lock() -> None:
    service = FakeService(error=UpstreamUnavailable("down"))
    scheduler = AggregationScheduler(service, interval_seconds=60)  # type: ignore[arg-type]

    with pytest.raises(UpstreamUnavailable):
        scheduler.trigger()

    assert scheduler.running is False


def test_timer_ticks_and_survives_failures() -> None:
    service = FakeService(error=UpstreamUnavailable("down"))
    scheduler = AggregationScheduler(service, interval_seconds=0.02)  # type: ignore[arg-type]

    scheduler.start()
    try:
        deadline = time.monotonic() + 2.0
        while service.calls < 3 and time.monotonic() < deadline:
            time.sleep(0.01)
    finally:
        scheduler.stop()

    assert service.calls >= 3


def test_stop_cancels_active_run() -> None:
    service = FakeService(block=threading.Event())
    scheduler = AggregationScheduler(  # type: ignore[arg-type]
        service, interval_seconds=60, run_on_start=True
    )

    scheduler.start()
    assert service.started.wait(timeout=1.0)
    scheduler.stop(timeout=1.0)

    assert service.cancel_events[0].is_set()
    assert scheduler.running is False


def test_interval_must_be_positive() -> None:
    with pytest.raises(ValueError):
        AggregationScheduler(FakeService(), interval_seconds=0)  # type: ignore[arg-type]


def test_trigger_after_stop_is_cancelled_up_front() -> None:
    service = FakeService()
    scheduler = AggregationScheduler(service, interval_seconds=60)  # type: ignore[arg-type]

    scheduler.stop()
    result = scheduler.trigger()

    assert result is not None
    assert result.cancelled is True
    assert service.cancel_events[0].is_set()
    assert scheduler.running is False


def test_start_after_stop_allows_runs_again() -> None:
    service = FakeService()
    scheduler = AggregationScheduler(service, interval_seconds=60)  # type: ignore[arg-type]

    scheduler.stop()
    scheduler.start()
    try:
        result = scheduler.trigger()
    finally:
        scheduler.stop()

    assert result == AggregationResult(succeeded=1, cancelled=False)
