"""Aggregation run orchestration: roster fetch, resident fan-out, persistence."""

from __future__ import annotations

import logging
import time
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, as_completed, wait
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from functools import lru_cache
from threading import Event
from typing import Callable, List, Optional

from datastore.report_store import TimeSeriesStore, build_default_store
from models.records import Building, ReportRecord, utc_now
from services.aggregator import average
from services.alerts import AlertEvent, AlertSink, build_default_alert_sink
from services.errors import OperationCancelled, PersistenceFailure, UpstreamUnavailable
from services.registry import (
    BuildingsRegistryClient,
    ResidentsRegistryClient,
    build_default_buildings_client,
    build_default_residents_client,
)
from settings import get_settings

logger = logging.getLogger(__name__)


class BuildingOutcome(str, Enum):
    recorded = "recorded"
    skipped = "skipped"
    failed = "failed"
    cancelled = "cancelled"


@dataclass
class AggregationResult:
    """Summary of one aggregation run."""

    succeeded: int = 0
    failed: List[str] = field(default_factory=list)
    cancelled: bool = False


class AggregationService:
    """Computes and appends one average-age record per building per run."""

    def __init__(
        self,
        buildings: BuildingsRegistryClient,
        residents: ResidentsRegistryClient,
        store: TimeSeriesStore,
        alerts: AlertSink,
        building_workers: int = 4,
        resident_workers: int = 8,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.buildings = buildings
        self.residents = residents
        self.store = store
        self.alerts = alerts
        self.clock = clock
        self.building_executor = ThreadPoolExecutor(
            max_workers=building_workers, thread_name_prefix="building"
        )
        # Separate pool so building tasks never wait on slots they occupy themselves.
        self.resident_executor = ThreadPoolExecutor(
            max_workers=resident_workers, thread_name_prefix="resident"
        )

    def run_aggregation(self, cancel_event: Optional[Event] = None) -> AggregationResult:
        """Run the fetch, average and append pipeline across all buildings.

        Raises ``UpstreamUnavailable`` when the building roster cannot be
        fetched; every later failure is confined to its building.
        """
        cancel = cancel_event or Event()
        start_time = time.perf_counter()
        logger.info("Aggregation run started", extra={"operation": "run_aggregation"})

        try:
            buildings = self.buildings.list_buildings()
        except UpstreamUnavailable as exc:
            self.alerts.notify(AlertEvent(operation="list_buildings", error=exc))
            raise

        result = AggregationResult()
        futures = {
            self.building_executor.submit(self._aggregate_building, building, cancel): building
            for building in buildings
        }
        for future in as_completed(futures):
            building = futures[future]
            try:
                outcome = future.result()
            except Exception as exc:  # noqa: BLE001 - isolate one building's bug from the run
                self.alerts.notify(
                    AlertEvent(operation="aggregate_building", error=exc, building_id=building.id)
                )
                outcome = BuildingOutcome.failed

            if outcome is BuildingOutcome.recorded:
                result.succeeded += 1
            elif outcome is BuildingOutcome.failed:
                result.failed.append(building.id)
            elif outcome is BuildingOutcome.cancelled:
                result.cancelled = True

        if cancel.is_set():
            result.cancelled = True

        logger.info(
            "Aggregation run finished",
            extra={
                "operation": "run_aggregation",
                "succeeded": result.succeeded,
                "failed_count": len(result.failed),
                "reason": "cancelled" if result.cancelled else None,
                "duration_ms": int((time.perf_counter() - start_time) * 1000),
            },
        )
        return result

    def shutdown(self) -> None:
        """Release worker pools during application shutdown."""
        self.building_executor.shutdown(wait=False, cancel_futures=True)
        self.resident_executor.shutdown(wait=False, cancel_futures=True)

    def _aggregate_building(self, building: Building, cancel: Event) -> BuildingOutcome:
        if cancel.is_set():
            return BuildingOutcome.cancelled

        try:
            ages = self._fetch_ages(building, cancel)
        except OperationCancelled:
            return BuildingOutcome.cancelled
        except UpstreamUnavailable:
            return BuildingOutcome.failed

        average_age = average(ages)
        if average_age is None:
            logger.info(
                "Skipping building without residents",
                extra={"building_id": building.id, "reason": "empty roster"},
            )
            return BuildingOutcome.skipped

        if cancel.is_set():
            return BuildingOutcome.cancelled

        record = ReportRecord(
            building_id=building.id,
            average_age=average_age,
            created_at=self.clock(),
        )
        try:
            self.store.append(record)
        except PersistenceFailure as exc:
            self.alerts.notify(
                AlertEvent(operation="append_report", error=exc, building_id=building.id)
            )
            return BuildingOutcome.failed
        return BuildingOutcome.recorded

    def _fetch_ages(self, building: Building, cancel: Event) -> List[float]:
        if not building.residents:
            return []

        futures: dict[Future[float], str] = {
            self.resident_executor.submit(self._fetch_age, resident_id, cancel): resident_id
            for resident_id in building.residents
        }
        done, pending = wait(futures, return_when=FIRST_EXCEPTION)
        for future in pending:
            future.cancel()
        # Let fetches that already started settle before deciding the outcome.
        wait(pending)

        for future in done:
            exc = future.exception()
            if isinstance(exc, OperationCancelled):
                raise exc
            if exc is not None:
                resident_id = futures[future]
                self.alerts.notify(
                    AlertEvent(
                        operation="get_resident",
                        error=exc,
                        building_id=building.id,
                        resident_id=resident_id,
                    )
                )
                if isinstance(exc, UpstreamUnavailable):
                    raise exc
                raise UpstreamUnavailable(
                    f"Resident {resident_id!r} of building {building.id!r} failed: {exc}"
                ) from exc

        return [future.result() for future in futures]

    def _fetch_age(self, resident_id: str, cancel: Event) -> float:
        if cancel.is_set():
            raise OperationCancelled("Run cancelled before fetch")
        return self.residents.get_resident(resident_id, cancel_event=cancel).age


@lru_cache
def build_default_aggregation_service() -> AggregationService:
    """Factory that wires the orchestrator with the default collaborators."""
    settings = get_settings()
    return AggregationService(
        buildings=build_default_buildings_client(),
        residents=build_default_residents_client(),
        store=build_default_store(),
        alerts=build_default_alert_sink(),
        building_workers=settings.building_workers,
        resident_workers=settings.resident_workers,
    )
