"""Read path: serve the most recent report for a building."""

from __future__ import annotations

import logging
from datetime import date, datetime
from functools import lru_cache
from typing import Optional, Union

from datastore.report_store import TimeSeriesStore, build_default_store
from models.records import ReportRecord
from services.alerts import AlertEvent, AlertSink, build_default_alert_sink
from services.errors import BadRequest, PersistenceFailure

logger = logging.getLogger(__name__)

DateLike = Union[date, datetime]


class ReportService:
    def __init__(self, store: TimeSeriesStore, alerts: AlertSink) -> None:
        self.store = store
        self.alerts = alerts

    def get_report(
        self,
        building_id: Optional[str] = "",
        from_date: Optional[DateLike] = None,
        to_date: Optional[DateLike] = None,
    ) -> Optional[ReportRecord]:
        """Return the latest record for ``building_id``, or ``None`` if there is none.

        A missing id means the empty string and only matches records stored
        under the empty string. The date range is accepted but not applied.
        """
        building_id = building_id or ""
        if from_date is not None and to_date is not None and _as_date(from_date) > _as_date(to_date):
            raise BadRequest("fromDate must not be later than toDate.")

        logger.info(
            "Report requested",
            extra={
                "operation": "get_report",
                "building_id": building_id,
                "reason": f"range {from_date}..{to_date} not applied",
            },
        )
        try:
            return self.store.latest(building_id)
        except PersistenceFailure as exc:
            self.alerts.notify(
                AlertEvent(operation="get_report", error=exc, building_id=building_id)
            )
            raise


def _as_date(value: DateLike) -> date:
    return value.date() if isinstance(value, datetime) else value


@lru_cache
def build_default_report_service() -> ReportService:
    return ReportService(store=build_default_store(), alerts=build_default_alert_sink())
