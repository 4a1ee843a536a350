"""Failure notifications emitted at each pipeline failure boundary."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache
from typing import Any, Dict, Optional, Protocol

import httpx

from models.records import utc_now
from settings import get_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AlertEvent:
    operation: str
    error: BaseException
    building_id: Optional[str] = None
    resident_id: Optional[str] = None

    def to_payload(self, raised_at: Optional[datetime] = None) -> Dict[str, Any]:
        return {
            "operation": self.operation,
            "buildingId": self.building_id,
            "residentId": self.resident_id,
            "errorType": type(self.error).__name__,
            "error": str(self.error),
            "raisedAt": (raised_at or utc_now()).isoformat(),
        }


class AlertSink(Protocol):
    def notify(self, event: AlertEvent) -> None: ...


class LoggingAlertSink:
    """Writes every alert to the application log at ERROR level."""

    def notify(self, event: AlertEvent) -> None:
        logger.error(
            "Alert: %s failed: %s",
            event.operation,
            event.error,
            extra={
                "operation": event.operation,
                "building_id": event.building_id,
                "resident_id": event.resident_id,
                "reason": type(event.error).__name__,
            },
        )


class WebhookAlertSink(LoggingAlertSink):
    """Logs the alert, then posts it as JSON to a chat-style webhook.

    Delivery is best effort; a failing webhook is logged and otherwise
    ignored so that it never changes the outcome of an aggregation run.
    """

    def __init__(self, url: str, client: Optional[httpx.Client] = None, timeout: float = 5.0) -> None:
        self.url = url
        self._client = client or httpx.Client(timeout=timeout)

    def notify(self, event: AlertEvent) -> None:
        super().notify(event)
        try:
            response = self._client.post(self.url, json=event.to_payload())
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning(
                "Alert webhook delivery failed: %s",
                exc,
                extra={"operation": event.operation, "url": self.url},
            )

    def close(self) -> None:
        self._client.close()


@lru_cache
def build_default_alert_sink() -> AlertSink:
    settings = get_settings()
    if settings.alert_webhook_url:
        return WebhookAlertSink(settings.alert_webhook_url)
    return LoggingAlertSink()
