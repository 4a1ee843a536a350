from __future__ import annotations
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.api import router
from datastore.report_store import build_default_store
from logging_config import configure_logging
from services.aggregation import build_default_aggregation_service
from services.alerts import WebhookAlertSink, build_default_alert_sink
from services.registry import build_default_buildings_client, build_default_residents_client
from services.reports import build_default_report_service
from services.scheduler import build_default_scheduler
from settings import get_settings

_FACTORIES = (
    build_default_scheduler,
    build_default_aggregation_service,
    build_default_report_service,
    build_default_buildings_client,
    build_default_residents_client,
    build_default_alert_sink,
    build_default_store,
)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    scheduler = build_default_scheduler()
    if get_settings().scheduler_enabled:
        scheduler.start()
    try:
        yield
    finally:
        scheduler.stop()
        service = scheduler.service
        service.shutdown()
        service.buildings.close()
        service.residents.close()
        if isinstance(service.alerts, WebhookAlertSink):
            service.alerts.close()
        for factory in _FACTORIES:
            factory.cache_clear()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Building Age Reports",
        description="Average resident age per building, aggregated from upstream registries.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(router)
    return app

app = create_app()
