from datetime import datetime, timezone
from typing import Iterator

import httpx
import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from datastore.report_store import TimeSeriesStore
from models.records import ReportRecord
from services.aggregation import AggregationService
from services.alerts import LoggingAlertSink
from services.cache import TTLCache
from services.errors import PersistenceFailure
from services.registry import BuildingsRegistryClient, ResidentsRegistryClient
from services.reports import ReportService
from services.retry import RetryPolicy
from services.scheduler import AggregationScheduler

BUILDINGS = [{"slug": "B1", "residents": ["R1", "R2"]}]
AGES = {"R1": 30, "R2": 40}


def _registry(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/buildings":
        return httpx.Response(200, json=BUILDINGS)
    resident_id = request.url.path.rsplit("/", 1)[-1]
    return httpx.Response(200, json={"id": resident_id, "age": AGES[resident_id]})


@pytest.fixture
def store() -> TimeSeriesStore:
    return TimeSeriesStore(name="test")


@pytest.fixture
def api_client(store: TimeSeriesStore, monkeypatch) -> Iterator[TestClient]:
    http = httpx.Client(transport=httpx.MockTransport(_registry))
    retry = RetryPolicy(max_attempts=1)
    alerts = LoggingAlertSink()
    service = AggregationService(
        buildings=BuildingsRegistryClient(
            url="http://registry.test/buildings",
            cache=TTLCache(ttl_seconds=60),
            retry_policy=retry,
            client=http,
        ),
        residents=ResidentsRegistryClient(
            base_url="http://registry.test/residents",
            cache=TTLCache(ttl_seconds=60),
            retry_policy=retry,
            client=http,
        ),
        store=store,
        alerts=alerts,
        building_workers=1,
        resident_workers=2,
    )
    scheduler = AggregationScheduler(service, interval_seconds=3600)
    reports = ReportService(store=store, alerts=alerts)

    monkeypatch.setattr("app.main.build_default_scheduler", lambda: scheduler)
    monkeypatch.setattr("app.api.build_default_scheduler", lambda: scheduler)
    monkeypatch.setattr("app.api.build_default_report_service", lambda: reports)

    app = create_app()
    with TestClient(app) as client:
        yield client


def test_healthcheck(api_client: TestClient) -> None:
    response = api_client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_report_without_data_returns_empty_list(api_client: TestClient) -> None:
    response = api_client.get("/api/reports", params={"buildingId": "B1"})

    assert response.status_code == 200
    assert response.json() == []


def test_aggregate_then_fetch_report(api_client: TestClient) -> None:
    run = api_client.post("/api/aggregations")

    assert run.status_code == 200
    assert run.json() == {"succeeded": 1, "failed": [], "cancelled": False}

    response = api_client.get("/api/reports", params={"buildingId": "B1"})
    assert response.status_code == 200
    body = response.json()
    assert body["buildingId"] == "B1"
    assert body["averageAge"] == 35.0
    assert "dateAdded" in body


def test_report_returns_latest_record(api_client: TestClient, store: TimeSeriesStore) -> None:
    store.append(
        ReportRecord(
            building_id="B9",
            average_age=50.0,
            created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )
    )
    store.append(
        ReportRecord(
            building_id="B9",
            average_age=51.5,
            created_at=datetime(2024, 1, 2, tzinfo=timezone.utc),
        )
    )

    response = api_client.get(
        "/api/reports",
        params={"buildingId": "B9", "fromDate": "2020-01-01", "toDate": "2020-01-02"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["averageAge"] == 51.5
    assert body["dateAdded"].startswith("2024-01-02")


def test_missing_building_id_does_not_return_all(api_client: TestClient) -> None:
    api_client.post("/api/aggregations")

    response = api_client.get("/api/reports")

    assert response.status_code == 200
    assert response.json() == []


def test_inverted_date_range_is_bad_request(api_client: TestClient) -> None:
    response = api_client.get(
        "/api/reports",
        params={"buildingId": "B1", "fromDate": "2024-02-01", "toDate": "2024-01-01"},
    )

    assert response.status_code == 400


def test_store_failure_is_server_error(
    api_client: TestClient, store: TimeSeriesStore, monkeypatch
) -> None:
    def broken_latest(building_id: str):
        raise PersistenceFailure("store offline")

    monkeypatch.setattr(store, "latest", broken_latest)

    response = api_client.get("/api/reports", params={"buildingId": "B1"})

    assert response.status_code == 500
    assert response.json()["detail"] == "Report store is unavailable."


def test_aggregation_conflict_when_run_active(api_client: TestClient, monkeypatch) -> None:
    monkeypatch.setattr(AggregationScheduler, "trigger", lambda self: None)

    response = api_client.post("/api/aggregations")

    assert response.status_code == 409


def test_registry_outage_is_service_unavailable(monkeypatch, store: TimeSeriesStore) -> None:
    def down(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(503)

    http = httpx.Client(transport=httpx.MockTransport(down))
    retry = RetryPolicy(max_attempts=1)
    service = AggregationService(
        buildings=BuildingsRegistryClient(
            url="http://registry.test/buildings",
            cache=TTLCache(ttl_seconds=60),
            retry_policy=retry,
            client=http,
        ),
        residents=ResidentsRegistryClient(
            base_url="http://registry.test/residents",
            cache=TTLCache(ttl_seconds=60),
            retry_policy=retry,
            client=http,
        ),
        store=store,
        alerts=LoggingAlertSink(),
    )
    scheduler = AggregationScheduler(service, interval_seconds=3600)
    monkeypatch.setattr("app.main.build_default_scheduler", lambda: scheduler)
    monkeypatch.setattr("app.api.build_default_scheduler", lambda: scheduler)

    with TestClient(create_app()) as client:
        response = client.post("/api/aggregations")

    assert response.status_code == 503
    assert store.records() == []
