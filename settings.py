from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_BUILDINGS_URL_ENV = "BUILDINGS_REGISTRY_URL"
_RESIDENTS_URL_ENV = "RESIDENTS_REGISTRY_URL"
_STORE_NAME_ENV = "REPORT_STORE_NAME"
_STORE_PATH_ENV = "REPORT_STORE_PATH"
_CACHE_TTL_ENV = "CACHE_TTL_SECONDS"
_UPSTREAM_TIMEOUT_ENV = "UPSTREAM_TIMEOUT_SECONDS"
_PERSISTENCE_TIMEOUT_ENV = "PERSISTENCE_TIMEOUT_SECONDS"
_RETRY_ATTEMPTS_ENV = "RETRY_MAX_ATTEMPTS"
_RETRY_BACKOFF_ENV = "RETRY_BACKOFF_SECONDS"
_BUILDING_WORKERS_ENV = "BUILDING_WORKER_COUNT"
_RESIDENT_WORKERS_ENV = "RESIDENT_WORKER_COUNT"
_INTERVAL_ENV = "AGGREGATION_INTERVAL_SECONDS"
_SCHEDULER_ENABLED_ENV = "SCHEDULER_ENABLED"
_ALERT_WEBHOOK_ENV = "ALERT_WEBHOOK_URL"
_LOG_LEVEL_ENV = "LOG_LEVEL"


@dataclass(frozen=True)
class Settings:
    buildings_registry_url: str
    residents_registry_url: str
    store_name: str
    store_path: Optional[str]
    cache_ttl_seconds: float
    upstream_timeout_seconds: float
    persistence_timeout_seconds: float
    retry_max_attempts: int
    retry_backoff_seconds: float
    building_workers: int
    resident_workers: int
    aggregation_interval_seconds: float
    scheduler_enabled: bool
    alert_webhook_url: Optional[str]
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_positive_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip().lower()
    if candidate in {"1", "true", "yes", "on"}:
        return True
    if candidate in {"0", "false", "no", "off"}:
        return False
    return default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        buildings_registry_url=_read_str_env(
            _BUILDINGS_URL_ENV, "http://localhost:9000/buildings"
        ),
        residents_registry_url=_read_str_env(
            _RESIDENTS_URL_ENV, "http://localhost:9000/residents"
        ).rstrip("/"),
        store_name=_read_str_env(_STORE_NAME_ENV, "reports"),
        store_path=_read_optional_env(_STORE_PATH_ENV, "./tmp/reports.jsonl"),
        cache_ttl_seconds=_read_positive_float(_CACHE_TTL_ENV, 3600.0),
        upstream_timeout_seconds=_read_positive_float(_UPSTREAM_TIMEOUT_ENV, 10.0),
        persistence_timeout_seconds=_read_positive_float(_PERSISTENCE_TIMEOUT_ENV, 5.0),
        retry_max_attempts=_read_positive_int(_RETRY_ATTEMPTS_ENV, 3),
        retry_backoff_seconds=_read_positive_float(_RETRY_BACKOFF_ENV, 0.5),
        building_workers=_read_positive_int(_BUILDING_WORKERS_ENV, 4),
        resident_workers=_read_positive_int(_RESIDENT_WORKERS_ENV, 8),
        aggregation_interval_seconds=_read_positive_float(_INTERVAL_ENV, 12 * 60 * 60.0),
        scheduler_enabled=_read_bool(_SCHEDULER_ENABLED_ENV, False),
        alert_webhook_url=_read_optional_env(_ALERT_WEBHOOK_ENV, None),
        log_level=_read_log_level("INFO"),
    )
