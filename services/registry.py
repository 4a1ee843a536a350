"""HTTP clients for the buildings and residents registries."""

from __future__ import annotations

import logging
from functools import lru_cache
from threading import Event
from typing import Any, List, Optional

import httpx
from pydantic import TypeAdapter, ValidationError

from models.records import Building, Resident
from services.cache import TTLCache
from services.errors import UpstreamUnavailable
from services.retry import RetryPolicy
from settings import get_settings

logger = logging.getLogger(__name__)

_BUILDINGS_KEY = "all"
_BUILDING_LIST = TypeAdapter(List[Building])


def _get_json(client: httpx.Client, url: str, operation: str, **context: Any) -> Any:
    """Issue one GET and return the decoded body, or raise ``UpstreamUnavailable``."""
    logger.info("GET request started", extra={"operation": operation, "url": url, **context})
    try:
        response = client.get(url)
        response.raise_for_status()
        payload = response.json()
    except httpx.TimeoutException as exc:
        raise UpstreamUnavailable(f"{operation} timed out calling {url}") from exc
    except httpx.HTTPStatusError as exc:
        raise UpstreamUnavailable(
            f"{operation} got status {exc.response.status_code} from {url}"
        ) from exc
    except httpx.HTTPError as exc:
        raise UpstreamUnavailable(f"{operation} failed calling {url}: {exc}") from exc
    except ValueError as exc:
        raise UpstreamUnavailable(f"{operation} received a non-JSON body from {url}") from exc
    logger.info(
        "GET request completed",
        extra={"operation": operation, "url": url, "status_code": response.status_code, **context},
    )
    return payload


class BuildingsRegistryClient:
    """Fetches the full building roster, cached under a single key."""

    def __init__(
        self,
        url: str,
        cache: TTLCache[List[Building]],
        retry_policy: RetryPolicy,
        client: Optional[httpx.Client] = None,
        timeout: float = 10.0,
    ) -> None:
        self.url = url
        self.cache = cache
        self.retry_policy = retry_policy
        self._client = client or httpx.Client(timeout=timeout)

    def list_buildings(self) -> List[Building]:
        cached = self.cache.get(_BUILDINGS_KEY)
        if cached is not None:
            return list(cached)

        buildings = self.retry_policy.call(self._fetch)
        self.cache.set(_BUILDINGS_KEY, buildings)
        logger.info(
            "Fetched %d buildings",
            len(buildings),
            extra={"operation": "list_buildings"},
        )
        return list(buildings)

    def close(self) -> None:
        self._client.close()

    def _fetch(self) -> List[Building]:
        payload = _get_json(self._client, self.url, "list_buildings")
        try:
            return _BUILDING_LIST.validate_python(payload)
        except ValidationError as exc:
            raise UpstreamUnavailable(f"Malformed buildings payload from {self.url}") from exc


class ResidentsRegistryClient:
    """Fetches residents one by one, each cached under its own id."""

    def __init__(
        self,
        base_url: str,
        cache: TTLCache[Resident],
        retry_policy: RetryPolicy,
        client: Optional[httpx.Client] = None,
        timeout: float = 10.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.cache = cache
        self.retry_policy = retry_policy
        self._client = client or httpx.Client(timeout=timeout)

    def get_resident(self, resident_id: str, cancel_event: Optional[Event] = None) -> Resident:
        cached = self.cache.get(resident_id)
        if cached is not None:
            return cached

        resident = self.retry_policy.call(self._fetch, resident_id, cancel_event=cancel_event)
        self.cache.set(resident_id, resident)
        return resident

    def close(self) -> None:
        self._client.close()

    def _fetch(self, resident_id: str) -> Resident:
        url = f"{self.base_url}/{resident_id}"
        payload = _get_json(self._client, url, "get_resident", resident_id=resident_id)
        try:
            return Resident.model_validate(payload)
        except ValidationError as exc:
            raise UpstreamUnavailable(f"Malformed resident payload from {url}") from exc


def _default_retry_policy() -> RetryPolicy:
    settings = get_settings()
    return RetryPolicy(
        max_attempts=settings.retry_max_attempts,
        backoff_seconds=settings.retry_backoff_seconds,
    )


@lru_cache
def build_default_buildings_client() -> BuildingsRegistryClient:
    settings = get_settings()
    return BuildingsRegistryClient(
        url=settings.buildings_registry_url,
        cache=TTLCache(settings.cache_ttl_seconds),
        retry_policy=_default_retry_policy(),
        timeout=settings.upstream_timeout_seconds,
    )


@lru_cache
def build_default_residents_client() -> ResidentsRegistryClient:
    settings = get_settings()
    return ResidentsRegistryClient(
        base_url=settings.residents_registry_url,
        cache=TTLCache(settings.cache_ttl_seconds),
        retry_policy=_default_retry_policy(),
        timeout=settings.upstream_timeout_seconds,
    )
