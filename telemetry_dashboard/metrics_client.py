"""Async client for the analytics pipes behind the dashboard."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

import httpx

from telemetry_dashboard.config import (
    API_BASE_URL,
    ENDPOINT_LABELS,
    GENERATIONS_ENDPOINT,
    MODELS_USAGE_ENDPOINT,
)
from telemetry_dashboard.models import (
    GenerationRecord,
    ModelUsageRecord,
    Tier,
    parse_generations,
    parse_models_usage,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class MetricsError(Exception):
    """Represents a failed fetch from one of the analytics pipes."""

    message: str
    endpoint: str = ""
    status_code: int | None = None

    def __str__(self) -> str:
        if self.status_code is None:
            return self.message
        return f"{self.message} (status={self.status_code})"


class NetworkError(MetricsError):
    """The request never produced a usable HTTP response."""


class FetchError(NetworkError):
    """The pipe answered with a non-success status."""


class ParseError(MetricsError):
    """The response body did not have the expected shape."""


class AnalyticsClient:
    """Minimal client for the generations and models-usage pipes.

    The token travels as a query parameter, so error messages and log lines
    only ever mention the endpoint name.
    """

    def __init__(
        self,
        token: str,
        *,
        base_url: str = API_BASE_URL,
        timeout_seconds: float | None = None,
        http_client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.token = token
        self.base_url = base_url.rstrip("/")
        self._owns_client = http_client is None
        if http_client is not None:
            self.http_client = http_client
        else:
            client_kwargs: dict[str, Any] = {"transport": transport}
            if timeout_seconds is not None:
                client_kwargs["timeout"] = timeout_seconds
            self.http_client = httpx.AsyncClient(**client_kwargs)

    async def aclose(self) -> None:
        if self._owns_client:
            await self.http_client.aclose()

    async def __aenter__(self) -> "AnalyticsClient":
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        await self.aclose()

    async def fetch_generations(self, tier: Tier | str) -> list[GenerationRecord]:
        """Fetch generation counts over time for one user tier."""
        tier = Tier.parse(tier)
        return await self._fetch_records(
            GENERATIONS_ENDPOINT,
            params={"user_tier": tier.value},
            parse=parse_generations,
        )

    async def fetch_models_usage(self) -> list[ModelUsageRecord]:
        """Fetch per-model request, failure and latency statistics."""
        return await self._fetch_records(MODELS_USAGE_ENDPOINT, params={}, parse=parse_models_usage)

    async def _fetch_records(
        self,
        endpoint: str,
        *,
        params: dict[str, Any],
        parse: Callable[[list[Any]], list[T]],
    ) -> list[T]:
        payload = await self._get(endpoint, params=params)
        name = _endpoint_name(endpoint)

        data = payload.get("data")
        if not isinstance(data, list):
            raise ParseError(f"Unexpected {name} payload: data is missing or not a list", endpoint=name)

        try:
            records = parse(data)
        except ValueError as exc:
            raise ParseError(f"Invalid {name} record: {exc}", endpoint=name) from exc

        logger.debug("Fetched %d %s records.", len(records), name)
        return records

    async def _get(self, endpoint: str, *, params: dict[str, Any]) -> dict[str, Any]:
        name = _endpoint_name(endpoint)
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        query = {"token": self.token, **params}

        logger.debug("Requesting %s with params %s.", name, params)
        try:
            response = await self.http_client.get(url, params=query)
        except httpx.HTTPError as exc:
            raise NetworkError(f"Request to {name} failed: {type(exc).__name__}", endpoint=name) from exc

        if not response.is_success:
            raise FetchError(
                message=f"Failed to fetch {name} data",
                endpoint=name,
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise ParseError(f"{name} returned a non-JSON response", endpoint=name) from exc

        if not isinstance(payload, dict):
            raise ParseError(f"Unexpected {name} payload: root is not an object", endpoint=name)
        return payload


def _endpoint_name(endpoint: str) -> str:
    return ENDPOINT_LABELS.get(endpoint, endpoint.strip("/"))
