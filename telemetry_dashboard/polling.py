"""Polling channels that keep the dashboard's query state fresh.

Each channel owns a key -> state mapping and a key -> in-flight task mapping.
A fetch is tagged with the key that was active when it was issued; when it
resolves, its result is applied only if that key is still the active one.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

from telemetry_dashboard.config import (
    DEFAULT_TIER,
    GENERATIONS_ERROR_MESSAGE,
    GENERATIONS_REFRESH_SECONDS,
    MODELS_REFRESH_SECONDS,
    MODELS_USAGE_ERROR_MESSAGE,
)
from telemetry_dashboard.metrics_client import AnalyticsClient, MetricsError
from telemetry_dashboard.models import GenerationRecord, ModelUsageRecord, Tier
from telemetry_dashboard.notifications import LogNotifier, Notifier

logger = logging.getLogger(__name__)

T = TypeVar("T")
QueryKey = tuple[Any, ...]


@dataclass(frozen=True)
class QueryState(Generic[T]):
    data: tuple[T, ...] | None = None
    is_loading: bool = False
    error: Exception | None = None
    updated_at: datetime | None = None


class TierFilter:
    """Single-writer cell holding the selected user tier."""

    def __init__(self, tier: Tier | str = DEFAULT_TIER) -> None:
        self._tier = Tier.parse(tier)
        self._subscribers: list[Callable[[Tier], None]] = []

    @property
    def tier(self) -> Tier:
        return self._tier

    def set(self, tier: Tier | str) -> None:
        new_tier = Tier.parse(tier)
        if new_tier == self._tier:
            return
        self._tier = new_tier
        for callback in list(self._subscribers):
            callback(new_tier)

    def subscribe(self, callback: Callable[[Tier], None]) -> Callable[[], None]:
        """Register ``callback`` for tier changes; returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe


class PollingChannel(Generic[T]):
    """One independently scheduled query."""

    def __init__(
        self,
        name: str,
        *,
        fetch: Callable[[QueryKey], Awaitable[Sequence[T]]],
        key: Callable[[], QueryKey],
        interval_seconds: float,
        error_message: str,
        notifier: Notifier,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive.")

        self.name = name
        self.interval_seconds = interval_seconds
        self.error_message = error_message
        self._fetch = fetch
        self._key = key
        self._notifier = notifier
        self._states: dict[QueryKey, QueryState[T]] = {}
        self._in_flight: dict[QueryKey, asyncio.Task[None]] = {}
        self._wakeup: asyncio.Event | None = None

    @property
    def active_key(self) -> QueryKey:
        return self._key()

    @property
    def state(self) -> QueryState[T]:
        return self._states.get(self.active_key, QueryState())

    def is_in_flight(self, key: QueryKey | None = None) -> bool:
        task = self._in_flight.get(self.active_key if key is None else key)
        return task is not None and not task.done()

    def trigger(self) -> asyncio.Task[None]:
        """Start a fetch for the active key, or return the one already running."""
        key = self.active_key
        task = self._in_flight.get(key)
        if task is not None and not task.done():
            logger.debug("%s fetch for %s already in flight.", self.name, key)
            return task

        self._states[key] = replace(self._states.get(key, QueryState()), is_loading=True)
        task = asyncio.get_running_loop().create_task(
            self._fetch_and_resolve(key), name=f"{self.name}-fetch"
        )
        self._in_flight[key] = task
        return task

    async def refresh(self) -> QueryState[T]:
        await self.trigger()
        return self.state

    def rekey(self) -> None:
        """Fetch the new active key now and restart the interval from this moment."""
        self.trigger()
        if self._wakeup is not None:
            self._wakeup.set()

    async def run(self) -> None:
        """Poll forever; cancel the task to stop."""
        self._wakeup = asyncio.Event()
        try:
            self.trigger()
            while True:
                self._wakeup.clear()
                try:
                    await asyncio.wait_for(self._wakeup.wait(), timeout=self.interval_seconds)
                except asyncio.TimeoutError:
                    self.trigger()
        finally:
            self._wakeup = None

    async def cancel_in_flight(self) -> None:
        tasks = [task for task in self._in_flight.values() if not task.done()]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._in_flight.clear()
        for key, state in self._states.items():
            if state.is_loading:
                self._states[key] = replace(state, is_loading=False)

    async def _fetch_and_resolve(self, key: QueryKey) -> None:
        logger.debug("Fetching %s for %s.", self.name, key)
        try:
            data = await self._fetch(key)
        except MetricsError as exc:
            self._resolve_failure(key, exc)
        except Exception as exc:
            logger.exception("Unexpected error while fetching %s.", self.name)
            self._resolve_failure(key, exc)
        else:
            self._resolve_success(key, tuple(data))
        finally:
            self._in_flight.pop(key, None)

    def _resolve_success(self, key: QueryKey, data: tuple[T, ...]) -> None:
        previous = self._states.get(key, QueryState())
        if key != self.active_key:
            logger.debug("Dropping stale %s result for %s.", self.name, key)
            self._states[key] = replace(previous, is_loading=False)
            return

        self._states[key] = QueryState(
            data=data,
            is_loading=False,
            error=None,
            updated_at=datetime.now(timezone.utc),
        )

    def _resolve_failure(self, key: QueryKey, exc: Exception) -> None:
        previous = self._states.get(key, QueryState())
        if key != self.active_key:
            logger.debug("Dropping stale %s failure for %s: %s", self.name, key, exc)
            self._states[key] = replace(previous, is_loading=False)
            return

        logger.warning("%s data error: %s", self.name, exc)
        self._states[key] = replace(previous, is_loading=False, error=exc)
        # Only the transition into error is announced; a persistent outage stays quiet.
        if previous.error is None:
            self._notify()

    def _notify(self) -> None:
        try:
            self._notifier.notify(self.error_message)
        except Exception:
            logger.exception("Notification sink failed for %s.", self.name)


@dataclass(frozen=True)
class DashboardSnapshot:
    tier: Tier
    generations: QueryState[GenerationRecord]
    models_usage: QueryState[ModelUsageRecord]


class PollingController:
    """Runs the generations and models-usage channels against one client."""

    def __init__(
        self,
        client: AnalyticsClient,
        tier_filter: TierFilter,
        *,
        notifier: Notifier | None = None,
        generations_interval_seconds: float = GENERATIONS_REFRESH_SECONDS,
        models_interval_seconds: float = MODELS_REFRESH_SECONDS,
    ) -> None:
        self.client = client
        self.tier_filter = tier_filter
        self.notifier = notifier or LogNotifier()

        self.generations: PollingChannel[GenerationRecord] = PollingChannel(
            "generations",
            fetch=lambda key: client.fetch_generations(key[1]),
            key=lambda: ("generations", tier_filter.tier.value),
            interval_seconds=generations_interval_seconds,
            error_message=GENERATIONS_ERROR_MESSAGE,
            notifier=self.notifier,
        )
        self.models_usage: PollingChannel[ModelUsageRecord] = PollingChannel(
            "models-usage",
            fetch=lambda key: client.fetch_models_usage(),
            key=lambda: ("models-usage",),
            interval_seconds=models_interval_seconds,
            error_message=MODELS_USAGE_ERROR_MESSAGE,
            notifier=self.notifier,
        )
        self._tasks: list[asyncio.Task[None]] = []
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    def start(self) -> None:
        """Schedule both channels on the running event loop."""
        if self._tasks:
            return
        self._unsubscribe = self.tier_filter.subscribe(self._on_tier_change)
        loop = asyncio.get_running_loop()
        self._tasks = [
            loop.create_task(self.generations.run(), name="generations-poller"),
            loop.create_task(self.models_usage.run(), name="models-usage-poller"),
        ]
        logger.info(
            "Polling started (generations every %ss, models usage every %ss).",
            self.generations.interval_seconds,
            self.models_usage.interval_seconds,
        )

    async def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await self.generations.cancel_in_flight()
        await self.models_usage.cancel_in_flight()
        logger.info("Polling stopped.")

    def snapshot(self) -> DashboardSnapshot:
        return DashboardSnapshot(
            tier=self.tier_filter.tier,
            generations=self.generations.state,
            models_usage=self.models_usage.state,
        )

    def _on_tier_change(self, tier: Tier) -> None:
        logger.info("User tier filter changed to %s.", tier.value)
        self.generations.rekey()
