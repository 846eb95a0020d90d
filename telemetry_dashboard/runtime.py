"""Background event loop that hosts polling controllers for the Streamlit app.

One runtime (loop thread + HTTP client) is shared by the whole process. Each
browser session opens its own ``DashboardSession`` with a private tier filter,
notification queue and controller, so sessions never see each other's filter
or steal each other's toasts.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import weakref
from collections.abc import Callable
from typing import TypeVar

from telemetry_dashboard.config import Settings
from telemetry_dashboard.metrics_client import AnalyticsClient
from telemetry_dashboard.models import Tier
from telemetry_dashboard.notifications import QueueNotifier
from telemetry_dashboard.polling import DashboardSnapshot, PollingController, TierFilter

logger = logging.getLogger(__name__)

SNAPSHOT_TIMEOUT_SECONDS = 5.0

R = TypeVar("R")


class DashboardSession:
    """A session's handle on its own controller; calls are marshalled onto the runtime loop."""

    def __init__(
        self, runtime: "DashboardRuntime", controller: PollingController, notifier: QueueNotifier
    ) -> None:
        self._runtime = runtime
        self._controller = controller
        self.notifier = notifier
        # Sessions dropped from st.session_state are garbage collected; stop their polling then.
        self._finalizer = weakref.finalize(self, runtime._release, controller)
        self._finalizer.atexit = False

    @property
    def closed(self) -> bool:
        return not self._finalizer.alive

    def set_tier(self, tier: Tier | str) -> None:
        """Change this session's tier; validated here so bad input fails in the caller's thread."""
        parsed = Tier.parse(tier)
        self._runtime._loop.call_soon_threadsafe(self._controller.tier_filter.set, parsed)

    def snapshot(self) -> DashboardSnapshot:
        return self._runtime._call(self._controller.snapshot)

    def drain_notifications(self) -> list[str]:
        return self.notifier.drain()

    def close(self) -> None:
        self._finalizer()


class DashboardRuntime:
    """Owns a daemon thread running asyncio and the HTTP client every session shares."""

    def __init__(
        self,
        client: AnalyticsClient,
        *,
        generations_interval_seconds: float | None = None,
        models_interval_seconds: float | None = None,
    ) -> None:
        self.client = client

        self._intervals: dict[str, float] = {}
        if generations_interval_seconds is not None:
            self._intervals["generations_interval_seconds"] = generations_interval_seconds
        if models_interval_seconds is not None:
            self._intervals["models_interval_seconds"] = models_interval_seconds

        self._controllers: set[PollingController] = set()
        self._lock = threading.RLock()
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run_loop, name="dashboard-poller", daemon=True)
        self._started = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "DashboardRuntime":
        client = AnalyticsClient(settings.token, base_url=settings.base_url)
        return cls(
            client,
            generations_interval_seconds=settings.generations_refresh_seconds,
            models_interval_seconds=settings.models_refresh_seconds,
        )

    @property
    def session_count(self) -> int:
        with self._lock:
            return len(self._controllers)

    def start(self) -> None:
        if self._started:
            return
        self._started = True
        self._thread.start()
        logger.info("Dashboard poller thread %s started.", self._thread.name)

    def open_session(
        self, *, tier: Tier | str = Tier.ALL, notifier: QueueNotifier | None = None
    ) -> DashboardSession:
        if not self._started:
            raise RuntimeError("DashboardRuntime.start() must be called before opening sessions.")

        notifier = notifier or QueueNotifier()
        controller = PollingController(
            self.client, TierFilter(tier), notifier=notifier, **self._intervals
        )
        self._call(controller.start)
        with self._lock:
            self._controllers.add(controller)
        logger.debug("Opened dashboard session (%d active).", self.session_count)
        return DashboardSession(self, controller, notifier)

    def stop(self) -> None:
        if not self._started:
            return
        with self._lock:
            controllers = list(self._controllers)
            self._controllers.clear()
        future = asyncio.run_coroutine_threadsafe(self._shutdown(controllers), self._loop)
        future.result(SNAPSHOT_TIMEOUT_SECONDS)
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(SNAPSHOT_TIMEOUT_SECONDS)
        self._loop.close()
        self._started = False

    def _release(self, controller: PollingController) -> None:
        # Runs from session.close() or from GC, on any thread; fire-and-forget.
        with self._lock:
            if controller not in self._controllers:
                return
            self._controllers.discard(controller)
        if self._loop.is_closed():
            return
        asyncio.run_coroutine_threadsafe(controller.stop(), self._loop)
        logger.debug("Released dashboard session (%d active).", self.session_count)

    def _call(self, fn: Callable[[], R]) -> R:
        async def invoke() -> R:
            return fn()

        return asyncio.run_coroutine_threadsafe(invoke(), self._loop).result(SNAPSHOT_TIMEOUT_SECONDS)

    def _run_loop(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    async def _shutdown(self, controllers: list[PollingController]) -> None:
        for controller in controllers:
            await controller.stop()
        await self.client.aclose()
