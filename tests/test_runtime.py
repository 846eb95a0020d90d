import asyncio
import time
from datetime import datetime

import pytest

from telemetry_dashboard.config import MODELS_USAGE_ERROR_MESSAGE
from telemetry_dashboard.metrics_client import FetchError
from telemetry_dashboard.models import GenerationRecord, ModelUsageRecord, Tier
from telemetry_dashboard.runtime import DashboardRuntime, DashboardSession


class FakeClient:
    def __init__(self, *, delays: dict[str, float] | None = None) -> None:
        self.generation_calls: list[str] = []
        self.delays = delays or {}
        self.closed = False

    async def fetch_generations(self, tier: str) -> list[GenerationRecord]:
        self.generation_calls.append(tier)
        await asyncio.sleep(self.delays.get(tier, 0))
        return [GenerationRecord(timestamp=datetime(2026, 1, 1, 8, 0), user_tier=Tier.parse(tier), count=1)]

    async def fetch_models_usage(self) -> list[ModelUsageRecord]:
        raise FetchError("Failed to fetch models usage data", endpoint="models usage", status_code=401)

    async def aclose(self) -> None:
        self.closed = True


def _first_generation_tier(session: DashboardSession) -> Tier | None:
    data = session.snapshot().generations.data
    return data[0].user_tier if data else None


def _wait_for(predicate, timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


def _runtime(client: FakeClient) -> DashboardRuntime:
    runtime = DashboardRuntime(client, generations_interval_seconds=60, models_interval_seconds=60)
    runtime.start()
    return runtime


def test_session_polls_in_background_and_hands_off_tier_changes() -> None:
    client = FakeClient()
    runtime = _runtime(client)
    try:
        session = runtime.open_session()
        assert _wait_for(lambda: session.snapshot().generations.data is not None)
        assert _wait_for(lambda: session.snapshot().models_usage.error is not None)

        session.set_tier("pro")
        assert _wait_for(lambda: session.snapshot().tier is Tier.PRO)
        assert _wait_for(lambda: _first_generation_tier(session) is Tier.PRO)
        assert session.drain_notifications() == [MODELS_USAGE_ERROR_MESSAGE]
        assert session.drain_notifications() == []
    finally:
        runtime.stop()

    assert client.generation_calls == ["all", "pro"]
    assert client.closed


def test_snapshot_right_after_tier_change_shows_loading() -> None:
    client = FakeClient(delays={"pro": 0.5})
    runtime = _runtime(client)
    try:
        session = runtime.open_session()
        assert _wait_for(lambda: session.snapshot().generations.data is not None)

        session.set_tier("pro")
        snapshot = session.snapshot()

        assert snapshot.tier is Tier.PRO
        assert snapshot.generations.is_loading is True
        assert snapshot.generations.data is None
    finally:
        runtime.stop()


def test_sessions_keep_their_own_tier_and_notifications() -> None:
    client = FakeClient()
    runtime = _runtime(client)
    try:
        first = runtime.open_session()
        second = runtime.open_session()
        assert runtime.session_count == 2

        first.set_tier("enterprise")
        assert _wait_for(lambda: _first_generation_tier(first) is Tier.ENTERPRISE)
        assert second.snapshot().tier is Tier.ALL
        assert _wait_for(lambda: _first_generation_tier(second) is Tier.ALL)

        assert _wait_for(lambda: first.snapshot().models_usage.error is not None)
        assert _wait_for(lambda: second.snapshot().models_usage.error is not None)
        assert first.drain_notifications() == [MODELS_USAGE_ERROR_MESSAGE]
        assert second.drain_notifications() == [MODELS_USAGE_ERROR_MESSAGE]

        first.close()
        assert first.closed
        assert runtime.session_count == 1
    finally:
        runtime.stop()


def test_open_session_requires_started_runtime() -> None:
    runtime = DashboardRuntime(FakeClient())

    with pytest.raises(RuntimeError):
        runtime.open_session()


def test_session_rejects_unknown_tier_in_caller_thread() -> None:
    runtime = _runtime(FakeClient())
    try:
        session = runtime.open_session()
        with pytest.raises(ValueError):
            session.set_tier("gold")
    finally:
        runtime.stop()
