"""Typed records returned by the analytics pipes."""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from telemetry_dashboard.config import TIER_LABELS


class Tier(str, Enum):
    """User plan categories accepted by the generations pipe."""

    ALL = "all"
    FREE = "free"
    PRO = "pro"
    ENTERPRISE = "enterprise"

    @property
    def label(self) -> str:
        return TIER_LABELS[self.value]

    @classmethod
    def parse(cls, value: Any) -> "Tier":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            allowed = ", ".join(tier.value for tier in cls)
            raise ValueError(f"Unknown user tier {value!r}; expected one of: {allowed}.") from exc


@dataclass(frozen=True)
class GenerationRecord:
    timestamp: datetime
    user_tier: Tier
    count: int

    @classmethod
    def from_payload(cls, row: Any) -> "GenerationRecord":
        if not isinstance(row, dict):
            raise ValueError("generation row is not an object")

        return cls(
            timestamp=_to_datetime(row.get("timestamp")),
            user_tier=Tier.parse(row.get("user_tier")),
            count=_non_negative_int(row, "count"),
        )


@dataclass(frozen=True)
class ModelUsageRecord:
    model: str
    requests: int
    failures: int
    success_rate: float
    avg_duration: float

    def __post_init__(self) -> None:
        if self.failures > self.requests:
            raise ValueError(
                f"model {self.model!r} reports {self.failures} failures for {self.requests} requests"
            )
        if not 0.0 <= self.success_rate <= 100.0:
            raise ValueError(f"model {self.model!r} success_rate {self.success_rate} is outside 0-100")

    @classmethod
    def from_payload(cls, row: Any) -> "ModelUsageRecord":
        if not isinstance(row, dict):
            raise ValueError("model usage row is not an object")

        model = str(row.get("model") or "").strip()
        if not model:
            raise ValueError("model usage row has no model identifier")

        return cls(
            model=model,
            requests=_non_negative_int(row, "requests"),
            failures=_non_negative_int(row, "failures"),
            success_rate=_non_negative_float(row, "success_rate"),
            avg_duration=_non_negative_float(row, "avg_duration"),
        )


def parse_generations(rows: Iterable[Any]) -> list[GenerationRecord]:
    return [GenerationRecord.from_payload(row) for row in rows]


def parse_models_usage(rows: Iterable[Any]) -> list[ModelUsageRecord]:
    return [ModelUsageRecord.from_payload(row) for row in rows]


# Absent numeric fields count as 0; anything present must be a real number.
def _number(row: dict[str, Any], key: str) -> float:
    value = row.get(key)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} is not a number: {value!r}")
    if not math.isfinite(value):
        raise ValueError(f"{key} is not finite: {value!r}")
    return value


def _non_negative_int(row: dict[str, Any], key: str) -> int:
    value = _number(row, key)
    if value < 0:
        raise ValueError(f"{key} must be non-negative, got {value}")
    if int(value) != value:
        raise ValueError(f"{key} must be a whole number, got {value}")
    return int(value)


def _non_negative_float(row: dict[str, Any], key: str) -> float:
    value = _number(row, key)
    if value < 0:
        raise ValueError(f"{key} must be non-negative, got {value}")
    return float(value)


def _to_datetime(value: Any) -> datetime:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"timestamp is missing or not a string: {value!r}")
    text = value.strip()
    if text.endswith("Z"):
        text = f"{text[:-1]}+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError as exc:
        raise ValueError(f"timestamp is not ISO-8601: {value!r}") from exc
