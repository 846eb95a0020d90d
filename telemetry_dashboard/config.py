"""Application configuration for the telemetry dashboard."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

API_BASE_URL = "https://api.eu-central-1.aws.tinybird.co/v0/pipes"
GENERATIONS_ENDPOINT = "/gens_by_time_and_tier.json"
MODELS_USAGE_ENDPOINT = "/models_usage.json"

ENDPOINT_LABELS = {
    GENERATIONS_ENDPOINT: "generations",
    MODELS_USAGE_ENDPOINT: "models usage",
}

GENERATIONS_REFRESH_SECONDS = 30.0
MODELS_REFRESH_SECONDS = 60.0
UI_REFRESH_SECONDS = 5.0

GENERATIONS_ERROR_MESSAGE = "Failed to load generations data"
MODELS_USAGE_ERROR_MESSAGE = "Failed to load models usage data"

TIER_OPTIONS = ["all", "free", "pro", "enterprise"]
TIER_LABELS = {
    "all": "All Tiers",
    "free": "Free",
    "pro": "Pro",
    "enterprise": "Enterprise",
}
DEFAULT_TIER = "all"

SUCCESS_RATE_GOOD_PCT = 95.0
SUCCESS_RATE_WARNING_PCT = 90.0

ENV_TINYBIRD_TOKEN = "TINYBIRD_TOKEN"
ENV_TINYBIRD_BASE_URL = "TINYBIRD_BASE_URL"
ENV_GENERATIONS_REFRESH_SECONDS = "GENERATIONS_REFRESH_SECONDS"
ENV_MODELS_REFRESH_SECONDS = "MODELS_REFRESH_SECONDS"
ENV_LOG_LEVEL = "DASHBOARD_LOG_LEVEL"


@dataclass(frozen=True)
class Settings:
    token: str = field(repr=False)
    base_url: str = API_BASE_URL
    generations_refresh_seconds: float = GENERATIONS_REFRESH_SECONDS
    models_refresh_seconds: float = MODELS_REFRESH_SECONDS
    log_level: str = "INFO"


def load_settings(*, use_dotenv: bool = True) -> Settings:
    """Build settings from the environment, optionally loading a local .env first.

    A missing token is not an error here: the backend rejects the first fetch
    and the dashboard reports it like any other failure.
    """
    if use_dotenv:
        load_dotenv()

    return Settings(
        token=os.getenv(ENV_TINYBIRD_TOKEN, "").strip(),
        base_url=os.getenv(ENV_TINYBIRD_BASE_URL, "").strip() or API_BASE_URL,
        generations_refresh_seconds=_positive_float(
            ENV_GENERATIONS_REFRESH_SECONDS, GENERATIONS_REFRESH_SECONDS
        ),
        models_refresh_seconds=_positive_float(ENV_MODELS_REFRESH_SECONDS, MODELS_REFRESH_SECONDS),
        log_level=os.getenv(ENV_LOG_LEVEL, "INFO").strip().upper() or "INFO",
    )


def _positive_float(env_name: str, default: float) -> float:
    raw = os.getenv(env_name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ValueError(f"{env_name} must be a number, got {raw!r}.") from exc
    if value <= 0:
        raise ValueError(f"{env_name} must be positive, got {raw!r}.")
    return value
