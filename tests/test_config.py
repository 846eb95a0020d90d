import pytest

from telemetry_dashboard.config import (
    API_BASE_URL,
    ENV_GENERATIONS_REFRESH_SECONDS,
    ENV_LOG_LEVEL,
    ENV_MODELS_REFRESH_SECONDS,
    ENV_TINYBIRD_BASE_URL,
    ENV_TINYBIRD_TOKEN,
    load_settings,
)

ENV_NAMES = [
    ENV_TINYBIRD_TOKEN,
    ENV_TINYBIRD_BASE_URL,
    ENV_GENERATIONS_REFRESH_SECONDS,
    ENV_MODELS_REFRESH_SECONDS,
    ENV_LOG_LEVEL,
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


def test_missing_token_is_not_a_startup_error() -> None:
    settings = load_settings(use_dotenv=False)

    assert settings.token == ""
    assert settings.base_url == API_BASE_URL
    assert settings.generations_refresh_seconds == 30.0
    assert settings.models_refresh_seconds == 60.0
    assert settings.log_level == "INFO"


def test_env_overrides_and_token_stays_out_of_repr(monkeypatch) -> None:
    monkeypatch.setenv(ENV_TINYBIRD_TOKEN, " p.secret ")
    monkeypatch.setenv(ENV_TINYBIRD_BASE_URL, "https://api.us-east.tinybird.co/v0/pipes")
    monkeypatch.setenv(ENV_GENERATIONS_REFRESH_SECONDS, "15")
    monkeypatch.setenv(ENV_LOG_LEVEL, "debug")

    settings = load_settings(use_dotenv=False)

    assert settings.token == "p.secret"
    assert settings.base_url == "https://api.us-east.tinybird.co/v0/pipes"
    assert settings.generations_refresh_seconds == 15.0
    assert settings.log_level == "DEBUG"
    assert "p.secret" not in repr(settings)


@pytest.mark.parametrize("raw", ["soon", "0", "-5"])
def test_invalid_refresh_interval_is_rejected(monkeypatch, raw) -> None:
    monkeypatch.setenv(ENV_MODELS_REFRESH_SECONDS, raw)

    with pytest.raises(ValueError, match=ENV_MODELS_REFRESH_SECONDS):
        load_settings(use_dotenv=False)
