from datetime import datetime

import pytest

from telemetry_dashboard.analytics import (
    build_models_df,
    build_models_table,
    build_time_series,
    compute_kpis,
    format_count,
    format_duration,
    format_success_rate,
    success_rate_status,
)
from telemetry_dashboard.models import GenerationRecord, ModelUsageRecord, Tier


def _sample_models() -> list[ModelUsageRecord]:
    return [
        ModelUsageRecord(model="gpt-a", requests=100, failures=5, success_rate=95.0, avg_duration=250),
        ModelUsageRecord(model="gpt-b", requests=50, failures=10, success_rate=80.0, avg_duration=400),
    ]


def test_compute_kpis_end_to_end() -> None:
    kpis = compute_kpis(_sample_models())

    assert kpis["total_requests"] == 150
    assert kpis["total_failures"] == 15
    assert kpis["overall_success_rate"] == pytest.approx(90.0)
    assert kpis["avg_duration"] == pytest.approx(325.0)
    assert kpis["active_models"] == 2


@pytest.mark.parametrize("records", [None, []])
def test_compute_kpis_without_data_is_all_zero(records) -> None:
    kpis = compute_kpis(records)

    assert kpis == {
        "total_requests": 0,
        "total_failures": 0,
        "overall_success_rate": 0.0,
        "avg_duration": 0.0,
        "active_models": 0,
    }


def test_compute_kpis_with_zero_requests_avoids_division_by_zero() -> None:
    kpis = compute_kpis(
        [ModelUsageRecord(model="idle", requests=0, failures=0, success_rate=0.0, avg_duration=0.0)]
    )

    assert kpis["overall_success_rate"] == 0.0
    assert kpis["avg_duration"] == 0.0


def test_success_rate_stays_within_bounds() -> None:
    samples = [
        [ModelUsageRecord(model="m", requests=10, failures=10, success_rate=0.0, avg_duration=1.0)],
        [ModelUsageRecord(model="m", requests=10, failures=0, success_rate=100.0, avg_duration=1.0)],
        _sample_models(),
    ]
    for records in samples:
        kpis = compute_kpis(records)
        assert kpis["total_failures"] <= kpis["total_requests"]
        assert 0.0 <= kpis["overall_success_rate"] <= 100.0


def test_build_time_series_keeps_backend_order() -> None:
    records = [
        GenerationRecord(timestamp=datetime(2026, 1, 1, 14, 5), user_tier=Tier.PRO, count=3),
        GenerationRecord(timestamp=datetime(2026, 1, 1, 9, 30), user_tier=Tier.FREE, count=8),
    ]

    series = build_time_series(records)

    assert list(series.columns) == ["time", "count", "tier"]
    assert series["time"].tolist() == ["02:05 PM", "09:30 AM"]
    assert series["count"].tolist() == [3, 8]
    assert series["tier"].tolist() == ["pro", "free"]


def test_build_time_series_without_data_is_empty() -> None:
    series = build_time_series(None)

    assert series.empty
    assert list(series.columns) == ["time", "count", "tier"]


def test_display_formatting() -> None:
    assert format_success_rate(83.333) == "83.3%"
    assert format_duration(123.6) == "124ms"
    assert format_count(1234567) == "1,234,567"


def test_success_rate_status_thresholds() -> None:
    assert success_rate_status(99.0) == "good"
    assert success_rate_status(95.0) == "good"
    assert success_rate_status(92.5) == "warning"
    assert success_rate_status(80.0) == "critical"


def test_build_models_table_formats_columns() -> None:
    table = build_models_table(_sample_models())

    assert table.iloc[0].to_dict() == {
        "Model": "gpt-a",
        "Requests": "100",
        "Failures": "5",
        "Success Rate": "95.0%",
        "Avg Duration": "250ms",
        "Status": "good",
    }
    assert table.iloc[1]["Status"] == "critical"
    assert build_models_table(None).empty


def test_build_models_df_has_chart_columns() -> None:
    models_df = build_models_df(_sample_models())

    assert models_df["requests"].sum() == 150
    assert set(["model", "requests", "failures", "success_rate", "avg_duration"]).issubset(models_df.columns)
    assert build_models_df([]).empty
