"""Aggregation logic for dashboard metrics and summaries."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import asdict
from datetime import datetime
from typing import Any

import pandas as pd

from telemetry_dashboard.config import SUCCESS_RATE_GOOD_PCT, SUCCESS_RATE_WARNING_PCT
from telemetry_dashboard.models import GenerationRecord, ModelUsageRecord

MODEL_USAGE_COLUMNS = ["model", "requests", "failures", "success_rate", "avg_duration"]
TIME_SERIES_COLUMNS = ["time", "count", "tier"]
MODEL_TABLE_COLUMNS = ["Model", "Requests", "Failures", "Success Rate", "Avg Duration", "Status"]

TIME_LABEL_FORMAT = "%I:%M %p"


def build_models_df(records: Sequence[ModelUsageRecord] | None) -> pd.DataFrame:
    rows = [asdict(record) for record in records or ()]
    df = pd.DataFrame(rows, columns=MODEL_USAGE_COLUMNS)
    if df.empty:
        return df

    for col in ["requests", "failures"]:
        df[col] = pd.to_numeric(df[col], errors="coerce").fillna(0).astype(int)
    for col in ["success_rate", "avg_duration"]:
        df[col] = pd.to_numeric(df[col], errors="coerce").fillna(0.0)
    return df


def compute_kpis(records: Sequence[ModelUsageRecord] | None) -> dict[str, Any]:
    """Summary card values; every ratio is 0 rather than NaN when there is no data."""
    models_df = build_models_df(records)

    total_requests = int(models_df["requests"].sum()) if not models_df.empty else 0
    total_failures = int(models_df["failures"].sum()) if not models_df.empty else 0
    overall_success_rate = (
        (total_requests - total_failures) / total_requests * 100 if total_requests > 0 else 0.0
    )
    avg_duration = float(models_df["avg_duration"].mean()) if not models_df.empty else 0.0

    return {
        "total_requests": total_requests,
        "total_failures": total_failures,
        "overall_success_rate": overall_success_rate,
        "avg_duration": avg_duration,
        "active_models": int(models_df["model"].nunique()) if not models_df.empty else 0,
    }


def build_time_series(records: Sequence[GenerationRecord] | None) -> pd.DataFrame:
    """Chart rows in the order the backend returned them; no re-sorting."""
    rows = [
        {
            "time": format_time_label(record.timestamp),
            "count": record.count,
            "tier": record.user_tier.value,
        }
        for record in records or ()
    ]
    return pd.DataFrame(rows, columns=TIME_SERIES_COLUMNS)


def build_models_table(records: Sequence[ModelUsageRecord] | None) -> pd.DataFrame:
    models_df = build_models_df(records)
    if models_df.empty:
        return pd.DataFrame(columns=MODEL_TABLE_COLUMNS)

    return pd.DataFrame(
        {
            "Model": models_df["model"],
            "Requests": models_df["requests"].map(format_count),
            "Failures": models_df["failures"].map(format_count),
            "Success Rate": models_df["success_rate"].map(format_success_rate),
            "Avg Duration": models_df["avg_duration"].map(format_duration),
            "Status": models_df["success_rate"].map(success_rate_status),
        },
        columns=MODEL_TABLE_COLUMNS,
    )


def format_time_label(timestamp: datetime) -> str:
    # Naive timestamps are read as local time; aware ones are converted to it.
    return timestamp.astimezone().strftime(TIME_LABEL_FORMAT)


def format_success_rate(value: float) -> str:
    return f"{value:.1f}%"


def format_duration(value_ms: float) -> str:
    return f"{value_ms:.0f}ms"


def format_count(value: int) -> str:
    return f"{int(value):,}"


def success_rate_status(value: float) -> str:
    if value >= SUCCESS_RATE_GOOD_PCT:
        return "good"
    if value >= SUCCESS_RATE_WARNING_PCT:
        return "warning"
    return "critical"
