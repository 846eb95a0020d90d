"""UI helpers for Streamlit layout and controls."""

from __future__ import annotations

from typing import Any

import pandas as pd
import streamlit as st

from telemetry_dashboard.analytics import format_count, format_duration, format_success_rate
from telemetry_dashboard.config import TIER_LABELS, TIER_OPTIONS
from telemetry_dashboard.models import Tier

LOADING_PLACEHOLDER = "…"
STATUS_COLORS = {"good": "#16a34a", "warning": "#ca8a04", "critical": "#dc2626"}


KPI_CARD_COLORS = ("#2563eb", "#16a34a", "#9333ea", "#dc2626")


def apply_app_styles() -> None:
    # One accent per KPI card, in render_kpi_cards column order.
    card_rules = "\n".join(
        f"[data-testid=\"stColumn\"]:nth-of-type({index}) [data-testid=\"stMetric\"] "
        f"{{ border-left: 4px solid {color}; }}"
        for index, color in enumerate(KPI_CARD_COLORS, start=1)
    )
    st.markdown(
        f"""
        <style>
            .block-container {{ max-width: 1280px; padding-top: 1.5rem; }}
            [data-testid="stMetric"] {{
                background: #ffffff;
                border-radius: 10px;
                box-shadow: 0 4px 14px rgba(15, 23, 42, 0.08);
                padding: 12px 16px;
            }}
            {card_rules}
        </style>
        """,
        unsafe_allow_html=True,
    )


def render_header() -> None:
    st.title("OpenTelemetry Dashboard")
    st.caption("Monitor your system performance and model usage in real-time")


def render_tier_selector(current: Tier) -> Tier:
    selected = st.selectbox(
        "User tier",
        options=TIER_OPTIONS,
        index=TIER_OPTIONS.index(current.value),
        format_func=lambda value: TIER_LABELS[value],
        key="selected_tier",
    )
    return Tier.parse(selected)


def render_kpi_cards(kpis: dict[str, Any], *, loading: bool) -> None:
    c1, c2, c3, c4 = st.columns(4)
    if loading:
        for column, label in zip(
            (c1, c2, c3, c4), ("Total Requests", "Success Rate", "Avg Duration", "Total Failures")
        ):
            column.metric(label, LOADING_PLACEHOLDER)
        return

    c1.metric("Total Requests", format_count(kpis["total_requests"]), help="Across all models")
    c2.metric(
        "Success Rate", format_success_rate(kpis["overall_success_rate"]), help="Overall performance"
    )
    c3.metric("Avg Duration", format_duration(kpis["avg_duration"]), help="Response time")
    c4.metric("Total Failures", format_count(kpis["total_failures"]), help="Error count")


def render_models_table(models_table: pd.DataFrame, *, loading: bool) -> None:
    if loading:
        st.info("Loading model metrics…")
        return
    if models_table.empty:
        st.info("No model usage data yet.")
        return

    styled = models_table.style.apply(
        lambda row: [
            f"color: {STATUS_COLORS[row['Status']]}" if col == "Success Rate" else ""
            for col in row.index
        ],
        axis=1,
    )
    st.dataframe(styled, hide_index=True, width="stretch")


def render_query_error(error: Exception | None, *, has_data: bool) -> None:
    if error is None:
        return
    suffix = " Showing the last successful values." if has_data else ""
    st.caption(f"⚠️ {error}.{suffix}")
