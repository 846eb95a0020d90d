"""Streamlit entrypoint for the real-time telemetry dashboard."""

from __future__ import annotations

import logging

import streamlit as st

from telemetry_dashboard.analytics import build_models_df, build_models_table, build_time_series, compute_kpis
from telemetry_dashboard.charts import generations_trend_chart, requests_by_model_chart
from telemetry_dashboard.config import UI_REFRESH_SECONDS, Settings, load_settings
from telemetry_dashboard.runtime import DashboardRuntime, DashboardSession
from telemetry_dashboard.ui import (
    apply_app_styles,
    render_header,
    render_kpi_cards,
    render_models_table,
    render_query_error,
    render_tier_selector,
)

logger = logging.getLogger(__name__)


@st.cache_resource(show_spinner=False)
def get_runtime() -> DashboardRuntime:
    settings = load_settings()
    _configure_logging(settings)
    if not settings.token:
        logger.warning("No analytics token configured; requests will be rejected by the backend.")

    runtime = DashboardRuntime.from_settings(settings)
    runtime.start()
    return runtime


def get_session(runtime: DashboardRuntime) -> DashboardSession:
    """Each browser session polls with its own tier filter and notification queue."""
    session = st.session_state.get("dashboard_session")
    if session is None or session.closed:
        session = runtime.open_session()
        st.session_state["dashboard_session"] = session
    return session


def _configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@st.fragment(run_every=UI_REFRESH_SECONDS)
def render_live_panels(session: DashboardSession) -> None:
    for message in session.drain_notifications():
        st.toast(message, icon="⚠️")

    snapshot = session.snapshot()
    generations = snapshot.generations
    models_usage = snapshot.models_usage
    models_loading = models_usage.is_loading and models_usage.data is None
    generations_loading = generations.is_loading and generations.data is None

    kpis = compute_kpis(models_usage.data)
    render_kpi_cards(kpis, loading=models_loading)
    render_query_error(models_usage.error, has_data=models_usage.data is not None)

    st.subheader("Code Generations Over Time")
    st.caption(f"Real-time monitoring of generation requests · {snapshot.tier.label}")
    if generations_loading:
        st.info("Loading generations…")
    else:
        st.plotly_chart(generations_trend_chart(build_time_series(generations.data)), width="stretch")
    render_query_error(generations.error, has_data=generations.data is not None)

    st.subheader("Model Usage Statistics")
    st.caption("Request volume and performance metrics by model")
    if models_loading:
        st.info("Loading model usage…")
    else:
        st.plotly_chart(requests_by_model_chart(build_models_df(models_usage.data)), width="stretch")

    st.subheader("Detailed Model Metrics")
    st.caption("Complete breakdown of model performance and reliability")
    render_models_table(build_models_table(models_usage.data), loading=models_loading)


def main() -> None:
    st.set_page_config(page_title="OpenTelemetry Dashboard", layout="wide")
    apply_app_styles()
    render_header()

    session = get_session(get_runtime())
    current_tier = session.snapshot().tier
    selected_tier = render_tier_selector(current_tier)
    if selected_tier != current_tier:
        session.set_tier(selected_tier)

    render_live_panels(session)


if __name__ == "__main__":
    main()
