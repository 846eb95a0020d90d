"""Plotly chart builders for the Streamlit dashboard."""

from __future__ import annotations

import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

PLOTLY_TEMPLATE = "plotly_white"
LINE_COLOR = "#3b82f6"
CHART_HEIGHT = 320
PLACEHOLDER_COLOR = "#64748b"


def empty_figure(message: str, *, height: int = CHART_HEIGHT) -> go.Figure:
    """Blank panel the same size as the chart it stands in for, so the page does not jump."""
    fig = go.Figure()
    fig.add_annotation(
        text=message,
        showarrow=False,
        xref="paper",
        yref="paper",
        x=0.5,
        y=0.5,
        font={"size": 14, "color": PLACEHOLDER_COLOR},
    )
    fig.update_layout(
        template=PLOTLY_TEMPLATE,
        height=height,
        margin=dict(l=10, r=10, t=20, b=10),
        xaxis={"visible": False},
        yaxis={"visible": False},
    )
    return fig


def generations_trend_chart(time_series: pd.DataFrame) -> go.Figure:
    if time_series.empty:
        return empty_figure("No generation data for selected tier")

    fig = px.line(
        time_series,
        x="time",
        y="count",
        markers=True,
        hover_data=["tier"],
        labels={"time": "Time", "count": "Generations", "tier": "Tier"},
        template=PLOTLY_TEMPLATE,
    )
    fig.update_traces(line={"width": 3, "color": LINE_COLOR}, marker={"size": 8})
    fig.update_layout(height=CHART_HEIGHT, margin=dict(l=10, r=10, t=20, b=10))
    return fig


def requests_by_model_chart(models_df: pd.DataFrame) -> go.Figure:
    if models_df.empty:
        return empty_figure("No model usage data")

    fig = px.bar(
        models_df,
        x="model",
        y="requests",
        custom_data=["success_rate", "avg_duration"],
        labels={"model": "Model", "requests": "Requests"},
        template=PLOTLY_TEMPLATE,
    )
    fig.update_traces(
        marker_color=LINE_COLOR,
        hovertemplate=(
            "%{x}<br>Requests: %{y:,}"
            "<br>Success Rate: %{customdata[0]:.1f}%"
            "<br>Avg Duration: %{customdata[1]:.0f}ms<extra></extra>"
        ),
    )
    fig.update_layout(height=CHART_HEIGHT, margin=dict(l=10, r=10, t=20, b=60), xaxis_tickangle=-45)
    return fig
