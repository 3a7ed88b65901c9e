"""Metric cards and value formatting for the dashboard."""

import streamlit as st

from zodial.data.constants import HEALTH_MAX, HEALTH_ONE


def format_bps(bps: int) -> str:
    return f"{bps / 100:.2f}%"


def format_usd(value: float) -> str:
    return f"${value:,.2f}"


def format_health(health: int) -> str:
    """'∞' for a debt-free obligation, otherwise the ratio to 1.000."""
    if health == HEALTH_MAX:
        return "∞"
    return f"{health / HEALTH_ONE:.3f}"


def kpi_row(metrics: list[tuple[str, str, str | None]]) -> None:
    """Display a row of KPI cards.

    Args:
        metrics: List of (label, value, delta) tuples.
    """
    cols = st.columns(len(metrics))
    for col, (label, value, delta) in zip(cols, metrics):
        with col:
            st.metric(label=label, value=value, delta=delta)
