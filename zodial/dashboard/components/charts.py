"""Reusable Plotly chart components."""

import pandas as pd
import plotly.graph_objects as go

from zodial.data.constants import HEALTH_MAX, HEALTH_ONE

HEALTH_GAUGE_CAP = 3.0


def rate_curve_chart(
    df: pd.DataFrame,
    current_utilization_bps: int | None = None,
    title: str = "Interest Rate Curve",
) -> go.Figure:
    """Create an interactive rate curve chart.

    Args:
        df: DataFrame with columns: utilization_bps, borrow_apy_bps, deposit_apy_bps.
        current_utilization_bps: If provided, marks current utilization on chart.
        title: Chart title.
    """
    fig = go.Figure()

    fig.add_trace(
        go.Scatter(
            x=df["utilization_bps"] / 100,
            y=df["borrow_apy_bps"] / 100,
            name="Borrow APY",
            line=dict(color="#ef4444", width=2),
            hovertemplate="Utilization: %{x:.1f}%<br>Borrow APY: %{y:.2f}%<extra></extra>",
        )
    )

    fig.add_trace(
        go.Scatter(
            x=df["utilization_bps"] / 100,
            y=df["deposit_apy_bps"] / 100,
            name="Deposit APY",
            line=dict(color="#22c55e", width=2),
            hovertemplate="Utilization: %{x:.1f}%<br>Deposit APY: %{y:.2f}%<extra></extra>",
        )
    )

    if current_utilization_bps is not None:
        fig.add_vline(
            x=current_utilization_bps / 100,
            line_dash="dash",
            line_color="#6b7280",
            annotation_text=f"Current: {current_utilization_bps / 100:.1f}%",
        )

    fig.update_layout(
        title=title,
        xaxis_title="Utilization (%)",
        yaxis_title="APY (%)",
        hovermode="x unified",
        template="plotly_dark",
        height=450,
    )

    return fig


def health_display_value(health: int) -> float:
    """Health as a ratio (1.0 = boundary), capped for display."""
    if health == HEALTH_MAX:
        return HEALTH_GAUGE_CAP
    return min(health / HEALTH_ONE, HEALTH_GAUGE_CAP)


def health_gauge(health: int, title: str = "Health") -> go.Figure:
    """Gauge for a health score scaled by 1000."""
    display = health_display_value(health)

    if display >= 1.5:
        color = "#22c55e"
    elif display >= 1.1:
        color = "#f59e0b"
    else:
        color = "#ef4444"

    fig = go.Figure(
        go.Indicator(
            mode="gauge+number",
            value=display,
            number={"font": {"size": 40}, "valueformat": ".3f"},
            title={"text": title, "font": {"size": 16}},
            domain={"x": [0, 1], "y": [0.15, 1]},
            gauge={
                "axis": {"range": [0, HEALTH_GAUGE_CAP], "tickwidth": 1},
                "bar": {"color": color},
                "steps": [
                    {"range": [0, 1], "color": "rgba(239,68,68,0.2)"},
                    {"range": [1, 1.5], "color": "rgba(245,158,11,0.2)"},
                    {"range": [1.5, HEALTH_GAUGE_CAP], "color": "rgba(34,197,94,0.2)"},
                ],
                "threshold": {
                    "line": {"color": "white", "width": 2},
                    "thickness": 0.75,
                    "value": 1.0,
                },
            },
        )
    )

    fig.update_layout(
        template="plotly_dark",
        height=350,
        margin=dict(t=40, b=0, l=30, r=30),
    )

    return fig


def risk_matrix_heatmap(df: pd.DataFrame, title: str = "LTV by Asset Pair") -> go.Figure:
    """Heatmap of a symmetric bps matrix (rows and columns are mints)."""
    pct = df.to_numpy() / 100
    fig = go.Figure(
        go.Heatmap(
            z=pct,
            x=list(df.columns),
            y=list(df.index),
            colorscale="RdYlGn",
            zmin=0,
            zmax=100,
            text=[[f"{v:.1f}%" for v in row] for row in pct],
            texttemplate="%{text}",
            hovertemplate="%{y} / %{x}: %{z:.2f}%<extra></extra>",
        )
    )

    fig.update_layout(
        title=title,
        xaxis_title="Borrow asset",
        yaxis_title="Collateral asset",
        yaxis=dict(autorange="reversed"),
        template="plotly_dark",
        height=450,
    )

    return fig


def portfolio_bar_chart(frame: pd.DataFrame) -> go.Figure:
    """USD value per position side.

    Args:
        frame: Portfolio snapshot table (mint, side, value_usd, ...).
    """
    fig = go.Figure()

    for side, color in (("deposit", "#22c55e"), ("borrow", "#ef4444")):
        rows = frame[frame["side"] == side]
        fig.add_trace(
            go.Bar(
                x=rows["mint"],
                y=rows["value_usd"],
                name=side.capitalize(),
                marker_color=color,
                hovertemplate="%{x}<br>$%{y:,.2f}<extra></extra>",
            )
        )

    fig.update_layout(
        title="Position Values",
        yaxis_title="Value (USD)",
        barmode="group",
        template="plotly_dark",
        height=400,
    )

    return fig
