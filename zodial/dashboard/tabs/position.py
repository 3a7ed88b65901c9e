"""Position page: portfolio snapshot, health and liquidation check."""

import streamlit as st

from zodial.dashboard.components.charts import health_gauge, portfolio_bar_chart
from zodial.dashboard.components.metrics_cards import format_health, format_usd, kpi_row
from zodial.errors import PositionHealthy, ZodialError
from zodial.protocol.lending_market import LendingMarket


def render_position(lm: LendingMarket, owner: str) -> None:
    """Render the position page for ``owner``."""
    st.header("Position")

    snap = lm.portfolio(owner)
    kpi_row(
        [
            ("Health", format_health(snap.health), None),
            ("Liquidation Health", format_health(snap.liquidation_health), None),
            ("Deposits", format_usd(snap.total_deposit_usd), None),
            ("Borrows", format_usd(snap.total_borrow_usd), None),
            ("Net Value", format_usd(snap.net_value_usd), None),
        ]
    )

    st.divider()

    frame = snap.to_frame(lm.assets)
    if frame.empty:
        st.info("No open positions.")
        return

    col1, col2 = st.columns([1, 1])
    with col1:
        st.plotly_chart(
            health_gauge(snap.liquidation_health, title="Liquidation Health"),
            use_container_width=True,
        )
    with col2:
        st.plotly_chart(portfolio_bar_chart(frame), use_container_width=True)

    st.dataframe(frame, use_container_width=True, hide_index=True)

    st.subheader("Liquidation Check")
    try:
        health = lm.check_liquidation(owner)
    except PositionHealthy:
        st.success("Position is healthy and cannot be liquidated.")
    except ZodialError as exc:
        st.error(str(exc))
    else:
        st.error(f"Position is liquidatable (health {format_health(health)}).")
