"""Markets page: pool table and rate curves."""

import streamlit as st

from zodial.dashboard.components.charts import rate_curve_chart
from zodial.dashboard.components.metrics_cards import format_bps
from zodial.protocol.lending_market import LendingMarket


def render_markets(lm: LendingMarket) -> None:
    """Render the markets page."""
    st.header("Markets")

    frame = lm.pools_frame()
    st.dataframe(frame, use_container_width=True, hide_index=True)

    st.divider()
    st.subheader("Rate Curves")

    mint = st.selectbox("Pool", list(lm.pools), key="rate_curve_pool")
    pool = lm.pool(mint)
    row = frame[frame["mint"] == mint].iloc[0]
    util_bps = int(row["utilization_bps"])

    col1, col2 = st.columns([2, 1])
    with col1:
        fig = rate_curve_chart(
            pool.rate.rate_curve(), current_utilization_bps=util_bps, title=f"{mint} Rate Curve"
        )
        st.plotly_chart(fig, use_container_width=True)
    with col2:
        st.metric("Utilization", format_bps(util_bps))
        st.metric("Borrow APY", format_bps(int(row["borrow_apy_bps"])))
        st.metric("Deposit APY", format_bps(int(row["deposit_apy_bps"])))
        st.metric("Kink", format_bps(pool.rate.kink_util_bps))
        st.metric("Reserve Factor", format_bps(pool.rate.reserve_factor_bps))
