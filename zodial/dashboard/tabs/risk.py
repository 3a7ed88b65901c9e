"""Risk page: pairwise risk matrix."""

import streamlit as st

from zodial.dashboard.components.charts import risk_matrix_heatmap
from zodial.protocol.lending_market import LendingMarket

_FIELDS = {
    "LTV": "ltv_bps",
    "Liquidation threshold": "liq_threshold_bps",
    "Liquidation bonus": "liq_bonus_bps",
}


def render_risk(lm: LendingMarket) -> None:
    """Render the risk matrix page."""
    st.header("Risk Matrix")
    st.caption(
        "Pairs without an explicit value use the market defaults "
        f"(LTV {lm.market.default_ltv_bps / 100:.0f}%, "
        f"threshold {lm.market.default_liq_threshold_bps / 100:.0f}%, "
        f"bonus {lm.market.default_liq_bonus_bps / 100:.0f}%)."
    )

    label = st.radio("Parameter", list(_FIELDS), horizontal=True)
    frame = lm.risk_frame(_FIELDS[label])
    st.plotly_chart(
        risk_matrix_heatmap(frame, title=f"{label} by Asset Pair"), use_container_width=True
    )
