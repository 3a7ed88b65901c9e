"""Zodial Lending Dashboard: main Streamlit entry point."""

import logging

import streamlit as st

from zodial.dashboard.components.sidebar import render_sidebar
from zodial.dashboard.scenario import build_scenario
from zodial.dashboard.tabs.markets import render_markets
from zodial.dashboard.tabs.position import render_position
from zodial.dashboard.tabs.risk import render_risk


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    st.set_page_config(
        page_title="Zodial Lending Dashboard",
        page_icon="📊",
        layout="wide",
    )

    st.title("Zodial Lending Dashboard")
    st.caption("Multi-asset lending market: pools, risk pairs and obligation health")

    params = render_sidebar()
    scenario = build_scenario(params)
    lm = scenario.market

    st.sidebar.caption(f"Price mode: {lm.market.price_mode.value}")
    for message in scenario.errors:
        st.sidebar.error(message)

    tab1, tab2, tab3 = st.tabs(["Position", "Markets", "Risk Matrix"])

    with tab1:
        render_position(lm, scenario.owner)

    with tab2:
        render_markets(lm)

    with tab3:
        render_risk(lm)


if __name__ == "__main__":
    main()
