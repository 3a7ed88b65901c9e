"""Sidebar parameter controls."""

import streamlit as st

from zodial.dashboard.scenario import ScenarioParams
from zodial.data.static_params import DEMO_ASSETS


def render_sidebar() -> ScenarioParams:
    """Render sidebar controls and return the selected scenario."""
    mints = [a.mint for a in DEMO_ASSETS]
    collateral_mints = [a.mint for a in DEMO_ASSETS if a.enabled_as_collateral]

    st.sidebar.header("Position")

    collateral_mint = st.sidebar.selectbox("Collateral asset", collateral_mints, index=1)
    collateral_amount = st.sidebar.number_input(
        f"{collateral_mint} deposit",
        min_value=0.0,
        value=100.0,
        step=10.0,
    )

    borrow_mint = st.sidebar.selectbox("Borrow asset", mints, index=0)
    borrow_amount = st.sidebar.number_input(
        f"{borrow_mint} borrow",
        min_value=0.0,
        value=7_500.0,
        step=100.0,
    )

    st.sidebar.header("What-If Analysis")

    shock_pct = st.sidebar.slider(
        "Collateral price change (%)",
        min_value=-90,
        max_value=50,
        value=0,
        step=1,
    )
    elapsed_days = st.sidebar.slider("Days elapsed", min_value=0, max_value=730, value=0)

    return ScenarioParams(
        collateral_mint=collateral_mint,
        collateral_amount=float(collateral_amount),
        borrow_mint=borrow_mint,
        borrow_amount=float(borrow_amount),
        collateral_price_shock=shock_pct / 100.0,
        elapsed_days=int(elapsed_days),
    )
