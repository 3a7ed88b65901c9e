"""Shared fixtures: a two-asset market in cache price mode.

USDC is priced at $1 and SOL at $2, both with 6 decimals. The SOL/USDC
pair has an 80% LTV, an 85% liquidation threshold and a 5% bonus.
"""

import pytest

from zodial.protocol.fixed_point import ONE_BITS
from zodial.protocol.interest_rate import RateModel
from zodial.protocol.lending_market import LendingMarket
from zodial.protocol.market import MarketArgs

AUTHORITY = "authority"
START = 1_700_000_000

TEST_RATE = RateModel(
    kink_util_bps=8_000,
    base_borrow_apy_bps=0,
    slope1_bps=400,
    slope2_bps=6_000,
    reserve_factor_bps=1_000,
    max_borrow_apy_bps=10_000,
)


@pytest.fixture
def market_args() -> MarketArgs:
    return MarketArgs(
        max_assets=8,
        max_positions=4,
        default_ltv_bps=5_000,
        default_liq_threshold_bps=6_000,
        default_liq_bonus_bps=500,
    )


@pytest.fixture
def lending_market(market_args: MarketArgs) -> LendingMarket:
    lm = LendingMarket.create(AUTHORITY, market_args, now=START)
    for mint in ("USDC", "SOL"):
        lm.register_asset(AUTHORITY, mint, 6)
        lm.init_pool(AUTHORITY, mint, TEST_RATE)
    lm.set_risk_pair(AUTHORITY, "SOL", "USDC", 8_000, 8_500, 500)
    lm.update_prices(AUTHORITY, {"USDC": ONE_BITS, "SOL": 2 * ONE_BITS}, slot=1)
    return lm


@pytest.fixture
def funded_market(lending_market: LendingMarket) -> LendingMarket:
    """Bob supplies 1000 USDC; Alice deposits 65 SOL ($130) and borrows 100 USDC.

    Alice's health is 130 * 0.80 / 100 = 1.040.
    """
    lending_market.deposit("bob", "USDC", 1_000_000_000)
    lending_market.deposit("alice", "SOL", 65_000_000)
    lending_market.borrow("alice", "USDC", 100_000_000)
    return lending_market
