"""Hardcoded demo market parameters."""

from dataclasses import dataclass

from zodial.protocol.interest_rate import RateModel
from zodial.protocol.market import MarketArgs, PriceMode

DEMO_AUTHORITY = "zodial-demo-authority"
DEMO_START_TIME = 1_700_000_000


@dataclass(frozen=True)
class DemoAsset:
    """An asset of the demo market with its pool curve and seed price."""

    mint: str
    decimals: int
    rate: RateModel
    price: int  # Pyth-style mantissa
    exponent: int
    pyth_feed_id: str = ""
    enabled_as_collateral: bool = True


@dataclass(frozen=True)
class DemoRiskPair:
    a_mint: str
    b_mint: str
    ltv_bps: int
    liq_threshold_bps: int
    liq_bonus_bps: int


DEMO_MARKET_ARGS = MarketArgs(
    max_assets=8,
    max_positions=8,
    default_ltv_bps=7_000,
    default_liq_threshold_bps=7_500,
    default_liq_bonus_bps=500,
    price_mode=PriceMode.CACHE,
    pyth_max_age_secs=60,
)

# --- Rate curves ---

_STABLE_RATE = RateModel(
    kink_util_bps=9_000,
    base_borrow_apy_bps=0,
    slope1_bps=400,
    slope2_bps=6_000,
    reserve_factor_bps=1_000,
    max_borrow_apy_bps=10_000,
)

_MAJOR_RATE = RateModel(
    kink_util_bps=8_000,
    base_borrow_apy_bps=100,
    slope1_bps=700,
    slope2_bps=30_000,
    reserve_factor_bps=1_500,
    max_borrow_apy_bps=10_000,
)

_VOLATILE_RATE = RateModel(
    kink_util_bps=6_500,
    base_borrow_apy_bps=200,
    slope1_bps=1_000,
    slope2_bps=40_000,
    reserve_factor_bps=2_000,
    max_borrow_apy_bps=8_000,
)

# --- Assets (registration order fixes the asset index) ---

DEMO_ASSETS: tuple[DemoAsset, ...] = (
    DemoAsset(
        mint="USDC",
        decimals=6,
        rate=_STABLE_RATE,
        price=99_988_800,
        exponent=-8,
        pyth_feed_id="0xeaa020c61cc479712813461ce153894a96a6c00b21ed0cfc2798d1f9a9e9c94a",
    ),
    DemoAsset(
        mint="SOL",
        decimals=9,
        rate=_MAJOR_RATE,
        price=15_250_000_000,
        exponent=-8,
        pyth_feed_id="0xef0d8b6fda2ceba41da15d4095d1da392a0d2f8ed0c6c7bc0f4cfac8c280b56d",
    ),
    DemoAsset(
        mint="ETH",
        decimals=8,
        rate=_MAJOR_RATE,
        price=345_000_000_000,
        exponent=-8,
        pyth_feed_id="0xff61491a931112ddf1bd8147cd1b641375f79f5825126d665480874634fd0ace",
    ),
    DemoAsset(
        mint="BONK",
        decimals=5,
        rate=_VOLATILE_RATE,
        price=2_150,
        exponent=-8,
        enabled_as_collateral=False,
    ),
)

# --- Pair overrides; every other pair uses the market defaults ---

DEMO_RISK_PAIRS: tuple[DemoRiskPair, ...] = (
    DemoRiskPair("USDC", "USDC", 9_000, 9_300, 200),
    DemoRiskPair("SOL", "SOL", 8_500, 9_000, 300),
    DemoRiskPair("ETH", "ETH", 8_500, 9_000, 300),
    DemoRiskPair("SOL", "USDC", 7_500, 8_000, 500),
    DemoRiskPair("ETH", "USDC", 8_000, 8_500, 500),
    DemoRiskPair("SOL", "ETH", 7_000, 7_800, 600),
    DemoRiskPair("BONK", "USDC", 3_000, 4_000, 1_500),
)
