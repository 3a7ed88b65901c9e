"""Factory for building a populated LendingMarket."""

from __future__ import annotations

import logging
import os
from dataclasses import replace

from zodial.data.constants import MAX_POSITIONS
from zodial.data.pyth import q60_from_pyth
from zodial.data.static_params import (
    DEMO_ASSETS,
    DEMO_AUTHORITY,
    DEMO_MARKET_ARGS,
    DEMO_RISK_PAIRS,
    DEMO_START_TIME,
)
from zodial.protocol.lending_market import LendingMarket
from zodial.protocol.market import MarketArgs, PriceMode

logger = logging.getLogger(__name__)

ENV_PRICE_MODE = "ZODIAL_PRICE_MODE"
ENV_PYTH_MAX_AGE = "ZODIAL_PYTH_MAX_AGE_SECS"
ENV_MAX_POSITIONS = "ZODIAL_MAX_POSITIONS"


def _env_price_mode(default: PriceMode) -> PriceMode:
    raw = os.environ.get(ENV_PRICE_MODE)
    if not raw:
        return default
    try:
        return PriceMode(raw.strip().lower())
    except ValueError:
        logger.warning("Ignoring %s=%r; using %s", ENV_PRICE_MODE, raw, default.value)
        return default


def _env_int(name: str, default: int, low: int, high: int | None = None) -> int:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not an integer; using %s", name, raw, default)
        return default
    if value < low or (high is not None and value > high):
        logger.warning("Ignoring %s=%r: out of range; using %s", name, raw, default)
        return default
    return value


def market_args_from_env(base: MarketArgs = DEMO_MARKET_ARGS) -> MarketArgs:
    """Apply environment overrides to ``base``.

    Invalid values are logged and ignored.
    """
    return replace(
        base,
        price_mode=_env_price_mode(base.price_mode),
        pyth_max_age_secs=_env_int(ENV_PYTH_MAX_AGE, base.pyth_max_age_secs, low=0),
        max_positions=_env_int(ENV_MAX_POSITIONS, base.max_positions, low=1, high=MAX_POSITIONS),
    )


def create_market(
    args: MarketArgs | None = None,
    authority: str = DEMO_AUTHORITY,
    now: int = DEMO_START_TIME,
    seed_prices: bool = True,
) -> LendingMarket:
    """Create the demo market: assets, pools, risk pairs and prices.

    Args:
        args: Market parameters. When omitted the static demo parameters are
            used with overrides read from ``ZODIAL_PRICE_MODE``,
            ``ZODIAL_PYTH_MAX_AGE_SECS`` and ``ZODIAL_MAX_POSITIONS``.
        authority: Market authority; also the signer for every setup step.
        now: Unix time the market clock starts at.
        seed_prices: Write the static prices into the price cache. Ignored in
            mock price mode, where the cache is not used.

    Returns:
        Market with every demo asset registered and its pool initialised.
    """
    if args is None:
        args = market_args_from_env()

    lm = LendingMarket.create(authority, args, now=now)
    for asset in DEMO_ASSETS:
        lm.register_asset(
            authority,
            asset.mint,
            asset.decimals,
            enabled_as_collateral=asset.enabled_as_collateral,
            pyth_feed_id=asset.pyth_feed_id,
        )
        lm.init_pool(authority, asset.mint, asset.rate)

    for pair in DEMO_RISK_PAIRS:
        lm.set_risk_pair(
            authority,
            pair.a_mint,
            pair.b_mint,
            pair.ltv_bps,
            pair.liq_threshold_bps,
            pair.liq_bonus_bps,
        )

    if seed_prices and lm.market.price_mode is PriceMode.CACHE:
        lm.update_prices(
            authority,
            {a.mint: q60_from_pyth(a.price, a.exponent) for a in DEMO_ASSETS},
        )

    logger.info(
        "Created demo market with %s assets (%s prices)",
        lm.assets.count,
        lm.market.price_mode.value,
    )
    return lm
