"""Cross-asset weighted health score.

health = sum_d( value_d * sum_b( share_b * param(d, b) ) ) / total_borrow_value

with share_b = value_b / total_borrow_value and param the pair's LTV (standard
mode) or liquidation threshold (liquidation mode). The result is an integer
scaled by 1000; >= 1000 is healthy.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

from zodial.data.constants import BPS_DENOM, HEALTH_MAX, HEALTH_ONE
from zodial.data.interfaces import PoolRepository, as_pool_repository
from zodial.errors import HealthCheckFailed
from zodial.position.obligation import Obligation
from zodial.protocol.fixed_point import MAX_BITS, amount_to_usd_q60, mul_shares_by_index, saturating_mul_div
from zodial.protocol.market import Market
from zodial.protocol.pool import Pool
from zodial.protocol.price import PriceSource
from zodial.protocol.registry import AssetRegistry, RiskRegistry

logger = logging.getLogger(__name__)


class HealthMode(str, Enum):
    LTV = "ltv"  # gates borrow and withdraw
    LIQUIDATION = "liquidation"  # detects liquidatable positions


@dataclass(frozen=True)
class PositionValue:
    """One side (deposit or borrow) of a position, priced in USD."""

    mint: str
    asset_index: int
    amount: int  # atomic units
    value_q60: int


@dataclass(frozen=True)
class ObligationValuation:
    deposits: list[PositionValue]
    borrows: list[PositionValue]
    total_deposit_q60: int
    total_borrow_q60: int


def valuate_obligation(
    obligation: Obligation,
    assets: AssetRegistry,
    prices: PriceSource,
    pools: PoolRepository | Mapping[str, Pool],
) -> ObligationValuation:
    """Convert every position's shares into token amounts and USD values."""
    repo = as_pool_repository(pools)
    deposits: list[PositionValue] = []
    borrows: list[PositionValue] = []
    total_deposit = 0
    total_borrow = 0

    for pos in obligation.positions:
        asset = assets.find(pos.mint)
        pool = repo.get_pool(pos.mint)

        dep_atomic = (
            mul_shares_by_index(pos.deposit_shares_q60, pool.deposit_index())
            if pos.deposit_shares_q60 > 0
            else 0
        )
        bor_atomic = (
            mul_shares_by_index(pos.borrow_shares_q60, pool.borrow_index())
            if pos.borrow_shares_q60 > 0
            else 0
        )
        price_q60 = prices.price_q60(asset.index)

        if dep_atomic > 0:
            v = amount_to_usd_q60(dep_atomic, asset.decimals, price_q60)
            total_deposit = min(total_deposit + v, MAX_BITS)
            deposits.append(PositionValue(pos.mint, asset.index, dep_atomic, v))
        if bor_atomic > 0:
            v = amount_to_usd_q60(bor_atomic, asset.decimals, price_q60)
            total_borrow = min(total_borrow + v, MAX_BITS)
            borrows.append(PositionValue(pos.mint, asset.index, bor_atomic, v))

    return ObligationValuation(deposits, borrows, total_deposit, total_borrow)


def weighted_collateral_q60(
    valuation: ObligationValuation,
    market: Market,
    risk: RiskRegistry,
    mode: HealthMode = HealthMode.LTV,
) -> int:
    """Risk-weighted collateral value; requires a non-zero borrow total."""
    param = risk.ltv_bps if mode is HealthMode.LTV else risk.liq_threshold_bps
    total_borrow = valuation.total_borrow_q60
    weighted = 0
    for dep in valuation.deposits:
        risk_sum_bps = 0
        for bor in valuation.borrows:
            pair_bps = param(market, dep.asset_index, bor.asset_index)
            share_bps = saturating_mul_div(bor.value_q60, BPS_DENOM, total_borrow)
            risk_sum_bps += saturating_mul_div(pair_bps, share_bps, BPS_DENOM)
        weighted = min(
            weighted + saturating_mul_div(dep.value_q60, min(risk_sum_bps, MAX_BITS), BPS_DENOM),
            MAX_BITS,
        )
    return weighted


def health_from_valuation(
    valuation: ObligationValuation,
    market: Market,
    risk: RiskRegistry,
    mode: HealthMode = HealthMode.LTV,
) -> int:
    if not valuation.borrows or valuation.total_borrow_q60 == 0:
        return HEALTH_MAX
    weighted = weighted_collateral_q60(valuation, market, risk, mode)
    if weighted == 0:
        return 0
    return saturating_mul_div(weighted, HEALTH_ONE, valuation.total_borrow_q60)


def compute_health_score(
    obligation: Obligation,
    market: Market,
    assets: AssetRegistry,
    risk: RiskRegistry,
    prices: PriceSource,
    pools: PoolRepository | Mapping[str, Pool],
    mode: HealthMode = HealthMode.LTV,
) -> int:
    """Health scaled by 1000; ``HEALTH_MAX`` when the obligation has no debt."""
    valuation = valuate_obligation(obligation, assets, prices, pools)
    health = health_from_valuation(valuation, market, risk, mode)
    logger.debug("Health (%s) of %s = %s", mode.value, obligation.owner, health)
    return health


def compute_liquidation_health_score(
    obligation: Obligation,
    market: Market,
    assets: AssetRegistry,
    risk: RiskRegistry,
    prices: PriceSource,
    pools: PoolRepository | Mapping[str, Pool],
) -> int:
    """Health using liquidation thresholds; below 1000 is liquidatable."""
    return compute_health_score(
        obligation, market, assets, risk, prices, pools, mode=HealthMode.LIQUIDATION
    )


def assert_healthy(
    obligation: Obligation,
    market: Market,
    assets: AssetRegistry,
    risk: RiskRegistry,
    prices: PriceSource,
    pools: PoolRepository | Mapping[str, Pool],
) -> int:
    health = compute_health_score(obligation, market, assets, risk, prices, pools)
    if health < HEALTH_ONE:
        raise HealthCheckFailed(f"health {health} < {HEALTH_ONE}")
    return health


def is_healthy(health: int) -> bool:
    return health >= HEALTH_ONE
