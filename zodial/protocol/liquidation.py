"""Liquidation of under-collateralized obligations.

A liquidator repays part of the target's debt out of their own deposits in
the borrowed asset and receives the target's collateral deposits, worth the
repaid value plus the pair's liquidation bonus.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass

from zodial.data.constants import BPS_DENOM
from zodial.errors import (
    ExceedsMaxPositions,
    InsufficientCollateral,
    InsufficientShares,
    InvalidAmount,
    PoolNotFound,
    PositionNotFound,
)
from zodial.position.obligation import Obligation
from zodial.protocol.fixed_point import (
    amount_to_usd_q60,
    checked_add_bits,
    checked_sub_bits,
    div_amount_by_index,
    saturating_mul_div,
    usd_to_amount,
)
from zodial.protocol.market import Market
from zodial.protocol.pool import Pool
from zodial.protocol.price import PriceSource
from zodial.protocol.registry import AssetRegistry, RiskRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LiquidationQuote:
    """Every quantity a liquidation moves, computed before anything changes."""

    borrow_mint: str
    collateral_mint: str
    repay_amount: int
    repay_shares_q60: int  # target borrow shares burned
    repay_value_q60: int
    liq_bonus_bps: int
    seize_value_q60: int
    seize_amount: int  # collateral atomic units
    seize_shares_q60: int  # collateral deposit shares moved
    liquidator_repay_shares_q60: int  # liquidator deposit shares burned


def seize_value_q60(repay_value_q60: int, liq_bonus_bps: int) -> int:
    """repay_value * (10000 + bonus) / 10000."""
    return saturating_mul_div(repay_value_q60, BPS_DENOM + liq_bonus_bps, BPS_DENOM)


def _pool(pools: Mapping[str, Pool], mint: str) -> Pool:
    try:
        return pools[mint]
    except KeyError:
        raise PoolNotFound(mint) from None


def quote_liquidation(
    target: Obligation,
    assets: AssetRegistry,
    risk: RiskRegistry,
    prices: PriceSource,
    pools: Mapping[str, Pool],
    repay_amount: int,
    borrow_mint: str,
    collateral_mint: str,
) -> LiquidationQuote:
    """Price a liquidation against ``target``.

    ``pools`` must already be accrued. Raises if either target position is
    missing or too small to cover its leg.
    """
    if repay_amount <= 0:
        raise InvalidAmount("repay amount")

    borrow_pos = target.find(borrow_mint)
    if borrow_pos is None or borrow_pos.borrow_shares_q60 == 0:
        raise PositionNotFound(f"target has no borrow in {borrow_mint}")
    collateral_pos = target.find(collateral_mint)
    if collateral_pos is None or collateral_pos.deposit_shares_q60 == 0:
        raise PositionNotFound(f"target has no deposit in {collateral_mint}")

    borrow_pool = _pool(pools, borrow_mint)
    collateral_pool = _pool(pools, collateral_mint)

    repay_shares = div_amount_by_index(repay_amount, borrow_pool.borrow_index())
    if repay_shares > borrow_pos.borrow_shares_q60:
        raise InsufficientShares(
            f"repay of {repay_amount} exceeds the target's debt in {borrow_mint}"
        )

    borrow_asset = assets.find(borrow_mint)
    collateral_asset = assets.find(collateral_mint)
    borrow_price = prices.price_q60(borrow_asset.index)
    collateral_price = prices.price_q60(collateral_asset.index)

    repay_value = amount_to_usd_q60(repay_amount, borrow_asset.decimals, borrow_price)
    bonus_bps = risk.get_pair(collateral_asset.index, borrow_asset.index).liq_bonus_bps
    seize_value = seize_value_q60(repay_value, bonus_bps)

    seize_amount = usd_to_amount(seize_value, collateral_asset.decimals, collateral_price)
    seize_shares = div_amount_by_index(seize_amount, collateral_pool.deposit_index())
    if seize_shares > collateral_pos.deposit_shares_q60:
        raise InsufficientCollateral(
            f"seizing {seize_amount} of {collateral_mint} exceeds the target's deposit"
        )

    # The liquidator pays with deposit shares, valued at the deposit index.
    liquidator_shares = div_amount_by_index(repay_amount, borrow_pool.deposit_index())

    return LiquidationQuote(
        borrow_mint=borrow_mint,
        collateral_mint=collateral_mint,
        repay_amount=repay_amount,
        repay_shares_q60=repay_shares,
        repay_value_q60=repay_value,
        liq_bonus_bps=bonus_bps,
        seize_value_q60=seize_value,
        seize_amount=seize_amount,
        seize_shares_q60=seize_shares,
        liquidator_repay_shares_q60=liquidator_shares,
    )


def apply_liquidation(
    quote: LiquidationQuote,
    target: Obligation,
    liquidator: Obligation,
    borrow_pool: Pool,
    market: Market,
) -> None:
    """Move shares according to ``quote``.

    Mutates the given objects, so callers pass working copies. All checks
    run before the first write.
    """
    funding = liquidator.find(quote.borrow_mint)
    if funding is None:
        raise PositionNotFound(f"liquidator has no deposit in {quote.borrow_mint}")
    if quote.liquidator_repay_shares_q60 > funding.deposit_shares_q60:
        raise InsufficientCollateral(
            f"liquidator deposit in {quote.borrow_mint} cannot fund the repayment"
        )
    new_total_borrow = checked_sub_bits(
        borrow_pool.total_borrow_shares_q60, quote.repay_shares_q60
    )
    new_total_deposit = checked_sub_bits(
        borrow_pool.total_deposit_shares_q60, quote.liquidator_repay_shares_q60
    )
    if liquidator.find(quote.collateral_mint) is None:
        funding_emptied = (
            funding.deposit_shares_q60 == quote.liquidator_repay_shares_q60
            and funding.borrow_shares_q60 == 0
        )
        slots_used = len(liquidator.positions) - (1 if funding_emptied else 0)
        if slots_used >= market.max_positions:
            raise ExceedsMaxPositions("liquidator has no free slot for the seized collateral")

    target.remove_borrow_shares(quote.borrow_mint, quote.repay_shares_q60)
    target.remove_deposit_shares(quote.collateral_mint, quote.seize_shares_q60)

    liquidator.remove_deposit_shares(quote.borrow_mint, quote.liquidator_repay_shares_q60)
    credited = liquidator.get_or_create(quote.collateral_mint, market.max_positions)
    credited.deposit_shares_q60 = checked_add_bits(
        credited.deposit_shares_q60, quote.seize_shares_q60
    )

    borrow_pool.total_borrow_shares_q60 = new_total_borrow
    borrow_pool.total_deposit_shares_q60 = new_total_deposit

    logger.info(
        "Liquidated %s: repaid %s of %s, seized %s of %s (%s bps bonus)",
        target.owner,
        quote.repay_amount,
        quote.borrow_mint,
        quote.seize_amount,
        quote.collateral_mint,
        quote.liq_bonus_bps,
    )
