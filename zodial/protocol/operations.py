"""Instruction-level operations over explicit market state.

Every operation works on private copies of its inputs and returns an outcome
holding the updated objects and an event. Inputs are never mutated, so a
raised ``ZodialError`` leaves the caller's state exactly as it was.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, replace

from zodial.data.constants import HEALTH_ONE
from zodial.data.interfaces import InMemoryPoolRepository, PoolRepository
from zodial.data.pyth import PythPrice, normalize_feed_id
from zodial.errors import (
    AssetNotRegistered,
    InsufficientLiquidity,
    InvalidAmount,
    MarketPaused,
    PositionHealthy,
    PositionNotFound,
    PythFeedNotSet,
    Unauthorized,
    UnsupportedMode,
)
from zodial.position.obligation import Obligation
from zodial.protocol import events
from zodial.protocol.fixed_point import (
    amount_to_usd_q60,
    checked_add_bits,
    checked_sub_bits,
    div_amount_by_index,
    mul_shares_by_index,
    mul_shares_by_index_ceil,
    usd_to_amount,
)
from zodial.protocol.health import assert_healthy, compute_liquidation_health_score
from zodial.protocol.interest_rate import RateModel
from zodial.protocol.liquidation import apply_liquidation, quote_liquidation
from zodial.protocol.market import Market, MarketArgs, PriceMode
from zodial.protocol.pool import Pool
from zodial.protocol.price import PriceCache, price_source_for
from zodial.protocol.registry import (
    AssetMeta,
    AssetRegistry,
    RiskPair,
    RiskPairEntry,
    RiskRegistry,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MarketInitOutcome:
    market: Market
    assets: AssetRegistry
    risk: RiskRegistry
    price_cache: PriceCache
    event: events.MarketInitialized


@dataclass(frozen=True)
class AssetRegistrationOutcome:
    asset: AssetMeta
    assets: AssetRegistry
    risk: RiskRegistry
    event: events.AssetRegistered


@dataclass(frozen=True)
class PoolInitOutcome:
    pool: Pool
    event: events.PoolInitialized


@dataclass(frozen=True)
class RiskUpdateOutcome:
    risk: RiskRegistry
    event: events.RiskPairSet | events.RiskPairsBatchSet


@dataclass(frozen=True)
class PositionOutcome:
    """Result of deposit, borrow, repay and withdraw."""

    pool: Pool
    obligation: Obligation
    event: events.Deposited | events.Borrowed | events.Repaid | events.Withdrawn | None
    amount: int  # tokens actually moved


@dataclass(frozen=True)
class LeverageOutcome:
    borrow_pool: Pool
    deposit_pool: Pool  # same object as borrow_pool when both mints match
    obligation: Obligation
    event: events.Leveraged


@dataclass(frozen=True)
class LiquidationOutcome:
    liquidatee: Obligation
    liquidator: Obligation
    pools: dict[str, Pool]  # every accrued pool, keyed by mint
    event: events.LiquidationExecuted


@dataclass(frozen=True)
class PriceUpdate:
    mint: str
    price_q60: int


@dataclass(frozen=True)
class PriceUpdateOutcome:
    price_cache: PriceCache
    event: events.PricesUpdated | None


# ---------------------------------------------------------------------------
# Guards
# ---------------------------------------------------------------------------


def _require_authority(market: Market, signer: str) -> None:
    if signer != market.authority:
        raise Unauthorized(f"{signer} is not the market authority")


def _require_active(market: Market) -> None:
    if market.paused:
        raise MarketPaused(market.key)


def _require_market_pool(market: Market, assets: AssetRegistry, pool: Pool) -> None:
    if pool.market != market.key:
        raise Unauthorized(f"pool {pool.mint} belongs to another market")
    if pool.mint not in assets:
        raise AssetNotRegistered(pool.mint)


def _require_obligation(obligation: Obligation | None, market: Market, owner: str) -> Obligation:
    if obligation is None:
        raise PositionNotFound(f"{owner} has no obligation in market {market.key}")
    obligation.check_owner(market.key, owner)
    return obligation


def _health_pools(
    obligation: Obligation,
    pools: PoolRepository,
    now: int,
    *touched: Pool,
) -> InMemoryPoolRepository:
    """Accrued copies of every pool the obligation references.

    Each ``touched`` pool already carries the simulated share totals and wins
    over whatever the repository holds for its mint.
    """
    overrides = {pool.mint: pool for pool in touched}
    others = [m for m in obligation.mints() if m not in overrides]
    loaded = pools.load(others)
    for pool in loaded.values():
        pool.accrue(now)
    loaded.update(overrides)
    return InMemoryPoolRepository(loaded)


# ---------------------------------------------------------------------------
# Administration
# ---------------------------------------------------------------------------


def init_market(authority: str, args: MarketArgs) -> MarketInitOutcome:
    market = Market.create(authority, args)
    outcome = MarketInitOutcome(
        market=market,
        assets=AssetRegistry(market=market.key),
        risk=RiskRegistry(market=market.key),
        price_cache=PriceCache(market=market.key),
        event=events.MarketInitialized(
            market=market.key,
            authority=authority,
            max_assets=market.max_assets,
            max_positions=market.max_positions,
        ),
    )
    logger.info("Initialised market %s for %s", market.key, authority)
    return outcome


def set_paused(market: Market, signer: str, paused: bool) -> Market:
    _require_authority(market, signer)
    updated = replace(market, paused=paused)
    logger.info("Market %s %s", market.key, "paused" if paused else "resumed")
    return updated


def register_asset(
    market: Market,
    assets: AssetRegistry,
    risk: RiskRegistry,
    signer: str,
    mint: str,
    decimals: int,
    enabled_as_collateral: bool = True,
    pyth_price: str = "",
    pyth_feed_id: str = "",
) -> AssetRegistrationOutcome:
    """Append an asset and grow the risk matrix to cover it."""
    _require_authority(market, signer)
    if pyth_feed_id:
        pyth_feed_id = normalize_feed_id(pyth_feed_id)
    assets = assets.clone()
    risk = risk.clone()
    asset = assets.register(
        market,
        mint,
        decimals,
        enabled_as_collateral=enabled_as_collateral,
        pyth_price=pyth_price,
        pyth_feed_id=pyth_feed_id,
    )
    risk.grow(assets.count, market)
    logger.info("Registered asset %s at index %s", mint, asset.index)
    return AssetRegistrationOutcome(
        asset=asset,
        assets=assets,
        risk=risk,
        event=events.AssetRegistered(market=market.key, mint=mint, index=asset.index),
    )


def init_pool(
    market: Market,
    assets: AssetRegistry,
    signer: str,
    mint: str,
    rate: RateModel,
    now: int,
) -> PoolInitOutcome:
    _require_authority(market, signer)
    if mint not in assets:
        raise AssetNotRegistered(mint)
    pool = Pool.create(market.key, mint, rate, now)
    logger.info("Initialised pool %s for %s", pool.address, mint)
    return PoolInitOutcome(
        pool=pool,
        event=events.PoolInitialized(market=market.key, mint=mint, pool=pool.address),
    )


def set_risk_pair(
    market: Market,
    assets: AssetRegistry,
    risk: RiskRegistry,
    signer: str,
    a_mint: str,
    b_mint: str,
    ltv_bps: int,
    liq_threshold_bps: int,
    liq_bonus_bps: int,
) -> RiskUpdateOutcome:
    """Write one symmetric pair. Zero LTV or threshold means "use default"."""
    _require_authority(market, signer)
    a = assets.find(a_mint)
    b = assets.find(b_mint)
    pair = RiskPair(ltv_bps=ltv_bps, liq_threshold_bps=liq_threshold_bps, liq_bonus_bps=liq_bonus_bps)
    risk = risk.clone()
    risk.grow(assets.count, market)
    risk.set_pair(a.index, b.index, pair)
    logger.info("Set risk pair (%s, %s) to %s", a_mint, b_mint, pair)
    return RiskUpdateOutcome(
        risk=risk,
        event=events.RiskPairSet(
            market=market.key,
            a_mint=a_mint,
            b_mint=b_mint,
            a_index=a.index,
            b_index=b.index,
            ltv_bps=ltv_bps,
            liq_threshold_bps=liq_threshold_bps,
            liq_bonus_bps=liq_bonus_bps,
        ),
    )


def set_risk_pairs_batch(
    market: Market,
    assets: AssetRegistry,
    risk: RiskRegistry,
    signer: str,
    entries: Iterable[RiskPairEntry],
) -> RiskUpdateOutcome:
    """Write several pairs addressed by asset index; all or nothing."""
    _require_authority(market, signer)
    entries = list(entries)
    risk = risk.clone()
    risk.grow(assets.count, market)
    for entry in entries:
        risk.set_pair(
            entry.a_index,
            entry.b_index,
            RiskPair(
                ltv_bps=entry.ltv_bps,
                liq_threshold_bps=entry.liq_threshold_bps,
                liq_bonus_bps=entry.liq_bonus_bps,
            ),
        )
    logger.info("Set %s risk pairs in batch", len(entries))
    return RiskUpdateOutcome(
        risk=risk,
        event=events.RiskPairsBatchSet(market=market.key, count=len(entries)),
    )


# ---------------------------------------------------------------------------
# Prices
# ---------------------------------------------------------------------------


def update_prices(
    market: Market,
    assets: AssetRegistry,
    cache: PriceCache,
    signer: str,
    updates: Iterable[PriceUpdate],
    slot: int,
    now: int,
) -> PriceUpdateOutcome:
    """Upsert prices into the cache. Only valid in cache price mode."""
    _require_authority(market, signer)
    if market.price_mode is not PriceMode.CACHE:
        raise UnsupportedMode(f"market prices are {market.price_mode.value}")
    updates = list(updates)
    cache = cache.clone()
    for update in updates:
        asset = assets.find(update.mint)
        cache.upsert(asset.index, update.price_q60, slot=slot, now=now)
    cache.last_slot = slot
    cache.last_updated = now
    logger.info("Updated %s prices at slot %s", len(updates), slot)
    return PriceUpdateOutcome(
        price_cache=cache,
        event=events.PricesUpdated(market=market.key, count=len(updates), slot=slot),
    )


def update_prices_pyth(
    market: Market,
    assets: AssetRegistry,
    cache: PriceCache,
    mint: str,
    observation: PythPrice,
    slot: int,
    now: int,
) -> PriceUpdateOutcome:
    """Write a Pyth observation for ``mint`` into the cache.

    Observations older than ``market.pyth_max_age_secs`` are skipped: the
    cache is returned unchanged and no event is emitted.
    """
    asset = assets.find(mint)
    if not asset.pyth_feed_id:
        raise PythFeedNotSet(mint)
    if normalize_feed_id(observation.feed_id) != asset.pyth_feed_id:
        raise Unauthorized(f"feed {observation.feed_id} is not configured for {mint}")

    if observation.age(now) > market.pyth_max_age_secs:
        logger.warning(
            "Skipping stale Pyth price for %s: %ss old (max %ss)",
            mint,
            observation.age(now),
            market.pyth_max_age_secs,
        )
        return PriceUpdateOutcome(price_cache=cache, event=None)

    price_q60 = observation.price_q60
    cache = cache.clone()
    cache.upsert(asset.index, price_q60, slot=slot, now=now)
    cache.last_slot = slot
    cache.last_updated = now
    logger.info(
        "Pyth price for %s: %s (expo %s, conf %s)",
        mint,
        observation.price,
        observation.exponent,
        observation.conf,
    )
    return PriceUpdateOutcome(
        price_cache=cache,
        event=events.PricesUpdated(market=market.key, count=1, slot=slot),
    )


# ---------------------------------------------------------------------------
# User operations
# ---------------------------------------------------------------------------


def deposit(
    market: Market,
    assets: AssetRegistry,
    pool: Pool,
    obligation: Obligation | None,
    owner: str,
    amount: int,
    now: int,
) -> PositionOutcome:
    """Deposit ``amount`` and mint deposit shares; creates the obligation lazily."""
    _require_active(market)
    _require_market_pool(market, assets, pool)
    if amount <= 0:
        raise InvalidAmount("deposit amount")

    pool = pool.clone()
    pool.accrue(now)
    shares = div_amount_by_index(amount, pool.deposit_index())

    if obligation is None:
        ob = Obligation(market=market.key, owner=owner)
    else:
        obligation.check_owner(market.key, owner)
        ob = obligation.clone()
    ob.add_deposit_shares(pool.mint, shares, market.max_positions)
    pool.total_deposit_shares_q60 = checked_add_bits(pool.total_deposit_shares_q60, shares)

    logger.info("Deposit: %s put %s of %s", owner, amount, pool.mint)
    return PositionOutcome(
        pool=pool,
        obligation=ob,
        event=events.Deposited(
            market=market.key, owner=owner, mint=pool.mint, amount=amount, shares_q60=shares
        ),
        amount=amount,
    )


def borrow(
    market: Market,
    assets: AssetRegistry,
    risk: RiskRegistry,
    price_cache: PriceCache | None,
    pool: Pool,
    obligation: Obligation | None,
    owner: str,
    amount: int,
    pools: PoolRepository,
    vault_amount: int,
    now: int,
) -> PositionOutcome:
    """Borrow ``amount`` if the post-borrow obligation stays healthy."""
    _require_active(market)
    _require_market_pool(market, assets, pool)
    ob = _require_obligation(obligation, market, owner)
    if amount <= 0:
        raise InvalidAmount("borrow amount")

    touched = pool.clone()
    touched.accrue(now)
    shares = div_amount_by_index(amount, touched.borrow_index())

    sim = ob.clone()
    sim.add_borrow_shares(touched.mint, shares, market.max_positions)
    touched.total_borrow_shares_q60 = checked_add_bits(touched.total_borrow_shares_q60, shares)

    prices = price_source_for(market, price_cache)
    health = assert_healthy(
        sim, market, assets, risk, prices, _health_pools(sim, pools, now, touched)
    )

    if vault_amount < amount:
        raise InsufficientLiquidity(f"vault holds {vault_amount}, borrow needs {amount}")

    logger.info("Borrow: %s took %s of %s (health %s)", owner, amount, touched.mint, health)
    return PositionOutcome(
        pool=touched,
        obligation=sim,
        event=events.Borrowed(
            market=market.key,
            owner=owner,
            mint=touched.mint,
            amount=amount,
            minted_shares_q60=shares,
            health=health,
        ),
        amount=amount,
    )


def repay(
    market: Market,
    assets: AssetRegistry,
    pool: Pool,
    obligation: Obligation | None,
    owner: str,
    amount: int,
    now: int,
) -> PositionOutcome:
    """Repay up to ``amount`` of debt.

    Debt is charged rounded up, so paying it in full burns every share and
    no fraction of a token is forgiven.
    """
    _require_active(market)
    _require_market_pool(market, assets, pool)
    ob = _require_obligation(obligation, market, owner).clone()

    pool = pool.clone()
    pool.accrue(now)
    pos = ob.require(pool.mint)
    borrow_index = pool.borrow_index()
    debt = mul_shares_by_index_ceil(pos.borrow_shares_q60, borrow_index)
    repay_amount = min(amount, debt)
    if repay_amount <= 0:
        return PositionOutcome(pool=pool, obligation=ob, event=None, amount=0)

    burn = min(div_amount_by_index(repay_amount, borrow_index), pos.borrow_shares_q60)

    ob.remove_borrow_shares(pool.mint, burn)
    pool.total_borrow_shares_q60 = checked_sub_bits(pool.total_borrow_shares_q60, burn)

    logger.info("Repay: %s returned %s of %s", owner, repay_amount, pool.mint)
    return PositionOutcome(
        pool=pool,
        obligation=ob,
        event=events.Repaid(
            market=market.key,
            owner=owner,
            mint=pool.mint,
            amount=repay_amount,
            burned_shares_q60=burn,
        ),
        amount=repay_amount,
    )


def withdraw(
    market: Market,
    assets: AssetRegistry,
    risk: RiskRegistry,
    price_cache: PriceCache | None,
    pool: Pool,
    obligation: Obligation | None,
    owner: str,
    amount: int,
    pools: PoolRepository,
    vault_amount: int,
    now: int,
) -> PositionOutcome:
    """Withdraw up to ``amount``, capped by the deposit and vault liquidity."""
    _require_active(market)
    _require_market_pool(market, assets, pool)
    ob = _require_obligation(obligation, market, owner)

    touched = pool.clone()
    touched.accrue(now)
    pos = ob.require(touched.mint)
    deposit_index = touched.deposit_index()
    available = mul_shares_by_index(pos.deposit_shares_q60, deposit_index)
    to_withdraw = min(amount, available, vault_amount)
    if to_withdraw <= 0:
        return PositionOutcome(pool=touched, obligation=ob.clone(), event=None, amount=0)

    burn = min(div_amount_by_index(to_withdraw, deposit_index), pos.deposit_shares_q60)
    transfer_amount = mul_shares_by_index(burn, deposit_index)

    sim = ob.clone()
    sim.remove_deposit_shares(touched.mint, burn)
    touched.total_deposit_shares_q60 = checked_sub_bits(touched.total_deposit_shares_q60, burn)

    prices = price_source_for(market, price_cache)
    assert_healthy(sim, market, assets, risk, prices, _health_pools(sim, pools, now, touched))

    logger.info("Withdraw: %s took out %s of %s", owner, transfer_amount, touched.mint)
    return PositionOutcome(
        pool=touched,
        obligation=sim,
        event=events.Withdrawn(
            market=market.key,
            owner=owner,
            mint=touched.mint,
            amount=transfer_amount,
            burned_shares_q60=burn,
        ),
        amount=transfer_amount,
    )


def leverage_existing_deposit(
    market: Market,
    assets: AssetRegistry,
    risk: RiskRegistry,
    price_cache: PriceCache | None,
    borrow_pool: Pool,
    deposit_pool: Pool,
    obligation: Obligation | None,
    owner: str,
    borrow_amount: int,
    pools: PoolRepository,
    vault_amount: int,
    now: int,
) -> LeverageOutcome:
    """Borrow ``borrow_amount`` and deposit its value into ``deposit_pool``.

    The borrowed tokens are converted to the deposit asset at oracle prices,
    standing in for a swap. Borrow and deposit are simulated together and
    committed only if the combined obligation stays healthy. When both mints
    match, the borrowed amount is deposited unchanged.
    """
    _require_active(market)
    _require_market_pool(market, assets, borrow_pool)
    _require_market_pool(market, assets, deposit_pool)
    ob = _require_obligation(obligation, market, owner)
    if borrow_amount <= 0:
        raise InvalidAmount("leverage borrow amount")

    borrowed = borrow_pool.clone()
    borrowed.accrue(now)
    same_mint = deposit_pool.mint == borrowed.mint
    if same_mint:
        credited = borrowed
    else:
        credited = deposit_pool.clone()
        credited.accrue(now)

    prices = price_source_for(market, price_cache)
    if same_mint:
        deposit_amount = borrow_amount
    else:
        source = assets.find(borrowed.mint)
        target = assets.find(credited.mint)
        value_q60 = amount_to_usd_q60(
            borrow_amount, source.decimals, prices.price_q60(source.index)
        )
        deposit_amount = usd_to_amount(value_q60, target.decimals, prices.price_q60(target.index))
    if deposit_amount <= 0:
        raise InvalidAmount(f"{borrow_amount} of {borrowed.mint} buys no {credited.mint}")

    borrow_shares = div_amount_by_index(borrow_amount, borrowed.borrow_index())
    deposit_shares = div_amount_by_index(deposit_amount, credited.deposit_index())

    sim = ob.clone()
    sim.add_borrow_shares(borrowed.mint, borrow_shares, market.max_positions)
    sim.add_deposit_shares(credited.mint, deposit_shares, market.max_positions)
    borrowed.total_borrow_shares_q60 = checked_add_bits(
        borrowed.total_borrow_shares_q60, borrow_shares
    )
    credited.total_deposit_shares_q60 = checked_add_bits(
        credited.total_deposit_shares_q60, deposit_shares
    )

    health = assert_healthy(
        sim, market, assets, risk, prices, _health_pools(sim, pools, now, borrowed, credited)
    )

    if not same_mint and vault_amount < borrow_amount:
        raise InsufficientLiquidity(f"vault holds {vault_amount}, borrow needs {borrow_amount}")

    logger.info(
        "Leverage: %s borrowed %s of %s into %s of %s (health %s)",
        owner,
        borrow_amount,
        borrowed.mint,
        deposit_amount,
        credited.mint,
        health,
    )
    return LeverageOutcome(
        borrow_pool=borrowed,
        deposit_pool=credited,
        obligation=sim,
        event=events.Leveraged(
            market=market.key,
            owner=owner,
            borrow_mint=borrowed.mint,
            deposit_mint=credited.mint,
            borrow_amount=borrow_amount,
            borrowed_shares_q60=borrow_shares,
            deposit_amount=deposit_amount,
            deposited_shares_q60=deposit_shares,
            health=health,
        ),
    )


# ---------------------------------------------------------------------------
# Liquidation
# ---------------------------------------------------------------------------


def _accrued_pools(mints: Iterable[str], pools: PoolRepository, now: int) -> dict[str, Pool]:
    loaded = pools.load(dict.fromkeys(mints))
    for pool in loaded.values():
        pool.accrue(now)
    return loaded


def check_liquidation(
    market: Market,
    assets: AssetRegistry,
    risk: RiskRegistry,
    price_cache: PriceCache | None,
    obligation: Obligation,
    pools: PoolRepository,
    now: int,
) -> int:
    """Liquidation-mode health of ``obligation``; raises if it is healthy."""
    _require_active(market)
    accrued = _accrued_pools(obligation.mints(), pools, now)
    prices = price_source_for(market, price_cache)
    health = compute_liquidation_health_score(obligation, market, assets, risk, prices, accrued)
    if health >= HEALTH_ONE:
        raise PositionHealthy(f"health {health} >= {HEALTH_ONE}")
    logger.info("Obligation of %s is liquidatable (health %s)", obligation.owner, health)
    return health


def liquidate_obligation(
    market: Market,
    assets: AssetRegistry,
    risk: RiskRegistry,
    price_cache: PriceCache | None,
    liquidatee: Obligation,
    liquidator: Obligation,
    liquidator_owner: str,
    pools: PoolRepository,
    repay_amount: int,
    borrow_mint: str,
    collateral_mint: str,
    now: int,
) -> LiquidationOutcome:
    """Repay part of an unhealthy obligation's debt and seize its collateral.

    No health check is run on the liquidator afterwards.
    """
    _require_active(market)
    liquidator.check_owner(market.key, liquidator_owner)
    if liquidatee.market != market.key:
        raise Unauthorized(f"obligation {liquidatee.address} belongs to another market")
    if liquidatee.owner == liquidator.owner:
        raise Unauthorized("an obligation cannot liquidate itself")

    mints = [*liquidatee.mints(), borrow_mint, collateral_mint]
    accrued = _accrued_pools(mints, pools, now)
    prices = price_source_for(market, price_cache)

    health = compute_liquidation_health_score(liquidatee, market, assets, risk, prices, accrued)
    if health >= HEALTH_ONE:
        raise PositionHealthy(f"health {health} >= {HEALTH_ONE}")

    quote = quote_liquidation(
        liquidatee, assets, risk, prices, accrued, repay_amount, borrow_mint, collateral_mint
    )
    target = liquidatee.clone()
    funder = liquidator.clone()
    apply_liquidation(quote, target, funder, accrued[borrow_mint], market)

    return LiquidationOutcome(
        liquidatee=target,
        liquidator=funder,
        pools=accrued,
        event=events.LiquidationExecuted(
            market=market.key,
            liquidator=liquidator.owner,
            liquidatee=liquidatee.owner,
            borrow_mint=borrow_mint,
            collateral_mint=collateral_mint,
            repay_amount=repay_amount,
            repay_shares_q60=quote.repay_shares_q60,
            seize_amount=quote.seize_amount,
            seize_shares_q60=quote.seize_shares_q60,
            health_before=health,
        ),
    )


__all__ = [
    "AssetRegistrationOutcome",
    "LeverageOutcome",
    "LiquidationOutcome",
    "MarketInitOutcome",
    "PoolInitOutcome",
    "PositionOutcome",
    "PriceUpdate",
    "PriceUpdateOutcome",
    "RiskUpdateOutcome",
    "borrow",
    "check_liquidation",
    "deposit",
    "init_market",
    "init_pool",
    "leverage_existing_deposit",
    "liquidate_obligation",
    "register_asset",
    "repay",
    "set_paused",
    "set_risk_pair",
    "set_risk_pairs_batch",
    "update_prices",
    "update_prices_pyth",
    "withdraw",
]
