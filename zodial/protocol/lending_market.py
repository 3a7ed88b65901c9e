"""In-memory market that applies operation outcomes to held state."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

import pandas as pd

from zodial.data.interfaces import InMemoryPoolRepository
from zodial.data.pyth import PythPrice, q60_to_float
from zodial.errors import PoolNotFound
from zodial.position.obligation import Obligation
from zodial.position.portfolio import PortfolioSnapshot, snapshot
from zodial.protocol import operations as ops
from zodial.protocol.health import HealthMode, compute_health_score
from zodial.protocol.interest_rate import RateModel
from zodial.protocol.market import Market, MarketArgs
from zodial.protocol.pool import Pool, accrue_pool
from zodial.protocol.price import PriceCache, price_source_for
from zodial.protocol.registry import AssetMeta, AssetRegistry, RiskPairEntry, RiskRegistry


@dataclass
class LendingMarket:
    """One market's full state plus a clock.

    Each method runs the matching operation and only stores its outcome
    when the operation succeeds. ``vaults`` tracks the token balance held by
    each pool's vault.
    """

    market: Market
    assets: AssetRegistry
    risk: RiskRegistry
    price_cache: PriceCache
    pools: dict[str, Pool] = field(default_factory=dict)
    obligations: dict[str, Obligation] = field(default_factory=dict)
    vaults: dict[str, int] = field(default_factory=dict)
    now: int = 0
    events: list[object] = field(default_factory=list)

    @classmethod
    def create(cls, authority: str, args: MarketArgs, now: int = 0) -> "LendingMarket":
        out = ops.init_market(authority, args)
        return cls(
            market=out.market,
            assets=out.assets,
            risk=out.risk,
            price_cache=out.price_cache,
            now=now,
            events=[out.event],
        )

    # --- clock --------------------------------------------------------------

    def advance(self, secs: int) -> int:
        if secs < 0:
            raise ValueError("time only moves forward")
        self.now += secs
        return self.now

    # --- lookups ------------------------------------------------------------

    def pool(self, mint: str) -> Pool:
        try:
            return self.pools[mint]
        except KeyError:
            raise PoolNotFound(mint) from None

    def obligation(self, owner: str) -> Obligation | None:
        return self.obligations.get(owner)

    def pool_repository(self) -> InMemoryPoolRepository:
        return InMemoryPoolRepository(self.pools)

    def _accrued_for(self, ob: Obligation) -> dict[str, Pool]:
        return {m: accrue_pool(self.pool(m), self.now) for m in ob.mints()}

    def health(self, owner: str, mode: HealthMode = HealthMode.LTV) -> int:
        """Health of ``owner`` with every pool accrued to the current clock."""
        ob = self.obligations.get(owner) or Obligation(self.market.key, owner)
        prices = price_source_for(self.market, self.price_cache)
        return compute_health_score(
            ob, self.market, self.assets, self.risk, prices, self._accrued_for(ob), mode=mode
        )

    def portfolio(self, owner: str) -> PortfolioSnapshot:
        ob = self.obligations.get(owner) or Obligation(self.market.key, owner)
        prices = price_source_for(self.market, self.price_cache)
        return snapshot(ob, self.market, self.assets, self.risk, prices, self._accrued_for(ob))

    # --- administration -----------------------------------------------------

    def set_paused(self, signer: str, paused: bool) -> None:
        self.market = ops.set_paused(self.market, signer, paused)

    def register_asset(
        self,
        signer: str,
        mint: str,
        decimals: int,
        enabled_as_collateral: bool = True,
        pyth_price: str = "",
        pyth_feed_id: str = "",
    ) -> AssetMeta:
        out = ops.register_asset(
            self.market,
            self.assets,
            self.risk,
            signer,
            mint,
            decimals,
            enabled_as_collateral=enabled_as_collateral,
            pyth_price=pyth_price,
            pyth_feed_id=pyth_feed_id,
        )
        self.assets = out.assets
        self.risk = out.risk
        self.events.append(out.event)
        return out.asset

    def init_pool(self, signer: str, mint: str, rate: RateModel) -> Pool:
        out = ops.init_pool(self.market, self.assets, signer, mint, rate, self.now)
        self.pools[mint] = out.pool
        self.vaults.setdefault(mint, 0)
        self.events.append(out.event)
        return out.pool

    def set_risk_pair(
        self,
        signer: str,
        a_mint: str,
        b_mint: str,
        ltv_bps: int,
        liq_threshold_bps: int,
        liq_bonus_bps: int,
    ) -> None:
        out = ops.set_risk_pair(
            self.market,
            self.assets,
            self.risk,
            signer,
            a_mint,
            b_mint,
            ltv_bps,
            liq_threshold_bps,
            liq_bonus_bps,
        )
        self.risk = out.risk
        self.events.append(out.event)

    def set_risk_pairs_batch(self, signer: str, entries: Iterable[RiskPairEntry]) -> None:
        out = ops.set_risk_pairs_batch(self.market, self.assets, self.risk, signer, entries)
        self.risk = out.risk
        self.events.append(out.event)

    def update_prices(self, signer: str, prices: Mapping[str, int], slot: int = 0) -> None:
        """Write Q60 prices keyed by mint."""
        updates = [ops.PriceUpdate(mint, price_q60) for mint, price_q60 in prices.items()]
        out = ops.update_prices(
            self.market, self.assets, self.price_cache, signer, updates, slot, self.now
        )
        self.price_cache = out.price_cache
        self.events.append(out.event)

    def update_prices_pyth(self, mint: str, observation: PythPrice, slot: int = 0) -> bool:
        """Apply a Pyth observation; returns False when it was skipped as stale."""
        out = ops.update_prices_pyth(
            self.market, self.assets, self.price_cache, mint, observation, slot, self.now
        )
        if out.event is None:
            return False
        self.price_cache = out.price_cache
        self.events.append(out.event)
        return True

    # --- user operations ----------------------------------------------------

    def _commit(self, owner: str, out: ops.PositionOutcome) -> int:
        self.pools[out.pool.mint] = out.pool
        if out.obligation.positions or owner in self.obligations:
            self.obligations[owner] = out.obligation
        if out.event is not None:
            self.events.append(out.event)
        return out.amount

    def deposit(self, owner: str, mint: str, amount: int) -> int:
        out = ops.deposit(
            self.market, self.assets, self.pool(mint), self.obligation(owner), owner, amount, self.now
        )
        self.vaults[mint] = self.vaults.get(mint, 0) + out.amount
        return self._commit(owner, out)

    def borrow(self, owner: str, mint: str, amount: int) -> int:
        out = ops.borrow(
            self.market,
            self.assets,
            self.risk,
            self.price_cache,
            self.pool(mint),
            self.obligation(owner),
            owner,
            amount,
            self.pool_repository(),
            self.vaults.get(mint, 0),
            self.now,
        )
        self.vaults[mint] = self.vaults.get(mint, 0) - out.amount
        return self._commit(owner, out)

    def repay(self, owner: str, mint: str, amount: int) -> int:
        out = ops.repay(
            self.market, self.assets, self.pool(mint), self.obligation(owner), owner, amount, self.now
        )
        self.vaults[mint] = self.vaults.get(mint, 0) + out.amount
        return self._commit(owner, out)

    def withdraw(self, owner: str, mint: str, amount: int) -> int:
        out = ops.withdraw(
            self.market,
            self.assets,
            self.risk,
            self.price_cache,
            self.pool(mint),
            self.obligation(owner),
            owner,
            amount,
            self.pool_repository(),
            self.vaults.get(mint, 0),
            self.now,
        )
        self.vaults[mint] = self.vaults.get(mint, 0) - out.amount
        return self._commit(owner, out)

    def leverage(self, owner: str, borrow_mint: str, deposit_mint: str, amount: int) -> int:
        """Borrow ``amount`` of ``borrow_mint`` into a deposit; returns the amount deposited."""
        out = ops.leverage_existing_deposit(
            self.market,
            self.assets,
            self.risk,
            self.price_cache,
            self.pool(borrow_mint),
            self.pool(deposit_mint),
            self.obligation(owner),
            owner,
            amount,
            self.pool_repository(),
            self.vaults.get(borrow_mint, 0),
            self.now,
        )
        self.pools[borrow_mint] = out.borrow_pool
        self.pools[deposit_mint] = out.deposit_pool
        if borrow_mint != deposit_mint:
            self.vaults[borrow_mint] = self.vaults.get(borrow_mint, 0) - amount
            self.vaults[deposit_mint] = self.vaults.get(deposit_mint, 0) + out.event.deposit_amount
        self.obligations[owner] = out.obligation
        self.events.append(out.event)
        return out.event.deposit_amount

    def check_liquidation(self, owner: str) -> int:
        ob = self.obligations.get(owner) or Obligation(self.market.key, owner)
        return ops.check_liquidation(
            self.market,
            self.assets,
            self.risk,
            self.price_cache,
            ob,
            self.pool_repository(),
            self.now,
        )

    def liquidate(
        self,
        liquidator: str,
        liquidatee: str,
        repay_amount: int,
        borrow_mint: str,
        collateral_mint: str,
    ) -> None:
        target = self.obligations.get(liquidatee) or Obligation(self.market.key, liquidatee)
        funder = self.obligations.get(liquidator) or Obligation(self.market.key, liquidator)
        out = ops.liquidate_obligation(
            self.market,
            self.assets,
            self.risk,
            self.price_cache,
            target,
            funder,
            liquidator,
            self.pool_repository(),
            repay_amount,
            borrow_mint,
            collateral_mint,
            self.now,
        )
        self.pools.update(out.pools)
        self.obligations[liquidatee] = out.liquidatee
        self.obligations[liquidator] = out.liquidator
        self.events.append(out.event)

    # --- tables -------------------------------------------------------------

    def pools_frame(self) -> pd.DataFrame:
        """One row per pool, accrued to the current clock."""
        rows = []
        for mint, stored in self.pools.items():
            pool = accrue_pool(stored, self.now)
            asset = self.assets.find(mint)
            rows.append(
                {
                    "mint": mint,
                    "asset_index": asset.index,
                    "decimals": asset.decimals,
                    "total_deposits": pool.total_deposits(),
                    "total_borrows": pool.total_borrows(),
                    "vault": self.vaults.get(mint, 0),
                    "utilization_bps": pool.utilization_bps(),
                    "borrow_apy_bps": pool.borrow_apy_bps,
                    "deposit_apy_bps": pool.deposit_apy_bps,
                    "borrow_index": q60_to_float(pool.borrow_index_q60),
                    "deposit_index": q60_to_float(pool.deposit_index_q60),
                }
            )
        return pd.DataFrame(rows)

    def risk_frame(self, field_name: str = "ltv_bps") -> pd.DataFrame:
        return self.risk.to_frame(
            self.market, field_name=field_name, labels=[a.mint for a in self.assets.assets]
        )
