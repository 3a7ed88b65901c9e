"""Read-only portfolio view of an obligation."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

import pandas as pd

from zodial.data.interfaces import PoolRepository
from zodial.position.obligation import Obligation
from zodial.protocol.fixed_point import ONE_BITS
from zodial.protocol.health import (
    HealthMode,
    ObligationValuation,
    PositionValue,
    health_from_valuation,
    valuate_obligation,
)
from zodial.protocol.market import Market
from zodial.protocol.pool import Pool
from zodial.protocol.price import PriceSource
from zodial.protocol.registry import AssetRegistry, RiskRegistry

SNAPSHOT_COLUMNS = ["mint", "asset_index", "side", "amount", "amount_ui", "value_usd"]


@dataclass(frozen=True)
class PortfolioSnapshot:
    """Valued positions of one obligation plus both health scores."""

    owner: str
    valuation: ObligationValuation
    health: int
    liquidation_health: int

    @property
    def total_deposit_usd(self) -> float:
        return self.valuation.total_deposit_q60 / ONE_BITS

    @property
    def total_borrow_usd(self) -> float:
        return self.valuation.total_borrow_q60 / ONE_BITS

    @property
    def net_value_usd(self) -> float:
        return self.total_deposit_usd - self.total_borrow_usd

    def to_frame(self, assets: AssetRegistry) -> pd.DataFrame:
        """One row per position side, deposits first."""

        def row(value: PositionValue, side: str) -> dict[str, object]:
            decimals = assets.find(value.mint).decimals
            return {
                "mint": value.mint,
                "asset_index": value.asset_index,
                "side": side,
                "amount": value.amount,
                "amount_ui": value.amount / 10**decimals,
                "value_usd": value.value_q60 / ONE_BITS,
            }

        rows = [row(v, "deposit") for v in self.valuation.deposits]
        rows += [row(v, "borrow") for v in self.valuation.borrows]
        return pd.DataFrame(rows, columns=SNAPSHOT_COLUMNS)


def snapshot(
    obligation: Obligation,
    market: Market,
    assets: AssetRegistry,
    risk: RiskRegistry,
    prices: PriceSource,
    pools: PoolRepository | Mapping[str, Pool],
) -> PortfolioSnapshot:
    """Value ``obligation`` once and derive both health scores from it.

    ``pools`` should already be accrued to the time of interest.
    """
    valuation = valuate_obligation(obligation, assets, prices, pools)
    return PortfolioSnapshot(
        owner=obligation.owner,
        valuation=valuation,
        health=health_from_valuation(valuation, market, risk, HealthMode.LTV),
        liquidation_health=health_from_valuation(valuation, market, risk, HealthMode.LIQUIDATION),
    )
