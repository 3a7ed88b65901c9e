"""Asset registry and the triangular per-pair risk matrix."""

from __future__ import annotations

from dataclasses import dataclass, field, replace

import numpy as np
import pandas as pd

from zodial.data.constants import MAX_RISK_PAIRS, U16_MAX
from zodial.errors import (
    AssetNotRegistered,
    ExceedsMaxAssets,
    InvalidMint,
    InvalidRiskPair,
)
from zodial.protocol.market import Market


def tri_index(i: int, j: int, dim: int) -> int:
    """Flat index of the unordered pair (i, j) in a dim x dim upper triangle."""
    if i > j:
        i, j = j, i
    return i * dim - (i * (i + 1)) // 2 + j


def tri_size(dim: int) -> int:
    return dim * (dim + 1) // 2


# ---------------------------------------------------------------------------
# Assets
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AssetMeta:
    """A registered asset. ``index`` is dense, 0-based and never reused."""

    mint: str
    decimals: int
    index: int
    enabled_as_collateral: bool = True
    pyth_price: str = ""  # price account, empty if unused
    pyth_feed_id: str = ""  # hex feed id for pull oracles, empty if unused


@dataclass
class AssetRegistry:
    market: str
    assets: list[AssetMeta] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.assets)

    def register(
        self,
        market: Market,
        mint: str,
        decimals: int,
        enabled_as_collateral: bool = True,
        pyth_price: str = "",
        pyth_feed_id: str = "",
    ) -> AssetMeta:
        if not mint:
            raise InvalidMint("mint must be a non-empty key")
        if self.count >= market.max_assets:
            raise ExceedsMaxAssets(f"market holds {self.count} of {market.max_assets}")
        if any(a.mint == mint for a in self.assets):
            raise ValueError(f"asset {mint} is already registered")
        if not 0 <= decimals <= 20:
            raise ValueError(f"decimals must be within [0, 20], got {decimals}")
        asset = AssetMeta(
            mint=mint,
            decimals=decimals,
            index=self.count,
            enabled_as_collateral=enabled_as_collateral,
            pyth_price=pyth_price,
            pyth_feed_id=pyth_feed_id,
        )
        self.assets.append(asset)
        return asset

    def find(self, mint: str) -> AssetMeta:
        for asset in self.assets:
            if asset.mint == mint:
                return asset
        raise AssetNotRegistered(mint)

    def by_index(self, index: int) -> AssetMeta:
        if not 0 <= index < self.count:
            raise AssetNotRegistered(f"index {index}")
        return self.assets[index]

    def __contains__(self, mint: object) -> bool:
        return any(a.mint == mint for a in self.assets)

    def clone(self) -> "AssetRegistry":
        return AssetRegistry(market=self.market, assets=list(self.assets))


# ---------------------------------------------------------------------------
# Risk matrix
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RiskPair:
    ltv_bps: int
    liq_threshold_bps: int
    liq_bonus_bps: int

    def __post_init__(self) -> None:
        for name in ("ltv_bps", "liq_threshold_bps", "liq_bonus_bps"):
            value = getattr(self, name)
            if not 0 <= value <= U16_MAX:
                raise InvalidRiskPair(f"{name}={value} does not fit in u16")

    @classmethod
    def defaults(cls, market: Market) -> "RiskPair":
        return cls(
            ltv_bps=market.default_ltv_bps,
            liq_threshold_bps=market.default_liq_threshold_bps,
            liq_bonus_bps=market.default_liq_bonus_bps,
        )


@dataclass(frozen=True)
class RiskPairEntry:
    """One element of a batch write, addressed by asset index."""

    a_index: int
    b_index: int
    ltv_bps: int
    liq_threshold_bps: int
    liq_bonus_bps: int


@dataclass
class RiskRegistry:
    """Symmetric risk parameters stored as a flat upper triangle."""

    market: str
    dim: int = 0
    pairs: list[RiskPair] = field(default_factory=list)

    def grow(self, dim: int, market: Market) -> None:
        """Resize to ``dim`` assets, filling new pairs with market defaults.

        Existing pairs are re-laid out so each keeps its (i, j) address.
        """
        if dim < self.dim:
            raise InvalidRiskPair(f"risk matrix cannot shrink from {self.dim} to {dim}")
        needed = tri_size(dim)
        if needed > MAX_RISK_PAIRS:
            raise ExceedsMaxAssets(f"{needed} risk pairs exceed {MAX_RISK_PAIRS}")
        if dim == self.dim and len(self.pairs) >= needed:
            return
        fill = RiskPair.defaults(market)
        grown = [fill] * needed
        old_dim = self.dim
        for i in range(old_dim):
            for j in range(i, old_dim):
                k = tri_index(i, j, old_dim)
                if k < len(self.pairs):
                    grown[tri_index(i, j, dim)] = self.pairs[k]
        self.dim = dim
        self.pairs = grown

    def set_pair(self, a_index: int, b_index: int, pair: RiskPair) -> None:
        if not (0 <= a_index < self.dim and 0 <= b_index < self.dim):
            raise AssetNotRegistered(f"pair ({a_index}, {b_index}) outside dim {self.dim}")
        self.pairs[tri_index(a_index, b_index, self.dim)] = pair

    def get_pair(self, a_index: int, b_index: int) -> RiskPair:
        if not (0 <= a_index < self.dim and 0 <= b_index < self.dim):
            raise InvalidRiskPair(f"pair ({a_index}, {b_index}) outside dim {self.dim}")
        k = tri_index(a_index, b_index, self.dim)
        if k >= len(self.pairs):
            raise InvalidRiskPair(f"pair ({a_index}, {b_index}) not stored")
        return self.pairs[k]

    def _stored(self, i: int, j: int) -> RiskPair | None:
        if self.dim == 0 or i >= self.dim or j >= self.dim:
            return None
        k = tri_index(i, j, self.dim)
        return self.pairs[k] if k < len(self.pairs) else None

    def ltv_bps(self, market: Market, i: int, j: int) -> int:
        """LTV for the pair, falling back to the market default when unset."""
        pair = self._stored(i, j)
        if pair is None or pair.ltv_bps == 0:
            return market.default_ltv_bps
        return pair.ltv_bps

    def liq_threshold_bps(self, market: Market, i: int, j: int) -> int:
        """Liquidation threshold, falling back to the market default when unset."""
        pair = self._stored(i, j)
        if pair is None or pair.liq_threshold_bps == 0:
            return market.default_liq_threshold_bps
        return pair.liq_threshold_bps

    def to_frame(
        self, market: Market, field_name: str = "ltv_bps", labels: list[str] | None = None
    ) -> pd.DataFrame:
        """Expand one parameter into a full symmetric dim x dim table."""
        lookup = {
            "ltv_bps": self.ltv_bps,
            "liq_threshold_bps": self.liq_threshold_bps,
        }
        grid = np.zeros((self.dim, self.dim), dtype=np.int64)
        for i in range(self.dim):
            for j in range(self.dim):
                if field_name in lookup:
                    grid[i, j] = lookup[field_name](market, i, j)
                else:
                    grid[i, j] = getattr(self.get_pair(i, j), field_name)
        names = labels if labels is not None else [str(i) for i in range(self.dim)]
        return pd.DataFrame(grid, index=names, columns=names)

    def clone(self) -> "RiskRegistry":
        return replace(self, pairs=list(self.pairs))
