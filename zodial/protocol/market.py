"""Market configuration."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from zodial.data.addresses import market_address
from zodial.data.constants import BPS_DENOM, MAX_ASSETS, MAX_POSITIONS
from zodial.errors import ExceedsMaxAssets, ExceedsMaxPositions


class PriceMode(str, Enum):
    """How prices are resolved for health computations."""

    MOCK = "mock"  # every asset is worth exactly 1.0
    CACHE = "cache"  # prices come from the market's price cache


@dataclass(frozen=True)
class MarketArgs:
    """Parameters supplied when a market is initialised."""

    max_assets: int
    max_positions: int
    default_ltv_bps: int
    default_liq_threshold_bps: int
    default_liq_bonus_bps: int
    price_mode: PriceMode = PriceMode.CACHE
    pyth_max_age_secs: int = 60


@dataclass
class Market:
    key: str
    authority: str
    max_assets: int
    max_positions: int
    default_ltv_bps: int
    default_liq_threshold_bps: int
    default_liq_bonus_bps: int
    price_mode: PriceMode
    pyth_max_age_secs: int
    paused: bool = False
    version: int = 1

    @classmethod
    def create(cls, authority: str, args: MarketArgs) -> "Market":
        if args.max_assets > MAX_ASSETS:
            raise ExceedsMaxAssets(f"{args.max_assets} > {MAX_ASSETS}")
        if args.max_positions > MAX_POSITIONS:
            raise ExceedsMaxPositions(f"{args.max_positions} > {MAX_POSITIONS}")
        for name in ("default_ltv_bps", "default_liq_threshold_bps", "default_liq_bonus_bps"):
            if not 0 <= getattr(args, name) <= BPS_DENOM:
                raise ValueError(f"{name} must be within [0, {BPS_DENOM}]")
        return cls(
            key=market_address(authority),
            authority=authority,
            max_assets=args.max_assets,
            max_positions=args.max_positions,
            default_ltv_bps=args.default_ltv_bps,
            default_liq_threshold_bps=args.default_liq_threshold_bps,
            default_liq_bonus_bps=args.default_liq_bonus_bps,
            price_mode=PriceMode(args.price_mode),
            pyth_max_age_secs=args.pyth_max_age_secs,
        )
