"""What-if scenario over the demo market, shared by the dashboard tabs."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from zodial.data.pyth import q60_from_pyth
from zodial.data.static_params import DEMO_ASSETS, DEMO_AUTHORITY
from zodial.data.provider_factory import create_market
from zodial.errors import ZodialError
from zodial.protocol.lending_market import LendingMarket
from zodial.protocol.market import PriceMode

logger = logging.getLogger(__name__)

USER = "demo-user"
LENDER = "demo-lender"
SECS_DAY = 86_400


@dataclass(frozen=True)
class ScenarioParams:
    collateral_mint: str
    collateral_amount: float  # UI units
    borrow_mint: str
    borrow_amount: float  # UI units
    lender_liquidity: float = 1_000_000.0  # UI units of the borrow asset
    collateral_price_shock: float = 0.0  # fraction, e.g. -0.2 for a 20% drop
    elapsed_days: int = 0


@dataclass
class ScenarioResult:
    market: LendingMarket
    owner: str
    errors: list[str]


def to_atomic(lm: LendingMarket, mint: str, ui_amount: float) -> int:
    return int(round(ui_amount * 10 ** lm.assets.find(mint).decimals))


def _shock_price(lm: LendingMarket, mint: str, shock: float) -> None:
    if lm.market.price_mode is not PriceMode.CACHE or shock == 0:
        return
    seed = next(a for a in DEMO_ASSETS if a.mint == mint)
    base = q60_from_pyth(seed.price, seed.exponent)
    shocked = max(int(base * (1 + shock)), 0)
    lm.update_prices(DEMO_AUTHORITY, {mint: shocked})


def build_scenario(params: ScenarioParams, market: LendingMarket | None = None) -> ScenarioResult:
    """Fund the borrow pool, open the user's position, then age and shock it.

    Failures are collected as messages rather than raised so the dashboard
    can show a partially built scenario.
    """
    lm = market if market is not None else create_market()
    errors: list[str] = []

    steps = (
        (LENDER, "deposit", params.borrow_mint, params.lender_liquidity),
        (USER, "deposit", params.collateral_mint, params.collateral_amount),
        (USER, "borrow", params.borrow_mint, params.borrow_amount),
    )
    for owner, action, mint, ui_amount in steps:
        if ui_amount <= 0:
            continue
        try:
            getattr(lm, action)(owner, mint, to_atomic(lm, mint, ui_amount))
        except ZodialError as exc:
            logger.warning("Scenario %s of %s %s failed: %s", action, ui_amount, mint, exc)
            errors.append(f"{action} {ui_amount:,} {mint}: {exc}")

    if params.elapsed_days > 0:
        lm.advance(params.elapsed_days * SECS_DAY)
    _shock_price(lm, params.collateral_mint, params.collateral_price_shock)

    return ScenarioResult(market=lm, owner=USER, errors=errors)
