"""Event records emitted by state-changing operations."""

from dataclasses import dataclass


@dataclass(frozen=True)
class MarketInitialized:
    market: str
    authority: str
    max_assets: int
    max_positions: int


@dataclass(frozen=True)
class AssetRegistered:
    market: str
    mint: str
    index: int


@dataclass(frozen=True)
class PoolInitialized:
    market: str
    mint: str
    pool: str


@dataclass(frozen=True)
class Deposited:
    market: str
    owner: str
    mint: str
    amount: int
    shares_q60: int


@dataclass(frozen=True)
class Borrowed:
    market: str
    owner: str
    mint: str
    amount: int
    minted_shares_q60: int
    health: int


@dataclass(frozen=True)
class Repaid:
    market: str
    owner: str
    mint: str
    amount: int
    burned_shares_q60: int


@dataclass(frozen=True)
class Withdrawn:
    market: str
    owner: str
    mint: str
    amount: int
    burned_shares_q60: int


@dataclass(frozen=True)
class RiskPairSet:
    market: str
    a_mint: str
    b_mint: str
    a_index: int
    b_index: int
    ltv_bps: int
    liq_threshold_bps: int
    liq_bonus_bps: int


@dataclass(frozen=True)
class RiskPairsBatchSet:
    market: str
    count: int


@dataclass(frozen=True)
class PricesUpdated:
    market: str
    count: int
    slot: int


@dataclass(frozen=True)
class LiquidationExecuted:
    market: str
    liquidator: str
    liquidatee: str
    borrow_mint: str
    collateral_mint: str
    repay_amount: int
    repay_shares_q60: int
    seize_amount: int
    seize_shares_q60: int
    health_before: int


@dataclass(frozen=True)
class Leveraged:
    market: str
    owner: str
    borrow_mint: str
    deposit_mint: str
    borrow_amount: int
    borrowed_shares_q60: int
    deposit_amount: int
    deposited_shares_q60: int
    health: int
