"""Per-asset pool state and interest accrual."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace

from zodial.data.addresses import pool_address, vault_address
from zodial.data.constants import BPS_DENOM
from zodial.protocol.fixed_point import ONE_BITS, Fixed, mul_shares_by_index
from zodial.protocol.interest_rate import RateModel

logger = logging.getLogger(__name__)


@dataclass
class Pool:
    """Pooled deposits and borrows for one asset.

    Share balances are Q60 bits. The two indices convert shares to token
    amounts and only ever grow.
    """

    market: str
    mint: str
    rate: RateModel
    borrow_index_q60: int = ONE_BITS
    deposit_index_q60: int = ONE_BITS
    total_borrow_shares_q60: int = 0
    total_deposit_shares_q60: int = 0
    last_timestamp: int = 0

    @classmethod
    def create(cls, market: str, mint: str, rate: RateModel, now: int) -> "Pool":
        return cls(market=market, mint=mint, rate=rate, last_timestamp=now)

    @property
    def address(self) -> str:
        return pool_address(self.market, self.mint)

    @property
    def vault(self) -> str:
        return vault_address(self.address)

    def borrow_index(self) -> Fixed:
        return Fixed(self.borrow_index_q60)

    def deposit_index(self) -> Fixed:
        return Fixed(self.deposit_index_q60)

    def total_borrows(self) -> int:
        """Outstanding debt in atomic units."""
        return mul_shares_by_index(self.total_borrow_shares_q60, self.borrow_index())

    def total_deposits(self) -> int:
        """Deposits (principal plus interest) in atomic units."""
        return mul_shares_by_index(self.total_deposit_shares_q60, self.deposit_index())

    def utilization_bps(self) -> int:
        """Borrows / deposits in basis points, clamped to [0, 10000]."""
        if self.total_borrow_shares_q60 == 0 or self.total_deposit_shares_q60 == 0:
            return 0
        deposits = self.total_deposits()
        if deposits == 0:
            return 0
        return min(self.total_borrows() * BPS_DENOM // deposits, BPS_DENOM)

    @property
    def borrow_apy_bps(self) -> int:
        return self.rate.borrow_apy_bps(self.utilization_bps())

    @property
    def deposit_apy_bps(self) -> int:
        return self.rate.deposit_apy_bps(self.utilization_bps())

    def accrue(self, now: int) -> bool:
        """Advance both indices to ``now``.

        A non-positive elapsed time is a no-op. Returns True if the pool's
        timestamp moved.
        """
        elapsed = now - self.last_timestamp
        if elapsed <= 0:
            return False
        util_bps = self.utilization_bps()
        self.borrow_index_q60 = self.rate.advance_factor(
            self.borrow_index_q60, util_bps, elapsed, is_borrow=True
        )
        self.deposit_index_q60 = self.rate.advance_factor(
            self.deposit_index_q60, util_bps, elapsed, is_borrow=False
        )
        self.last_timestamp = now
        logger.debug(
            "Accrued pool %s over %ss at %s bps utilization", self.mint, elapsed, util_bps
        )
        return True

    def clone(self) -> "Pool":
        return replace(self)


def accrue_pool(pool: Pool, now: int) -> Pool:
    """Return an accrued copy of ``pool``; the input is left untouched."""
    accrued = pool.clone()
    accrued.accrue(now)
    return accrued
