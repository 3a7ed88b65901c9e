"""Kinked utilization-based interest rate model.

All rates are annual percentage yields in basis points.
"""

from dataclasses import dataclass

import numpy as np
import pandas as pd

from zodial.data.constants import BPS_DENOM, MAX_BORROW_APY_BPS_HARD, SECS_YEAR, U16_MAX
from zodial.protocol.fixed_point import MAX_BITS


@dataclass(frozen=True)
class RateModel:
    """Parameters for the piecewise linear rate curve."""

    kink_util_bps: int  # 0..10000
    base_borrow_apy_bps: int  # at 0% utilization
    slope1_bps: int  # up to the kink
    slope2_bps: int  # past the kink
    reserve_factor_bps: int  # protocol take, 0..10000
    max_borrow_apy_bps: int  # soft cap

    def __post_init__(self) -> None:
        for name in (
            "kink_util_bps",
            "base_borrow_apy_bps",
            "slope1_bps",
            "slope2_bps",
            "reserve_factor_bps",
            "max_borrow_apy_bps",
        ):
            value = getattr(self, name)
            if not 0 <= value <= U16_MAX:
                raise ValueError(f"{name} must fit in u16, got {value}")
        if self.kink_util_bps > BPS_DENOM:
            raise ValueError("kink_util_bps must be <= 10000")
        if self.reserve_factor_bps > BPS_DENOM:
            raise ValueError("reserve_factor_bps must be <= 10000")

    def borrow_apy_bps(self, util_bps: int) -> int:
        """Borrow APY for a given utilization.

        Clamped to the pool's soft cap and the protocol-wide hard cap.
        """
        kink = self.kink_util_bps
        apy = self.base_borrow_apy_bps
        if util_bps <= kink:
            apy += util_bps * self.slope1_bps // BPS_DENOM
        else:
            apy += kink * self.slope1_bps // BPS_DENOM
            apy += (util_bps - kink) * self.slope2_bps // BPS_DENOM
        return min(apy, self.max_borrow_apy_bps, MAX_BORROW_APY_BPS_HARD)

    def deposit_apy_bps(self, util_bps: int) -> int:
        """Deposit APY = borrow APY * utilization * (1 - reserve factor)."""
        borrow = self.borrow_apy_bps(util_bps)
        take = BPS_DENOM - self.reserve_factor_bps
        return borrow * util_bps * take // (BPS_DENOM * BPS_DENOM)

    def advance_factor(
        self,
        factor_q60: int,
        util_bps: int,
        elapsed_secs: int,
        is_borrow: bool,
    ) -> int:
        """Advance a Q60 share-price factor by ``elapsed_secs`` of interest.

        factor_new = factor + factor * apy_bps * dt / (10000 * SECS_YEAR)

        Each call is linear in ``dt`` but applies to the already-accrued
        factor, so repeated calls compound.
        """
        apy_bps = self.borrow_apy_bps(util_bps) if is_borrow else self.deposit_apy_bps(util_bps)
        if apy_bps == 0 or elapsed_secs <= 0:
            return factor_q60

        num = min(factor_q60 * apy_bps * elapsed_secs, MAX_BITS)
        denom = BPS_DENOM * SECS_YEAR
        return min(factor_q60 + num // denom, MAX_BITS)

    def rate_curve(self, n_points: int = 201) -> pd.DataFrame:
        """Generate the full rate curve for plotting.

        Returns:
            DataFrame with columns: utilization_bps, borrow_apy_bps, deposit_apy_bps
        """
        utilizations = np.linspace(0, BPS_DENOM, n_points).round().astype(int)
        return pd.DataFrame(
            {
                "utilization_bps": utilizations,
                "borrow_apy_bps": [self.borrow_apy_bps(int(u)) for u in utilizations],
                "deposit_apy_bps": [self.deposit_apy_bps(int(u)) for u in utilizations],
            }
        )
