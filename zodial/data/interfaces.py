"""Read-only data access for pool state."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from zodial.data.addresses import pool_address
from zodial.data.constants import PROGRAM_ID
from zodial.errors import PoolNotFound, Unauthorized
from zodial.protocol.pool import Pool


class PoolRepository(ABC):
    """Abstract interface for looking up pools by mint."""

    @abstractmethod
    def get_pool(self, mint: str) -> Pool:
        """Get the pool for ``mint``; raises ``PoolNotFound`` if absent."""

    @abstractmethod
    def mints(self) -> list[str]:
        """All mints this repository can serve."""

    def load(self, mints: Iterable[str]) -> dict[str, Pool]:
        """Copies of the pools for ``mints``, keyed by mint."""
        return {mint: self.get_pool(mint).clone() for mint in mints}


class InMemoryPoolRepository(PoolRepository):
    """Repository over pools already held in memory."""

    def __init__(self, pools: Mapping[str, Pool] | Iterable[Pool] = ()) -> None:
        if isinstance(pools, Mapping):
            self._pools = dict(pools)
        else:
            self._pools = {p.mint: p for p in pools}

    def get_pool(self, mint: str) -> Pool:
        try:
            return self._pools[mint]
        except KeyError:
            raise PoolNotFound(mint) from None

    def mints(self) -> list[str]:
        return list(self._pools)

    def with_pools(self, *pools: Pool) -> "InMemoryPoolRepository":
        """A new repository where ``pools`` replace entries with the same mint."""
        merged = dict(self._pools)
        for pool in pools:
            merged[pool.mint] = pool
        return InMemoryPoolRepository(merged)


@dataclass(frozen=True)
class PoolAccount:
    """A pool snapshot handed over by an untrusted caller."""

    address: str
    owner: str
    pool: Pool


class SuppliedPoolRepository(InMemoryPoolRepository):
    """Repository built from caller-supplied pool snapshots.

    Every snapshot must be owned by the program and sit at the canonical
    address re-derived from its claimed (market, mint); anything else is
    rejected before it can influence a health computation.
    """

    def __init__(
        self,
        market: str,
        accounts: Iterable[PoolAccount],
        program_id: str = PROGRAM_ID,
    ) -> None:
        verified: dict[str, Pool] = {}
        for account in accounts:
            if account.owner != program_id:
                raise Unauthorized(f"pool account {account.address} is not owned by {program_id}")
            if account.pool.market != market:
                raise Unauthorized(f"pool {account.pool.mint} belongs to another market")
            expected = pool_address(market, account.pool.mint, program_id=program_id)
            if expected != account.address:
                raise Unauthorized(f"pool account {account.address} is not canonical")
            verified[account.pool.mint] = account.pool
        super().__init__(verified)


def as_pool_repository(pools: PoolRepository | Mapping[str, Pool] | Iterable[Pool]) -> PoolRepository:
    if isinstance(pools, PoolRepository):
        return pools
    return InMemoryPoolRepository(pools)
