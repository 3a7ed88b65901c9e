"""Price resolution: asset index -> USD price in Q60."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from zodial.data.constants import MAX_PRICE_ENTRIES
from zodial.errors import PriceNotFound, PriceStale
from zodial.protocol.fixed_point import ONE_BITS
from zodial.protocol.market import Market, PriceMode


@dataclass(frozen=True)
class PriceEntry:
    asset_index: int
    price_q60: int
    slot: int = 0
    updated_at: int = 0  # unix seconds of the write


@dataclass
class PriceCache:
    """Latest price per asset. Entries are upserted, never expired here."""

    market: str
    last_slot: int = 0
    last_updated: int = 0
    prices: list[PriceEntry] = field(default_factory=list)

    def get(self, asset_index: int) -> PriceEntry:
        for entry in self.prices:
            if entry.asset_index == asset_index:
                return entry
        raise PriceNotFound(f"asset index {asset_index}")

    def upsert(self, asset_index: int, price_q60: int, slot: int, now: int) -> None:
        if price_q60 < 0:
            raise ValueError("price must be non-negative")
        entry = PriceEntry(asset_index=asset_index, price_q60=price_q60, slot=slot, updated_at=now)
        for k, existing in enumerate(self.prices):
            if existing.asset_index == asset_index:
                self.prices[k] = entry
                return
        if len(self.prices) >= MAX_PRICE_ENTRIES:
            raise PriceStale(f"price cache is full ({MAX_PRICE_ENTRIES} entries)")
        self.prices.append(entry)

    def is_fresh(self, asset_index: int, now: int, max_age_secs: int) -> bool:
        try:
            entry = self.get(asset_index)
        except PriceNotFound:
            return False
        return now - entry.updated_at <= max_age_secs

    def clone(self) -> "PriceCache":
        return PriceCache(
            market=self.market,
            last_slot=self.last_slot,
            last_updated=self.last_updated,
            prices=list(self.prices),
        )


class PriceSource(ABC):
    """Resolves the current USD price of a registered asset."""

    @abstractmethod
    def price_q60(self, asset_index: int) -> int:
        """Price in Q60 bits; raises if unavailable, never defaults."""


class MockPriceSource(PriceSource):
    """Every asset is worth exactly 1.0."""

    def price_q60(self, asset_index: int) -> int:
        return ONE_BITS


class CachePriceSource(PriceSource):
    """Prices read from a ``PriceCache``.

    With ``max_age_secs`` and ``now`` set, entries older than the limit are
    reported as stale.
    """

    def __init__(
        self,
        cache: PriceCache | None,
        now: int | None = None,
        max_age_secs: int | None = None,
    ) -> None:
        self._cache = cache
        self._now = now
        self._max_age = max_age_secs

    def price_q60(self, asset_index: int) -> int:
        if self._cache is None:
            raise PriceStale("market requires a price cache")
        try:
            entry = self._cache.get(asset_index)
        except PriceNotFound as exc:
            raise PriceStale(f"no cached price for asset index {asset_index}") from exc
        if self._max_age is not None and self._now is not None:
            if self._now - entry.updated_at > self._max_age:
                raise PriceStale(
                    f"price for asset index {asset_index} is {self._now - entry.updated_at}s old"
                )
        return entry.price_q60


def price_source_for(
    market: Market,
    cache: PriceCache | None,
    now: int | None = None,
    max_age_secs: int | None = None,
) -> PriceSource:
    """Pick the price source matching the market's price mode."""
    if market.price_mode is PriceMode.MOCK:
        return MockPriceSource()
    return CachePriceSource(cache, now=now, max_age_secs=max_age_secs)
