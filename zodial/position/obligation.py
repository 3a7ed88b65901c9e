"""A user's cross-asset position within one market."""

from __future__ import annotations

from dataclasses import dataclass, field

from zodial.data.addresses import obligation_address
from zodial.errors import (
    ExceedsMaxPositions,
    InsufficientShares,
    PositionNotFound,
    Unauthorized,
)
from zodial.protocol.fixed_point import checked_add_bits


@dataclass
class Position:
    """Deposit and borrow shares (Q60 bits) in one asset."""

    mint: str
    deposit_shares_q60: int = 0
    borrow_shares_q60: int = 0

    @property
    def is_empty(self) -> bool:
        return self.deposit_shares_q60 == 0 and self.borrow_shares_q60 == 0


@dataclass
class Obligation:
    """Bounded list of positions, at most one per asset.

    Empty positions are pruned after every mutation so the list stays dense.
    """

    market: str
    owner: str
    positions: list[Position] = field(default_factory=list)

    @property
    def address(self) -> str:
        return obligation_address(self.market, self.owner)

    def mints(self) -> list[str]:
        return [p.mint for p in self.positions]

    def find(self, mint: str) -> Position | None:
        for pos in self.positions:
            if pos.mint == mint:
                return pos
        return None

    def require(self, mint: str) -> Position:
        pos = self.find(mint)
        if pos is None:
            raise PositionNotFound(mint)
        return pos

    def get_or_create(self, mint: str, max_positions: int) -> Position:
        pos = self.find(mint)
        if pos is not None:
            return pos
        if len(self.positions) >= max_positions:
            raise ExceedsMaxPositions(f"obligation already holds {len(self.positions)} positions")
        pos = Position(mint=mint)
        self.positions.append(pos)
        return pos

    def add_deposit_shares(self, mint: str, shares_q60: int, max_positions: int) -> None:
        pos = self.get_or_create(mint, max_positions)
        pos.deposit_shares_q60 = checked_add_bits(pos.deposit_shares_q60, shares_q60)

    def add_borrow_shares(self, mint: str, shares_q60: int, max_positions: int) -> None:
        pos = self.get_or_create(mint, max_positions)
        pos.borrow_shares_q60 = checked_add_bits(pos.borrow_shares_q60, shares_q60)

    def remove_deposit_shares(self, mint: str, shares_q60: int) -> None:
        pos = self.require(mint)
        if shares_q60 > pos.deposit_shares_q60:
            raise InsufficientShares(f"deposit shares in {mint}")
        pos.deposit_shares_q60 -= shares_q60
        self.prune()

    def remove_borrow_shares(self, mint: str, shares_q60: int) -> None:
        pos = self.require(mint)
        if shares_q60 > pos.borrow_shares_q60:
            raise InsufficientShares(f"borrow shares in {mint}")
        pos.borrow_shares_q60 -= shares_q60
        self.prune()

    def prune(self) -> None:
        """Drop positions whose deposit and borrow shares are both zero."""
        self.positions = [p for p in self.positions if not p.is_empty]

    def check_owner(self, market: str, owner: str) -> None:
        if self.market != market or self.owner != owner:
            raise Unauthorized(f"obligation {self.address} does not belong to {owner}")

    def clone(self) -> "Obligation":
        return Obligation(
            market=self.market,
            owner=self.owner,
            positions=[
                Position(p.mint, p.deposit_shares_q60, p.borrow_shares_q60) for p in self.positions
            ],
        )
