"""Tests for the obligation position list."""

import pytest

from zodial.data.addresses import obligation_address
from zodial.errors import ExceedsMaxPositions, InsufficientShares, PositionNotFound, Unauthorized
from zodial.position.obligation import Obligation, Position
from zodial.protocol.fixed_point import ONE_BITS


@pytest.fixture
def obligation() -> Obligation:
    return Obligation(
        market="market",
        owner="alice",
        positions=[
            Position("SOL", deposit_shares_q60=10 * ONE_BITS),
            Position("USDC", borrow_shares_q60=5 * ONE_BITS),
        ],
    )


class TestLookup:
    def test_find(self, obligation: Obligation) -> None:
        assert obligation.find("SOL").deposit_shares_q60 == 10 * ONE_BITS
        assert obligation.find("ETH") is None

    def test_require(self, obligation: Obligation) -> None:
        with pytest.raises(PositionNotFound):
            obligation.require("ETH")

    def test_mints_keep_order(self, obligation: Obligation) -> None:
        assert obligation.mints() == ["SOL", "USDC"]

    def test_address(self, obligation: Obligation) -> None:
        assert obligation.address == obligation_address("market", "alice")


class TestMutation:
    def test_add_to_existing(self, obligation: Obligation) -> None:
        obligation.add_deposit_shares("SOL", ONE_BITS, max_positions=2)
        assert obligation.find("SOL").deposit_shares_q60 == 11 * ONE_BITS
        assert len(obligation.positions) == 2

    def test_add_new_needs_free_slot(self, obligation: Obligation) -> None:
        with pytest.raises(ExceedsMaxPositions):
            obligation.add_deposit_shares("ETH", ONE_BITS, max_positions=2)
        obligation.add_borrow_shares("ETH", ONE_BITS, max_positions=3)
        assert obligation.mints() == ["SOL", "USDC", "ETH"]

    def test_remove_prunes_empty(self, obligation: Obligation) -> None:
        obligation.remove_borrow_shares("USDC", 5 * ONE_BITS)
        assert obligation.mints() == ["SOL"]

    def test_partial_remove_keeps_position(self, obligation: Obligation) -> None:
        obligation.remove_deposit_shares("SOL", 4 * ONE_BITS)
        assert obligation.find("SOL").deposit_shares_q60 == 6 * ONE_BITS

    def test_remove_more_than_held(self, obligation: Obligation) -> None:
        with pytest.raises(InsufficientShares):
            obligation.remove_deposit_shares("SOL", 11 * ONE_BITS)
        with pytest.raises(InsufficientShares):
            obligation.remove_borrow_shares("SOL", 1)

    def test_slot_is_reusable_after_prune(self, obligation: Obligation) -> None:
        obligation.remove_borrow_shares("USDC", 5 * ONE_BITS)
        obligation.add_deposit_shares("ETH", ONE_BITS, max_positions=2)
        assert obligation.mints() == ["SOL", "ETH"]


class TestOwnership:
    def test_owner_matches(self, obligation: Obligation) -> None:
        obligation.check_owner("market", "alice")

    @pytest.mark.parametrize("market,owner", [("market", "bob"), ("other", "alice")])
    def test_owner_mismatch(self, obligation: Obligation, market: str, owner: str) -> None:
        with pytest.raises(Unauthorized):
            obligation.check_owner(market, owner)

    def test_clone_is_deep(self, obligation: Obligation) -> None:
        copy = obligation.clone()
        copy.remove_borrow_shares("USDC", 5 * ONE_BITS)
        copy.find("SOL").deposit_shares_q60 = 0
        assert obligation.find("SOL").deposit_shares_q60 == 10 * ONE_BITS
        assert obligation.mints() == ["SOL", "USDC"]
