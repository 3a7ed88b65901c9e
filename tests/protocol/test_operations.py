"""Tests for instruction-level operations."""

from dataclasses import replace

import pytest

from zodial.data.constants import HEALTH_MAX
from zodial.data.pyth import PythPrice, q60_from_pyth
from zodial.errors import (
    AssetNotRegistered,
    ExceedsMaxAssets,
    ExceedsMaxPositions,
    HealthCheckFailed,
    InsufficientLiquidity,
    InvalidAmount,
    InvalidRiskPair,
    MarketPaused,
    PositionHealthy,
    PositionNotFound,
    PythFeedNotSet,
    Unauthorized,
    UnsupportedMode,
)
from zodial.position.obligation import Obligation
from zodial.protocol import events
from zodial.protocol import operations as ops
from zodial.protocol.fixed_point import (
    ONE_BITS,
    Fixed,
    div_amount_by_index,
    mul_shares_by_index,
    mul_shares_by_index_ceil,
)
from zodial.protocol.health import HealthMode
from zodial.protocol.interest_rate import RateModel
from zodial.protocol.lending_market import LendingMarket
from zodial.protocol.market import MarketArgs, PriceMode
from zodial.protocol.pool import accrue_pool
from zodial.protocol.registry import RiskPair, RiskPairEntry

RATE = RateModel(8_000, 0, 400, 6_000, 1_000, 10_000)
UNIT = 1_000_000
FEED = "ef0d8b6fda2ceba41da15d4095d1da392a0d2f8ed0c6c7bc0f4cfac8c280b56d"


def _args(**overrides) -> MarketArgs:
    base = dict(
        max_assets=3,
        max_positions=2,
        default_ltv_bps=5_000,
        default_liq_threshold_bps=6_000,
        default_liq_bonus_bps=500,
    )
    base.update(overrides)
    return MarketArgs(**base)


class TestInitMarket:
    def test_creates_empty_state(self) -> None:
        out = ops.init_market("authority", _args())
        assert out.market.authority == "authority"
        assert out.assets.count == 0
        assert out.risk.dim == 0
        assert out.price_cache.prices == []
        assert out.event == events.MarketInitialized(out.market.key, "authority", 3, 2)

    def test_caps(self) -> None:
        with pytest.raises(ExceedsMaxAssets):
            ops.init_market("authority", _args(max_assets=34))
        with pytest.raises(ExceedsMaxPositions):
            ops.init_market("authority", _args(max_positions=17))

    def test_default_out_of_range(self) -> None:
        with pytest.raises(ValueError):
            ops.init_market("authority", _args(default_ltv_bps=10_001))


class TestAdministration:
    @pytest.fixture
    def state(self) -> ops.MarketInitOutcome:
        return ops.init_market("authority", _args())

    def test_register_grows_risk(self, state: ops.MarketInitOutcome) -> None:
        out = ops.register_asset(state.market, state.assets, state.risk, "authority", "USDC", 6)
        assert out.asset.index == 0
        assert out.risk.dim == 1
        assert out.event == events.AssetRegistered(state.market.key, "USDC", 0)
        out = ops.register_asset(state.market, out.assets, out.risk, "authority", "SOL", 9)
        assert out.asset.index == 1
        assert out.risk.dim == 2
        assert out.risk.get_pair(0, 1) == RiskPair(5_000, 6_000, 500)
        assert state.assets.count == 0

    def test_register_requires_authority(self, state: ops.MarketInitOutcome) -> None:
        with pytest.raises(Unauthorized):
            ops.register_asset(state.market, state.assets, state.risk, "mallory", "USDC", 6)

    def test_register_normalizes_feed(self, state: ops.MarketInitOutcome) -> None:
        out = ops.register_asset(
            state.market, state.assets, state.risk, "authority", "SOL", 9,
            pyth_feed_id="0x" + FEED.upper(),
        )
        assert out.asset.pyth_feed_id == FEED

    def test_capacity(self, state: ops.MarketInitOutcome) -> None:
        assets, risk = state.assets, state.risk
        for mint in ("A", "B", "C"):
            out = ops.register_asset(state.market, assets, risk, "authority", mint, 6)
            assets, risk = out.assets, out.risk
        with pytest.raises(ExceedsMaxAssets):
            ops.register_asset(state.market, assets, risk, "authority", "D", 6)

    def test_init_pool(self, state: ops.MarketInitOutcome) -> None:
        reg = ops.register_asset(state.market, state.assets, state.risk, "authority", "USDC", 6)
        out = ops.init_pool(state.market, reg.assets, "authority", "USDC", RATE, now=100)
        assert out.pool.borrow_index_q60 == ONE_BITS
        assert out.pool.last_timestamp == 100
        assert out.event.pool == out.pool.address

    def test_init_pool_unknown_mint(self, state: ops.MarketInitOutcome) -> None:
        with pytest.raises(AssetNotRegistered):
            ops.init_pool(state.market, state.assets, "authority", "USDC", RATE, now=0)

    def test_set_risk_pair(self, state: ops.MarketInitOutcome) -> None:
        reg = ops.register_asset(state.market, state.assets, state.risk, "authority", "USDC", 6)
        reg = ops.register_asset(state.market, reg.assets, reg.risk, "authority", "SOL", 9)
        out = ops.set_risk_pair(
            state.market, reg.assets, reg.risk, "authority", "SOL", "USDC", 8_000, 8_500, 300
        )
        assert out.risk.get_pair(0, 1) == RiskPair(8_000, 8_500, 300)
        assert reg.risk.get_pair(0, 1) == RiskPair(5_000, 6_000, 500)
        assert out.event.a_index == 1 and out.event.b_index == 0

    def test_set_risk_pair_rejects_wide_values(self, state: ops.MarketInitOutcome) -> None:
        reg = ops.register_asset(state.market, state.assets, state.risk, "authority", "USDC", 6)
        with pytest.raises(InvalidRiskPair):
            ops.set_risk_pair(
                state.market, reg.assets, reg.risk, "authority", "USDC", "USDC", 70_000, 0, 0
            )

    def test_batch_is_all_or_nothing(self, state: ops.MarketInitOutcome) -> None:
        reg = ops.register_asset(state.market, state.assets, state.risk, "authority", "USDC", 6)
        reg = ops.register_asset(state.market, reg.assets, reg.risk, "authority", "SOL", 9)
        entries = [
            RiskPairEntry(0, 0, 9_000, 9_300, 200),
            RiskPairEntry(0, 5, 7_000, 7_500, 500),
        ]
        with pytest.raises(AssetNotRegistered):
            ops.set_risk_pairs_batch(state.market, reg.assets, reg.risk, "authority", entries)
        out = ops.set_risk_pairs_batch(
            state.market, reg.assets, reg.risk, "authority", entries[:1]
        )
        assert out.risk.get_pair(0, 0) == RiskPair(9_000, 9_300, 200)
        assert out.event.count == 1

    def test_pause_requires_authority(self, state: ops.MarketInitOutcome) -> None:
        with pytest.raises(Unauthorized):
            ops.set_paused(state.market, "mallory", True)
        assert ops.set_paused(state.market, "authority", True).paused
        assert not state.market.paused


class TestPrices:
    def test_update(self, lending_market: LendingMarket) -> None:
        lm = lending_market
        out = ops.update_prices(
            lm.market, lm.assets, lm.price_cache, lm.market.authority,
            [ops.PriceUpdate("SOL", 3 * ONE_BITS)], slot=5, now=lm.now + 10,
        )
        assert out.price_cache.get(1).price_q60 == 3 * ONE_BITS
        assert out.price_cache.last_slot == 5
        assert out.price_cache.last_updated == lm.now + 10
        assert lm.price_cache.get(1).price_q60 == 2 * ONE_BITS
        assert out.event == events.PricesUpdated(lm.market.key, 1, 5)

    def test_update_unknown_mint(self, lending_market: LendingMarket) -> None:
        lm = lending_market
        with pytest.raises(AssetNotRegistered):
            ops.update_prices(
                lm.market, lm.assets, lm.price_cache, lm.market.authority,
                [ops.PriceUpdate("BONK", ONE_BITS)], slot=5, now=lm.now,
            )

    def test_update_requires_cache_mode(self) -> None:
        state = ops.init_market("authority", _args(price_mode=PriceMode.MOCK))
        with pytest.raises(UnsupportedMode):
            ops.update_prices(state.market, state.assets, state.price_cache, "authority", [], 1, 0)

    def test_update_requires_authority(self, lending_market: LendingMarket) -> None:
        lm = lending_market
        with pytest.raises(Unauthorized):
            ops.update_prices(lm.market, lm.assets, lm.price_cache, "mallory", [], 1, lm.now)


class TestPythPrices:
    @pytest.fixture
    def lm(self, lending_market: LendingMarket) -> LendingMarket:
        lending_market.register_asset(
            lending_market.market.authority, "WSOL", 9, pyth_feed_id=FEED
        )
        return lending_market

    def _observation(self, publish_time: int) -> PythPrice:
        return PythPrice(FEED, price=15_250_000_000, conf=1_000_000, exponent=-8, publish_time=publish_time)

    def test_fresh_price_written(self, lm: LendingMarket) -> None:
        out = ops.update_prices_pyth(
            lm.market, lm.assets, lm.price_cache, "WSOL", self._observation(lm.now - 5), 9, lm.now
        )
        assert out.price_cache.get(2).price_q60 == q60_from_pyth(15_250_000_000, -8)
        assert out.event == events.PricesUpdated(lm.market.key, 1, 9)

    def test_stale_price_skipped(self, lm: LendingMarket) -> None:
        out = ops.update_prices_pyth(
            lm.market, lm.assets, lm.price_cache, "WSOL", self._observation(lm.now - 61), 9, lm.now
        )
        assert out.event is None
        assert out.price_cache is lm.price_cache

    def test_feed_not_set(self, lm: LendingMarket) -> None:
        with pytest.raises(PythFeedNotSet):
            ops.update_prices_pyth(
                lm.market, lm.assets, lm.price_cache, "SOL", self._observation(lm.now), 9, lm.now
            )

    def test_wrong_feed(self, lm: LendingMarket) -> None:
        other = PythPrice("ab" * 32, price=1, conf=0, exponent=0, publish_time=lm.now)
        with pytest.raises(Unauthorized):
            ops.update_prices_pyth(lm.market, lm.assets, lm.price_cache, "WSOL", other, 9, lm.now)


class TestDeposit:
    def test_creates_obligation(self, lending_market: LendingMarket) -> None:
        lm = lending_market
        out = ops.deposit(lm.market, lm.assets, lm.pool("SOL"), None, "alice", 5 * UNIT, lm.now)
        assert out.obligation.owner == "alice"
        assert out.obligation.find("SOL").deposit_shares_q60 == 5 * UNIT * ONE_BITS
        assert out.pool.total_deposit_shares_q60 == 5 * UNIT * ONE_BITS
        assert lm.pool("SOL").total_deposit_shares_q60 == 0
        assert out.event.shares_q60 == 5 * UNIT * ONE_BITS

    def test_zero_amount(self, lending_market: LendingMarket) -> None:
        lm = lending_market
        with pytest.raises(InvalidAmount):
            ops.deposit(lm.market, lm.assets, lm.pool("SOL"), None, "alice", 0, lm.now)

    def test_paused(self, lending_market: LendingMarket) -> None:
        lm = lending_market
        lm.set_paused(lm.market.authority, True)
        with pytest.raises(MarketPaused):
            lm.deposit("alice", "SOL", UNIT)

    def test_foreign_obligation(self, funded_market: LendingMarket) -> None:
        lm = funded_market
        with pytest.raises(Unauthorized):
            ops.deposit(
                lm.market, lm.assets, lm.pool("SOL"), lm.obligation("alice"), "bob", UNIT, lm.now
            )

    def test_position_capacity(self) -> None:
        lm = LendingMarket.create("authority", _args(max_positions=1))
        for mint in ("USDC", "SOL"):
            lm.register_asset("authority", mint, 6)
            lm.init_pool("authority", mint, RATE)
        lm.deposit("alice", "USDC", UNIT)
        with pytest.raises(ExceedsMaxPositions):
            lm.deposit("alice", "SOL", UNIT)


class TestBorrow:
    def test_commits(self, funded_market: LendingMarket) -> None:
        lm = funded_market
        assert lm.obligation("alice").find("USDC").borrow_shares_q60 == 100 * UNIT * ONE_BITS
        assert lm.pool("USDC").total_borrow_shares_q60 == 100 * UNIT * ONE_BITS
        assert lm.vaults["USDC"] == 900 * UNIT
        borrowed = [e for e in lm.events if isinstance(e, events.Borrowed)]
        assert borrowed[-1].health == 1_040

    def test_rejected_borrow_leaves_state_unchanged(self, funded_market: LendingMarket) -> None:
        lm = funded_market
        ob_before = lm.obligation("alice").clone()
        pool_before = lm.pool("USDC").clone()
        with pytest.raises(HealthCheckFailed):
            lm.borrow("alice", "USDC", 10 * UNIT)
        assert lm.obligation("alice") == ob_before
        assert lm.pool("USDC") == pool_before
        assert lm.vaults["USDC"] == 900 * UNIT

    def test_requires_obligation(self, lending_market: LendingMarket) -> None:
        with pytest.raises(PositionNotFound):
            lending_market.borrow("carol", "USDC", UNIT)

    def test_requires_liquidity(self, lending_market: LendingMarket) -> None:
        lm = lending_market
        lm.deposit("alice", "SOL", 1_000 * UNIT)
        lm.deposit("bob", "USDC", 10 * UNIT)
        with pytest.raises(InsufficientLiquidity):
            lm.borrow("alice", "USDC", 20 * UNIT)

    def test_zero_amount(self, funded_market: LendingMarket) -> None:
        with pytest.raises(InvalidAmount):
            funded_market.borrow("alice", "USDC", 0)


class TestRepay:
    def test_partial(self, funded_market: LendingMarket) -> None:
        lm = funded_market
        assert lm.repay("alice", "USDC", 40 * UNIT) == 40 * UNIT
        assert lm.obligation("alice").find("USDC").borrow_shares_q60 == 60 * UNIT * ONE_BITS
        assert lm.vaults["USDC"] == 940 * UNIT

    def test_overpay_is_capped_and_drops_position(self, funded_market: LendingMarket) -> None:
        lm = funded_market
        assert lm.repay("alice", "USDC", 500 * UNIT) == 100 * UNIT
        assert lm.obligation("alice").mints() == ["SOL"]
        assert lm.pool("USDC").total_borrow_shares_q60 == 0

    def test_full_repay_after_interest(self, funded_market: LendingMarket) -> None:
        lm = funded_market
        lm.advance(365 * 86_400)
        floored = lm.portfolio("alice").valuation.borrows[0].amount
        pool = accrue_pool(lm.pool("USDC"), lm.now)
        shares = lm.obligation("alice").find("USDC").borrow_shares_q60
        owed = mul_shares_by_index_ceil(shares, pool.borrow_index())
        assert floored > 100 * UNIT
        assert floored <= owed <= floored + 1

        assert lm.repay("alice", "USDC", 10**12) == owed
        event = lm.events[-1]
        assert event.burned_shares_q60 == shares
        assert event.burned_shares_q60 == min(
            div_amount_by_index(owed, pool.borrow_index()), shares
        )
        assert lm.obligation("alice").find("USDC") is None
        assert lm.pool("USDC").total_borrow_shares_q60 == 0

    def test_fractional_debt_is_charged(self, funded_market: LendingMarket) -> None:
        lm = funded_market
        lm.pools["USDC"] = replace(lm.pool("USDC"), borrow_index_q60=ONE_BITS + 1)
        assert lm.portfolio("alice").valuation.borrows[0].amount == 100 * UNIT

        # paying the floored amount burns fewer shares than the position holds
        assert lm.repay("alice", "USDC", 100 * UNIT) == 100 * UNIT
        shares = 100 * UNIT * ONE_BITS
        burned = lm.events[-1].burned_shares_q60
        assert burned == min(div_amount_by_index(100 * UNIT, Fixed(ONE_BITS + 1)), shares)
        assert burned < shares
        assert lm.obligation("alice").find("USDC").borrow_shares_q60 == shares - burned

        assert lm.repay("alice", "USDC", 10**12) == 1
        assert lm.obligation("alice").find("USDC") is None
        assert lm.vaults["USDC"] == 1_000 * UNIT + 1

    def test_no_debt_is_noop(self, funded_market: LendingMarket) -> None:
        lm = funded_market
        out = ops.repay(
            lm.market, lm.assets, lm.pool("USDC"), lm.obligation("bob"), "bob", UNIT, lm.now
        )
        assert out.amount == 0
        assert out.event is None
        assert out.obligation == lm.obligation("bob")


class TestWithdraw:
    def test_full_withdraw_drops_position(self, lending_market: LendingMarket) -> None:
        lm = lending_market
        lm.deposit("bob", "USDC", 50 * UNIT)
        assert lm.withdraw("bob", "USDC", 50 * UNIT) == 50 * UNIT
        assert lm.obligation("bob").positions == []
        assert lm.pool("USDC").total_deposit_shares_q60 == 0

    def test_burn_follows_withdrawn_amount(self, lending_market: LendingMarket) -> None:
        lm = lending_market
        lm.deposit("bob", "USDC", 50 * UNIT)
        shares = 50 * UNIT * ONE_BITS
        index = Fixed(ONE_BITS + 1)
        lm.pools["USDC"] = replace(lm.pool("USDC"), deposit_index_q60=index.bits)

        paid_out = lm.withdraw("bob", "USDC", 10**12)
        burned = lm.events[-1].burned_shares_q60
        assert burned == min(div_amount_by_index(50 * UNIT, index), shares)
        assert paid_out == mul_shares_by_index(burned, index) == 50 * UNIT - 1
        assert lm.obligation("bob").find("USDC").deposit_shares_q60 == shares - burned
        assert lm.pool("USDC").total_deposit_shares_q60 == shares - burned
        assert lm.vaults["USDC"] == 1

    def test_capped_by_vault(self, funded_market: LendingMarket) -> None:
        lm = funded_market
        assert lm.withdraw("bob", "USDC", 1_000 * UNIT) == 900 * UNIT
        assert lm.obligation("bob").find("USDC").deposit_shares_q60 == 100 * UNIT * ONE_BITS
        assert lm.vaults["USDC"] == 0

    def test_unhealthy_withdraw_rejected(self, funded_market: LendingMarket) -> None:
        lm = funded_market
        before = lm.obligation("alice").clone()
        with pytest.raises(HealthCheckFailed):
            lm.withdraw("alice", "SOL", 10 * UNIT)
        assert lm.obligation("alice") == before

    def test_nothing_available_is_noop(self, funded_market: LendingMarket) -> None:
        # Alice's USDC position holds only debt
        assert funded_market.withdraw("alice", "USDC", UNIT) == 0


class TestLeverage:
    @pytest.fixture
    def lm(self, lending_market: LendingMarket) -> LendingMarket:
        """Alice holds 100 SOL ($200); Bob supplies 1000 USDC."""
        lending_market.deposit("bob", "USDC", 1_000 * UNIT)
        lending_market.deposit("alice", "SOL", 100 * UNIT)
        return lending_market

    def test_borrow_converts_into_deposit(self, lm: LendingMarket) -> None:
        assert lm.leverage("alice", "USDC", "SOL", 50 * UNIT) == 25 * UNIT
        alice = lm.obligation("alice")
        assert alice.find("USDC").borrow_shares_q60 == 50 * UNIT * ONE_BITS
        assert alice.find("SOL").deposit_shares_q60 == 125 * UNIT * ONE_BITS
        assert lm.pool("USDC").total_borrow_shares_q60 == 50 * UNIT * ONE_BITS
        assert lm.pool("SOL").total_deposit_shares_q60 == 125 * UNIT * ONE_BITS
        assert lm.vaults == {"USDC": 950 * UNIT, "SOL": 125 * UNIT}
        # 250 * 0.80 / 50
        assert lm.health("alice") == 4_000
        event = lm.events[-1]
        assert isinstance(event, events.Leveraged)
        assert event.health == 4_000
        assert event.deposit_amount == 25 * UNIT

    def test_unhealthy_leverage_leaves_state_unchanged(self, lm: LendingMarket) -> None:
        alice = lm.obligation("alice").clone()
        usdc, sol = lm.pool("USDC").clone(), lm.pool("SOL").clone()
        vaults = dict(lm.vaults)
        n_events = len(lm.events)
        # 600 SOL ($1200) * 0.80 against 1000 USDC is 960
        with pytest.raises(HealthCheckFailed):
            lm.leverage("alice", "USDC", "SOL", 1_000 * UNIT)
        assert lm.obligation("alice") == alice
        assert lm.pool("USDC") == usdc
        assert lm.pool("SOL") == sol
        assert lm.vaults == vaults
        assert len(lm.events) == n_events

    def test_same_mint(self, lending_market: LendingMarket) -> None:
        lm = lending_market
        lm.deposit("alice", "USDC", 100 * UNIT)
        assert lm.leverage("alice", "USDC", "USDC", 50 * UNIT) == 50 * UNIT
        pos = lm.obligation("alice").find("USDC")
        assert pos.deposit_shares_q60 == 150 * UNIT * ONE_BITS
        assert pos.borrow_shares_q60 == 50 * UNIT * ONE_BITS
        pool = lm.pool("USDC")
        assert pool.total_deposit_shares_q60 == 150 * UNIT * ONE_BITS
        assert pool.total_borrow_shares_q60 == 50 * UNIT * ONE_BITS
        assert lm.vaults["USDC"] == 100 * UNIT

    def test_requires_obligation(self, lm: LendingMarket) -> None:
        with pytest.raises(PositionNotFound):
            lm.leverage("carol", "USDC", "SOL", UNIT)

    def test_zero_amount(self, lm: LendingMarket) -> None:
        with pytest.raises(InvalidAmount):
            lm.leverage("alice", "USDC", "SOL", 0)

    def test_requires_liquidity(self, lending_market: LendingMarket) -> None:
        lm = lending_market
        lm.deposit("alice", "SOL", 100 * UNIT)
        lm.deposit("bob", "USDC", 10 * UNIT)
        with pytest.raises(InsufficientLiquidity):
            lm.leverage("alice", "USDC", "SOL", 20 * UNIT)

    def test_paused(self, lm: LendingMarket) -> None:
        lm.set_paused(lm.market.authority, True)
        with pytest.raises(MarketPaused):
            lm.leverage("alice", "USDC", "SOL", UNIT)


class TestLiquidation:
    def test_healthy_position_rejected(self, funded_market: LendingMarket) -> None:
        with pytest.raises(PositionHealthy):
            funded_market.check_liquidation("alice")
        with pytest.raises(PositionHealthy):
            funded_market.liquidate("bob", "alice", 40 * UNIT, "USDC", "SOL")

    def test_reference_example(self, funded_market: LendingMarket) -> None:
        lm = funded_market
        lm.set_risk_pair(lm.market.authority, "SOL", "USDC", 8_000, 7_000, 500)
        assert lm.check_liquidation("alice") == 910

        lm.liquidate("bob", "alice", 40 * UNIT, "USDC", "SOL")

        event = lm.events[-1]
        assert isinstance(event, events.LiquidationExecuted)
        assert event.seize_amount == 21_000_000
        assert event.health_before == 910
        alice, bob = lm.obligation("alice"), lm.obligation("bob")
        assert alice.find("USDC").borrow_shares_q60 == 60 * UNIT * ONE_BITS
        assert alice.find("SOL").deposit_shares_q60 == 44 * UNIT * ONE_BITS
        assert bob.find("USDC").deposit_shares_q60 == 960 * UNIT * ONE_BITS
        assert bob.find("SOL").deposit_shares_q60 == 21 * UNIT * ONE_BITS
        assert lm.pool("USDC").total_borrow_shares_q60 == 60 * UNIT * ONE_BITS
        assert lm.pool("USDC").total_deposit_shares_q60 == 960 * UNIT * ONE_BITS

    def test_paused_market_rejects_check(self, funded_market: LendingMarket) -> None:
        lm = funded_market
        lm.set_risk_pair(lm.market.authority, "SOL", "USDC", 8_000, 7_000, 500)
        lm.set_paused(lm.market.authority, True)
        with pytest.raises(MarketPaused):
            lm.check_liquidation("alice")
        assert lm.health("alice", HealthMode.LIQUIDATION) == 910

    def test_self_liquidation_rejected(self, funded_market: LendingMarket) -> None:
        lm = funded_market
        lm.set_risk_pair(lm.market.authority, "SOL", "USDC", 8_000, 7_000, 500)
        with pytest.raises(Unauthorized):
            lm.liquidate("alice", "alice", 10 * UNIT, "USDC", "SOL")

    def test_failed_liquidation_leaves_state(self, funded_market: LendingMarket) -> None:
        lm = funded_market
        lm.set_risk_pair(lm.market.authority, "SOL", "USDC", 8_000, 7_000, 500)
        alice = lm.obligation("alice").clone()
        with pytest.raises(PositionNotFound):
            lm.liquidate("carol", "alice", 40 * UNIT, "USDC", "SOL")
        assert lm.obligation("alice") == alice
        assert lm.obligation("carol") is None

    def test_no_debt_is_healthy(self, funded_market: LendingMarket) -> None:
        lm = funded_market
        ob = lm.obligation("bob")
        with pytest.raises(PositionHealthy):
            ops.check_liquidation(
                lm.market, lm.assets, lm.risk, lm.price_cache, ob, lm.pool_repository(), lm.now
            )
        assert lm.health("bob") == HEALTH_MAX

    def test_foreign_liquidator_obligation(self, funded_market: LendingMarket) -> None:
        lm = funded_market
        lm.set_risk_pair(lm.market.authority, "SOL", "USDC", 8_000, 7_000, 500)
        with pytest.raises(Unauthorized):
            ops.liquidate_obligation(
                lm.market, lm.assets, lm.risk, lm.price_cache,
                lm.obligation("alice"), lm.obligation("bob"), "mallory",
                lm.pool_repository(), 40 * UNIT, "USDC", "SOL", lm.now,
            )

    def test_obligation_from_other_market(self, funded_market: LendingMarket) -> None:
        lm = funded_market
        stranger = Obligation("another-market", "dave")
        with pytest.raises(Unauthorized):
            ops.liquidate_obligation(
                lm.market, lm.assets, lm.risk, lm.price_cache,
                stranger, lm.obligation("bob"), "bob",
                lm.pool_repository(), 40 * UNIT, "USDC", "SOL", lm.now,
            )
