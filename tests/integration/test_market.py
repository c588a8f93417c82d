# [TESTER] v1

from __future__ import annotations

from typing import List, Tuple

import pytest

from launchcurve.core.errors import (
    AlreadyInitializedError,
    AlreadyMigratedError,
    IdenticalAssetsError,
    InsufficientFundsError,
    InvalidFeeError,
    InvalidPriceLimitError,
    MarketMigratedError,
    NotInitializedError,
    ReentrancyError,
    UnauthorizedError,
    ZeroAmountError,
)
from launchcurve.core.fixed_point import Q96
from launchcurve.core.segments import CurveConfig
from launchcurve.integration.market import Market, SwapEvent
from launchcurve.state.balances import AssetLedger
from launchcurve.state.market_state import MarketStatus

REF = "0x" + "aa" * 32
TOKEN = "0x" + "bb" * 32
MARKET = "market-1"
CAP = 5 * 10**26
FEE_1PCT = 10_000

# Buying with 1e27 reference at 1% from the bottom of the round curve.
BUY_OUT = 497487437185929648241206030
BUY_PRICE = 157664043403386031811152461168


class RecordingCollector:
    def __init__(self, address: str = "collector") -> None:
        self.address = address
        self.received: List[Tuple[str, int, str]] = []

    def on_fee_received(self, asset: str, amount: int, *, market: str) -> None:
        self.received.append((asset, amount, market))


def _curve() -> CurveConfig:
    return CurveConfig.from_capacities(
        price_a=Q96, price_b=2 * Q96, price_max=4 * Q96, amount0_a=CAP, amount0_b=CAP
    )


def _market(fee_rate: int = FEE_1PCT, collector=None, *, initialize: bool = True):
    ledger = AssetLedger()
    collector = collector if collector is not None else RecordingCollector()
    market = Market(
        _curve(),
        address=MARKET,
        factory="factory",
        collector=collector,
        quote_asset=REF,
        ledger=ledger,
    )
    if initialize:
        market.initialize(TOKEN, fee_rate)
    return market, ledger, collector


def _deposit_ref(ledger: AssetLedger, holder: str, amount: int) -> None:
    ledger.credit(holder, REF, amount)
    ledger.transfer(REF, holder, MARKET, amount)


def _buy(market: Market, ledger: AssetLedger, holder: str, amount: int) -> SwapEvent:
    _deposit_ref(ledger, holder, amount)
    return market.swap(holder, False, amount, market.price_max, sender=holder)


class TestInitialize:
    def test_initialize_mints_supply_to_market(self):
        market, ledger, _ = _market()
        assert market.status is MarketStatus.INITIALIZED
        assert market.base_asset == TOKEN
        assert market.quote_asset == REF
        assert market.price == market.price_a
        assert market.reserve0 == market.max_supply == 10**27
        assert market.reserve1 == 0
        assert ledger.balance_of(MARKET, TOKEN) == 10**27
        assert ledger.total_supply(TOKEN) == 10**27

    def test_curve_accessors(self):
        market, _, collector = _market()
        assert market.liquidity_a == 10**27
        assert market.liquidity_b == 2 * 10**27
        assert (market.price_a, market.price_b, market.price_max) == (Q96, 2 * Q96, 4 * Q96)
        assert market.factory == "factory"
        assert market.collector == collector.address
        assert market.fee_rate == FEE_1PCT

    def test_double_initialize_rejected(self):
        market, _, _ = _market()
        with pytest.raises(AlreadyInitializedError):
            market.initialize(TOKEN, 0)

    def test_identical_assets_rejected(self):
        market, _, _ = _market(initialize=False)
        with pytest.raises(IdenticalAssetsError):
            market.initialize(REF, 0)
        assert market.status is MarketStatus.UNINITIALIZED

    @pytest.mark.parametrize("fee", [-1, 1_000_001, True])
    def test_invalid_fee_rejected(self, fee):
        market, _, _ = _market(initialize=False)
        with pytest.raises(InvalidFeeError):
            market.initialize(TOKEN, fee)

    def test_quote_and_swap_before_initialize(self):
        market, ledger, _ = _market(initialize=False)
        with pytest.raises(NotInitializedError):
            market.get_delta_amounts(False, 1, market.price_max)
        ledger.credit(MARKET, REF, 10)
        with pytest.raises(NotInitializedError):
            market.swap("alice", False, 10, market.price_max, sender="alice")


class TestBuy:
    def test_exact_input_buy_with_fee(self):
        market, ledger, collector = _market()
        event = _buy(market, ledger, "alice", 10**27)

        assert event == SwapEvent(
            sender="alice",
            recipient="alice",
            amount0=-BUY_OUT,
            amount1=10**27,
            fee_amount_in=10**25,
            fee_amount1=10**25,
            price=BUY_PRICE,
        )
        assert market.price == BUY_PRICE
        assert market.reserve0 == 10**27 - BUY_OUT
        assert market.reserve1 == 99 * 10**25
        assert ledger.balance_of("alice", TOKEN) == BUY_OUT
        assert ledger.balance_of(MARKET, REF) == 99 * 10**25
        assert ledger.balance_of(collector.address, REF) == 10**25
        assert collector.received == [(REF, 10**25, MARKET)]
        assert market.events == (event,)

    def test_quote_matches_execution(self):
        market, ledger, _ = _market()
        quote = market.get_delta_amounts(False, 10**27, market.price_max)
        event = _buy(market, ledger, "alice", 10**27)
        assert event.price == quote.next_price
        assert -event.amount0 == quote.amount_out
        assert event.amount1 == quote.amount_in + quote.fee_amount_in

    def test_exact_output_buy_across_segments(self):
        market, ledger, collector = _market()
        cost = 2 * 10**27 + 20202020202020202020202022
        _deposit_ref(ledger, "alice", cost)
        event = market.swap("bob", False, -7 * 10**26, market.price_max, sender="alice")

        assert event.amount0 == -7 * 10**26
        assert event.amount1 == cost
        assert event.price == 5 * Q96 // 2
        assert ledger.balance_of("bob", TOKEN) == 7 * 10**26
        assert market.reserve1 == 2 * 10**27
        assert ledger.balance_of(collector.address, REF) == 20202020202020202020202022

    def test_overpayment_stays_outside_reserves(self):
        market, ledger, _ = _market()
        _deposit_ref(ledger, "alice", 3 * 10**27)
        market.swap("alice", False, 10**27, market.price_max, sender="alice")
        assert market.reserve1 == 99 * 10**25
        assert ledger.balance_of(MARKET, REF) == 2 * 10**27 + 99 * 10**25

    def test_buy_without_deposit_fails_atomically(self):
        market, ledger, collector = _market()
        _deposit_ref(ledger, "alice", 10**27 - 1)
        state = market.state
        balances = ledger.get_all_balances()

        with pytest.raises(InsufficientFundsError) as excinfo:
            market.swap("alice", False, 10**27, market.price_max, sender="alice")

        assert excinfo.value.asset == REF
        assert excinfo.value.required == 10**27
        assert excinfo.value.held == 10**27 - 1
        assert market.state == state
        assert ledger.get_all_balances() == balances
        assert market.events == ()
        assert collector.received == []

    def test_zero_fee_market_pays_no_fee(self):
        market, ledger, collector = _market(fee_rate=0)
        event = _buy(market, ledger, "alice", 10**27)
        assert event.fee_amount_in == event.fee_amount1 == 0
        assert -event.amount0 == CAP
        assert market.price == market.price_b
        assert collector.received == []


class TestSell:
    def test_sell_back_converts_fee_to_reference(self):
        market, ledger, collector = _market()
        _buy(market, ledger, "alice", 10**27)

        ledger.transfer(TOKEN, "alice", MARKET, BUY_OUT)
        event = market.swap("alice", True, BUY_OUT, market.price_a, sender="alice")

        assert event.amount0 == BUY_OUT
        assert event.amount1 == -985000252512499368718751577
        assert event.fee_amount_in == 4974874371859296482412061
        assert event.fee_amount1 == 4999747487500631281248422
        # Selling the fee moves the price a little further down.
        assert event.price == 79228162514264337593543950349
        assert market.price == event.price
        assert market.reserve0 == market.max_supply
        assert market.reserve1 == 1
        assert ledger.balance_of(MARKET, REF) == 1
        assert ledger.balance_of("alice", REF) == 985000252512499368718751577
        assert ledger.balance_of(collector.address, REF) == 10**25 + 4999747487500631281248422
        assert [amount for _, amount, _ in collector.received] == [10**25, 4999747487500631281248422]

    def test_exact_output_sell(self):
        market, ledger, _ = _market()
        _buy(market, ledger, "alice", 10**27)

        ledger.transfer(TOKEN, "alice", MARKET, 26587966286458748770306560 + 268565316024835846164713)
        event = market.swap("carol", True, -(10**26), market.price_a, sender="alice")

        assert event.amount1 == -(10**26)
        assert event.fee_amount_in == 268565316024835846164713
        assert event.fee_amount1 == 958855461417482623915581
        assert event.price == 149665258795634723820124483758
        assert ledger.balance_of("carol", REF) == 10**26

    def test_sell_without_deposit_fails(self):
        market, ledger, _ = _market()
        _buy(market, ledger, "alice", 10**27)
        state = market.state
        with pytest.raises(InsufficientFundsError) as excinfo:
            market.swap("alice", True, 1000, market.price_a, sender="alice")
        assert excinfo.value.asset == TOKEN
        assert market.state == state
        assert len(market.events) == 1

    def test_sell_at_bottom_has_no_valid_limit(self):
        market, _, _ = _market()
        with pytest.raises(InvalidPriceLimitError):
            market.swap("alice", True, 1, market.price_a, sender="alice")

    def test_zero_amount_rejected(self):
        market, _, _ = _market()
        with pytest.raises(ZeroAmountError):
            market.swap("alice", False, 0, market.price_max, sender="alice")


def _sell(market: Market, ledger: AssetLedger, holder: str, amount: int) -> SwapEvent:
    ledger.transfer(TOKEN, holder, MARKET, amount)
    return market.swap(holder, True, amount, market.price_a, sender=holder)


def test_split_sells_move_value_between_output_and_fee_only() -> None:
    whole_market, whole_ledger, _ = _market()
    split_market, split_ledger, _ = _market()
    _buy(whole_market, whole_ledger, "alice", 2 * 10**27)
    _buy(split_market, split_ledger, "alice", 2 * 10**27)

    whole = _sell(whole_market, whole_ledger, "alice", 3 * 10**26)
    first = _sell(split_market, split_ledger, "alice", 10**26)
    second = _sell(split_market, split_ledger, "alice", 2 * 10**26)

    assert whole.fee_amount1 == 8286008588282652007071008
    assert first.fee_amount1 + second.fee_amount1 == 10423454139706785094461388
    # The first fee is sold at a higher price, so the split pays more in fees
    # and the trader receives correspondingly less.
    assert first.fee_amount1 + second.fee_amount1 >= whole.fee_amount1
    assert -(first.amount1 + second.amount1) <= -whole.amount1

    whole_outflow = -whole.amount1 + whole.fee_amount1
    split_outflow = -(first.amount1 + second.amount1) + first.fee_amount1 + second.fee_amount1
    assert abs(whole_outflow - split_outflow) <= 10
    assert abs(whole_market.price - split_market.price) <= 1_000
    assert whole_market.reserve1 - split_market.reserve1 == split_outflow - whole_outflow


class TestReentrancy:
    def test_collector_reentry_is_rejected_and_rolled_back(self):
        class ReentrantCollector(RecordingCollector):
            market = None

            def on_fee_received(self, asset, amount, *, market):
                self.market.swap("mallory", False, 1, self.market.price_max, sender="mallory")

        collector = ReentrantCollector()
        market, ledger, _ = _market(collector=collector)
        collector.market = market
        _deposit_ref(ledger, "alice", 10**27)
        state = market.state
        balances = ledger.get_all_balances()

        with pytest.raises(ReentrancyError):
            market.swap("alice", False, 10**27, market.price_max, sender="alice")

        assert market.state == state
        assert ledger.get_all_balances() == balances
        assert market.events == ()
        assert not market._guard.held

    def test_transfer_hook_reentry_is_rejected(self):
        market, ledger, _ = _market()
        quotes_seen = []

        def hook(asset, sender, amount):
            quotes_seen.append(market.price)
            market.swap("mallory", False, 1, market.price_max, sender="mallory")

        ledger.register_hook("mallory", hook)
        _deposit_ref(ledger, "alice", 10**27)
        with pytest.raises(ReentrancyError):
            market.swap("mallory", False, 10**27, market.price_max, sender="alice")

        # The hook ran mid-call and still saw the pre-swap price.
        assert quotes_seen == [market.price_a]
        assert market.price == market.price_a
        assert ledger.balance_of("mallory", TOKEN) == 0

        event = market.swap("alice", False, 10**27, market.price_max, sender="alice")
        assert event.price == BUY_PRICE


class TestMigrate:
    def test_migrate_sweeps_balances(self):
        market, ledger, collector = _market()
        _buy(market, ledger, "alice", 10**27)

        amounts = market.migrate("pool", sender=collector.address)

        assert amounts == (10**27 - BUY_OUT, 99 * 10**25)
        assert ledger.balance_of("pool", TOKEN) == 10**27 - BUY_OUT
        assert ledger.balance_of("pool", REF) == 99 * 10**25
        assert ledger.balance_of(MARKET, TOKEN) == 0
        assert market.migrated
        assert market.status is MarketStatus.MIGRATED
        assert (market.reserve0, market.reserve1) == (0, 0)

    def test_migrate_requires_collector(self):
        market, _, _ = _market()
        with pytest.raises(UnauthorizedError):
            market.migrate("pool", sender="alice")
        assert not market.migrated

    def test_no_trading_or_second_migration_after_migrate(self):
        market, ledger, collector = _market()
        market.migrate("pool", sender=collector.address)
        with pytest.raises(MarketMigratedError):
            market.swap("alice", False, 1, market.price_max, sender="alice")
        with pytest.raises(AlreadyMigratedError):
            market.migrate("pool", sender=collector.address)

    def test_migrate_before_initialize_rejected(self):
        market, _, collector = _market(initialize=False)
        with pytest.raises(NotInitializedError):
            market.migrate("pool", sender=collector.address)
