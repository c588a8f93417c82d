"""
Stateful bonding-curve market.

This is an imperative-shell wrapper around the functional core:
- Quotes with `quote_swap` against the current `MarketState` snapshot.
- Moves assets through the narrow `AssetLedger` balance/transfer interface.
- Reports reference-asset fees to its collector.

Every state-changing call runs inside the market's exclusive-access guard and
the ledger's `atomic()` block, and publishes its new snapshot only at the very
end. A call that raises leaves price, reserves, balances and events untouched.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from typing import List, Optional, Protocol, Tuple

from ..core.errors import (
    AlreadyInitializedError,
    AlreadyMigratedError,
    IdenticalAssetsError,
    InsufficientFundsError,
    InvalidFeeError,
    MarketMigratedError,
    NotInitializedError,
    ReentrancyError,
    UnauthorizedError,
    ZeroAmountError,
)
from ..core.fixed_point import MAX_FEE, add_signed_delta128
from ..core.segments import CurveConfig, SwapQuote, quote_swap
from ..state.balances import Amount, AssetId, AssetLedger, Holder
from ..state.market_state import MarketState, MarketStatus

logger = logging.getLogger(__name__)


class FeeCollector(Protocol):
    """Receives reference-asset fees. Must not call back into the paying market."""

    address: Holder

    def on_fee_received(self, asset: AssetId, amount: Amount, *, market: Holder) -> None:
        ...


@dataclass(frozen=True)
class SwapEvent:
    """Trade record. `amount0`/`amount1` are signed from the market's side."""

    sender: Holder
    recipient: Holder
    amount0: int
    amount1: int
    fee_amount_in: int
    fee_amount1: int
    price: int


class ExclusiveGuard:
    """
    Per-market mutual exclusion that rejects instead of waiting.

    A nested entry from the same call stack (a collector notification or a
    transfer hook calling back into the market) would deadlock on a blocking
    lock; here it raises `ReentrancyError` immediately.
    """

    def __init__(self, name: str) -> None:
        self._name = name
        self._lock = threading.Lock()

    @property
    def held(self) -> bool:
        return self._lock.locked()

    def __enter__(self) -> "ExclusiveGuard":
        if not self._lock.acquire(blocking=False):
            raise ReentrancyError(f"market {self._name} is already executing a call")
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._lock.release()


class Market:
    """Two-segment bonding-curve market for one traded asset."""

    def __init__(
        self,
        curve: CurveConfig,
        *,
        address: Holder,
        factory: Holder,
        collector: FeeCollector,
        quote_asset: AssetId,
        ledger: AssetLedger,
    ) -> None:
        self._curve = curve
        self._address = address
        self._factory = factory
        self._collector = collector
        self._quote_asset = quote_asset
        self._ledger = ledger
        self._state = MarketState()
        self._events: List[SwapEvent] = []
        self._guard = ExclusiveGuard(address)

    # -- Accessors -------------------------------------------------------------

    @property
    def address(self) -> Holder:
        return self._address

    @property
    def factory(self) -> Holder:
        return self._factory

    @property
    def collector(self) -> Holder:
        return self._collector.address

    @property
    def curve(self) -> CurveConfig:
        return self._curve

    @property
    def liquidity_a(self) -> int:
        return self._curve.liquidity_a

    @property
    def liquidity_b(self) -> int:
        return self._curve.liquidity_b

    @property
    def price_a(self) -> int:
        return self._curve.price_a

    @property
    def price_b(self) -> int:
        return self._curve.price_b

    @property
    def price_max(self) -> int:
        return self._curve.price_max

    @property
    def max_supply(self) -> int:
        return self._curve.max_supply

    @property
    def base_asset(self) -> Optional[AssetId]:
        return self._state.traded_asset

    @property
    def quote_asset(self) -> AssetId:
        return self._quote_asset

    @property
    def price(self) -> int:
        return self._state.price

    @property
    def fee_rate(self) -> int:
        return self._state.fee_rate

    @property
    def reserve0(self) -> int:
        return self._state.reserve0

    @property
    def reserve1(self) -> int:
        return self._state.reserve1

    @property
    def migrated(self) -> bool:
        return self._state.migrated

    @property
    def status(self) -> MarketStatus:
        return self._state.status

    @property
    def state(self) -> MarketState:
        return self._state

    @property
    def events(self) -> Tuple[SwapEvent, ...]:
        return tuple(self._events)

    # -- Lifecycle ---------------------------------------------------------------

    def initialize(self, traded_asset: AssetId, fee_rate: int) -> None:
        """Bind the traded asset and fee rate, and mint the full supply to the market."""
        if self._state.traded_asset is not None:
            raise AlreadyInitializedError(f"market {self._address} is already initialized")
        if traded_asset == self._quote_asset:
            raise IdenticalAssetsError(f"traded asset equals reference asset: {traded_asset}")
        if not isinstance(fee_rate, int) or isinstance(fee_rate, bool) or not (0 <= fee_rate <= MAX_FEE):
            raise InvalidFeeError(f"fee_rate must be an int in [0, {MAX_FEE}]: {fee_rate!r}")

        supply = self._curve.max_supply
        self._ledger.mint(traded_asset, self._address, supply)
        self._state = MarketState(
            traded_asset=traded_asset,
            fee_rate=fee_rate,
            price=self._curve.price_a,
            reserve0=supply,
            reserve1=0,
        )
        logger.info(
            "market %s initialized: asset=%s fee_rate=%s supply=%s",
            self._address, traded_asset, fee_rate, supply,
        )

    def _require_initialized(self, state: MarketState) -> AssetId:
        if state.traded_asset is None:
            raise NotInitializedError(f"market {self._address} is not initialized")
        return state.traded_asset

    # -- Quoting -------------------------------------------------------------------

    def get_delta_amounts(self, zero_for_one: bool, delta_amount: int, price_limit: int) -> SwapQuote:
        """
        Read-only quote against the current state.

        The result is stale as soon as another swap executes; pass the same
        `price_limit` to `swap` to bound the slippage that race can cause.
        """
        state = self._state
        self._require_initialized(state)
        quote = quote_swap(
            self._curve,
            price=state.price,
            fee_rate=state.fee_rate,
            zero_for_one=zero_for_one,
            delta_amount=delta_amount,
            price_limit=price_limit,
        )
        logger.debug(
            "quote %s zero_for_one=%s delta=%s -> in=%s out=%s fee=%s price=%s",
            self._address, zero_for_one, delta_amount,
            quote.amount_in, quote.amount_out, quote.fee_amount_in, quote.next_price,
        )
        return quote

    # -- Execution -----------------------------------------------------------------

    def swap(
        self,
        recipient: Holder,
        zero_for_one: bool,
        delta_amount: int,
        price_limit: int,
        *,
        sender: Holder,
    ) -> SwapEvent:
        """
        Execute a swap. The input must already be held by the market.

        `zero_for_one=True` sells the traded asset for the reference asset.
        `delta_amount > 0` is exact input, `< 0` exact output.
        """
        if delta_amount == 0:
            raise ZeroAmountError("swap amount must be non-zero")
        if self._state.migrated:
            raise MarketMigratedError(f"market {self._address} has migrated")

        with self._guard, self._ledger.atomic():
            state = self._state
            traded_asset = self._require_initialized(state)
            quote = self.get_delta_amounts(zero_for_one, delta_amount, price_limit)
            amount0 = quote.amount0_delta(zero_for_one)
            amount1 = quote.amount1_delta(zero_for_one)
            price = quote.next_price

            if zero_for_one:
                reserve0 = add_signed_delta128(state.reserve0, amount0)
                reserve1 = add_signed_delta128(state.reserve1, amount1)
                self._require_funded(traded_asset, reserve0)
                self._ledger.transfer(self._quote_asset, self._address, recipient, quote.amount_out)
                fee_amount1, price = self._convert_fee(price, quote.fee_amount_in)
                reserve1 = add_signed_delta128(reserve1, -fee_amount1)
            else:
                fee_amount1 = quote.fee_amount_in
                reserve0 = add_signed_delta128(state.reserve0, amount0)
                reserve1 = add_signed_delta128(state.reserve1, amount1 - fee_amount1)
                self._require_funded(self._quote_asset, reserve1 + fee_amount1)
                self._ledger.transfer(traded_asset, self._address, recipient, quote.amount_out)

            event = SwapEvent(
                sender=sender,
                recipient=recipient,
                amount0=amount0,
                amount1=amount1,
                fee_amount_in=quote.fee_amount_in,
                fee_amount1=fee_amount1,
                price=price,
            )

            if fee_amount1 > 0:
                self._ledger.transfer(self._quote_asset, self._address, self._collector.address, fee_amount1)
                self._collector.on_fee_received(self._quote_asset, fee_amount1, market=self._address)

            self._state = replace(state, price=price, reserve0=reserve0, reserve1=reserve1)
            self._events.append(event)

        logger.info(
            "swap %s sender=%s recipient=%s amount0=%s amount1=%s fee_in=%s fee1=%s price=%s",
            self._address, sender, recipient, amount0, amount1, quote.fee_amount_in, fee_amount1, price,
        )
        return event

    def _require_funded(self, asset: AssetId, required: int) -> None:
        held = self._ledger.balance_of(self._address, asset)
        if held < required:
            raise InsufficientFundsError(asset, required, held)

    def _convert_fee(self, price: int, fee_amount0: int) -> Tuple[int, int]:
        """
        Sell a traded-asset fee into the curve for reference asset.

        Runs a zero-fee exact-input quote from the already-updated price toward
        `price_a`. Returns (reference-asset fee, resulting price). Whatever cannot
        be sold because the curve bottom is reached stays in `reserve0`.
        """
        if fee_amount0 == 0 or price <= self._curve.price_a:
            return 0, price
        conversion = quote_swap(
            self._curve,
            price=price,
            fee_rate=0,
            zero_for_one=True,
            delta_amount=fee_amount0,
            price_limit=self._curve.price_a,
        )
        return conversion.amount_out, conversion.next_price

    def migrate(self, recipient: Holder, *, sender: Holder) -> Tuple[Amount, Amount]:
        """Sweep both balances to `recipient` and stop trading for good."""
        if sender != self._collector.address:
            raise UnauthorizedError(f"only the collector may migrate market {self._address}")

        with self._guard, self._ledger.atomic():
            state = self._state
            traded_asset = self._require_initialized(state)
            if state.migrated:
                raise AlreadyMigratedError(f"market {self._address} has already migrated")

            amount0 = self._ledger.balance_of(self._address, traded_asset)
            amount1 = self._ledger.balance_of(self._address, self._quote_asset)
            if amount0:
                self._ledger.transfer(traded_asset, self._address, recipient, amount0)
            if amount1:
                self._ledger.transfer(self._quote_asset, self._address, recipient, amount1)
            self._state = replace(state, reserve0=0, reserve1=0, migrated=True)

        logger.info("market %s migrated to %s: amount0=%s amount1=%s", self._address, recipient, amount0, amount1)
        return amount0, amount1

    def __repr__(self) -> str:
        return f"Market({self._address}, status={self.status.value}, price={self.price})"
