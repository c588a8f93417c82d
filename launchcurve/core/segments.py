"""
Two-segment curve configuration and the multi-segment quote.

A market's curve is exactly two ordered segments:

    segment A: [price_a, price_b] at liquidity_a
    segment B: [price_b, price_max] at liquidity_b

A quote evaluates the active segment and, if the request is not yet satisfied
and the price limit lies beyond the shared boundary, the other one. There are at
most two segment evaluations per quote.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, unique

from .curve_math import amount0, liquidity_from_amount0, quote_segment
from .errors import CurveConfigError, InvalidPriceLimitError
from .fixed_point import INT127_MAX, MAX_SQRT_PRICE, cast_to_signed127, cast_to_unsigned127


@unique
class Segment(Enum):
    A = "A"
    B = "B"

    @property
    def other(self) -> "Segment":
        return Segment.B if self is Segment.A else Segment.A


@dataclass(frozen=True)
class CurveConfig:
    """Immutable curve shape. Validated on construction."""

    price_a: int
    price_b: int
    price_max: int
    liquidity_a: int
    liquidity_b: int
    max_supply: int

    def __post_init__(self) -> None:
        for name in ("price_a", "price_b", "price_max", "liquidity_a", "liquidity_b", "max_supply"):
            v = getattr(self, name)
            if not isinstance(v, int) or isinstance(v, bool):
                raise TypeError(f"{name} must be an int")
        if self.price_a <= 0:
            raise CurveConfigError(f"price_a must be positive: {self.price_a}")
        if not (self.price_a < self.price_b < self.price_max):
            raise CurveConfigError(
                f"prices must satisfy price_a < price_b < price_max: "
                f"({self.price_a}, {self.price_b}, {self.price_max})"
            )
        if self.price_max > MAX_SQRT_PRICE:
            raise CurveConfigError(f"price_max exceeds 160 bits: {self.price_max}")
        for name in ("liquidity_a", "liquidity_b"):
            v = getattr(self, name)
            if not (0 < v <= INT127_MAX):
                raise CurveConfigError(f"{name} must be in [1, 2^127 - 1]: {v}")
        if not (0 < self.max_supply <= INT127_MAX):
            raise CurveConfigError(f"max_supply must be in [1, 2^127 - 1]: {self.max_supply}")

    @classmethod
    def from_capacities(
        cls,
        *,
        price_a: int,
        price_b: int,
        price_max: int,
        amount0_a: int,
        amount0_b: int,
    ) -> "CurveConfig":
        """
        Derive both liquidities from per-segment traded-asset capacities.

        ``max_supply`` is the sum of what each segment can actually pay out at
        its (floored) liquidity, so it never exceeds ``amount0_a + amount0_b``.
        """
        if not (0 < price_a < price_b < price_max):
            raise CurveConfigError(
                f"prices must satisfy 0 < price_a < price_b < price_max: ({price_a}, {price_b}, {price_max})"
            )
        if price_max > MAX_SQRT_PRICE:
            raise CurveConfigError(f"price_max exceeds 160 bits: {price_max}")
        if amount0_a <= 0 or amount0_b <= 0:
            raise CurveConfigError(f"segment capacities must be positive: ({amount0_a}, {amount0_b})")

        liquidity_a = liquidity_from_amount0(price_a, price_b, amount0_a)
        liquidity_b = liquidity_from_amount0(price_b, price_max, amount0_b)
        if liquidity_a == 0 or liquidity_b == 0:
            raise CurveConfigError(f"derived liquidity is zero: ({liquidity_a}, {liquidity_b})")
        if liquidity_a > INT127_MAX or liquidity_b > INT127_MAX:
            raise CurveConfigError(f"derived liquidity exceeds 2^127 - 1: ({liquidity_a}, {liquidity_b})")

        capacity_a = amount0(price_a, price_b, liquidity_a, False)
        capacity_b = amount0(price_b, price_max, liquidity_b, False)
        return cls(
            price_a=price_a,
            price_b=price_b,
            price_max=price_max,
            liquidity_a=liquidity_a,
            liquidity_b=liquidity_b,
            max_supply=capacity_a + capacity_b,
        )

    def liquidity(self, segment: Segment) -> int:
        return self.liquidity_a if segment is Segment.A else self.liquidity_b

    def segment_for(self, price: int, zero_for_one: bool) -> Segment:
        """Segment a move starting at ``price`` travels through first."""
        if zero_for_one:
            return Segment.A if price <= self.price_b else Segment.B
        return Segment.A if price < self.price_b else Segment.B

    def capacity(self, segment: Segment) -> int:
        if segment is Segment.A:
            return amount0(self.price_a, self.price_b, self.liquidity_a, False)
        return amount0(self.price_b, self.price_max, self.liquidity_b, False)


@dataclass(frozen=True)
class SwapQuote:
    next_price: int
    amount_in: int
    amount_out: int
    fee_amount_in: int

    def amount0_delta(self, zero_for_one: bool) -> int:
        """Pool-signed traded-asset delta: positive when the market receives it."""
        if zero_for_one:
            return self.amount_in + self.fee_amount_in
        return -self.amount_out

    def amount1_delta(self, zero_for_one: bool) -> int:
        """Pool-signed reference-asset delta: positive when the market receives it."""
        if zero_for_one:
            return -self.amount_out
        return self.amount_in + self.fee_amount_in


def check_price_limit(curve: CurveConfig, price: int, zero_for_one: bool, price_limit: int) -> None:
    if zero_for_one:
        ok = curve.price_a <= price_limit < price
    else:
        ok = price < price_limit <= curve.price_max
    if not ok:
        raise InvalidPriceLimitError(price, price_limit, zero_for_one)


def quote_swap(
    curve: CurveConfig,
    *,
    price: int,
    fee_rate: int,
    zero_for_one: bool,
    delta_amount: int,
    price_limit: int,
) -> SwapQuote:
    """
    Quote a swap from ``price`` toward ``price_limit`` across up to two segments.

    ``delta_amount > 0`` is exact input, ``< 0`` exact output, ``0`` a no-op.
    """
    check_price_limit(curve, price, zero_for_one, price_limit)
    remaining = cast_to_signed127(delta_amount)
    if remaining == 0:
        return SwapQuote(next_price=price, amount_in=0, amount_out=0, fee_amount_in=0)

    segment = curve.segment_for(price, zero_for_one)
    crosses = price_limit < curve.price_b if zero_for_one else price_limit > curve.price_b
    if segment is Segment.B and zero_for_one and crosses:
        target = curve.price_b
    elif segment is Segment.A and not zero_for_one and crosses:
        target = curve.price_b
    else:
        target = price_limit

    amount_in = amount_out = fee_amount_in = 0
    current = price
    for _ in range(2):
        step = quote_segment(current, target, curve.liquidity(segment), remaining, fee_rate)
        current = step.next_price
        amount_in += step.amount_in
        amount_out += step.amount_out
        fee_amount_in += step.fee_amount_in
        if remaining > 0:
            remaining -= step.amount_in + step.fee_amount_in
        else:
            remaining += step.amount_out

        if remaining == 0 or current == price_limit:
            break
        segment = segment.other
        target = price_limit

    cast_to_unsigned127(amount_in + fee_amount_in)
    cast_to_unsigned127(amount_out)
    return SwapQuote(
        next_price=current,
        amount_in=amount_in,
        amount_out=amount_out,
        fee_amount_in=fee_amount_in,
    )
