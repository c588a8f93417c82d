"""
Curve math for a single contiguous price segment.

Prices are Q64.96 square roots: ``sqrt(price) * 2^96`` where price is reference
asset (asset 1) per traded asset (asset 0). Inside a segment the liquidity ``L``
is fixed, and the reserves relate to the square-root price linearly:

    amount0 = L * (1/p_low - 1/p_high)      (traded asset)
    amount1 = L * (p_high - p_low)          (reference asset)

Rounding is always in the market's favour: amounts the swapper must supply round
up, amounts the swapper receives round down.

Algorithm Design:
- Type: Fixed-Point Integer Arithmetic / Deterministic Rounding
- Time Complexity: O(1) per segment quote
- Invariant: a quote never over-pays output nor under-collects fee
"""

from __future__ import annotations

from dataclasses import dataclass

from .errors import SegmentOverflowError
from .fixed_point import (
    MAX_FEE,
    Q96,
    RESOLUTION,
    ceil_div,
    full_mul_div,
    full_mul_div_round_up,
)


@dataclass(frozen=True)
class SegmentQuote:
    next_price: int
    amount_in: int
    amount_out: int
    fee_amount_in: int


def _require_price(name: str, value: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int")
    if value <= 0:
        raise ValueError(f"{name} must be positive: {value}")


def _ordered(price_a: int, price_b: int) -> tuple[int, int]:
    return (price_a, price_b) if price_a <= price_b else (price_b, price_a)


def liquidity_from_amount0(price_low: int, price_high: int, amount0: int) -> int:
    """
    Liquidity that spans exactly ``amount0`` of the traded asset over the range.

        L = floor(amount0 * p_low * p_high / ((p_high - p_low) << 96))

    Only used when a market is created, to turn a segment capacity into ``L``.
    """
    _require_price("price_low", price_low)
    _require_price("price_high", price_high)
    if price_high <= price_low:
        raise ValueError("price_high must be above price_low")
    if amount0 < 0:
        raise ValueError(f"amount0 must be non-negative: {amount0}")
    return full_mul_div(amount0, price_low * price_high, (price_high - price_low) << RESOLUTION)


def amount0(price_a: int, price_b: int, liquidity: int, round_up: bool) -> int:
    """Traded-asset amount spanning the range at ``liquidity``."""
    price_low, price_high = _ordered(price_a, price_b)
    _require_price("price_low", price_low)
    if liquidity < 0:
        raise ValueError(f"liquidity must be non-negative: {liquidity}")

    numerator1 = liquidity << RESOLUTION
    numerator2 = price_high - price_low
    if round_up:
        return ceil_div(full_mul_div_round_up(numerator1, numerator2, price_high), price_low)
    # floor(floor(a / b) / c) == floor(a / (b * c)) for positive integers.
    return full_mul_div(numerator1, numerator2, price_high) // price_low


def amount1(price_a: int, price_b: int, liquidity: int, round_up: bool) -> int:
    """Reference-asset amount spanning the range at ``liquidity``."""
    price_low, price_high = _ordered(price_a, price_b)
    if liquidity < 0:
        raise ValueError(f"liquidity must be non-negative: {liquidity}")
    if round_up:
        return full_mul_div_round_up(liquidity, price_high - price_low, Q96)
    return full_mul_div(liquidity, price_high - price_low, Q96)


def next_price_from_amount0(price: int, liquidity: int, amount: int) -> int:
    """
    Price after adding (``amount > 0``) or removing (``amount < 0``) traded asset.

        p' = ceil(L * 2^96 * p / (L * 2^96 + amount * p))

    Rounds up: adding moves the price down by no more than exact, removing moves
    it up by at least exact.
    """
    _require_price("price", price)
    _require_price("liquidity", liquidity)
    if amount == 0:
        return price

    numerator = liquidity << RESOLUTION
    denominator = numerator + amount * price
    if denominator <= 0:
        raise SegmentOverflowError(
            f"removing {-amount} of asset 0 exceeds the segment at liquidity {liquidity}"
        )
    return full_mul_div_round_up(numerator, price, denominator)


def next_price_from_amount1(price: int, liquidity: int, amount: int) -> int:
    """
    Price after adding (``amount > 0``) or removing (``amount < 0``) reference asset.

        p' = floor((p * L + amount * 2^96) / L)
    """
    _require_price("price", price)
    _require_price("liquidity", liquidity)
    if amount == 0:
        return price

    numerator = price * liquidity + amount * Q96
    if numerator <= 0:
        raise SegmentOverflowError(
            f"removing {-amount} of asset 1 exceeds the segment at liquidity {liquidity}"
        )
    return numerator // liquidity


# -- Direction helpers ---------------------------------------------------------
# zero_for_one: asset 0 in, asset 1 out, price falls.

def _amount_in(price: int, next_price: int, liquidity: int, zero_for_one: bool) -> int:
    if zero_for_one:
        return amount0(next_price, price, liquidity, True)
    return amount1(price, next_price, liquidity, True)


def _amount_out(price: int, next_price: int, liquidity: int, zero_for_one: bool) -> int:
    if zero_for_one:
        return amount1(next_price, price, liquidity, False)
    return amount0(price, next_price, liquidity, False)


def _next_price_from_input(price: int, liquidity: int, amount_in: int, zero_for_one: bool) -> int:
    if zero_for_one:
        return next_price_from_amount0(price, liquidity, amount_in)
    return next_price_from_amount1(price, liquidity, amount_in)


def _next_price_from_output(price: int, liquidity: int, amount_out: int, zero_for_one: bool) -> int:
    if zero_for_one:
        return next_price_from_amount1(price, liquidity, -amount_out)
    return next_price_from_amount0(price, liquidity, -amount_out)


def _fee_on_top(amount_in: int, fee_rate: int) -> int:
    if amount_in == 0:
        return 0
    return ceil_div(amount_in * fee_rate, MAX_FEE - fee_rate)


def quote_segment(
    price: int,
    target_price: int,
    liquidity: int,
    delta_amount: int,
    fee_rate: int,
) -> SegmentQuote:
    """
    Quote a swap that moves ``price`` toward ``target_price`` inside one segment.

    ``delta_amount > 0`` is exact input (fee included in the amount),
    ``delta_amount < 0`` is exact output. The segment is exhausted when the
    request is large enough to reach ``target_price``.

    Exact input:
        remaining = floor(delta * (MAX_FEE - fee) / MAX_FEE)
        if reaching the target needs more than `remaining`, stop early and the
        fee is whatever is left of `delta`; otherwise stop at the target and
        fee = ceil(amount_in * fee / (MAX_FEE - fee)).

    Exact output:
        stop early when the target would yield more than requested; the fee is
        always layered on top of the input.
    """
    if not (0 <= fee_rate <= MAX_FEE):
        raise ValueError(f"fee_rate must be in [0, {MAX_FEE}]: {fee_rate}")
    zero_for_one = target_price <= price
    if delta_amount == 0:
        return SegmentQuote(next_price=price, amount_in=0, amount_out=0, fee_amount_in=0)

    if delta_amount > 0:
        remaining = full_mul_div(delta_amount, MAX_FEE - fee_rate, MAX_FEE)
        amount_in = _amount_in(price, target_price, liquidity, zero_for_one)
        if amount_in > remaining:
            next_price = _next_price_from_input(price, liquidity, remaining, zero_for_one)
            amount_in = _amount_in(price, next_price, liquidity, zero_for_one)
            fee_amount_in = delta_amount - amount_in
        else:
            next_price = target_price
            fee_amount_in = _fee_on_top(amount_in, fee_rate)
        amount_out = _amount_out(price, next_price, liquidity, zero_for_one)
    else:
        requested = -delta_amount
        amount_out = _amount_out(price, target_price, liquidity, zero_for_one)
        if amount_out > requested:
            next_price = _next_price_from_output(price, liquidity, requested, zero_for_one)
            amount_out = min(_amount_out(price, next_price, liquidity, zero_for_one), requested)
        else:
            next_price = target_price
        amount_in = _amount_in(price, next_price, liquidity, zero_for_one)
        fee_amount_in = _fee_on_top(amount_in, fee_rate)

    return SegmentQuote(
        next_price=next_price,
        amount_in=amount_in,
        amount_out=amount_out,
        fee_amount_in=fee_amount_in,
    )
