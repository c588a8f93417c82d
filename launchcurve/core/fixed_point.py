"""
Fixed-point integer primitives for the curve engine.

Every amount, price and liquidity value is a plain Python int. The helpers here
emulate the bounded widths the curve relies on (127/128/256-bit) and fail loudly
instead of wrapping:

- casts check the target range and return the value unchanged,
- `add_signed_delta128` applies a signed delta to an unsigned 128-bit value,
- `full_mul_div` / `full_mul_div_round_up` compute `x*y/d` exactly.

Python ints are arbitrary precision, so the wide product `x*y` is exact and the
only overflow that matters is the result width (256 bits).
"""

from __future__ import annotations

from .errors import CastOverflowError, DeltaOverflowError, DivisionByZeroError, MulDivOverflowError

Q96: int = 1 << 96
RESOLUTION: int = 96

# Fee rates are parts-per-million.
MAX_FEE: int = 1_000_000

UINT128_MAX: int = (1 << 128) - 1
UINT256_MAX: int = (1 << 256) - 1
INT127_MAX: int = (1 << 127) - 1
INT256_MAX: int = (1 << 255) - 1

# Q64.96 square-root prices fit 160 bits.
MAX_SQRT_PRICE: int = (1 << 160) - 1


def _require_int(name: str, value: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int")


def cast_to_signed127(x: int) -> int:
    """Validate a caller-supplied trade size: ``|x| <= 2^127 - 1``."""
    _require_int("x", x)
    if not (-INT127_MAX <= x <= INT127_MAX):
        raise CastOverflowError(f"value does not fit signed 127 bits: {x}")
    return x


def cast_to_unsigned127(x: int) -> int:
    """Validate an amount that flows through reserves: ``0 <= x < 2^127``."""
    _require_int("x", x)
    if not (0 <= x <= INT127_MAX):
        raise CastOverflowError(f"value does not fit unsigned 127 bits: {x}")
    return x


def to_signed(x: int) -> int:
    """Reinterpret an unsigned 256-bit value as signed; fails if it would be negative."""
    _require_int("x", x)
    if not (0 <= x <= INT256_MAX):
        raise CastOverflowError(f"value is negative when reinterpreted as signed: {x}")
    return x


def add_signed_delta128(x: int, delta: int) -> int:
    """
    Return ``x + delta`` for an unsigned 128-bit ``x``.

    One range check on the true result catches both overflow past ``2^128 - 1``
    and underflow below zero.
    """
    _require_int("x", x)
    _require_int("delta", delta)
    if not (0 <= x <= UINT128_MAX):
        raise DeltaOverflowError(f"x does not fit unsigned 128 bits: {x}")
    result = x + delta
    if not (0 <= result <= UINT128_MAX):
        raise DeltaOverflowError(f"{x} + {delta} = {result} does not fit unsigned 128 bits")
    return result


def ceil_div(x: int, d: int) -> int:
    """Integer division rounded toward positive infinity."""
    _require_int("x", x)
    _require_int("d", d)
    if d == 0:
        raise DivisionByZeroError("ceil_div by zero")
    return -((-x) // d)


def _check_mul_div_operands(x: int, y: int, d: int) -> None:
    for name, v in (("x", x), ("y", y), ("d", d)):
        _require_int(name, v)
        if v < 0:
            raise ValueError(f"{name} must be non-negative: {v}")
    if d == 0:
        raise DivisionByZeroError("full_mul_div by zero")


def full_mul_div(x: int, y: int, d: int) -> int:
    """``floor(x * y / d)`` with full intermediate precision."""
    _check_mul_div_operands(x, y, d)
    result = (x * y) // d
    if result > UINT256_MAX:
        raise MulDivOverflowError(f"mul_div result exceeds 256 bits: {x} * {y} / {d}")
    return result


def full_mul_div_round_up(x: int, y: int, d: int) -> int:
    """``ceil(x * y / d)`` with full intermediate precision."""
    _check_mul_div_operands(x, y, d)
    q, r = divmod(x * y, d)
    if r:
        q += 1
    if q > UINT256_MAX:
        raise MulDivOverflowError(f"mul_div result exceeds 256 bits: {x} * {y} / {d}")
    return q
