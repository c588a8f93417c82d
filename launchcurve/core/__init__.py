"""
Core curve algorithms (pure, integer-only)
"""

from .curve_math import (
    SegmentQuote,
    amount0,
    amount1,
    liquidity_from_amount0,
    next_price_from_amount0,
    next_price_from_amount1,
    quote_segment,
)
from .fixed_point import (
    MAX_FEE,
    Q96,
    add_signed_delta128,
    cast_to_signed127,
    cast_to_unsigned127,
    ceil_div,
    full_mul_div,
    full_mul_div_round_up,
    to_signed,
)
from .segments import CurveConfig, Segment, SwapQuote, quote_swap

__all__ = [
    "SegmentQuote",
    "amount0",
    "amount1",
    "liquidity_from_amount0",
    "next_price_from_amount0",
    "next_price_from_amount1",
    "quote_segment",
    "MAX_FEE",
    "Q96",
    "add_signed_delta128",
    "cast_to_signed127",
    "cast_to_unsigned127",
    "ceil_div",
    "full_mul_div",
    "full_mul_div_round_up",
    "to_signed",
    "CurveConfig",
    "Segment",
    "SwapQuote",
    "quote_swap",
]
