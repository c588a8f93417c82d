"""
Market parameters and YAML loading.

A market file looks like::

    market:
      price_a: "1"          # reference asset per traded asset
      price_b: "2"
      price_max: "4"
      amount0_a: 500000000000000000000000000
      amount0_b: 500000000000000000000000000
      fee_rate: 10000       # parts per million

Prices are given either as human prices (int or decimal string, converted
exactly with `Fraction` + `isqrt`) or as raw Q64.96 square roots under
`sqrt_price_a_x96` / `sqrt_price_b_x96` / `sqrt_price_max_x96`. Floats are
rejected so that every derived value is reproducible.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from fractions import Fraction
from pathlib import Path
from typing import Any, Mapping, Union

import yaml

from ..core.fixed_point import MAX_FEE, MAX_SQRT_PRICE, RESOLUTION

logger = logging.getLogger(__name__)

PriceLike = Union[int, str, Fraction]


def sqrt_price_q96(price: PriceLike) -> int:
    """``floor(sqrt(price) * 2^96)`` computed exactly."""
    if isinstance(price, bool) or isinstance(price, float):
        raise TypeError("price must be an int, decimal string or Fraction")
    p = Fraction(price)
    if p <= 0:
        raise ValueError(f"price must be positive: {price}")
    return math.isqrt((p.numerator << (2 * RESOLUTION)) // p.denominator)


def price_from_sqrt_q96(sqrt_price: int) -> Fraction:
    """Exact human price for a Q64.96 square-root price."""
    return Fraction(sqrt_price * sqrt_price, 1 << (2 * RESOLUTION))


@dataclass(frozen=True)
class MarketParams:
    price_a: int
    price_b: int
    price_max: int
    amount0_a: int
    amount0_b: int
    fee_rate: int = 0

    def __post_init__(self) -> None:
        for name in ("price_a", "price_b", "price_max", "amount0_a", "amount0_b", "fee_rate"):
            v = getattr(self, name)
            if not isinstance(v, int) or isinstance(v, bool):
                raise TypeError(f"{name} must be an int")
        if not (0 < self.price_a < self.price_b < self.price_max <= MAX_SQRT_PRICE):
            raise ValueError(
                f"prices must satisfy 0 < price_a < price_b < price_max < 2^160: "
                f"({self.price_a}, {self.price_b}, {self.price_max})"
            )
        if self.amount0_a <= 0 or self.amount0_b <= 0:
            raise ValueError(f"segment capacities must be positive: ({self.amount0_a}, {self.amount0_b})")
        if not (0 <= self.fee_rate <= MAX_FEE):
            raise ValueError(f"fee_rate must be in [0, {MAX_FEE}]: {self.fee_rate}")

    @classmethod
    def from_mapping(cls, obj: Mapping[str, Any]) -> "MarketParams":
        if not isinstance(obj, Mapping):
            raise TypeError("market params must be a mapping")
        prices = {}
        for name in ("price_a", "price_b", "price_max"):
            raw_key = f"sqrt_{name}_x96"
            if raw_key in obj and name in obj:
                raise ValueError(f"give either {name} or {raw_key}, not both")
            if raw_key in obj:
                prices[name] = _require_int(raw_key, obj[raw_key])
            elif name in obj:
                prices[name] = sqrt_price_q96(_require_price(name, obj[name]))
            else:
                raise ValueError(f"missing {name}")

        return cls(
            price_a=prices["price_a"],
            price_b=prices["price_b"],
            price_max=prices["price_max"],
            amount0_a=_require_int("amount0_a", obj.get("amount0_a")),
            amount0_b=_require_int("amount0_b", obj.get("amount0_b")),
            fee_rate=_require_int("fee_rate", obj.get("fee_rate", 0)),
        )


def _require_int(name: str, value: Any) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int, got {type(value).__name__}")
    return value


def _require_price(name: str, value: Any) -> PriceLike:
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise TypeError(f"{name} must be an int or decimal string, got {type(value).__name__}")
    return value


def load_market_params(path: Path) -> MarketParams:
    """Load `MarketParams` from the `market` section of a YAML file."""
    obj = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    if not isinstance(obj, Mapping):
        raise TypeError("market YAML must be a mapping")
    section = obj.get("market")
    if not isinstance(section, Mapping):
        raise TypeError("market YAML must contain a `market` mapping")
    params = MarketParams.from_mapping(section)
    logger.debug("loaded market params from %s: %s", path, params)
    return params
