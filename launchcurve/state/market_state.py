"""
Mutable market state, held as an immutable snapshot.

A market replaces its `MarketState` wholesale at the end of a successful call;
a failing call simply never publishes its candidate snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..core.fixed_point import MAX_FEE, UINT128_MAX
from .balances import AssetId


class MarketStatus(Enum):
    UNINITIALIZED = "UNINITIALIZED"
    INITIALIZED = "INITIALIZED"
    MIGRATED = "MIGRATED"


@dataclass(frozen=True)
class MarketState:
    """Market state."""

    traded_asset: Optional[AssetId] = None
    fee_rate: int = 0
    price: int = 0
    reserve0: int = 0
    reserve1: int = 0
    migrated: bool = False

    def __post_init__(self) -> None:
        if not (0 <= self.fee_rate <= MAX_FEE):
            raise ValueError(f"fee_rate must be in [0, {MAX_FEE}]: {self.fee_rate}")
        if self.price < 0:
            raise ValueError("price must be non-negative")
        if not (0 <= self.reserve0 <= UINT128_MAX):
            raise ValueError(f"reserve0 must fit unsigned 128 bits: {self.reserve0}")
        if not (0 <= self.reserve1 <= UINT128_MAX):
            raise ValueError(f"reserve1 must fit unsigned 128 bits: {self.reserve1}")
        if self.migrated and self.traded_asset is None:
            raise ValueError("an uninitialized market cannot be migrated")

    @property
    def status(self) -> MarketStatus:
        if self.traded_asset is None:
            return MarketStatus.UNINITIALIZED
        if self.migrated:
            return MarketStatus.MIGRATED
        return MarketStatus.INITIALIZED
