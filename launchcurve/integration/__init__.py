"""
Imperative shell: markets, registry and configuration loading.
"""

from .config import MarketParams, load_market_params, price_from_sqrt_q96, sqrt_price_q96
from .market import ExclusiveGuard, FeeCollector, Market, SwapEvent
from .registry import MarketRecord, MarketRegistry

__all__ = [
    "MarketParams",
    "load_market_params",
    "price_from_sqrt_q96",
    "sqrt_price_q96",
    "ExclusiveGuard",
    "FeeCollector",
    "Market",
    "SwapEvent",
    "MarketRecord",
    "MarketRegistry",
]
