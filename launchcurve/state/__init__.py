"""
State management for LaunchCurve markets
"""

from .balances import AlreadyMintedError, AssetLedger, InsufficientBalanceError, LedgerError
from .market_state import MarketState, MarketStatus

__all__ = [
    "AlreadyMintedError",
    "AssetLedger",
    "InsufficientBalanceError",
    "LedgerError",
    "MarketState",
    "MarketStatus",
]
