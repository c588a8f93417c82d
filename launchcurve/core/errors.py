"""Exception types for the bonding-curve market.

Every error aborts the whole call. Nothing in this package catches one of these
to retry internally.
"""

from __future__ import annotations


class LaunchCurveError(Exception):
    """Base class for all market errors."""


# -- Fixed-point layer -------------------------------------------------------

class FixedPointError(LaunchCurveError, ArithmeticError):
    """Base class for numeric range violations."""


class CastOverflowError(FixedPointError):
    """Raised when a value does not fit the target signed/unsigned width."""


class DeltaOverflowError(FixedPointError):
    """Raised when adding a signed delta leaves the unsigned 128-bit range."""


class DivisionByZeroError(FixedPointError, ZeroDivisionError):
    """Division by zero in a fixed-point helper."""


class MulDivOverflowError(FixedPointError):
    """Raised when a multiply-then-divide result exceeds 256 bits."""


class SegmentOverflowError(LaunchCurveError, ArithmeticError):
    """Raised when a price step would push the curve past a degenerate point."""


# -- Construction / initialization -------------------------------------------

class CurveConfigError(LaunchCurveError, ValueError):
    """Malformed curve parameters (bad ordering, zero bounds, zero liquidity)."""


class AlreadyInitializedError(LaunchCurveError):
    """Raised by a second call to ``Market.initialize``."""


class NotInitializedError(LaunchCurveError):
    """Raised when quoting or swapping before ``Market.initialize``."""


class IdenticalAssetsError(LaunchCurveError, ValueError):
    """Traded asset equals the reference asset."""


class InvalidFeeError(LaunchCurveError, ValueError):
    """Fee rate outside ``[0, MAX_FEE]``."""


# -- Swap-time usage errors --------------------------------------------------

class ZeroAmountError(LaunchCurveError, ValueError):
    """Raised when a swap is requested with a zero signed amount."""


class InvalidPriceLimitError(LaunchCurveError, ValueError):
    """Price limit on the wrong side of the current price or outside the curve."""

    def __init__(self, price: int, price_limit: int, zero_for_one: bool) -> None:
        self.price = price
        self.price_limit = price_limit
        self.zero_for_one = zero_for_one
        side = "below" if zero_for_one else "above"
        super().__init__(
            f"price limit {price_limit} must be strictly {side} current price {price} and inside the curve"
        )


class ReentrancyError(LaunchCurveError):
    """Raised when a market is entered while one of its calls is still running."""


class InsufficientFundsError(LaunchCurveError):
    """The market does not hold enough of the input asset to cover the trade."""

    def __init__(self, asset: str, required: int, held: int) -> None:
        self.asset = asset
        self.required = required
        self.held = held
        super().__init__(f"insufficient {asset}: required {required}, held {held}")


class MarketMigratedError(LaunchCurveError):
    """Raised when swapping against a migrated market."""


class AlreadyMigratedError(LaunchCurveError):
    """Raised by a second call to ``Market.migrate``."""


class UnauthorizedError(LaunchCurveError, PermissionError):
    """Caller lacks the role required for the operation."""
