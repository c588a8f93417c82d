"""
Multi-asset balance ledger with one-time mint.

Implements Ledger[Holder, AssetId] -> Amount, the narrow balance/transfer
interface a market uses to move assets. Markets never touch the table directly.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Tuple


# Type aliases
Holder = str  # account or market address
AssetId = str  # 32-byte hex string (0x...)
Amount = int  # Non-negative integer (arbitrary precision)

# (asset, sender, amount) -> None, invoked after a transfer credits the holder.
TransferHook = Callable[[AssetId, Holder, Amount], None]


class LedgerError(ValueError):
    """Base class for ledger failures."""


class InsufficientBalanceError(LedgerError):
    """Raised when a transfer exceeds the sender's balance."""


class AlreadyMintedError(LedgerError):
    """Raised by a second mint of the same asset."""


class AssetLedger:
    """
    Deterministic balance table mapping (holder, asset) -> amount.

    Notes:
    - Each asset can be minted exactly once; its supply is fixed afterwards.
    - Zero balances are omitted to keep the table sparse.
    - `atomic()` snapshots balances and supplies and restores them if the
      wrapped block raises, so a failing market call leaves no trace.
    """

    def __init__(self) -> None:
        self._balances: Dict[Tuple[Holder, AssetId], Amount] = {}
        self._supply: Dict[AssetId, Amount] = {}
        self._hooks: Dict[Holder, List[TransferHook]] = {}

    def balance_of(self, holder: Holder, asset: AssetId) -> Amount:
        """Get balance for (holder, asset). Returns 0 if not found."""
        return self._balances.get((holder, asset), 0)

    def total_supply(self, asset: AssetId) -> Amount:
        return self._supply.get(asset, 0)

    def _set(self, holder: Holder, asset: AssetId, amount: Amount) -> None:
        if amount < 0:
            raise LedgerError(f"Balance cannot be negative: {amount}")
        if amount == 0:
            self._balances.pop((holder, asset), None)
        else:
            self._balances[(holder, asset)] = amount

    def mint(self, asset: AssetId, to: Holder, amount: Amount) -> None:
        """
        Issue the full supply of `asset` to `to`.

        Raises:
            AlreadyMintedError: If `asset` already has a supply
            LedgerError: If amount is not positive
        """
        if amount <= 0:
            raise LedgerError(f"Mint amount must be positive: {amount}")
        if asset in self._supply:
            raise AlreadyMintedError(f"asset {asset} was already minted")
        self._supply[asset] = amount
        self._set(to, asset, self.balance_of(to, asset) + amount)

    def credit(self, holder: Holder, asset: AssetId, amount: Amount) -> None:
        """
        Credit an externally issued asset (e.g. the reference asset) to `holder`.

        Supply of an asset created through `mint` is fixed, so crediting it is
        rejected.
        """
        if amount <= 0:
            raise LedgerError(f"Credit amount must be positive: {amount}")
        if asset in self._supply:
            raise LedgerError(f"asset {asset} has a fixed supply")
        self._set(holder, asset, self.balance_of(holder, asset) + amount)

    def transfer(self, asset: AssetId, sender: Holder, to: Holder, amount: Amount) -> None:
        """
        Move `amount` of `asset` from `sender` to `to`, then run `to`'s hooks.

        Raises:
            InsufficientBalanceError: If sender holds less than amount
        """
        if amount < 0:
            raise LedgerError(f"Transfer amount must be non-negative: {amount}")
        current = self.balance_of(sender, asset)
        if amount > current:
            raise InsufficientBalanceError(
                f"Insufficient balance: {sender} holds {current} of {asset}, needs {amount}"
            )
        self._set(sender, asset, current - amount)
        self._set(to, asset, self.balance_of(to, asset) + amount)
        for hook in self._hooks.get(to, ()):
            hook(asset, sender, amount)

    def register_hook(self, holder: Holder, hook: TransferHook) -> None:
        """Call `hook` after every transfer that credits `holder`."""
        self._hooks.setdefault(holder, []).append(hook)

    @contextmanager
    def atomic(self) -> Iterator["AssetLedger"]:
        balances = dict(self._balances)
        supply = dict(self._supply)
        try:
            yield self
        except BaseException:
            self._balances = balances
            self._supply = supply
            raise

    def get_all_balances(self) -> Dict[Tuple[Holder, AssetId], Amount]:
        return dict(self._balances)

    def __repr__(self) -> str:
        return f"AssetLedger({len(self._balances)} entries, {len(self._supply)} minted assets)"
