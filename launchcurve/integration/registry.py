"""
Market registry: factory, metadata store and fee collector.

Markets get deterministic addresses derived from (registry, creator, salt), so an
address (and the traded asset id bound to it) can be computed before the market
exists. Fees forwarded by markets accrue here until the admin withdraws them.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from ..core.errors import UnauthorizedError
from ..core.segments import CurveConfig
from ..state.balances import Amount, AssetId, AssetLedger, Holder
from .config import MarketParams
from .market import Market

logger = logging.getLogger(__name__)

_MARKET_DOMAIN = b"launchcurve:market:v1"
_ASSET_DOMAIN = b"launchcurve:asset:v1"


def _sha256_hex(*parts: bytes) -> str:
    h = hashlib.sha256()
    for part in parts:
        h.update(len(part).to_bytes(4, "big"))
        h.update(part)
    return "0x" + h.hexdigest()


@dataclass(frozen=True)
class MarketRecord:
    creator: Holder
    fee_recipient: Holder
    traded_asset: AssetId


class MarketRegistry:
    """Creates markets and collects the reference-asset fees they forward."""

    def __init__(self, ledger: AssetLedger, *, address: Holder, admin: Holder, quote_asset: AssetId) -> None:
        self.address = address
        self._ledger = ledger
        self._admin = admin
        self._quote_asset = quote_asset
        self._markets: Dict[Holder, Market] = {}
        self._records: Dict[Holder, MarketRecord] = {}
        self._fees_by_market: Dict[Tuple[Holder, AssetId], Amount] = {}
        self._unclaimed_by_market: Dict[Tuple[Holder, AssetId], Amount] = {}
        self._fees_unclaimed: Dict[AssetId, Amount] = {}

    @property
    def admin(self) -> Holder:
        return self._admin

    def compute_market_address(self, creator: Holder, salt: str) -> Holder:
        return _sha256_hex(_MARKET_DOMAIN, self.address.encode(), creator.encode(), salt.encode())

    @staticmethod
    def compute_asset_id(market_address: Holder) -> AssetId:
        return _sha256_hex(_ASSET_DOMAIN, market_address.encode())

    def create_market(
        self,
        params: MarketParams,
        *,
        creator: Holder,
        salt: str,
        fee_recipient: Optional[Holder] = None,
    ) -> Market:
        """Create and initialize a market; its address is `compute_market_address(creator, salt)`."""
        address = self.compute_market_address(creator, salt)
        if address in self._markets:
            raise ValueError(f"market already exists at {address}")

        curve = CurveConfig.from_capacities(
            price_a=params.price_a,
            price_b=params.price_b,
            price_max=params.price_max,
            amount0_a=params.amount0_a,
            amount0_b=params.amount0_b,
        )
        market = Market(
            curve,
            address=address,
            factory=self.address,
            collector=self,
            quote_asset=self._quote_asset,
            ledger=self._ledger,
        )
        traded_asset = self.compute_asset_id(address)
        market.initialize(traded_asset, params.fee_rate)

        self._markets[address] = market
        self._records[address] = MarketRecord(
            creator=creator,
            fee_recipient=fee_recipient if fee_recipient is not None else creator,
            traded_asset=traded_asset,
        )
        logger.info("created market %s for creator %s (asset %s)", address, creator, traded_asset)
        return market

    def market(self, address: Holder) -> Market:
        try:
            return self._markets[address]
        except KeyError:
            raise KeyError(f"unknown market: {address}") from None

    def record(self, address: Holder) -> MarketRecord:
        try:
            return self._records[address]
        except KeyError:
            raise KeyError(f"unknown market: {address}") from None

    # -- Fees ------------------------------------------------------------------

    def on_fee_received(self, asset: AssetId, amount: Amount, *, market: Holder) -> None:
        if market not in self._markets:
            raise UnauthorizedError(f"fee notification from unknown market {market}")
        if amount <= 0:
            raise ValueError(f"fee amount must be positive: {amount}")
        key = (market, asset)
        self._fees_by_market[key] = self._fees_by_market.get(key, 0) + amount
        self._unclaimed_by_market[key] = self._unclaimed_by_market.get(key, 0) + amount
        self._fees_unclaimed[asset] = self._fees_unclaimed.get(asset, 0) + amount
        logger.debug("fee received from %s: %s %s", market, amount, asset)

    def fees_collected(self, market: Holder, asset: AssetId) -> Amount:
        """Lifetime fees a market has forwarded in `asset`."""
        return self._fees_by_market.get((market, asset), 0)

    def fees_unclaimed(self, asset: AssetId, market: Optional[Holder] = None) -> Amount:
        if market is None:
            return self._fees_unclaimed.get(asset, 0)
        return self._unclaimed_by_market.get((market, asset), 0)

    def claim_fees(self, market_address: Holder, asset: AssetId, *, sender: Holder, to: Optional[Holder] = None) -> Amount:
        """
        Pay one market's unclaimed fees in `asset` to its recorded fee recipient.

        Only that recipient may claim; `to` defaults to the recipient itself.
        """
        record = self.record(market_address)
        if sender != record.fee_recipient:
            raise UnauthorizedError(f"only {record.fee_recipient} may claim fees of market {market_address}")
        key = (market_address, asset)
        amount = self._unclaimed_by_market.get(key, 0)
        if amount:
            self._ledger.transfer(asset, self.address, to if to is not None else sender, amount)
            self._unclaimed_by_market[key] = 0
            self._fees_unclaimed[asset] -= amount
        logger.info("market %s fee recipient claimed %s %s", market_address, amount, asset)
        return amount

    def withdraw_fees(self, asset: AssetId, *, sender: Holder, to: Holder) -> Amount:
        """Transfer every unclaimed fee in `asset`, across all markets, to `to`. Admin only."""
        if sender != self._admin:
            raise UnauthorizedError("only the registry admin may withdraw fees")
        amount = self._fees_unclaimed.get(asset, 0)
        if amount:
            self._ledger.transfer(asset, self.address, to, amount)
            self._fees_unclaimed[asset] = 0
            for key in self._unclaimed_by_market:
                if key[1] == asset:
                    self._unclaimed_by_market[key] = 0
        logger.info("withdrew %s %s to %s", amount, asset, to)
        return amount

    # -- Migration ---------------------------------------------------------------

    def migrate_market(self, market_address: Holder, recipient: Holder, *, sender: Holder) -> Tuple[Amount, Amount]:
        if sender != self._admin:
            raise UnauthorizedError("only the registry admin may migrate markets")
        return self.market(market_address).migrate(recipient, sender=self.address)
