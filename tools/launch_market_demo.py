#!/usr/bin/env python3

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from launchcurve.integration.config import load_market_params, price_from_sqrt_q96
from launchcurve.integration.registry import MarketRegistry
from launchcurve.state.balances import AssetLedger


def _fmt_price(sqrt_price: int) -> str:
    return f"{float(price_from_sqrt_q96(sqrt_price)):.6f}"


def main() -> int:
    ap = argparse.ArgumentParser(description="Offline launch-market demo: create, buy, sell back, migrate")
    ap.add_argument("--config", type=str, default=str(ROOT / "configs" / "default_market.yaml"))
    ap.add_argument("--buy", type=int, default=10**27, help="reference asset to spend on the buy")
    ap.add_argument("--sell-fraction", type=int, default=50, help="percent of bought units to sell back")
    ap.add_argument("--no-migrate", action="store_true")
    ap.add_argument("-v", "--verbose", action="store_true")
    args = ap.parse_args()

    if args.buy <= 0:
        raise SystemExit("buy must be positive")
    if not (0 <= args.sell_fraction <= 100):
        raise SystemExit("sell-fraction must be in [0, 100]")

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    params = load_market_params(Path(args.config))
    quote_asset = "0x" + "11" * 32
    ledger = AssetLedger()
    registry = MarketRegistry(ledger, address="registry", admin="admin", quote_asset=quote_asset)
    market = registry.create_market(params, creator="creator", salt="demo")
    token = market.base_asset
    print(f"[launch-demo] market={market.address}")
    print(f"[launch-demo] asset={token} supply={market.max_supply} fee_rate={market.fee_rate}")
    print(
        f"[launch-demo] prices: a={_fmt_price(market.price_a)} b={_fmt_price(market.price_b)} "
        f"max={_fmt_price(market.price_max)}"
    )

    trader = "trader"
    ledger.credit(trader, quote_asset, args.buy)
    quote = market.get_delta_amounts(False, args.buy, market.price_max)
    ledger.transfer(quote_asset, trader, market.address, quote.amount_in + quote.fee_amount_in)
    buy = market.swap(trader, False, args.buy, market.price_max, sender=trader)
    print(
        f"[launch-demo] buy:  paid={buy.amount1} got={-buy.amount0} fee={buy.fee_amount1} "
        f"price={_fmt_price(buy.price)}"
    )

    sell_amount = (-buy.amount0) * args.sell_fraction // 100
    if sell_amount > 0 and market.price > market.price_a:
        ledger.transfer(token, trader, market.address, sell_amount)
        sell = market.swap(trader, True, sell_amount, market.price_a, sender=trader)
        print(
            f"[launch-demo] sell: paid={sell.amount0} got={-sell.amount1} fee={sell.fee_amount_in} "
            f"(converted {sell.fee_amount1}) price={_fmt_price(sell.price)}"
        )

    print(f"[launch-demo] reserves: reserve0={market.reserve0} reserve1={market.reserve1}")
    print(f"[launch-demo] registry fees: {registry.fees_unclaimed(quote_asset)}")

    if not args.no_migrate:
        amount0, amount1 = registry.migrate_market(market.address, "pool", sender="admin")
        print(f"[launch-demo] migrated: amount0={amount0} amount1={amount1} status={market.status.value}")
    print("[launch-demo] OK")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
