"""Seed reference assets and a starter DCA zone ladder for one portfolio."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from decimal import Decimal
from pathlib import Path

from sqlalchemy import select

from app.core.logging import setup_logging
from app.db.init import init_database
from app.db.session import get_session_factory
from app.models import Asset, DcaZone, Portfolio

logger = logging.getLogger(__name__)

DEFAULT_ASSETS = {
    "BTC": "Bitcoin",
    "ETH": "Ethereum",
    "SOL": "Solana",
    "USDT": "Tether",
    "USDC": "USD Coin",
    "USD": "US Dollar",
}

# (order, price_min, price_max, percentual_base, label); order 1 is the highest band.
DEFAULT_ZONES = {
    "BTC": [
        (1, "65000", "80000", "15", "Zona 1"),
        (2, "55000", "65000", "25", "Zona 2"),
        (3, "50000", "55000", "30", "Zona 3"),
        (4, "40000", "50000", "25", "Zona 4"),
        (5, "0", "40000", "5", "Emergência"),
    ],
    "ETH": [
        (1, "2800", "3500", "15", "Zona 1"),
        (2, "2200", "2800", "25", "Zona 2"),
        (3, "1800", "2200", "30", "Zona 3"),
        (4, "1400", "1800", "25", "Zona 4"),
        (5, "0", "1400", "5", "Emergência"),
    ],
    "SOL": [
        (1, "150", "200", "15", "Zona 1"),
        (2, "100", "150", "25", "Zona 2"),
        (3, "75", "100", "30", "Zona 3"),
        (4, "50", "75", "25", "Zona 4"),
        (5, "0", "50", "5", "Emergência"),
    ],
}


def _load_zone_file(path: Path) -> dict[str, list[tuple]]:
    payload = json.loads(path.read_text(), parse_float=Decimal)
    return {
        symbol.upper(): [
            (z["order"], str(z["price_min"]), str(z["price_max"]), str(z["percentual_base"]), z.get("label"))
            for z in zones
        ]
        for symbol, zones in payload.items()
    }


async def _run(owner: str, portfolio_name: str, zones_by_symbol: dict[str, list[tuple]]) -> None:
    await init_database()
    async with get_session_factory()() as session:
        existing = {a.symbol: a for a in (await session.execute(select(Asset))).scalars().all()}
        for symbol, name in DEFAULT_ASSETS.items():
            if symbol not in existing:
                asset = Asset(symbol=symbol, name=name)
                session.add(asset)
                existing[symbol] = asset
        await session.flush()

        portfolio = (
            await session.execute(
                select(Portfolio).where(Portfolio.owner_id == owner, Portfolio.name == portfolio_name)
            )
        ).scalars().first()
        if portfolio is None:
            portfolio = Portfolio(owner_id=owner, name=portfolio_name)
            session.add(portfolio)
            await session.flush()

        created = 0
        for symbol, ladder in zones_by_symbol.items():
            asset = existing.get(symbol)
            if asset is None:
                logger.warning("Skipping zones for unknown asset %s", symbol)
                continue
            present = set(
                (
                    await session.execute(
                        select(DcaZone.order).where(
                            DcaZone.portfolio_id == portfolio.id, DcaZone.asset_id == asset.id
                        )
                    )
                ).scalars().all()
            )
            for order, low, high, base, label in ladder:
                if order in present:
                    continue
                session.add(
                    DcaZone(
                        portfolio_id=portfolio.id,
                        asset_id=asset.id,
                        order=order,
                        label=label,
                        price_min=Decimal(low),
                        price_max=Decimal(high),
                        percentual_base=Decimal(base),
                        executed=False,
                    )
                )
                created += 1
        await session.commit()
        print(f"Seeded portfolio {portfolio.id} ({portfolio_name}) for {owner}: {created} new zone(s)")


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed assets and DCA zones into the ledger database")
    parser.add_argument("--owner", required=True, help="Owner id (the X-User-Id the API will be called with)")
    parser.add_argument("--portfolio", default="Main", help="Portfolio name, created when missing")
    parser.add_argument("--zones-file", type=Path, help="JSON mapping of symbol to zone list")
    args = parser.parse_args()
    setup_logging()
    if args.zones_file is not None:
        if not args.zones_file.exists():
            raise SystemExit(f"Zone file not found: {args.zones_file}")
        zones = _load_zone_file(args.zones_file)
    else:
        zones = DEFAULT_ZONES
    asyncio.run(_run(args.owner, args.portfolio, zones))


if __name__ == "__main__":
    main()
