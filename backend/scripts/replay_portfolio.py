"""Replay a portfolio ledger and print its positions and anomalies."""

from __future__ import annotations

import argparse
import asyncio

from app.core.logging import setup_logging
from app.db.session import get_session_factory
from app.services import ledger
from app.services.positions import capital_from_state, load_state


async def _run(portfolio_id: int, owner: str) -> None:
    async with get_session_factory()() as session:
        portfolio = await ledger.get_portfolio(portfolio_id, owner, session)
        state = await load_state(portfolio, session)
        for position in state.replay.positions:
            rounded = position.quantized()
            symbol = state.symbols.get(rounded.asset_id, rounded.asset_id)
            flag = "  NEGATIVE" if rounded.negative_balance else ""
            print(f"{symbol:<8} qty={rounded.qty} cost={rounded.cost_usd_total} avg={rounded.avg_cost_usd}{flag}")
        for anomaly in state.replay.anomalies:
            print(f"! {anomaly.kind.value} tx={anomaly.transaction_id}: {anomaly.message}")
        print(f"Stablecoin capital: {capital_from_state(state)}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Replay a portfolio ledger into WAC positions")
    parser.add_argument("--portfolio", type=int, required=True)
    parser.add_argument("--owner", required=True)
    args = parser.parse_args()
    setup_logging()
    asyncio.run(_run(args.portfolio, args.owner))


if __name__ == "__main__":
    main()
