"""Portfolio-level views derived from replaying the stored ledger."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from opentelemetry import trace
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.models import Portfolio
from app.services import ledger
from dca_ledger import (
    LedgerReplay,
    PortfolioValuation,
    compute_balance,
    compute_positions,
    merge_positions,
    stablecoin_capital,
    value_positions,
)

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass
class PortfolioState:
    """A replayed ledger plus the asset id to symbol map used to label it."""

    replay: LedgerReplay
    symbols: dict[str, str]


async def _replay(portfolio: Portfolio, session: AsyncSession) -> LedgerReplay:
    transactions = await ledger.load_ledger(portfolio, session)
    with tracer.start_as_current_span("ledger.replay") as span:
        span.set_attribute("portfolio.id", portfolio.id)
        span.set_attribute("ledger.transactions", len(transactions))
        replay = compute_positions(transactions)
        span.set_attribute("ledger.anomalies", len(replay.anomalies))
    if replay.anomalies:
        logger.warning(
            "Portfolio %s replay produced %d anomalies", portfolio.id, len(replay.anomalies)
        )
    return replay


async def _symbols(session: AsyncSession) -> dict[str, str]:
    return {str(asset_id): symbol for asset_id, symbol in (await ledger.symbols_by_id(session)).items()}


async def load_state(portfolio: Portfolio, session: AsyncSession) -> PortfolioState:
    replay = await _replay(portfolio, session)
    return PortfolioState(replay=replay, symbols=await _symbols(session))


async def load_aggregate_state(owner_id: str, session: AsyncSession) -> tuple[list[Portfolio], PortfolioState]:
    """Replay every portfolio of ``owner_id`` on its own and sum the positions per asset."""

    portfolios = await ledger.list_portfolios(owner_id, session)
    replays = [await _replay(portfolio, session) for portfolio in portfolios]
    merged = LedgerReplay(
        positions=merge_positions(replay.positions for replay in replays),
        anomalies=[anomaly for replay in replays for anomaly in replay.anomalies],
    )
    return portfolios, PortfolioState(replay=merged, symbols=await _symbols(session))


async def portfolio_balance(portfolio: Portfolio, asset_id: int, session: AsyncSession) -> Decimal:
    transactions = await ledger.load_ledger(portfolio, session)
    return compute_balance(str(asset_id), transactions)


def capital_from_state(state: PortfolioState) -> Decimal:
    settings = get_settings()
    return stablecoin_capital(state.replay.positions, state.symbols, settings.stablecoin_symbols)


async def portfolio_capital(portfolio: Portfolio, session: AsyncSession) -> Decimal:
    return capital_from_state(await load_state(portfolio, session))


async def portfolio_valuation(
    portfolio: Portfolio,
    session: AsyncSession,
) -> tuple[PortfolioValuation, dict[str, str]]:
    """Value open positions at the latest stored price of each asset."""

    state = await load_state(portfolio, session)
    prices = {str(asset_id): price for asset_id, price in (await ledger.latest_prices(session)).items()}
    missing = [p.asset_id for p in state.replay.positions if p.qty > 0 and p.asset_id not in prices]
    if missing:
        logger.info("No stored price for asset(s) %s; valuing at zero", ", ".join(missing))
    return value_positions(state.replay.positions, prices), state.symbols


__all__ = [
    "PortfolioState",
    "load_state",
    "load_aggregate_state",
    "portfolio_balance",
    "capital_from_state",
    "portfolio_capital",
    "portfolio_valuation",
]
