"""Persistence services for assets, portfolios, transactions and prices."""

from __future__ import annotations

import logging
from decimal import Decimal

import sqlalchemy as sa
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import Asset, LedgerTransaction, Portfolio, PriceSnapshot
from app.schemas import (
    AssetCreateRequest,
    PortfolioCreateRequest,
    PriceSnapshotCreateRequest,
    TransactionCreateRequest,
)
from dca_ledger import Transaction

logger = logging.getLogger(__name__)


async def create_asset(payload: AssetCreateRequest, session: AsyncSession) -> Asset:
    symbol = payload.symbol.strip().upper()
    if not symbol:
        raise ValueError("Symbol must not be empty")
    existing = (await session.execute(select(Asset).where(Asset.symbol == symbol))).scalars().first()
    if existing is not None:
        raise ValueError(f"Asset {symbol} already exists")
    asset = Asset(symbol=symbol, name=payload.name.strip() if payload.name else None)
    session.add(asset)
    await session.commit()
    await session.refresh(asset)
    logger.info("Created asset %s (id=%s)", asset.symbol, asset.id)
    return asset


async def list_assets(session: AsyncSession) -> list[Asset]:
    result = await session.execute(select(Asset).order_by(Asset.symbol))
    return list(result.scalars().all())


async def get_asset_by_symbol(symbol: str, session: AsyncSession) -> Asset:
    normalized = symbol.strip().upper()
    asset = (await session.execute(select(Asset).where(Asset.symbol == normalized))).scalars().first()
    if asset is None:
        raise LookupError(f"Asset {normalized} not found")
    return asset


async def symbols_by_id(session: AsyncSession) -> dict[int, str]:
    result = await session.execute(select(Asset.id, Asset.symbol))
    return {asset_id: symbol for asset_id, symbol in result.all()}


async def asset_ids_by_symbol(symbols: set[str], session: AsyncSession) -> dict[str, int]:
    if not symbols:
        return {}
    result = await session.execute(select(Asset.symbol, Asset.id).where(Asset.symbol.in_(symbols)))
    return {symbol: asset_id for symbol, asset_id in result.all()}


async def create_portfolio(owner_id: str, payload: PortfolioCreateRequest, session: AsyncSession) -> Portfolio:
    name = payload.name.strip()
    existing = (
        await session.execute(
            select(Portfolio).where(Portfolio.owner_id == owner_id, Portfolio.name == name)
        )
    ).scalars().first()
    if existing is not None:
        raise ValueError(f"Portfolio {name!r} already exists")
    portfolio = Portfolio(owner_id=owner_id, name=name)
    session.add(portfolio)
    await session.commit()
    await session.refresh(portfolio)
    return portfolio


async def list_portfolios(owner_id: str, session: AsyncSession) -> list[Portfolio]:
    result = await session.execute(
        select(Portfolio).where(Portfolio.owner_id == owner_id).order_by(Portfolio.created_at)
    )
    return list(result.scalars().all())


async def get_portfolio(portfolio_id: int, owner_id: str, session: AsyncSession) -> Portfolio:
    portfolio = await session.get(Portfolio, portfolio_id)
    if portfolio is None or portfolio.owner_id != owner_id:
        raise LookupError("Portfolio not found")
    return portfolio


async def _ensure_assets_exist(asset_ids: set[int], session: AsyncSession) -> None:
    if not asset_ids:
        return
    result = await session.execute(select(Asset.id).where(Asset.id.in_(asset_ids)))
    missing = asset_ids - set(result.scalars().all())
    if missing:
        raise ValueError(f"Unknown asset id(s): {', '.join(str(i) for i in sorted(missing))}")


async def _next_sequence(portfolio_id: int, session: AsyncSession) -> int:
    current = await session.scalar(
        select(sa.func.max(LedgerTransaction.sequence)).where(LedgerTransaction.portfolio_id == portfolio_id)
    )
    return (current or 0) + 1


def _build_transaction(portfolio_id: int, sequence: int, payload: TransactionCreateRequest) -> LedgerTransaction:
    return LedgerTransaction(
        portfolio_id=portfolio_id,
        sequence=sequence,
        type=payload.type.value,
        timestamp=payload.timestamp,
        base_asset_id=payload.base_asset_id,
        base_qty=payload.base_qty,
        quote_asset_id=payload.quote_asset_id,
        quote_qty=payload.quote_qty,
        fee_asset_id=payload.fee_asset_id,
        fee_qty=payload.fee_qty,
        unit_price_usd=payload.unit_price_usd,
        value_usd=payload.value_usd,
        cost_basis_usd=payload.cost_basis_usd,
        venue=payload.venue,
        notes=payload.notes,
    )


async def create_transaction(
    portfolio: Portfolio,
    payload: TransactionCreateRequest,
    session: AsyncSession,
) -> LedgerTransaction:
    await _ensure_assets_exist(
        {i for i in (payload.base_asset_id, payload.quote_asset_id, payload.fee_asset_id) if i is not None},
        session,
    )
    sequence = await _next_sequence(portfolio.id, session)
    tx = _build_transaction(portfolio.id, sequence, payload)
    session.add(tx)
    await session.commit()
    await session.refresh(tx)
    logger.debug("Recorded %s transaction %s in portfolio %s", tx.type, tx.id, portfolio.id)
    return tx


async def create_transactions(
    portfolio: Portfolio,
    payloads: list[TransactionCreateRequest],
    session: AsyncSession,
) -> list[LedgerTransaction]:
    """Insert several transactions in one commit, keeping their relative order."""

    sequence = await _next_sequence(portfolio.id, session)
    records = []
    for offset, payload in enumerate(payloads):
        record = _build_transaction(portfolio.id, sequence + offset, payload)
        session.add(record)
        records.append(record)
    await session.commit()
    return records


async def list_transactions(portfolio: Portfolio, session: AsyncSession) -> list[LedgerTransaction]:
    result = await session.execute(
        select(LedgerTransaction)
        .where(LedgerTransaction.portfolio_id == portfolio.id)
        .order_by(LedgerTransaction.timestamp, LedgerTransaction.sequence)
    )
    return list(result.scalars().all())


async def delete_transaction(portfolio: Portfolio, transaction_id: int, session: AsyncSession) -> None:
    tx = await session.get(LedgerTransaction, transaction_id)
    if tx is None or tx.portfolio_id != portfolio.id:
        raise LookupError("Transaction not found for this portfolio")
    await session.delete(tx)
    await session.commit()


def _str_id(value: int | None) -> str | None:
    return None if value is None else str(value)


def to_core_transaction(row: LedgerTransaction) -> Transaction:
    """Map a stored row onto the engine's transaction type."""

    return Transaction(
        id=str(row.id),
        type=row.type,
        timestamp=row.timestamp,
        base_asset_id=_str_id(row.base_asset_id),
        base_qty=row.base_qty,
        quote_asset_id=_str_id(row.quote_asset_id),
        quote_qty=row.quote_qty,
        fee_asset_id=_str_id(row.fee_asset_id),
        fee_qty=row.fee_qty,
        unit_price_usd=row.unit_price_usd,
        value_usd=row.value_usd,
        cost_basis_usd=row.cost_basis_usd,
        sequence=row.sequence,
        portfolio_id=_str_id(row.portfolio_id),
    )


async def load_ledger(portfolio: Portfolio, session: AsyncSession) -> list[Transaction]:
    """Return the portfolio ledger in replay order."""

    return [to_core_transaction(row) for row in await list_transactions(portfolio, session)]


async def add_price_snapshot(payload: PriceSnapshotCreateRequest, session: AsyncSession) -> PriceSnapshot:
    await _ensure_assets_exist({payload.asset_id}, session)
    snapshot = PriceSnapshot(asset_id=payload.asset_id, price_usd=payload.price_usd, source=payload.source)
    session.add(snapshot)
    await session.commit()
    await session.refresh(snapshot)
    return snapshot


async def latest_prices(session: AsyncSession) -> dict[int, Decimal]:
    """Return the most recent snapshot price for every asset that has one."""

    latest = (
        select(PriceSnapshot.asset_id, sa.func.max(PriceSnapshot.created_at).label("created_at"))
        .group_by(PriceSnapshot.asset_id)
        .subquery()
    )
    result = await session.execute(
        select(PriceSnapshot.asset_id, PriceSnapshot.price_usd)
        .join(
            latest,
            sa.and_(
                PriceSnapshot.asset_id == latest.c.asset_id,
                PriceSnapshot.created_at == latest.c.created_at,
            ),
        )
        .order_by(PriceSnapshot.id)
    )
    return {asset_id: price for asset_id, price in result.all()}


async def latest_price(asset_id: int, session: AsyncSession) -> Decimal:
    price = await session.scalar(
        select(PriceSnapshot.price_usd)
        .where(PriceSnapshot.asset_id == asset_id)
        .order_by(PriceSnapshot.created_at.desc(), PriceSnapshot.id.desc())
        .limit(1)
    )
    if price is None:
        raise LookupError(f"No price recorded for asset {asset_id}")
    return price


__all__ = [
    "create_asset",
    "list_assets",
    "get_asset_by_symbol",
    "symbols_by_id",
    "asset_ids_by_symbol",
    "create_portfolio",
    "list_portfolios",
    "get_portfolio",
    "create_transaction",
    "create_transactions",
    "list_transactions",
    "delete_transaction",
    "to_core_transaction",
    "load_ledger",
    "add_price_snapshot",
    "latest_prices",
    "latest_price",
]
