"""DCA zone storage and zone plan computation for a portfolio."""

from __future__ import annotations

import logging
from decimal import Decimal

from opentelemetry import trace
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.models import Asset, DcaZone, Portfolio
from app.schemas import DcaZoneCreateRequest, DcaZoneUpdateRequest
from app.services import ledger
from app.services.positions import capital_from_state, load_state
from dca_ledger import DcaZoneDefinition, EntryPoint, ZonePlan, build_zone_plan, zone_entry_points
from dca_ledger.money import HUNDRED

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

_NULLABLE_ZONE_FIELDS = {"label"}


def _check_band(price_min: Decimal, price_max: Decimal) -> None:
    if price_min > price_max:
        raise ValueError("price_min must not exceed price_max")


async def _check_order_free(
    portfolio: Portfolio,
    asset_id: int,
    order: int,
    session: AsyncSession,
) -> None:
    duplicate = (
        await session.execute(
            select(DcaZone).where(
                DcaZone.portfolio_id == portfolio.id,
                DcaZone.asset_id == asset_id,
                DcaZone.order == order,
            )
        )
    ).scalars().first()
    if duplicate is not None:
        raise ValueError(f"A zone with order {order} already exists for this asset")


async def _check_base_total(
    portfolio: Portfolio,
    asset_id: int,
    percentual_base: Decimal,
    session: AsyncSession,
    *,
    exclude_zone_id: int | None = None,
) -> None:
    stmt = select(func.coalesce(func.sum(DcaZone.percentual_base), 0)).where(
        DcaZone.portfolio_id == portfolio.id,
        DcaZone.asset_id == asset_id,
    )
    if exclude_zone_id is not None:
        stmt = stmt.where(DcaZone.id != exclude_zone_id)
    others = Decimal(await session.scalar(stmt) or 0)
    if others + percentual_base > HUNDRED:
        raise ValueError(
            f"Base percentages for this asset would add up to {others + percentual_base}, above 100"
        )


async def list_zones(portfolio: Portfolio, session: AsyncSession, *, asset_id: int | None = None) -> list[DcaZone]:
    stmt = select(DcaZone).where(DcaZone.portfolio_id == portfolio.id)
    if asset_id is not None:
        stmt = stmt.where(DcaZone.asset_id == asset_id)
    result = await session.execute(stmt.order_by(DcaZone.asset_id, DcaZone.order))
    return list(result.scalars().all())


async def create_zone(portfolio: Portfolio, payload: DcaZoneCreateRequest, session: AsyncSession) -> DcaZone:
    _check_band(payload.price_min, payload.price_max)
    if await session.get(Asset, payload.asset_id) is None:
        raise ValueError(f"Unknown asset id: {payload.asset_id}")
    await _check_order_free(portfolio, payload.asset_id, payload.order, session)
    await _check_base_total(portfolio, payload.asset_id, payload.percentual_base, session)
    zone = DcaZone(
        portfolio_id=portfolio.id,
        asset_id=payload.asset_id,
        order=payload.order,
        label=payload.label,
        price_min=payload.price_min,
        price_max=payload.price_max,
        percentual_base=payload.percentual_base,
        executed=False,
    )
    session.add(zone)
    await session.commit()
    await session.refresh(zone)
    return zone


async def _get_zone(portfolio: Portfolio, zone_id: int, session: AsyncSession) -> DcaZone:
    zone = await session.get(DcaZone, zone_id)
    if zone is None or zone.portfolio_id != portfolio.id:
        raise LookupError("Zone not found for this portfolio")
    return zone


async def update_zone(
    portfolio: Portfolio,
    zone_id: int,
    payload: DcaZoneUpdateRequest,
    session: AsyncSession,
) -> DcaZone:
    """Apply the fields present in ``payload``; ``label`` may be cleared with null."""

    zone = await _get_zone(portfolio, zone_id, session)
    changes = {
        field: value
        for field, value in payload.model_dump(exclude_unset=True).items()
        if value is not None or field in _NULLABLE_ZONE_FIELDS
    }
    # Checks run before any attribute changes so autoflush never writes a bad row.
    _check_band(changes.get("price_min", zone.price_min), changes.get("price_max", zone.price_max))
    if changes.get("order", zone.order) != zone.order:
        await _check_order_free(portfolio, zone.asset_id, changes["order"], session)
    if "percentual_base" in changes:
        await _check_base_total(
            portfolio, zone.asset_id, changes["percentual_base"], session, exclude_zone_id=zone.id
        )
    for field, value in changes.items():
        setattr(zone, field, value)
    await session.commit()
    await session.refresh(zone)
    return zone



async def delete_zone(portfolio: Portfolio, zone_id: int, session: AsyncSession) -> None:
    zone = await _get_zone(portfolio, zone_id, session)
    await session.delete(zone)
    await session.commit()


def to_definition(zone: DcaZone) -> DcaZoneDefinition:
    return DcaZoneDefinition(
        id=str(zone.id),
        order=zone.order,
        price_min=zone.price_min,
        price_max=zone.price_max,
        percentual_base=zone.percentual_base,
        executed=zone.executed,
        label=zone.label,
    )


async def zone_plan(
    portfolio: Portfolio,
    session: AsyncSession,
    *,
    asset_symbol: str | None = None,
    current_price: Decimal | None = None,
    capital_total: Decimal | None = None,
) -> tuple[Asset, ZonePlan]:
    """Compute the zone plan for one asset of ``portfolio``.

    Without an explicit price the latest stored price snapshot is used; without
    explicit capital the portfolio's stablecoin capital is used.
    """

    symbol = asset_symbol or get_settings().default_dca_asset
    asset = await ledger.get_asset_by_symbol(symbol, session)
    zones = await list_zones(portfolio, session, asset_id=asset.id)
    if not zones:
        raise LookupError(f"No DCA zones configured for {asset.symbol}")

    if current_price is None:
        current_price = await ledger.latest_price(asset.id, session)
    if capital_total is None:
        capital_total = capital_from_state(await load_state(portfolio, session))

    with tracer.start_as_current_span("dca.zone_plan") as span:
        span.set_attribute("asset.symbol", asset.symbol)
        span.set_attribute("dca.zones", len(zones))
        plan = build_zone_plan([to_definition(zone) for zone in zones], current_price, capital_total)
        span.set_attribute("dca.capital_unallocated", plan.capital_unallocated)
    logger.debug(
        "Zone plan for %s at %s: %d active zone(s), %s allocated",
        asset.symbol,
        current_price,
        len(plan.active_zones),
        plan.allocated_usd,
    )
    return asset, plan


async def entry_points(
    portfolio: Portfolio,
    zone_id: int,
    session: AsyncSession,
    *,
    count: int,
    current_price: Decimal | None = None,
    value_usd: Decimal | None = None,
) -> tuple[Asset, Decimal, Decimal, list[EntryPoint]]:
    """Spread a zone's USD allocation over ``count`` limit prices.

    Without ``value_usd`` the zone's share of the current plan is used, which
    also fixes the price the band is capped at.
    """

    zone = await _get_zone(portfolio, zone_id, session)
    asset = await session.get(Asset, zone.asset_id)
    if value_usd is None:
        _, plan = await zone_plan(portfolio, session, asset_symbol=asset.symbol, current_price=current_price)
        computed = next(z for z in plan.zones if z.id == str(zone.id))
        value_usd = computed.valor_usd
        current_price = plan.current_price
    elif current_price is None:
        current_price = await ledger.latest_price(asset.id, session)
    entries = zone_entry_points(to_definition(zone), value_usd, count, current_price)
    logger.debug("Zone %s split into %d entries of %s", zone.id, len(entries), entries[0].value_usd)
    return asset, current_price, value_usd, entries


__all__ = [
    "list_zones",
    "create_zone",
    "update_zone",
    "delete_zone",
    "to_definition",
    "zone_plan",
    "entry_points",
]
