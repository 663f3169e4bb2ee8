"""Portfolio ledger, positions, capital and DCA plan endpoints."""

from __future__ import annotations

from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies.auth import (
    InternalAuth,
    RequestContext,
    get_owned_portfolio,
    get_request_context,
)
from app.config import get_settings
from app.db.session import get_db
from app.models import Portfolio
from app.schemas import (
    AggregatePositionsResponse,
    AnomalySchema,
    BalanceResponse,
    CapitalResponse,
    DcaZoneComputedSchema,
    DcaZoneCreateRequest,
    DcaZoneSchema,
    DcaZoneUpdateRequest,
    EntryPointSchema,
    ImportErrorSchema,
    PortfolioCreateRequest,
    PortfolioSchema,
    PositionSchema,
    PositionsResponse,
    PositionValuationSchema,
    TransactionCreateRequest,
    TransactionImportResponse,
    TransactionSchema,
    ValuationResponse,
    ZoneEntryPointsResponse,
    ZonePlanResponse,
)
from app.services import csv_io, dca, ledger
from app.services import positions as position_service
from dca_ledger import LedgerError, LedgerReplay, ZonePlan
from dca_ledger.money import quantize_pct, quantize_qty, quantize_usd
from dca_ledger.zones import MAX_ENTRY_POINTS

router = APIRouter(dependencies=[InternalAuth])


def _unprocessable(exc: Exception) -> HTTPException:
    return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))


def _not_found(exc: LookupError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


def serialize_replay(replay: LedgerReplay, symbols: dict[str, str]) -> PositionsResponse:
    positions = []
    for position in replay.positions:
        rounded = position.quantized()
        positions.append(
            PositionSchema(
                asset_id=rounded.asset_id,
                symbol=symbols.get(rounded.asset_id),
                qty=rounded.qty,
                cost_usd_total=rounded.cost_usd_total,
                avg_cost_usd=rounded.avg_cost_usd,
                negative_balance=rounded.negative_balance,
            )
        )
    anomalies = [
        AnomalySchema(
            kind=anomaly.kind,
            transaction_id=anomaly.transaction_id,
            asset_id=anomaly.asset_id,
            message=anomaly.message,
        )
        for anomaly in replay.anomalies
    ]
    return PositionsResponse(positions=positions, anomalies=anomalies)


def serialize_plan(plan: ZonePlan, asset: str | None = None) -> ZonePlanResponse:
    return ZonePlanResponse(
        asset=asset,
        current_price=plan.current_price,
        capital_total=plan.capital_total,
        allocated_usd=plan.allocated_usd,
        capital_unallocated=plan.capital_unallocated,
        zones=[
            DcaZoneComputedSchema(
                id=zone.id,
                order=zone.order,
                label=zone.label,
                price_min=zone.price_min,
                price_max=zone.price_max,
                percentual_base=zone.percentual_base,
                percentual_ajustado=zone.percentual_ajustado,
                valor_usd=zone.valor_usd,
                status=zone.status,
                distancia_pct=zone.distancia_pct,
            )
            for zone in plan.zones
        ],
    )


@router.get("", response_model=list[PortfolioSchema])
async def get_portfolios(
    session: AsyncSession = Depends(get_db),
    context: RequestContext = Depends(get_request_context),
) -> list[PortfolioSchema]:
    portfolios = await ledger.list_portfolios(context.user_id, session)
    return [PortfolioSchema.model_validate(item) for item in portfolios]


@router.post("", response_model=PortfolioSchema, status_code=status.HTTP_201_CREATED)
async def post_portfolio(
    payload: PortfolioCreateRequest,
    session: AsyncSession = Depends(get_db),
    context: RequestContext = Depends(get_request_context),
) -> PortfolioSchema:
    try:
        portfolio = await ledger.create_portfolio(context.user_id, payload, session)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return PortfolioSchema.model_validate(portfolio)


@router.get("/all/positions", response_model=AggregatePositionsResponse)
async def get_aggregate_positions(
    session: AsyncSession = Depends(get_db),
    context: RequestContext = Depends(get_request_context),
) -> AggregatePositionsResponse:
    try:
        portfolios, state = await position_service.load_aggregate_state(context.user_id, session)
    except LedgerError as exc:
        raise _unprocessable(exc) from exc
    replay = serialize_replay(state.replay, state.symbols)
    return AggregatePositionsResponse(
        positions=replay.positions,
        anomalies=replay.anomalies,
        portfolio_ids=[portfolio.id for portfolio in portfolios],
    )


@router.get("/{portfolio_id}", response_model=PortfolioSchema)

async def get_portfolio(portfolio: Portfolio = Depends(get_owned_portfolio)) -> PortfolioSchema:
    return PortfolioSchema.model_validate(portfolio)


@router.get("/{portfolio_id}/transactions", response_model=list[TransactionSchema])
async def get_transactions(
    portfolio: Portfolio = Depends(get_owned_portfolio),
    session: AsyncSession = Depends(get_db),
) -> list[TransactionSchema]:
    rows = await ledger.list_transactions(portfolio, session)
    return [TransactionSchema.model_validate(row) for row in rows]


@router.post(
    "/{portfolio_id}/transactions",
    response_model=TransactionSchema,
    status_code=status.HTTP_201_CREATED,
)
async def post_transaction(
    payload: TransactionCreateRequest,
    portfolio: Portfolio = Depends(get_owned_portfolio),
    session: AsyncSession = Depends(get_db),
) -> TransactionSchema:
    try:
        tx = await ledger.create_transaction(portfolio, payload, session)
    except ValueError as exc:
        raise _unprocessable(exc) from exc
    return TransactionSchema.model_validate(tx)


@router.get("/{portfolio_id}/transactions/export")
async def export_transactions(
    portfolio: Portfolio = Depends(get_owned_portfolio),
    session: AsyncSession = Depends(get_db),
) -> Response:
    rows = await ledger.list_transactions(portfolio, session)
    body = csv_io.transactions_to_csv(rows, await ledger.symbols_by_id(session))
    filename = f"transactions-{portfolio.id}.csv"
    return Response(
        content=body,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/{portfolio_id}/transactions/import", response_model=TransactionImportResponse)
async def import_transactions(
    request: Request,
    portfolio: Portfolio = Depends(get_owned_portfolio),
    session: AsyncSession = Depends(get_db),
) -> TransactionImportResponse:
    raw = await request.body()
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="CSV must be UTF-8") from exc
    if not text.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Empty CSV body")
    try:
        imported, errors = await csv_io.import_transactions_csv(portfolio, text, session)
    except csv_io.CsvImportError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "message": str(exc),
                "errors": [{"row": error.row, "message": error.message} for error in exc.errors],
            },
        ) from exc
    return TransactionImportResponse(
        imported=imported,
        errors=[ImportErrorSchema(row=error.row, message=error.message) for error in errors],
    )


@router.delete("/{portfolio_id}/transactions/{transaction_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_transaction(
    transaction_id: int,
    portfolio: Portfolio = Depends(get_owned_portfolio),
    session: AsyncSession = Depends(get_db),
) -> Response:
    try:
        await ledger.delete_transaction(portfolio, transaction_id, session)
    except LookupError as exc:
        raise _not_found(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{portfolio_id}/positions", response_model=PositionsResponse)
async def get_positions(
    portfolio: Portfolio = Depends(get_owned_portfolio),
    session: AsyncSession = Depends(get_db),
) -> PositionsResponse:
    try:
        state = await position_service.load_state(portfolio, session)
    except LedgerError as exc:
        raise _unprocessable(exc) from exc
    return serialize_replay(state.replay, state.symbols)


@router.get("/{portfolio_id}/balances/{asset_id}", response_model=BalanceResponse)
async def get_balance(
    asset_id: int,
    portfolio: Portfolio = Depends(get_owned_portfolio),
    session: AsyncSession = Depends(get_db),
) -> BalanceResponse:
    try:
        balance = await position_service.portfolio_balance(portfolio, asset_id, session)
    except LedgerError as exc:
        raise _unprocessable(exc) from exc
    return BalanceResponse(asset_id=str(asset_id), balance=quantize_qty(balance))


@router.get("/{portfolio_id}/valuation", response_model=ValuationResponse)
async def get_valuation(
    portfolio: Portfolio = Depends(get_owned_portfolio),
    session: AsyncSession = Depends(get_db),
) -> ValuationResponse:
    try:
        valuation, symbols = await position_service.portfolio_valuation(portfolio, session)
    except LedgerError as exc:
        raise _unprocessable(exc) from exc
    return ValuationResponse(
        positions=[
            PositionValuationSchema(
                asset_id=item.asset_id,
                symbol=symbols.get(item.asset_id),
                qty=quantize_qty(item.qty),
                avg_cost_usd=quantize_qty(item.avg_cost_usd),
                cost_usd_total=quantize_usd(item.cost_usd_total),
                price_usd=item.price_usd,
                value_usd=quantize_usd(item.value_usd),
                pnl_usd=quantize_usd(item.pnl_usd),
                pnl_pct=quantize_pct(item.pnl_pct),
            )
            for item in valuation.positions
        ],
        value_usd=quantize_usd(valuation.value_usd),
        cost_usd=quantize_usd(valuation.cost_usd),
        unrealized_pnl_usd=quantize_usd(valuation.unrealized_pnl_usd),
        unrealized_pnl_pct=quantize_pct(valuation.unrealized_pnl_pct),
    )


@router.get("/{portfolio_id}/capital", response_model=CapitalResponse)
async def get_capital(
    portfolio: Portfolio = Depends(get_owned_portfolio),
    session: AsyncSession = Depends(get_db),
) -> CapitalResponse:
    try:
        capital = await position_service.portfolio_capital(portfolio, session)
    except LedgerError as exc:
        raise _unprocessable(exc) from exc
    return CapitalResponse(capital_usd=capital, stablecoin_symbols=get_settings().stablecoin_symbols)


@router.get("/{portfolio_id}/dca-zones", response_model=list[DcaZoneSchema])
async def get_zones(
    asset_id: int | None = Query(default=None),
    portfolio: Portfolio = Depends(get_owned_portfolio),
    session: AsyncSession = Depends(get_db),
) -> list[DcaZoneSchema]:
    zones = await dca.list_zones(portfolio, session, asset_id=asset_id)
    return [DcaZoneSchema.model_validate(zone) for zone in zones]


@router.post(
    "/{portfolio_id}/dca-zones",
    response_model=DcaZoneSchema,
    status_code=status.HTTP_201_CREATED,
)
async def post_zone(
    payload: DcaZoneCreateRequest,
    portfolio: Portfolio = Depends(get_owned_portfolio),
    session: AsyncSession = Depends(get_db),
) -> DcaZoneSchema:
    try:
        zone = await dca.create_zone(portfolio, payload, session)
    except ValueError as exc:
        raise _unprocessable(exc) from exc
    return DcaZoneSchema.model_validate(zone)


@router.patch("/{portfolio_id}/dca-zones/{zone_id}", response_model=DcaZoneSchema)
async def patch_zone(
    zone_id: int,
    payload: DcaZoneUpdateRequest,
    portfolio: Portfolio = Depends(get_owned_portfolio),
    session: AsyncSession = Depends(get_db),
) -> DcaZoneSchema:
    try:
        zone = await dca.update_zone(portfolio, zone_id, payload, session)
    except LookupError as exc:
        raise _not_found(exc) from exc
    except ValueError as exc:
        raise _unprocessable(exc) from exc
    return DcaZoneSchema.model_validate(zone)


@router.delete("/{portfolio_id}/dca-zones/{zone_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_zone(
    zone_id: int,
    portfolio: Portfolio = Depends(get_owned_portfolio),
    session: AsyncSession = Depends(get_db),
) -> Response:
    try:
        await dca.delete_zone(portfolio, zone_id, session)
    except LookupError as exc:
        raise _not_found(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{portfolio_id}/dca-zones/{zone_id}/entry-points", response_model=ZoneEntryPointsResponse)
async def get_zone_entry_points(
    zone_id: int,
    entries: int = Query(default=3, ge=1, le=MAX_ENTRY_POINTS),
    price: Decimal | None = Query(default=None, ge=0),
    value: Decimal | None = Query(default=None, ge=0, description="USD to split; defaults to the zone's plan value"),
    portfolio: Portfolio = Depends(get_owned_portfolio),
    session: AsyncSession = Depends(get_db),
) -> ZoneEntryPointsResponse:
    try:
        asset_row, current_price, zone_value, points = await dca.entry_points(
            portfolio,
            zone_id,
            session,
            count=entries,
            current_price=price,
            value_usd=value,
        )
    except LookupError as exc:
        raise _not_found(exc) from exc
    except (LedgerError, ValueError) as exc:
        raise _unprocessable(exc) from exc
    return ZoneEntryPointsResponse(
        zone_id=zone_id,
        asset=asset_row.symbol,
        current_price=current_price,
        zone_value_usd=zone_value,
        entries=[
            EntryPointSchema(order=point.order, target_price=point.target_price, value_usd=point.value_usd)
            for point in points
        ],
    )


@router.get("/{portfolio_id}/dca-plan", response_model=ZonePlanResponse)

async def get_dca_plan(
    asset: str | None = Query(default=None, description="Asset symbol; defaults to the configured DCA asset"),
    price: Decimal | None = Query(default=None, ge=0),
    capital: Decimal | None = Query(default=None, ge=0),
    portfolio: Portfolio = Depends(get_owned_portfolio),
    session: AsyncSession = Depends(get_db),
) -> ZonePlanResponse:
    try:
        asset_row, plan = await dca.zone_plan(
            portfolio,
            session,
            asset_symbol=asset,
            current_price=price,
            capital_total=capital,
        )
    except LookupError as exc:
        raise _not_found(exc) from exc
    except (LedgerError, ValueError) as exc:
        raise _unprocessable(exc) from exc
    return serialize_plan(plan, asset_row.symbol)


__all__ = ["router", "serialize_plan", "serialize_replay"]
