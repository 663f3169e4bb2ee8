"""Stateless endpoints that run the ledger engine over a request body."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from app.api.dependencies.auth import InternalAuth, get_request_context
from app.api.routes.portfolio import serialize_plan, serialize_replay
from app.config import get_settings
from app.schemas import (
    ComputePositionsRequest,
    ComputePositionsResponse,
    LedgerEntryInput,
    ZonePlanRequest,
    ZonePlanResponse,
)
from dca_ledger import (
    DcaZoneDefinition,
    LedgerError,
    Transaction,
    build_zone_plan,
    compute_positions,
    order_ledger,
    stablecoin_capital,
)

router = APIRouter(dependencies=[InternalAuth, Depends(get_request_context)])
logger = logging.getLogger(__name__)


def _to_transaction(entry: LedgerEntryInput) -> Transaction:
    return Transaction(
        id=entry.id,
        type=entry.type,
        timestamp=entry.timestamp,
        sequence=entry.sequence,
        base_asset_id=entry.base_asset_id,
        base_qty=entry.base_qty,
        quote_asset_id=entry.quote_asset_id,
        quote_qty=entry.quote_qty,
        fee_asset_id=entry.fee_asset_id,
        fee_qty=entry.fee_qty,
        unit_price_usd=entry.unit_price_usd,
        value_usd=entry.value_usd,
        cost_basis_usd=entry.cost_basis_usd,
    )


@router.post("/positions", response_model=ComputePositionsResponse)
async def post_positions(payload: ComputePositionsRequest) -> ComputePositionsResponse:
    transactions = [_to_transaction(entry) for entry in payload.transactions]
    if payload.sort:
        transactions = order_ledger(transactions)
    try:
        replay = compute_positions(transactions)
    except LedgerError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    capital = stablecoin_capital(replay.positions, payload.symbols, get_settings().stablecoin_symbols)
    serialized = serialize_replay(replay, payload.symbols)
    return ComputePositionsResponse(
        positions=serialized.positions,
        anomalies=serialized.anomalies,
        capital_usd=capital,
    )


@router.post("/zone-plan", response_model=ZonePlanResponse)
async def post_zone_plan(payload: ZonePlanRequest) -> ZonePlanResponse:
    zones = [
        DcaZoneDefinition(
            id=zone.id,
            order=zone.order,
            price_min=zone.price_min,
            price_max=zone.price_max,
            percentual_base=zone.percentual_base,
            executed=zone.executed,
            label=zone.label,
        )
        for zone in payload.zones
    ]
    try:
        plan = build_zone_plan(zones, payload.current_price, payload.capital_total)
    except LedgerError as exc:
        logger.info("Rejected zone plan request: %s", exc)
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    return serialize_plan(plan)


__all__ = ["router"]
