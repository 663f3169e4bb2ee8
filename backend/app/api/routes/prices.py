"""Price snapshot endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies.auth import InternalAuth, get_request_context
from app.db.session import get_db
from app.schemas import PriceSnapshotCreateRequest, PriceSnapshotSchema
from app.services import ledger

router = APIRouter(dependencies=[InternalAuth, Depends(get_request_context)])


@router.post("", response_model=PriceSnapshotSchema, status_code=status.HTTP_201_CREATED)
async def post_price(
    payload: PriceSnapshotCreateRequest,
    session: AsyncSession = Depends(get_db),
) -> PriceSnapshotSchema:
    try:
        snapshot = await ledger.add_price_snapshot(payload, session)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    return PriceSnapshotSchema.model_validate(snapshot)


__all__ = ["router"]
