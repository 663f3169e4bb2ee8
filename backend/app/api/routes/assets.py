"""Asset reference data endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies.auth import InternalAuth, get_request_context
from app.db.session import get_db
from app.schemas import AssetCreateRequest, AssetSchema
from app.services import ledger

router = APIRouter(dependencies=[InternalAuth, Depends(get_request_context)])


@router.get("", response_model=list[AssetSchema])
async def get_assets(session: AsyncSession = Depends(get_db)) -> list[AssetSchema]:
    return [AssetSchema.model_validate(asset) for asset in await ledger.list_assets(session)]


@router.post("", response_model=AssetSchema, status_code=status.HTTP_201_CREATED)
async def post_asset(payload: AssetCreateRequest, session: AsyncSession = Depends(get_db)) -> AssetSchema:
    try:
        asset = await ledger.create_asset(payload, session)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return AssetSchema.model_validate(asset)


__all__ = ["router"]
