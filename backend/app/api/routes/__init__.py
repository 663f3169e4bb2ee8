"""Route registration helpers."""

from __future__ import annotations

from fastapi import APIRouter

from .assets import router as assets_router
from .compute import router as compute_router
from .portfolio import router as portfolio_router
from .prices import router as prices_router

api_router = APIRouter()
api_router.include_router(assets_router, prefix="/assets", tags=["assets"])
api_router.include_router(portfolio_router, prefix="/portfolios", tags=["portfolios"])
api_router.include_router(prices_router, prefix="/prices", tags=["prices"])
api_router.include_router(compute_router, prefix="/compute", tags=["compute"])

__all__ = ["api_router"]
