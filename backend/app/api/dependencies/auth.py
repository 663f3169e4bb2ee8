"""Authentication and ownership helpers for API routes."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.db.session import get_db
from app.models import Portfolio
from app.services import ledger


def verify_internal_token(x_internal_token: str | None = Header(default=None)) -> None:
    settings = get_settings()
    if settings.internal_auth_token is None:
        return
    if x_internal_token != settings.internal_auth_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid internal token")


InternalAuth = Depends(verify_internal_token)


@dataclass
class RequestContext:
    user_id: str


def get_request_context(x_user_id: str | None = Header(default=None)) -> RequestContext:
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing user context")
    return RequestContext(user_id=x_user_id.strip())


async def get_owned_portfolio(
    portfolio_id: int,
    session: AsyncSession = Depends(get_db),
    context: RequestContext = Depends(get_request_context),
) -> Portfolio:
    """Resolve ``portfolio_id`` for the calling user or answer 404."""

    try:
        return await ledger.get_portfolio(portfolio_id, context.user_id, session)
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


__all__ = [
    "InternalAuth",
    "RequestContext",
    "get_request_context",
    "get_owned_portfolio",
    "verify_internal_token",
]
