"""
Authentication router for OAuth session sync and account profile retrieval.
"""

import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import settings
from database import get_db
from models.account import Account
from routers.auth_scope import AuthContext, get_auth_context
from services.credentials import PROVIDERS, save_credential
from services.credits import check_limit, ensure_credit_balance

router = APIRouter()
logger = logging.getLogger(__name__)


class SyncSessionRequest(BaseModel):
    email: str = Field(min_length=3)
    name: Optional[str] = None
    provider: Optional[str] = None
    access_token: Optional[str] = None


class SyncSessionResponse(BaseModel):
    account_id: str
    email: str
    session_token: str
    session_expires_at: int
    credential_stored: bool = False


class CurrentAccountResponse(BaseModel):
    account_id: str
    email: str
    name: Optional[str] = None
    is_admin: bool = False
    free_remaining: int = 0
    paid_remaining: int = 0
    total_used: int = 0


def _check_sync_secret(supplied: Optional[str]) -> None:
    expected = settings.AUTH_SYNC_SECRET
    if not expected:
        return
    if not supplied or not hmac.compare_digest(supplied, expected):
        raise HTTPException(status_code=401, detail="Invalid session sync secret.")


@router.get("/me", response_model=CurrentAccountResponse)
async def get_current_account(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """Get the current account and its credit summary."""
    result = await db.execute(select(Account).where(Account.id == auth.account_id))
    account = result.scalar_one_or_none()
    if not account:
        raise HTTPException(status_code=404, detail="Account not found")

    usage = await check_limit(account.id, db)
    return CurrentAccountResponse(
        account_id=account.id,
        email=account.email,
        name=account.name,
        is_admin=auth.is_admin,
        free_remaining=usage["free_remaining"],
        paid_remaining=usage["paid_remaining"],
        total_used=usage["total_used"],
    )


@router.post("/sync", response_model=SyncSessionResponse)
async def sync_session(
    request: SyncSessionRequest,
    x_auth_sync_secret: Optional[str] = Header(default=None),
    db: AsyncSession = Depends(get_db),
):
    """
    Persist a frontend OAuth session: upsert the account, give new accounts
    their free credits and keep the provider access token in the vault.
    """
    _check_sync_secret(x_auth_sync_secret)
    if request.access_token and request.provider not in PROVIDERS:
        raise HTTPException(status_code=422, detail=f"provider must be one of: {', '.join(PROVIDERS)}")

    email = request.email.strip().lower()
    result = await db.execute(select(Account).where(Account.email == email))
    account = result.scalar_one_or_none()
    if not account:
        account = Account(email=email, name=request.name)
        db.add(account)
        await db.flush()
        logger.info("Created account %s", account.id)
    elif request.name:
        account.name = request.name

    await ensure_credit_balance(account.id, db)

    credential_stored = False
    if request.access_token:
        await save_credential(account.id, request.provider, request.access_token, db, commit=False)
        credential_stored = True

    await db.commit()
    session = AuthContext(account_id=account.id, email=account.email).issue_session()
    return SyncSessionResponse(
        account_id=account.id,
        email=account.email,
        session_token=session.token,
        session_expires_at=session.expires_at,
        credential_stored=credential_stored,
    )


@router.post("/logout")
async def logout(_auth: AuthContext = Depends(get_auth_context)):
    """Frontend-managed logout acknowledgment endpoint."""
    return {"message": "Logged out successfully"}
