"""Billing and credits router."""

from __future__ import annotations

from decimal import Decimal
import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import AuthContext, get_auth_context, require_admin
from services import telemetry
from services.credits import check_limit, get_payment_history, get_usage_details, grant_credits

router = APIRouter()
logger = logging.getLogger(__name__)


class GrantCreditsRequest(BaseModel):
    account_id: str = Field(min_length=1)
    credits: int = Field(gt=0, le=100000)
    amount_usd: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    reference: Optional[str] = None
    notes: Optional[str] = None


@router.get("/usage")
async def usage_summary(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    limit = await check_limit(auth.account_id, db)
    details = await get_usage_details(auth.account_id, db)
    return {**details, **limit}


@router.get("/receipts")
async def payment_receipts(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return {"receipts": await get_payment_history(auth.account_id, db)}


@router.post("/grant")
async def grant(
    request: GrantCreditsRequest,
    admin: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Add paid credits for a manually verified payment."""
    receipt_id = await grant_credits(
        request.account_id,
        db,
        credits=request.credits,
        amount_usd=request.amount_usd,
        verified_by=admin.email,
        reference=request.reference,
        notes=request.notes,
    )
    usage = await get_usage_details(request.account_id, db)
    logger.info("Admin %s granted %s credits to %s", admin.email, request.credits, request.account_id)
    await telemetry.record_event(
        telemetry.CREDITS_GRANTED,
        account_id=request.account_id,
        details={"receipt_id": receipt_id, "credits": request.credits, "verified_by": admin.email},
    )
    return {"receipt_id": receipt_id, "paid_remaining": usage["paid_remaining"]}
