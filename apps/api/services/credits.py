"""Credit ledger: free/paid expansion credits and payment receipts."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
import logging
from typing import Any, Dict, List, Optional
import uuid

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import settings
from exceptions import InsufficientCreditsError, NotFoundError, PersistenceError, ValidationError
from models.credit_balance import CreditBalance
from models.payment_receipt import PaymentReceipt

logger = logging.getLogger(__name__)

NO_CREDITS_REASON = "No free expansions or paid credits remaining. Purchase more credits to continue."


async def _load_balance(account_id: str, db: AsyncSession) -> CreditBalance:
    result = await db.execute(
        select(CreditBalance)
        .where(CreditBalance.account_id == account_id)
        .execution_options(populate_existing=True)
    )
    balance = result.scalar_one_or_none()
    if balance is None:
        raise NotFoundError("Credit balance", account_id)
    return balance


async def ensure_credit_balance(account_id: str, db: AsyncSession) -> CreditBalance:
    """Create the balance row with the sign-up free credits when it does not exist yet."""
    result = await db.execute(select(CreditBalance).where(CreditBalance.account_id == account_id))
    balance = result.scalar_one_or_none()
    if balance:
        return balance

    balance = CreditBalance(
        account_id=account_id,
        free_remaining=max(int(settings.FREE_EXPANSION_CREDITS), 0),
        paid_remaining=0,
        total_used=0,
        total_free_used=0,
        total_paid_used=0,
        version=0,
    )
    db.add(balance)
    await db.flush()
    return balance


async def check_limit(account_id: str, db: AsyncSession) -> Dict[str, Any]:
    """Report whether the account may start an expansion. Advisory only; reserves nothing."""
    balance = await _load_balance(account_id, db)
    free_remaining = int(balance.free_remaining)
    paid_remaining = int(balance.paid_remaining)
    total_used = int(balance.total_used)

    if free_remaining > 0 or paid_remaining > 0:
        return {
            "allowed": True,
            "free_remaining": free_remaining,
            "paid_remaining": paid_remaining,
            "total_used": total_used,
        }
    return {
        "allowed": False,
        "free_remaining": 0,
        "paid_remaining": 0,
        "total_used": total_used,
        "reason": NO_CREDITS_REASON,
    }


async def consume_credit(account_id: str, db: AsyncSession, *, commit: bool = True) -> str:
    """
    Consume one expansion credit, free credits first.

    The balance row is read, then written back with ``WHERE version = <read
    version>``. A concurrent writer bumps the version, so a stale write
    matches no row and the attempt is retried against fresh balances.

    Args:
        account_id: Account to charge
        db: Session to run in
        commit: When False the decrement is flushed but left uncommitted so
            the caller can commit it together with other writes

    Returns:
        ``"free"`` or ``"paid"``

    Raises:
        InsufficientCreditsError: Both pools are empty
        NotFoundError: The account has no balance row
        PersistenceError: Storage failure or retries exhausted
    """
    max_attempts = max(int(settings.CREDIT_CONSUME_MAX_ATTEMPTS), 1)
    try:
        for attempt in range(1, max_attempts + 1):
            balance = await _load_balance(account_id, db)
            read_version = int(balance.version)

            if balance.free_remaining > 0:
                credit_type = "free"
                values = {
                    "free_remaining": CreditBalance.free_remaining - 1,
                    "total_free_used": CreditBalance.total_free_used + 1,
                }
            elif balance.paid_remaining > 0:
                credit_type = "paid"
                values = {
                    "paid_remaining": CreditBalance.paid_remaining - 1,
                    "total_paid_used": CreditBalance.total_paid_used + 1,
                }
            else:
                raise InsufficientCreditsError(account_id, 0, 0, int(balance.total_used))

            result = await db.execute(
                update(CreditBalance)
                .where(
                    CreditBalance.account_id == account_id,
                    CreditBalance.version == read_version,
                )
                .values(
                    total_used=CreditBalance.total_used + 1,
                    version=CreditBalance.version + 1,
                    **values,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                if commit:
                    await db.commit()
                logger.info(
                    "Consumed %s credit for account %s (attempt %s)", credit_type, account_id, attempt
                )
                return credit_type

            await db.rollback()
            logger.debug("Credit balance for %s changed concurrently, retrying", account_id)
    except SQLAlchemyError as exc:
        await db.rollback()
        raise PersistenceError("consume_credit", str(exc)) from exc

    raise PersistenceError(
        "consume_credit",
        f"balance for account {account_id} kept changing after {max_attempts} attempts",
    )


def _validate_grant(credits: Any, amount_usd: Any, verified_by: Optional[str]) -> Decimal:
    if isinstance(credits, bool) or not isinstance(credits, int) or credits <= 0:
        raise ValidationError("credits must be a positive integer", field="credits")
    if isinstance(amount_usd, bool):
        raise ValidationError("amount_usd must be a positive number", field="amount_usd")
    try:
        amount = Decimal(str(amount_usd))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError("amount_usd must be a positive number", field="amount_usd") from exc
    if not amount.is_finite() or amount <= 0:
        raise ValidationError("amount_usd must be a positive number", field="amount_usd")
    if not (verified_by or "").strip():
        raise ValidationError("verified_by is required", field="verified_by")
    return amount.quantize(Decimal("0.01"))


async def grant_credits(
    account_id: str,
    db: AsyncSession,
    *,
    credits: int,
    amount_usd: Any,
    verified_by: str,
    reference: Optional[str] = None,
    notes: Optional[str] = None,
) -> str:
    """
    Add paid credits after a manually verified payment.

    The balance increment and the receipt insert commit together or not at all.

    Returns:
        The new receipt id
    """
    amount = _validate_grant(credits, amount_usd, verified_by)
    receipt_id = str(uuid.uuid4())

    try:
        result = await db.execute(
            update(CreditBalance)
            .where(CreditBalance.account_id == account_id)
            .values(
                paid_remaining=CreditBalance.paid_remaining + credits,
                version=CreditBalance.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await db.rollback()
            raise NotFoundError("Credit balance", account_id)

        db.add(
            PaymentReceipt(
                id=receipt_id,
                account_id=account_id,
                credits_granted=credits,
                amount_usd=amount,
                reference=reference,
                verified_by=verified_by.strip(),
                notes=notes,
                status="verified",
            )
        )
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise PersistenceError("grant_credits", str(exc)) from exc

    logger.info("Added %s credits to account %s (receipt: %s)", credits, account_id, receipt_id)
    return receipt_id


async def get_usage_details(account_id: str, db: AsyncSession) -> Dict[str, Any]:
    balance = await _load_balance(account_id, db)
    return {
        "account_id": balance.account_id,
        "free_remaining": balance.free_remaining,
        "paid_remaining": balance.paid_remaining,
        "total_used": balance.total_used,
        "total_free_used": balance.total_free_used,
        "total_paid_used": balance.total_paid_used,
        "updated_at": balance.updated_at.isoformat() if balance.updated_at else None,
    }


async def get_payment_history(account_id: str, db: AsyncSession) -> List[Dict[str, Any]]:
    result = await db.execute(
        select(PaymentReceipt)
        .where(PaymentReceipt.account_id == account_id)
        .order_by(PaymentReceipt.created_at.desc())
    )
    return [
        {
            "id": receipt.id,
            "credits_granted": receipt.credits_granted,
            "amount_usd": float(receipt.amount_usd),
            "reference": receipt.reference,
            "verified_by": receipt.verified_by,
            "notes": receipt.notes,
            "status": receipt.status,
            "created_at": receipt.created_at.isoformat() if receipt.created_at else None,
        }
        for receipt in result.scalars().all()
    ]
