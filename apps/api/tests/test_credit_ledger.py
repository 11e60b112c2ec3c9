import asyncio
from decimal import Decimal

import pytest
from sqlalchemy import update
from sqlalchemy.future import select

from exceptions import InsufficientCreditsError, NotFoundError, ValidationError
from models.credit_balance import CreditBalance
from models.payment_receipt import PaymentReceipt
from services.credits import (
    check_limit,
    consume_credit,
    get_payment_history,
    get_usage_details,
    grant_credits,
)


async def _set_balance(db, account_id, free, paid):
    await db.execute(
        update(CreditBalance)
        .where(CreditBalance.account_id == account_id)
        .values(free_remaining=free, paid_remaining=paid)
    )
    await db.commit()


async def _receipt_count(db, account_id):
    result = await db.execute(select(PaymentReceipt).where(PaymentReceipt.account_id == account_id))
    return len(result.scalars().all())


@pytest.mark.asyncio
async def test_new_account_starts_with_free_credits(db, account):
    limit = await check_limit(account.id, db)

    assert limit == {"allowed": True, "free_remaining": 5, "paid_remaining": 0, "total_used": 0}


@pytest.mark.asyncio
async def test_consume_uses_free_credits_before_paid(db, account):
    await _set_balance(db, account.id, free=1, paid=2)

    assert await consume_credit(account.id, db) == "free"
    assert await consume_credit(account.id, db) == "paid"

    usage = await get_usage_details(account.id, db)
    assert usage["free_remaining"] == 0
    assert usage["paid_remaining"] == 1
    assert usage["total_used"] == 2
    assert usage["total_used"] == usage["total_free_used"] + usage["total_paid_used"]


@pytest.mark.asyncio
async def test_exhausted_balance_is_denied_and_unchanged(db, account):
    await _set_balance(db, account.id, free=0, paid=0)

    limit = await check_limit(account.id, db)
    assert limit["allowed"] is False
    assert limit["free_remaining"] == 0 and limit["paid_remaining"] == 0
    assert "Purchase more credits" in limit["reason"]

    with pytest.raises(InsufficientCreditsError):
        await consume_credit(account.id, db)

    usage = await get_usage_details(account.id, db)
    assert usage["total_used"] == 0


@pytest.mark.asyncio
async def test_unknown_account_is_not_found(db):
    with pytest.raises(NotFoundError):
        await check_limit("missing-account", db)
    with pytest.raises(NotFoundError):
        await consume_credit("missing-account", db)


@pytest.mark.asyncio
async def test_grant_adds_paid_credits_and_writes_receipt(db, account):
    receipt_id = await grant_credits(
        account.id,
        db,
        credits=10,
        amount_usd="25.00",
        verified_by="admin@example.com",
        reference="venmo-123",
    )

    usage = await get_usage_details(account.id, db)
    assert usage["paid_remaining"] == 10
    assert usage["free_remaining"] == 5

    history = await get_payment_history(account.id, db)
    assert len(history) == 1
    assert history[0]["id"] == receipt_id
    assert history[0]["amount_usd"] == 25.0
    assert history[0]["verified_by"] == "admin@example.com"
    assert history[0]["status"] == "verified"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "credits,amount,verified_by",
    [
        (0, "10", "admin@example.com"),
        (-3, "10", "admin@example.com"),
        (True, "10", "admin@example.com"),
        (5, "0", "admin@example.com"),
        (5, "-1", "admin@example.com"),
        (5, "abc", "admin@example.com"),
        (5, Decimal("NaN"), "admin@example.com"),
        (5, "10", "  "),
    ],
)
async def test_grant_rejects_invalid_input(db, account, credits, amount, verified_by):
    with pytest.raises(ValidationError):
        await grant_credits(account.id, db, credits=credits, amount_usd=amount, verified_by=verified_by)

    assert await _receipt_count(db, account.id) == 0
    assert (await get_usage_details(account.id, db))["paid_remaining"] == 0


@pytest.mark.asyncio
async def test_grant_to_unknown_account_writes_nothing(db):
    with pytest.raises(NotFoundError):
        await grant_credits("missing-account", db, credits=3, amount_usd=9, verified_by="admin@example.com")

    assert await _receipt_count(db, "missing-account") == 0


@pytest.mark.asyncio
async def test_concurrent_consumes_never_overspend(session_maker, db, account):
    await _set_balance(db, account.id, free=3, paid=0)

    async def _consume():
        async with session_maker() as session:
            return await consume_credit(account.id, session)

    results = await asyncio.gather(*[_consume() for _ in range(8)], return_exceptions=True)

    succeeded = [result for result in results if result == "free"]
    rejected = [result for result in results if isinstance(result, InsufficientCreditsError)]
    assert len(succeeded) == 3
    assert len(rejected) == 5

    usage = await get_usage_details(account.id, db)
    assert usage["free_remaining"] == 0
    assert usage["total_used"] == 3
    assert usage["total_free_used"] == 3
