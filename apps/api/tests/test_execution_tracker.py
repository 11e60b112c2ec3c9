from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import update

from exceptions import NotFoundError, ValidationError
from models.execution import Execution
from models.output import Output
from services.executions import (
    ExecutionOutcome,
    estimate_progress,
    finish_execution,
    get_execution_status,
    resolve_status,
    start_execution,
)

STARTED = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


async def _start_at(db, account_id, started_at=STARTED):
    execution_id = await start_execution(account_id, db)
    await db.execute(update(Execution).where(Execution.id == execution_id).values(started_at=started_at))
    await db.commit()
    return execution_id


def test_resolve_status_rules():
    assert resolve_status(has_errors=False, has_content=True) == "completed"
    assert resolve_status(has_errors=True, has_content=True) == "partial"
    assert resolve_status(has_errors=True, has_content=False) == "failed"


@pytest.mark.parametrize(
    "elapsed,expected",
    [(0, 0), (90, 47), (179, 94), (180, 95), (240, 96), (420, 99), (3600, 99)],
)
def test_running_progress_curve(elapsed, expected):
    assert estimate_progress("running", STARTED, STARTED + timedelta(seconds=elapsed)) == expected


def test_running_progress_treats_clock_skew_as_zero():
    assert estimate_progress("running", STARTED, STARTED - timedelta(seconds=30)) == 0


def test_terminal_progress():
    assert estimate_progress("completed", STARTED, STARTED) == 100
    assert estimate_progress("failed", STARTED, STARTED, duration_seconds=90) == 50
    assert estimate_progress("partial", STARTED, STARTED, duration_seconds=10_000) == 99
    assert estimate_progress("failed", STARTED, STARTED) == 50


def test_running_progress_is_monotonic():
    values = [
        estimate_progress("running", STARTED, STARTED + timedelta(seconds=second))
        for second in range(0, 1200, 7)
    ]
    assert values == sorted(values)
    assert max(values) == 99


@pytest.mark.asyncio
async def test_running_execution_status(db, account):
    execution_id = await _start_at(db, account.id)

    status = await get_execution_status(execution_id, account.id, db, now=STARTED + timedelta(seconds=90))

    assert status == {
        "execution_id": execution_id,
        "status": "running",
        "progress": 47,
        "duration_so_far": 90,
    }


@pytest.mark.asyncio
async def test_completed_execution_reports_stored_duration_and_output(db, account):
    execution_id = await _start_at(db, account.id)
    finished = await finish_execution(
        execution_id,
        ExecutionOutcome(has_content=True, format_chosen="thread", tokens_used=120),
        db,
        now=STARTED + timedelta(seconds=65, milliseconds=900),
    )
    assert finished == {"execution_id": execution_id, "status": "completed", "duration_seconds": 65}

    db.add(
        Output(
            execution_id=execution_id,
            account_id=account.id,
            idea_id="idea-1",
            format="thread",
            content={"format": "thread", "posts": [], "total_posts": 0},
        )
    )
    await db.commit()

    status = await get_execution_status(execution_id, account.id, db, now=STARTED + timedelta(hours=2))
    assert status["status"] == "completed"
    assert status["progress"] == 100
    assert status["duration_so_far"] == 65
    assert "output_id" in status
    assert "error_message" not in status


@pytest.mark.asyncio
async def test_partial_execution_joins_errors_and_hides_output_id(db, account):
    execution_id = await _start_at(db, account.id)
    await finish_execution(
        execution_id,
        ExecutionOutcome(has_content=True, errors=["Router failed: timeout", "Creator failed"]),
        db,
        now=STARTED + timedelta(seconds=90),
    )

    status = await get_execution_status(execution_id, account.id, db)
    assert status["status"] == "partial"
    assert status["progress"] == 50
    assert status["error_message"] == "Router failed: timeout; Creator failed"
    assert "output_id" not in status


@pytest.mark.asyncio
async def test_execution_finishes_exactly_once(db, account):
    execution_id = await _start_at(db, account.id)
    await finish_execution(execution_id, ExecutionOutcome(has_content=False, errors=["boom"]), db)

    with pytest.raises(ValidationError):
        await finish_execution(execution_id, ExecutionOutcome(has_content=True), db)

    status = await get_execution_status(execution_id, account.id, db)
    assert status["status"] == "failed"
    assert status["error_message"] == "boom"


@pytest.mark.asyncio
async def test_unknown_or_foreign_execution_is_not_found(db, make_account, account):
    other = await make_account("other@example.com")
    execution_id = await _start_at(db, account.id)

    with pytest.raises(NotFoundError):
        await get_execution_status(execution_id, other.id, db)
    with pytest.raises(NotFoundError):
        await get_execution_status("missing", account.id, db)
    with pytest.raises(NotFoundError):
        await finish_execution("missing", ExecutionOutcome(has_content=False), db)
