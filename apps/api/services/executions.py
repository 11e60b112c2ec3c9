"""Execution tracker: life-cycle and progress estimates for expansion attempts."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
import math
from typing import Any, Dict, List, Optional
import uuid

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import settings
from exceptions import NotFoundError, PersistenceError, ValidationError
from models.execution import Execution
from models.output import Output

logger = logging.getLogger(__name__)

RUNNING = "running"
COMPLETED = "completed"
FAILED = "failed"
PARTIAL = "partial"
TERMINAL_STATUSES = (COMPLETED, FAILED, PARTIAL)

MAX_PROGRESS_WHILE_RUNNING = 95
MAX_PROGRESS_OVERTIME_BONUS = 4
UNKNOWN_DURATION_PROGRESS = 50


@dataclass
class ExecutionOutcome:
    """What the orchestrator reports when an attempt ends."""

    has_content: bool
    errors: List[str] = field(default_factory=list)
    selected_idea_id: Optional[str] = None
    format_chosen: Optional[str] = None
    format_reasoning: Optional[str] = None
    tokens_used: int = 0

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands timestamps back without tzinfo.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _elapsed_seconds(started_at: datetime, now: datetime) -> int:
    return max(math.floor((_as_utc(now) - _as_utc(started_at)).total_seconds()), 0)


def resolve_status(has_errors: bool, has_content: bool) -> str:
    if has_errors:
        return PARTIAL if has_content else FAILED
    return COMPLETED


def estimate_progress(
    status: str,
    started_at: datetime,
    now: datetime,
    duration_seconds: Optional[int] = None,
    typical_duration: Optional[int] = None,
) -> int:
    """
    Estimate progress (0-100) for a poller.

    Running executions move linearly to 95% over the typical duration, then
    gain 1% per extra minute up to 99%. Only completed executions report 100.
    """
    typical = max(int(typical_duration or settings.EXPANSION_TYPICAL_DURATION_SECONDS), 1)

    if status == COMPLETED:
        return 100
    if status in (FAILED, PARTIAL):
        if duration_seconds is None:
            return UNKNOWN_DURATION_PROGRESS
        return min(math.floor(duration_seconds / typical * 100), 99)

    elapsed = _elapsed_seconds(started_at, now)
    if elapsed < typical:
        return math.floor(elapsed / typical * MAX_PROGRESS_WHILE_RUNNING)
    overtime = elapsed - typical
    return MAX_PROGRESS_WHILE_RUNNING + math.floor(min(overtime / 60, MAX_PROGRESS_OVERTIME_BONUS))


async def start_execution(
    account_id: str,
    db: AsyncSession,
    *,
    selected_idea_id: Optional[str] = None,
) -> str:
    """Create a running execution and return its id."""
    execution_id = str(uuid.uuid4())
    try:
        db.add(
            Execution(
                id=execution_id,
                account_id=account_id,
                status=RUNNING,
                started_at=_utcnow(),
                selected_idea_id=selected_idea_id,
                tokens_used=0,
            )
        )
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise PersistenceError("start_execution", str(exc)) from exc
    return execution_id


async def _get_execution(execution_id: str, db: AsyncSession) -> Execution:
    result = await db.execute(
        select(Execution).where(Execution.id == execution_id).execution_options(populate_existing=True)
    )
    execution = result.scalar_one_or_none()
    if execution is None:
        raise NotFoundError("Execution", execution_id)
    return execution


async def finish_execution(
    execution_id: str,
    outcome: ExecutionOutcome,
    db: AsyncSession,
    *,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Record the terminal transition of an execution.

    The write only applies while the row is still ``running`` so an execution
    is finalized exactly once.
    """
    completed_at = now or _utcnow()
    try:
        execution = await _get_execution(execution_id, db)
        if execution.status != RUNNING:
            raise ValidationError(f"Execution {execution_id} is already {execution.status}", field="status")

        status = resolve_status(outcome.has_errors, outcome.has_content)
        duration_seconds = _elapsed_seconds(execution.started_at, completed_at)
        result = await db.execute(
            update(Execution)
            .where(Execution.id == execution_id, Execution.status == RUNNING)
            .values(
                status=status,
                completed_at=completed_at,
                duration_seconds=duration_seconds,
                selected_idea_id=outcome.selected_idea_id or execution.selected_idea_id,
                format_chosen=outcome.format_chosen,
                format_reasoning=outcome.format_reasoning,
                tokens_used=int(outcome.tokens_used or 0),
                error_message="; ".join(outcome.errors) or None,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await db.rollback()
            raise ValidationError(f"Execution {execution_id} was finalized concurrently", field="status")
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise PersistenceError("finish_execution", str(exc)) from exc

    logger.info("Execution %s finished as %s after %ss", execution_id, status, duration_seconds)
    return {"execution_id": execution_id, "status": status, "duration_seconds": duration_seconds}


async def get_execution_status(
    execution_id: str,
    account_id: str,
    db: AsyncSession,
    *,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Status query for pollers. Executions of other accounts are reported as missing."""
    current = now or _utcnow()
    execution = await _get_execution(execution_id, db)
    if execution.account_id != account_id:
        raise NotFoundError("Execution", execution_id)

    if execution.status == RUNNING or execution.duration_seconds is None:
        duration_so_far = _elapsed_seconds(execution.started_at, current)
    else:
        duration_so_far = int(execution.duration_seconds)

    payload: Dict[str, Any] = {
        "execution_id": execution.id,
        "status": execution.status,
        "progress": estimate_progress(
            execution.status,
            execution.started_at,
            current,
            duration_seconds=execution.duration_seconds,
        ),
        "duration_so_far": duration_so_far,
    }

    if execution.status == COMPLETED:
        output_result = await db.execute(select(Output.id).where(Output.execution_id == execution.id))
        output_id = output_result.scalar_one_or_none()
        if output_id:
            payload["output_id"] = output_id
    if execution.error_message:
        payload["error_message"] = execution.error_message
    return payload
