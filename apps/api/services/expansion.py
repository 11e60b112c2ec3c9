"""
Expansion orchestrator: credit check, execution tracking, generation and
the atomic charge-and-save of the generated output.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional
import uuid

from pydantic import ValidationError as ContentValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from database import async_session_maker
from exceptions import (
    AppError,
    InsufficientCreditsError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from generation.content import content_adapter
from generation.pipeline import GenerationResult, generate_content
from models.output import Output
from services import telemetry
from services.credits import check_limit, consume_credit
from services.executions import ExecutionOutcome, finish_execution, start_execution
from services.ideas import create_idea, get_idea, idea_payload, mark_expanded

logger = logging.getLogger(__name__)

Generator = Callable[[Dict[str, Any]], Awaitable[GenerationResult]]


async def _record(event_name: str, account_id: str, status: str = "ok", **details: Any) -> None:
    await telemetry.record_event(
        event_name,
        account_id=account_id,
        status=status,
        details=details,
        session_maker=async_session_maker,
    )


async def start_expansion(
    account_id: str,
    db: AsyncSession,
    *,
    idea_id: Optional[str] = None,
    idea: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Validate the request, check credits and open a running execution.

    Inline ideas are captured only after the credit check passes, so a
    rejected request leaves no rows behind.

    Returns:
        ``{"execution_id", "idea_id", "status", "duration_so_far"}``
    """
    if bool(idea_id) == bool(idea):
        raise ValidationError("Provide exactly one of idea_id or idea", field="idea_id")

    resolved_idea_id = None
    if idea_id:
        resolved_idea_id = (await get_idea(account_id, idea_id, db)).id

    limit = await check_limit(account_id, db)
    if not limit["allowed"]:
        logger.info("Expansion rejected for account %s: no credits", account_id)
        raise InsufficientCreditsError(account_id, 0, 0, limit["total_used"])

    if resolved_idea_id is None:
        created = await create_idea(
            account_id,
            db,
            content=idea.get("content", ""),
            title=idea.get("title"),
            description=idea.get("description"),
            bullets=idea.get("bullets"),
        )
        resolved_idea_id = created.id

    execution_id = await start_execution(account_id, db, selected_idea_id=resolved_idea_id)
    logger.info("Expansion %s started for account %s (idea %s)", execution_id, account_id, resolved_idea_id)
    await _record(telemetry.EXPANSION_STARTED, account_id, execution_id=execution_id, idea_id=resolved_idea_id)

    return {
        "execution_id": execution_id,
        "idea_id": resolved_idea_id,
        "status": "running",
        "duration_so_far": 0,
    }


async def _save_output(
    db: AsyncSession,
    *,
    execution_id: str,
    account_id: str,
    idea_id: str,
    result: GenerationResult,
    charge: bool,
) -> str:
    """
    Insert the output. When ``charge`` is set, the credit decrement, the output
    row and the idea status change commit as one transaction.
    """
    output_id = str(uuid.uuid4())
    try:
        if charge:
            # The consume must be the first write: a version conflict rolls back the transaction.
            credit_type = await consume_credit(account_id, db, commit=False)
        db.add(
            Output(
                id=output_id,
                execution_id=execution_id,
                account_id=account_id,
                idea_id=idea_id,
                format=result.content.format,
                content=result.content.model_dump(),
                published=False,
            )
        )
        if charge:
            await mark_expanded(idea_id, db)
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise PersistenceError("save_output", str(exc)) from exc
    except AppError:
        await db.rollback()
        raise

    logger.info("Saved %s output %s for execution %s", result.chosen_format, output_id, execution_id)
    if charge:
        await _record(telemetry.CREDIT_CONSUMED, account_id, execution_id=execution_id, credit_type=credit_type)
    return output_id


async def _finish_as_failed(execution_id: str, message: str, db: AsyncSession) -> None:
    try:
        await finish_execution(execution_id, ExecutionOutcome(has_content=False, errors=[message]), db)
    except AppError as exc:
        logger.error("Could not mark execution %s as failed: %s", execution_id, exc)


async def run_expansion_pipeline(
    execution_id: str,
    account_id: str,
    idea_id: str,
    *,
    generate: Optional[Generator] = None,
) -> Dict[str, Any]:
    """
    Background body of an expansion: generate, persist, charge, finalize.

    A credit is consumed only when content was produced without errors, and
    only together with the saved output. Partial results are saved for free.
    """
    generate = generate or generate_content
    async with async_session_maker() as db:
        try:
            idea = idea_payload(await get_idea(account_id, idea_id, db))
            # Release the read transaction; generation can take minutes.
            await db.commit()
            result = await generate(idea)
            errors = list(result.errors)

            output_id = None
            if result.has_content:
                try:
                    output_id = await _save_output(
                        db,
                        execution_id=execution_id,
                        account_id=account_id,
                        idea_id=idea_id,
                        result=result,
                        charge=not errors,
                    )
                except (InsufficientCreditsError, PersistenceError) as exc:
                    logger.error("Could not save output for execution %s: %s", execution_id, exc)
                    errors.append(exc.message)

            finished = await finish_execution(
                execution_id,
                ExecutionOutcome(
                    has_content=output_id is not None,
                    errors=errors,
                    selected_idea_id=idea_id,
                    format_chosen=result.chosen_format,
                    format_reasoning=result.format_reasoning,
                    tokens_used=result.tokens_used,
                ),
                db,
            )
        except Exception as exc:
            logger.error("Expansion pipeline %s failed: %s", execution_id, exc)
            await db.rollback()
            await _finish_as_failed(execution_id, str(exc), db)
            await _record(telemetry.EXPANSION_FINISHED, account_id, status="failed", execution_id=execution_id)
            return {"execution_id": execution_id, "status": "failed", "output_id": None}

    await _record(
        telemetry.EXPANSION_FINISHED,
        account_id,
        status=finished["status"],
        execution_id=execution_id,
        output_id=output_id,
        duration_seconds=finished["duration_seconds"],
    )
    return {"execution_id": execution_id, "status": finished["status"], "output_id": output_id}


def _output_record(output: Output) -> Dict[str, Any]:
    try:
        content = content_adapter.validate_python(output.content)
    except ContentValidationError as exc:
        logger.error("Stored output %s has malformed content: %s", output.id, exc)
        raise PersistenceError("read_output", f"malformed content for output {output.id}") from exc
    return {
        "id": output.id,
        "execution_id": output.execution_id,
        "idea_id": output.idea_id,
        "format": content.format,
        "content": content.model_dump(),
        "published": bool(output.published),
        "created_at": output.created_at.isoformat() if output.created_at else None,
    }


async def get_output(output_id: str, account_id: str, db: AsyncSession) -> Dict[str, Any]:
    result = await db.execute(select(Output).where(Output.id == output_id))
    output = result.scalar_one_or_none()
    if output is None or output.account_id != account_id:
        raise NotFoundError("Output", output_id)
    return _output_record(output)


async def list_outputs(account_id: str, db: AsyncSession) -> List[Dict[str, Any]]:
    """All outputs of an account, newest first."""
    result = await db.execute(
        select(Output).where(Output.account_id == account_id).order_by(Output.created_at.desc(), Output.id)
    )
    return [_output_record(output) for output in result.scalars().all()]
