"""Activity log for expansion life-cycle events."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from database import async_session_maker
from models.usage_event import UsageEvent

logger = logging.getLogger(__name__)

EXPANSION_STARTED = "expansion_started"
EXPANSION_FINISHED = "expansion_finished"
CREDIT_CONSUMED = "credit_consumed"
CREDITS_GRANTED = "credits_granted"


async def record_event(
    event_name: str,
    *,
    account_id: Optional[str] = None,
    status: str = "ok",
    details: Optional[Dict[str, Any]] = None,
    session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
) -> bool:
    """
    Persist one usage event in its own session.

    Never raises: activity logging must not fail the operation being logged.
    Returns False when the event could not be written.
    """
    maker = session_maker or async_session_maker
    try:
        async with maker() as session:
            session.add(
                UsageEvent(
                    account_id=account_id,
                    event_name=event_name,
                    status=status,
                    details_json=details or {},
                )
            )
            await session.commit()
    except (SQLAlchemyError, OSError) as exc:
        logger.warning("Failed to record usage event %s: %s", event_name, exc)
        return False
    return True
