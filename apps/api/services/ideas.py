"""Idea storage: account-scoped CRUD and inline idea capture for the expansion flow."""

from typing import Any, Dict, List, Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from exceptions import NotFoundError, ValidationError
from models.idea import Idea

TITLE_MAX_CHARS = 100
IDEA_STATUSES = ("pending", "expanded", "archived")

_UNSET: Any = object()


def derive_title(content: str) -> str:
    if len(content) > TITLE_MAX_CHARS:
        return content[:TITLE_MAX_CHARS] + "..."
    return content


def _clean_bullets(bullets: Optional[List[str]]) -> List[str]:
    return [bullet.strip() for bullet in bullets or [] if isinstance(bullet, str) and bullet.strip()]


async def get_idea(account_id: str, idea_id: str, db: AsyncSession) -> Idea:
    """Fetch an idea owned by the account. Other accounts' ideas are reported as missing."""
    result = await db.execute(select(Idea).where(Idea.id == idea_id, Idea.account_id == account_id))
    idea = result.scalar_one_or_none()
    if idea is None:
        raise NotFoundError("Idea", idea_id)
    return idea


async def list_ideas(account_id: str, db: AsyncSession) -> List[Idea]:
    result = await db.execute(
        select(Idea).where(Idea.account_id == account_id).order_by(Idea.created_at.desc(), Idea.id)
    )
    return list(result.scalars().all())


async def create_idea(
    account_id: str,
    db: AsyncSession,
    *,
    content: str,
    title: Optional[str] = None,
    description: Optional[str] = None,
    bullets: Optional[List[str]] = None,
) -> Idea:
    content = (content or "").strip()
    if not content:
        raise ValidationError("Idea content must not be empty", field="content")

    description = (description or "").strip() or None
    if description is None and len(content) > TITLE_MAX_CHARS:
        description = content
    idea = Idea(
        account_id=account_id,
        title=(title or "").strip() or derive_title(content),
        description=description,
        bullets=_clean_bullets(bullets),
        status="pending",
    )
    db.add(idea)
    await db.commit()
    await db.refresh(idea)
    return idea


async def update_idea(
    account_id: str,
    idea_id: str,
    db: AsyncSession,
    *,
    title: Optional[str] = _UNSET,
    description: Optional[str] = _UNSET,
    bullets: Optional[List[str]] = _UNSET,
    status: Optional[str] = _UNSET,
) -> Idea:
    """
    Apply a partial update. Only the keyword arguments actually passed are
    written; an empty description clears it.

    Raises:
        ValidationError: Blank title or unknown status
        NotFoundError: The idea does not belong to the account
    """
    if title is not _UNSET and not (title or "").strip():
        raise ValidationError("Title must be a non-empty string", field="title")
    if status is not _UNSET and status not in IDEA_STATUSES:
        raise ValidationError(f"Status must be one of: {', '.join(IDEA_STATUSES)}", field="status")

    idea = await get_idea(account_id, idea_id, db)
    if title is not _UNSET:
        idea.title = title.strip()
    if description is not _UNSET:
        idea.description = (description or "").strip() or None
    if bullets is not _UNSET:
        idea.bullets = _clean_bullets(bullets)
    if status is not _UNSET:
        idea.status = status
    await db.commit()
    return idea


async def delete_idea(account_id: str, idea_id: str, db: AsyncSession) -> None:
    idea = await get_idea(account_id, idea_id, db)
    await db.delete(idea)
    await db.commit()


def idea_payload(idea: Idea) -> Dict[str, Any]:
    return {
        "id": idea.id,
        "title": idea.title,
        "description": idea.description,
        "bullets": list(idea.bullets or []),
    }


def idea_record(idea: Idea) -> Dict[str, Any]:
    return {
        **idea_payload(idea),
        "status": idea.status,
        "created_at": idea.created_at.isoformat() if idea.created_at else None,
    }


async def mark_expanded(idea_id: str, db: AsyncSession) -> None:
    """Flag the idea as expanded. Left uncommitted for the caller's transaction."""
    await db.execute(
        update(Idea).where(Idea.id == idea_id).values(status="expanded").execution_options(synchronize_session=False)
    )
