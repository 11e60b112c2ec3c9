"""Ideas router: create, list, edit and delete the current account's ideas."""

from typing import List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import AuthContext, get_auth_context
from services.ideas import create_idea, delete_idea, get_idea, idea_record, list_ideas, update_idea

router = APIRouter()


class CreateIdeaRequest(BaseModel):
    content: str = Field(min_length=1)
    title: Optional[str] = None
    description: Optional[str] = None
    bullets: List[str] = Field(default_factory=list)


class UpdateIdeaRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    bullets: Optional[List[str]] = None
    status: Optional[str] = None


@router.get("")
async def get_ideas(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    ideas = [idea_record(idea) for idea in await list_ideas(auth.account_id, db)]
    return {"ideas": ideas, "count": len(ideas)}


@router.post("", status_code=status.HTTP_201_CREATED)
async def post_idea(
    request: CreateIdeaRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    idea = await create_idea(
        auth.account_id,
        db,
        content=request.content,
        title=request.title,
        description=request.description,
        bullets=request.bullets,
    )
    return idea_record(idea)


@router.get("/{idea_id}")
async def get_single_idea(
    idea_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return idea_record(await get_idea(auth.account_id, idea_id, db))


@router.put("/{idea_id}")
async def put_idea(
    idea_id: str,
    request: UpdateIdeaRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """Update only the fields present in the request body."""
    idea = await update_idea(auth.account_id, idea_id, db, **request.model_dump(exclude_unset=True))
    return idea_record(idea)


@router.delete("/{idea_id}")
async def remove_idea(
    idea_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    await delete_idea(auth.account_id, idea_id, db)
    return {"deleted": True, "idea_id": idea_id}
