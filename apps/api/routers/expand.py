"""Expansion router: start an expansion, poll its status, fetch outputs."""

from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from pydantic import BaseModel, Field, model_validator
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import AuthContext, get_auth_context
from services.executions import get_execution_status
from services.expansion import get_output, list_outputs, run_expansion_pipeline, start_expansion

router = APIRouter()


class InlineIdea(BaseModel):
    content: str = Field(min_length=1)
    title: Optional[str] = None
    description: Optional[str] = None
    bullets: List[str] = Field(default_factory=list)


class ExpandRequest(BaseModel):
    idea_id: Optional[str] = None
    idea: Optional[InlineIdea] = None

    @model_validator(mode="after")
    def _exactly_one_source(self):
        if bool(self.idea_id) == bool(self.idea):
            raise ValueError("Provide exactly one of idea_id or idea")
        return self


class ExpandResponse(BaseModel):
    execution_id: str
    idea_id: str
    status: str
    duration_so_far: int


@router.post("", response_model=ExpandResponse)
async def expand_idea(
    request: ExpandRequest,
    background_tasks: BackgroundTasks,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """Start an expansion. Generation runs after the response is sent."""
    started = await start_expansion(
        auth.account_id,
        db,
        idea_id=request.idea_id,
        idea=request.idea.model_dump() if request.idea else None,
    )
    background_tasks.add_task(
        run_expansion_pipeline,
        started["execution_id"],
        auth.account_id,
        started["idea_id"],
    )
    return started


@router.get("/status")
async def expansion_status(
    execution_id: str = Query(..., min_length=1),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await get_execution_status(execution_id, auth.account_id, db)


@router.get("/outputs")
async def expansion_outputs(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """List the account's outputs, newest first."""
    outputs = await list_outputs(auth.account_id, db)
    return {"outputs": outputs, "count": len(outputs)}


@router.get("/outputs/{output_id}")
async def expansion_output(
    output_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await get_output(output_id, auth.account_id, db)
