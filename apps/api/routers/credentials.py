"""Credential router: manage encrypted third-party credentials for the current account."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import AuthContext, get_auth_context
from services.credentials import delete_credential, list_credentials, save_credential, update_validation

router = APIRouter()


class StoreCredentialRequest(BaseModel):
    secret: str = Field(min_length=1)


class ValidationRequest(BaseModel):
    is_valid: bool


@router.get("")
async def get_credentials(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """List stored credentials. Secrets are never returned."""
    return {"credentials": await list_credentials(auth.account_id, db)}


@router.put("/{provider}")
async def put_credential(
    provider: str,
    request: StoreCredentialRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await save_credential(auth.account_id, provider, request.secret, db)


@router.post("/{provider}/validation")
async def set_validation(
    provider: str,
    request: ValidationRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await update_validation(auth.account_id, provider, request.is_valid, db)


@router.delete("/{provider}")
async def remove_credential(
    provider: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    await delete_credential(auth.account_id, provider, db)
    return {"deleted": True, "provider": provider}
