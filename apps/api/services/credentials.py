"""Per-account encrypted credential storage."""

from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from exceptions import NotFoundError, PersistenceError, ValidationError
from models.encrypted_credential import EncryptedCredential
from services.crypto import get_vault

logger = logging.getLogger(__name__)

PROVIDERS = ("openai", "anthropic", "github", "twitter", "replicate")
NOT_CHECKED = "not_checked"


def _require_provider(provider: str) -> str:
    normalized = (provider or "").strip().lower()
    if normalized not in PROVIDERS:
        raise ValidationError(
            f"Unknown provider '{provider}'. Expected one of: {', '.join(PROVIDERS)}",
            field="provider",
        )
    return normalized


async def _find(account_id: str, provider: str, db: AsyncSession) -> Optional[EncryptedCredential]:
    result = await db.execute(
        select(EncryptedCredential).where(
            EncryptedCredential.account_id == account_id,
            EncryptedCredential.provider == provider,
        )
    )
    return result.scalar_one_or_none()


def _metadata(credential: EncryptedCredential) -> Dict[str, Any]:
    return {
        "provider": credential.provider,
        "is_active": bool(credential.is_active),
        "validation_status": credential.validation_status,
        "created_at": credential.created_at.isoformat() if credential.created_at else None,
        "updated_at": credential.updated_at.isoformat() if credential.updated_at else None,
    }


async def save_credential(
    account_id: str,
    provider: str,
    secret: str,
    db: AsyncSession,
    *,
    commit: bool = True,
) -> Dict[str, Any]:
    """Encrypt a secret and upsert it, resetting the active flag and validation status."""
    provider = _require_provider(provider)
    if not secret:
        raise ValidationError("secret must not be empty", field="secret")

    vault = get_vault()
    record = vault.encrypt(secret)
    try:
        credential = await _find(account_id, provider, db)
        if credential is None:
            credential = EncryptedCredential(account_id=account_id, provider=provider)
            db.add(credential)
        credential.ciphertext = record["ciphertext"]
        credential.iv = record["iv"]
        credential.auth_tag = record["authTag"]
        credential.key_version = record.get("version")
        credential.is_active = True
        credential.validation_status = NOT_CHECKED
        credential.updated_at = datetime.now(timezone.utc)
        if commit:
            await db.commit()
        else:
            await db.flush()
        await db.refresh(credential)
    except SQLAlchemyError as exc:
        await db.rollback()
        raise PersistenceError("save_credential", str(exc)) from exc

    logger.info("Stored %s credential for account %s", provider, account_id)
    return _metadata(credential)


async def get_decrypted_credential(account_id: str, provider: str, db: AsyncSession) -> Optional[str]:
    """
    Return the plaintext secret, or None when no active credential exists.

    DecryptionError propagates: a stored record that cannot be decrypted is
    never reported as absent.
    """
    provider = _require_provider(provider)
    credential = await _find(account_id, provider, db)
    if credential is None or not credential.is_active:
        return None
    return get_vault().decrypt(credential.to_record())


async def get_decrypted_credentials(account_id: str, db: AsyncSession) -> Dict[str, str]:
    result = await db.execute(
        select(EncryptedCredential).where(
            EncryptedCredential.account_id == account_id,
            EncryptedCredential.is_active.is_(True),
        )
    )
    vault = get_vault()
    return {credential.provider: vault.decrypt(credential.to_record()) for credential in result.scalars().all()}


async def list_credentials(account_id: str, db: AsyncSession) -> List[Dict[str, Any]]:
    result = await db.execute(
        select(EncryptedCredential)
        .where(EncryptedCredential.account_id == account_id)
        .order_by(EncryptedCredential.provider)
    )
    return [_metadata(credential) for credential in result.scalars().all()]


async def update_validation(account_id: str, provider: str, is_valid: bool, db: AsyncSession) -> Dict[str, Any]:
    provider = _require_provider(provider)
    credential = await _find(account_id, provider, db)
    if credential is None:
        raise NotFoundError("Credential", provider)

    credential.validation_status = "valid" if is_valid else "invalid"
    credential.updated_at = datetime.now(timezone.utc)
    try:
        await db.commit()
        await db.refresh(credential)
    except SQLAlchemyError as exc:
        await db.rollback()
        raise PersistenceError("update_validation", str(exc)) from exc
    return _metadata(credential)


async def delete_credential(account_id: str, provider: str, db: AsyncSession) -> None:
    provider = _require_provider(provider)
    credential = await _find(account_id, provider, db)
    if credential is None:
        raise NotFoundError("Credential", provider)
    try:
        await db.delete(credential)
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise PersistenceError("delete_credential", str(exc)) from exc
    logger.info("Deleted %s credential for account %s", provider, account_id)
