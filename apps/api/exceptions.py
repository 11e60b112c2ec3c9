"""Error taxonomy shared by the ledger, tracker, vault and LLM layers."""

from enum import Enum
from typing import Any, Dict, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    INSUFFICIENT_CREDITS = "insufficient_credits"
    PROVIDER = "provider"
    DECRYPTION = "decryption"
    CONFIG = "config"
    PERSISTENCE = "persistence"


class AppError(Exception):
    """Base exception for the idea expansion service."""

    kind: ErrorKind = ErrorKind.VALIDATION

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(AppError):
    """Raised when caller input is malformed. Nothing has been mutated."""

    kind = ErrorKind.VALIDATION

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, {"field": field} if field else None)


class NotFoundError(AppError):
    """Raised for unknown accounts, executions, ideas, outputs or credentials."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, resource: str, identifier: Optional[str] = None):
        message = f"{resource} not found" if not identifier else f"{resource} not found: {identifier}"
        super().__init__(message, {"resource": resource, "id": identifier})


class InsufficientCreditsError(AppError):
    """Raised when an account has neither free nor paid credits left."""

    kind = ErrorKind.INSUFFICIENT_CREDITS

    def __init__(
        self,
        account_id: str,
        free_remaining: int = 0,
        paid_remaining: int = 0,
        total_used: Optional[int] = None,
    ):
        message = "No free expansions or paid credits remaining. Purchase more credits to continue."
        details = {
            "account_id": account_id,
            "free_remaining": free_remaining,
            "paid_remaining": paid_remaining,
        }
        if total_used is not None:
            details["total_used"] = total_used
        super().__init__(message, details)


class ProviderError(AppError):
    """Raised when both the primary and the fallback generation calls failed."""

    kind = ErrorKind.PROVIDER

    def __init__(
        self,
        primary_provider: str,
        primary_error: BaseException,
        fallback_provider: str,
        fallback_error: BaseException,
    ):
        message = (
            f"Both LLMs failed. Primary ({primary_provider}): {primary_error}. "
            f"Fallback ({fallback_provider}): {fallback_error}"
        )
        details = {
            "primary_provider": primary_provider,
            "primary_error": str(primary_error),
            "fallback_provider": fallback_provider,
            "fallback_error": str(fallback_error),
        }
        super().__init__(message, details)
        self.primary_error = primary_error
        self.fallback_error = fallback_error


class DecryptionError(AppError):
    """Raised when an encrypted record is malformed or fails tag verification."""

    kind = ErrorKind.DECRYPTION

    def __init__(self, reason: str):
        super().__init__(f"Decryption failed: {reason}", {"reason": reason})


class ConfigError(AppError):
    """Raised when a key or provider credential is missing or invalid."""

    kind = ErrorKind.CONFIG

    def __init__(self, setting: str, reason: str):
        message = f"Configuration error for '{setting}': {reason}"
        super().__init__(message, {"setting": setting, "reason": reason})


class PersistenceError(AppError):
    """Raised when a storage operation fails."""

    kind = ErrorKind.PERSISTENCE

    def __init__(self, operation: str, error: str):
        message = f"Database operation '{operation}' failed: {error}"
        super().__init__(message, {"operation": operation, "database_error": error})


STATUS_CODES = {
    ErrorKind.VALIDATION: 422,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INSUFFICIENT_CREDITS: status.HTTP_402_PAYMENT_REQUIRED,
    ErrorKind.PROVIDER: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.DECRYPTION: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorKind.CONFIG: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorKind.PERSISTENCE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def status_code_for(exc: AppError) -> int:
    return STATUS_CODES.get(exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Convert an AppError into a JSON response with the mapped status code."""
    return JSONResponse(
        status_code=status_code_for(exc),
        content={
            "detail": {
                "error": exc.kind.value,
                "message": exc.message,
                **exc.details,
            }
        },
    )
