"""
Health check endpoints.
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text

from config import settings
from database import engine
from services.crypto import test_round_trip

router = APIRouter()


def _llm_keys_status() -> dict:
    return {
        "openai_api_key": "configured" if settings.OPENAI_API_KEY else "missing",
        "anthropic_api_key": "configured" if settings.ANTHROPIC_API_KEY else "missing",
    }


@router.get("/health")
async def health_check():
    """
    Health check endpoint.
    Returns overall system health status.
    """
    health_status = {
        "status": "healthy",
        "api": "up",
        "database": "unknown",
        "vault": "ok" if test_round_trip() else "failing",
        **_llm_keys_status(),
    }
    if health_status["vault"] != "ok":
        health_status["status"] = "degraded"

    # Check database connection
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        health_status["database"] = "up"
    except Exception as e:
        health_status["database"] = f"down: {str(e)}"
        health_status["status"] = "degraded"

    return health_status


@router.get("/health/ready")
async def readiness_check():
    """Kubernetes-style readiness check."""
    missing = []
    if not test_round_trip():
        missing.append("ENCRYPTION_KEY")
    if not settings.OPENAI_API_KEY and not settings.ANTHROPIC_API_KEY:
        missing.append("OPENAI_API_KEY or ANTHROPIC_API_KEY")

    if missing:
        return JSONResponse(
            status_code=503,
            content={"ready": False, "missing": missing},
        )
    return {"ready": True}


@router.get("/health/live")
async def liveness_check():
    """Kubernetes-style liveness check."""
    return {"alive": True}
