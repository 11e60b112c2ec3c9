"""
Idea Expansion API - FastAPI Backend
Main application entry point with health check and API routing.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import settings, validate_security_settings
from database import engine, Base
from exceptions import AppError, ConfigError, app_error_handler
import models  # noqa: F401
from routers import (
    health,
    auth,
    expand,
    billing,
    credentials,
    ideas,
)
from services.crypto import test_round_trip

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    # Startup
    logger.info("Starting Idea Expansion API...")
    validate_security_settings()
    if not test_round_trip():
        raise ConfigError("ENCRYPTION_KEY", "encryption round-trip check failed")
    logger.info("Credential vault round-trip check passed.")
    if settings.AUTO_CREATE_DB_SCHEMA:
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info("Database schema verified.")
        except Exception as e:
            logger.warning("Database bootstrap skipped: %s", e)
    yield
    # Shutdown
    logger.info("Shutting down API...")


app = FastAPI(
    title="Idea Expansion API",
    description="Expand raw ideas into blog posts, threads and code projects",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(AppError, app_error_handler)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(auth.router, prefix="/auth", tags=["Authentication"])
app.include_router(expand.router, prefix="/expand", tags=["Expansion"])
app.include_router(billing.router, prefix="/billing", tags=["Billing"])
app.include_router(ideas.router, prefix="/ideas", tags=["Ideas"])
app.include_router(credentials.router, prefix="/credentials", tags=["Credentials"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Idea Expansion API",
        "version": "0.1.0",
        "status": "running"
    }
