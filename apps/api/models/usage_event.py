"""Usage event model for the expansion activity log."""

import uuid

from sqlalchemy import Column, DateTime, JSON, String
from sqlalchemy.sql import func

from database import Base


class UsageEvent(Base):
    """Structured activity event (expansion started, credit consumed, ...)."""

    __tablename__ = "usage_events"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    account_id = Column(String, nullable=True, index=True)
    event_name = Column(String, nullable=False, index=True)
    status = Column(String, nullable=False, default="ok")
    details_json = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
