"""Output model for generated artifacts."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, JSON, String
from sqlalchemy.sql import func
import uuid

from database import Base


class Output(Base):
    """Generated artifact tied to one execution and its source idea."""

    __tablename__ = "outputs"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    execution_id = Column(String, ForeignKey("executions.id", ondelete="CASCADE"), nullable=False, unique=True)
    account_id = Column(String, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    idea_id = Column(String, ForeignKey("ideas.id", ondelete="CASCADE"), nullable=False, index=True)
    format = Column(String, nullable=False)
    content = Column(JSON, nullable=False)
    published = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
