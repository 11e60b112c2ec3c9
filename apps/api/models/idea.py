"""Idea model: raw user ideas awaiting expansion."""

from sqlalchemy import Column, DateTime, ForeignKey, JSON, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from database import Base


class Idea(Base):
    """A raw idea submitted by an account."""

    __tablename__ = "ideas"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    account_id = Column(String, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    bullets = Column(JSON, nullable=True)
    status = Column(String, nullable=False, default="pending")  # pending, expanded, archived
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    account = relationship("Account", back_populates="ideas")
