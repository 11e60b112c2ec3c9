"""Execution model for idea expansion attempts."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
import uuid

from database import Base


class Execution(Base):
    """One attempt to expand an idea."""

    __tablename__ = "executions"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    account_id = Column(String, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String, nullable=False, default="running")  # running, completed, failed, partial
    started_at = Column(DateTime(timezone=True), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    duration_seconds = Column(Integer, nullable=True)
    selected_idea_id = Column(String, ForeignKey("ideas.id", ondelete="SET NULL"), nullable=True)
    format_chosen = Column(String, nullable=True)  # blog_post, thread, code_repo
    format_reasoning = Column(Text, nullable=True)
    tokens_used = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)
