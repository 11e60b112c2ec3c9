"""Account model."""

from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from database import Base


class Account(Base):
    """Identity owning credits, ideas and encrypted credentials."""

    __tablename__ = "accounts"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    credit_balance = relationship(
        "CreditBalance", back_populates="account", uselist=False, cascade="all, delete-orphan"
    )
    credentials = relationship("EncryptedCredential", back_populates="account", cascade="all, delete-orphan")
    ideas = relationship("Idea", back_populates="account", cascade="all, delete-orphan")
