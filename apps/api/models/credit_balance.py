"""CreditBalance model for expansion credit accounting."""

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base


class CreditBalance(Base):
    """Per-account free/paid credit balance.

    Rows are only mutated through the ledger's consume and grant operations,
    which bump ``version`` on every write.
    """

    __tablename__ = "credit_balances"
    __table_args__ = (
        CheckConstraint("free_remaining >= 0", name="ck_credit_balances_free_non_negative"),
        CheckConstraint("paid_remaining >= 0", name="ck_credit_balances_paid_non_negative"),
    )

    account_id = Column(String, ForeignKey("accounts.id", ondelete="CASCADE"), primary_key=True)
    free_remaining = Column(Integer, nullable=False, default=0)
    paid_remaining = Column(Integer, nullable=False, default=0)
    total_used = Column(Integer, nullable=False, default=0)
    total_free_used = Column(Integer, nullable=False, default=0)
    total_paid_used = Column(Integer, nullable=False, default=0)
    version = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    account = relationship("Account", back_populates="credit_balance")
