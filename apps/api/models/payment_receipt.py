"""PaymentReceipt model: immutable audit record of a credit grant."""

import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.sql import func

from database import Base


class PaymentReceipt(Base):
    """Immutable receipt written alongside every paid credit grant."""

    __tablename__ = "payment_receipts"
    __table_args__ = (
        CheckConstraint("credits_granted > 0", name="ck_payment_receipts_credits_positive"),
        CheckConstraint("amount_usd > 0", name="ck_payment_receipts_amount_positive"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    account_id = Column(String, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    credits_granted = Column(Integer, nullable=False)
    amount_usd = Column(Numeric(10, 2), nullable=False)
    reference = Column(String, nullable=True)
    verified_by = Column(String, nullable=False)
    notes = Column(Text, nullable=True)
    status = Column(String, nullable=False, default="verified")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
