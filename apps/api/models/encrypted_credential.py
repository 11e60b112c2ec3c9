"""EncryptedCredential model for third-party OAuth tokens and API keys."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from database import Base


class EncryptedCredential(Base):
    """AES-GCM encrypted secret for one (account, provider) pair."""

    __tablename__ = "encrypted_credentials"
    __table_args__ = (
        UniqueConstraint("account_id", "provider", name="uq_encrypted_credentials_account_provider"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    account_id = Column(String, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    provider = Column(String, nullable=False)  # openai, anthropic, github, twitter, replicate
    ciphertext = Column(Text, nullable=False)
    iv = Column(String, nullable=False)
    auth_tag = Column(String, nullable=False)
    key_version = Column(Integer, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    validation_status = Column(String, nullable=False, default="not_checked")  # valid, invalid, not_checked
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    account = relationship("Account", back_populates="credentials")

    def to_record(self) -> dict:
        """Rebuild the serialized vault record stored in this row."""
        record = {"ciphertext": self.ciphertext, "iv": self.iv, "authTag": self.auth_tag}
        if self.key_version is not None:
            record["version"] = self.key_version
        return record
