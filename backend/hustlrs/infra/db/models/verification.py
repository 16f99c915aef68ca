"""Verification code database model (registration and inactivity OTP)."""
from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String, UniqueConstraint

from hustlrs.infra.db.base import Base, JSONType


class VerificationCodeModel(Base):
    """Pending one-time code, one per (identifier, purpose)."""

    __tablename__ = "verification_codes"

    id = Column(String, primary_key=True)
    identifier = Column(String, nullable=False, index=True)  # email (registration) or user id (inactivity)
    purpose = Column(String, nullable=False)
    code_hash = Column(String, nullable=False)
    payload = Column(JSONType, nullable=True)  # pending registration fields
    attempts = Column(Integer, default=0, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("identifier", "purpose", name="uq_verification_codes_identifier_purpose"),
    )
