"""Session and verification token model definitions."""

import enum

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String

from medsched.core.clock import utc_now
from medsched.database import Base


class TokenType(str, enum.Enum):
    EMAIL_VERIFICATION = "email_verification"
    PASSWORD_RESET = "password_reset"


class Session(Base):
    """Backs one issued access/refresh token pair. Deleting it revokes both."""
    __tablename__ = "sessions"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    refresh_token_id = Column(String(64), unique=True, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    user_agent = Column(String(255))
    ip = Column(String(50))
    created_at = Column(DateTime, default=utc_now, nullable=False)


class VerificationToken(Base):
    __tablename__ = "verification_tokens"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    token = Column(String(255), unique=True, index=True, nullable=False)
    type = Column(String(50), nullable=False)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=utc_now, nullable=False)
