"""User model definitions."""

import enum

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from medsched.core.clock import utc_now
from medsched.database import Base


class Role(str, enum.Enum):
    PATIENT = "patient"
    DOCTOR = "doctor"
    ADMIN = "admin"


class User(Base):
    """Represents an application user."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(100), unique=True, index=True, nullable=False)
    email_verified = Column(Boolean, default=False, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False)  # patient/doctor/admin
    phone = Column(String(20))
    address = Column(String(255))
    avatar = Column(String(255))
    two_factor_enabled = Column(Boolean, default=False, nullable=False)
    two_factor_secret = Column(String(100))
    last_login = Column(DateTime)
    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)
