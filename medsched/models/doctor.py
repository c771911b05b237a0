"""Doctor model definitions."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from medsched.core.clock import utc_now
from medsched.database import Base
from medsched.models.user import User


class Doctor(Base):
    """Doctor profile, one per user with the doctor role."""
    __tablename__ = "doctors"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    specialty = Column(String(100), nullable=False, index=True)
    designation = Column(String(100))
    education = Column(String(255))
    experience = Column(Integer, default=0, nullable=False)
    license_no = Column(String(100))
    bio = Column(Text)
    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    user = relationship(User, lazy="joined")
