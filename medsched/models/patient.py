"""Patient model definitions."""

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from medsched.core.clock import utc_now
from medsched.database import Base
from medsched.models.user import User


class Patient(Base):
    """Patient profile, one per user with the patient role."""
    __tablename__ = "patients"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    date_of_birth = Column(Date)
    gender = Column(String(20))
    blood_group = Column(String(10))
    emergency_contact = Column(String(100))
    medical_history = Column(Text)
    allergies = Column(Text)
    current_medication = Column(Text)
    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    user = relationship(User, lazy="joined")
