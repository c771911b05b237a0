"""Appointment model definitions."""

import enum

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from medsched.core.clock import utc_now
from medsched.database import Base
from medsched.models.doctor import Doctor
from medsched.models.patient import Patient


class AppointmentStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no_show"


class AppointmentType(str, enum.Enum):
    IN_PERSON = "in_person"
    VIDEO = "video"
    PHONE = "phone"


class Appointment(Base):
    """A doctor-patient visit occupying [scheduled_start, scheduled_end)."""
    __tablename__ = "appointments"
    __table_args__ = (
        Index("idx_appointments_doctor_start", "doctor_id", "scheduled_start"),
        Index("idx_appointments_patient_start", "patient_id", "scheduled_start"),
    )

    id = Column(Integer, primary_key=True)
    patient_id = Column(Integer, ForeignKey("patients.id", ondelete="CASCADE"), nullable=False)
    doctor_id = Column(Integer, ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False)
    scheduled_start = Column(DateTime, nullable=False)
    scheduled_end = Column(DateTime, nullable=False)
    status = Column(String(20), default=AppointmentStatus.PENDING.value, nullable=False)
    reason = Column(String(255))
    notes = Column(Text)
    type = Column(String(20), default=AppointmentType.IN_PERSON.value, nullable=False)
    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    patient = relationship(Patient, lazy="joined")
    doctor = relationship(Doctor, lazy="joined")
