from datetime import datetime

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from medsched.auth.dependencies import get_clock, get_current_user, get_notifier
from medsched.core.clock import Clock, to_naive_utc
from medsched.database import get_db
from medsched.models.appointment import Appointment, AppointmentStatus, AppointmentType
from medsched.models.user import User
from medsched.services.appointment_service import AppointmentService
from medsched.services.notifier import Notifier
from medsched.services.pagination import Page

router = APIRouter(tags=['appointments'])

MAX_REASON_LENGTH = 255


def _normalize_type(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip().lower()
    if normalized not in {appointment_type.value for appointment_type in AppointmentType}:
        raise ValueError('Type must be one of in_person, video, phone.')
    return normalized


def _normalize_reason(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip()
    if len(normalized) > MAX_REASON_LENGTH:
        raise ValueError(f'Reason must be {MAX_REASON_LENGTH} characters or fewer.')
    return normalized


class CreateAppointmentRequest(BaseModel):
    patient_id: int
    doctor_id: int
    scheduled_start: datetime
    scheduled_end: datetime | None = None
    reason: str | None = None
    type: str = AppointmentType.IN_PERSON.value
    notes: str | None = None

    @field_validator('scheduled_start', 'scheduled_end')
    @classmethod
    def validate_times(cls, value: datetime | None) -> datetime | None:
        return to_naive_utc(value) if value is not None else None

    @field_validator('type')
    @classmethod
    def validate_type(cls, value: str) -> str:
        return _normalize_type(value)

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        return _normalize_reason(value)


class UpdateAppointmentRequest(BaseModel):
    scheduled_start: datetime | None = None
    scheduled_end: datetime | None = None
    status: AppointmentStatus | None = None
    reason: str | None = None
    type: str | None = None
    notes: str | None = None

    @field_validator('scheduled_start', 'scheduled_end')
    @classmethod
    def validate_times(cls, value: datetime | None) -> datetime | None:
        return to_naive_utc(value) if value is not None else None

    @field_validator('type')
    @classmethod
    def validate_type(cls, value: str | None) -> str | None:
        return _normalize_type(value)

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        return _normalize_reason(value)


class CompleteAppointmentRequest(BaseModel):
    notes: str | None = None


class AppointmentResponse(BaseModel):
    id: int
    patient_id: int
    patient_name: str | None = None
    doctor_id: int
    doctor_name: str | None = None
    scheduled_start: datetime
    scheduled_end: datetime
    status: str
    type: str | None = None
    reason: str | None = None
    notes: str | None = None
    created_at: datetime
    updated_at: datetime


class PaginatedAppointmentsResponse(BaseModel):
    items: list[AppointmentResponse]
    total_count: int
    page: int
    page_size: int


def to_appointment_response(appointment: Appointment) -> AppointmentResponse:
    patient_user = appointment.patient.user if appointment.patient else None
    doctor_user = appointment.doctor.user if appointment.doctor else None
    return AppointmentResponse(
        id=appointment.id,
        patient_id=appointment.patient_id,
        patient_name=patient_user.name if patient_user else None,
        doctor_id=appointment.doctor_id,
        doctor_name=doctor_user.name if doctor_user else None,
        scheduled_start=appointment.scheduled_start,
        scheduled_end=appointment.scheduled_end,
        status=appointment.status,
        type=appointment.type,
        reason=appointment.reason,
        notes=appointment.notes,
        created_at=appointment.created_at,
        updated_at=appointment.updated_at,
    )


def to_paginated_response(page: Page) -> PaginatedAppointmentsResponse:
    return PaginatedAppointmentsResponse(
        items=[to_appointment_response(appointment) for appointment in page.items],
        total_count=page.total_count,
        page=page.page,
        page_size=page.page_size,
    )


def get_appointment_service(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    notifier: Notifier = Depends(get_notifier),
) -> AppointmentService:
    return AppointmentService(db, clock=clock, notifier=notifier)


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    appointment = service.create_appointment(
        patient_id=data.patient_id,
        doctor_id=data.doctor_id,
        scheduled_start=data.scheduled_start,
        scheduled_end=data.scheduled_end,
        reason=data.reason,
        notes=data.notes,
        appointment_type=data.type,
        actor=current_user,
    )
    return to_appointment_response(appointment)


@router.get('/{appointment_id}', response_model=AppointmentResponse)
def get_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    return to_appointment_response(service.get_appointment(appointment_id, actor=current_user))


@router.put('/{appointment_id}', response_model=AppointmentResponse)
def update_appointment(
    appointment_id: int,
    data: UpdateAppointmentRequest,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    appointment = service.update_appointment(
        appointment_id,
        scheduled_start=data.scheduled_start,
        scheduled_end=data.scheduled_end,
        status=data.status,
        reason=data.reason,
        notes=data.notes,
        appointment_type=data.type,
        actor=current_user,
    )
    return to_appointment_response(appointment)


@router.post('/{appointment_id}/confirm', response_model=AppointmentResponse)
def confirm_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    return to_appointment_response(service.confirm_appointment(appointment_id, actor=current_user))


@router.post('/{appointment_id}/cancel', response_model=AppointmentResponse)
def cancel_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    return to_appointment_response(service.cancel_appointment(appointment_id, actor=current_user))


@router.post('/{appointment_id}/complete', response_model=AppointmentResponse)
def complete_appointment(
    appointment_id: int,
    data: CompleteAppointmentRequest | None = None,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    notes = data.notes if data else None
    return to_appointment_response(service.complete_appointment(appointment_id, notes=notes, actor=current_user))


@router.post('/{appointment_id}/no-show', response_model=AppointmentResponse)
def mark_no_show(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    return to_appointment_response(service.mark_no_show(appointment_id, actor=current_user))
