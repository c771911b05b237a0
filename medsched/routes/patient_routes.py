from datetime import date

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from medsched.auth.dependencies import get_current_user, require_roles
from medsched.core import config
from medsched.database import get_db
from medsched.models.patient import Patient
from medsched.models.user import Role, User
from medsched.routes.appointment_routes import (
    PaginatedAppointmentsResponse,
    get_appointment_service,
    to_paginated_response,
)
from medsched.services.appointment_service import AppointmentService
from medsched.services.patient_service import PatientService

router = APIRouter(tags=['patients'])


class PatientProfileFields(BaseModel):
    date_of_birth: date | None = None
    gender: str | None = Field(default=None, max_length=20)
    blood_group: str | None = Field(default=None, max_length=10)
    emergency_contact: str | None = Field(default=None, max_length=100)
    medical_history: str | None = None
    allergies: str | None = None
    current_medication: str | None = None


class CreatePatientRequest(PatientProfileFields):
    user_id: int | None = None


class PatientResponse(PatientProfileFields):
    id: int
    user_id: int
    name: str | None = None
    email: str | None = None


def to_patient_response(patient: Patient) -> PatientResponse:
    return PatientResponse(
        id=patient.id,
        user_id=patient.user_id,
        name=patient.user.name if patient.user else None,
        email=patient.user.email if patient.user else None,
        date_of_birth=patient.date_of_birth,
        gender=patient.gender,
        blood_group=patient.blood_group,
        emergency_contact=patient.emergency_contact,
        medical_history=patient.medical_history,
        allergies=patient.allergies,
        current_medication=patient.current_medication,
    )


@router.post('', response_model=PatientResponse, status_code=status.HTTP_201_CREATED)
def create_patient(
    data: CreatePatientRequest,
    current_user: User = Depends(require_roles(Role.PATIENT, Role.ADMIN)),
    db: Session = Depends(get_db),
):
    patient = PatientService(db).create_patient(
        user_id=data.user_id or current_user.id,
        actor=current_user,
        **data.model_dump(exclude={'user_id'}),
    )
    return to_patient_response(patient)


@router.get('/user/{user_id}', response_model=PatientResponse)
def get_patient_by_user(
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return to_patient_response(PatientService(db).get_patient_by_user(user_id, actor=current_user))


@router.get('/{patient_id}', response_model=PatientResponse)
def get_patient(
    patient_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return to_patient_response(PatientService(db).get_patient(patient_id, actor=current_user))


@router.put('/{patient_id}', response_model=PatientResponse)
def update_patient(
    patient_id: int,
    data: PatientProfileFields,
    current_user: User = Depends(require_roles(Role.PATIENT, Role.ADMIN)),
    db: Session = Depends(get_db),
):
    patient = PatientService(db).update_patient(patient_id, actor=current_user, **data.model_dump(exclude_unset=True))
    return to_patient_response(patient)


@router.delete('/{patient_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_patient(
    patient_id: int,
    current_user: User = Depends(require_roles(Role.ADMIN)),
    db: Session = Depends(get_db),
):
    PatientService(db).delete_patient(patient_id)


@router.get('/{patient_id}/appointments', response_model=PaginatedAppointmentsResponse)
def list_patient_appointments(
    patient_id: int,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=config.DEFAULT_PAGE_SIZE, ge=1, le=config.MAX_PAGE_SIZE),
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    result = service.list_patient_appointments(patient_id, page=page, page_size=page_size, actor=current_user)
    return to_paginated_response(result)
