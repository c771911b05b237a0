from datetime import date

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from medsched.auth.dependencies import get_current_user, require_roles
from medsched.core import config
from medsched.database import get_db
from medsched.models.doctor import Doctor
from medsched.models.user import Role, User
from medsched.routes.appointment_routes import (
    PaginatedAppointmentsResponse,
    get_appointment_service,
    to_paginated_response,
)
from medsched.services.appointment_service import AppointmentService
from medsched.services.doctor_service import DoctorService

router = APIRouter(tags=['doctors'])


class CreateDoctorRequest(BaseModel):
    user_id: int | None = None
    specialty: str = Field(min_length=1, max_length=100)
    designation: str | None = Field(default=None, max_length=100)
    education: str | None = Field(default=None, max_length=255)
    experience: int = Field(default=0, ge=0)
    license_no: str | None = Field(default=None, max_length=100)
    bio: str | None = None


class UpdateDoctorRequest(BaseModel):
    specialty: str | None = Field(default=None, min_length=1, max_length=100)
    designation: str | None = Field(default=None, max_length=100)
    education: str | None = Field(default=None, max_length=255)
    experience: int | None = Field(default=None, ge=0)
    license_no: str | None = Field(default=None, max_length=100)
    bio: str | None = None


class DoctorResponse(BaseModel):
    id: int
    user_id: int
    name: str | None = None
    email: str | None = None
    specialty: str
    designation: str | None = None
    education: str | None = None
    experience: int
    license_no: str | None = None
    bio: str | None = None


class PaginatedDoctorsResponse(BaseModel):
    items: list[DoctorResponse]
    total_count: int
    page: int
    page_size: int


def to_doctor_response(doctor: Doctor) -> DoctorResponse:
    return DoctorResponse(
        id=doctor.id,
        user_id=doctor.user_id,
        name=doctor.user.name if doctor.user else None,
        email=doctor.user.email if doctor.user else None,
        specialty=doctor.specialty,
        designation=doctor.designation,
        education=doctor.education,
        experience=doctor.experience or 0,
        license_no=doctor.license_no,
        bio=doctor.bio,
    )


@router.post('', response_model=DoctorResponse, status_code=status.HTTP_201_CREATED)
def create_doctor(
    data: CreateDoctorRequest,
    current_user: User = Depends(require_roles(Role.DOCTOR, Role.ADMIN)),
    db: Session = Depends(get_db),
):
    fields = data.model_dump(exclude={'user_id', 'specialty'})
    doctor = DoctorService(db).create_doctor(
        user_id=data.user_id or current_user.id,
        specialty=data.specialty,
        actor=current_user,
        **fields,
    )
    return to_doctor_response(doctor)


@router.get('', response_model=PaginatedDoctorsResponse)
def list_doctors(
    specialty: str | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=config.DEFAULT_PAGE_SIZE, ge=1, le=config.MAX_PAGE_SIZE),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    result = DoctorService(db).list_doctors(specialty=specialty, page=page, page_size=page_size)
    return PaginatedDoctorsResponse(
        items=[to_doctor_response(doctor) for doctor in result.items],
        total_count=result.total_count,
        page=result.page,
        page_size=result.page_size,
    )


@router.get('/user/{user_id}', response_model=DoctorResponse)
def get_doctor_by_user(
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return to_doctor_response(DoctorService(db).get_doctor_by_user(user_id))


@router.get('/{doctor_id}', response_model=DoctorResponse)
def get_doctor(
    doctor_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return to_doctor_response(DoctorService(db).get_doctor(doctor_id))


@router.put('/{doctor_id}', response_model=DoctorResponse)
def update_doctor(
    doctor_id: int,
    data: UpdateDoctorRequest,
    current_user: User = Depends(require_roles(Role.DOCTOR, Role.ADMIN)),
    db: Session = Depends(get_db),
):
    doctor = DoctorService(db).update_doctor(doctor_id, actor=current_user, **data.model_dump(exclude_unset=True))
    return to_doctor_response(doctor)


@router.delete('/{doctor_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_doctor(
    doctor_id: int,
    current_user: User = Depends(require_roles(Role.ADMIN)),
    db: Session = Depends(get_db),
):
    DoctorService(db).delete_doctor(doctor_id)


@router.get('/{doctor_id}/appointments', response_model=PaginatedAppointmentsResponse)
def list_doctor_appointments(
    doctor_id: int,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=config.DEFAULT_PAGE_SIZE, ge=1, le=config.MAX_PAGE_SIZE),
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    result = service.list_doctor_appointments(doctor_id, page=page, page_size=page_size, actor=current_user)
    return to_paginated_response(result)


@router.get('/{doctor_id}/schedule', response_model=PaginatedAppointmentsResponse)
def get_doctor_schedule(
    doctor_id: int,
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=config.DEFAULT_PAGE_SIZE, ge=1, le=config.MAX_PAGE_SIZE),
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    result = service.get_doctor_schedule(
        doctor_id,
        start_date=start_date,
        end_date=end_date,
        page=page,
        page_size=page_size,
    )
    return to_paginated_response(result)
