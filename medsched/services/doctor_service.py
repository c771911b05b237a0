import logging

from sqlalchemy.orm import Session

from medsched.core import config
from medsched.core.errors import Conflict, NotFound, PermissionDenied, ValidationFailed
from medsched.models.appointment import Appointment
from medsched.models.doctor import Doctor
from medsched.models.user import Role, User
from medsched.services.pagination import Page, paginate

logger = logging.getLogger(__name__)

DOCTOR_PROFILE_FIELDS = ('specialty', 'designation', 'education', 'experience', 'license_no', 'bio')


class DoctorService:
    def __init__(self, db: Session):
        self.db = db

    def create_doctor(self, user_id: int, specialty: str, actor: User | None = None, **fields) -> Doctor:
        user = self.db.get(User, user_id)
        if user is None:
            raise NotFound('User not found.')
        if user.role != Role.DOCTOR.value:
            raise ValidationFailed('Doctor profiles can only be created for users with the doctor role.')
        if actor is not None and actor.role != Role.ADMIN.value and actor.id != user_id:
            raise PermissionDenied('You can only create your own doctor profile.')
        if self.db.query(Doctor).filter(Doctor.user_id == user_id).first():
            raise Conflict('Doctor profile already exists for this user.')

        doctor = Doctor(user_id=user_id, specialty=_require_specialty(specialty))
        self._apply(doctor, fields)
        self.db.add(doctor)
        self.db.commit()
        self.db.refresh(doctor)

        logger.info("Created doctor profile %s for user %s", doctor.id, user_id)
        return doctor

    def get_doctor(self, doctor_id: int) -> Doctor:
        doctor = self.db.get(Doctor, doctor_id)
        if doctor is None:
            raise NotFound('Doctor not found.')
        return doctor

    def get_doctor_by_user(self, user_id: int) -> Doctor:
        doctor = self.db.query(Doctor).filter(Doctor.user_id == user_id).first()
        if doctor is None:
            raise NotFound('Doctor not found.')
        return doctor

    def list_doctors(
        self,
        specialty: str | None = None,
        page: int = 1,
        page_size: int = config.DEFAULT_PAGE_SIZE,
    ) -> Page:
        query = self.db.query(Doctor)
        if specialty:
            query = query.filter(Doctor.specialty.ilike(specialty.strip()))
        return paginate(query.order_by(Doctor.id.asc()), page, page_size)

    def update_doctor(self, doctor_id: int, actor: User | None = None, **fields) -> Doctor:
        doctor = self.get_doctor(doctor_id)
        if actor is not None and actor.role != Role.ADMIN.value and doctor.user_id != actor.id:
            raise PermissionDenied('You can only update your own doctor profile.')

        if fields.get('specialty') is not None:
            fields['specialty'] = _require_specialty(fields['specialty'])
        self._apply(doctor, fields)
        self.db.commit()
        self.db.refresh(doctor)
        return doctor

    def delete_doctor(self, doctor_id: int) -> None:
        doctor = self.get_doctor(doctor_id)
        self.db.query(Appointment).filter(Appointment.doctor_id == doctor_id).delete()
        self.db.delete(doctor)
        self.db.commit()
        logger.info("Deleted doctor profile %s", doctor_id)

    @staticmethod
    def _apply(doctor: Doctor, fields: dict) -> None:
        for name, value in fields.items():
            if name not in DOCTOR_PROFILE_FIELDS:
                raise ValueError(f'Unknown doctor field: {name}')
            if value is None:
                continue
            if name == 'experience' and value < 0:
                raise ValidationFailed('Experience cannot be negative.')
            setattr(doctor, name, value)


def _require_specialty(specialty: str) -> str:
    specialty = (specialty or '').strip()
    if not specialty:
        raise ValidationFailed('Specialty is required.')
    return specialty
