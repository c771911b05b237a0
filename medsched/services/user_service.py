import logging

from sqlalchemy.orm import Session

from medsched.core import config
from medsched.core.errors import NotFound, ValidationFailed
from medsched.models.appointment import Appointment
from medsched.models.doctor import Doctor
from medsched.models.patient import Patient
from medsched.models.session import Session as UserSession
from medsched.models.session import VerificationToken
from medsched.models.user import Role, User
from medsched.services.pagination import Page, paginate

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, db: Session):
        self.db = db

    def get_user(self, user_id: int) -> User:
        user = self.db.get(User, user_id)
        if user is None:
            raise NotFound('User not found.')
        return user

    def list_users(
        self,
        role: str | None = None,
        page: int = 1,
        page_size: int = config.DEFAULT_PAGE_SIZE,
    ) -> Page:
        query = self.db.query(User)
        if role:
            if role not in {r.value for r in Role}:
                raise ValidationFailed('Invalid role.')
            query = query.filter(User.role == role)
        return paginate(query.order_by(User.id.asc()), page, page_size)

    def update_profile(
        self,
        user: User,
        name: str | None = None,
        phone: str | None = None,
        address: str | None = None,
        avatar: str | None = None,
    ) -> User:
        if name is not None:
            if not name.strip():
                raise ValidationFailed('Name cannot be empty.')
            user.name = name.strip()
        if phone is not None:
            user.phone = phone
        if address is not None:
            user.address = address
        if avatar is not None:
            user.avatar = avatar

        self.db.commit()
        self.db.refresh(user)
        return user

    def delete_user(self, user_id: int) -> None:
        user = self.get_user(user_id)

        doctor = self.db.query(Doctor).filter(Doctor.user_id == user_id).first()
        if doctor is not None:
            self.db.query(Appointment).filter(Appointment.doctor_id == doctor.id).delete()
            self.db.delete(doctor)

        patient = self.db.query(Patient).filter(Patient.user_id == user_id).first()
        if patient is not None:
            self.db.query(Appointment).filter(Appointment.patient_id == patient.id).delete()
            self.db.delete(patient)

        self.db.query(UserSession).filter(UserSession.user_id == user_id).delete()
        self.db.query(VerificationToken).filter(VerificationToken.user_id == user_id).delete()
        self.db.delete(user)
        self.db.commit()
        logger.info("Deleted user %s", user_id)
