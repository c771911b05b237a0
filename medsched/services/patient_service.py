import logging
from datetime import date

from sqlalchemy.orm import Session

from medsched.core.errors import Conflict, NotFound, PermissionDenied, ValidationFailed
from medsched.models.appointment import Appointment
from medsched.models.patient import Patient
from medsched.models.user import Role, User

logger = logging.getLogger(__name__)

PATIENT_PROFILE_FIELDS = (
    'date_of_birth',
    'gender',
    'blood_group',
    'emergency_contact',
    'medical_history',
    'allergies',
    'current_medication',
)


class PatientService:
    def __init__(self, db: Session):
        self.db = db

    def create_patient(self, user_id: int, actor: User | None = None, **fields) -> Patient:
        user = self.db.get(User, user_id)
        if user is None:
            raise NotFound('User not found.')
        if user.role != Role.PATIENT.value:
            raise ValidationFailed('Patient profiles can only be created for users with the patient role.')
        if actor is not None and actor.role != Role.ADMIN.value and actor.id != user_id:
            raise PermissionDenied('You can only create your own patient profile.')
        if self.db.query(Patient).filter(Patient.user_id == user_id).first():
            raise Conflict('Patient profile already exists for this user.')

        patient = Patient(user_id=user_id)
        self._apply(patient, fields)
        self.db.add(patient)
        self.db.commit()
        self.db.refresh(patient)

        logger.info("Created patient profile %s for user %s", patient.id, user_id)
        return patient

    def get_patient(self, patient_id: int, actor: User | None = None) -> Patient:
        patient = self.db.get(Patient, patient_id)
        if patient is None:
            raise NotFound('Patient not found.')
        self._ensure_can_view(patient, actor)
        return patient

    def get_patient_by_user(self, user_id: int, actor: User | None = None) -> Patient:
        patient = self.db.query(Patient).filter(Patient.user_id == user_id).first()
        if patient is None:
            raise NotFound('Patient not found.')
        self._ensure_can_view(patient, actor)
        return patient

    def update_patient(self, patient_id: int, actor: User | None = None, **fields) -> Patient:
        patient = self.get_patient(patient_id)
        if actor is not None and actor.role != Role.ADMIN.value and patient.user_id != actor.id:
            raise PermissionDenied('You can only update your own patient profile.')

        self._apply(patient, fields)
        self.db.commit()
        self.db.refresh(patient)
        return patient

    def delete_patient(self, patient_id: int) -> None:
        patient = self.get_patient(patient_id)
        self.db.query(Appointment).filter(Appointment.patient_id == patient_id).delete()
        self.db.delete(patient)
        self.db.commit()
        logger.info("Deleted patient profile %s", patient_id)

    @staticmethod
    def _ensure_can_view(patient: Patient, actor: User | None) -> None:
        # Doctors and admins may read any patient record.
        if actor is not None and actor.role == Role.PATIENT.value and patient.user_id != actor.id:
            raise PermissionDenied('You can only view your own patient profile.')

    @staticmethod
    def _apply(patient: Patient, fields: dict) -> None:
        for name, value in fields.items():
            if name not in PATIENT_PROFILE_FIELDS:
                raise ValueError(f'Unknown patient field: {name}')
            if value is None:
                continue
            if name == 'date_of_birth' and value > date.today():
                raise ValidationFailed('Date of birth cannot be in the future.')
            setattr(patient, name, value)
