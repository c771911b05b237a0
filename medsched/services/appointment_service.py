import logging
from datetime import date, datetime, time, timedelta

from sqlalchemy import or_
from sqlalchemy.orm import Session

from medsched.core import config
from medsched.core.clock import Clock, utc_now
from medsched.core.errors import Conflict, NotFound, PermissionDenied, ValidationFailed
from medsched.models.appointment import Appointment, AppointmentStatus, AppointmentType
from medsched.models.doctor import Doctor
from medsched.models.patient import Patient
from medsched.models.user import Role, User
from medsched.services import scheduling
from medsched.services.notifier import LoggingNotifier, Notifier, notify
from medsched.services.pagination import Page, paginate

logger = logging.getLogger(__name__)

RESCHEDULABLE_STATUSES = frozenset({AppointmentStatus.PENDING.value, AppointmentStatus.CONFIRMED.value})

STATUS_NOTICES = {
    AppointmentStatus.CONFIRMED: 'Appointment confirmed',
    AppointmentStatus.CANCELLED: 'Appointment cancelled',
}


class AppointmentService:
    """Books appointments and moves them through their lifecycle.

    ``actor`` arguments are the authenticated user making the request; when
    omitted, ownership checks are skipped.
    """

    def __init__(self, db: Session, clock: Clock = utc_now, notifier: Notifier | None = None):
        self.db = db
        self.clock = clock
        self.notifier = notifier or LoggingNotifier()

    def find_conflicts(
        self,
        doctor_id: int,
        start: datetime,
        end: datetime,
        exclude_id: int | None = None,
    ) -> list[Appointment]:
        query = self.db.query(Appointment).filter(
            Appointment.doctor_id == doctor_id,
            Appointment.status != AppointmentStatus.CANCELLED.value,
            or_(
                (Appointment.scheduled_start < end) & (Appointment.scheduled_end > start),
                Appointment.scheduled_start == start,
            ),
        )
        if exclude_id is not None:
            query = query.filter(Appointment.id != exclude_id)

        candidates = query.order_by(Appointment.scheduled_start.asc()).all()
        return [existing for existing in candidates if scheduling.conflicts(existing, start, end)]

    def create_appointment(
        self,
        patient_id: int,
        doctor_id: int,
        scheduled_start: datetime,
        scheduled_end: datetime | None = None,
        reason: str | None = None,
        notes: str | None = None,
        appointment_type: str = AppointmentType.IN_PERSON.value,
        actor: User | None = None,
    ) -> Appointment:
        patient = self.db.get(Patient, patient_id)
        if patient is None:
            raise NotFound('Patient not found.')

        doctor = self.db.get(Doctor, doctor_id)
        if doctor is None:
            raise NotFound('Doctor not found.')

        if actor is not None:
            self._ensure_can_book(actor, patient, doctor)

        if scheduled_end is None:
            scheduled_end = scheduled_start + timedelta(minutes=config.DEFAULT_APPOINTMENT_MINUTES)

        scheduling.validate_window(scheduled_start, scheduled_end, self.clock())
        self._ensure_free(doctor_id, scheduled_start, scheduled_end)

        appointment = Appointment(
            patient_id=patient_id,
            doctor_id=doctor_id,
            scheduled_start=scheduled_start,
            scheduled_end=scheduled_end,
            status=AppointmentStatus.PENDING.value,
            reason=reason,
            notes=notes,
            type=appointment_type,
        )
        self.db.add(appointment)
        self.db.commit()
        self.db.refresh(appointment)

        logger.info(
            "Appointment %s booked for doctor %s at %s",
            appointment.id,
            doctor_id,
            scheduled_start.isoformat(),
        )
        self._notify_participants(appointment, 'Appointment requested')
        return appointment

    def get_appointment(self, appointment_id: int, actor: User | None = None) -> Appointment:
        appointment = self.db.get(Appointment, appointment_id)
        if appointment is None:
            raise NotFound('Appointment not found.')

        if actor is not None:
            self._ensure_participant(actor, appointment)

        return appointment

    def list_patient_appointments(
        self,
        patient_id: int,
        page: int = 1,
        page_size: int = config.DEFAULT_PAGE_SIZE,
        actor: User | None = None,
    ) -> Page:
        patient = self.db.get(Patient, patient_id)
        if patient is None:
            raise NotFound('Patient not found.')

        if actor is not None and actor.role == Role.PATIENT.value and patient.user_id != actor.id:
            raise PermissionDenied('You can only view your own appointments.')

        query = self.db.query(Appointment).filter(
            Appointment.patient_id == patient_id,
        ).order_by(Appointment.scheduled_start.desc())
        return paginate(query, page, page_size)

    def list_doctor_appointments(
        self,
        doctor_id: int,
        page: int = 1,
        page_size: int = config.DEFAULT_PAGE_SIZE,
        actor: User | None = None,
    ) -> Page:
        doctor = self.db.get(Doctor, doctor_id)
        if doctor is None:
            raise NotFound('Doctor not found.')

        if actor is not None and actor.role != Role.ADMIN.value and doctor.user_id != actor.id:
            raise PermissionDenied("Only the doctor can view their appointments.")

        query = self.db.query(Appointment).filter(
            Appointment.doctor_id == doctor_id,
        ).order_by(Appointment.scheduled_start.desc())
        return paginate(query, page, page_size)

    def get_doctor_schedule(
        self,
        doctor_id: int,
        start_date: date | None = None,
        end_date: date | None = None,
        page: int = 1,
        page_size: int = config.DEFAULT_PAGE_SIZE,
    ) -> Page:
        """Non-cancelled appointments starting within [start_date, end_date], oldest first."""
        if self.db.get(Doctor, doctor_id) is None:
            raise NotFound('Doctor not found.')

        if start_date and end_date and end_date < start_date:
            raise ValidationFailed('end_date must not be before start_date.')

        query = self.db.query(Appointment).filter(
            Appointment.doctor_id == doctor_id,
            Appointment.status != AppointmentStatus.CANCELLED.value,
        )
        if start_date:
            query = query.filter(Appointment.scheduled_start >= datetime.combine(start_date, time.min))
        if end_date:
            query = query.filter(
                Appointment.scheduled_start < datetime.combine(end_date + timedelta(days=1), time.min)
            )

        return paginate(query.order_by(Appointment.scheduled_start.asc()), page, page_size)

    def update_appointment(
        self,
        appointment_id: int,
        scheduled_start: datetime | None = None,
        scheduled_end: datetime | None = None,
        status: AppointmentStatus | None = None,
        reason: str | None = None,
        notes: str | None = None,
        appointment_type: str | None = None,
        actor: User | None = None,
    ) -> Appointment:
        appointment = self.get_appointment(appointment_id, actor=actor)
        scheduling.ensure_modifiable(appointment)
        now = self.clock()

        # Status guards run against the stored times, before any reschedule.
        if status is not None:
            if actor is not None and status != AppointmentStatus.CANCELLED:
                self._ensure_doctor_or_admin(actor, appointment)
            try:
                scheduling.ensure_transition(appointment, status, now)
            except ValidationFailed as exc:
                logger.warning("Rejected %s for appointment %s: %s", status.value, appointment.id, exc.message)
                raise

        rescheduled = False
        if scheduled_start is not None or scheduled_end is not None:
            if appointment.status not in RESCHEDULABLE_STATUSES:
                raise ValidationFailed(f'Cannot reschedule a {appointment.status} appointment.')

            new_start = scheduled_start or appointment.scheduled_start
            if scheduled_end is not None:
                new_end = scheduled_end
            else:
                new_end = new_start + (appointment.scheduled_end - appointment.scheduled_start)

            scheduling.validate_window(new_start, new_end, now)
            self._ensure_free(appointment.doctor_id, new_start, new_end, exclude_id=appointment.id)

            rescheduled = (new_start, new_end) != (appointment.scheduled_start, appointment.scheduled_end)
            appointment.scheduled_start = new_start
            appointment.scheduled_end = new_end

        if status is not None:
            appointment.status = status.value
        if reason is not None:
            appointment.reason = reason
        if notes is not None:
            appointment.notes = notes
        if appointment_type is not None:
            appointment.type = appointment_type

        self.db.commit()
        self.db.refresh(appointment)

        logger.info("Appointment %s updated", appointment.id)
        if status in STATUS_NOTICES:
            self._notify_participants(appointment, STATUS_NOTICES[status])
        if rescheduled:
            self._notify_participants(appointment, 'Appointment rescheduled')
        return appointment

    def confirm_appointment(self, appointment_id: int, actor: User | None = None) -> Appointment:
        appointment = self.get_appointment(appointment_id, actor=actor)
        if actor is not None:
            self._ensure_doctor_or_admin(actor, appointment)

        if appointment.status != AppointmentStatus.PENDING.value:
            raise ValidationFailed('Only pending appointments can be confirmed.')

        return self._transition(appointment, AppointmentStatus.CONFIRMED)

    def cancel_appointment(self, appointment_id: int, actor: User | None = None) -> Appointment:
        appointment = self.get_appointment(appointment_id, actor=actor)
        return self._transition(appointment, AppointmentStatus.CANCELLED)

    def complete_appointment(
        self,
        appointment_id: int,
        notes: str | None = None,
        actor: User | None = None,
    ) -> Appointment:
        appointment = self.get_appointment(appointment_id, actor=actor)
        if actor is not None:
            self._ensure_doctor_or_admin(actor, appointment)

        return self._transition(appointment, AppointmentStatus.COMPLETED, notes=notes)

    def mark_no_show(self, appointment_id: int, actor: User | None = None) -> Appointment:
        appointment = self.get_appointment(appointment_id, actor=actor)
        if actor is not None:
            self._ensure_doctor_or_admin(actor, appointment)

        return self._transition(appointment, AppointmentStatus.NO_SHOW)

    def _transition(
        self,
        appointment: Appointment,
        target: AppointmentStatus,
        notes: str | None = None,
    ) -> Appointment:
        try:
            scheduling.ensure_transition(appointment, target, self.clock())
        except ValidationFailed as exc:
            logger.warning("Rejected %s for appointment %s: %s", target.value, appointment.id, exc.message)
            raise

        appointment.status = target.value
        if notes is not None:
            appointment.notes = notes
        self.db.commit()
        self.db.refresh(appointment)

        logger.info("Appointment %s is now %s", appointment.id, target.value)
        if target in STATUS_NOTICES:
            self._notify_participants(appointment, STATUS_NOTICES[target])
        return appointment

    def _ensure_free(self, doctor_id: int, start: datetime, end: datetime, exclude_id: int | None = None) -> None:
        if self.find_conflicts(doctor_id, start, end, exclude_id=exclude_id):
            logger.warning("Rejected booking for doctor %s at %s: slot taken", doctor_id, start.isoformat())
            raise Conflict('Appointment time conflicts with an existing appointment.')

    def _ensure_can_book(self, actor: User, patient: Patient, doctor: Doctor) -> None:
        if actor.role == Role.PATIENT.value and patient.user_id != actor.id:
            raise PermissionDenied('Patients can only book appointments for themselves.')
        if actor.role == Role.DOCTOR.value and doctor.user_id != actor.id:
            raise PermissionDenied('Doctors can only book appointments on their own schedule.')

    def _ensure_participant(self, actor: User, appointment: Appointment) -> None:
        if actor.role == Role.ADMIN.value:
            return
        if actor.role == Role.PATIENT.value and appointment.patient.user_id == actor.id:
            return
        if actor.role == Role.DOCTOR.value and appointment.doctor.user_id == actor.id:
            return
        raise PermissionDenied('You do not have access to this appointment.')

    def _ensure_doctor_or_admin(self, actor: User, appointment: Appointment) -> None:
        if actor.role == Role.ADMIN.value:
            return
        if actor.role == Role.DOCTOR.value and appointment.doctor.user_id == actor.id:
            return
        raise PermissionDenied("Only the appointment's doctor can perform this action.")

    def _notify_participants(self, appointment: Appointment, subject: str) -> None:
        body = (
            f"{subject}: appointment #{appointment.id} "
            f"from {appointment.scheduled_start.isoformat()} to {appointment.scheduled_end.isoformat()} "
            f"is {appointment.status}."
        )
        notify(self.notifier, appointment.patient.user.email, subject, body)
        notify(self.notifier, appointment.doctor.user.email, subject, body)
