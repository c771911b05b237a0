"""Appointment window validation, conflict detection and lifecycle guards.

Everything here is pure: callers pass in the current time and the
appointments they loaded, so the rules can be exercised without a database.
"""

from datetime import datetime, timedelta

from medsched.core import config
from medsched.core.errors import ValidationFailed
from medsched.models.appointment import Appointment, AppointmentStatus

ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset({
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.COMPLETED,
        AppointmentStatus.NO_SHOW,
    }),
    AppointmentStatus.CONFIRMED: frozenset({
        AppointmentStatus.CANCELLED,
        AppointmentStatus.COMPLETED,
        AppointmentStatus.NO_SHOW,
    }),
    AppointmentStatus.CANCELLED: frozenset(),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.NO_SHOW: frozenset(),
}

# Appointments in these states accept no changes at all.
LOCKED_STATUSES = frozenset({AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED})


def validate_window(start: datetime, end: datetime, now: datetime) -> None:
    if end <= start:
        raise ValidationFailed('Appointment end time must be after its start time.')

    if start < now:
        raise ValidationFailed('Appointment cannot be scheduled in the past.')


def windows_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    return a_start < b_end and a_end > b_start


def conflicts(existing: Appointment, start: datetime, end: datetime) -> bool:
    """Whether ``existing`` blocks a new booking of [start, end).

    Two bookings starting at the same instant always conflict, even when one
    of them has zero overlap by length.
    """
    if existing.status == AppointmentStatus.CANCELLED.value:
        return False

    return (
        windows_overlap(existing.scheduled_start, existing.scheduled_end, start, end)
        or existing.scheduled_start == start
    )


def ensure_modifiable(appointment: Appointment) -> None:
    status = AppointmentStatus(appointment.status)
    if status in LOCKED_STATUSES:
        raise ValidationFailed(f'Cannot modify a {status.value} appointment.')


def ensure_transition(appointment: Appointment, target: AppointmentStatus, now: datetime) -> None:
    """Raise ``ValidationFailed`` unless ``appointment`` may move to ``target`` at ``now``."""
    current = AppointmentStatus(appointment.status)

    if current == target:
        raise ValidationFailed(f'Appointment is already {current.value}.')

    if current == AppointmentStatus.CANCELLED and target == AppointmentStatus.COMPLETED:
        raise ValidationFailed('Cannot complete a cancelled appointment.')

    ensure_modifiable(appointment)

    if target not in ALLOWED_TRANSITIONS[current]:
        raise ValidationFailed(f'Cannot change appointment status from {current.value} to {target.value}.')

    if target == AppointmentStatus.CANCELLED:
        notice = timedelta(minutes=config.CANCELLATION_NOTICE_MINUTES)
        if appointment.scheduled_start - now < notice:
            raise ValidationFailed(
                f'Appointment cannot be cancelled less than {_describe_minutes(config.CANCELLATION_NOTICE_MINUTES)} '
                'before the scheduled time.'
            )

    if target == AppointmentStatus.COMPLETED and now < appointment.scheduled_start:
        raise ValidationFailed('Cannot complete an appointment before its scheduled time.')

    if target == AppointmentStatus.NO_SHOW and now < appointment.scheduled_start:
        raise ValidationFailed('Cannot mark an appointment as no-show before its scheduled time.')


def _describe_minutes(minutes: int) -> str:
    if minutes % 60 == 0:
        hours = minutes // 60
        return '1 hour' if hours == 1 else f'{hours} hours'
    return f'{minutes} minutes'
