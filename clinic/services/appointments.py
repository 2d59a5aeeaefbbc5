"""
Appointment booking and lifecycle.

An appointment holds its doctor's slot only while ``confirmed``.  The
service checks for clashes up front so callers get a clear 409, and
relies on the partial unique constraints on :class:`Appointment` when two
requests race for the same slot.  Status moves only out of
``confirmed``: to ``completed`` (doctor) or ``cancelled`` (either side).
"""
import datetime
import logging
from typing import Optional

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.db.models import Q
from django.http import Http404
from django.utils import timezone
from rest_framework.exceptions import PermissionDenied, ValidationError

from clinic.exceptions import AppointmentConflict, InvalidTransition, SlotUnavailable
from clinic.models import Appointment, Notification
from clinic.sanitize import clean_text
from clinic.services.audit import log_action
from clinic.services.availability import declared_slots
from clinic.services.notifications import notify

logger = logging.getLogger(__name__)

User = get_user_model()

# from-status -> allowed to-statuses
TRANSITIONS = {
    Appointment.STATUS_CONFIRMED: {Appointment.STATUS_COMPLETED, Appointment.STATUS_CANCELLED},
    Appointment.STATUS_COMPLETED: set(),
    Appointment.STATUS_CANCELLED: set(),
}


def serialize_appointment(a: Appointment) -> dict:
    return {
        'id': a.id,
        'patientId': a.patient_id,
        'patientName': a.patient.display_name if a.patient_id else None,
        'doctorId': a.doctor_id,
        'doctorName': a.doctor.display_name if a.doctor_id else None,
        'specialization': a.doctor.specialization if a.doctor_id else '',
        'date': a.date.isoformat(),
        'time': a.time,
        'status': a.status,
        'notes': a.notes,
        'createdAt': a.created_at.isoformat() if a.created_at else None,
        'updatedAt': a.updated_at.isoformat() if a.updated_at else None,
    }


def _clean_notes(notes: Optional[str]) -> str:
    return clean_text(notes)


def _counterparts(user: User, appointment: Appointment) -> list:
    if user.id == appointment.patient_id:
        return [appointment.doctor]
    if user.id == appointment.doctor_id:
        return [appointment.patient]
    return [appointment.patient, appointment.doctor]


def _ensure_bookable(doctor_id: int, patient_id: int, date: datetime.date, time: str,
                     *, exclude_id: Optional[int] = None) -> None:
    starts = timezone.make_aware(
        datetime.datetime.combine(date, datetime.time(*(int(p) for p in time.split(':')))),
        timezone.get_current_timezone(),
    )
    if starts <= timezone.now():
        raise ValidationError({'date': ['Appointments must be booked in the future.']})
    if time not in declared_slots(doctor_id, date):
        raise SlotUnavailable()

    confirmed = Appointment.objects.filter(date=date, time=time, status=Appointment.STATUS_CONFIRMED)
    if exclude_id:
        confirmed = confirmed.exclude(id=exclude_id)
    if confirmed.filter(doctor_id=doctor_id).exists():
        raise AppointmentConflict()
    if confirmed.filter(patient_id=patient_id).exists():
        raise AppointmentConflict('You already have an appointment at this time.')


def book_appointment(patient: User, *, doctor_id: int, date: datetime.date, time: str,
                     notes: str = '') -> Appointment:
    doctor = User.objects.filter(id=doctor_id, role='doctor', is_active=True).first()
    if doctor is None:
        raise ValidationError({'doctorId': ['Unknown doctor.']})
    if doctor.id == patient.id:
        raise ValidationError({'doctorId': ['Cannot book an appointment with yourself.']})

    _ensure_bookable(doctor.id, patient.id, date, time)
    try:
        with transaction.atomic():
            appointment = Appointment.objects.create(
                patient=patient, doctor=doctor, date=date, time=time, notes=_clean_notes(notes),
            )
            notify(
                doctor, Notification.KIND_BOOKED, 'New appointment',
                f"{patient.display_name} booked {date:%Y-%m-%d} at {time}.",
                appointment=appointment,
            )
    except IntegrityError:
        # Lost a race for the slot against a concurrent booking
        raise AppointmentConflict()

    log_action(user=patient, action='appointment_book', object_type='appointment', object_id=appointment.id,
               detail={'doctorId': doctor.id, 'date': date.isoformat(), 'time': time})
    logger.info("appointment %s booked: patient=%s doctor=%s %s %s",
                appointment.id, patient.id, doctor.id, date, time)
    return appointment


def visible_appointments(user: User):
    qs = Appointment.objects.select_related('patient', 'doctor')
    if user.is_admin_role:
        return qs
    if user.role == 'doctor':
        return qs.filter(doctor=user)
    return qs.filter(patient=user)


def list_appointments(user: User, *, status: Optional[str] = None, date: Optional[datetime.date] = None,
                      upcoming: bool = False) -> list[dict]:
    qs = visible_appointments(user)
    if status:
        qs = qs.filter(status=status)
    if date:
        qs = qs.filter(date=date)
    if upcoming:
        now = timezone.localtime()
        qs = qs.filter(
            Q(date__gt=now.date()) | Q(date=now.date(), time__gte=now.strftime('%H:%M'))
        ).filter(status=Appointment.STATUS_CONFIRMED)
        return [serialize_appointment(a) for a in qs.order_by('date', 'time')]
    return [serialize_appointment(a) for a in qs.order_by('-date', '-time', '-id')]


def get_appointment_for(user: User, appointment_id: int) -> Appointment:
    """Return the appointment if ``user`` may see it; 404 otherwise (no existence leak)."""
    appointment = visible_appointments(user).filter(id=appointment_id).first()
    if appointment is None:
        raise Http404('appointment not found')
    return appointment


def change_status(user: User, appointment: Appointment, new_status: str) -> Appointment:
    if new_status not in TRANSITIONS.get(appointment.status, set()):
        raise InvalidTransition(f"Cannot change status from {appointment.status} to {new_status}.")
    if new_status == Appointment.STATUS_COMPLETED and not (
        user.is_admin_role or user.id == appointment.doctor_id
    ):
        raise PermissionDenied('Only the doctor can complete an appointment.')

    with transaction.atomic():
        updated = Appointment.objects.filter(id=appointment.id, status=appointment.status).update(
            status=new_status, updated_at=timezone.now(),
        )
        if not updated:
            raise InvalidTransition('The appointment was changed by someone else.')
        appointment.refresh_from_db()

        if new_status == Appointment.STATUS_CANCELLED:
            for counterpart in _counterparts(user, appointment):
                notify(
                    counterpart, Notification.KIND_CANCELLED, 'Appointment cancelled',
                    f"The appointment on {appointment.date:%Y-%m-%d} at {appointment.time} was cancelled "
                    f"by {user.display_name}.",
                    appointment=appointment,
                )

    log_action(user=user, action=f'appointment_{new_status}', object_type='appointment', object_id=appointment.id)
    logger.info("appointment %s -> %s by user=%s", appointment.id, new_status, user.id)
    return appointment


def reschedule(user: User, appointment: Appointment, *, date: datetime.date, time: str) -> Appointment:
    if appointment.status != Appointment.STATUS_CONFIRMED:
        raise InvalidTransition('Only confirmed appointments can be rescheduled.')
    if (date, time) == (appointment.date, appointment.time):
        return appointment

    _ensure_bookable(appointment.doctor_id, appointment.patient_id, date, time, exclude_id=appointment.id)
    previous = f"{appointment.date:%Y-%m-%d} {appointment.time}"
    try:
        with transaction.atomic():
            appointment.date = date
            appointment.time = time
            appointment.reminder_sent_at = None
            appointment.save(update_fields=['date', 'time', 'reminder_sent_at', 'updated_at'])
            for counterpart in _counterparts(user, appointment):
                notify(
                    counterpart, Notification.KIND_RESCHEDULED, 'Appointment rescheduled',
                    f"Moved from {previous} to {date:%Y-%m-%d} {time}.",
                    appointment=appointment,
                )
    except IntegrityError:
        raise AppointmentConflict()

    log_action(user=user, action='appointment_reschedule', object_type='appointment', object_id=appointment.id,
               detail={'from': previous, 'to': f"{date:%Y-%m-%d} {time}"})
    return appointment


def update_notes(user: User, appointment: Appointment, notes: str) -> Appointment:
    if not (user.is_admin_role or user.id == appointment.doctor_id):
        raise PermissionDenied('Only the doctor can edit appointment notes.')
    appointment.notes = _clean_notes(notes)
    appointment.save(update_fields=['notes', 'updated_at'])
    return appointment
