import datetime
from typing import Iterable, Optional

from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from clinic.models import Appointment, Availability

User = get_user_model()


def normalize_slots(slots: Iterable[str]) -> list[str]:
    """De-duplicate and sort ``HH:MM`` strings (zero padded, so lexical order is time order)."""
    return sorted({s.strip() for s in slots if s and s.strip()})


def serialize_availability(a: Availability) -> dict:
    return {
        'id': a.id,
        'doctorId': a.doctor_id,
        'date': a.date.isoformat(),
        'slots': list(a.slots or []),
        'updatedAt': a.updated_at.isoformat() if a.updated_at else None,
    }


def set_availability(doctor: User, date: datetime.date, slots: Iterable[str]) -> tuple[Availability, bool]:
    if date < timezone.localdate():
        raise ValidationError({'date': ['Cannot publish availability for a past date.']})
    availability, created = Availability.objects.update_or_create(
        doctor=doctor, date=date, defaults={'slots': normalize_slots(slots)},
    )
    return availability, created


def list_availability(doctor_id: int, *, date_from: Optional[datetime.date] = None,
                      date_to: Optional[datetime.date] = None) -> list[dict]:
    qs = Availability.objects.filter(doctor_id=doctor_id)
    if date_from:
        qs = qs.filter(date__gte=date_from)
    if date_to:
        qs = qs.filter(date__lte=date_to)
    return [serialize_availability(a) for a in qs.order_by('date')]


def booked_times(doctor_id: int, date: datetime.date, *, exclude_appointment_id: Optional[int] = None) -> set[str]:
    qs = Appointment.objects.filter(doctor_id=doctor_id, date=date, status=Appointment.STATUS_CONFIRMED)
    if exclude_appointment_id:
        qs = qs.exclude(id=exclude_appointment_id)
    return set(qs.values_list('time', flat=True))


def declared_slots(doctor_id: int, date: datetime.date) -> list[str]:
    a = Availability.objects.filter(doctor_id=doctor_id, date=date).only('slots').first()
    return list(a.slots or []) if a else []


def open_slots(doctor_id: int, date: datetime.date, *, now: Optional[datetime.datetime] = None) -> list[str]:
    """Declared slots minus confirmed bookings, minus times already past today."""
    now = timezone.localtime(now or timezone.now())
    today = now.date()
    if date < today:
        return []
    taken = booked_times(doctor_id, date)
    slots = [s for s in declared_slots(doctor_id, date) if s not in taken]
    if date == today:
        current = now.strftime('%H:%M')
        slots = [s for s in slots if s > current]
    return slots
