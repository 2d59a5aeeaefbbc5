"""
In-app notifications and appointment reminders.

:func:`dispatch_due_reminders` is the body of the periodic job run by
:class:`clinic.services.scheduler.NotificationScheduler`; it is also
exposed through the ``send_reminders`` management command.
"""
import datetime
import logging
from typing import Iterable, Optional

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone

from clinic.models import Appointment, Notification
from clinic.services.events import push_to_user

logger = logging.getLogger(__name__)

User = get_user_model()


def serialize_notification(n: Notification) -> dict:
    return {
        'id': n.id,
        'kind': n.kind,
        'title': n.title,
        'body': n.body,
        'appointmentId': n.appointment_id,
        'read': n.read,
        'createdAt': n.created_at.isoformat() if n.created_at else None,
    }


def notify(user: User, kind: str, title: str, body: str = '', *,
           appointment: Optional[Appointment] = None) -> Notification:
    n = Notification.objects.create(user=user, kind=kind, title=title, body=body, appointment=appointment)
    push_to_user(user.id, 'notification.new', serialize_notification(n))
    return n


def list_notifications(user: User, *, unread_only: bool = False, limit: int = 100) -> list[dict]:
    qs = Notification.objects.filter(user=user)
    if unread_only:
        qs = qs.filter(read=False)
    return [serialize_notification(n) for n in qs.order_by('-created_at', '-id')[:limit]]


def mark_notifications_read(user: User, *, ids: Optional[Iterable[int]] = None, all_: bool = False) -> int:
    qs = Notification.objects.filter(user=user, read=False)
    if not all_:
        qs = qs.filter(id__in=list(ids or []))
    return qs.update(read=True)


def _describe(appointment: Appointment) -> str:
    return f"{appointment.date:%Y-%m-%d} at {appointment.time}"


def _send_reminder(appointment: Appointment) -> None:
    when = _describe(appointment)
    notify(
        appointment.patient, Notification.KIND_REMINDER, 'Upcoming appointment',
        f"You have an appointment with {appointment.doctor.display_name} on {when}.",
        appointment=appointment,
    )
    notify(
        appointment.doctor, Notification.KIND_REMINDER, 'Upcoming appointment',
        f"Appointment with {appointment.patient.display_name} on {when}.",
        appointment=appointment,
    )


def due_for_reminder(*, now: Optional[datetime.datetime] = None,
                     lead_minutes: Optional[int] = None) -> list[Appointment]:
    """Confirmed, not yet reminded appointments starting within the lead window."""
    now = timezone.localtime(now or timezone.now())
    lead = datetime.timedelta(minutes=settings.REMINDER_LEAD_MINUTES if lead_minutes is None else lead_minutes)
    horizon = now + lead
    candidates = (
        Appointment.objects
        .filter(
            status=Appointment.STATUS_CONFIRMED,
            reminder_sent_at__isnull=True,
            date__gte=now.date(),
            date__lte=horizon.date(),
        )
        .select_related('patient', 'doctor')
        .order_by('date', 'time')
    )
    return [a for a in candidates if now < a.starts_at(now.tzinfo) <= horizon]


def dispatch_due_reminders(*, now: Optional[datetime.datetime] = None,
                           lead_minutes: Optional[int] = None) -> int:
    """Send one reminder per due appointment; returns how many were sent.

    Each appointment is claimed with a conditional update on
    ``reminder_sent_at`` so overlapping runs (several web workers, or a
    cron job next to the in-process scheduler) never double send.
    """
    now = now or timezone.now()
    sent = 0
    for appointment in due_for_reminder(now=now, lead_minutes=lead_minutes):
        try:
            with transaction.atomic():
                claimed = Appointment.objects.filter(
                    id=appointment.id, reminder_sent_at__isnull=True, status=Appointment.STATUS_CONFIRMED,
                ).update(reminder_sent_at=now)
                if not claimed:
                    continue
                _send_reminder(appointment)
        except Exception:
            # claim rolled back; retried on the next run
            logger.exception("reminder for appointment %s failed", appointment.id)
            continue
        sent += 1
    if sent:
        logger.info("dispatched %d appointment reminder(s)", sent)
    return sent
