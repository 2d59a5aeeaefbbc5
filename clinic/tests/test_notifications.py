import datetime

import pytest
from django.core.management import call_command
from django.urls import reverse
from django.utils import timezone

from clinic.models import Appointment, Notification
from clinic.services import notifications as notifications_module
from clinic.services import scheduler as scheduler_module
from clinic.services.notifications import dispatch_due_reminders, due_for_reminder
from clinic.services.scheduler import NotificationScheduler

pytestmark = pytest.mark.django_db


def _appointment_at(patient, doctor, when, **extra):
    local = timezone.localtime(when)
    return Appointment.objects.create(patient=patient, doctor=doctor, date=local.date(),
                                      time=local.strftime('%H:%M'), **extra)


@pytest.fixture
def now():
    return timezone.now().replace(second=30, microsecond=0)


def test_reminders_cover_only_the_lead_window(patient, doctor, make_user, now):
    other = make_user('pat2', 'patient')
    soon = _appointment_at(patient, doctor, now + datetime.timedelta(hours=2))
    _appointment_at(other, doctor, now + datetime.timedelta(hours=30))
    _appointment_at(other, doctor, now - datetime.timedelta(hours=1))

    due = due_for_reminder(now=now, lead_minutes=24 * 60)
    assert [a.id for a in due] == [soon.id]


def test_dispatch_is_idempotent(patient, doctor, now):
    appt = _appointment_at(patient, doctor, now + datetime.timedelta(hours=1))

    assert dispatch_due_reminders(now=now, lead_minutes=120) == 1
    assert dispatch_due_reminders(now=now, lead_minutes=120) == 0

    reminders = Notification.objects.filter(kind=Notification.KIND_REMINDER, appointment=appt)
    assert {n.user_id for n in reminders} == {patient.id, doctor.id}
    assert reminders.count() == 2
    appt.refresh_from_db()
    assert appt.reminder_sent_at == now


def test_cancelled_appointments_are_not_reminded(patient, doctor, now):
    _appointment_at(patient, doctor, now + datetime.timedelta(hours=1), status=Appointment.STATUS_CANCELLED)
    assert dispatch_due_reminders(now=now, lead_minutes=120) == 0


def test_failed_reminder_does_not_block_the_rest(patient, doctor, make_user, now, monkeypatch):
    other = make_user('pat2', 'patient')
    broken = _appointment_at(patient, doctor, now + datetime.timedelta(minutes=30))
    fine = _appointment_at(other, doctor, now + datetime.timedelta(minutes=60))
    real_send = notifications_module._send_reminder

    def flaky(appointment):
        if appointment.id == broken.id:
            raise RuntimeError('push failed')
        real_send(appointment)
    monkeypatch.setattr(notifications_module, '_send_reminder', flaky)

    assert dispatch_due_reminders(now=now, lead_minutes=120) == 1
    broken.refresh_from_db()
    fine.refresh_from_db()
    assert broken.reminder_sent_at is None
    assert fine.reminder_sent_at == now
    assert not Notification.objects.filter(kind=Notification.KIND_REMINDER, appointment=broken).exists()

    monkeypatch.setattr(notifications_module, '_send_reminder', real_send)
    assert dispatch_due_reminders(now=now, lead_minutes=120) == 1
    broken.refresh_from_db()
    assert broken.reminder_sent_at == now


def test_send_reminders_command(patient, doctor, capsys):
    _appointment_at(patient, doctor, timezone.now() + datetime.timedelta(minutes=90))
    call_command('send_reminders', '--lead-minutes', '120')
    assert 'reminders sent: 1' in capsys.readouterr().out


def test_scheduler_start_is_idempotent_and_stoppable(monkeypatch):
    monkeypatch.setattr(scheduler_module, 'dispatch_due_reminders', lambda: 0)

    s = NotificationScheduler(interval_seconds=3600, enabled=True)
    try:
        assert s.start() is True
        assert s.running
        assert s.start() is False
    finally:
        s.stop(wait=False)
    assert not s.running


def test_disabled_scheduler_never_starts():
    s = NotificationScheduler(enabled=False)
    assert s.start() is False
    assert not s.running


def test_reminder_job_survives_errors(monkeypatch):
    def boom():
        raise RuntimeError('db down')
    monkeypatch.setattr(scheduler_module, 'dispatch_due_reminders', boom)
    assert scheduler_module.run_reminder_job() == 0


def test_notifications_api_lists_and_marks_read(client_for, patient):
    n1 = Notification.objects.create(user=patient, kind=Notification.KIND_BOOKED, title='a')
    n2 = Notification.objects.create(user=patient, kind=Notification.KIND_CANCELLED, title='b')
    client = client_for(patient)

    r = client.get(reverse('notifications'), {'unread': '1'})
    assert [n['id'] for n in r.data['data']] == [n2.id, n1.id]

    r = client.post(reverse('notifications_read'), {'ids': [n1.id]}, format='json')
    assert r.data['updated'] == 1
    assert [n['id'] for n in client.get(reverse('notifications'), {'unread': '1'}).data['data']] == [n2.id]

    r = client.post(reverse('notifications_read'), {'all': True}, format='json')
    assert r.data['updated'] == 1

    assert client.post(reverse('notifications_read'), {}, format='json').status_code == 400


def test_cannot_mark_someone_elses_notifications(client_for, patient, doctor):
    n = Notification.objects.create(user=doctor, kind=Notification.KIND_BOOKED, title='x')
    client_for(patient).post(reverse('notifications_read'), {'ids': [n.id]}, format='json')
    n.refresh_from_db()
    assert n.read is False
