"""
Database models for the MediLink backend.

These models capture the core concepts of the system: users (patients
and doctors), doctor availability, appointments, medical records,
direct messages and in-app notifications.  Field names follow the
JSON payloads consumed by the single-page frontend where possible.
"""
from __future__ import annotations

import datetime
import os
import uuid

from django.contrib.auth.models import AbstractUser
from django.core.validators import RegexValidator
from django.db import models
from django.utils import timezone

TIME_OF_DAY_RE = r'^([01]\d|2[0-3]):[0-5]\d$'

time_of_day_validator = RegexValidator(TIME_OF_DAY_RE, 'Time must use the HH:MM 24h format.')


class User(AbstractUser):
    """Custom user model carrying the role used for access control.

    Doctors additionally expose a specialization and bio which are shown
    in the public doctor directory.
    """
    ROLE_PATIENT = 'patient'
    ROLE_DOCTOR = 'doctor'
    ROLE_ADMIN = 'admin'
    ROLE_CHOICES = [
        (ROLE_PATIENT, 'Patient'),
        (ROLE_DOCTOR, 'Doctor'),
        (ROLE_ADMIN, 'Administrator'),
    ]
    GENDER_CHOICES = [
        ('male', 'Male'),
        ('female', 'Female'),
        ('other', 'Other'),
    ]
    role = models.CharField(max_length=10, choices=ROLE_CHOICES, default=ROLE_PATIENT, db_index=True)
    phone = models.CharField(max_length=32, blank=True)
    gender = models.CharField(max_length=10, choices=GENDER_CHOICES, blank=True)
    date_of_birth = models.DateField(null=True, blank=True)
    address = models.CharField(max_length=255, blank=True)
    specialization = models.CharField(max_length=120, blank=True, db_index=True)
    bio = models.TextField(blank=True)

    @property
    def is_doctor(self) -> bool:
        return self.role == self.ROLE_DOCTOR

    @property
    def is_patient(self) -> bool:
        return self.role == self.ROLE_PATIENT

    @property
    def is_admin_role(self) -> bool:
        return self.role == self.ROLE_ADMIN or self.is_superuser

    @property
    def display_name(self) -> str:
        return self.get_full_name() or self.username

    def __str__(self) -> str:
        return f"{self.username} ({self.role})"


class Availability(models.Model):
    """Bookable start times a doctor declared for one calendar date."""
    doctor = models.ForeignKey(User, on_delete=models.CASCADE, related_name='availabilities')
    date = models.DateField()
    slots = models.JSONField(default=list, blank=True, help_text='Sorted list of "HH:MM" start times')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = 'availabilities'
        constraints = [
            models.UniqueConstraint(fields=['doctor', 'date'], name='uniq_availability_doctor_date'),
        ]
        ordering = ['date']

    def __str__(self) -> str:
        return f"Availability(d={self.doctor_id}, {self.date:%Y-%m-%d}, {len(self.slots or [])} slots)"


class Appointment(models.Model):
    STATUS_CONFIRMED = 'confirmed'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'
    STATUS_CHOICES = [
        (STATUS_CONFIRMED, 'Confirmed'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    patient = models.ForeignKey(User, on_delete=models.CASCADE, related_name='patient_appointments')
    doctor = models.ForeignKey(User, on_delete=models.CASCADE, related_name='doctor_appointments')
    date = models.DateField()
    time = models.CharField(max_length=5, validators=[time_of_day_validator])
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_CONFIRMED)
    notes = models.TextField(blank=True, default='')
    reminder_sent_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['patient', '-date'], name='appt_patient_date_idx'),
            models.Index(fields=['doctor', '-date'], name='appt_doctor_date_idx'),
        ]
        # Only confirmed appointments hold a slot; cancelled/completed rows free it
        constraints = [
            models.UniqueConstraint(
                fields=['doctor', 'date', 'time'],
                condition=models.Q(status='confirmed'),
                name='uniq_confirmed_doctor_slot',
            ),
            models.UniqueConstraint(
                fields=['patient', 'date', 'time'],
                condition=models.Q(status='confirmed'),
                name='uniq_confirmed_patient_slot',
            ),
        ]

    def starts_at(self, tz=None) -> datetime.datetime:
        """Aware datetime of the appointment start in ``tz`` (default: current timezone)."""
        hour, minute = (int(p) for p in self.time.split(':'))
        naive = datetime.datetime.combine(self.date, datetime.time(hour, minute))
        return timezone.make_aware(naive, tz or timezone.get_current_timezone())

    def __str__(self) -> str:
        return f"Appointment(p={self.patient_id}, d={self.doctor_id}, {self.date} {self.time}, {self.status})"


class ActiveRecordManager(models.Manager):
    """Default manager hiding soft-deleted records."""

    def get_queryset(self):
        return super().get_queryset().filter(is_deleted=False)


def _record_upload(instance, filename: str) -> str:
    ext = os.path.splitext(filename)[1]
    return f"records/{datetime.date.today().strftime('%Y/%m')}/{uuid.uuid4().hex}{ext}"


class Record(models.Model):
    """A medical record (lab result, prescription, scan...) of a patient.

    Records are never removed through the API: deletion flags the row
    and stamps who removed it and when.
    """
    patient = models.ForeignKey(User, on_delete=models.CASCADE, related_name='records')
    type = models.CharField(max_length=64)
    title = models.CharField(max_length=255)
    file = models.FileField(upload_to=_record_upload, max_length=512, blank=True)
    file_url = models.CharField(max_length=1024)
    content_type = models.CharField(max_length=128, blank=True)
    size = models.PositiveIntegerField(default=0)
    notes = models.TextField(blank=True, default='')
    data = models.JSONField(null=True, blank=True)

    uploaded_by = models.ForeignKey(User, on_delete=models.PROTECT, related_name='uploaded_records')
    last_updated_by = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='updated_records'
    )
    is_deleted = models.BooleanField(default=False)
    deleted_by = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='deleted_records'
    )
    deleted_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ActiveRecordManager()
    all_objects = models.Manager()

    class Meta:
        indexes = [
            models.Index(fields=['patient', '-created_at'], name='record_patient_created_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.title} ({self.type}) p={self.patient_id}"


class Message(models.Model):
    sender = models.ForeignKey(User, on_delete=models.CASCADE, related_name='sent_messages')
    receiver = models.ForeignKey(User, on_delete=models.CASCADE, related_name='received_messages')
    content = models.TextField()
    read = models.BooleanField(default=False)
    read_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['sender', 'receiver', 'created_at'], name='msg_pair_created_idx'),
            models.Index(fields=['receiver', 'read'], name='msg_receiver_read_idx'),
        ]

    def __str__(self) -> str:
        return f"msg {self.id} {self.sender_id}->{self.receiver_id}"


class Notification(models.Model):
    KIND_REMINDER = 'appointment_reminder'
    KIND_BOOKED = 'appointment_booked'
    KIND_CANCELLED = 'appointment_cancelled'
    KIND_RESCHEDULED = 'appointment_rescheduled'
    KIND_MESSAGE = 'message'
    KIND_CHOICES = [
        (KIND_REMINDER, 'Appointment reminder'),
        (KIND_BOOKED, 'Appointment booked'),
        (KIND_CANCELLED, 'Appointment cancelled'),
        (KIND_RESCHEDULED, 'Appointment rescheduled'),
        (KIND_MESSAGE, 'Message'),
    ]
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='notifications')
    kind = models.CharField(max_length=32, choices=KIND_CHOICES)
    title = models.CharField(max_length=255)
    body = models.TextField(blank=True, default='')
    appointment = models.ForeignKey(
        Appointment, null=True, blank=True, on_delete=models.CASCADE, related_name='notifications'
    )
    read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['user', 'read', 'created_at'], name='notif_user_read_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.kind} -> {self.user_id}"


class AuditEvent(models.Model):
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, null=True)
    object_id = models.IntegerField(blank=True, null=True)
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['action', 'created_at'], name='audit_action_created_idx'),
            models.Index(fields=['object_type', 'object_id', 'created_at'], name='audit_object_idx'),
        ]

    def __str__(self):
        return f"{self.action}:{self.user_id}@{self.created_at:%F %T}"
