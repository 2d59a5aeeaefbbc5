"""
Integration tests for appointment booking and its lifecycle.

These tests exercise slot validation, double-booking protection, the
status state machine and visibility rules through the HTTP API using
DRF's APIClient within the APITestCase base class.
"""
import datetime
from unittest import mock

from django.db import IntegrityError, transaction
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from ..models import Appointment, Availability, Notification, User


class AppointmentAPITests(APITestCase):
    def setUp(self) -> None:
        self.doctor = User.objects.create_user(username="dr1", password="Str0ng-pass-42", role="doctor",
                                               first_name="Ann", specialization="Dermatology")
        self.other_doctor = User.objects.create_user(username="dr2", password="Str0ng-pass-42", role="doctor")
        self.patient1 = User.objects.create_user(username="p1", password="Str0ng-pass-42", role="patient")
        self.patient2 = User.objects.create_user(username="p2", password="Str0ng-pass-42", role="patient")
        self.admin = User.objects.create_user(username="a1", password="Str0ng-pass-42", role="admin")

        self.day = timezone.localdate() + datetime.timedelta(days=2)
        Availability.objects.create(doctor=self.doctor, date=self.day, slots=["09:00", "09:30", "10:00"])

    def as_user(self, user):
        self.client.force_authenticate(user=user)

    def book(self, user, time="09:00", **extra):
        self.as_user(user)
        body = {"doctorId": self.doctor.id, "date": self.day.isoformat(), "time": time}
        body.update(extra)
        return self.client.post(reverse("appointments"), body, format="json")

    def test_patient_books_declared_slot_and_doctor_is_notified(self):
        r = self.book(self.patient1, notes="<b>rash</b> on arm")
        self.assertEqual(r.status_code, status.HTTP_201_CREATED)
        self.assertEqual(r.data["data"]["status"], "confirmed")
        self.assertEqual(r.data["data"]["notes"], "rash on arm")
        self.assertTrue(Notification.objects.filter(user=self.doctor, kind=Notification.KIND_BOOKED).exists())

    def test_missing_fields_are_rejected(self):
        self.as_user(self.patient1)
        r = self.client.post(reverse("appointments"), {"doctorId": self.doctor.id}, format="json")
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(r.data["error"]["code"], "validation_error")
        self.assertIn("date", r.data["error"]["message"])
        self.assertIn("time", r.data["error"]["message"])

    def test_doctor_cannot_book(self):
        r = self.book(self.other_doctor)
        self.assertEqual(r.status_code, status.HTTP_403_FORBIDDEN)

    def test_undeclared_slot_is_rejected(self):
        r = self.book(self.patient1, time="11:00")
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(r.data["error"]["code"], "slot_unavailable")

    def test_past_date_is_rejected(self):
        yesterday = timezone.localdate() - datetime.timedelta(days=1)
        Availability.objects.create(doctor=self.doctor, date=yesterday, slots=["09:00"])
        self.as_user(self.patient1)
        r = self.client.post(reverse("appointments"), {
            "doctorId": self.doctor.id, "date": yesterday.isoformat(), "time": "09:00",
        }, format="json")
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)

    def test_double_booking_conflicts_until_cancelled(self):
        first = self.book(self.patient1)
        self.assertEqual(first.status_code, status.HTTP_201_CREATED)

        clash = self.book(self.patient2)
        self.assertEqual(clash.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(clash.data["error"]["code"], "appointment_conflict")

        self.as_user(self.patient1)
        r = self.client.patch(reverse("appointment_status", args=[first.data["data"]["id"]]),
                              {"status": "cancelled"}, format="json")
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertTrue(Notification.objects.filter(user=self.doctor, kind=Notification.KIND_CANCELLED).exists())

        again = self.book(self.patient2)
        self.assertEqual(again.status_code, status.HTTP_201_CREATED)

    def test_open_slots_exclude_confirmed_bookings(self):
        self.book(self.patient1, time="09:30")
        r = self.client.get(reverse("availability_slots", args=[self.doctor.id]), {"date": self.day.isoformat()})
        self.assertEqual(r.data["data"]["slots"], ["09:00", "10:00"])

    def test_database_rejects_second_confirmed_row_for_slot(self):
        Appointment.objects.create(patient=self.patient1, doctor=self.doctor, date=self.day, time="09:00")
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                Appointment.objects.create(patient=self.patient2, doctor=self.doctor, date=self.day, time="09:00")
        # a cancelled row does not hold the slot
        Appointment.objects.create(patient=self.patient2, doctor=self.doctor, date=self.day, time="09:30",
                                   status=Appointment.STATUS_CANCELLED)
        Appointment.objects.create(patient=self.patient2, doctor=self.doctor, date=self.day, time="09:30")

    def test_lost_booking_race_maps_to_conflict(self):
        Appointment.objects.create(patient=self.patient2, doctor=self.doctor, date=self.day, time="09:00")
        # skip the up-front clash check so only the unique constraint can stop the insert
        with mock.patch("clinic.services.appointments._ensure_bookable"):
            r = self.book(self.patient1, time="09:00")
        self.assertEqual(r.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(r.data["error"]["code"], "appointment_conflict")
        self.assertEqual(Appointment.objects.filter(date=self.day, time="09:00").count(), 1)

    def test_lost_reschedule_race_maps_to_conflict(self):
        appt_id = self.book(self.patient1, time="09:00").data["data"]["id"]
        Appointment.objects.create(patient=self.patient2, doctor=self.doctor, date=self.day, time="10:00")

        self.as_user(self.patient1)
        with mock.patch("clinic.services.appointments._ensure_bookable"):
            r = self.client.patch(reverse("appointment_reschedule", args=[appt_id]),
                                  {"date": self.day.isoformat(), "time": "10:00"}, format="json")
        self.assertEqual(r.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(r.data["error"]["code"], "appointment_conflict")
        self.assertEqual(Appointment.objects.get(id=appt_id).time, "09:00")

    def test_admin_cancel_notifies_patient_and_doctor(self):
        appt_id = self.book(self.patient1).data["data"]["id"]
        self.as_user(self.admin)
        r = self.client.patch(reverse("appointment_status", args=[appt_id]), {"status": "cancelled"}, format="json")
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        notified = set(Notification.objects.filter(kind=Notification.KIND_CANCELLED, appointment_id=appt_id)
                       .values_list("user_id", flat=True))
        self.assertEqual(notified, {self.patient1.id, self.doctor.id})

    def test_patient_cancel_notifies_only_doctor(self):
        appt_id = self.book(self.patient1).data["data"]["id"]
        self.as_user(self.patient1)
        self.client.patch(reverse("appointment_status", args=[appt_id]), {"status": "cancelled"}, format="json")
        notified = set(Notification.objects.filter(kind=Notification.KIND_CANCELLED, appointment_id=appt_id)
                       .values_list("user_id", flat=True))
        self.assertEqual(notified, {self.doctor.id})

    def test_patient_cannot_complete_but_doctor_can(self):
        appt_id = self.book(self.patient1).data["data"]["id"]
        url = reverse("appointment_status", args=[appt_id])

        self.as_user(self.patient1)
        r = self.client.patch(url, {"status": "completed"}, format="json")
        self.assertEqual(r.status_code, status.HTTP_403_FORBIDDEN)

        self.as_user(self.doctor)
        r = self.client.patch(url, {"status": "completed"}, format="json")
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.data["data"]["status"], "completed")

    def test_terminal_states_never_change(self):
        appt_id = self.book(self.patient1).data["data"]["id"]
        url = reverse("appointment_status", args=[appt_id])
        self.as_user(self.doctor)
        self.client.patch(url, {"status": "completed"}, format="json")

        r = self.client.patch(url, {"status": "cancelled"}, format="json")
        self.assertEqual(r.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(r.data["error"]["code"], "invalid_transition")

        r = self.client.patch(url, {"status": "confirmed"}, format="json")
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)

    def test_visibility_is_limited_to_participants(self):
        appt_id = self.book(self.patient1).data["data"]["id"]
        url = reverse("appointment_detail", args=[appt_id])

        self.as_user(self.patient2)
        self.assertEqual(self.client.get(url).status_code, status.HTTP_404_NOT_FOUND)
        self.as_user(self.other_doctor)
        self.assertEqual(self.client.get(url).status_code, status.HTTP_404_NOT_FOUND)
        self.as_user(self.doctor)
        self.assertEqual(self.client.get(url).status_code, status.HTTP_200_OK)
        self.as_user(self.admin)
        self.assertEqual(self.client.get(url).status_code, status.HTTP_200_OK)

    def test_listing_is_scoped_and_filterable(self):
        self.book(self.patient1, time="09:00")
        self.book(self.patient2, time="10:00")

        self.as_user(self.patient1)
        r = self.client.get(reverse("appointments"))
        self.assertEqual(r.data["total"], 1)

        self.as_user(self.doctor)
        r = self.client.get(reverse("appointments"))
        self.assertEqual([a["time"] for a in r.data["data"]], ["10:00", "09:00"])
        r = self.client.get(reverse("appointments"), {"upcoming": "1"})
        self.assertEqual([a["time"] for a in r.data["data"]], ["09:00", "10:00"])
        r = self.client.get(reverse("appointments"), {"status": "cancelled"})
        self.assertEqual(r.data["total"], 0)

    def test_reschedule_moves_slot_and_clears_reminder(self):
        appt_id = self.book(self.patient1).data["data"]["id"]
        Appointment.objects.filter(id=appt_id).update(reminder_sent_at=timezone.now())

        self.as_user(self.patient1)
        r = self.client.patch(reverse("appointment_reschedule", args=[appt_id]),
                              {"date": self.day.isoformat(), "time": "10:00"}, format="json")
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        appt = Appointment.objects.get(id=appt_id)
        self.assertEqual(appt.time, "10:00")
        self.assertIsNone(appt.reminder_sent_at)

        # old slot is free again
        self.assertEqual(self.book(self.patient2, time="09:00").status_code, status.HTTP_201_CREATED)

    def test_only_doctor_edits_notes(self):
        appt_id = self.book(self.patient1).data["data"]["id"]
        url = reverse("appointment_notes", args=[appt_id])

        self.as_user(self.patient1)
        self.assertEqual(self.client.patch(url, {"notes": "x"}, format="json").status_code,
                         status.HTTP_403_FORBIDDEN)
        self.as_user(self.doctor)
        r = self.client.patch(url, {"notes": "Bring previous scans"}, format="json")
        self.assertEqual(r.data["data"]["notes"], "Bring previous scans")
