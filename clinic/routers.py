"""
URL mappings for the MediLink API.

Paths match the routes the single-page frontend calls.  Trailing slashes
are deliberately omitted (``APPEND_SLASH = False``).
"""
from django.urls import include, path

from .auth_views import login_view, logout_view, me_view, refresh_view, register_view
from .views import appointments, availability, health, messages, notifications, pharmacies, records, users

urlpatterns = [
    # Auth
    path('api/auth/register', register_view, name='register_view'),
    path('api/auth/login', login_view, name='login_view'),
    path('api/auth/refresh', refresh_view, name='refresh_view'),
    path('api/auth/logout', logout_view, name='logout_view'),
    path('api/auth/me', me_view, name='me_view'),

    # Users
    path('api/users/me', users.me, name='users_me'),
    path('api/users/doctors', users.doctors, name='users_doctors'),
    path('api/users/patients', users.patients, name='users_patients'),
    path('api/users/change-password', users.change_password, name='users_change_password'),
    path('api/users/<int:user_id>', users.user_detail, name='users_detail'),

    # Availability
    path('api/availability', availability.availability, name='availability'),
    path('api/availability/<int:doctor_id>/slots', availability.doctor_slots, name='availability_slots'),
    path('api/availability/<int:availability_id>', availability.availability_detail, name='availability_detail'),

    # Appointments
    path('api/appointments', appointments.appointments, name='appointments'),
    path('api/appointments/<int:appointment_id>', appointments.appointment_detail, name='appointment_detail'),
    path('api/appointments/<int:appointment_id>/status', appointments.appointment_status,
         name='appointment_status'),
    path('api/appointments/<int:appointment_id>/reschedule', appointments.appointment_reschedule,
         name='appointment_reschedule'),
    path('api/appointments/<int:appointment_id>/notes', appointments.appointment_notes, name='appointment_notes'),

    # Records
    path('api/records', records.records, name='records'),
    path('api/records/<int:record_id>', records.record_detail, name='record_detail'),
    path('api/patients/<int:patient_id>/records', records.patient_records, name='patient_records'),

    # Messages
    path('api/messages/conversations', messages.conversation_list, name='message_conversations'),
    path('api/messages/unread-count', messages.unread, name='message_unread_count'),
    path('api/messages/<int:user_id>', messages.thread, name='message_thread'),

    # Notifications
    path('api/notifications', notifications.notifications, name='notifications'),
    path('api/notifications/read', notifications.mark_read, name='notifications_read'),

    # Pharmacies
    path('api/pharmacies/nearby', pharmacies.nearby, name='pharmacies_nearby'),

    # Ops
    path('healthz', health.healthz, name='healthz'),
    path('', include('django_prometheus.urls')),
]
