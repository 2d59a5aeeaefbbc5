"""
Django admin registrations for the clinic models.

Soft-deleted records stay visible here (the admin uses ``all_objects``)
so staff can audit or restore them.
"""

from django.contrib import admin

from .models import Appointment, AuditEvent, Availability, Message, Notification, Record, User


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('username', 'role', 'specialization', 'is_active', 'is_superuser')
    list_filter = ('role', 'is_active')
    search_fields = ('username', 'first_name', 'last_name', 'email')


@admin.register(Availability)
class AvailabilityAdmin(admin.ModelAdmin):
    list_display = ('doctor', 'date', 'slots')
    list_filter = ('date',)
    search_fields = ('doctor__username',)


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = ('id', 'patient', 'doctor', 'date', 'time', 'status', 'reminder_sent_at')
    list_filter = ('status', 'date')
    search_fields = ('patient__username', 'doctor__username')


@admin.register(Record)
class RecordAdmin(admin.ModelAdmin):
    list_display = ('id', 'patient', 'type', 'title', 'is_deleted', 'created_at')
    list_filter = ('type', 'is_deleted')
    search_fields = ('title', 'patient__username')

    def get_queryset(self, request):
        return Record.all_objects.select_related('patient')


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    list_display = ('id', 'sender', 'receiver', 'read', 'created_at')
    list_filter = ('read',)


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ('id', 'user', 'kind', 'title', 'read', 'created_at')
    list_filter = ('kind', 'read')


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('action', 'user', 'object_type', 'object_id', 'created_at')
    list_filter = ('action', 'object_type')
    search_fields = ('action', 'object_type')
