from rest_framework import serializers

from clinic.models import TIME_OF_DAY_RE


class TimeOfDayField(serializers.RegexField):
    def __init__(self, **kwargs):
        kwargs.setdefault('error_messages', {'invalid': 'Time must use the HH:MM 24h format.'})
        super().__init__(TIME_OF_DAY_RE, **kwargs)


class AvailabilitySerializer(serializers.Serializer):
    date = serializers.DateField()
    slots = serializers.ListField(child=TimeOfDayField(), allow_empty=True, max_length=96)


class AvailabilityQuerySerializer(serializers.Serializer):
    doctorId = serializers.IntegerField(required=False)
    date_from = serializers.DateField(required=False)
    date_to = serializers.DateField(required=False)

    def to_internal_value(self, data):
        # ?from=&to= are Python keywords, so map them by hand
        data = {
            k: v for k, v in {
                'doctorId': data.get('doctorId'),
                'date_from': data.get('from'),
                'date_to': data.get('to'),
            }.items() if v not in (None, '')
        }
        return super().to_internal_value(data)


class SlotQuerySerializer(serializers.Serializer):
    date = serializers.DateField()


class AppointmentCreateSerializer(serializers.Serializer):
    doctorId = serializers.IntegerField()
    date = serializers.DateField()
    time = TimeOfDayField()
    notes = serializers.CharField(required=False, allow_blank=True, max_length=2000, default='')


class AppointmentStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=['completed', 'cancelled'])


class AppointmentRescheduleSerializer(serializers.Serializer):
    date = serializers.DateField()
    time = TimeOfDayField()


class AppointmentNotesSerializer(serializers.Serializer):
    notes = serializers.CharField(allow_blank=True, max_length=2000)


class AppointmentListQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=['confirmed', 'completed', 'cancelled'], required=False)
    date = serializers.DateField(required=False)
    upcoming = serializers.BooleanField(required=False, default=False)
