from rest_framework import serializers

from clinic.sanitize import clean_text


class ProfileUpdateSerializer(serializers.Serializer):
    first_name = serializers.CharField(required=False, allow_blank=True, max_length=150)
    last_name = serializers.CharField(required=False, allow_blank=True, max_length=150)
    email = serializers.EmailField(required=False, allow_blank=True)
    phone = serializers.CharField(required=False, allow_blank=True, max_length=32)
    gender = serializers.ChoiceField(choices=['male', 'female', 'other', ''], required=False)
    date_of_birth = serializers.DateField(required=False, allow_null=True)
    address = serializers.CharField(required=False, allow_blank=True, max_length=255)
    specialization = serializers.CharField(required=False, allow_blank=True, max_length=120)
    bio = serializers.CharField(required=False, allow_blank=True, max_length=4000)

    def validate(self, attrs):
        for name, value in attrs.items():
            if isinstance(value, str):
                attrs[name] = clean_text(value)
        return attrs


class DoctorListQuerySerializer(serializers.Serializer):
    q = serializers.CharField(required=False, allow_blank=True)
    specialization = serializers.CharField(required=False, allow_blank=True)
    page = serializers.IntegerField(required=False, min_value=1)
    pageSize = serializers.IntegerField(required=False, min_value=1, max_value=200)
