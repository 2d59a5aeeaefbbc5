from rest_framework import serializers

from clinic.sanitize import clean_text


class LoginSerializer(serializers.Serializer):
    username = serializers.CharField()
    password = serializers.CharField()

    def validate_username(self, v):
        v = (v or '').strip()
        if not v:
            raise serializers.ValidationError('Username is required.')
        return v


class RegisterSerializer(serializers.Serializer):
    username = serializers.RegexField(r'^[\w.@+-]+$', max_length=150)
    password = serializers.CharField(write_only=True, min_length=6, max_length=128)
    email = serializers.EmailField(required=False, allow_blank=True)
    first_name = serializers.CharField(required=False, allow_blank=True, max_length=150)
    last_name = serializers.CharField(required=False, allow_blank=True, max_length=150)
    role = serializers.CharField(required=False, default='patient')
    phone = serializers.CharField(required=False, allow_blank=True, max_length=32)
    specialization = serializers.CharField(required=False, allow_blank=True, max_length=120)

    def validate_role(self, v):
        v = (v or 'patient').strip().lower()
        if v not in ('patient', 'doctor'):
            raise serializers.ValidationError('Only patient or doctor accounts can be registered.')
        return v

    def validate(self, attrs):
        for name in ('first_name', 'last_name', 'phone', 'specialization'):
            if name in attrs:
                attrs[name] = clean_text(attrs[name])
        return attrs


class RefreshSerializer(serializers.Serializer):
    refresh = serializers.CharField()


class ChangePasswordSerializer(serializers.Serializer):
    old_password = serializers.CharField()
    new_password = serializers.CharField(min_length=6, max_length=128)
