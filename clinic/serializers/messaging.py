from rest_framework import serializers


class MessageCreateSerializer(serializers.Serializer):
    content = serializers.CharField(max_length=2000)


class PageQuerySerializer(serializers.Serializer):
    page = serializers.IntegerField(required=False, min_value=1, default=1)
    pageSize = serializers.IntegerField(required=False, min_value=1, max_value=200, default=50)


class NotificationReadSerializer(serializers.Serializer):
    ids = serializers.ListField(child=serializers.IntegerField(), required=False, allow_empty=True)
    all = serializers.BooleanField(required=False, default=False)

    def validate(self, attrs):
        if not attrs.get('all') and not attrs.get('ids'):
            raise serializers.ValidationError('Provide ids or all=true.')
        return attrs


class PharmacyQuerySerializer(serializers.Serializer):
    lat = serializers.FloatField(min_value=-90, max_value=90)
    lng = serializers.FloatField(min_value=-180, max_value=180)
    radius = serializers.IntegerField(required=False, min_value=1)
    q = serializers.CharField(required=False, allow_blank=True, max_length=100)
