from rest_framework import serializers


class RecordCreateSerializer(serializers.Serializer):
    patientId = serializers.IntegerField(required=False)
    type = serializers.CharField(max_length=64)
    title = serializers.CharField(max_length=255)
    notes = serializers.CharField(required=False, allow_blank=True, max_length=4000, default='')
    data = serializers.JSONField(required=False, allow_null=True)
    file = serializers.FileField(required=False, allow_empty_file=False)
    fileUrl = serializers.URLField(required=False, max_length=1024)

    def validate(self, attrs):
        if not attrs.get('file') and not attrs.get('fileUrl'):
            raise serializers.ValidationError({'file': ['Provide a file or a fileUrl.']})
        return attrs


class RecordUpdateSerializer(serializers.Serializer):
    type = serializers.CharField(required=False, max_length=64)
    title = serializers.CharField(required=False, max_length=255)
    notes = serializers.CharField(required=False, allow_blank=True, max_length=4000)
    data = serializers.JSONField(required=False, allow_null=True)
    fileUrl = serializers.URLField(required=False, max_length=1024)
