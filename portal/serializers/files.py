import json

from rest_framework import serializers

from portal.models import File

CATEGORIES = [c for c, _ in File.CATEGORY_CHOICES]


class FilePermissionsField(serializers.Field):
    """``{public, departments[], employees[]}`` given as an object or a JSON string (multipart)."""

    def to_internal_value(self, data):
        if isinstance(data, str):
            try:
                data = json.loads(data) if data.strip() else {}
            except ValueError:
                raise serializers.ValidationError('permissions must be valid JSON')
        if not isinstance(data, dict):
            raise serializers.ValidationError('permissions must be an object')
        for key in ('departments', 'employees'):
            if key in data and not isinstance(data[key], list):
                raise serializers.ValidationError(f'{key} must be a list')
        return data

    def to_representation(self, value):
        return value


class FileUploadSerializer(serializers.Serializer):
    file = serializers.FileField()
    organizationId = serializers.UUIDField(source='organization_id', required=False)
    departmentId = serializers.UUIDField(source='department_id', required=False, allow_null=True)
    taskId = serializers.UUIDField(source='task_id', required=False, allow_null=True)
    category = serializers.ChoiceField(choices=CATEGORIES, required=False, allow_blank=True)
    description = serializers.CharField(required=False, allow_blank=True)
    permissions = FilePermissionsField(required=False)


class FileShareSerializer(serializers.Serializer):
    permissions = FilePermissionsField()


class FileQuerySerializer(serializers.Serializer):
    search = serializers.CharField(max_length=100, required=False, allow_blank=True)
    organizationId = serializers.UUIDField(required=False)
    departmentId = serializers.UUIDField(required=False)
    taskId = serializers.UUIDField(required=False)
    kind = serializers.CharField(max_length=20, required=False)
    category = serializers.CharField(max_length=20, required=False)
