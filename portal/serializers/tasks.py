from rest_framework import serializers

from portal.models import Task

STATUSES = [c for c, _ in Task.STATUS_CHOICES]
PRIORITIES = [c for c, _ in Task.PRIORITY_CHOICES]


class TaskSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True)
    status = serializers.ChoiceField(choices=STATUSES, required=False)
    priority = serializers.ChoiceField(choices=PRIORITIES, required=False)
    dueDate = serializers.DateTimeField(source='due_date', required=False, allow_null=True)
    assigneeId = serializers.UUIDField(source='assignee_id', required=False, allow_null=True)
    departmentId = serializers.UUIDField(source='department_id', required=False, allow_null=True)
    organizationId = serializers.UUIDField(source='organization_id', required=False)

    def validate_title(self, v):
        v = v.strip()
        if not v:
            raise serializers.ValidationError('title is required')
        return v


class TaskQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=STATUSES, required=False)
    priority = serializers.ChoiceField(choices=PRIORITIES, required=False)
    assigneeId = serializers.UUIDField(required=False)
    departmentId = serializers.UUIDField(required=False)
    organizationId = serializers.UUIDField(required=False)
    search = serializers.CharField(max_length=100, required=False, allow_blank=True)
    mine = serializers.BooleanField(required=False, default=False)
