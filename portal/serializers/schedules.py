from rest_framework import serializers


class ScheduleSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True)
    startTime = serializers.DateTimeField(source='start_time')
    endTime = serializers.DateTimeField(source='end_time', required=False, allow_null=True)
    isAllDay = serializers.BooleanField(source='is_all_day', required=False)
    location = serializers.CharField(max_length=255, required=False, allow_blank=True)
    participants = serializers.ListField(child=serializers.CharField(max_length=64), required=False)
    organizationId = serializers.UUIDField(source='organization_id', required=False)

    def validate_title(self, v):
        v = v.strip()
        if not v:
            raise serializers.ValidationError('title is required')
        return v

    def validate(self, attrs):
        start, end = attrs.get('start_time'), attrs.get('end_time')
        if start and end and end < start:
            raise serializers.ValidationError({'endTime': 'end time must not be before start time'})
        return attrs


class ScheduleQuerySerializer(serializers.Serializer):
    start = serializers.DateTimeField(required=False)
    end = serializers.DateTimeField(required=False)
    organizationId = serializers.UUIDField(required=False)
    search = serializers.CharField(max_length=100, required=False, allow_blank=True)
    mine = serializers.BooleanField(required=False, default=False)


class CalendarQuerySerializer(serializers.Serializer):
    year = serializers.IntegerField(min_value=1900, max_value=9999)
    month = serializers.IntegerField(min_value=1, max_value=12)
    selected = serializers.DateField(required=False)
    organizationId = serializers.UUIDField(required=False)


class DayQuerySerializer(serializers.Serializer):
    date = serializers.DateField()
    organizationId = serializers.UUIDField(required=False)
