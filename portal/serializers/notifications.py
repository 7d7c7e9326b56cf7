from rest_framework import serializers

from portal.models import Notification

TYPES = [c for c, _ in Notification.TYPE_CHOICES]


class NotificationQuerySerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=TYPES, required=False)
    read = serializers.ChoiceField(choices=['true', 'false'], required=False)
    sort = serializers.ChoiceField(choices=['newest', 'unread'], required=False, default='newest')
    limit = serializers.IntegerField(min_value=1, max_value=200, required=False)


class NotificationIdsSerializer(serializers.Serializer):
    """``ids`` omitted (or ``all: true``) means every notification of the caller."""
    ids = serializers.ListField(child=serializers.UUIDField(), required=False)
    all = serializers.BooleanField(required=False, default=False)

    def validate(self, attrs):
        if not attrs.get('ids') and not attrs.get('all'):
            raise serializers.ValidationError({'ids': 'pass ids or all=true'})
        return attrs


class NotificationCreateSerializer(serializers.Serializer):
    userIds = serializers.ListField(child=serializers.UUIDField(), min_length=1)
    type = serializers.ChoiceField(choices=TYPES)
    title = serializers.CharField(max_length=255)
    message = serializers.CharField(required=False, allow_blank=True)
    relatedId = serializers.CharField(max_length=64, required=False, allow_blank=True)


class AnnouncementSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255)
    message = serializers.CharField(required=False, allow_blank=True)
    type = serializers.ChoiceField(choices=['announcement', 'system'], required=False, default='announcement')
    organizationId = serializers.UUIDField(required=False)
    userIds = serializers.ListField(child=serializers.UUIDField(), required=False)
