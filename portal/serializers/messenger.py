from rest_framework import serializers


class RoomCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    description = serializers.CharField(required=False, allow_blank=True)
    type = serializers.ChoiceField(choices=['direct', 'group', 'department'], required=False, default='group')
    participantIds = serializers.ListField(child=serializers.UUIDField(), required=False)
    departmentId = serializers.UUIDField(required=False, allow_null=True)


class ParticipantsSerializer(serializers.Serializer):
    employeeIds = serializers.ListField(child=serializers.UUIDField(), min_length=1)


class ParticipantRoleSerializer(serializers.Serializer):
    employeeId = serializers.UUIDField()
    role = serializers.ChoiceField(choices=['admin', 'member'])


class MessageSendSerializer(serializers.Serializer):
    content = serializers.CharField(max_length=2000, required=False, allow_blank=True)
    messageType = serializers.ChoiceField(choices=['text', 'file', 'image', 'system'], required=False, default='text')
    replyToId = serializers.UUIDField(required=False, allow_null=True)
    fileUrl = serializers.CharField(max_length=500, required=False, allow_blank=True)
    fileName = serializers.CharField(max_length=255, required=False, allow_blank=True)
    fileSize = serializers.IntegerField(min_value=0, required=False, allow_null=True)


class MessageEditSerializer(serializers.Serializer):
    content = serializers.CharField(max_length=2000)


class ReactionSerializer(serializers.Serializer):
    reaction = serializers.CharField(max_length=32)


class HistoryQuerySerializer(serializers.Serializer):
    page = serializers.IntegerField(min_value=1, required=False)
    pageSize = serializers.IntegerField(min_value=1, required=False)
