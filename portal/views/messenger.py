"""
Messenger views: rooms, participants, message history and reactions.

Sending a message over HTTP and over ``ws/chat/<room_id>/`` go through the
same service call, so both paths broadcast to the room group.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..permissions import HasEmployee
from ..serializers.messenger import (
    HistoryQuerySerializer,
    MessageEditSerializer,
    MessageSendSerializer,
    ParticipantRoleSerializer,
    ParticipantsSerializer,
    ReactionSerializer,
    RoomCreateSerializer,
)
from ..services import messenger as svc
from .common import perms_for


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, HasEmployee])
def rooms_list(request):
    employee = perms_for(request).employee
    if request.method == 'GET':
        return Response({'ok': True, 'data': [svc.serialize_room(r, employee) for r in svc.list_rooms(employee)]})

    s = RoomCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    v = s.validated_data
    room = svc.create_room(
        employee,
        name=v.get('name', ''),
        type=v.get('type', 'group'),
        participant_ids=v.get('participantIds', []),
        department_id=v.get('departmentId'),
        description=v.get('description', ''),
    )
    return Response({'ok': True, 'data': svc.serialize_room(room, employee)}, status=201)


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasEmployee])
def room_detail(request, pk):
    employee = perms_for(request).employee
    return Response({'ok': True, 'data': svc.serialize_room(svc.get_room(employee, pk), employee)})


@api_view(['POST', 'PATCH'])
@permission_classes([IsAuthenticated, HasEmployee])
def room_participants(request, pk):
    """POST adds participants; PATCH changes one participant's role."""
    employee = perms_for(request).employee
    room = svc.get_room(employee, pk)
    if request.method == 'POST':
        s = ParticipantsSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        added = svc.add_participants(employee, room, s.validated_data['employeeIds'])
        return Response({'ok': True, 'data': {'added': added}})

    s = ParticipantRoleSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    svc.set_participant_role(employee, room, s.validated_data['employeeId'], s.validated_data['role'])
    return Response({'ok': True})


@api_view(['DELETE'])
@permission_classes([IsAuthenticated, HasEmployee])
def room_participant_remove(request, pk, employee_id):
    employee = perms_for(request).employee
    svc.remove_participant(employee, svc.get_room(employee, pk), employee_id)
    return Response({'ok': True})


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, HasEmployee])
def room_messages(request, pk):
    employee = perms_for(request).employee
    room = svc.get_room(employee, pk)
    if request.method == 'GET':
        q = HistoryQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        page = q.validated_data.get('page', 1)
        page_size = q.validated_data.get('pageSize', 50)
        items, total = svc.history(employee, room, page, page_size)
        return Response({
            'ok': True,
            'data': items,
            'pagination': {'total': total, 'page': page, 'pageSize': min(100, page_size)},
        })

    s = MessageSendSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    v = s.validated_data
    msg = svc.send_message(
        room, employee, v.get('content', ''),
        message_type=v.get('messageType', 'text'),
        reply_to_id=v.get('replyToId'),
        file_url=v.get('fileUrl', ''),
        file_name=v.get('fileName', ''),
        file_size=v.get('fileSize'),
    )
    return Response({'ok': True, 'data': svc.serialize_message(msg)}, status=201)


@api_view(['POST'])
@permission_classes([IsAuthenticated, HasEmployee])
def room_mark_read(request, pk):
    employee = perms_for(request).employee
    svc.mark_read(employee, svc.get_room(employee, pk))
    return Response({'ok': True})


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, HasEmployee])
def message_edit(request, pk):
    s = MessageEditSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    msg = svc.edit_message(perms_for(request).employee, pk, s.validated_data['content'])
    return Response({'ok': True, 'data': svc.serialize_message(msg)})


@api_view(['POST'])
@permission_classes([IsAuthenticated, HasEmployee])
def message_react(request, pk):
    s = ReactionSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    added = svc.toggle_reaction(perms_for(request).employee, pk, s.validated_data['reaction'])
    return Response({'ok': True, 'data': {'added': added}})
