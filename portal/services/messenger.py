"""
Chat rooms, participants, messages and reactions.

Room membership is soft: leaving or being removed clears ``is_active`` so
history stays attached. Only room admins manage participants.
"""
from __future__ import annotations

import logging
from typing import Iterable, Optional

import bleach
from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from portal.exceptions import AccessDenied, InvalidInput, NotFound
from portal.models import ChatMessage, ChatParticipant, ChatRoom, Department, Employee, MessageReaction
from portal.services.audit import audit

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 2000


def group_for_room(room_id) -> str:
    return f"chat.{room_id}"


def serialize_room(room: ChatRoom, employee: Optional[Employee] = None) -> dict:
    data = {
        'id': str(room.id),
        'name': room.name,
        'description': room.description,
        'type': room.type,
        'organizationId': str(room.organization_id),
        'departmentId': str(room.department_id) if room.department_id else None,
        'creatorId': str(room.creator_id) if room.creator_id else None,
        'isActive': room.is_active,
        'lastMessageAt': room.last_message_at.isoformat() if room.last_message_at else None,
        'participants': [
            {'employeeId': str(p.employee_id), 'name': p.employee.name, 'role': p.role}
            for p in room.participants.filter(is_active=True).select_related('employee')
        ],
    }
    if employee is not None:
        data['unread'] = unread_count(room, employee)
    return data


def serialize_message(m: ChatMessage) -> dict:
    return {
        'id': str(m.id),
        'roomId': str(m.room_id),
        'senderId': str(m.sender_id) if m.sender_id else None,
        'senderName': m.sender.name if m.sender_id else None,
        'content': m.content,
        'messageType': m.message_type,
        'fileUrl': m.file_url or None,
        'fileName': m.file_name or None,
        'fileSize': m.file_size,
        'replyToId': str(m.reply_to_id) if m.reply_to_id else None,
        'isEdited': m.is_edited,
        'reactions': reaction_summary(m),
        'createdAt': m.created_at.isoformat() if m.created_at else None,
    }


def reaction_summary(m: ChatMessage) -> dict:
    summary: dict = {}
    for r in m.reactions.all():
        summary.setdefault(r.reaction, []).append(str(r.employee_id))
    return summary


def membership(room: ChatRoom, employee: Employee) -> Optional[ChatParticipant]:
    return ChatParticipant.objects.filter(room=room, employee=employee, is_active=True).first()


def check_room_access(employee: Optional[Employee], room: ChatRoom) -> bool:
    return employee is not None and room.is_active and membership(room, employee) is not None


def _require_member(employee, room) -> ChatParticipant:
    p = membership(room, employee) if employee is not None else None
    if p is None or not room.is_active:
        raise AccessDenied('not a participant of this room')
    return p


def _require_admin(employee, room) -> ChatParticipant:
    p = _require_member(employee, room)
    if p.role != 'admin':
        raise AccessDenied('only room admins can manage participants')
    return p


def get_room(employee, room_id) -> ChatRoom:
    room = ChatRoom.objects.filter(id=room_id).first()
    if room is None:
        raise NotFound('room not found')
    _require_member(employee, room)
    return room


def list_rooms(employee: Employee):
    return (
        ChatRoom.objects.filter(is_active=True, participants__employee=employee, participants__is_active=True)
        .distinct()
        .order_by('-last_message_at', '-created_at')
    )


def _members_of(organization_id, ids: Iterable) -> list[Employee]:
    ids = [str(i) for i in ids or []]
    found = list(Employee.objects.filter(id__in=ids, organization_id=organization_id))
    if len(found) != len(set(ids)):
        raise InvalidInput('participants must belong to the room organization')
    return found


@transaction.atomic
def create_room(creator: Employee, *, name: str = '', type: str = 'group', participant_ids: Iterable = (),
                department_id=None, description: str = '') -> ChatRoom:
    if creator.organization_id is None:
        raise InvalidInput('creator has no organization')
    others = [e for e in _members_of(creator.organization_id, participant_ids) if e.id != creator.id]
    if type == 'direct':
        if len(others) != 1:
            raise InvalidInput('a direct room needs exactly one other participant')
        existing = (
            ChatRoom.objects.filter(type='direct', is_active=True,
                                    participants__employee=creator, participants__is_active=True)
            .filter(participants__employee=others[0], participants__is_active=True)
            .first()
        )
        if existing is not None:
            return existing
    elif type == 'department':
        if not department_id:
            raise InvalidInput('department rooms need a department')
        if not Department.objects.filter(id=department_id, organization_id=creator.organization_id).exists():
            raise InvalidInput('department belongs to another organization')
        others = list(Employee.objects.filter(department_id=department_id, status=Employee.STATUS_ACTIVE).exclude(id=creator.id))
    elif not name.strip():
        raise InvalidInput('group rooms need a name')
    room = ChatRoom.objects.create(
        name=name.strip(),
        description=description or '',
        type=type,
        organization_id=creator.organization_id,
        department_id=department_id if type == 'department' else None,
        creator=creator,
    )
    ChatParticipant.objects.create(room=room, employee=creator, role='admin', last_read_at=timezone.now())
    ChatParticipant.objects.bulk_create([ChatParticipant(room=room, employee=e) for e in others])
    return room


def add_participants(actor: Employee, room: ChatRoom, employee_ids: Iterable) -> int:
    _require_admin(actor, room)
    added = 0
    for e in _members_of(room.organization_id, employee_ids):
        p, created = ChatParticipant.objects.get_or_create(room=room, employee=e)
        if created or not p.is_active:
            p.is_active = True
            p.save(update_fields=['is_active'])
            added += 1
    return added


def remove_participant(actor: Employee, room: ChatRoom, employee_id) -> None:
    if str(actor.id) != str(employee_id):
        _require_admin(actor, room)
    p = ChatParticipant.objects.filter(room=room, employee_id=employee_id, is_active=True).first()
    if p is None:
        raise NotFound('participant not found')
    p.is_active = False
    p.save(update_fields=['is_active'])


def set_participant_role(actor: Employee, room: ChatRoom, employee_id, role: str) -> None:
    _require_admin(actor, room)
    if role not in ('admin', 'member'):
        raise InvalidInput('role must be admin or member')
    updated = ChatParticipant.objects.filter(room=room, employee_id=employee_id, is_active=True).update(role=role)
    if not updated:
        raise NotFound('participant not found')


@transaction.atomic
def send_message(room: ChatRoom, sender: Employee, content: str, *, message_type: str = 'text',
                 reply_to_id=None, file_url: str = '', file_name: str = '', file_size=None) -> ChatMessage:
    _require_member(sender, room)
    content = bleach.clean((content or '').strip(), strip=True)
    if not content and not file_url:
        raise InvalidInput('message cannot be empty')
    if len(content) > MAX_MESSAGE_LENGTH:
        raise InvalidInput('message is too long')
    reply_to = None
    if reply_to_id:
        reply_to = ChatMessage.objects.filter(id=reply_to_id, room=room).first()
        if reply_to is None:
            raise NotFound('replied message not found')
    msg = ChatMessage.objects.create(
        room=room,
        sender=sender,
        content=content,
        message_type=message_type,
        reply_to=reply_to,
        file_url=file_url or '',
        file_name=file_name or '',
        file_size=file_size,
    )
    room.last_message_at = msg.created_at
    room.save(update_fields=['last_message_at'])
    ChatParticipant.objects.filter(room=room, employee=sender).update(last_read_at=msg.created_at)

    audit(sender.auth_user, 'chat_send', object_type='chat_room', object_id=room.id, detail={'messageId': str(msg.id)})

    payload = {'type': 'chat.message', 'payload': serialize_message(msg)}
    transaction.on_commit(lambda: broadcast(room.id, payload))
    return msg


def broadcast(room_id, payload: dict) -> None:
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return
    try:
        async_to_sync(channel_layer.group_send)(group_for_room(room_id), payload)
    except Exception:
        logger.warning('chat broadcast failed for room %s', room_id, exc_info=True)


def edit_message(employee: Employee, message_id, content: str) -> ChatMessage:
    msg = ChatMessage.objects.select_related('room').filter(id=message_id).first()
    if msg is None:
        raise NotFound('message not found')
    if msg.sender_id != employee.id:
        raise AccessDenied('only the sender can edit a message')
    content = bleach.clean((content or '').strip(), strip=True)
    if not content:
        raise InvalidInput('message cannot be empty')
    msg.content = content
    msg.is_edited = True
    msg.save(update_fields=['content', 'is_edited', 'updated_at'])
    broadcast(msg.room_id, {'type': 'chat.message', 'payload': {**serialize_message(msg), 'event': 'edited'}})
    return msg


def history(employee: Employee, room: ChatRoom, page: int = 1, page_size: int = 50):
    _require_member(employee, room)
    page = max(1, int(page or 1))
    page_size = min(100, max(1, int(page_size or 50)))
    start = (page - 1) * page_size
    qs = ChatMessage.objects.filter(room=room)
    msgs = qs.select_related('sender').prefetch_related('reactions').order_by('-created_at')[start:start + page_size]
    return [serialize_message(m) for m in reversed(list(msgs))], qs.count()


def toggle_reaction(employee: Employee, message_id, reaction: str) -> bool:
    """Add the reaction, or remove it when already present. Returns True when added."""
    msg = ChatMessage.objects.select_related('room').filter(id=message_id).first()
    if msg is None:
        raise NotFound('message not found')
    _require_member(employee, msg.room)
    existing = MessageReaction.objects.filter(message=msg, employee=employee, reaction=reaction)
    if existing.exists():
        existing.delete()
        return False
    MessageReaction.objects.create(message=msg, employee=employee, reaction=reaction)
    return True


def mark_read(employee: Employee, room: ChatRoom) -> None:
    p = _require_member(employee, room)
    p.last_read_at = timezone.now()
    p.save(update_fields=['last_read_at'])


def unread_count(room: ChatRoom, employee: Employee) -> int:
    p = membership(room, employee)
    if p is None:
        return 0
    qs = ChatMessage.objects.filter(room=room).filter(~Q(sender=employee) | Q(sender__isnull=True))
    if p.last_read_at:
        qs = qs.filter(created_at__gt=p.last_read_at)
    return qs.count()
