"""
Realtime notification feed.

Row changes on :class:`~portal.models.Notification` are published to the
owner's channel group as ``INSERT`` / ``UPDATE`` / ``DELETE`` events.
:class:`NotificationFeed` mirrors those events into the list a connected
client holds.
"""
from __future__ import annotations

import logging
from typing import Iterable, Optional

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.conf import settings

logger = logging.getLogger(__name__)

EVENT_INSERT = 'INSERT'
EVENT_UPDATE = 'UPDATE'
EVENT_DELETE = 'DELETE'
EVENTS = (EVENT_INSERT, EVENT_UPDATE, EVENT_DELETE)

TOAST_ACTION_LABEL = '읽음 처리'


def group_for_employee(employee_id) -> str:
    return f"notifications.{employee_id}"


def serialize_notification(n) -> dict:
    return {
        'id': str(n.id),
        'organizationId': str(n.organization_id) if n.organization_id else None,
        'userId': str(n.user_id),
        'type': n.type,
        'title': n.title,
        'message': n.message,
        'relatedId': n.related_id or None,
        'isRead': n.is_read,
        'readAt': n.read_at.isoformat() if n.read_at else None,
        'createdAt': n.created_at.isoformat() if n.created_at else None,
    }


def toast_for(record: dict) -> dict:
    """In-app toast shown for a freshly inserted notification."""
    return {
        'title': record.get('title') or '',
        'description': record.get('message') or '',
        'duration': settings.NOTIFICATION_TOAST_MS,
        'action': {'label': TOAST_ACTION_LABEL, 'type': 'mark_read', 'notificationId': record.get('id')},
    }


def build_event(event: str, record: dict) -> dict:
    """Channel-layer message for one row change."""
    if event not in EVENTS:
        raise ValueError(f"unknown notification event {event!r}")
    payload = {'type': 'notification.change', 'event': event}
    if event == EVENT_DELETE:
        payload['old'] = {'id': record.get('id')}
    else:
        payload['new'] = record
    if event == EVENT_INSERT:
        payload['toast'] = toast_for(record)
        payload['browser'] = {'title': record.get('title') or '', 'body': record.get('message') or '', 'tag': record.get('id')}
    return payload


def publish(event: str, notification, *, record: Optional[dict] = None) -> None:
    """Send one change event to the owner's group. Failures are logged only."""
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return
    record = record or serialize_notification(notification)
    try:
        async_to_sync(channel_layer.group_send)(group_for_employee(notification.user_id), build_event(event, record))
    except Exception:
        logger.warning('notification %s publish failed for %s', event, record.get('id'), exc_info=True)


def publish_many(event: str, notifications: Iterable) -> None:
    for n in notifications:
        publish(event, n)


class NotificationFeed:
    """Newest-first list of notifications kept in step with change events."""

    def __init__(self, items: Optional[list] = None):
        self.items: list[dict] = list(items or [])

    @property
    def unread_count(self) -> int:
        return sum(1 for n in self.items if not n.get('isRead'))

    def apply(self, event: str, record: dict) -> list[dict]:
        """Apply one event: INSERT prepends, UPDATE replaces by id, DELETE removes by id."""
        record_id = record.get('id')
        if event == EVENT_INSERT:
            self.items = [record] + [n for n in self.items if n.get('id') != record_id]
        elif event == EVENT_UPDATE:
            self.items = [record if n.get('id') == record_id else n for n in self.items]
        elif event == EVENT_DELETE:
            self.items = [n for n in self.items if n.get('id') != record_id]
        else:
            raise ValueError(f"unknown notification event {event!r}")
        return self.items

    def apply_message(self, message: dict) -> list[dict]:
        event = message.get('event')
        record = message.get('old') if event == EVENT_DELETE else message.get('new')
        return self.apply(event, record or {})
