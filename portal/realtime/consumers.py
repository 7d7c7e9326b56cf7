import json

from asgiref.sync import sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer
from django.contrib.auth.models import AnonymousUser

from portal.access import get_current_employee
from portal.exceptions import PortalError
from portal.realtime.notifications import (
    EVENT_DELETE,
    NotificationFeed,
    group_for_employee,
    serialize_notification,
)
from portal.services import messenger
from portal.services import notifications as notification_service

FEED_SIZE = 50


async def _ws_error(ws, code: int, message: str, *, close: bool = False):
    """
    Error frame sent to the client.
    4xxx for client errors, 5xxx for server errors.
    """
    payload = {"type": "error", "code": code, "message": message}
    try:
        await ws.send(json.dumps(payload))
    finally:
        if close:
            await ws.close(code=code)


def _parse(text_data):
    try:
        data = json.loads(text_data)
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


async def _current_employee(scope):
    user = scope.get("user") or AnonymousUser()
    if not user.is_authenticated:
        return None
    return await sync_to_async(get_current_employee)(user)


class UpdatesConsumer(AsyncWebsocketConsumer):
    GROUP = "updates"

    async def connect(self):
        await self.channel_layer.group_add(self.GROUP, self.channel_name)
        await self.accept()
        await self.send(json.dumps({"type": "welcome", "message": "connected"}))

    async def disconnect(self, close_code):
        await self.channel_layer.group_discard(self.GROUP, self.channel_name)

    async def broadcast_refresh(self, event):
        # {"type": "broadcast.refresh", "version": int, "ts": "...", "keys": [...]}
        await self.send(json.dumps(event))


class NotificationConsumer(AsyncWebsocketConsumer):
    """Live notification list of the connected employee.

    On connect the client gets a ``snapshot`` frame. Every row change then
    arrives as a ``notification`` frame carrying the event, the record, the
    toast for inserts and the recomputed unread count.
    """

    async def connect(self):
        self.employee = await _current_employee(self.scope)
        if self.employee is None:
            await self.close(code=4003)
            return
        self.group_name = group_for_employee(self.employee.id)
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()
        items = await sync_to_async(self._recent)()
        self.feed = NotificationFeed(items)
        await self.send(json.dumps({
            "type": "snapshot",
            "items": self.feed.items,
            "unreadCount": self.feed.unread_count,
        }))

    def _recent(self):
        return [serialize_notification(n) for n in notification_service.list_for(self.employee, limit=FEED_SIZE)]

    async def disconnect(self, close_code):
        if hasattr(self, "group_name"):
            await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def receive(self, text_data=None, bytes_data=None):
        if not text_data:
            return
        data = _parse(text_data)
        if data is None:
            await _ws_error(self, 4000, "invalid_json")
            return

        action = data.get("action")
        if action == "ping":
            await self.send(json.dumps({"type": "pong"}))
            return
        if action != "mark_read":
            await _ws_error(self, 4002, "unsupported_action")
            return

        ids = data.get("ids")
        if ids is None and data.get("notificationId"):
            ids = [data["notificationId"]]
        if ids is not None and not isinstance(ids, list):
            await _ws_error(self, 4001, "invalid_payload")
            return
        try:
            updated = await sync_to_async(notification_service.set_read)(self.employee, ids, True)
        except PortalError as exc:
            await _ws_error(self, 4004, exc.message)
            return
        except Exception:
            await _ws_error(self, 5000, "server_error")
            return
        await self.send(json.dumps({"type": "ack", "action": "mark_read", "updated": updated}))

    async def notification_change(self, event):
        # {"type": "notification.change", "event": "INSERT", "new": {...}, "toast": {...}}
        self.feed.apply_message(event)
        frame = {"type": "notification", "event": event.get("event"), "unreadCount": self.feed.unread_count}
        if event.get("event") == EVENT_DELETE:
            frame["old"] = event.get("old")
        else:
            frame["new"] = event.get("new")
        for key in ("toast", "browser"):
            if key in event:
                frame[key] = event[key]
        await self.send(json.dumps(frame))


class ChatConsumer(AsyncWebsocketConsumer):
    async def connect(self):
        self.room_id = self.scope["url_route"]["kwargs"].get("room_id")
        self.employee = await _current_employee(self.scope)
        if self.employee is None:
            await self.close(code=4003)
            return
        try:
            self.room = await sync_to_async(messenger.get_room)(self.employee, self.room_id)
        except PortalError as exc:
            await self.close(code=4004 if exc.status_code == 404 else 4003)
            return

        self.group_name = messenger.group_for_room(self.room_id)
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()

    async def disconnect(self, close_code):
        if hasattr(self, "group_name"):
            await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def receive(self, text_data=None, bytes_data=None):
        if not text_data:
            return
        data = _parse(text_data)
        if data is None:
            await _ws_error(self, 4000, "invalid_json")
            return

        kind = data.get("type")
        if kind == "read":
            await sync_to_async(messenger.mark_read)(self.employee, self.room)
            await self.send(json.dumps({"type": "ack", "ok": True}))
            return
        if kind != "send":
            await _ws_error(self, 4002, "unsupported_type")
            return

        content = data.get("content", "")
        if not isinstance(content, str):
            await _ws_error(self, 4003, "invalid_content_type")
            return
        content = content.strip()
        if not content:
            await _ws_error(self, 4004, "empty_message")
            return
        if len(content) > messenger.MAX_MESSAGE_LENGTH:
            await _ws_error(self, 4005, "message_too_long")
            return

        try:
            # the service broadcasts to the room group after commit
            await sync_to_async(messenger.send_message)(
                self.room, self.employee, content, reply_to_id=data.get("replyToId") or None,
            )
            await self.send(json.dumps({"type": "ack", "ok": True}))
        except PortalError as exc:
            await _ws_error(self, 4007, exc.message, close=exc.status_code == 403)
        except Exception:
            await _ws_error(self, 5000, "server_error")

    async def chat_message(self, event):
        """{"type": "chat.message", "payload": {...}} from group_send."""
        payload = event.get("payload", {})
        await self.send(json.dumps({"type": "message", **payload}))
