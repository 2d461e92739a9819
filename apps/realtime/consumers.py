"""
Notification socket.

Frames in both directions are JSON objects ``{"event": <name>, "data": {...}}``.
Event names are part of the client contract and must not change.
"""

import json
import logging
from collections import deque

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer
from django.core.exceptions import ValidationError as DjangoValidationError
from django.utils import timezone

from apps.access import policies
from apps.authentication.models import User
from apps.core.exceptions import AuthorizationError, NotFoundError, ValidationError, get_error_message
from apps.core.logging import correlation_scope
from apps.notifications.services.notification_service import NotificationService
from apps.orders.models import Order
from apps.tasks.models import Task

from . import presence, rooms
from .routers import get_room_router

logger = logging.getLogger(__name__)

CLOSE_UNAUTHENTICATED = 4401
SEEN_EVENT_LIMIT = 512

AUTH_ERROR_MESSAGES = {
    'credential_missing': 'Authentication token is required.',
    'credential_invalid': 'Invalid token.',
    'credential_expired': 'Token has expired.',
    'unknown_subject': 'User not found.',
    'account_inactive': 'User account is disabled.',
}


class NotificationConsumer(AsyncWebsocketConsumer):
    """Per-connection room membership, presence and client event relay."""

    router = None

    async def connect(self):
        self.user = self.scope.get("user")
        self.joined_rooms = set()
        self._seen_ids = set()
        self._seen_order = deque()

        if not self.user or self.user.is_anonymous:
            code = self.scope.get("auth_error") or 'credential_missing'
            await self.accept()
            await self.send_event("connect_error", {
                "code": code,
                "message": AUTH_ERROR_MESSAGES.get(code, 'Authentication failed.'),
            })
            await self.close(code=CLOSE_UNAUTHENTICATED)
            return

        self.user_id = str(self.user.pk)
        self.router = self.router or get_room_router()

        # Rooms and presence are settled before the handshake completes.
        for room in rooms.default_rooms(self.user_id, self.user.role):
            await self.join_room(room)

        if await presence.connection_opened(self.user_id):
            await self.set_presence(True)
            await self.router.emit_to_all("user-online", {
                "userId": self.user_id,
                "userName": self.user.full_name,
                "role": self.user.role,
                "timestamp": timezone.now().isoformat(),
            }, exclude_users=[self.user_id])

        await self.accept()
        logger.info("ws_connected user_id=%s channel=%s", self.user_id, self.channel_name)

    async def disconnect(self, close_code):
        if not getattr(self, "user_id", None):
            return

        for room in list(self.joined_rooms):
            await self.leave_room(room)
        await self.router.disconnect(self.channel_name)

        if await presence.connection_closed(self.user_id):
            await self.set_presence(False)
            await self.router.emit_to_all("user-offline", {
                "userId": self.user_id,
                "userName": self.user.full_name,
                "timestamp": timezone.now().isoformat(),
            }, exclude_users=[self.user_id])

        logger.info("ws_disconnected user_id=%s code=%s", self.user_id, close_code)

    async def receive(self, text_data=None, bytes_data=None):
        if not getattr(self, "user_id", None):
            return
        try:
            frame = json.loads(text_data or "")
        except json.JSONDecodeError:
            return
        if not isinstance(frame, dict):
            return

        event = frame.get("event")
        data = frame.get("data")
        handler_map = {
            "ping": self.handle_ping,
            "mark-notification-read": self.handle_mark_notification_read,
            "order-status-updated": self.handle_order_status_updated,
            "task-status-updated": self.handle_task_status_updated,
            "typing-start": self.handle_typing_start,
            "typing-stop": self.handle_typing_stop,
            "join-order": self.handle_join_order,
            "leave-order": self.handle_leave_order,
            "join-task": self.handle_join_task,
            "leave-task": self.handle_leave_task,
            "emergency-alert": self.handle_emergency_alert,
            "joinRoom": self.handle_join_room,
            "leaveRoom": self.handle_leave_room,
        }

        handler = handler_map.get(event)
        if handler is None:
            await self.send_error(event, "unknown_event", "Unknown event.")
            return

        with correlation_scope():
            try:
                await handler(data)
            except (AuthorizationError, NotFoundError, ValidationError) as exc:
                logger.info("ws_event_rejected user_id=%s event=%s code=%s", self.user_id, event, exc.default_code)
                await self.send_error(event, exc.default_code, get_error_message(exc.detail))

    # ----- Client events -----

    async def handle_ping(self, data):
        await self.send_event("pong", {"timestamp": timezone.now().isoformat()})

    async def handle_mark_notification_read(self, data):
        notification_id = self._record_id(data, "notificationId")
        await self.mark_notification_read(notification_id)
        await self.router.emit_to_management("notification-read", {
            "notificationId": notification_id,
            "userId": self.user_id,
            "userName": self.user.full_name,
            "timestamp": timezone.now().isoformat(),
        }, exclude_users=[self.user_id])

    async def handle_order_status_updated(self, data):
        order_id = self._record_id(data, "orderId")
        order = await self.load_record("order", order_id)
        if not policies.can_write_order(self.user, order):
            raise AuthorizationError("You cannot update this order.")
        await self.router.emit_to_management("order-status-changed", {
            **self._as_dict(data),
            "orderId": order_id,
            "status": order.status,
            "updatedBy": {"id": self.user_id, "name": self.user.full_name},
            "timestamp": timezone.now().isoformat(),
        }, exclude_users=[self.user_id])

    async def handle_task_status_updated(self, data):
        task_id = self._record_id(data, "taskId")
        task = await self.load_record("task", task_id)
        if not policies.can_operate_task(self.user, task):
            raise AuthorizationError("You cannot update this task.")
        await self.router.emit_to_all("task-status-changed", {
            **self._as_dict(data),
            "taskId": task_id,
            "status": task.status,
            "updatedBy": {"id": self.user_id, "name": self.user.full_name},
            "timestamp": timezone.now().isoformat(),
        }, exclude_users=[self.user_id])

    async def handle_typing_start(self, data):
        await self._relay_typing(data, "user-typing")

    async def handle_typing_stop(self, data):
        await self._relay_typing(data, "user-stopped-typing")

    async def handle_join_order(self, data):
        await self._join_record("order", self._record_id(data, "orderId"))

    async def handle_leave_order(self, data):
        await self.leave_room(rooms.order_room(self._record_id(data, "orderId")))

    async def handle_join_task(self, data):
        await self._join_record("task", self._record_id(data, "taskId"))

    async def handle_leave_task(self, data):
        await self.leave_room(rooms.task_room(self._record_id(data, "taskId")))

    async def handle_emergency_alert(self, data):
        if not policies.can_send_emergency_alert(self.user):
            raise AuthorizationError("Only admins can send emergency alerts.")
        payload = self._as_dict(data)
        message = str(payload.get("message") or "").strip()
        if not message:
            raise ValidationError({"message": "This field is required."})
        await self.router.emit_to_all("emergency-notification", {
            **payload,
            "message": message,
            "from": {"id": self.user_id, "name": self.user.full_name},
            "timestamp": timezone.now().isoformat(),
        }, exclude_users=[self.user_id])

    async def handle_join_room(self, data):
        room = self._room_name(data)
        if room == rooms.user_room(self.user_id):
            return
        parsed = rooms.parse_record_room(room)
        if parsed is None:
            raise AuthorizationError("This room cannot be joined.")
        await self._join_record(*parsed)

    async def handle_leave_room(self, data):
        room = self._room_name(data)
        if rooms.parse_record_room(room) is not None:
            await self.leave_room(room)

    # ----- Room membership -----

    async def join_room(self, room):
        await self.router.join(self.channel_name, room, user_id=self.user_id)
        self.joined_rooms.add(room)

    async def leave_room(self, room):
        if room not in self.joined_rooms:
            return
        await self.router.leave(self.channel_name, room)
        self.joined_rooms.discard(room)

    async def _join_record(self, kind, record_id):
        record = await self.load_record(kind, record_id)
        allowed = policies.can_read_order if kind == "order" else policies.can_read_task
        if not allowed(self.user, record):
            raise AuthorizationError("You do not have access to this record.")
        await self.join_room(rooms.record_room(kind, record_id))

    async def _relay_typing(self, data, event):
        payload = self._as_dict(data)
        kind = payload.get("type")
        record_id = payload.get("id")
        if kind not in rooms.RECORD_ROOM_KINDS or not record_id:
            raise ValidationError({"type": "Expected 'order' or 'task' with an id."})
        room = rooms.record_room(kind, record_id)
        if room not in self.joined_rooms:
            return
        await self.router.emit_to({room}, event, {
            "userId": self.user_id,
            "userName": self.user.full_name,
            "type": kind,
            "id": str(record_id),
        }, exclude_users=[self.user_id])

    # ----- Broadcast handler -----

    async def room_event(self, message):
        if self.user_id in message.get("exclude", ()):
            return
        event_id = message.get("event_id")
        if event_id:
            if event_id in self._seen_ids:
                return
            self._remember(event_id)
        await self.send_event(message["event"], message.get("data"))

    def _remember(self, event_id):
        self._seen_ids.add(event_id)
        self._seen_order.append(event_id)
        if len(self._seen_order) > SEEN_EVENT_LIMIT:
            self._seen_ids.discard(self._seen_order.popleft())

    # ----- Sending -----

    async def send_event(self, event, data=None):
        await self.send(text_data=json.dumps({"event": event, "data": data}, default=str))

    async def send_error(self, event, code, message):
        await self.send_event("error", {"event": event, "code": code, "message": message})

    # ----- Helpers -----

    @staticmethod
    def _as_dict(data):
        return dict(data) if isinstance(data, dict) else {}

    @staticmethod
    def _record_id(data, key):
        value = data.get(key) if isinstance(data, dict) else data
        if not value or not isinstance(value, (str, int)):
            raise ValidationError({key: "This field is required."})
        return str(value)

    @staticmethod
    def _room_name(data):
        value = data.get("room") if isinstance(data, dict) else data
        if not value or not isinstance(value, str):
            raise ValidationError({"room": "This field is required."})
        return value

    # ----- Database -----

    @database_sync_to_async
    def load_record(self, kind, record_id):
        model = Order if kind == "order" else Task
        try:
            return model.objects.get(pk=record_id)
        except (model.DoesNotExist, ValueError, DjangoValidationError) as exc:
            raise NotFoundError(kind.title(), record_id) from exc

    @database_sync_to_async
    def mark_notification_read(self, notification_id):
        if not NotificationService.mark_as_read(notification_id, self.user):
            raise NotFoundError("Notification", notification_id)

    @database_sync_to_async
    def set_presence(self, online):
        User.objects.filter(pk=self.user.pk).update(is_online=online, last_seen=timezone.now())
