"""
Room routers: logical audiences -> live WebSocket connections.

``emit_to`` takes a *set* of rooms and delivers each event at most once per
connection, however many of the target rooms that connection sits in.
Connections belonging to ``exclude_users`` receive nothing, which is how the
actor of an event is kept out of its own broadcast.

Two implementations share the interface:

* ``LocalRoomRouter`` keeps the membership map in process and sends straight
  to each channel. Used in tests and single-process deployments.
* ``ChannelLayerRoomRouter`` maps rooms onto channel-layer groups (Redis in
  production). Each emission carries an event id; consumers drop repeats.
"""

from __future__ import annotations

import logging
import uuid
from typing import Awaitable, Callable, Dict, Iterable, Optional, Set

from channels.layers import get_channel_layer
from django.apps import apps

from . import rooms

logger = logging.getLogger(__name__)

ROOM_EVENT_TYPE = 'room.event'

Transport = Callable[[str, dict], Awaitable[None]]


def build_message(event: str, payload: dict, exclude_users: Iterable = (), event_id: Optional[str] = None) -> dict:
    return {
        'type': ROOM_EVENT_TYPE,
        'event_id': event_id or uuid.uuid4().hex,
        'event': event,
        'data': payload,
        'exclude': sorted({str(user_id) for user_id in exclude_users}),
    }


class RoomRouter:
    """Interface shared by the router implementations."""

    async def join(self, channel_name: str, room: str, user_id=None) -> None:
        raise NotImplementedError

    async def leave(self, channel_name: str, room: str) -> None:
        raise NotImplementedError

    async def disconnect(self, channel_name: str) -> None:
        raise NotImplementedError

    async def emit_to(self, room_names: Iterable[str], event: str, payload: dict,
                      exclude_users: Iterable = ()) -> int:
        raise NotImplementedError

    # Named audiences

    async def emit_to_user(self, user_id, event, payload, exclude_users=()):
        return await self.emit_to({rooms.user_room(user_id)}, event, payload, exclude_users)

    async def emit_to_role(self, role, event, payload, exclude_users=()):
        return await self.emit_to({rooms.role_room(role)}, event, payload, exclude_users)

    async def emit_to_management(self, event, payload, exclude_users=()):
        return await self.emit_to({rooms.MANAGEMENT}, event, payload, exclude_users)

    async def emit_to_factory(self, event, payload, exclude_users=()):
        return await self.emit_to({rooms.FACTORY}, event, payload, exclude_users)

    async def emit_to_order(self, order_id, event, payload, exclude_users=()):
        return await self.emit_to({rooms.order_room(order_id)}, event, payload, exclude_users)

    async def emit_to_task(self, task_id, event, payload, exclude_users=()):
        return await self.emit_to({rooms.task_room(task_id)}, event, payload, exclude_users)

    async def emit_to_all(self, event, payload, exclude_users=()):
        return await self.emit_to({rooms.EVERYONE}, event, payload, exclude_users)


class LocalRoomRouter(RoomRouter):
    """In-process membership map with exact union delivery."""

    def __init__(self, transport: Optional[Transport] = None):
        self._transport = transport
        self.rooms: Dict[str, Set[str]] = {}
        self.connections: Dict[str, dict] = {}

    async def join(self, channel_name, room, user_id=None):
        member = self.connections.setdefault(channel_name, {'user_id': None, 'rooms': set()})
        if user_id is not None:
            member['user_id'] = str(user_id)
        member['rooms'].add(room)
        self.rooms.setdefault(room, set()).add(channel_name)

    async def leave(self, channel_name, room):
        members = self.rooms.get(room)
        if members is not None:
            members.discard(channel_name)
            if not members:
                del self.rooms[room]
        member = self.connections.get(channel_name)
        if member is not None:
            member['rooms'].discard(room)

    async def disconnect(self, channel_name):
        member = self.connections.pop(channel_name, None)
        if member is None:
            return
        for room in member['rooms']:
            members = self.rooms.get(room)
            if members is None:
                continue
            members.discard(channel_name)
            if not members:
                del self.rooms[room]

    def members_of(self, room_names: Iterable[str], exclude_users: Iterable = ()) -> Set[str]:
        excluded = {str(user_id) for user_id in exclude_users}
        targets: Set[str] = set()
        for room in room_names:
            targets |= self.rooms.get(room, set())
        return {
            channel_name for channel_name in targets
            if self.connections.get(channel_name, {}).get('user_id') not in excluded
        }

    async def emit_to(self, room_names, event, payload, exclude_users=()):
        exclude_users = list(exclude_users)
        targets = self.members_of(room_names, exclude_users)
        message = build_message(event, payload, exclude_users)
        send = self._transport or get_channel_layer().send
        for channel_name in sorted(targets):
            await send(channel_name, message)
        return len(targets)


class ChannelLayerRoomRouter(RoomRouter):
    """Rooms are channel-layer groups; consumers de-duplicate by event id."""

    def __init__(self, channel_layer=None):
        self._channel_layer = channel_layer

    @property
    def channel_layer(self):
        return self._channel_layer or get_channel_layer()

    async def join(self, channel_name, room, user_id=None):
        await self.channel_layer.group_add(room, channel_name)

    async def leave(self, channel_name, room):
        await self.channel_layer.group_discard(room, channel_name)

    async def disconnect(self, channel_name):
        # Group membership is dropped per room by the consumer; expiry covers the rest
        return None

    async def emit_to(self, room_names, event, payload, exclude_users=()):
        room_names = sorted(set(room_names))
        message = build_message(event, payload, exclude_users)
        for room in room_names:
            await self.channel_layer.group_send(room, message)
        return len(room_names)


def get_room_router() -> RoomRouter:
    return apps.get_app_config('realtime').room_router
