"""
Room Router Tests
=================
Validates:
  1. Union delivery: one copy per connection however many target rooms it sits in
  2. Actor exclusion across every room the actor belongs to
  3. Membership cleanup on leave / disconnect
  4. Default room naming per role

Run:
    pytest tests/test_room_router.py
"""

from django.test import SimpleTestCase

from apps.core.choices import Role
from apps.realtime import rooms
from apps.realtime.routers import ROOM_EVENT_TYPE, ChannelLayerRoomRouter, LocalRoomRouter


class RecordingTransport:
    def __init__(self):
        self.sent = []

    async def __call__(self, channel_name, message):
        self.sent.append((channel_name, message))

    def channels(self):
        return sorted(channel for channel, _ in self.sent)


class RecordingLayer:
    def __init__(self):
        self.groups = []

    async def group_add(self, group, channel):
        pass

    async def group_discard(self, group, channel):
        pass

    async def group_send(self, group, message):
        self.groups.append((group, message))


class LocalRoomRouterTests(SimpleTestCase):

    def setUp(self):
        self.transport = RecordingTransport()
        self.router = LocalRoomRouter(transport=self.transport)

    async def _connect(self, channel, user_id, role):
        for room in rooms.default_rooms(user_id, role):
            await self.router.join(channel, room, user_id=user_id)

    async def test_connection_in_several_target_rooms_gets_one_copy(self):
        await self._connect('chan-admin', 'a1', Role.ADMIN)
        await self._connect('chan-staff', 's1', Role.STORE_STAFF)

        delivered = await self.router.emit_to(
            {rooms.role_room(Role.ADMIN), rooms.MANAGEMENT, rooms.EVERYONE}, 'new-order', {'id': 1}
        )

        self.assertEqual(delivered, 2)
        self.assertEqual(self.transport.channels(), ['chan-admin', 'chan-staff'])
        _, message = self.transport.sent[0]
        self.assertEqual(message['type'], ROOM_EVENT_TYPE)
        self.assertEqual(message['event'], 'new-order')
        self.assertEqual(message['data'], {'id': 1})

    def test_members_of_is_a_union(self):
        self.router.rooms = {'a': {'c1', 'c2'}, 'b': {'c2', 'c3'}}
        self.router.connections = {
            'c1': {'user_id': 'u1', 'rooms': {'a'}},
            'c2': {'user_id': 'u2', 'rooms': {'a', 'b'}},
            'c3': {'user_id': 'u3', 'rooms': {'b'}},
        }
        self.assertEqual(self.router.members_of(['a', 'b']), {'c1', 'c2', 'c3'})
        self.assertEqual(self.router.members_of(['a', 'b'], exclude_users=['u2']), {'c1', 'c3'})

    async def test_actor_excluded_from_every_room(self):
        await self._connect('chan-actor', 'a1', Role.ADMIN)
        await self._connect('chan-actor-tab', 'a1', Role.ADMIN)
        await self._connect('chan-worker', 'w1', Role.FACTORY_WORKER)

        await self.router.emit_to(
            {rooms.user_room('a1'), rooms.role_room(Role.ADMIN), rooms.EVERYONE},
            'newNotification', {}, exclude_users=['a1'],
        )

        self.assertEqual(self.transport.channels(), ['chan-worker'])

    async def test_leave_and_disconnect_drop_membership(self):
        await self._connect('chan-1', 'w1', Role.FACTORY_WORKER)
        await self.router.join('chan-1', rooms.order_room('o1'), user_id='w1')
        await self.router.leave('chan-1', rooms.order_room('o1'))

        self.assertEqual(await self.router.emit_to({rooms.order_room('o1')}, 'x', {}), 0)

        await self.router.disconnect('chan-1')
        self.assertEqual(self.router.rooms, {})
        self.assertEqual(self.router.connections, {})

    async def test_empty_room_set_sends_nothing(self):
        await self._connect('chan-1', 'w1', Role.FACTORY_WORKER)
        self.assertEqual(await self.router.emit_to(set(), 'x', {}), 0)
        self.assertEqual(self.transport.sent, [])


class ChannelLayerRoomRouterTests(SimpleTestCase):

    async def test_one_event_id_across_groups(self):
        layer = RecordingLayer()
        router = ChannelLayerRoomRouter(channel_layer=layer)

        await router.emit_to({'role_admin', 'management'}, 'task-completed', {'id': 't1'}, exclude_users=['u9'])

        self.assertEqual([group for group, _ in layer.groups], ['management', 'role_admin'])
        first, second = (message for _, message in layer.groups)
        self.assertEqual(first['event_id'], second['event_id'])
        self.assertEqual(first['exclude'], ['u9'])


class RoomNamingTests(SimpleTestCase):

    def test_default_rooms_by_role(self):
        self.assertEqual(
            rooms.default_rooms('u1', Role.FACTORY_WORKER),
            ['user_u1', 'role_factory_worker', 'everyone', 'factory'],
        )
        self.assertIn(rooms.MANAGEMENT, rooms.default_rooms('u2', Role.STORE_STAFF))
        self.assertNotIn(rooms.FACTORY, rooms.default_rooms('u3', Role.ADMIN))

    def test_parse_record_room(self):
        self.assertEqual(rooms.parse_record_room('order_abc'), ('order', 'abc'))
        self.assertEqual(rooms.parse_record_room('task_12'), ('task', '12'))
        self.assertIsNone(rooms.parse_record_room('user_abc'))
        self.assertIsNone(rooms.parse_record_room('management'))
