"""
Order API Tests
===============
Validates:
  1. Daily order numbering (SIP-YYYYMMDD-NNN)
  2. Timeline entries for creation, updates and status changes
  3. Responses (with and without voice recordings) and notes
  4. Assignment, stats and deletion rules

Run:
    pytest tests/test_orders.py
"""

from datetime import timedelta

from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from apps.core.choices import Location, Priority
from apps.notifications.models import Notification, NotificationType
from apps.orders.models import (
    Order,
    OrderNumberSequence,
    OrderStatus,
    OrderTimelineEntry,
    ResponseStatus,
    TimelineEntryType,
)
from apps.orders.services import response_description
from tests.factories import AdminFactory, FactoryWorkerFactory, OrderFactory, StoreStaffFactory

WEBM_HEADER = b"\x1aE\xdf\xa3" + b"\x00" * 60


def _order_payload(**overrides):
    payload = {
        'title': 'Display shelves',
        'customer_name': 'Lakshmi Stores',
        'customer_phone': '+919800000000',
        'due_date': (timezone.now() + timedelta(days=5)).isoformat(),
        'priority': Priority.HIGH,
        'location': Location.FACTORY,
        'items': [
            {'product_name': 'Shelf unit', 'quantity': 4, 'unit': 'piece'},
            {'product_name': 'Bracket', 'quantity': 16},
        ],
    }
    payload.update(overrides)
    return payload


# ─── 1. Numbering ────────────────────────────────────────────────────────────

class OrderNumberingTests(TestCase):

    def test_sequential_numbers_for_the_same_day(self):
        staff = StoreStaffFactory()
        first = OrderFactory(created_by=staff)
        second = OrderFactory(created_by=staff)

        prefix = f"SIP-{timezone.localdate():%Y%m%d}"
        self.assertEqual(first.order_number, f"{prefix}-001")
        self.assertEqual(second.order_number, f"{prefix}-002")

    def test_new_day_restarts_the_counter(self):
        day = timezone.localdate() - timedelta(days=3)
        self.assertEqual(OrderNumberSequence.allocate(day), f"SIP-{day:%Y%m%d}-001")
        self.assertEqual(OrderNumberSequence.allocate(day), f"SIP-{day:%Y%m%d}-002")
        self.assertEqual(
            OrderNumberSequence.allocate(day + timedelta(days=1)),
            f"SIP-{day + timedelta(days=1):%Y%m%d}-001",
        )

    def test_existing_number_is_kept_on_save(self):
        order = OrderFactory()
        number = order.order_number
        order.title = 'Renamed'
        order.save()
        order.refresh_from_db()
        self.assertEqual(order.order_number, number)


# ─── 2. Create / update ──────────────────────────────────────────────────────

class OrderLifecycleTests(APITestCase):

    def setUp(self):
        self.admin = AdminFactory()
        self.staff = StoreStaffFactory(first_name='Priya', last_name='Shah')
        self.worker = FactoryWorkerFactory()
        self.client.force_authenticate(self.staff)

    def _create(self, **overrides):
        response = self.client.post('/api/orders/', _order_payload(**overrides), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.content)
        return response.json()['data']

    def test_create_stores_items_and_created_entry(self):
        data = self._create()

        self.assertTrue(data['order_number'].startswith('SIP-'))
        self.assertEqual(data['created_by']['id'], str(self.staff.pk))
        self.assertEqual([item['product_name'] for item in data['items']], ['Shelf unit', 'Bracket'])
        self.assertEqual(len(data['timeline']), 1)
        self.assertEqual(data['timeline'][0]['type'], TimelineEntryType.CREATED)
        self.assertEqual(data['timeline'][0]['description'], 'Order created by Priya Shah')

    def test_create_notifies_admins_and_factory(self):
        data = self._create()
        notification = Notification.objects.get(type=NotificationType.ORDER_CREATED)
        self.assertEqual(str(notification.related_order_id), data['id'])
        self.assertTrue(notification.is_global)
        self.assertEqual(sorted(notification.target_roles), ['admin', 'factory_worker'])

    def test_create_validates_quantity(self):
        payload = _order_payload(items=[{'product_name': 'Shelf', 'quantity': 0}])
        response = self.client.post('/api/orders/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Order.objects.exists())

    def test_status_change_appends_timeline_and_notifies(self):
        data = self._create()
        response = self.client.patch(
            f"/api/orders/{data['id']}/", {'status': OrderStatus.APPROVED}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        timeline = response.json()['data']['timeline']
        self.assertEqual([entry['type'] for entry in timeline],
                         [TimelineEntryType.CREATED, TimelineEntryType.STATUS_CHANGE])
        self.assertEqual(
            timeline[1]['description'],
            'Status changed from Order created to Order approved by Priya Shah',
        )
        notification = Notification.objects.get(type=NotificationType.ORDER_UPDATED)
        self.assertEqual(notification.data['previous_status'], OrderStatus.CREATED)

    def test_completing_an_order_sends_completed_notification(self):
        data = self._create()
        self.client.patch(f"/api/orders/{data['id']}/", {'status': OrderStatus.COMPLETED}, format='json')
        self.assertTrue(Notification.objects.filter(type=NotificationType.ORDER_COMPLETED).exists())

    def test_plain_update_appends_updated_entry_without_notification(self):
        data = self._create()
        before = Notification.objects.count()
        response = self.client.patch(
            f"/api/orders/{data['id']}/", {'customer_address': '12 MG Road'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()['data']['timeline'][-1]['type'], TimelineEntryType.UPDATED)
        self.assertEqual(Notification.objects.count(), before)

    def test_noop_update_adds_no_entry(self):
        data = self._create()
        self.client.patch(f"/api/orders/{data['id']}/", {'title': 'Display shelves'}, format='json')
        self.assertEqual(OrderTimelineEntry.objects.filter(order_id=data['id']).count(), 1)

    def test_items_replaced_on_update(self):
        data = self._create()
        response = self.client.patch(
            f"/api/orders/{data['id']}/",
            {'items': [{'product_name': 'Glass top', 'quantity': 2}]},
            format='json',
        )
        self.assertEqual([item['product_name'] for item in response.json()['data']['items']], ['Glass top'])

    def test_timeline_entries_are_append_only(self):
        data = self._create()
        entry = OrderTimelineEntry.objects.get(order_id=data['id'])
        entry.description = 'Rewritten'
        with self.assertRaises(ValueError):
            entry.save()

    def test_creator_deletes_but_worker_cannot(self):
        data = self._create(location=Location.FACTORY)

        self.client.force_authenticate(self.worker)
        self.assertEqual(self.client.delete(f"/api/orders/{data['id']}/").status_code,
                         status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.staff)
        self.assertEqual(self.client.delete(f"/api/orders/{data['id']}/").status_code, status.HTTP_200_OK)
        self.assertFalse(Order.objects.filter(pk=data['id']).exists())


# ─── 3. Responses and notes ──────────────────────────────────────────────────

class OrderResponseTests(APITestCase):

    def setUp(self):
        self.admin = AdminFactory(first_name='Arun', last_name='Rao')
        self.staff = StoreStaffFactory()
        self.worker = FactoryWorkerFactory()
        self.order = OrderFactory(created_by=self.staff, assigned_to=self.worker, location=Location.FACTORY)

    def test_response_appends_response_and_timeline_entry(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post(
            f'/api/orders/{self.order.pk}/responses/',
            {'status': ResponseStatus.DUE_DATE_CHANGED, 'note': 'Moved to Monday'},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        data = response.json()['data']
        self.assertEqual(data['response']['status'], ResponseStatus.DUE_DATE_CHANGED)
        self.assertEqual(data['response']['actor_name'], 'Arun Rao')
        self.assertEqual(data['timeline_entry']['type'], TimelineEntryType.RESPONSE)
        self.assertEqual(
            data['timeline_entry']['description'],
            'Arun Rao responded to the order: Due date changed - Note: Moved to Monday',
        )

        listed = self.client.get(f'/api/orders/{self.order.pk}/responses/')
        self.assertEqual(len(listed.json()['data']), 1)

    def test_response_with_voice_recording(self):
        self.client.force_authenticate(self.staff)
        upload = SimpleUploadedFile('reply.webm', WEBM_HEADER, content_type='audio/webm')
        response = self.client.post(
            f'/api/orders/{self.order.pk}/responses/',
            {'status': ResponseStatus.ACCEPTED, 'voice_recording': upload},
            format='multipart',
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.content)

        recording = response.json()['data']['response']['voice_recording']
        self.assertEqual(recording['original_name'], 'reply.webm')
        self.assertTrue(recording['path'].startswith('voice-recordings/'))
        self.assertTrue(response.json()['data']['timeline_entry']['description'].endswith('(voice recording)'))

        media = self.client.get(f"/api/media/{recording['path']}")
        self.assertEqual(media.status_code, status.HTTP_200_OK)

        self.client.force_authenticate(FactoryWorkerFactory())
        self.assertEqual(self.client.get(f"/api/media/{recording['path']}").status_code,
                         status.HTTP_404_NOT_FOUND)

    def test_media_path_outside_recordings_is_not_found(self):
        self.client.force_authenticate(self.admin)
        for path in ('voice-recordings/../config/settings/base.py', 'avatars/me.png'):
            self.assertEqual(self.client.get(f'/api/media/{path}').status_code, status.HTTP_404_NOT_FOUND)

    def test_non_audio_upload_rejected(self):
        self.client.force_authenticate(self.staff)
        upload = SimpleUploadedFile('evil.svg', b'<svg></svg>', content_type='image/svg+xml')
        response = self.client.post(
            f'/api/orders/{self.order.pk}/responses/',
            {'status': ResponseStatus.ACCEPTED, 'voice_recording': upload},
            format='multipart',
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(self.order.responses.exists())

    def test_factory_worker_cannot_respond(self):
        self.client.force_authenticate(self.worker)
        response = self.client.post(
            f'/api/orders/{self.order.pk}/responses/', {'status': ResponseStatus.ACCEPTED}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(self.order.responses.exists())

        listed = self.client.get(f'/api/orders/{self.order.pk}/responses/')
        self.assertEqual(listed.status_code, status.HTTP_200_OK)

    def test_response_outside_scope_is_not_found(self):
        stranger = FactoryWorkerFactory()
        self.client.force_authenticate(stranger)
        response = self.client.post(
            f'/api/orders/{self.order.pk}/responses/', {'status': ResponseStatus.NOTE}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_note_wording(self):
        self.assertEqual(
            response_description('Arun Rao', ResponseStatus.NOTE, 'Check the hinges'),
            'Arun Rao sent a note on the order: Check the hinges',
        )
        self.assertEqual(
            response_description('Arun Rao', ResponseStatus.REJECTED),
            'Arun Rao responded to the order: Order rejected',
        )

    def test_internal_notes_hidden_from_other_readers(self):
        store_order = OrderFactory(created_by=self.staff, location=Location.STORE)
        self.client.force_authenticate(self.staff)
        self.client.post(f'/api/orders/{store_order.pk}/notes/',
                         {'content': 'Customer pays late', 'is_internal': True}, format='json')
        created = self.client.post(f'/api/orders/{store_order.pk}/notes/',
                                   {'content': 'Use oak veneer'}, format='json')
        self.assertEqual(created.status_code, status.HTTP_201_CREATED)

        other_staff = StoreStaffFactory()
        self.client.force_authenticate(other_staff)
        notes = self.client.get(f'/api/orders/{store_order.pk}/').json()['data']['notes']
        self.assertEqual([note['content'] for note in notes], ['Use oak veneer'])

        self.client.force_authenticate(self.staff)
        notes = self.client.get(f'/api/orders/{store_order.pk}/').json()['data']['notes']
        self.assertEqual(len(notes), 2)

    def test_blank_note_rejected(self):
        self.client.force_authenticate(self.staff)
        response = self.client.post(f'/api/orders/{self.order.pk}/notes/', {'content': '   '}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


# ─── 4. Assignment and stats ─────────────────────────────────────────────────

class OrderAssignmentTests(APITestCase):

    def setUp(self):
        self.admin = AdminFactory()
        self.staff = StoreStaffFactory()
        self.worker = FactoryWorkerFactory()
        self.order = OrderFactory(created_by=self.staff, location=Location.FACTORY)

    def test_admin_assigns_and_assignee_is_notified(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post(
            f'/api/orders/{self.order.pk}/assign/', {'assigned_to': str(self.worker.pk)}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()['data']['assigned_to']['id'], str(self.worker.pk))

        notification = Notification.objects.get(related_order=self.order, type=NotificationType.ORDER_UPDATED)
        self.assertEqual(list(notification.recipients.values_list('user_id', flat=True)), [self.worker.pk])

    def test_store_staff_cannot_assign(self):
        self.client.force_authenticate(self.staff)
        response = self.client.post(
            f'/api/orders/{self.order.pk}/assign/', {'assigned_to': str(self.worker.pk)}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_unassign(self):
        self.order.assigned_to = self.worker
        self.order.save()
        self.client.force_authenticate(self.admin)
        response = self.client.post(f'/api/orders/{self.order.pk}/assign/', {'assigned_to': None}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()['message'], 'Order assignment removed.')
        self.order.refresh_from_db()
        self.assertIsNone(self.order.assigned_to)

    def test_stats_follow_the_read_scope(self):
        OrderFactory(created_by=self.admin, priority=Priority.URGENT, location=Location.STORE,
                     assigned_to=self.staff)
        OrderFactory(created_by=self.admin, location=Location.FACTORY,
                     due_date=timezone.now() - timedelta(days=1))

        self.client.force_authenticate(self.worker)
        data = self.client.get('/api/orders/stats/').json()['data']
        self.assertEqual(data['total'], 2)
        self.assertEqual(data['urgent'], 0)
        self.assertEqual(data['overdue'], 1)
        self.assertEqual(data['by_status'][OrderStatus.CREATED], 2)

        self.client.force_authenticate(self.admin)
        data = self.client.get('/api/orders/stats/').json()['data']
        self.assertEqual(data['total'], 3)
        self.assertEqual(data['urgent'], 1)
