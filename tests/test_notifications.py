"""
Notification API Tests
======================
Validates:
  1. Listing and unread counts for explicit and global notifications
  2. Read, read-all and clear-all per user
  3. Admin-only creation, broadcast, stats and delivery status
  4. Expiry purge task and per-channel delivery outcomes

Run:
    pytest tests/test_notifications.py
"""

from datetime import timedelta

from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from apps.core.choices import Role
from apps.notifications.models import (
    DeliveryChannel,
    Notification,
    NotificationRecipient,
    NotificationType,
)
from apps.notifications.services import DeliveryRouter, NotificationService
from apps.notifications.tasks import purge_expired
from tests.factories import AdminFactory, FactoryWorkerFactory, StoreStaffFactory


def _explicit(*users, **kwargs):
    notification = Notification.objects.create(
        title=kwargs.pop('title', 'Direct'), message='For you', type=NotificationType.SYSTEM, **kwargs
    )
    NotificationRecipient.objects.bulk_create([
        NotificationRecipient(notification=notification, user=user) for user in users
    ])
    return notification


def _global(roles, **kwargs):
    return Notification.objects.create(
        title=kwargs.pop('title', 'Everyone'), message='Floor news', type=NotificationType.ANNOUNCEMENT,
        is_global=True, target_roles=list(roles), **kwargs
    )


# ─── 1. Listing ──────────────────────────────────────────────────────────────

class NotificationListTests(APITestCase):

    def setUp(self):
        self.worker = FactoryWorkerFactory()
        self.staff = StoreStaffFactory()
        self.direct = _explicit(self.worker)
        self.floor = _global([Role.FACTORY_WORKER])
        _global([Role.STORE_STAFF])
        _explicit(self.staff)
        self.client.force_authenticate(self.worker)

    def test_list_shows_explicit_and_matching_globals(self):
        response = self.client.get('/api/notifications/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        body = response.json()
        self.assertEqual({row['id'] for row in body['data']}, {str(self.direct.pk), str(self.floor.pk)})
        self.assertEqual(body['pagination']['count'], 2)
        self.assertTrue(all(row['is_read'] is False for row in body['data']))

    def test_unread_count(self):
        response = self.client.get('/api/notifications/unread-count/')
        self.assertEqual(response.json()['data'], {'unread_count': 2})

    def test_retrieve_marks_read(self):
        response = self.client.get(f'/api/notifications/{self.floor.pk}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(NotificationService.unread_count(self.worker), 1)
        self.assertTrue(
            NotificationRecipient.objects.filter(notification=self.floor, user=self.worker, is_read=True).exists()
        )

    def test_invisible_notification_is_not_found(self):
        other = _explicit(self.staff, title='Private')
        self.assertEqual(self.client.get(f'/api/notifications/{other.pk}/').status_code,
                         status.HTTP_404_NOT_FOUND)
        self.assertEqual(self.client.post(f'/api/notifications/{other.pk}/read/').status_code,
                         status.HTTP_404_NOT_FOUND)

    def test_filter_by_read_state(self):
        NotificationService.mark_as_read(self.direct.pk, self.worker)
        response = self.client.get('/api/notifications/', {'is_read': 'false'})
        self.assertEqual([row['id'] for row in response.json()['data']], [str(self.floor.pk)])


# ─── 2. Read state ───────────────────────────────────────────────────────────

class NotificationReadStateTests(APITestCase):

    def setUp(self):
        self.worker = FactoryWorkerFactory()
        self.other_worker = FactoryWorkerFactory()
        self.direct = _explicit(self.worker, self.other_worker)
        self.floor = _global([Role.FACTORY_WORKER])
        self.client.force_authenticate(self.worker)

    def test_read_is_per_user(self):
        response = self.client.post(f'/api/notifications/{self.direct.pk}/read/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(NotificationService.unread_count(self.worker), 1)
        self.assertEqual(NotificationService.unread_count(self.other_worker), 2)

    def test_read_twice_is_harmless(self):
        self.assertTrue(NotificationService.mark_as_read(self.floor.pk, self.worker))
        self.assertTrue(NotificationService.mark_as_read(self.floor.pk, self.worker))
        self.assertEqual(
            NotificationRecipient.objects.filter(notification=self.floor, user=self.worker).count(), 1
        )

    def test_read_all_covers_globals(self):
        response = self.client.post('/api/notifications/read-all/')
        self.assertEqual(response.json()['data'], {'updated': 2})
        self.assertEqual(NotificationService.unread_count(self.worker), 0)
        self.assertEqual(NotificationService.unread_count(self.other_worker), 2)

    def test_clear_all_drops_own_receipts_only(self):
        NotificationService.mark_as_read(self.floor.pk, self.worker)
        response = self.client.post('/api/notifications/clear-all/')
        self.assertEqual(response.json()['data'], {'cleared': 2})

        self.assertTrue(Notification.objects.filter(pk=self.direct.pk).exists())
        self.assertTrue(
            NotificationRecipient.objects.filter(notification=self.direct, user=self.other_worker).exists()
        )
        visible = set(NotificationService.visible(self.worker))
        self.assertEqual(visible, {self.floor})

    def test_clear_all_deletes_orphaned_explicit_notifications(self):
        solo = _explicit(self.worker, title='Solo')
        self.client.post('/api/notifications/clear-all/')
        self.assertFalse(Notification.objects.filter(pk=solo.pk).exists())
        self.assertTrue(Notification.objects.filter(pk=self.floor.pk).exists())


# ─── 3. Admin surfaces ───────────────────────────────────────────────────────

class NotificationAdminTests(APITestCase):

    def setUp(self):
        self.admin = AdminFactory()
        self.staff = StoreStaffFactory()
        self.worker = FactoryWorkerFactory()

    def test_broadcast_is_admin_only(self):
        self.client.force_authenticate(self.staff)
        response = self.client.post('/api/notifications/broadcast/', {
            'title': 'Holiday', 'message': 'Closed Monday', 'target_roles': [Role.FACTORY_WORKER],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_broadcast_reaches_target_roles(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post('/api/notifications/broadcast/', {
            'title': 'Holiday', 'message': 'Closed Monday', 'target_roles': [Role.FACTORY_WORKER],
            'priority': 'high',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.content)
        data = response.json()['data']
        self.assertTrue(data['is_global'])
        self.assertEqual(data['type'], NotificationType.ANNOUNCEMENT)

        notification = Notification.objects.get(pk=data['id'])
        self.assertIn(notification, NotificationService.visible(self.worker))
        self.assertNotIn(notification, NotificationService.visible(self.staff))

    def test_broadcast_needs_roles(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post('/api/notifications/broadcast/', {
            'title': 'Holiday', 'message': 'Closed Monday', 'target_roles': [],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_create_for_explicit_recipients(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post('/api/notifications/', {
            'title': 'Glue shortage', 'message': 'Order more PVA', 'type': NotificationType.MATERIAL_SHORTAGE,
            'recipients': [str(self.staff.pk)],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.content)
        notification = Notification.objects.get(pk=response.json()['data']['id'])
        self.assertEqual(list(notification.recipients.values_list('user_id', flat=True)), [self.staff.pk])

    def test_create_without_audience_rejected(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post('/api/notifications/', {'title': 'x', 'message': 'y'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_create_is_admin_only(self):
        self.client.force_authenticate(self.staff)
        response = self.client.post('/api/notifications/', {
            'title': 'x', 'message': 'y', 'recipients': [str(self.worker.pk)],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_stats(self):
        _explicit(self.worker)
        _global([Role.ADMIN])
        self.client.force_authenticate(self.admin)
        data = self.client.get('/api/notifications/stats/').json()['data']
        self.assertEqual(data['total'], 2)
        self.assertEqual(data['global_count'], 1)

    def test_delivery_status_update(self):
        notification = _explicit(self.worker)
        self.client.force_authenticate(self.admin)
        response = self.client.patch(f'/api/notifications/{notification.pk}/delivery-status/', {
            'user_id': str(self.worker.pk), 'channel': DeliveryChannel.EMAIL, 'sent': False, 'error': 'bounced',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        receipt = NotificationRecipient.objects.get(notification=notification, user=self.worker)
        self.assertFalse(receipt.email_sent)
        self.assertEqual(receipt.email_error, 'bounced')

    def test_sender_can_delete_but_recipient_cannot(self):
        notification = _explicit(self.worker, sender=self.admin)
        self.client.force_authenticate(self.worker)
        self.assertEqual(self.client.delete(f'/api/notifications/{notification.pk}/').status_code,
                         status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.admin)
        self.assertEqual(self.client.delete(f'/api/notifications/{notification.pk}/').status_code,
                         status.HTTP_200_OK)


# ─── 4. Expiry and delivery ──────────────────────────────────────────────────

class NotificationExpiryTests(TestCase):

    def test_purge_removes_only_expired(self):
        worker = FactoryWorkerFactory()
        expired = _explicit(worker, expires_at=timezone.now() - timedelta(hours=1))
        live = _explicit(worker, expires_at=timezone.now() + timedelta(hours=1))
        forever = _explicit(worker)

        self.assertEqual(purge_expired.delay().get(), 1)
        self.assertFalse(Notification.objects.filter(pk=expired.pk).exists())
        self.assertTrue(Notification.objects.filter(pk__in=[live.pk, forever.pk]).count() == 2)


class DeliveryRouterTests(TestCase):

    def setUp(self):
        self.worker = FactoryWorkerFactory(notification_preferences={
            'email': True, 'web': True, 'whatsapp': True,
        })
        self.notification = _explicit(self.worker)
        self.receipt = NotificationRecipient.objects.get(notification=self.notification, user=self.worker)

    def test_failed_channel_records_the_error(self):
        self.assertFalse(DeliveryRouter().deliver(self.receipt, DeliveryChannel.WHATSAPP))
        self.receipt.refresh_from_db()
        self.assertFalse(self.receipt.whatsapp_sent)
        self.assertEqual(self.receipt.whatsapp_error, 'WhatsApp delivery is not configured')

    def test_email_without_address_fails(self):
        self.receipt.user.email = ''
        self.assertFalse(DeliveryRouter().deliver(self.receipt, DeliveryChannel.EMAIL))
        self.receipt.refresh_from_db()
        self.assertEqual(self.receipt.email_error, 'Recipient has no email address')

    def test_opted_out_channel_is_skipped(self):
        self.worker.notification_preferences = {'email': True, 'web': True, 'whatsapp': False}
        self.worker.save(update_fields=['notification_preferences'])
        self.receipt.refresh_from_db()
        self.assertFalse(DeliveryRouter().deliver(self.receipt, DeliveryChannel.WHATSAPP))
        self.assertEqual(self.receipt.whatsapp_error, '')
