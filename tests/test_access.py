"""
Access Policy Tests
===================
Validates:
  1. Role-scoped order and task visibility (list filter and single-record check agree)
  2. Write / delete / operate rules inside the read scope
  3. Global notification visibility by role and join date

Run:
    pytest tests/test_access.py
"""

from datetime import timedelta

from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from apps.access import policies
from apps.core.choices import Location, Role
from apps.notifications.models import Notification, NotificationRecipient, NotificationType
from apps.orders.models import Order
from apps.tasks.models import Task
from tests.factories import (
    AdminFactory,
    FactoryWorkerFactory,
    OrderFactory,
    StoreStaffFactory,
    TaskFactory,
)


# ─── 1. Orders ───────────────────────────────────────────────────────────────

class OrderScopeTests(APITestCase):

    def setUp(self):
        self.admin = AdminFactory()
        self.staff = StoreStaffFactory()
        self.other_staff = StoreStaffFactory()
        self.worker = FactoryWorkerFactory()
        self.other_worker = FactoryWorkerFactory()

        self.assigned = OrderFactory(
            created_by=self.staff, assigned_to=self.worker, location=Location.FACTORY
        )
        self.open_factory = OrderFactory(created_by=self.staff, location=Location.FACTORY)
        self.elsewhere = OrderFactory(
            created_by=self.staff, assigned_to=self.other_worker, location=Location.STORE
        )

    def _listed_ids(self, user):
        self.client.force_authenticate(user)
        response = self.client.get('/api/orders/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        return {row['id'] for row in response.json()['data']}

    def test_factory_worker_sees_own_and_open_factory_orders(self):
        self.assertEqual(
            self._listed_ids(self.worker),
            {str(self.assigned.pk), str(self.open_factory.pk)},
        )

    def test_list_and_detail_checks_agree(self):
        visible = set(policies.visible_orders(self.worker, Order.objects.all()).values_list('pk', flat=True))
        for order in Order.objects.all():
            self.assertEqual(policies.can_read_order(self.worker, order), order.pk in visible)

    def test_order_outside_scope_is_not_found(self):
        self.client.force_authenticate(self.worker)
        response = self.client.get(f'/api/orders/{self.elsewhere.pk}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertFalse(response.json()['success'])

    def test_store_staff_sees_store_orders_and_their_own(self):
        foreign_factory = OrderFactory(created_by=self.admin, location=Location.FACTORY)
        self.assertEqual(
            self._listed_ids(self.other_staff),
            {str(self.elsewhere.pk)},
        )
        self.assertNotIn(str(foreign_factory.pk), self._listed_ids(self.staff))
        self.assertIn(str(self.assigned.pk), self._listed_ids(self.staff))

    def test_store_staff_assignee_of_factory_order_sees_it(self):
        order = OrderFactory(created_by=self.admin, assigned_to=self.other_staff, location=Location.FACTORY)
        self.assertIn(str(order.pk), self._listed_ids(self.other_staff))

    def test_admin_sees_everything(self):
        self.assertEqual(len(self._listed_ids(self.admin)), 3)

    def test_only_creator_or_admin_deletes(self):
        self.assertTrue(policies.can_access(self.staff, self.assigned, 'delete'))
        self.assertTrue(policies.can_access(self.admin, self.assigned, 'delete'))
        self.assertFalse(policies.can_access(self.worker, self.assigned, 'delete'))

    def test_assignee_may_write(self):
        self.assertTrue(policies.can_access(self.worker, self.assigned, 'write'))
        self.assertFalse(policies.can_access(self.worker, self.open_factory, 'write'))

    def test_factory_worker_cannot_create_orders(self):
        self.client.force_authenticate(self.worker)
        response = self.client.post('/api/orders/', {
            'title': 'Shelving', 'customer_name': 'Acme', 'due_date': timezone.now().isoformat(),
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_only_management_may_respond(self):
        self.assertFalse(policies.can_access(self.worker, self.assigned, 'respond'))
        self.assertTrue(policies.can_access(self.staff, self.assigned, 'respond'))
        self.assertTrue(policies.can_access(self.other_staff, self.elsewhere, 'respond'))
        self.assertFalse(policies.can_access(self.other_staff, self.open_factory, 'respond'))

    def test_unknown_action_is_denied(self):
        self.assertFalse(policies.can_access(self.admin, self.assigned, 'launch'))


# ─── 2. Tasks ────────────────────────────────────────────────────────────────

class TaskScopeTests(TestCase):

    def setUp(self):
        self.admin = AdminFactory()
        self.staff = StoreStaffFactory()
        self.worker = FactoryWorkerFactory()
        self.other_worker = FactoryWorkerFactory()

        self.mine = TaskFactory(created_by=self.admin, assigned_to=self.worker)
        self.open_floor = TaskFactory(created_by=self.admin, location=Location.BOTH)
        self.open_store = TaskFactory(created_by=self.admin, location=Location.STORE)
        self.theirs = TaskFactory(created_by=self.admin, assigned_to=self.other_worker)

    def test_factory_worker_task_scope(self):
        visible = set(policies.visible_tasks(self.worker, Task.objects.all()))
        self.assertEqual(visible, {self.mine, self.open_floor})

    def test_store_staff_task_scope(self):
        visible = set(policies.visible_tasks(self.staff, Task.objects.all()))
        self.assertEqual(visible, {self.open_floor, self.open_store})

    def test_open_task_can_be_operated_by_anyone_who_sees_it(self):
        self.assertTrue(policies.can_operate_task(self.worker, self.open_floor))
        self.assertTrue(policies.can_operate_task(self.other_worker, self.open_floor))
        self.assertFalse(policies.can_operate_task(self.other_worker, self.mine))

    def test_only_management_creates_tasks(self):
        self.assertTrue(policies.can_create_task(self.staff))
        self.assertFalse(policies.can_create_task(self.worker))


# ─── 3. Notifications ────────────────────────────────────────────────────────

class NotificationVisibilityTests(TestCase):

    def setUp(self):
        self.worker = FactoryWorkerFactory()
        self.staff = StoreStaffFactory()

    def _global(self, roles, created_at=None, **kwargs):
        return Notification.objects.create(
            title='Heads up', message='Line 2 down', type=NotificationType.SYSTEM,
            is_global=True, target_roles=list(roles),
            created_at=created_at or timezone.now(), **kwargs
        )

    def test_global_requires_role_and_join_date(self):
        before = self._global([Role.FACTORY_WORKER], created_at=self.worker.date_joined - timedelta(days=1))
        after = self._global([Role.FACTORY_WORKER])
        other_role = self._global([Role.STORE_STAFF])

        visible = set(policies.visible_notifications(self.worker, Notification.objects.all()))
        self.assertEqual(visible, {after})
        self.assertFalse(policies.can_see_notification(self.worker, before))
        self.assertTrue(policies.can_see_notification(self.worker, after))
        self.assertFalse(policies.can_see_notification(self.worker, other_role))

    def test_role_change_does_not_reveal_older_globals(self):
        older = self._global([Role.STORE_STAFF], created_at=self.worker.date_joined - timedelta(hours=1))
        newer = self._global([Role.STORE_STAFF])
        self.worker.role = Role.STORE_STAFF
        self.worker.save(update_fields=['role'])

        visible = set(policies.visible_notifications(self.worker, Notification.objects.all()))
        self.assertEqual(visible, {newer})
        self.assertNotIn(older, visible)

    def test_explicit_recipient_only(self):
        notification = Notification.objects.create(title='Yours', message='Only you', type=NotificationType.SYSTEM)
        NotificationRecipient.objects.create(notification=notification, user=self.worker)

        self.assertTrue(policies.can_see_notification(self.worker, notification))
        self.assertFalse(policies.can_see_notification(self.staff, notification))

    def test_expired_notifications_are_hidden(self):
        expired = self._global([Role.FACTORY_WORKER], expires_at=timezone.now() - timedelta(minutes=1))
        self.assertFalse(policies.visible_notifications(self.worker, Notification.objects.all()).exists())
        self.assertFalse(policies.can_see_notification(self.worker, expired))
