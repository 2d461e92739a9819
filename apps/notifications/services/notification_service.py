"""Notification read-state and delivery bookkeeping"""
from __future__ import annotations

import logging
from typing import Any, Dict

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models import Count
from django.utils import timezone

from apps.access import policies
from apps.core.exceptions import NotFoundError
from apps.notifications.models import DeliveryChannel, Notification, NotificationRecipient

logger = logging.getLogger(__name__)


class NotificationService:
    """
    Per-user views over notifications.

    Explicit notifications carry a recipient row per user from the start.
    Global notifications get a row for a user the first time that user reads
    one, so "unread" means "visible and no read row for me".
    """

    # --------------------------------------------------------------- Queries
    @classmethod
    def visible(cls, user):
        return policies.visible_notifications(user, Notification.objects.all())

    @classmethod
    def get_visible(cls, notification_id, user) -> Notification | None:
        try:
            return cls.visible(user).filter(pk=notification_id).first()
        except (ValueError, DjangoValidationError):
            return None

    @classmethod
    def read_ids(cls, user):
        return NotificationRecipient.objects.filter(user=user, is_read=True).values('notification_id')

    @classmethod
    def unread(cls, user):
        return cls.visible(user).exclude(pk__in=cls.read_ids(user))

    @classmethod
    def unread_count(cls, user) -> int:
        return cls.unread(user).count()

    # --------------------------------------------------------------- Read state
    @classmethod
    def mark_as_read(cls, notification_id, user) -> bool:
        notification = cls.get_visible(notification_id, user)
        if notification is None:
            return False
        cls._mark_read(notification, user)
        return True

    @classmethod
    def _mark_read(cls, notification, user):
        now = timezone.now()
        receipt, created = NotificationRecipient.objects.get_or_create(
            notification=notification,
            user=user,
            defaults={'is_read': True, 'read_at': now},
        )
        if not created:
            receipt.mark_read()
        return receipt

    @classmethod
    def mark_all_as_read(cls, user) -> int:
        now = timezone.now()
        with transaction.atomic():
            pending = list(cls.unread(user).values_list('pk', flat=True))
            updated = NotificationRecipient.objects.filter(
                user=user, notification_id__in=pending, is_read=False
            ).update(is_read=True, read_at=now)
            have_rows = set(
                NotificationRecipient.objects.filter(user=user, notification_id__in=pending)
                .values_list('notification_id', flat=True)
            )
            NotificationRecipient.objects.bulk_create([
                NotificationRecipient(notification_id=pk, user=user, is_read=True, read_at=now)
                for pk in pending if pk not in have_rows
            ])
        return updated + len(pending) - len(have_rows)

    @classmethod
    def clear_all(cls, user) -> int:
        """Drop the user's receipts; explicit notifications left with nobody are deleted."""
        with transaction.atomic():
            notification_ids = list(
                NotificationRecipient.objects.filter(user=user).values_list('notification_id', flat=True)
            )
            deleted, _ = NotificationRecipient.objects.filter(user=user).delete()
            Notification.objects.filter(
                pk__in=notification_ids, is_global=False, recipients__isnull=True
            ).delete()
        return deleted

    # --------------------------------------------------------------- Delivery
    @classmethod
    def update_delivery_status(cls, notification, user_id, channel, sent, error='') -> NotificationRecipient:
        receipt = NotificationRecipient.objects.filter(notification=notification, user_id=user_id).first()
        if receipt is None:
            raise NotFoundError('NotificationRecipient', user_id)
        receipt.mark_channel(channel, sent, error)
        return receipt

    @classmethod
    def record_web_delivery(cls, notification_id, user_ids) -> int:
        return NotificationRecipient.objects.filter(
            notification_id=notification_id, user_id__in=user_ids, web_sent=False
        ).update(web_sent=True, web_sent_at=timezone.now())

    @classmethod
    def purge_expired(cls, now=None) -> int:
        _, per_model = Notification.objects.expired(now).delete()
        deleted = per_model.get(Notification._meta.label, 0)
        if deleted:
            logger.info("notifications_purged count=%s", deleted)
        return deleted

    # --------------------------------------------------------------- Stats
    @classmethod
    def stats(cls) -> Dict[str, Any]:
        qs = Notification.objects.all()
        receipts = NotificationRecipient.objects.all()
        return {
            'total': qs.count(),
            'global_count': qs.filter(is_global=True).count(),
            'by_type': {row['type']: row['count'] for row in qs.values('type').annotate(count=Count('id'))},
            'by_priority': {
                row['priority']: row['count'] for row in qs.values('priority').annotate(count=Count('id'))
            },
            'recipients': receipts.count(),
            'read': receipts.filter(is_read=True).count(),
            'delivery': {
                channel: receipts.filter(**{f'{channel}_sent': True}).count()
                for channel in DeliveryChannel.values
            },
        }
