"""Celery tasks for notification delivery bookkeeping"""
from __future__ import annotations

import logging

from celery import shared_task

from apps.notifications.models import DeliveryChannel, NotificationRecipient
from apps.notifications.services import DeliveryRouter, NotificationService

logger = logging.getLogger(__name__)


@shared_task(bind=True, name='notifications.record_web_delivery')
def record_web_delivery(self, notification_id: str, user_ids):
    """Flag the web channel as delivered for recipients of a live push."""
    return NotificationService.record_web_delivery(notification_id, user_ids)


@shared_task(bind=True, name='notifications.send_email_notifications')
def send_email_notifications(self, notification_id: str):
    receipts = (
        NotificationRecipient.objects.select_related('notification', 'user')
        .filter(notification_id=notification_id, email_sent=False, user__is_active=True)
    )
    router = DeliveryRouter()
    sent = 0
    for receipt in receipts:
        if router.deliver(receipt, DeliveryChannel.EMAIL):
            sent += 1
    logger.info("notification_emails_sent notification_id=%s sent=%s", notification_id, sent)
    return sent


@shared_task(name='notifications.purge_expired')
def purge_expired():
    return NotificationService.purge_expired()
