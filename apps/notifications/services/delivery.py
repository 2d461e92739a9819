"""Channel delivery for notification recipients"""
from __future__ import annotations

import logging
from typing import Callable, Dict

from django.conf import settings
from django.core.mail import send_mail

from apps.notifications.models import DeliveryChannel, NotificationRecipient

logger = logging.getLogger(__name__)


class DeliveryRouter:
    """Send one recipient's copy of a notification over an out-of-band channel."""

    def __init__(self) -> None:
        self.channel_handlers: Dict[str, Callable[[NotificationRecipient], None]] = {
            DeliveryChannel.EMAIL: self._send_email,
            DeliveryChannel.WHATSAPP: self._send_whatsapp,
        }

    def deliver(self, receipt: NotificationRecipient, channel: str) -> bool:
        handler = self.channel_handlers.get(channel)
        if handler is None:
            raise ValueError(f"No delivery handler for channel: {channel}")
        if not receipt.user.wants_channel(channel):
            return False
        try:
            handler(receipt)
        except Exception as exc:
            logger.warning(
                "notification_delivery_failed channel=%s notification_id=%s user_id=%s error=%s",
                channel, receipt.notification_id, receipt.user_id, exc,
            )
            receipt.mark_channel(channel, False, str(exc))
            return False
        receipt.mark_channel(channel, True)
        return True

    # Channel implementations -------------------------------------------------
    def _send_email(self, receipt: NotificationRecipient) -> None:
        recipient_email = receipt.user.email
        if not recipient_email:
            raise ValueError('Recipient has no email address')
        notification = receipt.notification
        body = notification.message
        if notification.action_url:
            body = f"{body}\n\n{settings.FRONTEND_URL.rstrip('/')}{notification.action_url}"
        send_mail(
            subject=notification.title,
            message=body,
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[recipient_email],
            fail_silently=False,
        )

    def _send_whatsapp(self, receipt: NotificationRecipient) -> None:
        # TODO: wire a WhatsApp Business API client once an account is provisioned
        raise ValueError('WhatsApp delivery is not configured')
