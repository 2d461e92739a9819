"""Notification task package exports."""

from .delivery_tasks import (  # noqa: F401
    purge_expired,
    record_web_delivery,
    send_email_notifications,
)

__all__ = [
    'purge_expired',
    'record_web_delivery',
    'send_email_notifications',
]
