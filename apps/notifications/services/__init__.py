"""Notification service layer"""
from .delivery import DeliveryRouter
from .notification_service import NotificationService

__all__ = [
    'DeliveryRouter',
    'NotificationService',
]
