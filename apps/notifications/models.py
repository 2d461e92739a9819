"""Notification Models"""
import uuid

from django.conf import settings
from django.db import models
from django.utils import timezone

from apps.core.choices import Priority


class NotificationType(models.TextChoices):
    ORDER_CREATED = 'order_created', 'New order'
    ORDER_UPDATED = 'order_updated', 'Order updated'
    ORDER_COMPLETED = 'order_completed', 'Order completed'
    ORDER_RESPONSE = 'order_response', 'Order response'
    TASK_ASSIGNED = 'task_assigned', 'Task assigned'
    TASK_COMPLETED = 'task_completed', 'Task completed'
    MATERIAL_SHORTAGE = 'material_shortage', 'Material shortage'
    DUE_SOON = 'due_soon', 'Due soon'
    OVERDUE = 'overdue', 'Overdue'
    SYSTEM = 'system', 'System'
    ANNOUNCEMENT = 'announcement', 'Announcement'


class DeliveryChannel(models.TextChoices):
    WEB = 'web', 'Web'
    EMAIL = 'email', 'Email'
    WHATSAPP = 'whatsapp', 'WhatsApp'


def default_channels():
    return [DeliveryChannel.WEB.value]


class NotificationQuerySet(models.QuerySet):

    def expired(self, now=None):
        return self.filter(expires_at__isnull=False, expires_at__lte=now or timezone.now())

    def for_order(self, order):
        return self.filter(related_order=order)


class Notification(models.Model):
    """
    A notification addressed either to explicit recipients or, when
    ``is_global`` is set, to every user whose role is in ``target_roles``
    and who joined before it was created.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    title = models.CharField(max_length=200)
    message = models.TextField()
    type = models.CharField(max_length=30, choices=NotificationType.choices, db_index=True)
    priority = models.CharField(max_length=10, choices=Priority.choices, default=Priority.NORMAL)

    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
        related_name='sent_notifications'
    )
    related_order = models.ForeignKey(
        'orders.Order', on_delete=models.CASCADE, null=True, blank=True, related_name='notifications'
    )
    related_task = models.ForeignKey(
        'tasks.Task', on_delete=models.CASCADE, null=True, blank=True, related_name='notifications'
    )
    data = models.JSONField(default=dict, blank=True)

    is_global = models.BooleanField(default=False, db_index=True)
    target_roles = models.JSONField(default=list, blank=True)
    channels = models.JSONField(default=default_channels, blank=True)

    action_url = models.CharField(max_length=255, blank=True)
    action_text = models.CharField(max_length=50, blank=True)
    expires_at = models.DateTimeField(null=True, blank=True, db_index=True)
    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    objects = NotificationQuerySet.as_manager()

    class Meta:
        db_table = 'notifications'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['is_global', 'created_at'], name='notif_global_created_idx'),
            models.Index(fields=['type', 'created_at'], name='notif_type_created_idx'),
        ]

    def __str__(self):
        return f"{self.type}: {self.title}"

    @property
    def related_id(self):
        related = self.related_order_id or self.related_task_id
        return str(related) if related else None

    def is_expired(self, now=None):
        return self.expires_at is not None and self.expires_at <= (now or timezone.now())

    def live_payload(self):
        """Minimal body pushed over the socket as ``newNotification``."""
        return {
            'id': str(self.id),
            'type': self.type,
            'title': self.title,
            'message': self.message,
            'related_id': self.related_id,
            'timestamp': self.created_at.isoformat(),
        }


class NotificationRecipient(models.Model):
    """Per-user read state and per-channel delivery status."""
    notification = models.ForeignKey(Notification, on_delete=models.CASCADE, related_name='recipients')
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='notification_receipts'
    )

    is_read = models.BooleanField(default=False, db_index=True)
    read_at = models.DateTimeField(null=True, blank=True)

    web_sent = models.BooleanField(default=False)
    web_sent_at = models.DateTimeField(null=True, blank=True)
    email_sent = models.BooleanField(default=False)
    email_sent_at = models.DateTimeField(null=True, blank=True)
    email_error = models.TextField(blank=True)
    whatsapp_sent = models.BooleanField(default=False)
    whatsapp_sent_at = models.DateTimeField(null=True, blank=True)
    whatsapp_error = models.TextField(blank=True)

    class Meta:
        db_table = 'notification_recipients'
        constraints = [
            models.UniqueConstraint(fields=['notification', 'user'], name='uniq_notification_recipient'),
        ]
        indexes = [
            models.Index(fields=['user', 'is_read'], name='notif_recipient_read_idx'),
        ]

    def __str__(self):
        return f"{self.user_id} <- {self.notification_id}"

    def mark_read(self):
        if self.is_read:
            return
        self.is_read = True
        self.read_at = timezone.now()
        self.save(update_fields=['is_read', 'read_at'])

    def mark_channel(self, channel, sent, error=''):
        """Record the outcome of one delivery channel."""
        if channel not in DeliveryChannel.values:
            raise ValueError(f"Unknown delivery channel: {channel}")
        fields = [f'{channel}_sent', f'{channel}_sent_at']
        setattr(self, f'{channel}_sent', sent)
        setattr(self, f'{channel}_sent_at', timezone.now() if sent else None)
        if channel != DeliveryChannel.WEB:
            setattr(self, f'{channel}_error', '' if sent else (error or ''))
            fields.append(f'{channel}_error')
        self.save(update_fields=fields)
