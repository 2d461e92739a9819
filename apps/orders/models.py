"""
Order aggregate: the order row plus its owned items, timeline, responses and notes.

Timeline entries, responses and notes are append-only. They are created
through ``Order`` methods and refuse to be saved a second time.
"""

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models, transaction
from django.db.models import F
from django.utils import timezone

from apps.core.choices import ORDER_LOCATIONS, Location, Priority
from apps.core.models import TimeStampedModel, UUIDModel


class OrderStatus(models.TextChoices):
    CREATED = 'created', 'Order created'
    APPROVED = 'approved', 'Order approved'
    MATERIALS_PREPARING = 'materials_preparing', 'Preparing raw materials'
    PRODUCTION_STARTED = 'production_started', 'Production started'
    PRODUCTION_COMPLETED = 'production_completed', 'Production completed'
    QUALITY_CONTROL = 'quality_control', 'Quality control'
    READY_FOR_SHIPMENT = 'ready_for_shipment', 'Ready for shipment'
    SHIPPED = 'shipped', 'Shipped'
    DELIVERED = 'delivered', 'Delivered'
    COMPLETED = 'completed', 'Completed'
    CANCELLED = 'cancelled', 'Cancelled'


class ResponseStatus(models.TextChoices):
    ACCEPTED = 'accepted', 'Order accepted'
    REJECTED = 'rejected', 'Order rejected'
    INFO_REQUIRED = 'info_required', 'More information required'
    DUE_DATE_CHANGED = 'due_date_changed', 'Due date changed'
    PRICE_QUOTE = 'price_quote', 'Price quote'
    NOTE = 'note', 'Note'


class TimelineEntryType(models.TextChoices):
    CREATED = 'created', 'Created'
    UPDATED = 'updated', 'Updated'
    RESPONSE = 'response', 'Response'
    STATUS_CHANGE = 'status_change', 'Status change'
    NOTE_ADDED = 'note_added', 'Note added'


class AppendOnlyModel(models.Model):
    """Rows that may be inserted but never updated."""

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError(f"{self.__class__.__name__} entries are append-only")
        super().save(*args, **kwargs)


class OrderNumberSequence(models.Model):
    """Per-day counter behind ``SIP-YYYYMMDD-NNN`` order numbers."""

    day = models.DateField(unique=True)
    last_value = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = 'order_number_sequences'

    def __str__(self):
        return f"{self.day}: {self.last_value}"

    @classmethod
    def allocate(cls, day=None):
        day = day or timezone.localdate()
        with transaction.atomic():
            cls.objects.get_or_create(day=day)
            cls.objects.select_for_update().filter(day=day).update(last_value=F('last_value') + 1)
            value = cls.objects.filter(day=day).values_list('last_value', flat=True).get()
        return f"SIP-{day:%Y%m%d}-{value:03d}"


class Order(UUIDModel):
    order_number = models.CharField(max_length=32, unique=True, editable=False)
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)

    customer_name = models.CharField(max_length=100)
    customer_phone = models.CharField(max_length=20, blank=True)
    customer_email = models.EmailField(blank=True)
    customer_address = models.TextField(blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='created_orders'
    )
    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
        related_name='assigned_orders'
    )

    status = models.CharField(
        max_length=30, choices=OrderStatus.choices, default=OrderStatus.CREATED, db_index=True
    )
    priority = models.CharField(
        max_length=10, choices=Priority.choices, default=Priority.NORMAL, db_index=True
    )
    location = models.CharField(
        max_length=10, choices=ORDER_LOCATIONS, default=Location.STORE, db_index=True
    )

    due_date = models.DateTimeField(db_index=True)
    delivery_date = models.DateTimeField(null=True, blank=True)
    estimated_cost = models.DecimalField(
        max_digits=12, decimal_places=2, null=True, blank=True, validators=[MinValueValidator(0)]
    )
    actual_cost = models.DecimalField(
        max_digits=12, decimal_places=2, null=True, blank=True, validators=[MinValueValidator(0)]
    )
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = 'orders'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'priority'], name='order_status_priority_idx'),
            models.Index(fields=['assigned_to', 'status'], name='order_assignee_status_idx'),
            models.Index(fields=['created_by', 'created_at'], name='order_creator_created_idx'),
            models.Index(fields=['location', 'assigned_to'], name='order_location_assignee_idx'),
        ]

    def __str__(self):
        return f"{self.order_number} - {self.title}"

    def save(self, *args, **kwargs):
        if self._state.adding and not self.order_number:
            self.order_number = OrderNumberSequence.allocate()
        super().save(*args, **kwargs)

    # Append-only children

    def add_timeline_entry(self, entry_type, description, actor=None, status='', note=''):
        return OrderTimelineEntry.objects.create(
            order=self,
            type=entry_type,
            description=description,
            actor=actor,
            actor_name=actor.full_name if actor else '',
            status=status or '',
            note=note or '',
        )

    def add_response(self, actor, status, note='', voice_recording=None):
        return OrderResponse.objects.create(
            order=self,
            actor=actor,
            actor_name=actor.full_name,
            status=status,
            note=note or '',
            voice_recording=voice_recording,
        )

    def add_note(self, author, content, is_internal=False):
        return OrderNote.objects.create(
            order=self,
            author=author,
            content=content,
            is_internal=is_internal,
        )


class OrderItem(models.Model):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='items')
    product_name = models.CharField(max_length=200)
    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    unit = models.CharField(max_length=20, default='piece')
    notes = models.TextField(blank=True)

    class Meta:
        db_table = 'order_items'
        ordering = ['id']

    def __str__(self):
        return f"{self.product_name} x {self.quantity} {self.unit}"


class OrderTimelineEntry(AppendOnlyModel):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='timeline')
    type = models.CharField(max_length=20, choices=TimelineEntryType.choices)
    description = models.TextField()
    status = models.CharField(max_length=30, blank=True)
    note = models.TextField(blank=True)
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )
    actor_name = models.CharField(max_length=120, blank=True)
    timestamp = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        db_table = 'order_timeline_entries'
        ordering = ['timestamp', 'id']

    def __str__(self):
        return f"{self.order_id} {self.type} @ {self.timestamp:%Y-%m-%d %H:%M}"


class OrderResponse(AppendOnlyModel):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='responses')
    status = models.CharField(max_length=30, choices=ResponseStatus.choices)
    note = models.TextField(blank=True)
    voice_recording = models.JSONField(null=True, blank=True)
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='order_responses'
    )
    actor_name = models.CharField(max_length=120, blank=True)
    timestamp = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'order_responses'
        ordering = ['timestamp', 'id']

    def __str__(self):
        return f"{self.order_id} {self.status}"


class OrderNote(AppendOnlyModel, TimeStampedModel):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='notes')
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='order_notes'
    )
    content = models.TextField()
    is_internal = models.BooleanField(default=False)

    class Meta:
        db_table = 'order_notes'
        ordering = ['created_at', 'id']

    def __str__(self):
        return f"Note on {self.order_id}"
