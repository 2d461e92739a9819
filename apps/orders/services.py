"""Order lifecycle: creation, updates with timeline, assignment, responses and notes"""
from __future__ import annotations

import logging
from typing import Iterable, Optional

from django.db import transaction

from apps.notifications.dispatcher import DomainEvent, EventKind, get_dispatcher

from .models import Order, OrderItem, OrderStatus, ResponseStatus, TimelineEntryType

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    'title', 'description', 'customer_name', 'customer_phone', 'customer_email',
    'customer_address', 'status', 'priority', 'location', 'due_date', 'delivery_date',
    'estimated_cost', 'actual_cost', 'is_active',
)


def response_description(actor_name, status, note='', has_recording=False):
    """Timeline wording for a response; notes read as notes, everything else as a reply."""
    note = (note or '').strip()
    if status == ResponseStatus.NOTE:
        description = f"{actor_name} sent a note on the order: {note or 'Note added'}"
    else:
        description = f"{actor_name} responded to the order: {ResponseStatus(status).label}"
        if note:
            description = f"{description} - Note: {note}"
    if has_recording:
        description = f"{description} (voice recording)"
    return description


class OrderService:
    """Mutations on orders. Notifications go through the injected dispatcher."""

    def __init__(self, dispatcher=None):
        self.dispatcher = dispatcher or get_dispatcher()

    def create(self, actor, data: dict, items: Iterable[dict] = ()) -> Order:
        with transaction.atomic():
            order = Order.objects.create(created_by=actor, **data)
            OrderItem.objects.bulk_create([OrderItem(order=order, **item) for item in items])
            order.add_timeline_entry(
                TimelineEntryType.CREATED, f"Order created by {actor.full_name}", actor=actor,
                status=order.status,
            )
        logger.info("order_created order_id=%s number=%s by=%s", order.pk, order.order_number, actor.pk)
        self.dispatcher.notify(DomainEvent(EventKind.ORDER_CREATED, actor, order=order))
        return order

    def update(self, order: Order, actor, data: dict, items: Optional[Iterable[dict]] = None) -> Order:
        previous_status = order.status
        with transaction.atomic():
            changed = [field for field in UPDATABLE_FIELDS if field in data and getattr(order, field) != data[field]]
            for field in changed:
                setattr(order, field, data[field])
            order.save()
            if items is not None:
                order.items.all().delete()
                OrderItem.objects.bulk_create([OrderItem(order=order, **item) for item in items])
                changed.append('items')

            if order.status != previous_status:
                order.add_timeline_entry(
                    TimelineEntryType.STATUS_CHANGE,
                    f"Status changed from {OrderStatus(previous_status).label} to "
                    f"{OrderStatus(order.status).label} by {actor.full_name}",
                    actor=actor, status=order.status,
                )
            elif changed:
                order.add_timeline_entry(
                    TimelineEntryType.UPDATED, f"Order updated by {actor.full_name}", actor=actor,
                )

        if order.status != previous_status:
            logger.info(
                "order_status_changed order_id=%s from=%s to=%s by=%s",
                order.pk, previous_status, order.status, actor.pk,
            )
            self.dispatcher.notify(DomainEvent(
                EventKind.ORDER_STATUS_CHANGED, actor, order=order,
                extra={'previous_status': previous_status},
            ))
        return order

    def assign(self, order: Order, actor, assignee) -> Order:
        previous = order.assigned_to_id
        order.assigned_to = assignee
        order.save(update_fields=['assigned_to', 'updated_at'])
        if assignee is not None and assignee.pk != previous:
            order.add_timeline_entry(
                TimelineEntryType.UPDATED, f"Order assigned to {assignee.full_name}", actor=actor,
            )
            self.dispatcher.notify(DomainEvent(EventKind.ORDER_ASSIGNED, actor, order=order))
        elif assignee is None and previous is not None:
            order.add_timeline_entry(TimelineEntryType.UPDATED, 'Order assignment removed', actor=actor)
        return order

    def add_response(self, order: Order, actor, status, note='', voice_recording=None):
        """Append a response and its timeline entry, then notify the order's people."""
        with transaction.atomic():
            response = order.add_response(actor, status, note=note, voice_recording=voice_recording)
            entry = order.add_timeline_entry(
                TimelineEntryType.RESPONSE,
                response_description(actor.full_name, status, note, bool(voice_recording)),
                actor=actor, status=status, note=note,
            )
        self.dispatcher.notify(DomainEvent(
            EventKind.ORDER_RESPONSE, actor, order=order,
            extra={
                'status': status,
                'status_label': ResponseStatus(status).label,
                'note': note,
                'payload': {
                    'response': {
                        'id': response.pk,
                        'status': response.status,
                        'note': response.note,
                        'actor': str(actor.pk),
                        'actor_name': response.actor_name,
                        'voice_recording': response.voice_recording,
                        'timestamp': response.timestamp.isoformat(),
                    },
                    'timelineEntry': {
                        'id': entry.pk,
                        'type': entry.type,
                        'description': entry.description,
                        'timestamp': entry.timestamp.isoformat(),
                    },
                },
            },
        ))
        return response, entry

    def add_note(self, order: Order, actor, content, is_internal=False):
        with transaction.atomic():
            note = order.add_note(actor, content.strip(), is_internal=is_internal)
            order.add_timeline_entry(
                TimelineEntryType.NOTE_ADDED, f"{actor.full_name} added a note", actor=actor,
                note='' if is_internal else note.content,
            )
        return note

    def delete(self, order: Order, actor) -> None:
        logger.info("order_deleted order_id=%s number=%s by=%s", order.pk, order.order_number, actor.pk)
        order.delete()
