"""
Notification dispatcher.

Turns a domain event into one persisted ``Notification`` and a live push to
the rooms of its audience. Who hears about what is decided in one table
(``NotificationDispatcher.plan``) using the named role sets from
``apps.access.policies``.

Persistence and emission are separate steps. A persistence failure raises
``DispatchError`` and nothing is emitted. An emission failure is logged and
swallowed: the notification is already stored and clients can fetch it.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, FrozenSet, List, Optional, Sequence, Tuple

from asgiref.sync import async_to_sync
from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import DatabaseError, transaction
from django.utils import timezone

from apps.access import policies
from apps.authentication.models import User
from apps.core.choices import Priority, Role
from apps.core.exceptions import DispatchError
from apps.orders.models import OrderStatus
from apps.realtime import rooms
from apps.realtime.routers import get_room_router

from .models import DeliveryChannel, Notification, NotificationRecipient, NotificationType

logger = logging.getLogger(__name__)


class EventKind:
    ORDER_CREATED = 'order_created'
    ORDER_STATUS_CHANGED = 'order_status_changed'
    ORDER_ASSIGNED = 'order_assigned'
    ORDER_RESPONSE = 'order_response'
    TASK_ASSIGNED = 'task_assigned'
    TASK_COMPLETED = 'task_completed'
    ANNOUNCEMENT = 'announcement'

    ALL = (
        ORDER_CREATED, ORDER_STATUS_CHANGED, ORDER_ASSIGNED, ORDER_RESPONSE,
        TASK_ASSIGNED, TASK_COMPLETED, ANNOUNCEMENT,
    )


@dataclass
class DomainEvent:
    kind: str
    actor: Any
    order: Any = None
    task: Any = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass
class AudiencePlan:
    """Everything needed to persist and push one notification."""
    type: str
    title: str
    message: str
    priority: str = Priority.NORMAL
    is_global: bool = False
    target_roles: FrozenSet[str] = frozenset()
    recipient_ids: Tuple[str, ...] = ()
    channels: Tuple[str, ...] = (DeliveryChannel.WEB,)
    rooms: FrozenSet[str] = frozenset()
    live_event: Optional[str] = None
    live_payload: Dict[str, Any] = field(default_factory=dict)
    action_url: str = ''
    action_text: str = ''
    expires_at: Any = None
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class DispatchResult:
    notification: Notification
    rooms: FrozenSet[str]


def _unique_ids(users: Sequence, exclude=None) -> Tuple[str, ...]:
    excluded = str(exclude.pk) if exclude is not None else None
    seen: List[str] = []
    for user in users:
        if user is None:
            continue
        user_id = str(getattr(user, 'pk', user))
        if user_id != excluded and user_id not in seen:
            seen.append(user_id)
    return tuple(seen)


def _role_rooms(roles) -> FrozenSet[str]:
    return frozenset(rooms.role_room(role) for role in roles)


def _user_rooms(user_ids) -> FrozenSet[str]:
    return frozenset(rooms.user_room(user_id) for user_id in user_ids)


def _order_summary(order) -> Dict[str, Any]:
    return {
        'id': str(order.pk),
        'order_number': order.order_number,
        'title': order.title,
        'status': order.status,
        'priority': order.priority,
        'location': order.location,
        'created_by': str(order.created_by_id),
        'assigned_to': str(order.assigned_to_id) if order.assigned_to_id else None,
    }


def _task_summary(task) -> Dict[str, Any]:
    return {
        'id': str(task.pk),
        'title': task.title,
        'status': task.status,
        'priority': task.priority,
        'category': task.category,
        'location': task.location,
        'assigned_to': str(task.assigned_to_id) if task.assigned_to_id else None,
        'completion_percentage': task.completion_percentage,
    }


def _default_expiry():
    days = getattr(settings, 'NOTIFICATION_DEFAULT_TTL_DAYS', 0)
    return timezone.now() + timedelta(days=days) if days else None


class NotificationDispatcher:
    """Persist-then-emit notification fan-out for domain events."""

    def __init__(self, router):
        self.router = router

    # ----- Audience table -----

    def plan(self, event: DomainEvent) -> AudiencePlan:
        builder = getattr(self, f'_plan_{event.kind}', None)
        if builder is None:
            raise DispatchError(f"Unknown event kind: {event.kind}")
        return builder(event)

    def _plan_order_created(self, event):
        order = event.order
        audience = policies.ORDER_CREATED_AUDIENCE
        return AudiencePlan(
            type=NotificationType.ORDER_CREATED,
            title='New order created',
            message=f'A new order "{order.title}" was created.',
            priority=order.priority,
            is_global=True,
            target_roles=audience,
            rooms=_role_rooms(audience),
            live_event='new-order',
            live_payload={'order': _order_summary(order), 'message': 'New order created'},
            action_url=f'/orders/{order.pk}',
            action_text='View order',
        )

    def _plan_order_status_changed(self, event):
        order = event.order
        audience = policies.ORDER_STATUS_AUDIENCE
        previous = event.extra.get('previous_status')
        notification_type = (
            NotificationType.ORDER_COMPLETED if order.status == OrderStatus.COMPLETED else NotificationType.ORDER_UPDATED
        )
        return AudiencePlan(
            type=notification_type,
            title='Order status updated',
            message=f'Order {order.order_number} is now "{order.get_status_display()}".',
            priority=order.priority,
            is_global=True,
            target_roles=audience,
            rooms=_role_rooms(audience),
            live_event='orderUpdated',
            live_payload={
                'orderId': str(order.pk),
                'type': 'status_changed',
                'status': order.status,
                'previousStatus': previous,
                **event.extra.get('payload', {}),
            },
            action_url=f'/orders/{order.pk}',
            action_text='View order',
            data={'previous_status': previous, 'status': order.status},
        )

    def _plan_order_assigned(self, event):
        order = event.order
        recipients = _unique_ids([order.assigned_to_id])
        return AudiencePlan(
            type=NotificationType.ORDER_UPDATED,
            title='Order assigned to you',
            message=f'Order {order.order_number} "{order.title}" was assigned to you.',
            priority=order.priority,
            recipient_ids=recipients,
            channels=(DeliveryChannel.WEB, DeliveryChannel.EMAIL),
            rooms=_user_rooms(recipients),
            live_event='orderUpdated',
            live_payload={
                'orderId': str(order.pk),
                'type': 'assigned',
                'assignedTo': recipients[0] if recipients else None,
            },
            action_url=f'/orders/{order.pk}',
            action_text='View order',
        )

    def _plan_order_response(self, event):
        order = event.order
        responder = event.actor
        recipients = _unique_ids([order.created_by_id, order.assigned_to_id], exclude=responder)
        live_targets = set(recipients)

        # Admin replies are mirrored to the factory floor
        if policies.is_admin(responder):
            factory_ids = (
                User.objects.active()
                .filter(role__in=policies.FACTORY_ROLES)
                .exclude(pk=responder.pk)
                .values_list('pk', flat=True)
            )
            live_targets.update(str(pk) for pk in factory_ids)

        note = event.extra.get('note') or ''
        status_label = event.extra.get('status_label') or event.extra.get('status', '')
        message = f'{responder.full_name} responded to order {order.order_number}: {status_label}'
        if note:
            message = f'{message} ({note})'

        return AudiencePlan(
            type=NotificationType.ORDER_RESPONSE,
            title='Order response',
            message=message,
            recipient_ids=recipients,
            channels=(DeliveryChannel.WEB, DeliveryChannel.EMAIL),
            rooms=_user_rooms(live_targets),
            live_event='orderUpdated',
            live_payload={
                'orderId': str(order.pk),
                'type': 'response_added',
                **event.extra.get('payload', {}),
            },
            action_url=f'/orders/{order.pk}',
            action_text='View order',
        )

    def _plan_task_assigned(self, event):
        task = event.task
        common = dict(
            type=NotificationType.TASK_ASSIGNED,
            priority=task.priority,
            live_event='new-task',
            live_payload={'task': _task_summary(task), 'message': 'New task created'},
            action_url=f'/tasks/{task.pk}',
            action_text='View task',
        )
        if task.assigned_to_id:
            recipients = _unique_ids([task.assigned_to_id])
            return AudiencePlan(
                title='New task assigned',
                message=f'Task "{task.title}" was assigned to you.',
                recipient_ids=recipients,
                channels=(DeliveryChannel.WEB, DeliveryChannel.EMAIL),
                rooms=_user_rooms(recipients),
                **common,
            )
        audience = policies.OPEN_TASK_AUDIENCE
        return AudiencePlan(
            title='New open task',
            message=f'A new open task "{task.title}" was created.',
            is_global=True,
            target_roles=audience,
            rooms=_role_rooms(audience),
            **common,
        )

    def _plan_task_completed(self, event):
        task = event.task
        audience = policies.TASK_COMPLETED_AUDIENCE
        return AudiencePlan(
            type=NotificationType.TASK_COMPLETED,
            title='Task completed',
            message=f'Task "{task.title}" was completed.',
            priority=task.priority,
            is_global=True,
            target_roles=audience,
            rooms=frozenset({rooms.MANAGEMENT}),
            live_event='task-completed',
            live_payload={'task': _task_summary(task), 'message': 'Task completed'},
            action_url=f'/tasks/{task.pk}',
            action_text='View task',
        )

    def _plan_announcement(self, event):
        extra = event.extra
        recipients = _unique_ids(extra.get('recipients') or ())
        target_roles = frozenset(extra.get('target_roles') or ())
        if not recipients and not target_roles:
            raise DispatchError('Announcement needs target roles or recipients.')

        if recipients:
            audience = {'recipient_ids': recipients, 'rooms': _user_rooms(recipients)}
        else:
            audience = {
                'is_global': True,
                'target_roles': target_roles,
                'rooms': _role_rooms(target_roles),
            }
        return AudiencePlan(
            type=extra.get('type') or NotificationType.ANNOUNCEMENT,
            title=extra['title'],
            message=extra['message'],
            priority=extra.get('priority') or Priority.NORMAL,
            channels=tuple(extra.get('channels') or (DeliveryChannel.WEB,)),
            live_event='broadcast-notification',
            live_payload={'targetRoles': sorted(target_roles), 'message': 'New announcement'},
            action_url=extra.get('action_url') or '',
            action_text=extra.get('action_text') or '',
            expires_at=extra.get('expires_at'),
            data=extra.get('data') or {},
            **audience,
        )

    # ----- Dispatch -----

    def dispatch(self, event: DomainEvent) -> DispatchResult:
        plan = self.plan(event)
        notification = self.persist(event, plan)
        self.emit(event, plan, notification)
        self.schedule_delivery(notification, plan)
        logger.info(
            "notification_dispatched kind=%s notification_id=%s recipients=%s rooms=%s",
            event.kind, notification.pk, len(plan.recipient_ids), len(plan.rooms),
        )
        return DispatchResult(notification=notification, rooms=plan.rooms)

    def notify(self, event: DomainEvent) -> Optional[DispatchResult]:
        """``dispatch`` for services: a failed notification never fails the caller."""
        try:
            return self.dispatch(event)
        except DispatchError as exc:
            logger.warning("notification_dispatch_failed kind=%s error=%s", event.kind, exc)
            return None

    def persist(self, event: DomainEvent, plan: AudiencePlan) -> Notification:
        try:
            with transaction.atomic():
                notification = Notification.objects.create(
                    title=plan.title,
                    message=plan.message,
                    type=plan.type,
                    priority=plan.priority,
                    sender=event.actor,
                    related_order=event.order,
                    related_task=event.task,
                    data=plan.data,
                    is_global=plan.is_global,
                    target_roles=sorted(plan.target_roles),
                    channels=list(plan.channels),
                    action_url=plan.action_url,
                    action_text=plan.action_text,
                    expires_at=plan.expires_at or _default_expiry(),
                )
                NotificationRecipient.objects.bulk_create([
                    NotificationRecipient(notification=notification, user_id=user_id)
                    for user_id in plan.recipient_ids
                ])
        except (DatabaseError, DjangoValidationError) as exc:
            raise DispatchError(f"Could not store {event.kind} notification: {exc}") from exc
        return notification

    def emit(self, event: DomainEvent, plan: AudiencePlan, notification: Notification) -> None:
        if not plan.rooms:
            return
        exclude = [event.actor.pk] if event.actor is not None else []
        try:
            if plan.live_event:
                async_to_sync(self.router.emit_to)(
                    plan.rooms, plan.live_event, plan.live_payload, exclude_users=exclude
                )
            async_to_sync(self.router.emit_to)(
                plan.rooms, 'newNotification', notification.live_payload(), exclude_users=exclude
            )
        except Exception:
            logger.exception(
                "notification_emit_failed kind=%s notification_id=%s", event.kind, notification.pk
            )

    def schedule_delivery(self, notification: Notification, plan: AudiencePlan) -> None:
        if not plan.recipient_ids:
            return
        from .tasks import record_web_delivery, send_email_notifications

        notification_id = str(notification.pk)
        user_ids = list(plan.recipient_ids)
        wants_email = DeliveryChannel.EMAIL in plan.channels

        def enqueue():
            try:
                record_web_delivery.delay(notification_id, user_ids)
                if wants_email:
                    send_email_notifications.delay(notification_id)
            except Exception:
                logger.exception("notification_delivery_enqueue_failed notification_id=%s", notification_id)

        transaction.on_commit(enqueue)


def announcement_event(actor, *, title, message, target_roles=(), recipients=(), **extra) -> DomainEvent:
    return DomainEvent(
        kind=EventKind.ANNOUNCEMENT,
        actor=actor,
        extra={
            'title': title,
            'message': message,
            'target_roles': [role for role in target_roles if role in Role.values],
            'recipients': list(recipients),
            **extra,
        },
    )


def get_dispatcher() -> NotificationDispatcher:
    return NotificationDispatcher(get_room_router())
