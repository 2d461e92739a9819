"""Task lifecycle: creation, start/complete guards, step progress and comments"""
from __future__ import annotations

import logging
from typing import Iterable, Optional

from django.db import transaction
from django.utils import timezone

from apps.core.exceptions import InvalidStateError, NotFoundError
from apps.notifications.dispatcher import DomainEvent, EventKind, get_dispatcher

from .models import Task, TaskComment, TaskStatus, TaskStep

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    'title', 'description', 'assigned_to', 'related_order', 'status', 'priority', 'category',
    'location', 'due_date', 'estimated_duration', 'notes', 'tags', 'is_urgent',
    'is_recurring', 'recurring_pattern', 'is_active',
)


class TaskService:
    """Mutations on tasks. Notifications go through the injected dispatcher."""

    def __init__(self, dispatcher=None):
        self.dispatcher = dispatcher or get_dispatcher()

    def create(self, actor, data: dict, steps: Iterable[dict] = ()) -> Task:
        with transaction.atomic():
            task = Task.objects.create(created_by=actor, **data)
            TaskStep.objects.bulk_create([
                TaskStep(task=task, order=step.get('order', index), **{
                    key: value for key, value in step.items() if key != 'order'
                })
                for index, step in enumerate(steps, start=1)
            ])
        logger.info("task_created task_id=%s by=%s open=%s", task.pk, actor.pk, task.is_open)
        self.dispatcher.notify(DomainEvent(EventKind.TASK_ASSIGNED, actor, task=task))
        return task

    def update(self, task: Task, actor, data: dict) -> Task:
        previous_status = task.status
        with transaction.atomic():
            for field in UPDATABLE_FIELDS:
                if field in data:
                    setattr(task, field, data[field])
            if task.status != previous_status:
                self._apply_transition(task)
            task.save()
        if task.status == TaskStatus.COMPLETED and previous_status != TaskStatus.COMPLETED:
            self._notify_completed(task, actor)
        return task

    def start(self, task: Task, actor) -> Task:
        with transaction.atomic():
            task = Task.objects.select_for_update().get(pk=task.pk)
            if task.status != TaskStatus.PENDING:
                raise InvalidStateError('Only pending tasks can be started.')
            task.status = TaskStatus.IN_PROGRESS
            task.started_at = timezone.now()
            task.save(update_fields=['status', 'started_at', 'updated_at'])
        logger.info("task_started task_id=%s by=%s", task.pk, actor.pk)
        return task

    def complete(self, task: Task, actor) -> Task:
        with transaction.atomic():
            task = Task.objects.select_for_update().get(pk=task.pk)
            if task.status == TaskStatus.COMPLETED:
                raise InvalidStateError('Task is already completed.')
            task.mark_completed()
            task.save(update_fields=[
                'status', 'completed_at', 'completion_percentage', 'actual_duration', 'updated_at'
            ])
        self._notify_completed(task, actor)
        return task

    def set_step_completion(self, task: Task, step_id, actor, is_completed: bool) -> Task:
        """Toggle one step and recompute progress in the same save."""
        with transaction.atomic():
            task = Task.objects.select_for_update().get(pk=task.pk)
            step = self._get_step(task, step_id)
            step.is_completed = is_completed
            step.completed_by = actor if is_completed else None
            step.completed_at = timezone.now() if is_completed else None
            step.save(update_fields=['is_completed', 'completed_by', 'completed_at'])

            completed_now = task.recompute_progress()
            task.save(update_fields=[
                'completion_percentage', 'status', 'completed_at', 'actual_duration', 'updated_at'
            ])
        if completed_now:
            self._notify_completed(task, actor)
        return task

    def add_comment(self, task: Task, actor, message: str) -> TaskComment:
        return TaskComment.objects.create(task=task, author=actor, message=message.strip())

    def delete(self, task: Task, actor) -> None:
        logger.info("task_deleted task_id=%s by=%s", task.pk, actor.pk)
        task.delete()

    # ----- Internals -----

    @staticmethod
    def _get_step(task: Task, step_id) -> TaskStep:
        try:
            step: Optional[TaskStep] = task.steps.filter(pk=int(step_id)).first()
        except (TypeError, ValueError):
            step = None
        if step is None:
            raise NotFoundError('TaskStep', step_id)
        return step

    @staticmethod
    def _apply_transition(task: Task):
        if task.status == TaskStatus.COMPLETED:
            task.mark_completed()
        elif task.status == TaskStatus.IN_PROGRESS and not task.started_at:
            task.started_at = timezone.now()

    def _notify_completed(self, task, actor):
        logger.info("task_completed task_id=%s by=%s", task.pk, actor.pk)
        self.dispatcher.notify(DomainEvent(EventKind.TASK_COMPLETED, actor, task=task))
