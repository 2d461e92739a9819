"""
Task Models

A task optionally points at an assignee (none means an open task anyone on
the matching floor can pick up) and carries ordered steps. Step completion
drives ``completion_percentage``; reaching 100 completes the task in the
same save.
"""

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone

from apps.core.choices import Location, Priority
from apps.core.models import TimeStampedModel, UUIDModel


class TaskStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    IN_PROGRESS = 'in_progress', 'In progress'
    COMPLETED = 'completed', 'Completed'
    CANCELLED = 'cancelled', 'Cancelled'
    POSTPONED = 'postponed', 'Postponed'


class TaskCategory(models.TextChoices):
    PRODUCTION = 'production', 'Production'
    QUALITY_CONTROL = 'quality_control', 'Quality control'
    PACKAGING = 'packaging', 'Packaging'
    SHIPPING = 'shipping', 'Shipping'
    CLEANING = 'cleaning', 'Cleaning'
    MAINTENANCE = 'maintenance', 'Maintenance'
    STOCK_CONTROL = 'stock_control', 'Stock control'
    OTHER = 'other', 'Other'


class RecurringPattern(models.TextChoices):
    DAILY = 'daily', 'Daily'
    WEEKLY = 'weekly', 'Weekly'
    MONTHLY = 'monthly', 'Monthly'


CLOSED_STATUSES = (TaskStatus.COMPLETED, TaskStatus.CANCELLED)


class Task(UUIDModel):
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='created_tasks'
    )
    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
        related_name='assigned_tasks'
    )
    related_order = models.ForeignKey(
        'orders.Order', on_delete=models.SET_NULL, null=True, blank=True, related_name='tasks'
    )

    status = models.CharField(
        max_length=20, choices=TaskStatus.choices, default=TaskStatus.PENDING, db_index=True
    )
    priority = models.CharField(
        max_length=10, choices=Priority.choices, default=Priority.NORMAL, db_index=True
    )
    category = models.CharField(
        max_length=20, choices=TaskCategory.choices, default=TaskCategory.OTHER, db_index=True
    )
    location = models.CharField(
        max_length=10, choices=Location.choices, default=Location.FACTORY, db_index=True
    )

    due_date = models.DateTimeField(null=True, blank=True, db_index=True)
    estimated_duration = models.PositiveIntegerField(null=True, blank=True, help_text='Minutes')
    actual_duration = models.PositiveIntegerField(null=True, blank=True, help_text='Minutes')
    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    completion_percentage = models.PositiveSmallIntegerField(
        default=0, validators=[MinValueValidator(0), MaxValueValidator(100)]
    )

    notes = models.TextField(blank=True)
    tags = models.JSONField(default=list, blank=True)
    is_urgent = models.BooleanField(default=False)
    is_recurring = models.BooleanField(default=False)
    recurring_pattern = models.CharField(max_length=10, choices=RecurringPattern.choices, blank=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = 'tasks'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['assigned_to', 'status'], name='task_assignee_status_idx'),
            models.Index(fields=['location', 'assigned_to'], name='task_location_assignee_idx'),
            models.Index(fields=['status', 'due_date'], name='task_status_due_idx'),
        ]

    def __str__(self):
        return self.title

    @property
    def is_open(self):
        return self.assigned_to_id is None

    @property
    def is_overdue(self):
        if not self.due_date or self.status in CLOSED_STATUSES:
            return False
        return timezone.now() > self.due_date

    @property
    def days_remaining(self):
        if not self.due_date:
            return None
        return (self.due_date - timezone.now()).days

    def step_percentage(self):
        """Share of completed steps, or None for a task without steps."""
        total = self.steps.count()
        if not total:
            return None
        done = self.steps.filter(is_completed=True).count()
        return round(done / total * 100)

    def recompute_progress(self, now=None):
        """
        Derive ``completion_percentage`` from the steps; complete the task when
        it reaches 100. Returns True when this call completed the task.

        Un-checking a step lowers the percentage but never reopens a task.
        """
        percentage = self.step_percentage()
        if percentage is None:
            return False
        self.completion_percentage = percentage
        if percentage == 100 and self.status != TaskStatus.COMPLETED:
            self.mark_completed(now)
            return True
        return False

    def mark_completed(self, now=None):
        """Close the task. With steps, the percentage still follows them."""
        now = now or timezone.now()
        self.status = TaskStatus.COMPLETED
        self.completed_at = now
        percentage = self.step_percentage()
        self.completion_percentage = 100 if percentage is None else percentage
        if self.started_at:
            self.actual_duration = round((now - self.started_at).total_seconds() / 60)


class TaskStep(models.Model):
    task = models.ForeignKey(Task, on_delete=models.CASCADE, related_name='steps')
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    order = models.PositiveIntegerField(default=0)
    is_completed = models.BooleanField(default=False)
    completed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'task_steps'
        ordering = ['order', 'id']

    def __str__(self):
        return f"{self.order}. {self.title}"


class TaskComment(TimeStampedModel):
    task = models.ForeignKey(Task, on_delete=models.CASCADE, related_name='comments')
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='task_comments'
    )
    message = models.TextField()

    class Meta:
        db_table = 'task_comments'
        ordering = ['created_at', 'id']

    def __str__(self):
        return f"Comment on {self.task_id}"
