"""Tasks app filters."""
import django_filters
from django.db.models import Q
from django.utils import timezone

from apps.core.choices import Location, Priority

from .models import CLOSED_STATUSES, Task, TaskCategory, TaskStatus


class TaskFilter(django_filters.FilterSet):
    status = django_filters.MultipleChoiceFilter(choices=TaskStatus.choices)
    priority = django_filters.ChoiceFilter(choices=Priority.choices)
    category = django_filters.ChoiceFilter(choices=TaskCategory.choices)
    location = django_filters.ChoiceFilter(choices=Location.choices)
    assigned_to = django_filters.UUIDFilter()
    is_open = django_filters.BooleanFilter(field_name='assigned_to', lookup_expr='isnull')
    overdue = django_filters.BooleanFilter(method='filter_overdue')
    urgent = django_filters.BooleanFilter(method='filter_urgent')
    due_before = django_filters.DateTimeFilter(field_name='due_date', lookup_expr='lte')
    due_after = django_filters.DateTimeFilter(field_name='due_date', lookup_expr='gte')

    class Meta:
        model = Task
        fields = ['status', 'priority', 'category', 'location', 'assigned_to', 'related_order', 'is_active']

    def filter_overdue(self, queryset, name, value):
        overdue = Q(due_date__lt=timezone.now()) & ~Q(status__in=CLOSED_STATUSES)
        return queryset.filter(overdue) if value else queryset.exclude(overdue)

    def filter_urgent(self, queryset, name, value):
        urgent = Q(is_urgent=True) | Q(priority=Priority.URGENT)
        return queryset.filter(urgent) if value else queryset.exclude(urgent)
