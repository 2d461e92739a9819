"""Orders app filters."""
import django_filters
from django.db.models import Q
from django.utils import timezone

from apps.core.choices import ORDER_LOCATIONS, Priority

from .models import Order, OrderStatus

CLOSED_ORDER_STATUSES = (OrderStatus.DELIVERED, OrderStatus.COMPLETED, OrderStatus.CANCELLED)


class OrderFilter(django_filters.FilterSet):
    status = django_filters.MultipleChoiceFilter(choices=OrderStatus.choices)
    priority = django_filters.ChoiceFilter(choices=Priority.choices)
    location = django_filters.ChoiceFilter(choices=ORDER_LOCATIONS)
    assigned_to = django_filters.UUIDFilter()
    created_by = django_filters.UUIDFilter()
    customer = django_filters.CharFilter(field_name='customer_name', lookup_expr='icontains')
    overdue = django_filters.BooleanFilter(method='filter_overdue')
    due_before = django_filters.DateTimeFilter(field_name='due_date', lookup_expr='lte')
    due_after = django_filters.DateTimeFilter(field_name='due_date', lookup_expr='gte')
    created_after = django_filters.DateTimeFilter(field_name='created_at', lookup_expr='gte')
    created_before = django_filters.DateTimeFilter(field_name='created_at', lookup_expr='lte')

    class Meta:
        model = Order
        fields = ['status', 'priority', 'location', 'assigned_to', 'created_by', 'is_active']

    def filter_overdue(self, queryset, name, value):
        overdue = Q(due_date__lt=timezone.now()) & ~Q(status__in=CLOSED_ORDER_STATUSES)
        return queryset.filter(overdue) if value else queryset.exclude(overdue)
