"""Notifications app filters."""
import django_filters

from apps.core.choices import Priority

from .models import Notification, NotificationRecipient, NotificationType


class NotificationFilter(django_filters.FilterSet):
    type = django_filters.ChoiceFilter(choices=NotificationType.choices)
    priority = django_filters.ChoiceFilter(choices=Priority.choices)
    is_read = django_filters.BooleanFilter(method='filter_is_read')
    created_after = django_filters.DateTimeFilter(field_name='created_at', lookup_expr='gte')
    created_before = django_filters.DateTimeFilter(field_name='created_at', lookup_expr='lte')

    class Meta:
        model = Notification
        fields = ['type', 'priority', 'is_global', 'related_order', 'related_task']

    def filter_is_read(self, queryset, name, value):
        read = NotificationRecipient.objects.filter(
            user=self.request.user, is_read=True
        ).values('notification_id')
        if value:
            return queryset.filter(pk__in=read)
        return queryset.exclude(pk__in=read)
