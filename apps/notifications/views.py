"""Notification ViewSets"""

from drf_spectacular.utils import extend_schema
from rest_framework import mixins, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated

from apps.access import policies
from apps.access.permissions import IsAdminRole, ObjectPolicyPermission
from apps.core.exceptions import AuthorizationError, NotFoundError
from apps.core.response import created_response, success_response

from .dispatcher import announcement_event, get_dispatcher
from .filters import NotificationFilter
from .models import Notification
from .serializers import (
    BroadcastSerializer,
    DeliveryStatusSerializer,
    NotificationCreateSerializer,
    NotificationDetailSerializer,
    NotificationSerializer,
    NotificationStatsSerializer,
)
from .services import NotificationService


class NotificationViewSet(mixins.ListModelMixin,
                          mixins.RetrieveModelMixin,
                          mixins.DestroyModelMixin,
                          viewsets.GenericViewSet):
    """
    Notifications visible to the caller: explicit ones addressed to them and
    global ones for their role created after they joined.
    """
    queryset = Notification.objects.all()
    serializer_class = NotificationSerializer
    permission_classes = [IsAuthenticated, ObjectPolicyPermission]
    filterset_class = NotificationFilter
    search_fields = ['title', 'message']
    ordering_fields = ['created_at', 'priority']
    ordering = ['-created_at']
    policy_actions = {'destroy': 'delete'}
    dispatcher_factory = staticmethod(get_dispatcher)

    def get_permissions(self):
        if self.action in ('create', 'stats', 'broadcast', 'delivery_status'):
            return [IsAdminRole()]
        return super().get_permissions()

    def get_queryset(self):
        if self.action in ('destroy', 'delivery_status'):
            # Sender/admin rules are checked per object
            qs = Notification.objects.all()
        else:
            qs = NotificationService.visible(self.request.user)
        return qs.select_related('sender', 'related_order', 'related_task')

    def get_serializer_class(self):
        if self.action == 'retrieve':
            return NotificationDetailSerializer
        return super().get_serializer_class()

    def get_serializer_context(self):
        context = super().get_serializer_context()
        if self.action == 'list':
            context['read_ids'] = set(
                NotificationService.read_ids(self.request.user).values_list('notification_id', flat=True)
            )
        return context

    def retrieve(self, request, *args, **kwargs):
        notification = self.get_object()
        NotificationService.mark_as_read(notification.pk, request.user)
        return success_response(data=self.get_serializer(notification).data)

    @extend_schema(request=NotificationCreateSerializer, responses=NotificationSerializer)
    def create(self, request, *args, **kwargs):
        serializer = NotificationCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = self._announce(request.user, serializer.validated_data)
        return created_response(data=NotificationSerializer(result.notification).data,
                                message='Notification created.')

    def destroy(self, request, *args, **kwargs):
        notification = self.get_object()
        notification.delete()
        return success_response(message='Notification deleted.')

    @action(detail=False, methods=['get'], url_path='unread-count')
    def unread_count(self, request):
        return success_response(data={'unread_count': NotificationService.unread_count(request.user)})

    @extend_schema(responses=NotificationStatsSerializer)
    @action(detail=False, methods=['get'])
    def stats(self, request):
        return success_response(data=NotificationStatsSerializer(NotificationService.stats()).data)

    @action(detail=True, methods=['post', 'put'])
    def read(self, request, pk=None):
        if not NotificationService.mark_as_read(pk, request.user):
            raise NotFoundError('Notification', pk)
        return success_response(message='Notification marked as read.')

    @action(detail=False, methods=['post', 'put'], url_path='read-all')
    def read_all(self, request):
        updated = NotificationService.mark_all_as_read(request.user)
        return success_response(data={'updated': updated}, message='All notifications marked as read.')

    @action(detail=False, methods=['post', 'delete'], url_path='clear-all')
    def clear_all(self, request):
        cleared = NotificationService.clear_all(request.user)
        return success_response(data={'cleared': cleared}, message='Notifications cleared.')

    @extend_schema(request=BroadcastSerializer, responses=NotificationSerializer)
    @action(detail=False, methods=['post'])
    def broadcast(self, request):
        if not policies.can_broadcast(request.user):
            raise AuthorizationError('Only admins can send announcements.')
        serializer = BroadcastSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = self._announce(request.user, serializer.validated_data)
        return created_response(data=NotificationSerializer(result.notification).data,
                                message='Announcement sent.')

    @extend_schema(request=DeliveryStatusSerializer)
    @action(detail=True, methods=['put', 'patch'], url_path='delivery-status')
    def delivery_status(self, request, pk=None):
        notification = self.get_object()
        serializer = DeliveryStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        NotificationService.update_delivery_status(
            notification, data['user_id'], data['channel'], data['sent'], data['error']
        )
        return success_response(message='Delivery status updated.')

    def _announce(self, actor, data):
        data = dict(data)
        event = announcement_event(
            actor,
            title=data.pop('title'),
            message=data.pop('message'),
            target_roles=data.pop('target_roles', None) or (),
            recipients=data.pop('recipients', None) or (),
            **data,
        )
        return self.dispatcher_factory().dispatch(event)
