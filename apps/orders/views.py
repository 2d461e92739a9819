"""Order ViewSets"""

from django.db.models import Count, Prefetch, Q
from django.utils import timezone
from drf_spectacular.utils import extend_schema
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.permissions import IsAuthenticated

from apps.access import policies
from apps.access.permissions import ObjectPolicyPermission
from apps.core.choices import Priority
from apps.core.exceptions import AuthorizationError
from apps.core.response import created_response, success_response
from apps.core.upload_validators import store_voice_recording

from .filters import CLOSED_ORDER_STATUSES, OrderFilter
from .models import Order, OrderNote, OrderStatus
from .serializers import (
    OrderAssignSerializer,
    OrderListSerializer,
    OrderNoteSerializer,
    OrderResponseCreateSerializer,
    OrderResponseSerializer,
    OrderSerializer,
    OrderStatsSerializer,
    OrderTimelineEntrySerializer,
)
from .services import OrderService


class OrderViewSet(viewsets.ModelViewSet):
    """
    Orders scoped to the caller's role.

    Admins see everything; factory workers see their own assignments and
    unassigned factory orders; store staff see what they created, what is
    assigned to them and every store order.
    """
    serializer_class = OrderSerializer
    permission_classes = [IsAuthenticated, ObjectPolicyPermission]
    filterset_class = OrderFilter
    search_fields = ['order_number', 'title', 'customer_name', 'description']
    ordering_fields = ['created_at', 'due_date', 'priority', 'status']
    ordering = ['-created_at']
    policy_actions = {
        'update': 'write',
        'partial_update': 'write',
        'destroy': 'delete',
        'assign': 'assign',
    }
    service_class = OrderService

    def get_queryset(self):
        qs = Order.objects.select_related('created_by', 'assigned_to')
        if self.action in ('retrieve', 'update', 'partial_update'):
            qs = qs.prefetch_related(
                'items', 'timeline', 'responses',
                Prefetch('notes', queryset=OrderNote.objects.select_related('author')),
            )
        return policies.visible_orders(self.request.user, qs)

    def get_serializer_class(self):
        if self.action == 'list':
            return OrderListSerializer
        return super().get_serializer_class()

    def get_service(self):
        return self.service_class()

    def create(self, request, *args, **kwargs):
        if not policies.can_create_order(request.user):
            raise AuthorizationError('Only admins and store staff can create orders.')
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        items = data.pop('items', [])
        order = self.get_service().create(request.user, data, items)
        return created_response(
            data=OrderSerializer(order, context=self.get_serializer_context()).data,
            message='Order created.',
        )

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        order = self.get_object()
        serializer = self.get_serializer(order, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        items = data.pop('items', None)
        order = self.get_service().update(order, request.user, data, items)
        return success_response(
            data=OrderSerializer(Order.objects.get(pk=order.pk), context=self.get_serializer_context()).data,
            message='Order updated.',
        )

    def destroy(self, request, *args, **kwargs):
        order = self.get_object()
        self.get_service().delete(order, request.user)
        return success_response(message='Order deleted.')

    @extend_schema(responses=OrderStatsSerializer)
    @action(detail=False, methods=['get'])
    def stats(self, request):
        qs = policies.visible_orders(request.user, Order.objects.all())
        data = {
            'total': qs.count(),
            'by_status': self._counts(qs, 'status', OrderStatus.values),
            'by_priority': self._counts(qs, 'priority', Priority.values),
            'urgent': qs.filter(priority=Priority.URGENT).count(),
            'overdue': qs.filter(
                ~Q(status__in=CLOSED_ORDER_STATUSES), due_date__lt=timezone.now()
            ).count(),
        }
        return success_response(data=OrderStatsSerializer(data).data)

    @extend_schema(request=OrderAssignSerializer, responses=OrderSerializer)
    @action(detail=True, methods=['post', 'put'])
    def assign(self, request, pk=None):
        order = self.get_object()
        serializer = OrderAssignSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        assignee = serializer.validated_data['assigned_to']
        order = self.get_service().assign(order, request.user, assignee)
        return success_response(
            data=OrderSerializer(order, context=self.get_serializer_context()).data,
            message='Order assigned.' if assignee else 'Order assignment removed.',
        )

    @extend_schema(request=OrderResponseCreateSerializer, responses=OrderResponseSerializer(many=True))
    @action(detail=True, methods=['get', 'post'], parser_classes=[JSONParser, MultiPartParser, FormParser])
    def responses(self, request, pk=None):
        order = self.get_object()
        if request.method == 'GET':
            return success_response(data=OrderResponseSerializer(order.responses.all(), many=True).data)
        if not policies.can_respond_to_order(request.user, order):
            raise AuthorizationError('Only admins and store staff can respond to orders.')

        serializer = OrderResponseCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        upload = data.get('voice_recording')
        response, entry = self.get_service().add_response(
            order, request.user, data['status'], note=data['note'],
            voice_recording=store_voice_recording(upload) if upload else None,
        )
        return created_response(
            data={
                'response': OrderResponseSerializer(response).data,
                'timeline_entry': OrderTimelineEntrySerializer(entry).data,
            },
            message='Response sent.',
        )

    @extend_schema(request=OrderNoteSerializer, responses=OrderNoteSerializer)
    @action(detail=True, methods=['post'])
    def notes(self, request, pk=None):
        order = self.get_object()
        serializer = OrderNoteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        note = self.get_service().add_note(
            order, request.user, serializer.validated_data['content'],
            is_internal=serializer.validated_data.get('is_internal', False),
        )
        return created_response(data=OrderNoteSerializer(note).data, message='Note added.')

    @staticmethod
    def _counts(qs, field, values):
        rows = qs.order_by().values(field).annotate(count=Count('id'))
        found = {row[field]: row['count'] for row in rows}
        return {value: found.get(value, 0) for value in values}
