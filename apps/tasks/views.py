"""Task ViewSets"""

from django.db.models import Count, Q
from django.utils import timezone
from drf_spectacular.utils import extend_schema
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated

from apps.access import policies
from apps.access.permissions import ObjectPolicyPermission
from apps.core.choices import Priority
from apps.core.exceptions import AuthorizationError
from apps.core.response import created_response, success_response

from .filters import TaskFilter
from .models import CLOSED_STATUSES, Task, TaskCategory, TaskStatus
from .serializers import (
    TaskCommentSerializer,
    TaskListSerializer,
    TaskSerializer,
    TaskStatsSerializer,
    TaskStepUpdateSerializer,
)
from .services import TaskService


class TaskViewSet(viewsets.ModelViewSet):
    """
    Tasks scoped to the caller's role and floor.

    Records outside the caller's read scope answer 404; inside the scope,
    write/delete/operate rules answer 403.
    """
    serializer_class = TaskSerializer
    permission_classes = [IsAuthenticated, ObjectPolicyPermission]
    filterset_class = TaskFilter
    search_fields = ['title', 'description', 'notes']
    ordering_fields = ['created_at', 'due_date', 'priority', 'status', 'completion_percentage']
    ordering = ['-created_at']
    policy_actions = {
        'update': 'write',
        'partial_update': 'write',
        'destroy': 'delete',
        'start': 'operate',
        'complete': 'operate',
        'step': 'operate',
    }
    service_class = TaskService

    def get_queryset(self):
        qs = Task.objects.select_related('created_by', 'assigned_to', 'related_order')
        if self.action in ('retrieve', 'update', 'partial_update'):
            qs = qs.prefetch_related('steps__completed_by', 'comments__author')
        return policies.visible_tasks(self.request.user, qs)

    def get_serializer_class(self):
        if self.action == 'list':
            return TaskListSerializer
        return super().get_serializer_class()

    def get_service(self):
        return self.service_class()

    def create(self, request, *args, **kwargs):
        if not policies.can_create_task(request.user):
            raise AuthorizationError('Only admins and store staff can create tasks.')
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        steps = data.pop('steps', [])
        task = self.get_service().create(request.user, data, steps)
        return created_response(data=TaskSerializer(task).data, message='Task created.')

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        task = self.get_object()
        serializer = self.get_serializer(task, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        task = self.get_service().update(task, request.user, serializer.validated_data)
        return success_response(data=TaskSerializer(task).data, message='Task updated.')

    def destroy(self, request, *args, **kwargs):
        task = self.get_object()
        self.get_service().delete(task, request.user)
        return success_response(message='Task deleted.')

    @extend_schema(responses=TaskStatsSerializer)
    @action(detail=False, methods=['get'])
    def stats(self, request):
        qs = policies.visible_tasks(request.user, Task.objects.all())
        open_statuses = ~Q(status__in=CLOSED_STATUSES)
        data = {
            'total': qs.count(),
            'by_status': self._counts(qs, 'status', TaskStatus.values),
            'by_priority': self._counts(qs, 'priority', Priority.values),
            'by_category': self._counts(qs, 'category', TaskCategory.values),
            'urgent': qs.filter(Q(is_urgent=True) | Q(priority=Priority.URGENT)).count(),
            'overdue': qs.filter(open_statuses, due_date__lt=timezone.now()).count(),
            'mine': Task.objects.filter(open_statuses, assigned_to=request.user).count(),
        }
        return success_response(data=TaskStatsSerializer(data).data)

    @action(detail=True, methods=['post'])
    def start(self, request, pk=None):
        task = self.get_service().start(self.get_object(), request.user)
        return success_response(data=TaskSerializer(task).data, message='Task started.')

    @action(detail=True, methods=['post'])
    def complete(self, request, pk=None):
        task = self.get_service().complete(self.get_object(), request.user)
        return success_response(data=TaskSerializer(task).data, message='Task completed.')

    @extend_schema(request=TaskCommentSerializer, responses=TaskCommentSerializer(many=True))
    @action(detail=True, methods=['get', 'post'])
    def comments(self, request, pk=None):
        task = self.get_object()
        if request.method == 'POST':
            serializer = TaskCommentSerializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            self.get_service().add_comment(task, request.user, serializer.validated_data['message'])
        comments = task.comments.select_related('author')
        data = TaskCommentSerializer(comments, many=True).data
        if request.method == 'POST':
            return created_response(data=data, message='Comment added.')
        return success_response(data=data)

    @extend_schema(request=TaskStepUpdateSerializer, responses=TaskSerializer)
    @action(detail=True, methods=['put', 'patch'], url_path=r'steps/(?P<step_id>[^/.]+)')
    def step(self, request, pk=None, step_id=None):
        serializer = TaskStepUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        task = self.get_service().set_step_completion(
            self.get_object(), step_id, request.user, serializer.validated_data['is_completed']
        )
        return success_response(data=TaskSerializer(task).data, message='Step updated.')

    @staticmethod
    def _counts(qs, field, values):
        rows = qs.order_by().values(field).annotate(count=Count('id'))
        found = {row[field]: row['count'] for row in rows}
        return {value: found.get(value, 0) for value in values}
