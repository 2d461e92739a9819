"""Task Serializers"""

from rest_framework import serializers

from apps.authentication.models import User
from apps.authentication.serializers import UserSummarySerializer
from .models import Task, TaskComment, TaskStep


class TaskStepSerializer(serializers.ModelSerializer):
    completed_by = UserSummarySerializer(read_only=True)

    class Meta:
        model = TaskStep
        fields = ['id', 'title', 'description', 'order', 'is_completed', 'completed_by', 'completed_at']
        read_only_fields = ['id', 'is_completed', 'completed_by', 'completed_at']
        extra_kwargs = {'order': {'required': False}}


class TaskCommentSerializer(serializers.ModelSerializer):
    author = UserSummarySerializer(read_only=True)

    class Meta:
        model = TaskComment
        fields = ['id', 'author', 'message', 'created_at']
        read_only_fields = ['id', 'author', 'created_at']

    def validate_message(self, value):
        if not value.strip():
            raise serializers.ValidationError('Comment message is required.')
        return value


class TaskListSerializer(serializers.ModelSerializer):
    created_by = UserSummarySerializer(read_only=True)
    assigned_to = UserSummarySerializer(read_only=True)
    related_order_number = serializers.CharField(source='related_order.order_number', read_only=True, default=None)
    is_overdue = serializers.ReadOnlyField()

    class Meta:
        model = Task
        fields = [
            'id', 'title', 'status', 'priority', 'category', 'location',
            'created_by', 'assigned_to', 'related_order', 'related_order_number',
            'due_date', 'completion_percentage', 'is_urgent', 'is_overdue', 'created_at',
        ]
        read_only_fields = fields


class TaskSerializer(serializers.ModelSerializer):
    created_by = UserSummarySerializer(read_only=True)
    assigned_to = UserSummarySerializer(read_only=True)
    assigned_to_id = serializers.PrimaryKeyRelatedField(
        source='assigned_to', queryset=User.objects.filter(is_active=True),
        write_only=True, required=False, allow_null=True,
    )
    steps = TaskStepSerializer(many=True, required=False)
    comments = TaskCommentSerializer(many=True, read_only=True)
    is_overdue = serializers.ReadOnlyField()
    days_remaining = serializers.ReadOnlyField()

    class Meta:
        model = Task
        fields = [
            'id', 'title', 'description', 'created_by', 'assigned_to', 'assigned_to_id',
            'related_order', 'status', 'priority', 'category', 'location',
            'due_date', 'estimated_duration', 'actual_duration', 'started_at', 'completed_at',
            'completion_percentage', 'notes', 'tags', 'is_urgent', 'is_recurring',
            'recurring_pattern', 'is_active', 'is_overdue', 'days_remaining',
            'steps', 'comments', 'created_at', 'updated_at',
        ]
        read_only_fields = [
            'id', 'created_by', 'actual_duration', 'started_at', 'completed_at',
            'completion_percentage', 'created_at', 'updated_at',
        ]

    def validate_tags(self, value):
        if not isinstance(value, list) or not all(isinstance(tag, str) for tag in value):
            raise serializers.ValidationError('Tags must be a list of strings.')
        if any(len(tag) > 50 for tag in value):
            raise serializers.ValidationError('Tags can be at most 50 characters.')
        return [tag.strip() for tag in value]

    def validate(self, attrs):
        if attrs.get('is_recurring') and not attrs.get('recurring_pattern'):
            raise serializers.ValidationError({'recurring_pattern': 'Required for recurring tasks.'})
        if self.instance is not None:
            attrs.pop('steps', None)
        return attrs


class TaskStepUpdateSerializer(serializers.Serializer):
    is_completed = serializers.BooleanField()


class TaskStatsSerializer(serializers.Serializer):
    total = serializers.IntegerField()
    by_status = serializers.DictField(child=serializers.IntegerField())
    by_priority = serializers.DictField(child=serializers.IntegerField())
    by_category = serializers.DictField(child=serializers.IntegerField())
    urgent = serializers.IntegerField()
    overdue = serializers.IntegerField()
    mine = serializers.IntegerField()
