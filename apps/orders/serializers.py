"""Order Serializers"""

from rest_framework import serializers

from apps.authentication.models import User
from apps.authentication.serializers import UserSummarySerializer
from apps.core.upload_validators import validate_voice_recording

from .models import Order, OrderItem, OrderNote, OrderResponse, OrderTimelineEntry, ResponseStatus


class OrderItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderItem
        fields = ['id', 'product_name', 'quantity', 'unit', 'notes']
        read_only_fields = ['id']


class OrderTimelineEntrySerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderTimelineEntry
        fields = ['id', 'type', 'description', 'status', 'note', 'actor', 'actor_name', 'timestamp']
        read_only_fields = fields


class OrderResponseSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderResponse
        fields = ['id', 'status', 'note', 'voice_recording', 'actor', 'actor_name', 'timestamp']
        read_only_fields = fields


class OrderNoteSerializer(serializers.ModelSerializer):
    author = UserSummarySerializer(read_only=True)

    class Meta:
        model = OrderNote
        fields = ['id', 'author', 'content', 'is_internal', 'created_at']
        read_only_fields = ['id', 'author', 'created_at']

    def validate_content(self, value):
        if not value.strip():
            raise serializers.ValidationError('Note content is required.')
        return value


class OrderListSerializer(serializers.ModelSerializer):
    created_by = UserSummarySerializer(read_only=True)
    assigned_to = UserSummarySerializer(read_only=True)

    class Meta:
        model = Order
        fields = [
            'id', 'order_number', 'title', 'customer_name', 'status', 'priority',
            'location', 'created_by', 'assigned_to', 'due_date', 'created_at',
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    created_by = UserSummarySerializer(read_only=True)
    assigned_to = UserSummarySerializer(read_only=True)
    items = OrderItemSerializer(many=True, required=False)
    timeline = OrderTimelineEntrySerializer(many=True, read_only=True)
    responses = OrderResponseSerializer(many=True, read_only=True)
    notes = OrderNoteSerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = [
            'id', 'order_number', 'title', 'description',
            'customer_name', 'customer_phone', 'customer_email', 'customer_address',
            'created_by', 'assigned_to', 'status', 'priority', 'location',
            'due_date', 'delivery_date', 'estimated_cost', 'actual_cost', 'is_active',
            'items', 'timeline', 'responses', 'notes', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'order_number', 'created_by', 'assigned_to', 'created_at', 'updated_at']

    def to_representation(self, instance):
        data = super().to_representation(instance)
        request = self.context.get('request')
        user = getattr(request, 'user', None)
        # Internal notes stay with the people working the order
        if user is not None and not (user.pk in (instance.created_by_id, instance.assigned_to_id)
                                     or getattr(user, 'is_admin', False)):
            data['notes'] = [note for note in data['notes'] if not note['is_internal']]
        return data


class OrderAssignSerializer(serializers.Serializer):
    assigned_to = serializers.PrimaryKeyRelatedField(
        queryset=User.objects.filter(is_active=True), allow_null=True
    )


class OrderResponseCreateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=ResponseStatus.choices)
    note = serializers.CharField(required=False, allow_blank=True, default='')
    voice_recording = serializers.FileField(required=False, validators=[validate_voice_recording])


class OrderStatsSerializer(serializers.Serializer):
    total = serializers.IntegerField()
    by_status = serializers.DictField(child=serializers.IntegerField())
    by_priority = serializers.DictField(child=serializers.IntegerField())
    urgent = serializers.IntegerField()
    overdue = serializers.IntegerField()
