"""Notification Serializers"""

from rest_framework import serializers

from apps.authentication.models import User
from apps.authentication.serializers import UserSummarySerializer
from apps.core.choices import Priority, Role

from .models import DeliveryChannel, Notification, NotificationRecipient, NotificationType


class NotificationRecipientSerializer(serializers.ModelSerializer):
    user = UserSummarySerializer(read_only=True)

    class Meta:
        model = NotificationRecipient
        fields = [
            'user', 'is_read', 'read_at',
            'web_sent', 'web_sent_at',
            'email_sent', 'email_sent_at', 'email_error',
            'whatsapp_sent', 'whatsapp_sent_at', 'whatsapp_error',
        ]
        read_only_fields = fields


class NotificationSerializer(serializers.ModelSerializer):
    sender = UserSummarySerializer(read_only=True)
    related_order_number = serializers.CharField(source='related_order.order_number', read_only=True, default=None)
    related_task_title = serializers.CharField(source='related_task.title', read_only=True, default=None)
    is_read = serializers.SerializerMethodField()

    class Meta:
        model = Notification
        fields = [
            'id', 'title', 'message', 'type', 'priority', 'sender',
            'related_order', 'related_order_number', 'related_task', 'related_task_title',
            'data', 'is_global', 'target_roles', 'channels',
            'action_url', 'action_text', 'expires_at', 'created_at', 'is_read',
        ]
        read_only_fields = fields

    def get_is_read(self, obj):
        read_ids = self.context.get('read_ids')
        if read_ids is not None:
            return obj.pk in read_ids
        request = self.context.get('request')
        if request is None:
            return False
        return obj.recipients.filter(user_id=request.user.pk, is_read=True).exists()


class NotificationDetailSerializer(NotificationSerializer):
    recipients = NotificationRecipientSerializer(many=True, read_only=True)

    class Meta(NotificationSerializer.Meta):
        fields = NotificationSerializer.Meta.fields + ['recipients']
        read_only_fields = fields


class NotificationCreateSerializer(serializers.Serializer):
    """Admin-authored notification for explicit users or global roles."""

    title = serializers.CharField(max_length=200)
    message = serializers.CharField()
    type = serializers.ChoiceField(choices=NotificationType.choices, default=NotificationType.SYSTEM)
    priority = serializers.ChoiceField(choices=Priority.choices, default=Priority.NORMAL)
    recipients = serializers.PrimaryKeyRelatedField(
        queryset=User.objects.filter(is_active=True), many=True, required=False
    )
    target_roles = serializers.ListField(
        child=serializers.ChoiceField(choices=Role.choices), required=False, allow_empty=True
    )
    channels = serializers.ListField(
        child=serializers.ChoiceField(choices=DeliveryChannel.choices),
        required=False, default=lambda: [DeliveryChannel.WEB],
    )
    action_url = serializers.CharField(max_length=255, required=False, allow_blank=True)
    action_text = serializers.CharField(max_length=50, required=False, allow_blank=True)
    expires_at = serializers.DateTimeField(required=False, allow_null=True)
    data = serializers.DictField(required=False, default=dict)

    def validate(self, attrs):
        if not attrs.get('recipients') and not attrs.get('target_roles'):
            raise serializers.ValidationError('Provide recipients or target_roles.')
        return attrs


class BroadcastSerializer(NotificationCreateSerializer):
    type = serializers.ChoiceField(choices=NotificationType.choices, default=NotificationType.ANNOUNCEMENT)
    recipients = None
    target_roles = serializers.ListField(
        child=serializers.ChoiceField(choices=Role.choices), allow_empty=False
    )

    def validate(self, attrs):
        return attrs


class DeliveryStatusSerializer(serializers.Serializer):
    user_id = serializers.UUIDField()
    channel = serializers.ChoiceField(choices=DeliveryChannel.choices)
    sent = serializers.BooleanField()
    error = serializers.CharField(required=False, allow_blank=True, default='')


class NotificationStatsSerializer(serializers.Serializer):
    total = serializers.IntegerField()
    global_count = serializers.IntegerField()
    by_type = serializers.DictField(child=serializers.IntegerField())
    by_priority = serializers.DictField(child=serializers.IntegerField())
    recipients = serializers.IntegerField()
    read = serializers.IntegerField()
    delivery = serializers.DictField(child=serializers.IntegerField())
