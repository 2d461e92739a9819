from django.contrib import admin

from .models import Notification, NotificationRecipient


class NotificationRecipientInline(admin.TabularInline):
    model = NotificationRecipient
    extra = 0
    raw_id_fields = ['user']
    readonly_fields = ['read_at', 'web_sent_at', 'email_sent_at', 'whatsapp_sent_at']


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ['title', 'type', 'priority', 'is_global', 'sender', 'created_at', 'expires_at']
    list_filter = ['type', 'priority', 'is_global']
    search_fields = ['title', 'message']
    raw_id_fields = ['sender', 'related_order', 'related_task']
    readonly_fields = ['data']
    inlines = [NotificationRecipientInline]
