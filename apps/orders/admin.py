from django.contrib import admin

from .models import Order, OrderItem, OrderNote, OrderNumberSequence, OrderResponse, OrderTimelineEntry


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0


class ReadOnlyInline(admin.TabularInline):
    extra = 0
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False


class OrderTimelineInline(ReadOnlyInline):
    model = OrderTimelineEntry
    fields = ['timestamp', 'type', 'description', 'actor_name']
    readonly_fields = fields


class OrderResponseInline(ReadOnlyInline):
    model = OrderResponse
    fields = ['timestamp', 'status', 'note', 'actor_name']
    readonly_fields = fields


class OrderNoteInline(ReadOnlyInline):
    model = OrderNote
    fields = ['created_at', 'author', 'content', 'is_internal']
    readonly_fields = fields


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ['order_number', 'title', 'customer_name', 'status', 'priority', 'location',
                    'assigned_to', 'due_date']
    list_filter = ['status', 'priority', 'location', 'is_active']
    search_fields = ['order_number', 'title', 'customer_name']
    raw_id_fields = ['created_by', 'assigned_to']
    readonly_fields = ['order_number']
    inlines = [OrderItemInline, OrderTimelineInline, OrderResponseInline, OrderNoteInline]


@admin.register(OrderNumberSequence)
class OrderNumberSequenceAdmin(admin.ModelAdmin):
    list_display = ['day', 'last_value']
    ordering = ['-day']
