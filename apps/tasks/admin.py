from django.contrib import admin

from .models import Task, TaskComment, TaskStep


class TaskStepInline(admin.TabularInline):
    model = TaskStep
    extra = 0
    raw_id_fields = ['completed_by']


class TaskCommentInline(admin.TabularInline):
    model = TaskComment
    extra = 0
    raw_id_fields = ['author']


@admin.register(Task)
class TaskAdmin(admin.ModelAdmin):
    list_display = ['title', 'status', 'priority', 'category', 'location', 'assigned_to',
                    'completion_percentage', 'due_date']
    list_filter = ['status', 'priority', 'category', 'location', 'is_active']
    search_fields = ['title', 'description']
    raw_id_fields = ['created_by', 'assigned_to', 'related_order']
    readonly_fields = ['completion_percentage', 'started_at', 'completed_at', 'actual_duration']
    inlines = [TaskStepInline, TaskCommentInline]
