"""
Authentication Admin
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .forms import AccountChangeForm, AccountCreationForm
from .models import BackupCode, User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    add_form = AccountCreationForm
    form = AccountChangeForm
    list_display = ['username', 'email', 'full_name', 'role', 'is_active', 'is_online', 'is_2fa_enabled', 'last_login']
    list_filter = ['role', 'is_active', 'is_2fa_enabled', 'is_online']
    search_fields = ['username', 'email', 'first_name', 'last_name']
    ordering = ['username']

    fieldsets = (
        (None, {'fields': ('username', 'email', 'password')}),
        ('Role', {'fields': ('role', 'department')}),
        ('Personal Info', {'fields': ('first_name', 'last_name', 'phone')}),
        ('Access', {'fields': ('is_active', 'is_staff', 'is_superuser')}),
        ('Security', {'fields': ('is_2fa_enabled', 'failed_login_attempts', 'locked_until', 'last_login_ip')}),
        ('Presence', {'fields': ('is_online', 'last_seen')}),
        ('Notifications', {'fields': ('notification_preferences',)}),
        ('Important dates', {'fields': ('last_login', 'date_joined')}),
    )

    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': ('username', 'email', 'first_name', 'last_name', 'role', 'department', 'phone',
                       'password1', 'password2'),
        }),
    )

    readonly_fields = ['last_login', 'date_joined', 'is_2fa_enabled', 'is_online', 'last_seen']

    @admin.action(description='Deactivate selected accounts')
    def deactivate(self, request, queryset):
        updated = queryset.exclude(pk=request.user.pk).update(is_active=False)
        self.message_user(request, f'{updated} account(s) deactivated.')

    actions = ['deactivate']


@admin.register(BackupCode)
class BackupCodeAdmin(admin.ModelAdmin):
    list_display = ['user', 'used', 'used_at', 'created_at']
    list_filter = ['used']
    search_fields = ['user__username']
    exclude = ['code']
