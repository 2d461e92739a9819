"""
Authentication Models - Custom User Model with role-based access
"""

import uuid
from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin, BaseUserManager
from django.db import models
from django.utils import timezone
from django.core.validators import RegexValidator
from django.db.models.signals import pre_delete
from django.dispatch import receiver

from apps.core.choices import Role


DEFAULT_NOTIFICATION_PREFERENCES = {
    'email': True,
    'web': True,
    'whatsapp': False,
}


def default_notification_preferences():
    return dict(DEFAULT_NOTIFICATION_PREFERENCES)


class UserManager(BaseUserManager):
    """Custom user manager"""

    def create_user(self, username, email, password=None, **extra_fields):
        if not username:
            raise ValueError('Username is required')
        if not email:
            raise ValueError('Email is required')
        email = self.normalize_email(email)
        user = self.model(username=username, email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, username, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('role', Role.ADMIN)
        return self.create_user(username, email, password, **extra_fields)

    def active(self):
        return self.filter(is_active=True)


class User(AbstractBaseUser, PermissionsMixin):
    """
    Application user. ``role`` drives every authorization decision;
    ``date_joined`` bounds which global notifications the user can see.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    username = models.CharField(max_length=30, unique=True, db_index=True)
    email = models.EmailField(unique=True, db_index=True)
    first_name = models.CharField(max_length=50)
    last_name = models.CharField(max_length=50)
    phone = models.CharField(
        max_length=15,
        blank=True,
        validators=[
            RegexValidator(
                regex=r'^\+?[0-9]{7,15}$',
                message='Enter a valid phone number'
            )
        ]
    )
    department = models.CharField(max_length=100, blank=True)

    role = models.CharField(max_length=20, choices=Role.choices, db_index=True)

    # Status flags
    is_active = models.BooleanField(default=True, db_index=True)
    is_staff = models.BooleanField(default=False)

    # Security
    failed_login_attempts = models.PositiveSmallIntegerField(default=0)
    locked_until = models.DateTimeField(null=True, blank=True)
    last_login_ip = models.GenericIPAddressField(null=True, blank=True)

    # 2FA
    is_2fa_enabled = models.BooleanField(default=False)
    two_factor_secret = models.CharField(max_length=64, blank=True)

    # Presence
    is_online = models.BooleanField(default=False)
    last_seen = models.DateTimeField(null=True, blank=True)

    # Timestamps
    date_joined = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    notification_preferences = models.JSONField(default=default_notification_preferences, blank=True)

    objects = UserManager()

    USERNAME_FIELD = 'username'
    EMAIL_FIELD = 'email'
    REQUIRED_FIELDS = ['email', 'first_name', 'last_name']

    class Meta:
        ordering = ['first_name', 'last_name']
        indexes = [
            models.Index(fields=['role', 'is_active'], name='user_role_active_idx'),
        ]

    def __str__(self):
        return f"{self.full_name} ({self.username})"

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip() or self.username

    @property
    def is_admin(self):
        return self.role == Role.ADMIN

    def wants_channel(self, channel):
        prefs = self.notification_preferences or DEFAULT_NOTIFICATION_PREFERENCES
        return bool(prefs.get(channel, DEFAULT_NOTIFICATION_PREFERENCES.get(channel, False)))

    def is_locked(self):
        """Check if user account is locked"""
        if self.locked_until:
            return timezone.now() < self.locked_until
        return False

    def record_login_attempt(self, success=True, ip_address=None):
        """Record login attempt"""
        if success:
            self.failed_login_attempts = 0
            self.locked_until = None
            self.last_login = timezone.now()
            self.last_login_ip = ip_address
        else:
            self.failed_login_attempts += 1
            if self.failed_login_attempts >= 5:
                # Lock for 30 minutes
                self.locked_until = timezone.now() + timezone.timedelta(minutes=30)
        self.save(update_fields=[
            'failed_login_attempts', 'locked_until', 'last_login', 'last_login_ip', 'updated_at',
        ])


# Cleanup related JWT tokens before a user is deleted to avoid FK violations
@receiver(pre_delete, sender=User)
def delete_user_tokens(sender, instance: User, **kwargs):
    from rest_framework_simplejwt.token_blacklist.models import OutstandingToken, BlacklistedToken
    BlacklistedToken.objects.filter(token__user=instance).delete()
    OutstandingToken.objects.filter(user=instance).delete()


class BackupCode(models.Model):
    """Single-use two-factor backup code."""

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='backup_codes')
    code = models.CharField(max_length=16)
    used = models.BooleanField(default=False)
    used_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['user', 'code', 'used'], name='backup_code_lookup_idx'),
        ]

    def __str__(self):
        return f"{self.user_id}:{'used' if self.used else 'unused'}"
