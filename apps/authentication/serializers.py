"""
Authentication Serializers
"""

from django.contrib.auth.password_validation import validate_password
from django.db.models import Q
from rest_framework import serializers

from apps.core.choices import Role
from .models import User


class UserSummarySerializer(serializers.ModelSerializer):
    """Compact user reference embedded in orders, tasks and notifications."""

    full_name = serializers.ReadOnlyField()

    class Meta:
        model = User
        fields = ['id', 'username', 'full_name', 'role']
        read_only_fields = fields


class UserSerializer(serializers.ModelSerializer):
    """User serializer for profile and management screens"""

    full_name = serializers.ReadOnlyField()

    class Meta:
        model = User
        fields = [
            'id', 'username', 'email', 'first_name', 'last_name', 'full_name',
            'phone', 'department', 'role', 'is_active', 'is_2fa_enabled',
            'is_online', 'last_seen', 'notification_preferences',
            'date_joined', 'last_login',
        ]
        read_only_fields = [
            'id', 'username', 'is_2fa_enabled', 'is_online', 'last_seen',
            'date_joined', 'last_login',
        ]

    def validate(self, attrs):
        request = self.context.get('request')
        actor = getattr(request, 'user', None)
        # Only admins change roles or activation state
        if actor is not None and actor.role != Role.ADMIN:
            attrs.pop('role', None)
            attrs.pop('is_active', None)
        return attrs


class UserCreateSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, validators=[validate_password])

    class Meta:
        model = User
        fields = [
            'id', 'username', 'email', 'password', 'first_name', 'last_name',
            'phone', 'department', 'role',
        ]
        read_only_fields = ['id']

    def create(self, validated_data):
        password = validated_data.pop('password')
        return User.objects.create_user(password=password, **validated_data)


class LoginSerializer(serializers.Serializer):
    """Accepts a username or an email address in ``username``."""

    username = serializers.CharField()
    password = serializers.CharField(write_only=True)

    default_error_messages = {
        'invalid_credentials': 'Invalid credentials.',
        'inactive': 'User account is disabled.',
        'locked': 'Account is temporarily locked. Try again later.',
    }

    def validate(self, attrs):
        identifier = attrs['username'].strip()
        user = User.objects.filter(
            Q(username__iexact=identifier) | Q(email__iexact=identifier)
        ).first()

        if user is None:
            self.fail('invalid_credentials')
        if user.is_locked():
            self.fail('locked')
        if not user.check_password(attrs['password']):
            user.record_login_attempt(success=False)
            self.fail('invalid_credentials')
        if not user.is_active:
            self.fail('inactive')

        attrs['user'] = user
        return attrs


class PasswordChangeSerializer(serializers.Serializer):
    current_password = serializers.CharField(required=True)
    new_password = serializers.CharField(
        required=True, validators=[validate_password]
    )
    new_password_confirm = serializers.CharField(required=True)

    def validate_current_password(self, value):
        user = self.context['request'].user
        if not user.check_password(value):
            raise serializers.ValidationError(
                'Current password is incorrect.'
            )
        return value

    def validate(self, attrs):
        if attrs['new_password'] != attrs['new_password_confirm']:
            raise serializers.ValidationError(
                {'new_password_confirm': 'Passwords do not match.'}
            )
        return attrs

    def save(self):
        user = self.context['request'].user
        user.set_password(self.validated_data['new_password'])
        user.save(update_fields=['password', 'updated_at'])
        return user


class TwoFactorTokenSerializer(serializers.Serializer):
    token = serializers.CharField(min_length=6, max_length=6)


class TwoFactorPasswordSerializer(serializers.Serializer):
    password = serializers.CharField(write_only=True)


class TwoFactorLoginSerializer(serializers.Serializer):
    user_id = serializers.UUIDField()
    token = serializers.CharField(min_length=6, max_length=8)


class UserStatsSerializer(serializers.Serializer):
    total = serializers.IntegerField()
    active = serializers.IntegerField()
    online = serializers.IntegerField()
    by_role = serializers.DictField(child=serializers.IntegerField())
