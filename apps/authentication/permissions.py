"""Authentication permissions."""
from rest_framework.permissions import BasePermission

from apps.access.policies import is_admin


class IsSelfOrAdmin(BasePermission):
    """Users may read and edit their own account; admins may manage any."""

    message = 'You can only access your own account.'

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated)

    def has_object_permission(self, request, view, obj):
        return is_admin(request.user) or obj.pk == request.user.pk
