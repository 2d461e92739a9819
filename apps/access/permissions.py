"""DRF permission classes backed by the access policies."""
from __future__ import annotations

from rest_framework.permissions import BasePermission

from . import policies


class RolePermission(BasePermission):
    """Allow authenticated users whose role is in ``roles``."""

    roles: frozenset = frozenset()
    message = 'Your role is not allowed to perform this action.'

    def has_permission(self, request, view):
        return policies.has_role(request.user, self.roles)


class IsAdminRole(RolePermission):
    roles = policies.ADMIN_ROLES
    message = 'Admin role required.'


class IsManagementRole(RolePermission):
    roles = policies.MANAGEMENT_ROLES
    message = 'Admin or store staff role required.'


class ObjectPolicyPermission(BasePermission):
    """
    Object-level check through ``policies.can_access``.

    The view maps its actions to policy actions with ``policy_actions``, e.g.
    ``{'update': 'write', 'destroy': 'delete'}``. Actions not in the map fall
    back to ``read``.
    """

    message = 'You do not have access to this record.'

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated)

    def has_object_permission(self, request, view, obj):
        mapping = getattr(view, 'policy_actions', {})
        action = mapping.get(getattr(view, 'action', None), 'read')
        return policies.can_access(request.user, obj, action)
