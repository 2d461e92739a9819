"""
Authorization policies for orders, tasks, notifications and products.

Call sites reference the named role sets and policy functions here, never an
inline list of roles.
"""

from apps.core.choices import Location, Role

from .scopes import (
    Clause,
    FlagSet,
    HasMember,
    IsUnset,
    IsUser,
    NotBeforeJoined,
    NotExpired,
    RoleListed,
    Scope,
    ValueIn,
)

ALL_ROLES = frozenset(Role.values)
ADMIN_ROLES = frozenset({Role.ADMIN})
MANAGEMENT_ROLES = frozenset({Role.ADMIN, Role.STORE_STAFF})
FACTORY_ROLES = frozenset({Role.FACTORY_WORKER})

ORDER_CREATOR_ROLES = MANAGEMENT_ROLES
ORDER_ASSIGNER_ROLES = ADMIN_ROLES
ORDER_RESPONDER_ROLES = MANAGEMENT_ROLES
TASK_CREATOR_ROLES = MANAGEMENT_ROLES
USER_MANAGER_ROLES = ADMIN_ROLES
BROADCAST_ROLES = ADMIN_ROLES
EMERGENCY_ALERT_ROLES = ADMIN_ROLES
PRODUCT_MANAGER_ROLES = ADMIN_ROLES

# Notification audiences
ORDER_CREATED_AUDIENCE = frozenset({Role.ADMIN, Role.FACTORY_WORKER})
ORDER_STATUS_AUDIENCE = ALL_ROLES
OPEN_TASK_AUDIENCE = FACTORY_ROLES
TASK_COMPLETED_AUDIENCE = MANAGEMENT_ROLES

STORE_ORDER_LOCATIONS = frozenset({Location.STORE})
FACTORY_ORDER_LOCATIONS = frozenset({Location.FACTORY})
STORE_TASK_LOCATIONS = frozenset({Location.STORE, Location.BOTH})
FACTORY_TASK_LOCATIONS = frozenset({Location.FACTORY, Location.BOTH})


ORDER_READ = Scope(
    unrestricted=ADMIN_ROLES,
    by_role={
        Role.FACTORY_WORKER: [
            Clause(IsUser('assigned_to')),
            Clause(IsUnset('assigned_to'), ValueIn('location', FACTORY_ORDER_LOCATIONS)),
        ],
        Role.STORE_STAFF: [
            Clause(IsUser('created_by')),
            Clause(IsUser('assigned_to')),
            Clause(ValueIn('location', STORE_ORDER_LOCATIONS)),
        ],
    },
)

ORDER_WRITE = Scope(
    unrestricted=ADMIN_ROLES,
    default=[Clause(IsUser('created_by')), Clause(IsUser('assigned_to'))],
)

ORDER_DELETE = Scope(
    unrestricted=ADMIN_ROLES,
    default=[Clause(IsUser('created_by'))],
)

TASK_READ = Scope(
    unrestricted=ADMIN_ROLES,
    by_role={
        Role.FACTORY_WORKER: [
            Clause(IsUser('assigned_to')),
            Clause(IsUnset('assigned_to'), ValueIn('location', FACTORY_TASK_LOCATIONS)),
        ],
        Role.STORE_STAFF: [
            Clause(IsUser('created_by')),
            Clause(IsUser('assigned_to')),
            Clause(ValueIn('location', STORE_TASK_LOCATIONS)),
        ],
    },
)

TASK_WRITE = Scope(
    unrestricted=ADMIN_ROLES,
    default=[Clause(IsUser('created_by')), Clause(IsUser('assigned_to'))],
)

TASK_DELETE = Scope(
    unrestricted=ADMIN_ROLES,
    default=[Clause(IsUser('created_by'))],
)

# Steps, start and complete: the assignee, or anyone who can see an open task
TASK_OPERATE = Scope(
    unrestricted=ADMIN_ROLES,
    default=[Clause(IsUser('assigned_to')), Clause(IsUnset('assigned_to'))],
)

NOTIFICATION_VISIBLE = Scope(
    default=[
        Clause(HasMember('recipients')),
        Clause(FlagSet('is_global'), RoleListed('target_roles'), NotBeforeJoined('created_at')),
    ],
    require=[NotExpired('expires_at')],
    distinct=True,
)

NOTIFICATION_MANAGE = Scope(
    unrestricted=ADMIN_ROLES,
    default=[Clause(IsUser('sender'))],
)

PRODUCT_READ = Scope(
    unrestricted=PRODUCT_MANAGER_ROLES,
    default=[Clause(FlagSet('is_active'))],
)

PRODUCT_WRITE = Scope(
    unrestricted=PRODUCT_MANAGER_ROLES,
    default=[Clause(IsUser('created_by'))],
)

PRODUCT_DELETE = Scope(unrestricted=PRODUCT_MANAGER_ROLES)


def has_role(user, roles):
    return bool(user and getattr(user, 'is_authenticated', False) and user.role in roles)


def is_admin(user):
    return has_role(user, ADMIN_ROLES)


def is_management(user):
    return has_role(user, MANAGEMENT_ROLES)


def is_factory(user):
    return has_role(user, FACTORY_ROLES)


# Orders

def visible_orders(user, queryset):
    return ORDER_READ.filter(queryset, user)


def can_read_order(user, order):
    return ORDER_READ.matches(user, order)


def can_write_order(user, order):
    return ORDER_WRITE.matches(user, order)


def can_delete_order(user, order):
    return ORDER_DELETE.matches(user, order)


def can_create_order(user):
    return has_role(user, ORDER_CREATOR_ROLES)


def can_assign_order(user, order=None):
    return has_role(user, ORDER_ASSIGNER_ROLES)


def can_respond_to_order(user, order):
    return has_role(user, ORDER_RESPONDER_ROLES) and can_read_order(user, order)


# Tasks

def visible_tasks(user, queryset):
    return TASK_READ.filter(queryset, user)


def can_read_task(user, task):
    return TASK_READ.matches(user, task)


def can_write_task(user, task):
    return TASK_WRITE.matches(user, task)


def can_delete_task(user, task):
    return TASK_DELETE.matches(user, task)


def can_create_task(user):
    return has_role(user, TASK_CREATOR_ROLES)


def can_operate_task(user, task):
    return can_read_task(user, task) and TASK_OPERATE.matches(user, task)


# Notifications

def visible_notifications(user, queryset):
    return NOTIFICATION_VISIBLE.filter(queryset, user)


def can_see_notification(user, notification):
    return NOTIFICATION_VISIBLE.matches(user, notification)


def can_manage_notification(user, notification):
    return NOTIFICATION_MANAGE.matches(user, notification)


# Products

def visible_products(user, queryset):
    return PRODUCT_READ.filter(queryset, user)


def can_read_product(user, product):
    return PRODUCT_READ.matches(user, product)


def can_write_product(user, product):
    return PRODUCT_WRITE.matches(user, product)


def can_delete_product(user, product):
    return PRODUCT_DELETE.matches(user, product)


def can_broadcast(user):
    return has_role(user, BROADCAST_ROLES)


def can_send_emergency_alert(user):
    return has_role(user, EMERGENCY_ALERT_ROLES)


_OBJECT_POLICIES = {
    ('order', 'read'): can_read_order,
    ('order', 'write'): can_write_order,
    ('order', 'delete'): can_delete_order,
    ('order', 'assign'): can_assign_order,
    ('order', 'respond'): can_respond_to_order,
    ('task', 'read'): can_read_task,
    ('task', 'write'): can_write_task,
    ('task', 'delete'): can_delete_task,
    ('task', 'operate'): can_operate_task,
    ('notification', 'read'): can_see_notification,
    ('notification', 'delete'): can_manage_notification,
    ('product', 'read'): can_read_product,
    ('product', 'write'): can_write_product,
    ('product', 'delete'): can_delete_product,
}


def can_access(user, resource, action):
    """
    Single entry point: ``can_access(user, order, 'write')``.

    Unknown resource/action pairs are denied.
    """
    kind = resource._meta.model_name
    policy = _OBJECT_POLICIES.get((kind, action))
    if policy is None:
        return False
    return policy(user, resource)
