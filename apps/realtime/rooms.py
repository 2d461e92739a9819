"""
Room naming.

Every connection joins its own user room, its role room and ``everyone``;
management and factory rooms follow from the role. Order and task rooms are
opt-in while a client has that record open.
"""

from apps.access.policies import FACTORY_ROLES, MANAGEMENT_ROLES

EVERYONE = 'everyone'
MANAGEMENT = 'management'
FACTORY = 'factory'

RECORD_ROOM_KINDS = ('order', 'task')


def user_room(user_id):
    return f"user_{user_id}"


def role_room(role):
    return f"role_{role}"


def order_room(order_id):
    return f"order_{order_id}"


def task_room(task_id):
    return f"task_{task_id}"


def record_room(kind, record_id):
    if kind not in RECORD_ROOM_KINDS:
        raise ValueError(f"Unknown record room kind: {kind}")
    return f"{kind}_{record_id}"


def parse_record_room(name):
    """``'order_<id>'`` -> ``('order', '<id>')``; anything else -> ``None``."""
    kind, sep, record_id = (name or '').partition('_')
    if not sep or kind not in RECORD_ROOM_KINDS or not record_id:
        return None
    return kind, record_id


def default_rooms(user_id, role):
    rooms = [user_room(user_id), role_room(role), EVERYONE]
    if role in MANAGEMENT_ROLES:
        rooms.append(MANAGEMENT)
    if role in FACTORY_ROLES:
        rooms.append(FACTORY)
    return rooms
