"""
Shared choice sets used by users, orders, tasks and notifications.
"""

from django.db import models


class Role(models.TextChoices):
    ADMIN = 'admin', 'Admin'
    STORE_STAFF = 'store_staff', 'Store Staff'
    FACTORY_WORKER = 'factory_worker', 'Factory Worker'


class Location(models.TextChoices):
    STORE = 'store', 'Store'
    FACTORY = 'factory', 'Factory'
    BOTH = 'both', 'Store and Factory'


class Priority(models.TextChoices):
    LOW = 'low', 'Low'
    NORMAL = 'normal', 'Normal'
    HIGH = 'high', 'High'
    URGENT = 'urgent', 'Urgent'


# Orders live in one place; "both" only applies to tasks
ORDER_LOCATIONS = [
    (Location.STORE.value, Location.STORE.label),
    (Location.FACTORY.value, Location.FACTORY.label),
]
