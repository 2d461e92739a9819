"""
Product catalogue

Names typed on order items are remembered here so the order form can suggest
them. ``usage_count`` counts how often a name was picked; suggestions are
ranked by it. Deleting a product only deactivates it.
"""

from django.conf import settings
from django.db import models
from django.db.models.functions import Lower
from django.utils import timezone

from apps.core.models import UUIDModel


class ProductCategory(models.TextChoices):
    AUTOMOTIVE = 'automotive', 'Automotive'
    ELECTRONICS = 'electronics', 'Electronics'
    MECHANICAL = 'mechanical', 'Mechanical'
    OTHER = 'other', 'Other'


class Product(UUIDModel):
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    category = models.CharField(
        max_length=20, choices=ProductCategory.choices, default=ProductCategory.OTHER, db_index=True
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='created_products'
    )
    usage_count = models.PositiveIntegerField(default=1)
    last_used = models.DateTimeField(default=timezone.now)
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = 'products'
        ordering = ['-usage_count', 'name']
        constraints = [
            models.UniqueConstraint(Lower('name'), name='product_name_ci_unique'),
        ]
        indexes = [
            models.Index(fields=['-usage_count', '-last_used'], name='product_popularity_idx'),
        ]

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        self.name = self.name.strip()
        super().save(*args, **kwargs)
