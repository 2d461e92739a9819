"""Product catalogue: remember picked names, rank suggestions, soft delete"""
from __future__ import annotations

import logging
from typing import Tuple

from django.db import IntegrityError, transaction
from django.db.models import F, Q
from django.utils import timezone

from apps.core.exceptions import ConflictError

from .models import Product, ProductCategory

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ('name', 'description', 'category')
MIN_QUERY_LENGTH = 2


class ProductService:

    def record(self, actor, name: str, description: str = '', category: str = '') -> Tuple[Product, bool]:
        """
        Remember ``name`` in the catalogue.

        A name already known (case-insensitive) has its usage bumped and is
        reactivated; otherwise a product is created. Returns ``(product, created)``.
        """
        name = name.strip()
        existing = self._bump(name)
        if existing is not None:
            return existing, False
        try:
            with transaction.atomic():
                product = Product.objects.create(
                    name=name,
                    description=(description or '').strip(),
                    category=category or ProductCategory.OTHER,
                    created_by=actor,
                )
        except IntegrityError:
            # Another request created the same name first
            return self._bump(name), False
        logger.info("product_created product_id=%s by=%s", product.pk, actor.pk)
        return product, True

    def update(self, product: Product, actor, data: dict) -> Product:
        name = (data.get('name') or '').strip()
        if name and Product.objects.filter(name__iexact=name).exclude(pk=product.pk).exists():
            raise ConflictError('A product with this name already exists.')
        for field in UPDATABLE_FIELDS:
            value = data.get(field)
            if value:
                setattr(product, field, value.strip() if isinstance(value, str) else value)
        product.save()
        logger.info("product_updated product_id=%s by=%s", product.pk, actor.pk)
        return product

    def deactivate(self, product: Product, actor) -> None:
        product.is_active = False
        product.save(update_fields=['is_active', 'updated_at'])
        logger.info("product_deactivated product_id=%s by=%s", product.pk, actor.pk)

    @staticmethod
    def suggest(query: str, limit: int):
        """Active products whose name or description contains ``query``, most used first."""
        query = (query or '').strip()
        if len(query) < MIN_QUERY_LENGTH:
            return Product.objects.none()
        return Product.objects.filter(
            Q(name__icontains=query) | Q(description__icontains=query), is_active=True
        ).order_by('-usage_count', '-last_used')[:limit]

    @staticmethod
    def popular(limit: int):
        return Product.objects.filter(is_active=True).order_by('-usage_count', '-last_used')[:limit]

    @staticmethod
    def _bump(name):
        with transaction.atomic():
            product = Product.objects.select_for_update().filter(name__iexact=name).first()
            if product is None:
                return None
            Product.objects.filter(pk=product.pk).update(
                usage_count=F('usage_count') + 1, last_used=timezone.now(), is_active=True
            )
        product.refresh_from_db()
        return product
