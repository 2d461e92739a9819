"""Products app filters."""
import django_filters

from .models import Product, ProductCategory


class ProductFilter(django_filters.FilterSet):
    category = django_filters.ChoiceFilter(choices=ProductCategory.choices)

    class Meta:
        model = Product
        fields = ['category', 'is_active', 'created_by']
