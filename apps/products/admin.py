from django.contrib import admin

from .models import Product


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['name', 'category', 'usage_count', 'last_used', 'is_active', 'created_by']
    list_filter = ['category', 'is_active']
    search_fields = ['name', 'description']
    raw_id_fields = ['created_by']
    readonly_fields = ['usage_count', 'last_used']
