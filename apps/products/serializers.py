"""Product Serializers"""

from rest_framework import serializers

from apps.authentication.serializers import UserSummarySerializer
from .models import Product


class ProductSuggestionSerializer(serializers.ModelSerializer):

    class Meta:
        model = Product
        fields = ['id', 'name', 'description', 'category', 'usage_count']
        read_only_fields = fields


class ProductSerializer(serializers.ModelSerializer):
    created_by = UserSummarySerializer(read_only=True)

    class Meta:
        model = Product
        fields = [
            'id', 'name', 'description', 'category', 'created_by',
            'usage_count', 'last_used', 'is_active', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'created_by', 'usage_count', 'last_used', 'is_active', 'created_at', 'updated_at']

    def validate_name(self, value):
        value = value.strip()
        if len(value) < 2:
            raise serializers.ValidationError('Product name must be at least 2 characters.')
        return value


class ProductLimitSerializer(serializers.Serializer):
    q = serializers.CharField(required=False, allow_blank=True, default='')
    limit = serializers.IntegerField(required=False, min_value=1, max_value=50)
