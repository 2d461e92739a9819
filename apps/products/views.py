"""Product ViewSets"""

from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated

from apps.access import policies
from apps.access.permissions import ObjectPolicyPermission
from apps.core.response import created_response, success_response

from .filters import ProductFilter
from .models import Product
from .serializers import ProductLimitSerializer, ProductSerializer, ProductSuggestionSerializer
from .services import ProductService

SEARCH_LIMIT = 10
POPULAR_LIMIT = 20


class ProductViewSet(viewsets.ModelViewSet):
    """
    Catalogue behind the order form's item suggestions.

    Any signed-in user may add a name; posting a known name bumps its usage
    instead of failing. Creators and admins edit, admins delete.
    """
    serializer_class = ProductSerializer
    permission_classes = [IsAuthenticated, ObjectPolicyPermission]
    filterset_class = ProductFilter
    search_fields = ['name']
    ordering_fields = ['name', 'usage_count', 'last_used', 'created_at']
    ordering = ['-usage_count', 'name']
    policy_actions = {
        'update': 'write',
        'partial_update': 'write',
        'destroy': 'delete',
    }
    service_class = ProductService

    def get_queryset(self):
        return policies.visible_products(self.request.user, Product.objects.select_related('created_by'))

    def get_service(self):
        return self.service_class()

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        product, created = self.get_service().record(request.user, **serializer.validated_data)
        data = ProductSerializer(product).data
        if created:
            return created_response(data=data, message='Product created.')
        return success_response(data=data, message='Existing product usage updated.')

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        product = self.get_object()
        serializer = self.get_serializer(product, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        product = self.get_service().update(product, request.user, serializer.validated_data)
        return success_response(data=ProductSerializer(product).data, message='Product updated.')

    def destroy(self, request, *args, **kwargs):
        product = self.get_object()
        self.get_service().deactivate(product, request.user)
        return success_response(message='Product deleted.')

    @extend_schema(
        parameters=[OpenApiParameter('q', str), OpenApiParameter('limit', int)],
        responses=ProductSuggestionSerializer(many=True),
    )
    @action(detail=False, methods=['get'])
    def search(self, request):
        params = self._params(request)
        products = self.get_service().suggest(params['q'], params.get('limit', SEARCH_LIMIT))
        return success_response(data=ProductSuggestionSerializer(products, many=True).data)

    @extend_schema(parameters=[OpenApiParameter('limit', int)], responses=ProductSuggestionSerializer(many=True))
    @action(detail=False, methods=['get'])
    def popular(self, request):
        params = self._params(request)
        products = self.get_service().popular(params.get('limit', POPULAR_LIMIT))
        return success_response(data=ProductSuggestionSerializer(products, many=True).data)

    @staticmethod
    def _params(request):
        serializer = ProductLimitSerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        return serializer.validated_data
