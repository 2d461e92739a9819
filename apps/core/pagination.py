"""
Page-number pagination inside the success envelope.

``?page=<n>&page_size=<m>``; the default size comes from
``REST_FRAMEWORK["PAGE_SIZE"]``.
"""

from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response

PAGINATION_SCHEMA = {
    'type': 'object',
    'properties': {
        'count': {'type': 'integer'},
        'total_pages': {'type': 'integer'},
        'current_page': {'type': 'integer'},
        'page_size': {'type': 'integer'},
        'next': {'type': 'string', 'nullable': True},
        'previous': {'type': 'string', 'nullable': True},
    },
}


class StandardResultsPagination(PageNumberPagination):
    page_size_query_param = 'page_size'
    max_page_size = 100

    def get_pagination_meta(self):
        paginator = self.page.paginator
        return {
            'count': paginator.count,
            'total_pages': paginator.num_pages,
            'current_page': self.page.number,
            'page_size': self.get_page_size(self.request),
            'next': self.get_next_link(),
            'previous': self.get_previous_link(),
        }

    def get_paginated_response(self, data):
        return Response({'success': True, 'data': data, 'pagination': self.get_pagination_meta()})

    def get_paginated_response_schema(self, schema):
        return {
            'type': 'object',
            'properties': {
                'success': {'type': 'boolean'},
                'data': schema,
                'pagination': PAGINATION_SCHEMA,
            },
        }
