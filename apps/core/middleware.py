"""
Request correlation ids.

The id is taken from ``X-Request-ID`` when the client (or proxy) sends one,
otherwise generated, and echoed back on the response.
"""

from .logging import correlation_scope

HEADER = 'HTTP_X_REQUEST_ID'
RESPONSE_HEADER = 'X-Request-ID'


class CorrelationIdMiddleware:
    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        with correlation_scope(request.META.get(HEADER, '')[:64] or None) as correlation_id:
            request.correlation_id = correlation_id
            response = self.get_response(request)
        response[RESPONSE_HEADER] = correlation_id
        return response
