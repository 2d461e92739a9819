"""
DRF authentication backed by the shared identity verifier.
"""

from drf_spectacular.extensions import OpenApiAuthenticationExtension
from rest_framework.authentication import BaseAuthentication, get_authorization_header

from .identity import IdentityVerifier


class VerifiedJWTAuthentication(BaseAuthentication):
    """
    ``Authorization: Bearer <token>``.

    Returns ``None`` when no bearer header is present so that the permission
    layer answers with 401 ``not_authenticated``. A present but unusable token
    raises the specific credential error.
    """

    keyword = b'bearer'
    verifier_class = IdentityVerifier

    def authenticate(self, request):
        header = get_authorization_header(request).split()
        if not header or header[0].lower() != self.keyword:
            return None
        if len(header) != 2:
            return None

        identity = self.verifier_class().verify(header[1])
        request.identity = identity
        return identity.user, identity

    def authenticate_header(self, request):
        return 'Bearer realm="api"'


class VerifiedJWTScheme(OpenApiAuthenticationExtension):
    """Documents the bearer scheme; the same access token opens the notification socket."""

    target_class = VerifiedJWTAuthentication
    name = 'BearerAuth'

    def get_security_definition(self, auto_schema):
        return {
            'type': 'http',
            'scheme': 'bearer',
            'bearerFormat': 'JWT',
            'description': 'Access token from /api/auth/login/. Pass it as ?token= on /ws/notifications/.',
        }
