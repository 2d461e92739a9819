"""
JWT authentication middleware for the WebSocket handshake.

The token is read from, in order:
  1. Query string: ``?token=<jwt>`` (the socket.io ``auth.token`` field)
  2. ``Authorization: Bearer <jwt>`` header
  3. ``Sec-WebSocket-Protocol: Bearer.<jwt>``

On success ``scope["user"]`` and ``scope["identity"]`` are set. On failure
``scope["user"]`` is anonymous and ``scope["auth_error"]`` holds the failure
code so the consumer can refuse the connection by name. Identity is fixed for
the lifetime of the connection.
"""

import logging
from urllib.parse import parse_qs

from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from django.contrib.auth.models import AnonymousUser

from apps.authentication.identity import IdentityVerifier
from apps.core.exceptions import AuthenticationError, CredentialMissing

logger = logging.getLogger(__name__)
security_logger = logging.getLogger("security.audit")


class JWTAuthMiddleware(BaseMiddleware):
    verifier_class = IdentityVerifier

    async def __call__(self, scope, receive, send):
        scope = dict(scope)
        token = self._extract_token(scope)

        try:
            identity = await self._verify(token)
        except AuthenticationError as exc:
            scope["user"] = AnonymousUser()
            scope["identity"] = None
            scope["auth_error"] = exc.default_code
            security_logger.warning("ws_auth_failed code=%s path=%s", exc.default_code, scope.get("path"))
        else:
            scope["user"] = identity.user
            scope["identity"] = identity
            scope["auth_error"] = None

        return await super().__call__(scope, receive, send)

    @staticmethod
    def _extract_token(scope):
        query_string = scope.get("query_string", b"").decode("utf-8", errors="ignore")
        params = parse_qs(query_string)
        token = params.get("token", [None])[0]
        if token:
            return token

        headers = dict(scope.get("headers", []))
        authorization = headers.get(b"authorization", b"").decode("utf-8", errors="ignore")
        scheme, _, value = authorization.partition(" ")
        if scheme.lower() == "bearer" and value.strip():
            return value.strip()

        protocols = headers.get(b"sec-websocket-protocol", b"").decode("utf-8", errors="ignore")
        for proto in protocols.split(","):
            proto = proto.strip()
            if proto.startswith("Bearer."):
                return proto[7:]

        return None

    async def _verify(self, token):
        if not token:
            raise CredentialMissing()
        return await database_sync_to_async(self.verifier_class().verify)(token)
