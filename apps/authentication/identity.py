"""
Identity verification for bearer tokens.

Both the HTTP authentication class and the WebSocket handshake middleware go
through ``IdentityVerifier.verify`` so that a token means the same thing on
either transport. The account's active flag is re-read on every call; a valid
signature for a deactivated account is rejected.
"""

from dataclasses import dataclass
import logging

import jwt
from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework_simplejwt.settings import api_settings
from rest_framework_simplejwt.tokens import RefreshToken

from apps.core.exceptions import (
    AccountInactive,
    CredentialExpired,
    CredentialInvalid,
    CredentialMissing,
    UnknownSubject,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerifiedIdentity:
    user_id: str
    role: str
    display_name: str
    user: object


class IdentityVerifier:
    """Resolve a signed access token to a live, active user."""

    token_type = 'access'

    def verify(self, raw_token):
        if not raw_token:
            raise CredentialMissing()

        payload = self.decode(raw_token)
        user_id = payload.get(api_settings.USER_ID_CLAIM)
        if not user_id:
            raise CredentialInvalid('Token contained no recognizable user identification.')

        user = self._load_user(user_id)
        if not user.is_active:
            logger.info("identity_rejected reason=inactive user_id=%s", user_id)
            raise AccountInactive()

        return VerifiedIdentity(
            user_id=str(user.pk),
            role=user.role,
            display_name=user.full_name,
            user=user,
        )

    def decode(self, raw_token):
        """Check signature, expiry and token type; return the claims."""
        if isinstance(raw_token, bytes):
            raw_token = raw_token.decode('utf-8', errors='ignore')

        key = api_settings.VERIFYING_KEY or api_settings.SIGNING_KEY
        try:
            payload = jwt.decode(
                raw_token,
                key,
                algorithms=[api_settings.ALGORITHM],
                audience=api_settings.AUDIENCE,
                issuer=api_settings.ISSUER,
                leeway=api_settings.LEEWAY,
                options={'verify_aud': api_settings.AUDIENCE is not None},
            )
        except jwt.ExpiredSignatureError as exc:
            raise CredentialExpired() from exc
        except jwt.InvalidTokenError as exc:
            raise CredentialInvalid() from exc

        if payload.get(api_settings.TOKEN_TYPE_CLAIM) != self.token_type:
            raise CredentialInvalid('Token has wrong type.')
        return payload

    @staticmethod
    def _load_user(user_id):
        User = get_user_model()
        try:
            return User.objects.get(**{api_settings.USER_ID_FIELD: user_id})
        except (User.DoesNotExist, ValueError, DjangoValidationError) as exc:
            raise UnknownSubject() from exc


def issue_token_pair(user):
    """Issue a refresh/access pair carrying the role and display name."""
    refresh = RefreshToken.for_user(user)
    refresh['role'] = user.role
    refresh['username'] = user.username
    refresh['display_name'] = user.full_name
    return {
        'refresh': str(refresh),
        'access': str(refresh.access_token),
    }
