"""
DRF throttle classes.

Rates live in ``REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"]`` under each class's
``scope``. Authenticated callers are keyed by user id, anonymous ones by
client address. Login and 2FA attempts are also keyed by the account being
tried.
"""

from __future__ import annotations

import hashlib

from rest_framework.request import Request
from rest_framework.throttling import SimpleRateThrottle


def client_address(request: Request) -> str:
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR", "").split(",")[0].strip()
    return forwarded or request.META.get("REMOTE_ADDR", "unknown")


def _digest(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()[:16]


class UserOrAddressThrottle(SimpleRateThrottle):
    """Keys on the user when signed in, otherwise on the client address."""

    def get_cache_key(self, request: Request, view=None) -> str:
        user = getattr(request, "user", None)
        if user and user.is_authenticated:
            return f"throttle:{self.scope}:user:{user.pk}"
        return f"throttle:{self.scope}:ip:{client_address(request)}"


class BurstRateThrottle(UserOrAddressThrottle):
    scope = "burst"


class SustainedRateThrottle(UserOrAddressThrottle):
    scope = "sustained"


class LoginRateThrottle(SimpleRateThrottle):
    """Per address and login identifier (username or email, case-folded)."""

    scope = "login"

    def get_cache_key(self, request: Request, view=None) -> str:
        identifier = str(request.data.get("username", "")).strip().casefold()
        account = _digest(identifier) if identifier else "anonymous"
        return f"throttle:login:{client_address(request)}:{account}"


class TwoFactorRateThrottle(UserOrAddressThrottle):
    """Code checks; a pending login is keyed by the user id it is waiting on."""

    scope = "two_factor"

    def get_cache_key(self, request: Request, view=None) -> str:
        pending = str(request.data.get("user_id", "")).strip()
        user = getattr(request, "user", None)
        if pending and not (user and user.is_authenticated):
            return f"throttle:two_factor:pending:{_digest(pending)}"
        return super().get_cache_key(request, view)
