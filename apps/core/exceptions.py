"""
Error taxonomy and the DRF exception handler.

Every error reaching a client is rendered as
``{"success": false, "error": {"code": ..., "type": ..., "message": ..., "details": ...}}``.
"""

import logging

from rest_framework.response import Response
from rest_framework import exceptions, status
from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.http import Http404

from .response import error_payload

logger = logging.getLogger(__name__)
security_logger = logging.getLogger("security.audit")


class AuthenticationError(exceptions.AuthenticationFailed):
    """Base class for credential failures (HTTP 401, socket refusal)."""

    default_detail = 'Authentication failed.'
    default_code = 'authentication_failed'


class CredentialMissing(AuthenticationError):
    default_detail = 'Authentication credentials were not provided.'
    default_code = 'credential_missing'


class CredentialInvalid(AuthenticationError):
    default_detail = 'Token is invalid.'
    default_code = 'credential_invalid'


class CredentialExpired(AuthenticationError):
    default_detail = 'Token has expired.'
    default_code = 'credential_expired'


class UnknownSubject(AuthenticationError):
    default_detail = 'No user matches this token.'
    default_code = 'unknown_subject'


class AccountInactive(AuthenticationError):
    default_detail = 'User account is disabled.'
    default_code = 'account_inactive'


class AuthorizationError(exceptions.PermissionDenied):
    default_detail = 'You do not have permission to perform this action.'
    default_code = 'authorization_error'


class NotFoundError(exceptions.NotFound):
    default_code = 'not_found'

    def __init__(self, resource_type='Resource', resource_id=None):
        message = f"{resource_type} not found"
        if resource_id:
            message = f"{resource_type} with ID {resource_id} not found"
        super().__init__(message)


class ValidationError(exceptions.ValidationError):
    """Field-level validation failure rendered as a field -> message map."""


class ConflictError(exceptions.APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Resource already exists.'
    default_code = 'conflict'


class InvalidStateError(exceptions.APIException):
    """A state-guarded action was attempted from the wrong state."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'This action is not allowed in the current state.'
    default_code = 'invalid_state'


class DispatchError(Exception):
    """Notification persistence failed. Never rendered to the client."""


def custom_exception_handler(exc, context):
    """
    Custom exception handler that provides consistent error responses.
    """
    # rest_framework.views resolves DEFAULT_AUTHENTICATION_CLASSES on import,
    # and those classes import this module.
    from rest_framework.views import exception_handler

    if isinstance(exc, DjangoValidationError):
        details = getattr(exc, 'message_dict', None) or {'non_field_errors': exc.messages}
        exc = ValidationError(details)

    response = exception_handler(exc, context)

    if response is not None:
        _log_security_event(exc, context, response.status_code)
        details = response.data if isinstance(response.data, dict) else {'detail': response.data}
        response.data = error_payload(
            response.status_code, _error_type(exc), get_error_message(response.data), details
        )
        return response

    if isinstance(exc, Http404):
        return Response(
            error_payload(404, 'not_found', 'Not Found', {'detail': str(exc)}),
            status=status.HTTP_404_NOT_FOUND,
        )

    logger.exception("Unexpected error: %s", exc)

    details = {'detail': 'An unexpected error occurred.'}
    if settings.DEBUG:
        details['exception'] = repr(exc)
    return Response(
        error_payload(500, 'server_error', 'Internal Server Error', details),
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


def _error_type(exc):
    codes = exc.get_codes() if isinstance(exc, exceptions.APIException) else None
    if isinstance(codes, str):
        return codes
    return getattr(exc, 'default_code', 'error')


def _log_security_event(exc, context, status_code):
    if status_code not in (401, 403, 429):
        return

    request = context.get("request")
    if request is None:
        return

    user = getattr(request, "user", None)
    user_id = getattr(user, "id", None) if user and getattr(user, "is_authenticated", False) else None
    if isinstance(exc, (exceptions.AuthenticationFailed, exceptions.NotAuthenticated)):
        event_type = "auth_failed"
    elif isinstance(exc, exceptions.PermissionDenied):
        event_type = "permission_denied"
    elif isinstance(exc, exceptions.Throttled):
        event_type = "throttled"
    else:
        event_type = "security_event"

    security_logger.warning(
        "api_security_event type=%s status=%s method=%s path=%s user_id=%s ip=%s error=%s",
        event_type,
        status_code,
        request.method,
        request.path,
        user_id,
        request.META.get("REMOTE_ADDR"),
        exc.__class__.__name__,
    )


def get_error_message(data):
    """Extract a user-friendly error message from response data"""
    if isinstance(data, dict):
        if 'detail' in data:
            return str(data['detail'])
        if 'non_field_errors' in data:
            return str(data['non_field_errors'][0])
        for key, value in data.items():
            if isinstance(value, list) and value:
                return f"{key}: {value[0]}"
            elif isinstance(value, str):
                return f"{key}: {value}"
    elif isinstance(data, list) and data:
        return str(data[0])
    return str(data)
