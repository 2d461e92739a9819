"""
Response envelopes.

    Success:  {"success": true,  "data": ..., "message": "..."}
    Error:    {"success": false, "error": {"code": 400, "type": "...", "message": "...", "details": {...}}}
    Failed:   {"success": false, "message": "..."}

Lists come back through ``StandardResultsPagination`` as
``{"success": true, "data": [...], "pagination": {...}}``.
"""

from rest_framework import status
from rest_framework.response import Response


def success_response(data=None, message='OK', http_status=status.HTTP_200_OK, **extra):
    payload = {'success': True, 'data': data, 'message': message}
    payload.update(extra)
    return Response(payload, status=http_status)


def created_response(data=None, message='Created successfully.'):
    return success_response(data=data, message=message, http_status=status.HTTP_201_CREATED)


def failure_response(message, http_status=status.HTTP_400_BAD_REQUEST, **extra):
    """Expected negative outcome the client branches on (bad password, 2FA already on)."""
    payload = {'success': False, 'message': message}
    payload.update(extra)
    return Response(payload, status=http_status)


def error_payload(code, error_type, message, details=None):
    """Body of the error envelope."""
    return {
        'success': False,
        'error': {
            'code': code,
            'type': error_type,
            'message': message,
            'details': details if details is not None else {},
        },
    }
