"""
Authenticated serving of order-response voice recordings.

GET /api/media/<path> only reaches files under the recording directory, and
only when the file belongs to a response on an order the caller can read.
With ``USE_NGINX_ACCEL_REDIRECT`` the bytes are handed to nginx through
``X-Accel-Redirect`` instead of streamed by Django.
"""

import logging
import mimetypes
import os
import posixpath

from django.conf import settings
from django.http import FileResponse, Http404, HttpResponse
from rest_framework.permissions import IsAuthenticated
from rest_framework.views import APIView

from apps.access import policies
from apps.core.upload_validators import VOICE_RECORDING_DIR

from .models import OrderResponse

logger = logging.getLogger(__name__)


def resolve_recording_path(file_path):
    """Normalised path relative to MEDIA_ROOT, or ``None`` when it escapes the recording directory."""
    clean_path = posixpath.normpath(file_path)
    if clean_path.startswith(("../", "/")) or ".." in clean_path.split("/"):
        return None
    if not clean_path.startswith(f"{VOICE_RECORDING_DIR}/"):
        return None
    media_root = os.path.realpath(settings.MEDIA_ROOT)
    full_path = os.path.realpath(os.path.join(media_root, clean_path))
    if not full_path.startswith(media_root + os.sep):
        return None
    return clean_path, full_path


class SecureMediaView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, file_path):
        resolved = resolve_recording_path(file_path)
        if resolved is None:
            raise Http404("File not found")
        clean_path, full_path = resolved

        owner = (
            OrderResponse.objects.select_related("order")
            .filter(voice_recording__path=clean_path)
            .first()
        )
        if owner is None or not policies.can_read_order(request.user, owner.order):
            raise Http404("File not found")
        if not os.path.isfile(full_path):
            raise Http404("File not found")

        logger.debug("media_served path=%s user_id=%s order_id=%s", clean_path, request.user.pk, owner.order_id)

        if getattr(settings, "USE_NGINX_ACCEL_REDIRECT", False):
            response = HttpResponse()
            response["X-Accel-Redirect"] = f"/protected-media/{clean_path}"
            response["Content-Type"] = ""
            return response

        content_type, _ = mimetypes.guess_type(full_path)
        return FileResponse(
            open(full_path, "rb"),
            as_attachment=False,
            content_type=content_type or "application/octet-stream",
        )
