"""
Voice recording upload validation and storage.

Validates uploaded recordings with:
  1. Extension whitelist
  2. MIME type whitelist
  3. Magic-bytes verification
  4. Maximum file size enforcement

Usage in serializers:
    from apps.core.upload_validators import validate_voice_recording

    class MySerializer(serializers.Serializer):
        voice_recording = serializers.FileField(validators=[validate_voice_recording])
"""

import logging
import mimetypes
import os
import uuid

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.files.storage import default_storage

logger = logging.getLogger(__name__)

# ── Defaults (override via settings) ────────────────────────────────────────

MAX_VOICE_RECORDING_MB = getattr(settings, "MAX_VOICE_RECORDING_MB", 10)
MAX_VOICE_RECORDING_BYTES = MAX_VOICE_RECORDING_MB * 1024 * 1024
VOICE_RECORDING_DIR = getattr(settings, "VOICE_RECORDING_DIR", "voice-recordings")

ALLOWED_EXTENSIONS = {".webm", ".ogg", ".oga", ".mp3", ".wav", ".m4a"}

# Browsers' MediaRecorder reports webm as either audio/ or video/
ALLOWED_MIME_PREFIXES = ("audio/",)
ALLOWED_MIME_TYPES = {"video/webm"}

# Magic bytes → acceptable MIME types
_MAGIC_BYTES = {
    b"\x1aE\xdf\xa3": {"audio/webm", "video/webm"},
    b"OggS": {"audio/ogg", "audio/opus"},
    b"RIFF": {"audio/wav", "audio/x-wav", "audio/wave"},
    b"ID3": {"audio/mpeg", "audio/mp3"},
}


def _mime_allowed(content_type):
    return content_type.startswith(ALLOWED_MIME_PREFIXES) or content_type in ALLOWED_MIME_TYPES


def _check_magic_bytes(file_obj):
    """
    Read the first bytes and verify them against known audio signatures.
    Unrecognized signatures (e.g. MP4 containers) pass.
    """
    file_obj.seek(0)
    header = file_obj.read(8)
    file_obj.seek(0)

    if not header:
        return False

    for magic, expected in _MAGIC_BYTES.items():
        if header.startswith(magic):
            content_type = getattr(file_obj, "content_type", "") or ""
            return content_type in expected
    return True


def validate_voice_recording(file_obj):
    """
    Raises ``ValidationError`` on:
      - Oversized file
      - Disallowed extension
      - Disallowed MIME type
      - Magic-byte / content-type mismatch
    """
    size = getattr(file_obj, "size", None)
    if size is not None and size > MAX_VOICE_RECORDING_BYTES:
        raise ValidationError(
            f"Recording too large. Maximum allowed size is {MAX_VOICE_RECORDING_MB} MB."
        )

    name = getattr(file_obj, "name", "") or ""
    _, ext = os.path.splitext(name)
    ext = ext.lower()
    if ext and ext not in ALLOWED_EXTENSIONS:
        raise ValidationError(
            f"File extension '{ext}' is not allowed. "
            f"Allowed: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
        )

    content_type = getattr(file_obj, "content_type", None)
    if not content_type:
        content_type, _ = mimetypes.guess_type(name)
    if not content_type or not _mime_allowed(content_type):
        raise ValidationError("Only audio recordings are accepted.")

    if hasattr(file_obj, "read") and not _check_magic_bytes(file_obj):
        logger.warning(
            "upload_magic_byte_mismatch file=%s content_type=%s", name, content_type,
        )
        raise ValidationError("File content does not match its declared type.")

    return file_obj


def store_voice_recording(file_obj):
    """Save a validated recording and return the metadata kept on the response."""
    _, ext = os.path.splitext(file_obj.name or "")
    filename = f"voice-{uuid.uuid4().hex}{ext.lower()}"
    path = default_storage.save(os.path.join(VOICE_RECORDING_DIR, filename), file_obj)
    return {
        "filename": filename,
        "original_name": file_obj.name,
        "path": path,
        "url": default_storage.url(path),
        "size": file_obj.size,
        "mimetype": getattr(file_obj, "content_type", ""),
    }
