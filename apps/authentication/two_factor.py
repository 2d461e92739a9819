"""
Time-based one-time password (TOTP) second factor with single-use backup codes.

Verification never raises for a wrong code; callers branch on
``TwoFactorResult.success`` so that a failed TOTP attempt can fall back to a
backup code.
"""

from dataclasses import dataclass, field
import base64
import io
import logging
import secrets

import pyotp
import qrcode
from django.conf import settings
from django.core.cache import cache
from django.db import transaction
from django.utils import timezone

from .models import BackupCode

logger = logging.getLogger(__name__)
security_logger = logging.getLogger("security.audit")

BACKUP_CODE_COUNT = 10
BACKUP_CODE_LENGTH = 8
TOTP_VALID_WINDOW = 2

PENDING_LOGIN_KEY = "2fa:pending:{user_id}"


@dataclass
class TwoFactorResult:
    success: bool
    message: str
    method: str = None
    data: dict = field(default_factory=dict)

    def as_dict(self):
        payload = {'success': self.success, 'message': self.message}
        if self.method:
            payload['method'] = self.method
        payload.update(self.data)
        return payload


def generate_backup_codes(count=BACKUP_CODE_COUNT):
    return [secrets.token_hex(BACKUP_CODE_LENGTH // 2).upper() for _ in range(count)]


class TwoFactorService:

    def status(self, user):
        return {
            'enabled': user.is_2fa_enabled,
            'backup_codes_remaining': (
                user.backup_codes.filter(used=False).count() if user.is_2fa_enabled else 0
            ),
        }

    def begin_setup(self, user):
        """Store a fresh secret and return what the authenticator app needs."""
        if user.is_2fa_enabled:
            return TwoFactorResult(False, 'Two-factor authentication is already enabled.')

        secret = pyotp.random_base32()
        user.two_factor_secret = secret
        user.save(update_fields=['two_factor_secret', 'updated_at'])

        provisioning_uri = pyotp.TOTP(secret).provisioning_uri(
            name=user.email,
            issuer_name=settings.TWO_FACTOR_ISSUER,
        )
        return TwoFactorResult(True, 'Scan the QR code with your authenticator app.', data={
            'secret': secret,
            'qr_code': self._qr_data_uri(provisioning_uri),
            'provisioning_uri': provisioning_uri,
        })

    def confirm_setup(self, user, token):
        if user.is_2fa_enabled:
            return TwoFactorResult(False, 'Two-factor authentication is already enabled.')
        if not user.two_factor_secret:
            return TwoFactorResult(False, 'Two-factor setup has not been started.')
        if not self.verify_totp(user, token):
            return TwoFactorResult(False, 'Invalid verification code.')

        with transaction.atomic():
            user.is_2fa_enabled = True
            user.save(update_fields=['is_2fa_enabled', 'updated_at'])
            codes = self._replace_backup_codes(user)

        security_logger.info("2fa_enabled user_id=%s", user.pk)
        return TwoFactorResult(True, 'Two-factor authentication enabled.', method='totp',
                               data={'backup_codes': codes})

    def disable(self, user, password):
        if not user.is_2fa_enabled:
            return TwoFactorResult(False, 'Two-factor authentication is not enabled.')
        if not user.check_password(password):
            return TwoFactorResult(False, 'Invalid password.')

        with transaction.atomic():
            user.is_2fa_enabled = False
            user.two_factor_secret = ''
            user.save(update_fields=['is_2fa_enabled', 'two_factor_secret', 'updated_at'])
            user.backup_codes.all().delete()

        security_logger.warning("2fa_disabled user_id=%s", user.pk)
        return TwoFactorResult(True, 'Two-factor authentication disabled.')

    def regenerate_backup_codes(self, user, password):
        if not user.is_2fa_enabled:
            return TwoFactorResult(False, 'Two-factor authentication is not enabled.')
        if not user.check_password(password):
            return TwoFactorResult(False, 'Invalid password.')

        with transaction.atomic():
            codes = self._replace_backup_codes(user)
        return TwoFactorResult(True, 'New backup codes generated.', data={'backup_codes': codes})

    def verify_login(self, user, token):
        """Second step of login: TOTP first, then an 8 character backup code."""
        if not user.is_2fa_enabled or not user.two_factor_secret:
            return TwoFactorResult(False, 'Two-factor authentication is not enabled.')

        token = (token or '').strip()
        if self.verify_totp(user, token):
            return TwoFactorResult(True, 'Verification successful.', method='totp')

        if len(token) == BACKUP_CODE_LENGTH and self.consume_backup_code(user, token):
            remaining = user.backup_codes.filter(used=False).count()
            return TwoFactorResult(True, 'Backup code accepted.', method='backup_code',
                                   data={'backup_codes_remaining': remaining})

        security_logger.warning("2fa_verification_failed user_id=%s", user.pk)
        return TwoFactorResult(False, 'Invalid verification code.')

    @staticmethod
    def verify_totp(user, token):
        if not user.two_factor_secret or not token or not token.isdigit():
            return False
        return pyotp.TOTP(user.two_factor_secret).verify(token, valid_window=TOTP_VALID_WINDOW)

    @staticmethod
    def consume_backup_code(user, code):
        # Single conditional UPDATE: only one caller can flip used=False -> True
        updated = BackupCode.objects.filter(
            user=user,
            code=code.upper(),
            used=False,
        ).update(used=True, used_at=timezone.now())
        return updated == 1

    # Pending logins

    @staticmethod
    def mark_pending_login(user):
        cache.set(PENDING_LOGIN_KEY.format(user_id=user.pk), True, settings.TWO_FACTOR_PENDING_TTL)

    @staticmethod
    def has_pending_login(user_id):
        return bool(cache.get(PENDING_LOGIN_KEY.format(user_id=user_id)))

    @staticmethod
    def clear_pending_login(user_id):
        cache.delete(PENDING_LOGIN_KEY.format(user_id=user_id))

    # Helpers

    @staticmethod
    def _replace_backup_codes(user):
        codes = generate_backup_codes()
        user.backup_codes.all().delete()
        BackupCode.objects.bulk_create([BackupCode(user=user, code=code) for code in codes])
        return codes

    @staticmethod
    def _qr_data_uri(provisioning_uri):
        qr = qrcode.QRCode(version=1, box_size=10, border=5)
        qr.add_data(provisioning_uri)
        qr.make(fit=True)
        img = qr.make_image(fill_color='black', back_color='white')

        buffer = io.BytesIO()
        img.save(buffer, format='PNG')
        return 'data:image/png;base64,' + base64.b64encode(buffer.getvalue()).decode('utf-8')
