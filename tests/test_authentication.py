"""
Authentication and Identity Tests
=================================
Validates:
  1. Bearer token verification (missing, invalid, expired, wrong type, inactive, unknown user)
  2. Login, logout and profile endpoints
  3. Two-factor setup, login with TOTP and single-use backup codes
  4. Admin-only user management
  5. Admin-site account forms
  6. Django start-up in a fresh interpreter

Run:
    pytest tests/test_authentication.py
"""

import os
import subprocess
import sys
import uuid
from datetime import timedelta

import jwt
import pyotp
from django.conf import settings
from django.core.cache import cache
from django.core.exceptions import ValidationError as DjangoValidationError
from django.test import SimpleTestCase, TestCase
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient, APITestCase
from rest_framework_simplejwt.settings import api_settings

from apps.authentication.forms import AccountChangeForm, AccountCreationForm
from apps.authentication.identity import IdentityVerifier, issue_token_pair
from apps.authentication.models import BackupCode, User
from apps.authentication.two_factor import TwoFactorService
from apps.core.choices import Role
from apps.core.exceptions import (
    AccountInactive,
    CredentialExpired,
    CredentialInvalid,
    CredentialMissing,
    UnknownSubject,
)
from tests.factories import PASSWORD, AdminFactory, FactoryWorkerFactory, StoreStaffFactory


def _signed(claims):
    return jwt.encode(claims, api_settings.SIGNING_KEY, algorithm=api_settings.ALGORITHM)


def _bearer_client(user):
    client = APIClient()
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {issue_token_pair(user)['access']}")
    return client


# ─── 1. Identity verification ───────────────────────────────────────────────

class IdentityVerifierTests(TestCase):

    def setUp(self):
        self.user = FactoryWorkerFactory(first_name='Ravi', last_name='Kumar')
        self.verifier = IdentityVerifier()

    def test_valid_access_token_resolves_identity(self):
        identity = self.verifier.verify(issue_token_pair(self.user)['access'])
        self.assertEqual(identity.user_id, str(self.user.pk))
        self.assertEqual(identity.role, Role.FACTORY_WORKER)
        self.assertEqual(identity.display_name, 'Ravi Kumar')

    def test_missing_token(self):
        with self.assertRaises(CredentialMissing):
            self.verifier.verify('')

    def test_garbage_token(self):
        with self.assertRaises(CredentialInvalid):
            self.verifier.verify('not-a-jwt')

    def test_expired_token(self):
        token = _signed({
            api_settings.USER_ID_CLAIM: str(self.user.pk),
            api_settings.TOKEN_TYPE_CLAIM: 'access',
            'exp': timezone.now() - timedelta(minutes=5),
        })
        with self.assertRaises(CredentialExpired):
            self.verifier.verify(token)

    def test_refresh_token_is_not_an_access_token(self):
        with self.assertRaises(CredentialInvalid):
            self.verifier.verify(issue_token_pair(self.user)['refresh'])

    def test_token_without_subject(self):
        token = _signed({
            api_settings.TOKEN_TYPE_CLAIM: 'access',
            'exp': timezone.now() + timedelta(minutes=5),
        })
        with self.assertRaises(CredentialInvalid):
            self.verifier.verify(token)

    def test_unknown_subject(self):
        token = _signed({
            api_settings.USER_ID_CLAIM: str(uuid.uuid4()),
            api_settings.TOKEN_TYPE_CLAIM: 'access',
            'exp': timezone.now() + timedelta(minutes=5),
        })
        with self.assertRaises(UnknownSubject):
            self.verifier.verify(token)

    def test_deactivated_account_rejected_with_valid_signature(self):
        token = issue_token_pair(self.user)['access']
        User.objects.filter(pk=self.user.pk).update(is_active=False)
        with self.assertRaises(AccountInactive):
            self.verifier.verify(token)


# ─── 2. HTTP authentication ─────────────────────────────────────────────────

class BearerAuthenticationTests(APITestCase):

    def setUp(self):
        self.user = StoreStaffFactory()

    def test_no_header_is_unauthenticated(self):
        response = self.client.get('/api/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        body = response.json()
        self.assertFalse(body['success'])
        self.assertEqual(body['error']['code'], 401)

    def test_invalid_token_names_the_failure(self):
        self.client.credentials(HTTP_AUTHORIZATION='Bearer nonsense')
        response = self.client.get('/api/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.json()['error']['type'], 'credential_invalid')

    def test_profile_with_valid_token(self):
        response = _bearer_client(self.user).get('/api/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        body = response.json()
        self.assertTrue(body['success'])
        self.assertEqual(body['data']['username'], self.user.username)
        self.assertEqual(body['data']['role'], Role.STORE_STAFF)

    def test_profile_update_cannot_change_own_role(self):
        response = _bearer_client(self.user).patch(
            '/api/auth/me/', {'department': 'Front counter', 'role': Role.ADMIN}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertEqual(self.user.department, 'Front counter')
        self.assertEqual(self.user.role, Role.STORE_STAFF)


# ─── 3. Login / logout ──────────────────────────────────────────────────────

class LoginTests(APITestCase):

    def setUp(self):
        cache.clear()
        self.user = StoreStaffFactory(username='meena', email='meena@example.com')

    def test_login_with_username_returns_tokens(self):
        response = self.client.post(
            '/api/auth/login/', {'username': 'meena', 'password': PASSWORD}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        data = response.json()['data']
        self.assertIn('access', data['tokens'])
        self.assertIn('refresh', data['tokens'])
        self.assertEqual(data['user']['id'], str(self.user.pk))

    def test_login_with_email(self):
        response = self.client.post(
            '/api/auth/login/', {'username': 'MEENA@example.com', 'password': PASSWORD}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_wrong_password_counts_a_failed_attempt(self):
        response = self.client.post(
            '/api/auth/login/', {'username': 'meena', 'password': 'wrong'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.json()['success'])
        self.user.refresh_from_db()
        self.assertEqual(self.user.failed_login_attempts, 1)

    def test_inactive_account_cannot_log_in(self):
        User.objects.filter(pk=self.user.pk).update(is_active=False)
        response = self.client.post(
            '/api/auth/login/', {'username': 'meena', 'password': PASSWORD}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_logout_blacklists_refresh_token(self):
        tokens = issue_token_pair(self.user)
        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {tokens['access']}")
        response = client.post('/api/auth/logout/', {'refresh': tokens['refresh']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        refresh = self.client.post('/api/auth/token/refresh/', {'refresh': tokens['refresh']}, format='json')
        self.assertEqual(refresh.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_password_change(self):
        client = _bearer_client(self.user)
        response = client.post('/api/auth/change-password/', {
            'current_password': PASSWORD,
            'new_password': 'N3w-Passphrase!',
            'new_password_confirm': 'N3w-Passphrase!',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password('N3w-Passphrase!'))


# ─── 4. Two-factor ──────────────────────────────────────────────────────────

class TwoFactorTests(APITestCase):

    def setUp(self):
        cache.clear()
        self.user = AdminFactory(username='anita')
        self.service = TwoFactorService()
        setup = self.service.begin_setup(self.user)
        self.secret = setup.data['secret']
        confirmed = self.service.confirm_setup(self.user, pyotp.TOTP(self.secret).now())
        self.assertTrue(confirmed.success)
        self.backup_codes = confirmed.data['backup_codes']

    def _start_login(self):
        response = self.client.post(
            '/api/auth/login/', {'username': 'anita', 'password': PASSWORD}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        return response.json()['data']

    def test_setup_stores_ten_backup_codes(self):
        self.assertEqual(len(self.backup_codes), 10)
        self.assertEqual(BackupCode.objects.filter(user=self.user, used=False).count(), 10)

    def test_login_requires_second_factor(self):
        data = self._start_login()
        self.assertTrue(data['requires_2fa'])
        self.assertEqual(data['user_id'], str(self.user.pk))
        self.assertNotIn('tokens', data)

    def test_totp_completes_login(self):
        self._start_login()
        response = self.client.post('/api/auth/2fa/verify-login/', {
            'user_id': str(self.user.pk),
            'token': pyotp.TOTP(self.secret).now(),
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        data = response.json()['data']
        self.assertEqual(data['method'], 'totp')
        self.assertIn('access', data['tokens'])

    def test_verify_login_without_password_step_fails(self):
        response = self.client.post('/api/auth/2fa/verify-login/', {
            'user_id': str(self.user.pk),
            'token': pyotp.TOTP(self.secret).now(),
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.json()['success'])

    def test_backup_code_is_single_use(self):
        code = self.backup_codes[0]

        self._start_login()
        first = self.client.post('/api/auth/2fa/verify-login/', {
            'user_id': str(self.user.pk), 'token': code,
        }, format='json')
        self.assertEqual(first.status_code, status.HTTP_200_OK)
        self.assertEqual(first.json()['data']['method'], 'backup_code')
        self.assertEqual(first.json()['data']['backup_codes_remaining'], 9)

        self._start_login()
        second = self.client.post('/api/auth/2fa/verify-login/', {
            'user_id': str(self.user.pk), 'token': code,
        }, format='json')
        self.assertEqual(second.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(second.json()['message'], 'Invalid verification code.')

    def test_consume_backup_code_only_once(self):
        code = self.backup_codes[1]
        self.assertTrue(TwoFactorService.consume_backup_code(self.user, code.lower()))
        self.assertFalse(TwoFactorService.consume_backup_code(self.user, code))

    def test_disable_requires_password(self):
        self.assertFalse(self.service.disable(self.user, 'wrong').success)
        self.assertTrue(self.service.disable(self.user, PASSWORD).success)
        self.user.refresh_from_db()
        self.assertFalse(self.user.is_2fa_enabled)
        self.assertFalse(BackupCode.objects.filter(user=self.user).exists())

    def test_enable_twice_is_a_failed_result(self):
        client = _bearer_client(self.user)
        response = client.post('/api/auth/2fa/enable/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json(), {
            'success': False,
            'message': 'Two-factor authentication is already enabled.',
        })


# ─── 5. User management ─────────────────────────────────────────────────────

class UserManagementTests(APITestCase):

    def setUp(self):
        self.admin = AdminFactory()
        self.staff = StoreStaffFactory()
        self.worker = FactoryWorkerFactory()

    def test_register_is_admin_only(self):
        payload = {
            'username': 'newworker', 'email': 'newworker@example.com', 'password': 'Str0ng-Pass!',
            'first_name': 'New', 'last_name': 'Worker', 'role': Role.FACTORY_WORKER,
        }
        self.client.force_authenticate(self.staff)
        self.assertEqual(self.client.post('/api/auth/register/', payload, format='json').status_code,
                         status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.admin)
        response = self.client.post('/api/auth/register/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(User.objects.filter(username='newworker', role=Role.FACTORY_WORKER).exists())

    def test_list_is_admin_only(self):
        self.client.force_authenticate(self.worker)
        self.assertEqual(self.client.get('/api/users/').status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.admin)
        response = self.client.get('/api/users/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()['pagination']['count'], 3)

    def test_admin_accounts_cannot_be_deleted(self):
        other_admin = AdminFactory()
        self.client.force_authenticate(self.admin)
        response = self.client.delete(f'/api/users/{other_admin.pk}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertTrue(User.objects.filter(pk=other_admin.pk).exists())

    def test_toggle_status(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post(f'/api/users/{self.worker.pk}/toggle-status/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.worker.refresh_from_db()
        self.assertFalse(self.worker.is_active)

    def test_role_directory_lists_active_users(self):
        FactoryWorkerFactory(is_active=False)
        self.client.force_authenticate(self.staff)
        response = self.client.get(f'/api/users/role/{Role.FACTORY_WORKER}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row['id'] for row in response.json()['data']], [str(self.worker.pk)])


# ─── 6. Admin-site forms ────────────────────────────────────────────────────

class AccountFormTests(TestCase):

    def _creation_data(self, **overrides):
        data = {
            'username': 'meena', 'email': 'Meena@Example.com', 'first_name': 'Meena', 'last_name': 'Iyer',
            'role': Role.ADMIN, 'department': '', 'phone': '',
            'password1': 'Str0ng-pass-123', 'password2': 'Str0ng-pass-123',
        }
        data.update(overrides)
        return data

    def test_admin_role_gets_site_access(self):
        form = AccountCreationForm(data=self._creation_data())
        self.assertTrue(form.is_valid(), form.errors)
        user = form.save()
        self.assertTrue(user.is_staff)
        self.assertEqual(user.email, 'meena@example.com')

        form = AccountCreationForm(data=self._creation_data(
            username='ravi', email='ravi@example.com', role=Role.FACTORY_WORKER,
        ))
        self.assertTrue(form.is_valid(), form.errors)
        self.assertFalse(form.save().is_staff)

    def test_duplicate_email_rejected(self):
        StoreStaffFactory(email='meena@example.com')
        form = AccountCreationForm(data=self._creation_data())
        self.assertFalse(form.is_valid())
        self.assertIn('email', form.errors)

    def test_preferences_normalised(self):
        user = StoreStaffFactory()
        form = AccountChangeForm(instance=user)
        form.cleaned_data = {'notification_preferences': {'email': 0}}
        self.assertEqual(
            form.clean_notification_preferences(),
            {'email': False, 'web': True, 'whatsapp': False},
        )

        form.cleaned_data = {'notification_preferences': {'sms': True}}
        with self.assertRaises(DjangoValidationError):
            form.clean_notification_preferences()


# ─── 7. Startup ─────────────────────────────────────────────────────────────

class StartupTests(SimpleTestCase):

    def test_fresh_interpreter_can_set_up_django(self):
        """Authentication classes load before rest_framework.views in a cold process."""
        env = dict(os.environ, DJANGO_SETTINGS_MODULE='config.settings.testing')
        result = subprocess.run(
            [sys.executable, '-c', 'import django; django.setup()'],
            cwd=settings.BASE_DIR, env=env, capture_output=True, text=True, timeout=60,
        )
        self.assertEqual(result.returncode, 0, result.stderr)
