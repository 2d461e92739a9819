"""
Authentication Views
"""

import logging

from django.db.models import Count, ProtectedError
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.views import APIView
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import RefreshToken
from drf_spectacular.utils import extend_schema

from apps.access.permissions import IsAdminRole
from apps.core.choices import Role
from apps.core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from apps.core.response import created_response, failure_response, success_response
from apps.core.throttling import BurstRateThrottle, LoginRateThrottle, TwoFactorRateThrottle

from .identity import issue_token_pair
from .models import User
from .permissions import IsSelfOrAdmin
from .serializers import (
    LoginSerializer,
    PasswordChangeSerializer,
    TwoFactorLoginSerializer,
    TwoFactorPasswordSerializer,
    TwoFactorTokenSerializer,
    UserCreateSerializer,
    UserSerializer,
    UserStatsSerializer,
)
from .two_factor import TwoFactorService

logger = logging.getLogger(__name__)
security_logger = logging.getLogger("security.audit")


def get_client_ip(request):
    xff = request.META.get("HTTP_X_FORWARDED_FOR")
    if xff:
        return xff.split(",")[0].strip()
    return request.META.get("REMOTE_ADDR")


def _session_payload(user):
    return {
        'user': UserSerializer(user).data,
        'tokens': issue_token_pair(user),
    }


# =====================================================
# LOGIN / LOGOUT
# =====================================================

class LoginView(APIView):
    """
    Username-or-email login.

    Accounts with two-factor enabled receive ``requires_2fa`` and a user id
    instead of tokens; the tokens come from ``2fa/verify-login/``.
    """
    authentication_classes = []
    permission_classes = [AllowAny]
    throttle_classes = [LoginRateThrottle, BurstRateThrottle]
    serializer_class = LoginSerializer
    two_factor_service_class = TwoFactorService

    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.validated_data['user']

        if user.is_2fa_enabled:
            self.two_factor_service_class.mark_pending_login(user)
            return success_response(
                data={'requires_2fa': True, 'user_id': str(user.pk)},
                message='Two-factor verification required.',
            )

        user.record_login_attempt(success=True, ip_address=get_client_ip(request))
        security_logger.info("login_success user_id=%s", user.pk)
        return success_response(data=_session_payload(user), message='Login successful.')


class TwoFactorLoginView(APIView):
    authentication_classes = []
    permission_classes = [AllowAny]
    throttle_classes = [TwoFactorRateThrottle, BurstRateThrottle]
    serializer_class = TwoFactorLoginSerializer
    two_factor_service_class = TwoFactorService

    def post(self, request):
        serializer = TwoFactorLoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user_id = serializer.validated_data['user_id']
        service = self.two_factor_service_class()

        if not service.has_pending_login(user_id):
            return failure_response('No pending login for this user. Sign in again.')

        user = User.objects.filter(pk=user_id, is_active=True).first()
        if user is None:
            return failure_response('No pending login for this user. Sign in again.')

        result = service.verify_login(user, serializer.validated_data['token'])
        if not result.success:
            return failure_response(result.message)

        service.clear_pending_login(user_id)
        user.record_login_attempt(success=True, ip_address=get_client_ip(request))
        security_logger.info("login_success user_id=%s method=%s", user.pk, result.method)
        payload = _session_payload(user)
        payload.update(result.data)
        payload['method'] = result.method
        return success_response(data=payload, message=result.message)


class LogoutView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        refresh_token = request.data.get("refresh_token") or request.data.get("refresh")

        if refresh_token:
            try:
                RefreshToken(refresh_token).blacklist()
            except TokenError:
                logger.info("logout_refresh_rejected user_id=%s", request.user.pk)

        User.objects.filter(pk=request.user.pk).update(is_online=False)
        return success_response(message='Logged out.')


# =====================================================
# PROFILE / PASSWORD
# =====================================================

class ProfileView(APIView):
    permission_classes = [IsAuthenticated]
    serializer_class = UserSerializer

    def get(self, request):
        return success_response(data=UserSerializer(request.user).data)

    def patch(self, request):
        serializer = UserSerializer(
            request.user, data=request.data, partial=True, context={'request': request}
        )
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return success_response(data=serializer.data, message='Profile updated.')


class PasswordChangeView(APIView):
    permission_classes = [IsAuthenticated]
    serializer_class = PasswordChangeSerializer

    def post(self, request):
        serializer = PasswordChangeSerializer(
            data=request.data,
            context={"request": request}
        )
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return success_response(message='Password changed.')


class RegisterView(APIView):
    """Accounts are created by admins only."""
    permission_classes = [IsAdminRole]
    serializer_class = UserCreateSerializer

    def post(self, request):
        serializer = UserCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        security_logger.info("user_registered user_id=%s by=%s", user.pk, request.user.pk)
        return created_response(data=UserSerializer(user).data, message='User created.')


# =====================================================
# TWO FACTOR AUTH (2FA)
# =====================================================

class TwoFactorBaseView(APIView):
    permission_classes = [IsAuthenticated]
    throttle_classes = [TwoFactorRateThrottle, BurstRateThrottle]
    two_factor_service_class = TwoFactorService

    def respond(self, result):
        if not result.success:
            return failure_response(result.message)
        return success_response(data=result.data or None, message=result.message)


class TwoFactorStatusView(TwoFactorBaseView):
    throttle_classes = []

    def get(self, request):
        return success_response(data=self.two_factor_service_class().status(request.user))


class TwoFactorEnableView(TwoFactorBaseView):

    def post(self, request):
        return self.respond(self.two_factor_service_class().begin_setup(request.user))


class TwoFactorVerifyView(TwoFactorBaseView):
    serializer_class = TwoFactorTokenSerializer

    def post(self, request):
        serializer = TwoFactorTokenSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = self.two_factor_service_class().confirm_setup(
            request.user, serializer.validated_data['token']
        )
        return self.respond(result)


class TwoFactorDisableView(TwoFactorBaseView):
    serializer_class = TwoFactorPasswordSerializer

    def post(self, request):
        serializer = TwoFactorPasswordSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = self.two_factor_service_class().disable(
            request.user, serializer.validated_data['password']
        )
        return self.respond(result)


class TwoFactorRegenerateCodesView(TwoFactorBaseView):
    serializer_class = TwoFactorPasswordSerializer

    def post(self, request):
        serializer = TwoFactorPasswordSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = self.two_factor_service_class().regenerate_backup_codes(
            request.user, serializer.validated_data['password']
        )
        return self.respond(result)


# =====================================================
# USER MANAGEMENT
# =====================================================

class UserViewSet(mixins.ListModelMixin,
                  mixins.RetrieveModelMixin,
                  mixins.UpdateModelMixin,
                  mixins.DestroyModelMixin,
                  viewsets.GenericViewSet):
    """
    Admins list and manage every account. Other users reach only their own
    record, plus the ``role/<role>/`` directory used by assignment pickers.
    """
    queryset = User.objects.all()
    serializer_class = UserSerializer
    permission_classes = [IsSelfOrAdmin]
    filterset_fields = ['role', 'is_active', 'department']
    search_fields = ['username', 'email', 'first_name', 'last_name']
    ordering_fields = ['date_joined', 'username', 'last_seen']

    def get_permissions(self):
        if self.action in ('list', 'destroy', 'toggle_status', 'stats'):
            return [IsAdminRole()]
        return super().get_permissions()

    def destroy(self, request, *args, **kwargs):
        target = self.get_object()
        if target.role == Role.ADMIN:
            raise AuthorizationError('Admin accounts cannot be deleted.')
        security_logger.warning("user_deleted user_id=%s by=%s", target.pk, request.user.pk)
        try:
            target.delete()
        except ProtectedError as exc:
            raise ConflictError('User still owns orders or tasks; deactivate the account instead.') from exc
        return success_response(message='User deleted.')

    @action(detail=True, methods=['post'], url_path='toggle-status')
    def toggle_status(self, request, pk=None):
        target = self.get_object()
        if target.pk == request.user.pk:
            raise ValidationError({'detail': 'You cannot deactivate your own account.'})
        target.is_active = not target.is_active
        target.save(update_fields=['is_active', 'updated_at'])
        security_logger.warning(
            "user_status_changed user_id=%s active=%s by=%s", target.pk, target.is_active, request.user.pk
        )
        return success_response(data=UserSerializer(target).data,
                                message='User activated.' if target.is_active else 'User deactivated.')

    @extend_schema(responses=UserStatsSerializer)
    @action(detail=False, methods=['get'])
    def stats(self, request):
        qs = User.objects.all()
        by_role = {row['role']: row['count'] for row in qs.values('role').annotate(count=Count('id'))}
        data = {
            'total': qs.count(),
            'active': qs.filter(is_active=True).count(),
            'online': qs.filter(is_online=True).count(),
            'by_role': {role: by_role.get(role, 0) for role in Role.values},
        }
        return success_response(data=UserStatsSerializer(data).data)

    @action(detail=False, methods=['get'], url_path=r'role/(?P<role>[^/.]+)')
    def by_role(self, request, role=None):
        if role not in Role.values:
            raise NotFoundError('Role', role)
        users = User.objects.active().filter(role=role).order_by('first_name', 'last_name')
        return success_response(data=UserSerializer(users, many=True).data)
