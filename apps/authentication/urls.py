"""
Authentication URLs
"""

from django.urls import path
from rest_framework.routers import SimpleRouter
from rest_framework_simplejwt.views import TokenRefreshView

from .views import (
    LoginView, LogoutView, ProfileView, PasswordChangeView, RegisterView,
    TwoFactorStatusView, TwoFactorEnableView, TwoFactorVerifyView,
    TwoFactorDisableView, TwoFactorRegenerateCodesView, TwoFactorLoginView, UserViewSet,
)

urlpatterns = [
    # Token management
    path('login/', LoginView.as_view(), name='login'),
    path('logout/', LogoutView.as_view(), name='logout'),
    path('token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),

    # Profile
    path('me/', ProfileView.as_view(), name='profile'),
    path('change-password/', PasswordChangeView.as_view(), name='change_password'),
    path('register/', RegisterView.as_view(), name='register'),

    # 2FA
    path('2fa/status/', TwoFactorStatusView.as_view(), name='2fa_status'),
    path('2fa/enable/', TwoFactorEnableView.as_view(), name='2fa_enable'),
    path('2fa/verify/', TwoFactorVerifyView.as_view(), name='2fa_verify'),
    path('2fa/disable/', TwoFactorDisableView.as_view(), name='2fa_disable'),
    path('2fa/regenerate-backup-codes/', TwoFactorRegenerateCodesView.as_view(), name='2fa_regenerate'),
    path('2fa/verify-login/', TwoFactorLoginView.as_view(), name='2fa_verify_login'),
]

# Mounted at /api/users/
user_router = SimpleRouter()
user_router.register('', UserViewSet, basename='users')
