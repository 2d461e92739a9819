"""Authentication app configuration"""
from django.apps import AppConfig


class AuthenticationConfig(AppConfig):
    name = 'apps.authentication'
    verbose_name = 'Accounts'

    def ready(self):
        # Registers the OpenAPI bearer scheme alongside the authentication class
        from . import authentication  # noqa: F401
