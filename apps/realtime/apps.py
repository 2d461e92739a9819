"""Realtime app configuration"""
from django.apps import AppConfig
from django.conf import settings
from django.utils.module_loading import import_string


class RealtimeConfig(AppConfig):
    name = 'apps.realtime'
    verbose_name = 'Realtime'

    _room_router = None

    @property
    def room_router(self):
        """Process-wide router instance built from ``ROOM_ROUTER_CLASS``."""
        if self._room_router is None:
            self._room_router = import_string(settings.ROOM_ROUTER_CLASS)()
        return self._room_router

    def reset_room_router(self, router=None):
        self._room_router = router
