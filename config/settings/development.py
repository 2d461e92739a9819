"""
Django Settings - Development Configuration
"""

from .base import *

DEBUG = True

# ALLOWED_HOSTS is set in base.py based on DEBUG flag (accepts all hosts in dev)

# Single daphne process: rooms can live in memory unless Redis is configured
if not REDIS_URL:
    CHANNEL_LAYERS = {
        "default": {"BACKEND": "channels.layers.InMemoryChannelLayer"}
    }
    ROOM_ROUTER_CLASS = config("ROOM_ROUTER_CLASS", default="apps.realtime.routers.LocalRoomRouter")

# Database logging
LOGGING["loggers"]["django.db.backends"] = {
    "handlers": ["console"],
    "level": config("DB_LOG_LEVEL", default="INFO"),
    "propagate": False,
}
LOGGING["root"]["level"] = "DEBUG"

# Development throttle profile: permissive but still active.
DEV_DISABLE_THROTTLING = config("DEV_DISABLE_THROTTLING", default=False, cast=bool)

if DEV_DISABLE_THROTTLING:
    REST_FRAMEWORK["DEFAULT_THROTTLE_CLASSES"] = []
    REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"] = {}
else:
    REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"] = {
        "anon": "5000/hour",
        "burst": "600/minute",
        "sustained": "250000/day",
        "login": "30/minute",
        "two_factor": "120/hour",
    }

# Email - Console backend
EMAIL_BACKEND = 'django.core.mail.backends.console.EmailBackend'

# Celery without a broker runs tasks inline
CELERY_TASK_ALWAYS_EAGER = config("CELERY_TASK_ALWAYS_EAGER", default=not REDIS_URL, cast=bool)

CORS_ALLOWED_ORIGINS = config(
    "CORS_ALLOWED_ORIGINS",
    default="http://localhost:3000,http://127.0.0.1:3000",
    cast=Csv(),
)

STORAGES["staticfiles"] = {"BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage"}
