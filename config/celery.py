"""
Celery application for notification delivery and housekeeping.

Workers: ``celery -A config worker -l info``; the purge schedule runs from
``celery -A config beat`` (``CELERY_BEAT_SCHEDULE`` in settings).
"""

import os

from celery import Celery
from celery.signals import setup_logging

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings.development')

app = Celery('sip_tracking')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()


@setup_logging.connect
def use_django_logging(**kwargs):
    """Keep the JSON / correlation-id handlers from ``LOGGING`` in workers."""
    from logging.config import dictConfig

    from django.conf import settings

    dictConfig(settings.LOGGING)
