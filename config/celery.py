"""
Manchengo ERP — Celery Application

Worker / beat entry point:
  celery -A config worker -l info
  celery -A config beat -l info

@file config/celery.py
"""

import os

from celery import Celery
from celery.schedules import crontab

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings.development')

app = Celery('manchengo')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()

app.conf.beat_schedule = {
    'scan-expiring-lots-daily': {
        'task': 'lots.scan_expiring_lots',
        'schedule': crontab(hour=6, minute=0),
    },
}
