"""
Manchengo ERP — Development Settings

Local development overrides. Activated by:
  DJANGO_SETTINGS_MODULE=config.settings.development

@file config/settings/development.py
"""

from .base import *  # noqa: F401, F403

DEBUG = True

ALLOWED_HOSTS = ['*']

# Short dashboard cache while iterating on alert thresholds.
LOT_EXPIRY_SCAN_CACHE_SECONDS = env.int('LOT_EXPIRY_SCAN_CACHE_SECONDS', default=30)  # noqa: F405

LOGGING['loggers']['manchengo']['level'] = 'DEBUG'  # noqa: F405
