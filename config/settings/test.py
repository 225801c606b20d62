"""
Manchengo ERP — Test Settings

Used by pytest (see pyproject.toml). SQLite unless DATABASE_URL points at
PostgreSQL; the row-locking concurrency tests only run on PostgreSQL
(see test_postgres.py for that run).

@file config/settings/test.py
"""

from .base import *  # noqa: F401, F403

DATABASES = {
    'default': env.db('DATABASE_URL', default=f'sqlite:///{BASE_DIR / "test.sqlite3"}'),  # noqa: F405
}

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
    }
}

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

LOGGING['loggers']['manchengo']['level'] = 'INFO'  # noqa: F405
