"""
Manchengo ERP — Root conftest for pytest

Shared fixtures available to all test modules.

@file conftest.py
"""

import pytest
from django.core.cache import cache

from tests.factories import SuperuserFactory, UserFactory


@pytest.fixture(autouse=True)
def clear_cache():
    """Expiry scans are cached; start every test from an empty cache."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def user(db):
    """Active user with default password TestPass2026!"""
    return UserFactory()


@pytest.fixture
def admin_user(db):
    """Superuser with default password TestPass2026!"""
    return SuperuserFactory()


@pytest.fixture
def staff_client(client, admin_user):
    """Django test client logged in as a superuser (admin site)."""
    client.force_login(admin_user)
    return client
