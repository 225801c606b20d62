"""
Tests — classify_expiry: day arithmetic, warning window, time-of-day truncation.

@file lots/tests/test_expiry.py
"""

from datetime import date, datetime, timedelta

import pytest
from django.utils import timezone

from lots.expiry import ExpiryStatus, classify_expiry, is_expired


REF = date(2026, 3, 10)


class TestClassifyExpiry:

    def test_no_expiry_is_ok_without_day_count(self):
        result = classify_expiry(None, REF)
        assert result.status == ExpiryStatus.OK
        assert result.days_until_expiry is None

    def test_yesterday_is_expired(self):
        result = classify_expiry(REF - timedelta(days=1), REF)
        assert result.status == ExpiryStatus.EXPIRED
        assert result.days_until_expiry == -1
        assert result.is_expired is True

    def test_today_is_soon_expired(self):
        result = classify_expiry(REF, REF)
        assert result.status == ExpiryStatus.SOON_EXPIRED
        assert result.days_until_expiry == 0

    def test_warning_window_is_inclusive(self):
        result = classify_expiry(REF + timedelta(days=7), REF)
        assert result.status == ExpiryStatus.SOON_EXPIRED
        assert result.days_until_expiry == 7

    def test_beyond_window_is_ok(self):
        result = classify_expiry(REF + timedelta(days=8), REF)
        assert result.status == ExpiryStatus.OK
        assert result.days_until_expiry == 8

    def test_custom_warning_window(self):
        assert classify_expiry(REF + timedelta(days=20), REF, warning_days=30).status == ExpiryStatus.SOON_EXPIRED
        assert classify_expiry(REF + timedelta(days=2), REF, warning_days=1).status == ExpiryStatus.OK

    def test_settings_warning_window(self, settings):
        settings.LOT_EXPIRY_WARNING_DAYS = 14
        assert classify_expiry(REF + timedelta(days=10), REF).status == ExpiryStatus.SOON_EXPIRED

    def test_time_of_day_is_ignored(self):
        morning = datetime(2026, 3, 10, 0, 5)
        evening = datetime(2026, 3, 10, 23, 55)
        expiry = datetime(2026, 3, 11, 0, 1)
        assert classify_expiry(expiry, morning) == classify_expiry(expiry, evening)
        assert classify_expiry(expiry, evening).days_until_expiry == 1

    def test_aware_datetimes_use_local_day(self):
        reference = timezone.make_aware(datetime(2026, 3, 10, 12, 0))
        result = classify_expiry(date(2026, 3, 9), reference)
        assert result.status == ExpiryStatus.EXPIRED

    def test_defaults_to_today(self):
        today = timezone.localdate()
        assert classify_expiry(today - timedelta(days=1)).status == ExpiryStatus.EXPIRED
        assert classify_expiry(today + timedelta(days=60)).status == ExpiryStatus.OK

    @pytest.mark.parametrize('offset', [-30, -1, 0, 3, 7, 8, 365])
    def test_idempotent(self, offset):
        expiry = REF + timedelta(days=offset)
        assert classify_expiry(expiry, REF) == classify_expiry(expiry, REF)

    def test_is_expired_helper(self):
        assert is_expired(REF - timedelta(days=1), REF) is True
        assert is_expired(REF, REF) is False
        assert is_expired(None, REF) is False
