"""
Lots — Expiry Classification

Pure date arithmetic shared by consumption, availability checks, alert
scans and the admin badges. Both sides of the comparison are reduced to a
calendar day so the time of day never changes the outcome.

@file lots/expiry.py
"""

from dataclasses import dataclass
from datetime import date, datetime

from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class ExpiryStatus(models.TextChoices):
    OK = 'OK', _('OK')
    SOON_EXPIRED = 'SOON_EXPIRED', _('Expiring soon')
    EXPIRED = 'EXPIRED', _('Expired')


@dataclass(frozen=True)
class ExpiryClassification:
    status: str
    days_until_expiry: int | None = None

    @property
    def is_expired(self) -> bool:
        return self.status == ExpiryStatus.EXPIRED


def _as_day(value: date | datetime) -> date:
    if isinstance(value, datetime):
        if timezone.is_aware(value):
            return timezone.localdate(value)
        return value.date()
    return value


def default_warning_days() -> int:
    return getattr(settings, 'LOT_EXPIRY_WARNING_DAYS', 7)


def classify_expiry(
    expiry_date: date | datetime | None,
    reference_date: date | datetime | None = None,
    warning_days: int | None = None,
) -> ExpiryClassification:
    """
    Classify an expiry date relative to a reference day.

    No expiry date -> OK without a day count. Otherwise the day count is
    expiry minus reference: negative is EXPIRED, 0..warning_days (inclusive)
    is SOON_EXPIRED, anything further out is OK.
    """
    if expiry_date is None:
        return ExpiryClassification(status=ExpiryStatus.OK)

    if warning_days is None:
        warning_days = default_warning_days()
    reference = _as_day(reference_date) if reference_date is not None else timezone.localdate()
    days = (_as_day(expiry_date) - reference).days

    if days < 0:
        return ExpiryClassification(status=ExpiryStatus.EXPIRED, days_until_expiry=days)
    if days <= warning_days:
        return ExpiryClassification(status=ExpiryStatus.SOON_EXPIRED, days_until_expiry=days)
    return ExpiryClassification(status=ExpiryStatus.OK, days_until_expiry=days)


def is_expired(expiry_date: date | datetime | None, reference_date: date | datetime | None = None) -> bool:
    return classify_expiry(expiry_date, reference_date).is_expired
