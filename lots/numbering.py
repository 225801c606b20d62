"""
Lots — Lot Number Generation

Lot numbers look like LMP-250314-007: kind, calendar day (YYMMDD) and a
daily sequence per kind. The sequence is derived from the lots already
persisted, never from an in-process counter; concurrent generators may
produce the same candidate and are separated by the (kind, lot_number)
unique constraint, with LotStore retrying on collision.

@file lots/numbering.py
"""

import re
from datetime import date

from django.utils import timezone

from core.exceptions import InvalidArgument

from .models import Lot, LotKind

SEQUENCE_WIDTH = 3
LOT_NUMBER_REGEX = re.compile(r'^L(?P<kind>MP|PF)-(?P<day>\d{6})-(?P<seq>\d{3,})$')


class LotNumberGenerator:
    """Read-max-then-increment numbering over persisted lots."""

    @staticmethod
    def prefix(kind: str, reference_date: date) -> str:
        return f'L{kind}-{reference_date:%y%m%d}-'

    @classmethod
    def generate(cls, kind: str, reference_date: date | None = None) -> str:
        if kind not in LotKind.values:
            raise InvalidArgument(detail=f'Unknown lot kind: {kind}.')
        reference_date = reference_date or timezone.localdate()
        prefix = cls.prefix(kind, reference_date)

        existing = Lot.objects.filter(
            kind=kind, lot_number__startswith=prefix,
        ).values_list('lot_number', flat=True)

        # Suffixes widen past 999; compare numerically.
        highest = 0
        for number in existing:
            match = LOT_NUMBER_REGEX.match(number)
            if match:
                highest = max(highest, int(match.group('seq')))

        return f'{prefix}{highest + 1:0{SEQUENCE_WIDTH}d}'
