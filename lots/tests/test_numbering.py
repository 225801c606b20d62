"""
Tests — LotNumberGenerator: format, daily sequence per kind, collision retry.

@file lots/tests/test_numbering.py
"""

from datetime import date
from unittest.mock import patch

import pytest
from django.utils import timezone

from core.exceptions import InvalidArgument, LotNumberConflict
from lots.models import Lot, LotKind
from lots.numbering import LotNumberGenerator
from lots.services import LotStore
from tests.factories import LotFactory


pytestmark = pytest.mark.django_db


class TestGenerate:

    def test_first_number_of_the_day(self):
        number = LotNumberGenerator.generate(LotKind.RAW_MATERIAL, date(2026, 3, 14))
        assert number == 'LMP-260314-001'

    def test_increments_highest_existing(self):
        LotFactory(lot_number='LPF-260314-001', kind=LotKind.FINISHED_GOOD)
        LotFactory(lot_number='LPF-260314-004', kind=LotKind.FINISHED_GOOD)
        number = LotNumberGenerator.generate(LotKind.FINISHED_GOOD, date(2026, 3, 14))
        assert number == 'LPF-260314-005'

    def test_sequence_is_per_kind(self):
        LotFactory(lot_number='LMP-260314-007', kind=LotKind.RAW_MATERIAL)
        assert LotNumberGenerator.generate(LotKind.FINISHED_GOOD, date(2026, 3, 14)) == 'LPF-260314-001'

    def test_sequence_restarts_each_day(self):
        LotFactory(lot_number='LMP-260314-009', kind=LotKind.RAW_MATERIAL)
        assert LotNumberGenerator.generate(LotKind.RAW_MATERIAL, date(2026, 3, 15)) == 'LMP-260315-001'

    def test_sequence_widens_past_999(self):
        LotFactory(lot_number='LMP-260314-999', kind=LotKind.RAW_MATERIAL)
        LotFactory(lot_number='LMP-260314-1000', kind=LotKind.RAW_MATERIAL)
        assert LotNumberGenerator.generate(LotKind.RAW_MATERIAL, date(2026, 3, 14)) == 'LMP-260314-1001'

    def test_ignores_foreign_numbers_with_same_prefix(self):
        LotFactory(lot_number='LMP-260314-ABC', kind=LotKind.RAW_MATERIAL)
        assert LotNumberGenerator.generate(LotKind.RAW_MATERIAL, date(2026, 3, 14)) == 'LMP-260314-001'

    def test_unknown_kind_rejected(self):
        with pytest.raises(InvalidArgument):
            LotNumberGenerator.generate('XX', date(2026, 3, 14))


class TestNumberingThroughStore:

    def test_five_finished_lots_same_day_are_contiguous(self):
        lots = [
            LotStore.create_lot(kind=LotKind.FINISHED_GOOD, product_id=3, quantity_initial=10)
            for _ in range(5)
        ]
        prefix = f'LPF-{timezone.localdate():%y%m%d}-'
        assert [lot.lot_number for lot in lots] == [f'{prefix}{n:03d}' for n in range(1, 6)]

    def test_collision_is_retried(self):
        today = timezone.localdate()
        taken = f'LMP-{today:%y%m%d}-001'
        LotFactory(kind=LotKind.RAW_MATERIAL, lot_number=taken)
        free = f'LMP-{today:%y%m%d}-002'
        with patch.object(LotNumberGenerator, 'generate', side_effect=[taken, free]) as gen:
            lot = LotStore.create_lot(kind=LotKind.RAW_MATERIAL, product_id=1, quantity_initial=5)
        assert gen.call_count == 2
        assert lot.lot_number == free

    def test_collision_surfaces_conflict_after_bounded_retries(self, settings):
        settings.LOT_NUMBER_MAX_ATTEMPTS = 3
        today = timezone.localdate()
        taken = f'LMP-{today:%y%m%d}-001'
        LotFactory(kind=LotKind.RAW_MATERIAL, lot_number=taken)
        before = Lot.objects.count()
        with patch.object(LotNumberGenerator, 'generate', return_value=taken) as gen:
            with pytest.raises(LotNumberConflict):
                LotStore.create_lot(kind=LotKind.RAW_MATERIAL, product_id=1, quantity_initial=5)
        assert gen.call_count == 3
        assert Lot.objects.count() == before

    def test_explicit_duplicate_number_is_conflict(self):
        LotFactory(kind=LotKind.RAW_MATERIAL, lot_number='SUP-BATCH-42')
        with pytest.raises(LotNumberConflict):
            LotStore.create_lot(
                kind=LotKind.RAW_MATERIAL, product_id=1, quantity_initial=5,
                lot_number='SUP-BATCH-42',
            )

    def test_same_number_allowed_across_kinds(self):
        LotFactory(kind=LotKind.RAW_MATERIAL, lot_number='SHARED-1')
        lot = LotStore.create_lot(
            kind=LotKind.FINISHED_GOOD, product_id=1, quantity_initial=5,
            lot_number='SHARED-1',
        )
        assert lot.pk is not None
