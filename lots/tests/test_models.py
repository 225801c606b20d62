"""
Tests — Lot & LotQuantityChange model constraints and properties.

@file lots/tests/test_models.py
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.db import IntegrityError
from django.utils import timezone

from lots.expiry import ExpiryStatus
from lots.models import Lot, LotKind, LotQuantityChange
from tests.factories import LotFactory, LotQuantityChangeFactory


pytestmark = pytest.mark.django_db


class TestLot:

    def test_create_valid_lot(self):
        lot = LotFactory(quantity_initial=50)
        assert lot.pk is not None
        assert lot.quantity_remaining == 50
        assert lot.is_active is True
        assert lot.version == 0

    def test_fractional_quantities(self):
        lot = LotFactory(quantity_initial=Decimal('2.5'), quantity_remaining=Decimal('0.125'))
        lot.refresh_from_db()
        assert lot.quantity_initial == Decimal('2.500')
        assert lot.quantity_remaining == Decimal('0.125')
        assert lot.is_active is True

    def test_str(self):
        lot = LotFactory(lot_number='LMP-260101-001', quantity_initial=10, quantity_remaining=4)
        assert str(lot) == 'LMP-260101-001 (4/10)'

    def test_save_derives_is_active(self):
        lot = LotFactory(quantity_initial=10, quantity_remaining=0)
        assert lot.is_active is False
        lot.quantity_remaining = 3
        lot.save(update_fields=['quantity_remaining'])
        lot.refresh_from_db()
        assert lot.is_active is True

    def test_delete_raises(self):
        lot = LotFactory()
        with pytest.raises(NotImplementedError):
            lot.delete()
        assert Lot.objects.filter(pk=lot.pk).exists()

    def test_positive_initial_quantity_constraint(self):
        with pytest.raises(IntegrityError):
            LotFactory(quantity_initial=0, quantity_remaining=0)

    def test_remaining_within_initial_constraint(self):
        with pytest.raises(IntegrityError):
            LotFactory(quantity_initial=10, quantity_remaining=11)

    def test_active_flag_constraint(self):
        lot = LotFactory(quantity_initial=10)
        with pytest.raises(IntegrityError):
            Lot.objects.filter(pk=lot.pk).update(is_active=False)

    def test_unique_lot_number_per_kind(self):
        LotFactory(kind=LotKind.RAW_MATERIAL, lot_number='DUP-001')
        with pytest.raises(IntegrityError):
            LotFactory(kind=LotKind.RAW_MATERIAL, lot_number='DUP-001')

    def test_expiry_properties(self):
        today = timezone.localdate()
        lot = LotFactory.build(expiry_date=today + timedelta(days=3))
        assert lot.expiry_status == ExpiryStatus.SOON_EXPIRED
        assert lot.days_until_expiry == 3
        assert lot.is_expired is False

        expired = LotFactory.build(expiry_date=today - timedelta(days=2))
        assert expired.is_expired is True
        assert expired.days_until_expiry == -2

    def test_no_expiry_is_never_expired(self):
        lot = LotFactory.build(expiry_date=None)
        assert lot.expiry_status == ExpiryStatus.OK
        assert lot.days_until_expiry is None


class TestLotQuerySet:

    def test_fifo_order(self):
        today = timezone.localdate()
        product = 77
        no_expiry = LotFactory(product_id=product, expiry_date=None, manufacture_date=today)
        late = LotFactory(product_id=product, expiry_date=today + timedelta(days=10))
        early_no_mfg = LotFactory(
            product_id=product, expiry_date=today + timedelta(days=2), manufacture_date=None,
        )
        early_old_mfg = LotFactory(
            product_id=product, expiry_date=today + timedelta(days=2),
            manufacture_date=today - timedelta(days=30),
        )
        early_new_mfg_first = LotFactory(
            product_id=product, expiry_date=today + timedelta(days=2),
            manufacture_date=today - timedelta(days=5),
        )
        early_new_mfg_second = LotFactory(
            product_id=product, expiry_date=today + timedelta(days=2),
            manufacture_date=today - timedelta(days=5),
        )
        created = timezone.now() - timedelta(hours=1)
        Lot.objects.filter(pk=early_new_mfg_first.pk).update(created_at=created)
        Lot.objects.filter(pk=early_new_mfg_second.pk).update(created_at=created + timedelta(seconds=1))
        ordered = list(Lot.objects.for_product(LotKind.RAW_MATERIAL, product).fifo())
        assert ordered == [
            early_old_mfg, early_new_mfg_first, early_new_mfg_second,
            early_no_mfg, late, no_expiry,
        ]

    def test_active_excludes_depleted(self):
        live = LotFactory(product_id=5, quantity_initial=10)
        LotFactory(product_id=5, quantity_initial=10, quantity_remaining=0)
        assert list(Lot.objects.for_product(LotKind.RAW_MATERIAL, 5).active()) == [live]

    def test_for_product_filters_kind(self):
        LotFactory(product_id=9, kind=LotKind.RAW_MATERIAL)
        assert not Lot.objects.for_product(LotKind.FINISHED_GOOD, 9).exists()


class TestLotQuantityChangeInsertOnly:

    def test_create_change(self):
        change = LotQuantityChangeFactory()
        assert change.pk is not None
        assert change.delta == change.lot.quantity_initial

    def test_update_raises(self):
        change = LotQuantityChangeFactory()
        change.quantity_after = 999
        with pytest.raises(NotImplementedError) as exc_info:
            change.save()
        assert 'insert-only' in str(exc_info.value).lower()

    def test_delete_raises(self):
        change = LotQuantityChangeFactory()
        with pytest.raises(NotImplementedError) as exc_info:
            change.delete()
        assert 'deleted' in str(exc_info.value).lower()
        assert LotQuantityChange.objects.filter(pk=change.pk).exists()
