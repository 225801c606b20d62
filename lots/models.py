"""
Lots — Models

Lot ledger for raw materials (MP) and finished goods (PF). A lot is created
once, by a reception or a completed production run, and is never deleted;
it turns inactive when depleted. quantity_remaining is only changed by
FIFO consumption and by inventory recounts, and every change is recorded
in the insert-only LotQuantityChange history.

@file lots/models.py
"""

import uuid
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import F, Q
from django.utils.translation import gettext_lazy as _

from core.models import BaseModel

from .expiry import classify_expiry


# Quantities are in the product's stock unit (kg, L, pieces), to the gram/millilitre.
QUANTITY_MAX_DIGITS = 15
QUANTITY_DECIMAL_PLACES = 3


class LotKind(models.TextChoices):
    RAW_MATERIAL = 'MP', _('Raw material')
    FINISHED_GOOD = 'PF', _('Finished good')


class LotQuerySet(models.QuerySet):

    def for_product(self, kind, product_id=None):
        qs = self.filter(kind=kind)
        if product_id is not None:
            qs = qs.filter(product_id=product_id)
        return qs

    def active(self):
        return self.filter(is_active=True, quantity_remaining__gt=0)

    def fifo(self):
        """Earliest expiry first, then earliest manufacture, then oldest row."""
        return self.order_by(
            F('expiry_date').asc(nulls_last=True),
            F('manufacture_date').asc(nulls_last=True),
            'created_at',
            'id',
        )


class Lot(BaseModel):
    """
    A traceable batch of one product.

    product_id references the external catalog and is not a foreign key.
    origin_type / origin_id point at the reception or production run that
    created the lot. is_active is derived from quantity_remaining.
    """

    kind = models.CharField(
        _('kind'), max_length=2,
        choices=LotKind.choices, db_index=True,
    )
    lot_number = models.CharField(_('lot number'), max_length=50)
    product_id = models.PositiveBigIntegerField(
        _('product ID'),
        help_text=_('Catalog product (raw material or finished good); resolved in application layer'),
    )
    quantity_initial = models.DecimalField(
        _('initial quantity'),
        max_digits=QUANTITY_MAX_DIGITS, decimal_places=QUANTITY_DECIMAL_PLACES,
    )
    quantity_remaining = models.DecimalField(
        _('remaining quantity'),
        max_digits=QUANTITY_MAX_DIGITS, decimal_places=QUANTITY_DECIMAL_PLACES,
    )
    manufacture_date = models.DateField(_('manufacture date'), null=True, blank=True)
    expiry_date = models.DateField(_('expiry date'), null=True, blank=True, db_index=True)
    is_active = models.BooleanField(_('active'), default=True, db_index=True)
    origin_type = models.CharField(
        _('origin type'), max_length=50, blank=True,
        help_text=_('Reception or ProductionRun'),
    )
    origin_id = models.CharField(_('origin ID'), max_length=64, blank=True)
    unit_cost = models.DecimalField(
        _('unit cost'), max_digits=15, decimal_places=4,
        null=True, blank=True,
    )
    version = models.PositiveIntegerField(_('version'), default=0)

    objects = LotQuerySet.as_manager()

    class Meta:
        verbose_name = _('lot')
        verbose_name_plural = _('lots')
        ordering = ['kind', 'expiry_date', 'created_at']
        indexes = [
            models.Index(fields=['kind', 'product_id', 'is_active'], name='lot_kind_product_active_idx'),
            models.Index(fields=['kind', 'lot_number'], name='lot_kind_number_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['kind', 'lot_number'],
                name='unique_lot_number_per_kind',
            ),
            models.CheckConstraint(
                condition=Q(quantity_initial__gt=0),
                name='lot_positive_initial_quantity',
            ),
            models.CheckConstraint(
                condition=Q(quantity_remaining__gte=0),
                name='lot_non_negative_remaining',
            ),
            models.CheckConstraint(
                condition=Q(quantity_remaining__lte=F('quantity_initial')),
                name='lot_remaining_within_initial',
            ),
            models.CheckConstraint(
                condition=(
                    Q(is_active=True, quantity_remaining__gt=0)
                    | Q(is_active=False, quantity_remaining=0)
                ),
                name='lot_active_iff_remaining',
            ),
        ]

    def __str__(self):
        return f'{self.lot_number} ({self.quantity_remaining}/{self.quantity_initial})'

    def save(self, *args, **kwargs):
        self.is_active = self.quantity_remaining > 0
        update_fields = kwargs.get('update_fields')
        if update_fields is not None and 'quantity_remaining' in update_fields:
            kwargs['update_fields'] = set(update_fields) | {'is_active'}
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise NotImplementedError('Lots are retained for traceability and cannot be deleted.')

    @property
    def expiry(self):
        return classify_expiry(self.expiry_date)

    @property
    def expiry_status(self) -> str:
        return self.expiry.status

    @property
    def days_until_expiry(self) -> int | None:
        return self.expiry.days_until_expiry

    @property
    def is_expired(self) -> bool:
        return self.expiry.is_expired


class LotQuantityChange(models.Model):
    """
    One immutable row per change of a lot's remaining quantity (insert only).
    """

    class ChangeType(models.TextChoices):
        CREATION = 'CREATION', _('Creation')
        CONSUMPTION = 'CONSUMPTION', _('Consumption')
        ADJUSTMENT = 'ADJUSTMENT', _('Adjustment')

    id = models.UUIDField(
        primary_key=True, default=uuid.uuid4, editable=False,
    )
    lot = models.ForeignKey(
        Lot,
        on_delete=models.PROTECT,
        related_name='quantity_changes',
        verbose_name=_('lot'),
    )
    change_type = models.CharField(
        _('change type'), max_length=12,
        choices=ChangeType.choices, db_index=True,
    )
    quantity_before = models.DecimalField(
        _('quantity before'),
        max_digits=QUANTITY_MAX_DIGITS, decimal_places=QUANTITY_DECIMAL_PLACES,
    )
    quantity_after = models.DecimalField(
        _('quantity after'),
        max_digits=QUANTITY_MAX_DIGITS, decimal_places=QUANTITY_DECIMAL_PLACES,
    )
    reference = models.CharField(
        _('reference'), max_length=255, blank=True,
        help_text=_('Production order, sale, recount reason, ...'),
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name='+',
        verbose_name=_('created by'),
    )
    created_at = models.DateTimeField(
        _('created at'), auto_now_add=True, db_index=True,
    )
    # No updated_at: immutable record.

    class Meta:
        verbose_name = _('lot quantity change')
        verbose_name_plural = _('lot quantity changes')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['lot', 'created_at'], name='lot_change_lot_created_idx'),
        ]

    def __str__(self):
        return f'{self.change_type} lot={self.lot_id} {self.quantity_before}->{self.quantity_after}'

    @property
    def delta(self) -> Decimal:
        return self.quantity_after - self.quantity_before

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise NotImplementedError('LotQuantityChange is insert-only; updates are not allowed.')
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise NotImplementedError('LotQuantityChange records cannot be deleted.')
