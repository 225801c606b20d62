"""
Lots — Service Layer

Lot ledger operations for raw materials (MP) and finished goods (PF):
creation, FIFO consumption, availability checks, inventory recounts and
expiry alert scans. The same code serves both kinds.

quantity_remaining is written in exactly one place, LotStore.mutate_remaining,
as a conditional UPDATE on the row version. FIFO consumption and recounts
hold row locks (SELECT ... FOR UPDATE) for the whole transaction, so two
consumers of the same product are serialised by the database, not by this
process.

@file lots/services.py
"""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from django.conf import settings
from django.core.cache import cache
from django.db import IntegrityError, transaction
from django.db.models import Count, F, Q
from django.utils import timezone

from core.exceptions import (
    ConcurrentModification,
    InsufficientStockError,
    InvalidArgument,
    LotNotFound,
    LotNumberConflict,
)

from .expiry import ExpiryClassification, ExpiryStatus, classify_expiry, default_warning_days, is_expired
from .models import QUANTITY_DECIMAL_PLACES, QUANTITY_MAX_DIGITS, Lot, LotKind, LotQuantityChange
from .numbering import LotNumberGenerator

logger = logging.getLogger('manchengo')

ALERT_STATUSES = {ExpiryStatus.SOON_EXPIRED, ExpiryStatus.EXPIRED}
QUANTITY_LIMIT = Decimal(10) ** (QUANTITY_MAX_DIGITS - QUANTITY_DECIMAL_PLACES)
QUANTITY_STEP = Decimal(1).scaleb(-QUANTITY_DECIMAL_PLACES)


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FifoConsumption:
    """One lot touched by a consume() call. Callers persist it in their own trace."""
    lot_id: UUID
    lot_number: str
    quantity_taken: Decimal
    unit_cost: Decimal | None = None


@dataclass(frozen=True)
class ConsumptionPreview:
    consumptions: list[FifoConsumption]
    total_planned: Decimal
    sufficient: bool
    available_stock: Decimal
    expired_lot_count: int


@dataclass(frozen=True)
class AvailabilityCheck:
    satisfiable: bool
    available_stock: Decimal
    expired_lot_count: int
    message: str = ''


@dataclass(frozen=True)
class StockSummary:
    total_available: Decimal
    lots_count: int
    oldest_lot_date: date | None
    nearest_expiry_date: date | None


@dataclass(frozen=True)
class LotInfo:
    id: UUID
    kind: str
    lot_number: str
    product_id: int
    quantity_initial: Decimal
    quantity_remaining: Decimal
    manufacture_date: date | None
    expiry_date: date | None
    status: str
    days_until_expiry: int | None
    is_active: bool

    @classmethod
    def from_lot(cls, lot: Lot, classification: ExpiryClassification) -> 'LotInfo':
        return cls(
            id=lot.pk,
            kind=lot.kind,
            lot_number=lot.lot_number,
            product_id=lot.product_id,
            quantity_initial=lot.quantity_initial,
            quantity_remaining=lot.quantity_remaining,
            manufacture_date=lot.manufacture_date,
            expiry_date=lot.expiry_date,
            status=str(classification.status),
            days_until_expiry=classification.days_until_expiry,
            is_active=lot.is_active,
        )


@dataclass(frozen=True)
class ExpiryScanResult:
    raw: list[LotInfo] = field(default_factory=list)
    finished: list[LotInfo] = field(default_factory=list)

    def __len__(self):
        return len(self.raw) + len(self.finished)


@dataclass(frozen=True)
class ExpiryStats:
    """Active lot counts for the dashboard; the J-n windows are cumulative."""
    expired: int
    expiring_j1: int
    expiring_j3: int
    expiring_j7: int


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _validate_kind(kind: str) -> None:
    if kind not in LotKind.values:
        raise InvalidArgument(detail=f'Unknown lot kind: {kind}.')


def _require_int(value, name: str, *, minimum: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        qualifier = 'positive' if minimum > 0 else 'non-negative'
        raise InvalidArgument(detail=f'{name} must be a {qualifier} integer.')


def _require_quantity(value, name: str, *, positive: bool) -> Decimal:
    """
    Quantities are whole or fractional stock units (int or Decimal), stored
    with QUANTITY_DECIMAL_PLACES places. Floats are refused; pass Decimal('2.5').
    """
    qualifier = 'positive' if positive else 'non-negative'
    if isinstance(value, bool) or not isinstance(value, (int, Decimal)):
        raise InvalidArgument(detail=f'{name} must be a {qualifier} number (int or Decimal).')
    quantity = Decimal(value)
    if not quantity.is_finite():
        raise InvalidArgument(detail=f'{name} must be a finite number.')
    if quantity < 0 or (positive and quantity == 0):
        raise InvalidArgument(detail=f'{name} must be a {qualifier} number.')
    if quantity >= QUANTITY_LIMIT:
        raise InvalidArgument(detail=f'{name} exceeds the largest storable quantity.')
    if quantity != quantity.quantize(QUANTITY_STEP):
        raise InvalidArgument(
            detail=f'{name} allows at most {QUANTITY_DECIMAL_PLACES} decimal places.',
        )
    return quantity


def _partition(lots, block_expired: bool, today: date):
    """Split FIFO-ordered lots into (eligible lots, expired lot count)."""
    eligible = []
    expired_count = 0
    for lot in lots:
        if is_expired(lot.expiry_date, today):
            expired_count += 1
            if block_expired:
                continue
        eligible.append(lot)
    return eligible, expired_count


def _shortage_message(available: Decimal, needed: Decimal, expired_count: int, block_expired: bool) -> str:
    if block_expired and expired_count:
        return (
            f'Insufficient stock: {available} available '
            f'({expired_count} expired lot(s) excluded), {needed} needed.'
        )
    return f'Insufficient stock: {available} available, {needed} needed.'


def _plan(eligible, quantity_needed: Decimal) -> list[tuple[Lot, Decimal]]:
    plan = []
    remaining = quantity_needed
    for lot in eligible:
        if remaining <= 0:
            break
        taken = min(lot.quantity_remaining, remaining)
        plan.append((lot, taken))
        remaining -= taken
    return plan


# ---------------------------------------------------------------------------
# LotStore
# ---------------------------------------------------------------------------

class LotStore:
    """Durable lot ledger; sole writer of quantity_remaining."""

    @staticmethod
    def create_lot(
        *,
        kind: str,
        product_id: int,
        quantity_initial: Decimal,
        manufacture_date: date | None = None,
        expiry_date: date | None = None,
        origin_type: str = '',
        origin_id: str = '',
        unit_cost: Decimal | None = None,
        lot_number: str | None = None,
        default_expiry_days: int | None = None,
        actor=None,
    ) -> Lot:
        """
        Create a lot from a reception (MP) or a completed production run (PF).

        Without an explicit lot_number one is generated; a collision with a
        concurrent creation is retried a bounded number of times before
        LotNumberConflict is raised. Finished goods default their manufacture
        date to today, and default_expiry_days derives the expiry date from
        it when none is given.
        """
        _validate_kind(kind)
        _require_int(product_id, 'product_id', minimum=0)
        quantity_initial = _require_quantity(quantity_initial, 'quantity_initial', positive=True)

        if kind == LotKind.FINISHED_GOOD and manufacture_date is None:
            manufacture_date = timezone.localdate()
        if expiry_date is None and default_expiry_days:
            expiry_date = (manufacture_date or timezone.localdate()) + timedelta(days=default_expiry_days)
        if manufacture_date and expiry_date and expiry_date < manufacture_date:
            raise InvalidArgument(detail='Expiry date cannot precede manufacture date.')

        max_attempts = settings.LOT_NUMBER_MAX_ATTEMPTS
        for attempt in range(1, max_attempts + 1):
            number = lot_number or LotNumberGenerator.generate(kind)
            try:
                with transaction.atomic():
                    lot = Lot.objects.create(
                        kind=kind,
                        lot_number=number,
                        product_id=product_id,
                        quantity_initial=quantity_initial,
                        quantity_remaining=quantity_initial,
                        manufacture_date=manufacture_date,
                        expiry_date=expiry_date,
                        origin_type=origin_type or '',
                        origin_id=str(origin_id or ''),
                        unit_cost=unit_cost,
                    )
                    LotQuantityChange.objects.create(
                        lot=lot,
                        change_type=LotQuantityChange.ChangeType.CREATION,
                        quantity_before=0,
                        quantity_after=quantity_initial,
                        reference=f'{origin_type}:{origin_id}' if origin_type else '',
                        created_by=actor,
                    )
            except IntegrityError:
                if lot_number:
                    raise LotNumberConflict(
                        detail=f'Lot number {lot_number} already exists for kind {kind}.',
                    )
                logger.warning(
                    'Lot number collision on %s (attempt %d/%d).',
                    number, attempt, max_attempts,
                )
                continue

            logger.info(
                'Lot %s created: kind=%s product=%s qty=%s expiry=%s origin=%s:%s',
                lot.lot_number, kind, product_id, quantity_initial,
                expiry_date, origin_type, origin_id,
            )
            return lot

        raise LotNumberConflict(
            detail=f'Could not allocate a unique {kind} lot number after {max_attempts} attempts.',
        )

    @staticmethod
    def list_lots(kind: str, product_id: int | None = None, include_inactive: bool = False):
        """Lots of a kind (optionally one product) in FIFO order."""
        _validate_kind(kind)
        qs = Lot.objects.for_product(kind, product_id)
        if not include_inactive:
            qs = qs.active()
        return qs.fifo()

    @staticmethod
    def get_lot(lot_id) -> Lot:
        try:
            return Lot.objects.get(pk=lot_id)
        except Lot.DoesNotExist:
            raise LotNotFound()

    @staticmethod
    @transaction.atomic
    def mutate_remaining(
        lot_id,
        new_remaining: Decimal,
        *,
        change_type: str,
        expected_version: int | None = None,
        reference: str = '',
        actor=None,
    ) -> Lot:
        """
        Set quantity_remaining with a single conditional UPDATE.

        The row is only written if its version still matches the one read
        here (or expected_version when the caller already holds a read).
        Raises ConcurrentModification when it does not, LotNotFound when
        the lot does not exist.
        """
        new_remaining = _require_quantity(new_remaining, 'new_remaining', positive=False)

        try:
            current = Lot.objects.get(pk=lot_id)
        except Lot.DoesNotExist:
            raise LotNotFound()

        if expected_version is not None and current.version != expected_version:
            raise ConcurrentModification(
                detail=f'Lot {current.lot_number} changed since it was read.',
            )
        if new_remaining > current.quantity_initial:
            raise InvalidArgument(
                detail=(
                    f'Remaining quantity {new_remaining} exceeds initial '
                    f'quantity {current.quantity_initial} for lot {current.lot_number}.'
                ),
            )

        updated = Lot.objects.filter(pk=lot_id, version=current.version).update(
            quantity_remaining=new_remaining,
            is_active=new_remaining > 0,
            version=F('version') + 1,
            updated_at=timezone.now(),
        )
        if not updated:
            if not Lot.objects.filter(pk=lot_id).exists():
                raise LotNotFound()
            raise ConcurrentModification(
                detail=f'Lot {current.lot_number} changed since it was read.',
            )

        LotQuantityChange.objects.create(
            lot_id=lot_id,
            change_type=change_type,
            quantity_before=current.quantity_remaining,
            quantity_after=new_remaining,
            reference=reference or '',
            created_by=actor,
        )
        current.refresh_from_db()
        return current


# ---------------------------------------------------------------------------
# FIFO consumption
# ---------------------------------------------------------------------------

class FifoConsumptionEngine:
    """Debits lots in expiry-aware FIFO order, all or nothing."""

    @classmethod
    def consume(
        cls,
        kind: str,
        product_id: int,
        quantity_needed: Decimal,
        block_expired: bool = True,
        *,
        reference: str = '',
        actor=None,
    ) -> list[FifoConsumption]:
        """
        Take quantity_needed units of a product from its lots.

        Raises InsufficientStockError (no lot touched) when eligible stock is
        short. A ConcurrentModification restarts the whole feasibility and
        debit cycle, up to LOT_CONSUME_MAX_ATTEMPTS times.
        """
        _validate_kind(kind)
        quantity_needed = _require_quantity(quantity_needed, 'quantity_needed', positive=True)

        max_attempts = settings.LOT_CONSUME_MAX_ATTEMPTS
        for attempt in range(1, max_attempts + 1):
            try:
                return cls._consume_once(
                    kind, product_id, quantity_needed, block_expired,
                    reference=reference, actor=actor,
                )
            except ConcurrentModification:
                if attempt == max_attempts:
                    logger.warning(
                        'FIFO consume %s product=%s qty=%s gave up after %d attempts.',
                        kind, product_id, quantity_needed, max_attempts,
                    )
                    raise
                logger.info(
                    'FIFO consume %s product=%s retrying after concurrent modification (attempt %d/%d).',
                    kind, product_id, attempt, max_attempts,
                )
        raise ConcurrentModification()

    @staticmethod
    @transaction.atomic
    def _consume_once(kind, product_id, quantity_needed, block_expired, *, reference, actor):
        lots = list(
            Lot.objects.for_product(kind, product_id)
            .active()
            .fifo()
            .select_for_update()
        )
        eligible, expired_count = _partition(lots, block_expired, timezone.localdate())
        available = sum((lot.quantity_remaining for lot in eligible), Decimal(0))

        if available < quantity_needed:
            raise InsufficientStockError(
                detail=_shortage_message(available, quantity_needed, expired_count, block_expired),
                available_stock=available,
                quantity_needed=quantity_needed,
                expired_lot_count=expired_count,
            )

        consumptions = []
        for lot, taken in _plan(eligible, quantity_needed):
            LotStore.mutate_remaining(
                lot.pk,
                lot.quantity_remaining - taken,
                change_type=LotQuantityChange.ChangeType.CONSUMPTION,
                expected_version=lot.version,
                reference=reference,
                actor=actor,
            )
            consumptions.append(FifoConsumption(
                lot_id=lot.pk,
                lot_number=lot.lot_number,
                quantity_taken=taken,
                unit_cost=lot.unit_cost,
            ))

        logger.info(
            'FIFO consume %s product=%s qty=%s from %d lot(s): %s',
            kind, product_id, quantity_needed, len(consumptions),
            ', '.join(f'{c.lot_number}x{c.quantity_taken}' for c in consumptions),
        )
        return consumptions

    @staticmethod
    def preview(
        kind: str,
        product_id: int,
        quantity_needed: Decimal,
        block_expired: bool = True,
    ) -> ConsumptionPreview:
        """FIFO plan for quantity_needed without locking or writing anything."""
        _validate_kind(kind)
        quantity_needed = _require_quantity(quantity_needed, 'quantity_needed', positive=True)

        lots = Lot.objects.for_product(kind, product_id).active().fifo()
        eligible, expired_count = _partition(lots, block_expired, timezone.localdate())
        plan = _plan(eligible, quantity_needed)
        planned = sum((taken for _, taken in plan), Decimal(0))
        return ConsumptionPreview(
            consumptions=[
                FifoConsumption(
                    lot_id=lot.pk,
                    lot_number=lot.lot_number,
                    quantity_taken=taken,
                    unit_cost=lot.unit_cost,
                )
                for lot, taken in plan
            ],
            total_planned=planned,
            sufficient=planned >= quantity_needed,
            available_stock=sum((lot.quantity_remaining for lot in eligible), Decimal(0)),
            expired_lot_count=expired_count,
        )


# ---------------------------------------------------------------------------
# Availability
# ---------------------------------------------------------------------------

class StockAvailabilityQuery:
    """
    Read-only availability projection. Takes no lock: a positive answer is
    advisory and may be invalidated by a concurrent consume().
    """

    @staticmethod
    def check(
        kind: str,
        product_id: int,
        quantity_needed: Decimal,
        block_expired: bool = True,
    ) -> AvailabilityCheck:
        _validate_kind(kind)
        quantity_needed = _require_quantity(quantity_needed, 'quantity_needed', positive=True)

        lots = Lot.objects.for_product(kind, product_id).active()
        eligible, expired_count = _partition(lots, block_expired, timezone.localdate())
        available = sum((lot.quantity_remaining for lot in eligible), Decimal(0))

        if available >= quantity_needed:
            return AvailabilityCheck(
                satisfiable=True,
                available_stock=available,
                expired_lot_count=expired_count,
            )
        return AvailabilityCheck(
            satisfiable=False,
            available_stock=available,
            expired_lot_count=expired_count,
            message=_shortage_message(available, quantity_needed, expired_count, block_expired),
        )

    @staticmethod
    def summary(kind: str, product_id: int) -> StockSummary:
        """Non-expired stock on hand plus the oldest lot and nearest expiry."""
        _validate_kind(kind)
        lots = list(Lot.objects.for_product(kind, product_id).active().fifo())
        usable, _ = _partition(lots, True, timezone.localdate())

        expiries = [lot.expiry_date for lot in usable if lot.expiry_date]
        return StockSummary(
            total_available=sum((lot.quantity_remaining for lot in usable), Decimal(0)),
            lots_count=len(usable),
            oldest_lot_date=min((lot.created_at for lot in usable), default=None),
            nearest_expiry_date=min(expiries, default=None),
        )


# ---------------------------------------------------------------------------
# Inventory recount
# ---------------------------------------------------------------------------

class InventoryAdjuster:
    """
    Administrative override of a lot's remaining quantity after a physical
    count. Authorization and the who/when audit trail belong to the caller.
    """

    @staticmethod
    @transaction.atomic
    def adjust(lot_id, new_quantity: Decimal, *, reason: str = '', actor=None) -> Lot:
        new_quantity = _require_quantity(new_quantity, 'new_quantity', positive=False)

        try:
            lot = Lot.objects.select_for_update().get(pk=lot_id)
        except Lot.DoesNotExist:
            raise LotNotFound()

        if new_quantity > lot.quantity_initial:
            raise InvalidArgument(
                detail=(
                    f'Counted quantity {new_quantity} exceeds initial quantity '
                    f'{lot.quantity_initial} for lot {lot.lot_number}.'
                ),
            )

        before = lot.quantity_remaining
        lot = LotStore.mutate_remaining(
            lot.pk,
            new_quantity,
            change_type=LotQuantityChange.ChangeType.ADJUSTMENT,
            expected_version=lot.version,
            reference=reason,
            actor=actor,
        )
        logger.info(
            'Lot %s adjusted by %s: %s -> %s (%s)',
            lot.lot_number, actor, before, new_quantity, reason or 'no reason given',
        )
        return lot


# ---------------------------------------------------------------------------
# Expiry alerts
# ---------------------------------------------------------------------------

class ExpiryAlertScanner:
    """Soon-expired / expired active lots grouped by kind, derived on demand."""

    CACHE_KEY = 'lots:expiry-scan:{within_days}:{today}'

    @classmethod
    def scan(cls, within_days: int | None = None, *, use_cache: bool = True) -> ExpiryScanResult:
        if within_days is None:
            within_days = default_warning_days()
        _require_int(within_days, 'within_days', minimum=0)

        today = timezone.localdate()
        key = cls.CACHE_KEY.format(within_days=within_days, today=today.isoformat())
        if use_cache:
            cached = cache.get(key)
            if cached is not None:
                return cached

        lots = (
            Lot.objects.active()
            .filter(expiry_date__isnull=False, expiry_date__lte=today + timedelta(days=within_days))
            .fifo()
        )
        result = cls._group(lots, today, within_days, ALERT_STATUSES)

        cache.set(key, result, timeout=settings.LOT_EXPIRY_SCAN_CACHE_SECONDS)
        return result

    @classmethod
    def expired(cls) -> ExpiryScanResult:
        today = timezone.localdate()
        lots = Lot.objects.active().filter(expiry_date__lt=today).fifo()
        return cls._group(lots, today, default_warning_days(), {ExpiryStatus.EXPIRED})

    @staticmethod
    def stats() -> ExpiryStats:
        """
        Counts of active lots already expired and expiring within 1, 3 and 7
        days (expiry >= today and < today + n), both kinds together.
        """
        today = timezone.localdate()

        def within(days):
            return Count('pk', filter=Q(expiry_date__gte=today, expiry_date__lt=today + timedelta(days=days)))

        counts = Lot.objects.active().aggregate(
            expired=Count('pk', filter=Q(expiry_date__lt=today)),
            expiring_j1=within(1),
            expiring_j3=within(3),
            expiring_j7=within(7),
        )
        return ExpiryStats(**counts)

    @staticmethod
    def _group(lots, today: date, warning_days: int, statuses) -> ExpiryScanResult:
        result = ExpiryScanResult()
        for lot in lots:
            classification = classify_expiry(lot.expiry_date, today, warning_days)
            if classification.status not in statuses:
                continue
            bucket = result.raw if lot.kind == LotKind.RAW_MATERIAL else result.finished
            bucket.append(LotInfo.from_lot(lot, classification))
        return result
