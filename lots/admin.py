"""
Lots — Django Admin Configuration

Read-only views of the lot ledger and its quantity history. Quantities
change only through the service layer (FIFO consumption, recounts), so
the admin never edits or deletes a lot.

@file lots/admin.py
"""

from django.contrib import admin
from django.utils.html import format_html
from django.utils.translation import gettext_lazy as _

from .expiry import ExpiryStatus
from .models import Lot, LotQuantityChange


def _render_expiry_badge(obj):
    """Shared helper for expiry color coding."""
    classification = obj.expiry
    days = classification.days_until_expiry
    if days is None:
        return '—'
    if classification.status == ExpiryStatus.EXPIRED:
        color, label = '#dc2626', f'EXPIRED ({abs(days)}d ago)'
    elif classification.status == ExpiryStatus.SOON_EXPIRED:
        color, label = '#f97316', f'{days}d left'
    else:
        color, label = '#22c55e', f'{days}d left'
    return format_html(
        '<span style="background:{};color:#fff;padding:2px 8px;'
        'border-radius:4px;font-size:11px;font-weight:600;">{}</span>',
        color, label,
    )


class LotQuantityChangeInline(admin.TabularInline):
    model = LotQuantityChange
    fk_name = 'lot'
    extra = 0
    can_delete = False
    fields = ('change_type', 'quantity_before', 'quantity_after', 'reference', 'created_by', 'created_at')
    readonly_fields = fields
    ordering = ('-created_at',)

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Lot)
class LotAdmin(admin.ModelAdmin):
    list_display = (
        'lot_number', 'kind', 'product_id',
        'quantity_remaining', 'quantity_initial',
        'expiry_date', 'expiry_badge', 'is_active', 'created_at',
    )
    list_filter = ('kind', 'is_active', 'expiry_date')
    search_fields = ('lot_number', 'origin_id')
    readonly_fields = (
        'id', 'kind', 'lot_number', 'product_id',
        'quantity_initial', 'quantity_remaining', 'is_active',
        'manufacture_date', 'expiry_date', 'expiry_badge',
        'origin_type', 'origin_id', 'unit_cost', 'version',
        'created_at', 'updated_at',
    )
    date_hierarchy = 'created_at'
    show_full_result_count = False
    list_per_page = 50
    ordering = ('kind', 'expiry_date', 'created_at')
    inlines = [LotQuantityChangeInline]

    fieldsets = (
        (_('Lot Identification'), {
            'fields': ('id', 'kind', 'lot_number', 'product_id'),
        }),
        (_('Quantities'), {
            'fields': ('quantity_initial', 'quantity_remaining', 'is_active', 'unit_cost'),
        }),
        (_('Dates'), {
            'fields': ('manufacture_date', 'expiry_date', 'expiry_badge'),
        }),
        (_('Origin'), {
            'fields': ('origin_type', 'origin_id'),
        }),
        (_('Audit'), {
            'fields': ('version', 'created_at', 'updated_at'),
            'classes': ('collapse',),
        }),
    )

    @admin.display(description=_('Expiry'))
    def expiry_badge(self, obj):
        return _render_expiry_badge(obj)

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False  # Lots are retained for traceability


@admin.register(LotQuantityChange)
class LotQuantityChangeAdmin(admin.ModelAdmin):
    list_display = (
        'created_at', 'lot', 'change_type',
        'quantity_before', 'quantity_after', 'reference', 'created_by',
    )
    list_filter = ('change_type', 'lot__kind', 'created_at')
    search_fields = ('lot__lot_number', 'reference')
    readonly_fields = (
        'id', 'lot', 'change_type', 'quantity_before', 'quantity_after',
        'reference', 'created_by', 'created_at',
    )
    list_select_related = ('lot', 'created_by')
    show_full_result_count = False
    list_per_page = 50
    date_hierarchy = 'created_at'
    ordering = ('-created_at',)

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False  # INSERT ONLY: no updates

    def has_delete_permission(self, request, obj=None):
        return False  # INSERT ONLY: no deletes
