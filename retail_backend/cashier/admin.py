# cashier/admin.py

from django.contrib import admin

from cashier.models.cash_count import CashCount
from cashier.models.cashier_session import CashierSession
from cashier.models.mobile_money_verification import MobileMoneyVerification
from cashier.models.reconciliation import Reconciliation, ReconciliationLine


class _ReadOnlyAdmin(admin.ModelAdmin):
    """Cash control records change only through cashier services."""

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class CashCountInline(admin.TabularInline):
    model = CashCount
    extra = 0
    can_delete = False
    fields = ("count_type", "account", "declared_amount", "expected_amount", "variance", "has_variance", "reviewed_at")
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(CashierSession)
class CashierSessionAdmin(_ReadOnlyAdmin):
    list_display = ("id", "channel", "cashier_id", "status", "opened_at", "closed_at", "reconciled_at")
    list_filter = ("status", "channel")
    search_fields = ("cashier_id", "channel")
    date_hierarchy = "opened_at"
    inlines = [CashCountInline]


@admin.register(CashCount)
class CashCountAdmin(_ReadOnlyAdmin):
    list_display = ("id", "session", "account", "count_type", "declared_amount", "variance", "has_variance", "reviewed_at")
    list_filter = ("count_type", "has_variance")
    search_fields = ("session__cashier_id", "variance_reason")


@admin.register(MobileMoneyVerification)
class MobileMoneyVerificationAdmin(_ReadOnlyAdmin):
    list_display = ("id", "session", "account", "all_confirmed", "verified_by", "verified_at")
    list_filter = ("all_confirmed",)


class ReconciliationLineInline(admin.TabularInline):
    model = ReconciliationLine
    extra = 0
    can_delete = False
    fields = ("account", "declared", "expected", "variance", "has_variance", "requires_review", "adjustment_entry")
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Reconciliation)
class ReconciliationAdmin(_ReadOnlyAdmin):
    list_display = ("id", "scope", "session", "status", "variance_total", "created_at", "approved_by")
    list_filter = ("scope", "status")
    inlines = [ReconciliationLineInline]
