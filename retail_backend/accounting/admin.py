# accounting/admin.py

from django.contrib import admin

from accounting.models.account import Account
from accounting.models.journal import JournalEntry
from accounting.models.journal_line import JournalLine
from accounting.money import format_money
from accounting.services.balance_service import get_account_balance

# ============================================================
# ACCOUNT
# ============================================================


@admin.register(Account)
class AccountAdmin(admin.ModelAdmin):
    list_display = (
        "code",
        "name",
        "account_type",
        "parent",
        "is_parent",
        "is_active",
        "balance",
    )
    list_filter = ("account_type", "is_parent", "is_active")
    search_fields = ("code", "name")
    ordering = ("code",)
    readonly_fields = ("created_at", "updated_at")

    fieldsets = (
        (
            "Account Identity",
            {
                "fields": ("code", "name", "account_type"),
            },
        ),
        (
            "Hierarchy",
            {
                "fields": ("parent", "is_parent"),
            },
        ),
        (
            "Status",
            {
                "fields": ("is_active",),
            },
        ),
        (
            "System Fields",
            {
                "fields": ("created_at", "updated_at"),
            },
        ),
    )

    @admin.display(description="Balance")
    def balance(self, obj):
        # parent accounts show the rollup of their party sub-accounts
        return format_money(get_account_balance(obj))


# ============================================================
# JOURNAL ENTRY (READ-ONLY)
# ============================================================


class JournalLineInline(admin.TabularInline):
    model = JournalLine
    extra = 0
    can_delete = False
    fields = ("line_no", "account", "debit", "credit", "metadata")
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(JournalEntry)
class JournalEntryAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "reference",
        "memo",
        "entry_date",
        "posted_at",
        "cashier_session",
    )
    list_filter = ("source_type", "entry_date")
    search_fields = ("memo", "reference", "source_id")
    ordering = ("-posted_at",)
    inlines = [JournalLineInline]

    readonly_fields = (
        "reference",
        "source_type",
        "source_id",
        "idempotency_key",
        "memo",
        "entry_date",
        "posted_at",
        "cashier_session",
        "reversal_of",
        "created_by",
    )

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
