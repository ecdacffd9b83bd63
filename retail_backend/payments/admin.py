# payments/admin.py

from django.contrib import admin

from payments.models.invoice import Invoice
from payments.models.invoice_payment import InvoicePayment
from payments.models.payment_allocation import PaymentAllocation


class InvoicePaymentInline(admin.TabularInline):
    model = InvoicePayment
    fk_name = "allocation"
    extra = 0
    can_delete = False
    fields = ("step", "invoice", "amount", "settlement_account", "journal_entry")
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ("reference", "party", "invoice_type", "total_amount", "status", "issued_at", "due_date")
    list_filter = ("invoice_type", "status", "is_credit")
    search_fields = ("reference", "party__name")
    ordering = ("-issued_at",)
    # Status and postings move only through invoice_service / allocation_service.
    readonly_fields = ("status", "journal_entry", "due_date", "created_by", "created_at", "updated_at")


@admin.register(PaymentAllocation)
class PaymentAllocationAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "party",
        "mode",
        "payment_amount",
        "total_allocated",
        "excess_payment",
        "remaining_balance",
        "created_at",
    )
    list_filter = ("mode", "payment_method")
    search_fields = ("party__name", "reference", "idempotency_key")
    inlines = [InvoicePaymentInline]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
