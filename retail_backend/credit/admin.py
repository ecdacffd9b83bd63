# credit/admin.py

from django.contrib import admin

from credit.models.credit_profile import CreditProfile
from credit.models.party import Party


@admin.register(Party)
class PartyAdmin(admin.ModelAdmin):
    list_display = ("name", "party_type", "phone", "is_active", "created_at")
    list_filter = ("party_type", "is_active")
    search_fields = ("name", "phone", "external_ref")
    ordering = ("name",)


# Limits and approvals change only through credit_service (audit logging).
@admin.register(CreditProfile)
class CreditProfileAdmin(admin.ModelAdmin):
    list_display = (
        "party",
        "is_approved",
        "credit_limit",
        "credit_duration_days",
        "is_frozen",
        "last_repayment_at",
    )
    list_filter = ("is_approved", "is_frozen")
    search_fields = ("party__name",)
    readonly_fields = (
        "party",
        "is_approved",
        "credit_limit",
        "credit_duration_days",
        "is_frozen",
        "approved_by",
        "approved_at",
        "frozen_at",
        "last_repayment_at",
        "last_repayment_amount",
        "created_at",
        "updated_at",
    )

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
