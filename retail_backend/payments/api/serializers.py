# payments/api/serializers.py

from rest_framework import serializers

from accounting.api.fields import MoneyField
from payments.models.invoice import Invoice
from payments.models.payment_allocation import PaymentAllocation


class InvoiceSerializer(serializers.ModelSerializer):
    total_amount = MoneyField(read_only=True)

    class Meta:
        model = Invoice
        fields = (
            "id",
            "party",
            "invoice_type",
            "reference",
            "total_amount",
            "status",
            "is_credit",
            "issued_at",
            "due_date",
            "memo",
            "journal_entry",
            "created_by",
            "created_at",
        )
        read_only_fields = fields


class InvoiceCreateSerializer(serializers.Serializer):
    party_id = serializers.UUIDField()
    total_amount = MoneyField(positive=True)
    reference = serializers.CharField(required=False, allow_blank=True, default="")
    invoice_type = serializers.ChoiceField(
        choices=[Invoice.SALE, Invoice.PURCHASE], required=False, allow_null=True, default=None
    )
    is_credit = serializers.BooleanField(default=True)
    issued_at = serializers.DateTimeField(required=False, allow_null=True, default=None)
    memo = serializers.CharField(required=False, allow_blank=True, default="")
    confirm = serializers.BooleanField(default=False)


class UnpaidInvoiceSerializer(serializers.Serializer):
    invoice_id = serializers.UUIDField()
    reference = serializers.CharField()
    invoice_type = serializers.CharField()
    issued_at = serializers.DateTimeField()
    due_date = serializers.DateField(allow_null=True)
    total_amount = MoneyField()
    amount_paid = MoneyField()
    outstanding = MoneyField()
    status = serializers.CharField()


class _PaymentOptionsSerializer(serializers.Serializer):
    payment_method = serializers.CharField(required=False, allow_blank=True, default="cash")
    settlement_account_code = serializers.CharField(required=False, allow_null=True, default=None)
    cashier_session = serializers.UUIDField(required=False, allow_null=True, default=None)
    reference = serializers.CharField(required=False, allow_blank=True, default="")
    idempotency_key = serializers.CharField(required=False, allow_blank=True, default="", max_length=100)

    def validate_settlement_account_code(self, value):
        value = (value or "").strip()
        return value or None


class BulkAllocationSerializer(_PaymentOptionsSerializer):
    payment_amount = MoneyField(positive=True)
    invoice_ids = serializers.ListField(
        child=serializers.UUIDField(), required=False, allow_null=True, default=None
    )


class SingleAllocationSerializer(_PaymentOptionsSerializer):
    payment_amount = MoneyField(positive=True, required=False, allow_null=True, default=None)


class InvoiceAllocationSerializer(serializers.Serializer):
    invoice_id = serializers.UUIDField()
    reference = serializers.CharField()
    amount_paid = MoneyField()


class AllocationResultSerializer(serializers.Serializer):
    allocation_id = serializers.UUIDField()
    invoices_paid = InvoiceAllocationSerializer(many=True)
    total_allocated = MoneyField()
    excess_payment = MoneyField()
    remaining_balance = MoneyField()
    replayed = serializers.BooleanField()


class PaymentAllocationSerializer(serializers.ModelSerializer):
    payment_amount = MoneyField(read_only=True)
    total_allocated = MoneyField(read_only=True)
    excess_payment = MoneyField(read_only=True)
    remaining_balance = MoneyField(read_only=True)
    settlement_account = serializers.CharField(source="settlement_account.code", read_only=True)

    class Meta:
        model = PaymentAllocation
        fields = (
            "id",
            "party",
            "mode",
            "payment_amount",
            "total_allocated",
            "excess_payment",
            "remaining_balance",
            "settlement_account",
            "payment_method",
            "reference",
            "idempotency_key",
            "cashier_session",
            "created_by",
            "created_at",
        )
        read_only_fields = fields
