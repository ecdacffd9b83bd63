# cashier/api/serializers.py

from rest_framework import serializers

from accounting.api.fields import MoneyField
from cashier.models.cash_count import CashCount
from cashier.models.cashier_session import CashierSession
from cashier.models.mobile_money_verification import MobileMoneyVerification
from cashier.models.reconciliation import Reconciliation, ReconciliationLine


class AmountMapField(serializers.DictField):
    """{"1000": "150.00"} on the wire -> {"1000": 15000} in services."""

    child = MoneyField()

    def to_representation(self, value):
        return {str(k): MoneyField().to_representation(v) for k, v in (value or {}).items()}


# ======================================================
# SESSIONS
# ======================================================


class CashierSessionSerializer(serializers.ModelSerializer):
    opening_balances = AmountMapField(read_only=True)
    closing_declared = AmountMapField(read_only=True)

    class Meta:
        model = CashierSession
        fields = (
            "id",
            "channel",
            "cashier_id",
            "status",
            "opened_at",
            "closed_at",
            "reconciled_at",
            "reconciled_by",
            "opening_balances",
            "closing_declared",
            "notes",
        )
        read_only_fields = fields


class SessionOpenSerializer(serializers.Serializer):
    channel = serializers.CharField(max_length=64)
    cashier_id = serializers.CharField(max_length=100, required=False, allow_blank=True, default="")
    opening_balances = AmountMapField(required=False, default=dict)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class SessionCloseSerializer(serializers.Serializer):
    declared_closing_amounts = AmountMapField()
    notes = serializers.CharField(required=False, allow_blank=True, default="")

    def validate_declared_closing_amounts(self, value):
        if not value:
            raise serializers.ValidationError("At least one declared amount is required")
        return value


class SessionAccountSummarySerializer(serializers.Serializer):
    account_code = serializers.CharField()
    account_name = serializers.CharField()
    opening = MoneyField()
    ledger_net = MoneyField(allow_negative=True)
    expected = MoneyField(allow_negative=True)
    declared = MoneyField(allow_null=True)
    variance = MoneyField(allow_negative=True)
    has_variance = serializers.BooleanField()


class SessionSummarySerializer(serializers.Serializer):
    session_id = serializers.UUIDField()
    channel = serializers.CharField()
    cashier_id = serializers.CharField()
    status = serializers.CharField()
    opened_at = serializers.DateTimeField()
    closed_at = serializers.DateTimeField(allow_null=True)
    reconciled_at = serializers.DateTimeField(allow_null=True)
    accounts = SessionAccountSummarySerializer(many=True)
    total_expected = MoneyField(allow_negative=True)
    total_declared = MoneyField()
    total_variance = MoneyField(allow_negative=True)


# ======================================================
# CASH COUNTS
# ======================================================


class CashCountSerializer(serializers.ModelSerializer):
    """Full view for reviewers (expected / variance visible)."""

    account = serializers.CharField(source="account.code", read_only=True)
    declared_amount = MoneyField(read_only=True)
    expected_amount = MoneyField(read_only=True, allow_negative=True)
    variance = MoneyField(read_only=True, allow_negative=True)
    tolerance = MoneyField(read_only=True)

    class Meta:
        model = CashCount
        fields = (
            "id",
            "session",
            "account",
            "count_type",
            "declared_amount",
            "expected_amount",
            "variance",
            "tolerance",
            "has_variance",
            "variance_reason",
            "counted_by",
            "taken_at",
            "reviewed_by",
            "reviewed_at",
            "review_notes",
        )
        read_only_fields = fields


class BlindCashCountSerializer(serializers.ModelSerializer):
    """What the cashier sees: whether there is a difference, never how much."""

    account = serializers.CharField(source="account.code", read_only=True)
    declared_amount = MoneyField(read_only=True)

    class Meta:
        model = CashCount
        fields = (
            "id",
            "session",
            "account",
            "count_type",
            "declared_amount",
            "has_variance",
            "variance_reason",
            "taken_at",
            "reviewed_at",
        )
        read_only_fields = fields


class CashCountCreateSerializer(serializers.Serializer):
    declared_amount = MoneyField()
    account_code = serializers.CharField(required=False, allow_null=True, allow_blank=True, default=None)
    count_type = serializers.ChoiceField(
        choices=[CashCount.TYPE_OPENING, CashCount.TYPE_INTERIM],
        default=CashCount.TYPE_INTERIM,
    )
    variance_reason = serializers.CharField(required=False, allow_blank=True, default="")


class VarianceExplanationSerializer(serializers.Serializer):
    reason = serializers.CharField()


class CashCountReviewSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, default="")


# ======================================================
# MOBILE MONEY
# ======================================================


class MobileMoneyVerificationSerializer(serializers.ModelSerializer):
    account = serializers.CharField(source="account.code", read_only=True)

    class Meta:
        model = MobileMoneyVerification
        fields = (
            "id",
            "session",
            "account",
            "transaction_ids",
            "flagged_transaction_ids",
            "all_confirmed",
            "notes",
            "verified_by",
            "verified_at",
        )
        read_only_fields = fields


class MobileMoneyVerifySerializer(serializers.Serializer):
    transaction_ids = serializers.ListField(child=serializers.CharField(), allow_empty=True)
    flagged_transaction_ids = serializers.ListField(
        child=serializers.CharField(), required=False, default=list
    )
    account_code = serializers.CharField(required=False, allow_null=True, allow_blank=True, default=None)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


# ======================================================
# RECONCILIATION
# ======================================================


class ReconciliationLineSerializer(serializers.ModelSerializer):
    account = serializers.CharField(source="account.code", read_only=True)
    declared = MoneyField(read_only=True)
    expected = MoneyField(read_only=True, allow_negative=True)
    variance = MoneyField(read_only=True, allow_negative=True)
    tolerance = MoneyField(read_only=True)

    class Meta:
        model = ReconciliationLine
        fields = (
            "account",
            "declared",
            "expected",
            "variance",
            "tolerance",
            "has_variance",
            "requires_review",
            "adjustment_entry",
        )
        read_only_fields = fields


class ReconciliationSerializer(serializers.ModelSerializer):
    lines = ReconciliationLineSerializer(many=True, read_only=True)
    declared_total = MoneyField(read_only=True)
    expected_total = MoneyField(read_only=True, allow_negative=True)
    variance_total = MoneyField(read_only=True, allow_negative=True)

    class Meta:
        model = Reconciliation
        fields = (
            "id",
            "scope",
            "session",
            "as_of",
            "status",
            "declared_total",
            "expected_total",
            "variance_total",
            "notes",
            "created_by",
            "created_at",
            "approved_by",
            "approved_at",
            "lines",
        )
        read_only_fields = fields


class ReconciliationCreateSerializer(serializers.Serializer):
    session_id = serializers.UUIDField(required=False, allow_null=True, default=None)
    declared_balances = AmountMapField()
    as_of = serializers.DateTimeField(required=False, allow_null=True, default=None)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class ReconciliationApproveSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, default="")
