# accounting/api/serializers/journal_entries.py

from rest_framework import serializers

from accounting.api.fields import MoneyField
from accounting.models.journal import JournalEntry
from accounting.models.journal_line import JournalLine


class JournalLineSerializer(serializers.ModelSerializer):
    account_code = serializers.CharField(source="account.code", read_only=True)
    account_name = serializers.CharField(source="account.name", read_only=True)
    debit = MoneyField(read_only=True)
    credit = MoneyField(read_only=True)

    class Meta:
        model = JournalLine
        fields = ("line_no", "account_code", "account_name", "debit", "credit", "metadata")
        read_only_fields = fields


class JournalEntrySerializer(serializers.ModelSerializer):
    """
    Output serializer (DB truth). Entries are immutable, so this is read-only.
    """

    lines = JournalLineSerializer(many=True, read_only=True)
    reversal_of = serializers.PrimaryKeyRelatedField(read_only=True)

    class Meta:
        model = JournalEntry
        fields = (
            "id",
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
            "lines",
        )
        read_only_fields = fields


class JournalLineInputSerializer(serializers.Serializer):
    account_code = serializers.CharField()
    debit = MoneyField(required=False, default=0)
    credit = MoneyField(required=False, default=0)
    metadata = serializers.JSONField(required=False, default=dict)

    def validate_account_code(self, value):
        v = (value or "").strip()
        if not v:
            raise serializers.ValidationError("account_code is required")
        return v

    def validate_metadata(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError("metadata must be an object")
        return value


class JournalEntryCreateSerializer(serializers.Serializer):
    """
    Input serializer for manual postings (Swagger-visible).
    """

    memo = serializers.CharField()
    source_type = serializers.CharField(default="manual")
    source_id = serializers.CharField()
    idempotency_key = serializers.CharField(required=False, allow_blank=True, default="")
    entry_date = serializers.DateField(required=False, allow_null=True, default=None)
    cashier_session = serializers.UUIDField(required=False, allow_null=True, default=None)
    replay = serializers.BooleanField(required=False, default=False)
    lines = JournalLineInputSerializer(many=True)

    def validate_lines(self, value):
        if len(value) < 2:
            raise serializers.ValidationError("At least two lines are required")
        return value


class JournalEntryReverseSerializer(serializers.Serializer):
    memo = serializers.CharField(required=False, allow_blank=True, default="")
    cashier_session = serializers.UUIDField(required=False, allow_null=True, default=None)
