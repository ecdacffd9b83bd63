# credit/api/serializers.py

from rest_framework import serializers

from accounting.api.fields import MoneyField
from credit.models.party import Party


class PartySerializer(serializers.ModelSerializer):
    class Meta:
        model = Party
        fields = ("id", "party_type", "name", "phone", "external_ref", "is_active", "created_at")
        read_only_fields = ("id", "is_active", "created_at")


class PartyCreateSerializer(serializers.Serializer):
    name = serializers.CharField()
    party_type = serializers.ChoiceField(choices=[Party.CUSTOMER, Party.SUPPLIER], default=Party.CUSTOMER)
    phone = serializers.CharField(required=False, allow_blank=True, default="")
    external_ref = serializers.CharField(required=False, allow_blank=True, default="")

    def validate_name(self, value):
        v = (value or "").strip()
        if not v:
            raise serializers.ValidationError("name is required")
        return v


class CreditSummarySerializer(serializers.Serializer):
    """
    Output serializer for CreditSummary (outstanding/available are ledger-derived).
    """

    party_id = serializers.UUIDField()
    party_type = serializers.CharField()
    approved = serializers.BooleanField()
    limit = MoneyField()
    outstanding = MoneyField(allow_negative=True)
    available = MoneyField()
    frozen = serializers.BooleanField()
    duration = serializers.IntegerField()
    last_repayment_at = serializers.DateTimeField(allow_null=True)
    last_repayment_amount = MoneyField(allow_null=True)


class CreditValidationSerializer(serializers.Serializer):
    is_valid = serializers.BooleanField()
    would_exceed_limit = serializers.BooleanField()
    reason = serializers.CharField(allow_blank=True)
    outstanding = MoneyField(allow_negative=True)
    available = MoneyField()
    amount = MoneyField()


class CreditValidateInputSerializer(serializers.Serializer):
    amount = MoneyField()


class CreditApproveSerializer(serializers.Serializer):
    approved = serializers.BooleanField()
    credit_limit = MoneyField(required=False, allow_null=True, default=None)
    credit_duration_days = serializers.IntegerField(required=False, allow_null=True, default=None, min_value=1)


class CreditLimitSerializer(serializers.Serializer):
    credit_limit = MoneyField()
    credit_duration_days = serializers.IntegerField(required=False, allow_null=True, default=None, min_value=1)


class CreditDurationSerializer(serializers.Serializer):
    credit_duration_days = serializers.IntegerField(min_value=1)


class CreditFreezeSerializer(serializers.Serializer):
    frozen = serializers.BooleanField()
