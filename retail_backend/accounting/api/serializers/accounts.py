# accounting/api/serializers/accounts.py

from rest_framework import serializers

from accounting.api.fields import MoneyField
from accounting.models.account import Account


class AccountListSerializer(serializers.ModelSerializer):
    """
    Read-only serializer for listing accounts.
    UI needs: code, name, type, hierarchy (and id for keys).
    """

    parent_code = serializers.CharField(source="parent.code", read_only=True, default=None)

    class Meta:
        model = Account
        fields = ("id", "code", "name", "account_type", "parent_code", "is_parent", "is_active")
        read_only_fields = fields


class AccountBalanceSerializer(serializers.Serializer):
    code = serializers.CharField()
    name = serializers.CharField()
    account_type = serializers.CharField()
    debit_total = MoneyField()
    credit_total = MoneyField()
    balance = MoneyField(allow_negative=True)
    as_of = serializers.CharField(allow_null=True)
    cashier_session = serializers.UUIDField(allow_null=True)
