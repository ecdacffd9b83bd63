# accounting/api/views/accounts.py

"""
PATH: accounting/api/views/accounts.py

ACCOUNTS API (READ-ONLY)

GET /api/accounting/accounts/
    ?account_type=ASSET&is_active=true&is_parent=false

GET /api/accounting/accounts/<code>/balance/?as_of=...&cashier_session=...
    Balance is derived from journal lines on every call; parents roll up children.

Requires capability: ledger.view
"""

from django.core.exceptions import ValidationError as DjangoValidationError
from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status
from rest_framework.exceptions import PermissionDenied, ValidationError
from rest_framework.generics import GenericAPIView, ListAPIView
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from accounting.api.query import parse_as_of
from accounting.api.serializers.accounts import (
    AccountBalanceSerializer,
    AccountListSerializer,
)
from accounting.models.account import Account
from accounting.services.balance_service import get_account_totals
from accounting.services.exceptions import AccountResolutionError
from permissions.roles import CAP_LEDGER_VIEW, user_has_capability


@extend_schema(tags=["accounting"])
class AccountListView(ListAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = AccountListSerializer
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ["account_type", "is_active", "is_parent"]

    def get_queryset(self):
        if not user_has_capability(self.request.user, CAP_LEDGER_VIEW):
            raise PermissionDenied("You do not have permission to view accounts.")
        return Account.objects.select_related("parent").order_by("code")


class AccountBalanceView(GenericAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = AccountBalanceSerializer

    @extend_schema(
        tags=["accounting"],
        parameters=[
            OpenApiParameter(name="as_of", type=str, required=False),
            OpenApiParameter(name="cashier_session", type=str, required=False),
        ],
        responses={200: AccountBalanceSerializer, 403: dict, 404: dict},
    )
    def get(self, request, code, *args, **kwargs):
        if not user_has_capability(request.user, CAP_LEDGER_VIEW):
            return Response(
                {"detail": "You do not have permission to view balances."},
                status=status.HTTP_403_FORBIDDEN,
            )

        as_of = parse_as_of(request.query_params.get("as_of"))
        session = (request.query_params.get("cashier_session") or "").strip() or None

        try:
            totals = get_account_totals(code, as_of=as_of, cashier_session=session)
        except AccountResolutionError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_404_NOT_FOUND)
        except DjangoValidationError as exc:
            raise ValidationError({"cashier_session": exc.messages}) from exc

        account = totals["account"]
        payload = {
            "code": account.code,
            "name": account.name,
            "account_type": account.account_type,
            "debit_total": totals["debit_total"],
            "credit_total": totals["credit_total"],
            "balance": totals["balance"],
            "as_of": as_of.isoformat() if as_of else None,
            "cashier_session": session,
        }
        return Response(AccountBalanceSerializer(payload).data, status=status.HTTP_200_OK)
