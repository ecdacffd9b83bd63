"""
PATH: accounting/api/views/trial_balance.py

TRIAL BALANCE API VIEW (READ-ONLY)

GET /api/accounting/trial-balance/?as_of=YYYY-MM-DD
Requires capability: ledger.view
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from accounting.api.query import parse_as_of
from accounting.money import ledger_currency, to_major_units
from accounting.services.balance_service import get_trial_balance
from permissions.roles import CAP_LEDGER_VIEW, HasCapability


def _money(minor: int) -> str:
    return str(to_major_units(minor))


@extend_schema(
    tags=["accounting"],
    parameters=[
        OpenApiParameter(
            name="as_of",
            type=str,
            location=OpenApiParameter.QUERY,
            required=False,
            description="Cut-off: YYYY-MM-DD (entry date) or ISO datetime (posting time).",
        ),
    ],
)
class TrialBalanceView(APIView):
    permission_classes = [IsAuthenticated, HasCapability]
    required_capability = CAP_LEDGER_VIEW

    def get(self, request):
        as_of = parse_as_of(request.query_params.get("as_of"))
        tb = get_trial_balance(as_of=as_of)

        return Response(
            {
                "currency": ledger_currency(),
                "as_of": as_of.isoformat() if as_of else None,
                "rows": [
                    {
                        **row,
                        "debit_total": _money(row["debit_total"]),
                        "credit_total": _money(row["credit_total"]),
                        "balance": _money(row["balance"]),
                    }
                    for row in tb["rows"]
                ],
                "total_debits": _money(tb["total_debits"]),
                "total_credits": _money(tb["total_credits"]),
                "is_balanced": tb["is_balanced"],
            },
            status=status.HTTP_200_OK,
        )
