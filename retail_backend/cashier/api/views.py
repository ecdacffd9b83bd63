# cashier/api/views.py

"""
PATH: cashier/api/views.py

CASHIER SESSION & RECONCILIATION API

GET  /api/cashier/sessions/                          cashier.operate   (?channel=&cashier_id=&status=)
POST /api/cashier/sessions/                          cashier.operate   open
GET  /api/cashier/sessions/current/?channel=         cashier.operate   caller's open session
GET  /api/cashier/sessions/<id>/                     cashier.review    summary (expected / variance)
POST /api/cashier/sessions/<id>/close/               cashier.operate
GET  /api/cashier/sessions/<id>/counts/              cashier.operate   blind unless cashier.review
POST /api/cashier/sessions/<id>/counts/              cashier.operate   blind count
POST /api/cashier/sessions/<id>/mobile-money/verify/ cashier.operate
POST /api/cashier/counts/<id>/explain/               cashier.operate
POST /api/cashier/counts/<id>/review/                cashier.review
GET  /api/cashier/counts/pending-review/?channel=    cashier.review
GET  /api/cashier/reconciliations/                   cashier.review    (?session=&scope=&status=)
POST /api/cashier/reconciliations/                   cashier.review
POST /api/cashier/reconciliations/<id>/approve/      reconciliation.approve

A cashier never sees expected amounts for their own counts.
"""

from dataclasses import asdict

from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.generics import GenericAPIView
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from accounting.services.exceptions import AccountingServiceError
from accounting.types import SessionId
from cashier.api.serializers import (
    BlindCashCountSerializer,
    CashCountCreateSerializer,
    CashCountReviewSerializer,
    CashCountSerializer,
    CashierSessionSerializer,
    MobileMoneyVerificationSerializer,
    MobileMoneyVerifySerializer,
    ReconciliationApproveSerializer,
    ReconciliationCreateSerializer,
    ReconciliationSerializer,
    SessionCloseSerializer,
    SessionOpenSerializer,
    SessionSummarySerializer,
    VarianceExplanationSerializer,
)
from cashier.services.cash_count_service import (
    explain_variance,
    list_pending_variance_reviews,
    list_session_counts,
    record_cash_count,
    review_cash_count,
)
from cashier.services.exceptions import (
    CashCountNotFoundError,
    CashierError,
    ReconciliationNotFoundError,
    SessionAlreadyOpenError,
    SessionNotFoundError,
)
from cashier.services.mobile_money_service import verify_mobile_money
from cashier.services.reconciliation_service import (
    approve_reconciliation,
    create_reconciliation,
    list_reconciliations,
)
from cashier.services.session_service import (
    close_session,
    get_open_session,
    get_session,
    get_session_summary,
    list_sessions,
    open_session,
)
from permissions.roles import (
    CAP_CASHIER_OPERATE,
    CAP_CASHIER_REVIEW,
    CAP_RECONCILIATION_APPROVE,
    HasCapability,
    actor_label,
    user_has_capability,
)

NOT_FOUND_ERRORS = (SessionNotFoundError, CashCountNotFoundError, ReconciliationNotFoundError)
DOMAIN_ERRORS = (CashierError, AccountingServiceError)


def _forbidden(message: str) -> Response:
    return Response({"detail": message}, status=status.HTTP_403_FORBIDDEN)


def _error_response(exc: Exception) -> Response:
    """Domain error -> HTTP status (404 missing, 400 bad input, 409 lifecycle)."""
    if isinstance(exc, NOT_FOUND_ERRORS):
        return Response({"detail": str(exc)}, status=status.HTTP_404_NOT_FOUND)

    body = {"detail": str(exc)}
    if isinstance(exc, SessionAlreadyOpenError) and exc.existing_session_id:
        body["existing_session_id"] = str(exc.existing_session_id)
    problems = getattr(exc, "problems", None)
    if problems:
        body["problems"] = problems

    if isinstance(exc, AccountingServiceError) or type(exc) is CashierError:
        return Response(body, status=status.HTTP_400_BAD_REQUEST)
    return Response(body, status=status.HTTP_409_CONFLICT)


# ======================================================
# SESSIONS
# ======================================================


class SessionListOpenView(GenericAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = CashierSessionSerializer

    @extend_schema(tags=["cashier"], responses={200: CashierSessionSerializer(many=True), 403: dict})
    def get(self, request, *args, **kwargs):
        if not user_has_capability(request.user, CAP_CASHIER_OPERATE):
            return _forbidden("You do not have permission to view cashier sessions.")

        cashier_id = request.query_params.get("cashier_id")
        if not user_has_capability(request.user, CAP_CASHIER_REVIEW):
            # Cashiers only ever see their own sessions.
            cashier_id = actor_label(request.user)

        qs = list_sessions(
            channel=request.query_params.get("channel"),
            cashier_id=cashier_id,
            status=request.query_params.get("status"),
        )
        page = self.paginate_queryset(qs)
        if page is not None:
            return self.get_paginated_response(CashierSessionSerializer(page, many=True).data)
        return Response(CashierSessionSerializer(qs, many=True).data)

    @extend_schema(
        tags=["cashier"],
        request=SessionOpenSerializer,
        responses={201: CashierSessionSerializer, 400: dict, 403: dict, 409: dict},
    )
    def post(self, request, *args, **kwargs):
        if not user_has_capability(request.user, CAP_CASHIER_OPERATE):
            return _forbidden("You do not have permission to open cashier sessions.")

        s = SessionOpenSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data

        cashier_id = (data["cashier_id"] or "").strip() or actor_label(request.user)
        if cashier_id != actor_label(request.user) and not user_has_capability(request.user, CAP_CASHIER_REVIEW):
            return _forbidden("You can only open sessions for yourself.")

        try:
            session = open_session(
                data["channel"],
                cashier_id,
                opening_balances=data["opening_balances"],
                notes=data["notes"],
            )
        except DOMAIN_ERRORS as exc:
            return _error_response(exc)

        return Response(CashierSessionSerializer(session).data, status=status.HTTP_201_CREATED)


class CurrentSessionView(GenericAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = CashierSessionSerializer

    @extend_schema(tags=["cashier"], responses={200: CashierSessionSerializer, 403: dict, 404: dict})
    def get(self, request, *args, **kwargs):
        if not user_has_capability(request.user, CAP_CASHIER_OPERATE):
            return _forbidden("You do not have permission to view cashier sessions.")

        channel = (request.query_params.get("channel") or "").strip()
        if not channel:
            return Response({"detail": "channel is required"}, status=status.HTTP_400_BAD_REQUEST)

        session = get_open_session(channel, actor_label(request.user))
        if session is None:
            return Response({"detail": "No open session"}, status=status.HTTP_404_NOT_FOUND)
        return Response(CashierSessionSerializer(session).data)


class SessionSummaryView(GenericAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = SessionSummarySerializer

    @extend_schema(tags=["cashier"], responses={200: SessionSummarySerializer, 403: dict, 404: dict})
    def get(self, request, session_id, *args, **kwargs):
        if not user_has_capability(request.user, CAP_CASHIER_REVIEW):
            return _forbidden("You do not have permission to view session figures.")

        try:
            summary = get_session_summary(SessionId(session_id))
        except DOMAIN_ERRORS as exc:
            return _error_response(exc)

        return Response(SessionSummarySerializer(asdict(summary)).data)


class SessionCloseView(GenericAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = SessionCloseSerializer

    @extend_schema(
        tags=["cashier"],
        request=SessionCloseSerializer,
        responses={200: CashierSessionSerializer, 400: dict, 403: dict, 404: dict, 409: dict},
    )
    def post(self, request, session_id, *args, **kwargs):
        if not user_has_capability(request.user, CAP_CASHIER_OPERATE):
            return _forbidden("You do not have permission to close cashier sessions.")

        s = self.get_serializer(data=request.data)
        s.is_valid(raise_exception=True)

        try:
            summary = close_session(
                session_id,
                s.validated_data["declared_closing_amounts"],
                notes=s.validated_data["notes"],
                closed_by=actor_label(request.user),
            )
        except DOMAIN_ERRORS as exc:
            return _error_response(exc)

        # Blind close: reviewers get the figures, cashiers get the session state.
        if user_has_capability(request.user, CAP_CASHIER_REVIEW):
            return Response(SessionSummarySerializer(asdict(summary)).data)
        return Response(CashierSessionSerializer(get_session(summary.session_id)).data)


# ======================================================
# CASH COUNTS
# ======================================================


def _count_serializer_for(user):
    return CashCountSerializer if user_has_capability(user, CAP_CASHIER_REVIEW) else BlindCashCountSerializer


class SessionCashCountsView(GenericAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = CashCountCreateSerializer

    @extend_schema(tags=["cashier"], responses={200: CashCountSerializer(many=True), 403: dict, 404: dict})
    def get(self, request, session_id, *args, **kwargs):
        if not user_has_capability(request.user, CAP_CASHIER_OPERATE):
            return _forbidden("You do not have permission to view cash counts.")

        try:
            get_session(SessionId(session_id))
        except DOMAIN_ERRORS as exc:
            return _error_response(exc)

        counts = list_session_counts(session_id)
        return Response(_count_serializer_for(request.user)(counts, many=True).data)

    @extend_schema(
        tags=["cashier"],
        request=CashCountCreateSerializer,
        responses={201: BlindCashCountSerializer, 400: dict, 403: dict, 404: dict, 409: dict},
    )
    def post(self, request, session_id, *args, **kwargs):
        if not user_has_capability(request.user, CAP_CASHIER_OPERATE):
            return _forbidden("You do not have permission to record cash counts.")

        s = self.get_serializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data

        try:
            count = record_cash_count(
                session_id,
                data["declared_amount"],
                account_code=data["account_code"] or None,
                count_type=data["count_type"],
                variance_reason=data["variance_reason"],
                counted_by=actor_label(request.user),
            )
        except DOMAIN_ERRORS as exc:
            return _error_response(exc)

        return Response(_count_serializer_for(request.user)(count).data, status=status.HTTP_201_CREATED)


class VarianceExplainView(GenericAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = VarianceExplanationSerializer

    @extend_schema(tags=["cashier"], request=VarianceExplanationSerializer, responses={200: BlindCashCountSerializer})
    def post(self, request, count_id, *args, **kwargs):
        if not user_has_capability(request.user, CAP_CASHIER_OPERATE):
            return _forbidden("You do not have permission to explain variances.")

        s = self.get_serializer(data=request.data)
        s.is_valid(raise_exception=True)

        try:
            count = explain_variance(count_id, s.validated_data["reason"])
        except DOMAIN_ERRORS as exc:
            return _error_response(exc)

        return Response(_count_serializer_for(request.user)(count).data)


class CashCountReviewView(GenericAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = CashCountReviewSerializer

    @extend_schema(tags=["cashier"], request=CashCountReviewSerializer, responses={200: CashCountSerializer})
    def post(self, request, count_id, *args, **kwargs):
        if not user_has_capability(request.user, CAP_CASHIER_REVIEW):
            return _forbidden("You do not have permission to review cash counts.")

        s = self.get_serializer(data=request.data)
        s.is_valid(raise_exception=True)

        try:
            count = review_cash_count(
                count_id, reviewer_id=actor_label(request.user), notes=s.validated_data["notes"]
            )
        except DOMAIN_ERRORS as exc:
            return _error_response(exc)

        return Response(CashCountSerializer(count).data)


class PendingVarianceReviewsView(GenericAPIView):
    permission_classes = [IsAuthenticated, HasCapability]
    required_capability = CAP_CASHIER_REVIEW
    serializer_class = CashCountSerializer

    @extend_schema(tags=["cashier"], responses={200: CashCountSerializer(many=True), 403: dict})
    def get(self, request, *args, **kwargs):
        qs = list_pending_variance_reviews(request.query_params.get("channel"))
        page = self.paginate_queryset(qs)
        if page is not None:
            return self.get_paginated_response(CashCountSerializer(page, many=True).data)
        return Response(CashCountSerializer(qs, many=True).data)


# ======================================================
# MOBILE MONEY
# ======================================================


class MobileMoneyVerifyView(GenericAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = MobileMoneyVerifySerializer

    @extend_schema(
        tags=["cashier"],
        request=MobileMoneyVerifySerializer,
        responses={201: MobileMoneyVerificationSerializer, 400: dict, 403: dict, 404: dict, 409: dict},
    )
    def post(self, request, session_id, *args, **kwargs):
        if not user_has_capability(request.user, CAP_CASHIER_OPERATE):
            return _forbidden("You do not have permission to verify mobile money.")

        s = self.get_serializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data

        try:
            verification = verify_mobile_money(
                session_id,
                transaction_ids=data["transaction_ids"],
                flagged_transaction_ids=data["flagged_transaction_ids"],
                account_code=data["account_code"] or None,
                notes=data["notes"],
                verified_by=actor_label(request.user),
            )
        except DOMAIN_ERRORS as exc:
            return _error_response(exc)

        return Response(MobileMoneyVerificationSerializer(verification).data, status=status.HTTP_201_CREATED)


# ======================================================
# RECONCILIATION
# ======================================================


class ReconciliationListCreateView(GenericAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = ReconciliationCreateSerializer

    @extend_schema(tags=["cashier"], responses={200: ReconciliationSerializer(many=True), 403: dict})
    def get(self, request, *args, **kwargs):
        if not user_has_capability(request.user, CAP_CASHIER_REVIEW):
            return _forbidden("You do not have permission to view reconciliations.")

        qs = list_reconciliations(
            session_id=request.query_params.get("session") or None,
            scope=request.query_params.get("scope"),
            status=request.query_params.get("status"),
        )
        page = self.paginate_queryset(qs)
        if page is not None:
            return self.get_paginated_response(ReconciliationSerializer(page, many=True).data)
        return Response(ReconciliationSerializer(qs, many=True).data)

    @extend_schema(
        tags=["cashier"],
        request=ReconciliationCreateSerializer,
        responses={201: ReconciliationSerializer, 400: dict, 403: dict, 404: dict, 409: dict},
    )
    def post(self, request, *args, **kwargs):
        if not user_has_capability(request.user, CAP_CASHIER_REVIEW):
            return _forbidden("You do not have permission to create reconciliations.")

        s = self.get_serializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data

        try:
            recon = create_reconciliation(
                session_id=data["session_id"],
                declared_balances=data["declared_balances"],
                as_of=data["as_of"],
                notes=data["notes"],
                created_by=actor_label(request.user),
            )
        except DOMAIN_ERRORS as exc:
            return _error_response(exc)

        return Response(ReconciliationSerializer(recon).data, status=status.HTTP_201_CREATED)


class ReconciliationApproveView(GenericAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = ReconciliationApproveSerializer

    @extend_schema(
        tags=["cashier"],
        request=ReconciliationApproveSerializer,
        responses={200: ReconciliationSerializer, 403: dict, 404: dict, 409: dict},
    )
    def post(self, request, reconciliation_id, *args, **kwargs):
        if not user_has_capability(request.user, CAP_RECONCILIATION_APPROVE):
            return _forbidden("You do not have permission to approve reconciliations.")

        s = self.get_serializer(data=request.data)
        s.is_valid(raise_exception=True)

        try:
            recon = approve_reconciliation(
                reconciliation_id,
                approver_id=actor_label(request.user),
                notes=s.validated_data["notes"],
            )
        except DOMAIN_ERRORS as exc:
            return _error_response(exc)

        return Response(ReconciliationSerializer(recon).data)
