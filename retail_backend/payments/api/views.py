# payments/api/views.py

"""
PATH: payments/api/views.py

PAYMENT ALLOCATION API

GET  /api/payments/invoices/                             credit.view        (?party=&status=&invoice_type=)
POST /api/payments/invoices/                             invoices.manage
POST /api/payments/invoices/<id>/confirm/                invoices.manage    posts the debt (credit-checked)
POST /api/payments/invoices/<id>/cancel/                 invoices.manage    drafts only
POST /api/payments/invoices/<id>/pay/                    payments.allocate  allocateSingle
GET  /api/payments/parties/<id>/unpaid-invoices/         credit.view        FIFO order
POST /api/payments/parties/<id>/allocate/                payments.allocate  allocateBulk
GET  /api/payments/allocations/                          credit.view        (?party=&mode=&cashier_session=)

Excess payment is part of a 200/201 response, never an error.
Allocation POSTs also accept the key as an Idempotency-Key header; a replay answers 200.
"""

from dataclasses import asdict

from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.exceptions import PermissionDenied
from rest_framework.generics import GenericAPIView, ListAPIView, ListCreateAPIView
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from accounting.services.exceptions import AccountingServiceError
from accounting.types import InvoiceId, PartyId
from cashier.services.exceptions import CashierError
from credit.services.exceptions import CreditPolicyError, PartyNotFoundError
from payments.api.serializers import (
    AllocationResultSerializer,
    BulkAllocationSerializer,
    InvoiceCreateSerializer,
    InvoiceSerializer,
    PaymentAllocationSerializer,
    SingleAllocationSerializer,
    UnpaidInvoiceSerializer,
)
from payments.models.invoice import Invoice
from payments.models.payment_allocation import PaymentAllocation
from payments.services.allocation_service import allocate_bulk, allocate_single
from payments.services.exceptions import (
    InvoiceNotFoundError,
    InvoiceNotPayableError,
    InvoiceStateError,
    PaymentServiceError,
)
from payments.services.invoice_service import (
    cancel_invoice,
    confirm_invoice,
    create_invoice,
    list_unpaid_invoices,
)
from permissions.roles import (
    CAP_CREDIT_VIEW,
    CAP_INVOICES_MANAGE,
    CAP_PAYMENTS_ALLOCATE,
    actor_label,
    user_has_capability,
)


def _forbidden(message: str) -> Response:
    return Response({"detail": message}, status=status.HTTP_403_FORBIDDEN)


def _error_response(exc: Exception) -> Response:
    """Domain error -> HTTP status (404 missing, 409 lifecycle, 400 everything else)."""
    if isinstance(exc, (PartyNotFoundError, InvoiceNotFoundError)):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, (InvoiceStateError, InvoiceNotPayableError, CashierError)):
        code = status.HTTP_409_CONFLICT
    else:
        code = status.HTTP_400_BAD_REQUEST
    return Response({"detail": str(exc)}, status=code)


DOMAIN_ERRORS = (PaymentServiceError, CreditPolicyError, AccountingServiceError, CashierError)


def _idempotency_key(request, data) -> str:
    """Body field wins; POS clients that retry at the HTTP layer send the Idempotency-Key header."""
    return data["idempotency_key"] or (request.headers.get("Idempotency-Key") or "").strip()[:100]


def _allocation_response(result, *, status_code=status.HTTP_201_CREATED) -> Response:
    if result.replayed:
        status_code = status.HTTP_200_OK
    return Response(AllocationResultSerializer(asdict(result)).data, status=status_code)


# ======================================================
# INVOICES
# ======================================================


@extend_schema(tags=["payments"])
class InvoiceListCreateView(ListCreateAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = InvoiceSerializer
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ["party", "status", "invoice_type", "is_credit"]

    def get_queryset(self):
        if not user_has_capability(self.request.user, CAP_CREDIT_VIEW):
            raise PermissionDenied("You do not have permission to view invoices.")
        return Invoice.objects.select_related("party").order_by("-issued_at", "-created_at")

    @extend_schema(request=InvoiceCreateSerializer, responses={201: InvoiceSerializer, 400: dict, 403: dict})
    def post(self, request, *args, **kwargs):
        if not user_has_capability(request.user, CAP_INVOICES_MANAGE):
            return _forbidden("You do not have permission to create invoices.")

        s = InvoiceCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)

        try:
            invoice = create_invoice(actor=actor_label(request.user), **s.validated_data)
        except DOMAIN_ERRORS as exc:
            return _error_response(exc)

        return Response(InvoiceSerializer(invoice).data, status=status.HTTP_201_CREATED)


class _InvoiceActionView(GenericAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = InvoiceSerializer
    forbidden_message = "You do not have permission to manage invoices."

    def perform_action(self, invoice_id, actor):
        raise NotImplementedError

    def post(self, request, invoice_id, *args, **kwargs):
        if not user_has_capability(request.user, CAP_INVOICES_MANAGE):
            return _forbidden(self.forbidden_message)

        try:
            invoice = self.perform_action(invoice_id, actor_label(request.user))
        except DOMAIN_ERRORS as exc:
            return _error_response(exc)

        return Response(InvoiceSerializer(invoice).data, status=status.HTTP_200_OK)


@extend_schema(tags=["payments"], request=None, responses={200: InvoiceSerializer})
class InvoiceConfirmView(_InvoiceActionView):
    def perform_action(self, invoice_id, actor):
        return confirm_invoice(InvoiceId(invoice_id), actor=actor)


@extend_schema(tags=["payments"], request=None, responses={200: InvoiceSerializer})
class InvoiceCancelView(_InvoiceActionView):
    def perform_action(self, invoice_id, actor):
        return cancel_invoice(InvoiceId(invoice_id), actor=actor)


class UnpaidInvoicesView(GenericAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = UnpaidInvoiceSerializer

    @extend_schema(tags=["payments"], responses={200: UnpaidInvoiceSerializer(many=True), 403: dict, 404: dict})
    def get(self, request, party_id, *args, **kwargs):
        if not user_has_capability(request.user, CAP_CREDIT_VIEW):
            return _forbidden("You do not have permission to view invoices.")

        try:
            rows = list_unpaid_invoices(PartyId(party_id))
        except PartyNotFoundError as exc:
            return _error_response(exc)

        return Response(
            UnpaidInvoiceSerializer([asdict(r) for r in rows], many=True).data,
            status=status.HTTP_200_OK,
        )


# ======================================================
# ALLOCATION
# ======================================================


class BulkAllocationView(GenericAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = BulkAllocationSerializer

    @extend_schema(
        tags=["payments"],
        request=BulkAllocationSerializer,
        responses={201: AllocationResultSerializer, 200: AllocationResultSerializer, 400: dict, 403: dict, 404: dict, 409: dict},
    )
    def post(self, request, party_id, *args, **kwargs):
        if not user_has_capability(request.user, CAP_PAYMENTS_ALLOCATE):
            return _forbidden("You do not have permission to allocate payments.")

        s = self.get_serializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data

        try:
            result = allocate_bulk(
                PartyId(party_id),
                data["payment_amount"],
                invoice_ids=data["invoice_ids"],
                payment_method=data["payment_method"] or "cash",
                settlement_account_code=data["settlement_account_code"],
                cashier_session=data["cashier_session"],
                reference=data["reference"],
                idempotency_key=_idempotency_key(request, data),
                actor=actor_label(request.user),
            )
        except DOMAIN_ERRORS as exc:
            return _error_response(exc)

        return _allocation_response(result)


class SingleAllocationView(GenericAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = SingleAllocationSerializer

    @extend_schema(
        tags=["payments"],
        request=SingleAllocationSerializer,
        responses={201: AllocationResultSerializer, 200: AllocationResultSerializer, 400: dict, 403: dict, 404: dict, 409: dict},
    )
    def post(self, request, invoice_id, *args, **kwargs):
        if not user_has_capability(request.user, CAP_PAYMENTS_ALLOCATE):
            return _forbidden("You do not have permission to allocate payments.")

        s = self.get_serializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data

        try:
            result = allocate_single(
                InvoiceId(invoice_id),
                data["payment_amount"],
                payment_method=data["payment_method"] or "cash",
                settlement_account_code=data["settlement_account_code"],
                cashier_session=data["cashier_session"],
                reference=data["reference"],
                idempotency_key=_idempotency_key(request, data),
                actor=actor_label(request.user),
            )
        except DOMAIN_ERRORS as exc:
            return _error_response(exc)

        return _allocation_response(result)


@extend_schema(tags=["payments"])
class PaymentAllocationListView(ListAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = PaymentAllocationSerializer
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ["party", "mode", "cashier_session"]

    def get_queryset(self):
        if not user_has_capability(self.request.user, CAP_CREDIT_VIEW):
            raise PermissionDenied("You do not have permission to view payments.")
        return PaymentAllocation.objects.select_related("settlement_account").order_by("-created_at")
