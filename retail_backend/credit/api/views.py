# credit/api/views.py

"""
PATH: credit/api/views.py

CREDIT POLICY API

GET  /api/credit/parties/                          credit.view   (?party_type=&is_active=)
POST /api/credit/parties/                          credit.manage
GET  /api/credit/parties/<id>/credit/              credit.view   summary
POST /api/credit/parties/<id>/credit/validate/     credit.view   {amount}
POST /api/credit/parties/<id>/credit/approve/      credit.manage {approved, credit_limit?, credit_duration_days?}
POST /api/credit/parties/<id>/credit/limit/        credit.manage {credit_limit, credit_duration_days?}
POST /api/credit/parties/<id>/credit/duration/     credit.manage {credit_duration_days}
POST /api/credit/parties/<id>/credit/freeze/       credit.manage {frozen}

Amounts are decimal strings in major units on the wire.
"""

from dataclasses import asdict

from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.exceptions import PermissionDenied
from rest_framework.generics import GenericAPIView, ListCreateAPIView
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from accounting.types import PartyId
from credit.api.serializers import (
    CreditApproveSerializer,
    CreditDurationSerializer,
    CreditFreezeSerializer,
    CreditLimitSerializer,
    CreditSummarySerializer,
    CreditValidateInputSerializer,
    CreditValidationSerializer,
    PartyCreateSerializer,
    PartySerializer,
)
from credit.models.party import Party
from credit.services.credit_service import (
    approve_credit,
    get_credit_summary,
    set_credit_frozen,
    update_credit_duration,
    update_credit_limit,
    validate_credit,
)
from credit.services.exceptions import CreditPolicyError, PartyNotFoundError
from credit.services.party_service import create_party
from permissions.roles import (
    CAP_CREDIT_MANAGE,
    CAP_CREDIT_VIEW,
    actor_label,
    user_has_capability,
)


def _forbidden(message: str) -> Response:
    return Response({"detail": message}, status=status.HTTP_403_FORBIDDEN)


def _summary_response(summary, *, status_code=status.HTTP_200_OK) -> Response:
    return Response(CreditSummarySerializer(asdict(summary)).data, status=status_code)


@extend_schema(tags=["credit"])
class PartyListCreateView(ListCreateAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = PartySerializer
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ["party_type", "is_active"]

    def get_queryset(self):
        if not user_has_capability(self.request.user, CAP_CREDIT_VIEW):
            raise PermissionDenied("You do not have permission to view parties.")
        return Party.objects.order_by("name")

    @extend_schema(request=PartyCreateSerializer, responses={201: PartySerializer, 400: dict, 403: dict})
    def post(self, request, *args, **kwargs):
        if not user_has_capability(request.user, CAP_CREDIT_MANAGE):
            return _forbidden("You do not have permission to create parties.")

        s = PartyCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)

        try:
            party = create_party(**s.validated_data)
        except CreditPolicyError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)

        return Response(PartySerializer(party).data, status=status.HTTP_201_CREATED)


class CreditSummaryView(GenericAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = CreditSummarySerializer

    @extend_schema(tags=["credit"], responses={200: CreditSummarySerializer, 403: dict, 404: dict})
    def get(self, request, party_id, *args, **kwargs):
        if not user_has_capability(request.user, CAP_CREDIT_VIEW):
            return _forbidden("You do not have permission to view credit.")

        try:
            summary = get_credit_summary(PartyId(party_id))
        except PartyNotFoundError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_404_NOT_FOUND)

        return _summary_response(summary)


class CreditValidateView(GenericAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = CreditValidateInputSerializer

    @extend_schema(
        tags=["credit"],
        request=CreditValidateInputSerializer,
        responses={200: CreditValidationSerializer, 400: dict, 403: dict, 404: dict},
    )
    def post(self, request, party_id, *args, **kwargs):
        if not user_has_capability(request.user, CAP_CREDIT_VIEW):
            return _forbidden("You do not have permission to validate credit.")

        s = self.get_serializer(data=request.data)
        s.is_valid(raise_exception=True)

        try:
            result = validate_credit(PartyId(party_id), s.validated_data["amount"])
        except PartyNotFoundError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_404_NOT_FOUND)
        except CreditPolicyError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)

        return Response(CreditValidationSerializer(asdict(result)).data, status=status.HTTP_200_OK)


class _CreditMutationView(GenericAPIView):
    """Shared shape: credit.manage gate, input serializer, service call, summary out."""

    permission_classes = [IsAuthenticated]
    forbidden_message = "You do not have permission to manage credit."

    def perform_mutation(self, party_id, data, actor):
        raise NotImplementedError

    def post(self, request, party_id, *args, **kwargs):
        if not user_has_capability(request.user, CAP_CREDIT_MANAGE):
            return _forbidden(self.forbidden_message)

        s = self.get_serializer(data=request.data)
        s.is_valid(raise_exception=True)

        try:
            summary = self.perform_mutation(PartyId(party_id), s.validated_data, actor_label(request.user))
        except PartyNotFoundError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_404_NOT_FOUND)
        except CreditPolicyError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)

        return _summary_response(summary)


@extend_schema(tags=["credit"], request=CreditApproveSerializer, responses={200: CreditSummarySerializer})
class CreditApproveView(_CreditMutationView):
    serializer_class = CreditApproveSerializer

    def perform_mutation(self, party_id, data, actor):
        return approve_credit(
            party_id,
            approved=data["approved"],
            credit_limit=data["credit_limit"],
            credit_duration_days=data["credit_duration_days"],
            actor=actor,
        )


@extend_schema(tags=["credit"], request=CreditLimitSerializer, responses={200: CreditSummarySerializer})
class CreditLimitView(_CreditMutationView):
    serializer_class = CreditLimitSerializer

    def perform_mutation(self, party_id, data, actor):
        return update_credit_limit(
            party_id,
            credit_limit=data["credit_limit"],
            credit_duration_days=data["credit_duration_days"],
            actor=actor,
        )


@extend_schema(tags=["credit"], request=CreditDurationSerializer, responses={200: CreditSummarySerializer})
class CreditDurationView(_CreditMutationView):
    serializer_class = CreditDurationSerializer

    def perform_mutation(self, party_id, data, actor):
        return update_credit_duration(
            party_id, credit_duration_days=data["credit_duration_days"], actor=actor
        )


@extend_schema(tags=["credit"], request=CreditFreezeSerializer, responses={200: CreditSummarySerializer})
class CreditFreezeView(_CreditMutationView):
    serializer_class = CreditFreezeSerializer

    def perform_mutation(self, party_id, data, actor):
        return set_credit_frozen(party_id, frozen=data["frozen"], actor=actor)
