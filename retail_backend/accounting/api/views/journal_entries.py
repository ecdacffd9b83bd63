# accounting/api/views/journal_entries.py

"""
PATH: accounting/api/views/journal_entries.py

JOURNAL ENTRY API

GET  /api/accounting/journal-entries/
     ?source_type=invoice&source_id=<id>      (entriesFor: audit / idempotency lookup)
     ?cashier_session=<uuid>&entry_date=YYYY-MM-DD
     -> capability ledger.view

POST /api/accounting/journal-entries/post/
     -> capability ledger.post (manual balanced entry)

POST /api/accounting/journal-entries/<id>/reverse/
     -> capability ledger.post (correction by mirror entry)

Entries are immutable: there is no update or delete endpoint.
"""

from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.exceptions import PermissionDenied
from rest_framework.generics import GenericAPIView
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.viewsets import ReadOnlyModelViewSet

from accounting.api.serializers.journal_entries import (
    JournalEntryCreateSerializer,
    JournalEntryReverseSerializer,
    JournalEntrySerializer,
)
from accounting.models.journal import JournalEntry
from accounting.services.exceptions import (
    DuplicatePostingError,
    JournalEntryCreationError,
    ReversalError,
)
from accounting.services.journal_entry_service import (
    create_journal_entry,
    reverse_journal_entry,
)
from cashier.services.exceptions import CashierError
from permissions.roles import (
    CAP_LEDGER_POST,
    CAP_LEDGER_VIEW,
    actor_label,
    user_has_capability,
)


@extend_schema(tags=["accounting"])
class JournalEntryViewSet(ReadOnlyModelViewSet):
    """
    Read-only access to journal entries (audit-safe).
    """

    permission_classes = [IsAuthenticated]
    serializer_class = JournalEntrySerializer
    http_method_names = ["get", "head", "options"]
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ["source_type", "source_id", "cashier_session", "entry_date"]

    queryset = JournalEntry.objects.prefetch_related("lines__account").order_by(
        "-posted_at", "-id"
    )

    def get_queryset(self):
        if not user_has_capability(self.request.user, CAP_LEDGER_VIEW):
            raise PermissionDenied("You do not have permission to view journal entries.")
        return super().get_queryset()


class JournalEntryPostView(GenericAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = JournalEntryCreateSerializer

    @extend_schema(
        tags=["accounting"],
        request=JournalEntryCreateSerializer,
        responses={201: JournalEntrySerializer, 400: dict, 403: dict, 409: dict},
    )
    def post(self, request, *args, **kwargs):
        if not user_has_capability(request.user, CAP_LEDGER_POST):
            return Response(
                {"detail": "You do not have permission to post journal entries."},
                status=status.HTTP_403_FORBIDDEN,
            )

        s = self.get_serializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data

        lines = [
            {
                "account": line["account_code"],
                "debit": line["debit"],
                "credit": line["credit"],
                "metadata": line["metadata"],
            }
            for line in data["lines"]
        ]

        try:
            entry = create_journal_entry(
                memo=data["memo"],
                lines=lines,
                source_type=data["source_type"],
                source_id=data["source_id"],
                idempotency_key=data["idempotency_key"],
                entry_date=data["entry_date"],
                cashier_session=data["cashier_session"],
                created_by=actor_label(request.user),
                replay=data["replay"],
            )
        except DuplicatePostingError as exc:
            return Response(
                {
                    "detail": str(exc),
                    "existing_entry_id": getattr(exc.existing_entry, "id", None),
                },
                status=status.HTTP_409_CONFLICT,
            )
        except JournalEntryCreationError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        except CashierError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_409_CONFLICT)

        return Response(JournalEntrySerializer(entry).data, status=status.HTTP_201_CREATED)


class JournalEntryReverseView(GenericAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = JournalEntryReverseSerializer

    @extend_schema(
        tags=["accounting"],
        request=JournalEntryReverseSerializer,
        responses={201: JournalEntrySerializer, 403: dict, 409: dict},
    )
    def post(self, request, pk, *args, **kwargs):
        if not user_has_capability(request.user, CAP_LEDGER_POST):
            return Response(
                {"detail": "You do not have permission to reverse journal entries."},
                status=status.HTTP_403_FORBIDDEN,
            )

        s = self.get_serializer(data=request.data)
        s.is_valid(raise_exception=True)

        try:
            reversal = reverse_journal_entry(
                pk,
                memo=s.validated_data["memo"],
                cashier_session=s.validated_data["cashier_session"],
                created_by=actor_label(request.user),
            )
        except ReversalError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_409_CONFLICT)
        except JournalEntryCreationError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        except CashierError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_409_CONFLICT)

        return Response(JournalEntrySerializer(reversal).data, status=status.HTTP_201_CREATED)
