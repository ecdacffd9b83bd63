# accounting/api/serializers/__init__.py

from accounting.api.serializers.accounts import (
    AccountBalanceSerializer,
    AccountListSerializer,
)
from accounting.api.serializers.journal_entries import (
    JournalEntryCreateSerializer,
    JournalEntryReverseSerializer,
    JournalEntrySerializer,
    JournalLineSerializer,
)

__all__ = [
    "AccountListSerializer",
    "AccountBalanceSerializer",
    "JournalEntrySerializer",
    "JournalLineSerializer",
    "JournalEntryCreateSerializer",
    "JournalEntryReverseSerializer",
]
