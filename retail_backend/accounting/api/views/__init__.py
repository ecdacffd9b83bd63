# accounting/api/views/__init__.py

"""
accounting.api.views package

Expose public API views cleanly without making routing/imports fragile.

Important:
- Do NOT import accounting.api.urls from here to avoid circular imports.
"""

from accounting.api.views.accounts import AccountBalanceView, AccountListView
from accounting.api.views.journal_entries import (
    JournalEntryPostView,
    JournalEntryReverseView,
    JournalEntryViewSet,
)
from accounting.api.views.trial_balance import TrialBalanceView

__all__ = [
    "AccountListView",
    "AccountBalanceView",
    "JournalEntryViewSet",
    "JournalEntryPostView",
    "JournalEntryReverseView",
    "TrialBalanceView",
]
