# accounting/api/urls.py

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from accounting.api.views.accounts import AccountBalanceView, AccountListView
from accounting.api.views.journal_entries import (
    JournalEntryPostView,
    JournalEntryReverseView,
    JournalEntryViewSet,
)
from accounting.api.views.trial_balance import TrialBalanceView

router = DefaultRouter()
router.register("journal-entries", JournalEntryViewSet, basename="journal-entry")

urlpatterns = [
    # Posting actions (must precede the router's detail route)
    path("journal-entries/post/", JournalEntryPostView.as_view(), name="journal-entry-post"),
    path(
        "journal-entries/<int:pk>/reverse/",
        JournalEntryReverseView.as_view(),
        name="journal-entry-reverse",
    ),
    # Router endpoints
    path("", include(router.urls)),
    # Reports
    path("trial-balance/", TrialBalanceView.as_view(), name="trial-balance"),
    # Master data (read-only)
    path("accounts/", AccountListView.as_view(), name="accounts"),
    path("accounts/<str:code>/balance/", AccountBalanceView.as_view(), name="account-balance"),
]
