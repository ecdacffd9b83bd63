# cashier/api/urls.py

from django.urls import path

from cashier.api.views import (
    CashCountReviewView,
    CurrentSessionView,
    MobileMoneyVerifyView,
    PendingVarianceReviewsView,
    ReconciliationApproveView,
    ReconciliationListCreateView,
    SessionCashCountsView,
    SessionCloseView,
    SessionListOpenView,
    SessionSummaryView,
    VarianceExplainView,
)

urlpatterns = [
    # Sessions
    path("sessions/", SessionListOpenView.as_view(), name="cashier-sessions"),
    path("sessions/current/", CurrentSessionView.as_view(), name="cashier-session-current"),
    path("sessions/<uuid:session_id>/", SessionSummaryView.as_view(), name="cashier-session-summary"),
    path("sessions/<uuid:session_id>/close/", SessionCloseView.as_view(), name="cashier-session-close"),
    path("sessions/<uuid:session_id>/counts/", SessionCashCountsView.as_view(), name="cashier-session-counts"),
    path(
        "sessions/<uuid:session_id>/mobile-money/verify/",
        MobileMoneyVerifyView.as_view(),
        name="cashier-mobile-money-verify",
    ),
    # Counts
    path("counts/pending-review/", PendingVarianceReviewsView.as_view(), name="cashier-pending-reviews"),
    path("counts/<int:count_id>/explain/", VarianceExplainView.as_view(), name="cashier-count-explain"),
    path("counts/<int:count_id>/review/", CashCountReviewView.as_view(), name="cashier-count-review"),
    # Reconciliation
    path("reconciliations/", ReconciliationListCreateView.as_view(), name="reconciliations"),
    path(
        "reconciliations/<uuid:reconciliation_id>/approve/",
        ReconciliationApproveView.as_view(),
        name="reconciliation-approve",
    ),
]
