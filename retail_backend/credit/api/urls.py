# credit/api/urls.py

from django.urls import path

from credit.api.views import (
    CreditApproveView,
    CreditDurationView,
    CreditFreezeView,
    CreditLimitView,
    CreditSummaryView,
    CreditValidateView,
    PartyListCreateView,
)

urlpatterns = [
    path("parties/", PartyListCreateView.as_view(), name="parties"),
    path("parties/<uuid:party_id>/credit/", CreditSummaryView.as_view(), name="credit-summary"),
    path("parties/<uuid:party_id>/credit/validate/", CreditValidateView.as_view(), name="credit-validate"),
    path("parties/<uuid:party_id>/credit/approve/", CreditApproveView.as_view(), name="credit-approve"),
    path("parties/<uuid:party_id>/credit/limit/", CreditLimitView.as_view(), name="credit-limit"),
    path("parties/<uuid:party_id>/credit/duration/", CreditDurationView.as_view(), name="credit-duration"),
    path("parties/<uuid:party_id>/credit/freeze/", CreditFreezeView.as_view(), name="credit-freeze"),
]
