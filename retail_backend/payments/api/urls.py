# payments/api/urls.py

from django.urls import path

from payments.api.views import (
    BulkAllocationView,
    InvoiceCancelView,
    InvoiceConfirmView,
    InvoiceListCreateView,
    PaymentAllocationListView,
    SingleAllocationView,
    UnpaidInvoicesView,
)

urlpatterns = [
    path("invoices/", InvoiceListCreateView.as_view(), name="invoices"),
    path("invoices/<uuid:invoice_id>/confirm/", InvoiceConfirmView.as_view(), name="invoice-confirm"),
    path("invoices/<uuid:invoice_id>/cancel/", InvoiceCancelView.as_view(), name="invoice-cancel"),
    path("invoices/<uuid:invoice_id>/pay/", SingleAllocationView.as_view(), name="invoice-pay"),
    path("parties/<uuid:party_id>/unpaid-invoices/", UnpaidInvoicesView.as_view(), name="unpaid-invoices"),
    path("parties/<uuid:party_id>/allocate/", BulkAllocationView.as_view(), name="allocate-bulk"),
    path("allocations/", PaymentAllocationListView.as_view(), name="allocations"),
]
