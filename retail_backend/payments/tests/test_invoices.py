# payments/tests/test_invoices.py

from __future__ import annotations

from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from accounting.services.account_resolver import ensure_default_chart
from accounting.services.balance_service import get_account_balance
from credit.services.credit_service import approve_credit, get_outstanding
from credit.services.party_service import create_party
from payments.models import Invoice
from payments.services.exceptions import InvalidPaymentAmountError, InvoiceStateError
from payments.services.invoice_service import (
    cancel_invoice,
    confirm_invoice,
    create_invoice,
    invoice_outstanding,
)

User = get_user_model()


class InvoiceLifecycleTests(TestCase):
    """
    GUARANTEES
    - Drafts post nothing; confirmation posts the debt once
    - Only drafts can be cancelled
    - Invoice type follows the party (customer -> SALE, supplier -> PURCHASE)
    """

    def setUp(self):
        ensure_default_chart()
        self.customer = create_party(name="Njeri Boutique")
        approve_credit(self.customer.pk, approved=True, credit_limit=100_000)

    def test_draft_posts_nothing(self):
        invoice = create_invoice(party_id=self.customer.pk, total_amount=5_000)

        self.assertEqual(invoice.status, Invoice.STATUS_DRAFT)
        self.assertEqual(invoice.invoice_type, Invoice.SALE)
        self.assertEqual(invoice_outstanding(invoice), 0)
        self.assertEqual(get_outstanding(self.customer), 0)

    def test_confirm_posts_receivable_and_sales(self):
        invoice = create_invoice(party_id=self.customer.pk, total_amount=5_000)
        confirm_invoice(invoice.pk)

        self.assertEqual(get_outstanding(self.customer), 5_000)
        self.assertEqual(get_account_balance("1100"), 5_000)
        self.assertEqual(get_account_balance("4000"), 5_000)

        with self.assertRaises(InvoiceStateError):
            confirm_invoice(invoice.pk)

    def test_cancel_only_drafts(self):
        draft = create_invoice(party_id=self.customer.pk, total_amount=1_000)
        self.assertEqual(cancel_invoice(draft.pk).status, Invoice.STATUS_CANCELLED)

        posted = create_invoice(party_id=self.customer.pk, total_amount=1_000, confirm=True)
        with self.assertRaises(InvoiceStateError):
            cancel_invoice(posted.pk)

    def test_supplier_invoice_posts_payable(self):
        supplier = create_party(name="Unga Millers", party_type="SUPPLIER")
        approve_credit(supplier.pk, approved=True, credit_limit=100_000)

        bill = create_invoice(party_id=supplier.pk, total_amount=9_000, confirm=True)

        self.assertEqual(bill.invoice_type, Invoice.PURCHASE)
        self.assertEqual(get_account_balance("2000"), 9_000)
        self.assertEqual(get_account_balance("5000"), 9_000)

    def test_non_positive_total_rejected(self):
        with self.assertRaises(InvalidPaymentAmountError):
            create_invoice(party_id=self.customer.pk, total_amount=0)


class InvoiceApiTests(TestCase):
    def setUp(self):
        ensure_default_chart()
        self.client = APIClient()
        self.accountant = User.objects.create_user(username="books", password="pass1234")
        self.accountant.groups.add(Group.objects.create(name="accountant"))

        self.customer = create_party(name="Mwangi Agrovet")
        approve_credit(self.customer.pk, approved=True, credit_limit=10_000)

    def test_create_and_confirm(self):
        self.client.force_authenticate(self.accountant)
        resp = self.client.post(
            reverse("invoices"),
            {"party_id": str(self.customer.pk), "total_amount": "45.50", "reference": "INV-9"},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED, resp.data)
        self.assertEqual(resp.data["total_amount"], "45.50")

        resp = self.client.post(reverse("invoice-confirm", args=[resp.data["id"]]))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["status"], Invoice.STATUS_CONFIRMED)

    def test_confirm_over_limit_is_400(self):
        self.client.force_authenticate(self.accountant)
        resp = self.client.post(
            reverse("invoices"),
            {"party_id": str(self.customer.pk), "total_amount": "100.01", "confirm": True},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Invoice.objects.exists())
