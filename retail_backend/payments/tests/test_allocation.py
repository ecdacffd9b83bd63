# payments/tests/test_allocation.py

from __future__ import annotations

import threading
import unittest
from datetime import timedelta

from django.conf import settings
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.db import close_old_connections, connection
from django.test import TestCase, TransactionTestCase, override_settings
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient

from accounting.models import Account, JournalEntry
from accounting.services.account_resolver import (
    ensure_default_chart,
    get_cash_account,
    get_mobile_money_account,
    get_party_account,
)
from accounting.services.balance_service import get_account_balance, get_trial_balance
from accounting.services.exceptions import AccountResolutionError
from credit.models import CreditProfile
from credit.services.credit_service import approve_credit, get_outstanding
from credit.services.party_service import create_party
from payments.models import Invoice, InvoicePayment, PaymentAllocation
from payments.services.allocation_service import allocate_bulk, allocate_single
from payments.services.exceptions import (
    InvalidPaymentAmountError,
    InvoiceNotFoundError,
    InvoiceNotPayableError,
)
from payments.services.invoice_service import (
    create_invoice,
    invoice_outstanding,
    list_unpaid_invoices,
)

User = get_user_model()


# ----------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------
def _customer(name="Achieng Mini Mart", limit=1_000_000):
    party = create_party(name=name)
    approve_credit(party.pk, approved=True, credit_limit=limit)
    return party


def _confirmed_invoice(party, amount, *, days_ago=0, reference=""):
    return create_invoice(
        party_id=party.pk,
        total_amount=amount,
        reference=reference,
        issued_at=timezone.now() - timedelta(days=days_ago),
        confirm=True,
    )


class BulkAllocationTests(TestCase):
    """
    GUARANTEES
    - Oldest invoice is paid first; each invoice gets min(remaining, outstanding)
    - total_allocated + excess_payment == payment_amount
    - remaining_balance is what the party still owes across all invoices
    - Every applied amount has exactly one journal entry behind it
    """

    def setUp(self):
        ensure_default_chart()
        self.party = _customer()
        self.older = _confirmed_invoice(self.party, 50_000, days_ago=10, reference="INV-OLD")
        self.newer = _confirmed_invoice(self.party, 30_000, days_ago=2, reference="INV-NEW")

    def test_exact_payment_clears_both_invoices(self):
        result = allocate_bulk(self.party.pk, 80_000)

        self.assertEqual(
            [(p.reference, p.amount_paid) for p in result.invoices_paid],
            [("INV-OLD", 50_000), ("INV-NEW", 30_000)],
        )
        self.assertEqual(result.total_allocated, 80_000)
        self.assertEqual(result.excess_payment, 0)
        self.assertEqual(result.remaining_balance, 0)

        self.older.refresh_from_db()
        self.newer.refresh_from_db()
        self.assertEqual(self.older.status, Invoice.STATUS_PAID)
        self.assertEqual(self.newer.status, Invoice.STATUS_PAID)
        self.assertEqual(get_outstanding(self.party), 0)

    def test_overpayment_reports_excess(self):
        result = allocate_bulk(self.party.pk, 100_000)

        self.assertEqual(result.total_allocated, 80_000)
        self.assertEqual(result.excess_payment, 20_000)
        self.assertEqual(result.remaining_balance, 0)
        # Excess is reported, not posted
        self.assertEqual(get_account_balance(get_cash_account()), 80_000)

    def test_partial_payment_stops_inside_oldest_invoice(self):
        result = allocate_bulk(self.party.pk, 40_000)

        self.assertEqual(len(result.invoices_paid), 1)
        self.assertEqual(result.invoices_paid[0].invoice_id, self.older.pk)
        self.assertEqual(result.remaining_balance, 40_000)

        self.older.refresh_from_db()
        self.assertEqual(self.older.status, Invoice.STATUS_PARTIALLY_PAID)
        self.assertEqual(invoice_outstanding(self.older), 10_000)
        self.assertEqual(
            [row.reference for row in list_unpaid_invoices(self.party.pk)],
            ["INV-OLD", "INV-NEW"],
        )

    def test_allocation_is_conserved_in_ledger(self):
        result = allocate_bulk(self.party.pk, 65_000, reference="RCPT-1")

        allocation = PaymentAllocation.objects.get(pk=result.allocation_id)
        paid_rows = InvoicePayment.objects.filter(allocation=allocation)

        self.assertEqual(sum(p.amount for p in paid_rows), result.total_allocated)
        self.assertEqual(paid_rows.count(), JournalEntry.objects.filter(source_type="invoice-payment").count())
        self.assertEqual(get_account_balance(get_party_account(self.party)), 15_000)
        self.assertEqual(get_account_balance(get_cash_account()), 65_000)
        self.assertTrue(get_trial_balance()["is_balanced"])
        self.assertIsNotNone(CreditProfile.objects.get(party=self.party).last_repayment_at)

    def test_invoice_subset_is_honoured(self):
        result = allocate_bulk(self.party.pk, 30_000, invoice_ids=[self.newer.pk])

        self.assertEqual([p.invoice_id for p in result.invoices_paid], [self.newer.pk])
        self.older.refresh_from_db()
        self.assertEqual(self.older.status, Invoice.STATUS_CONFIRMED)

    def test_foreign_invoice_id_is_refused(self):
        other = _customer(name="Someone Else")
        foreign = _confirmed_invoice(other, 1_000)

        with self.assertRaises(InvoiceNotFoundError):
            allocate_bulk(self.party.pk, 1_000, invoice_ids=[self.older.pk, foreign.pk])

        self.assertFalse(PaymentAllocation.objects.exists())

    def test_payment_with_nothing_owed_is_all_excess(self):
        allocate_bulk(self.party.pk, 80_000)
        result = allocate_bulk(self.party.pk, 5_000)

        self.assertEqual(result.invoices_paid, [])
        self.assertEqual(result.total_allocated, 0)
        self.assertEqual(result.excess_payment, 5_000)

    def test_invalid_amounts(self):
        for bad in (0, -1, 10.5, "100", True):
            with self.subTest(amount=bad):
                with self.assertRaises(InvalidPaymentAmountError):
                    allocate_bulk(self.party.pk, bad)

    def test_mobile_money_settlement(self):
        allocate_bulk(self.party.pk, 50_000, payment_method="mpesa")

        self.assertEqual(get_account_balance(get_mobile_money_account()), 50_000)
        self.assertEqual(get_account_balance(get_cash_account()), 0)

    def test_party_sub_account_cannot_settle_its_own_debt(self):
        own_account = get_party_account(self.party)

        with self.assertRaises(AccountResolutionError):
            allocate_bulk(self.party.pk, 50_000, settlement_account_code=own_account.code)

        self.older.refresh_from_db()
        self.assertEqual(self.older.status, Invoice.STATUS_CONFIRMED)
        self.assertFalse(InvoicePayment.objects.exists())
        self.assertEqual(get_outstanding(self.party), 80_000)

    def test_only_configured_money_accounts_settle(self):
        Account.objects.create(code="1011", name="Till 2 Cash", account_type=Account.ASSET)

        with self.assertRaises(AccountResolutionError):
            allocate_bulk(self.party.pk, 10_000, settlement_account_code="1011")
        with self.assertRaises(AccountResolutionError):
            allocate_bulk(self.party.pk, 10_000, settlement_account_code="4000")

        with override_settings(LEDGER={**settings.LEDGER, "SETTLEMENT_ACCOUNT_CODES": ["1011"]}):
            result = allocate_bulk(self.party.pk, 10_000, settlement_account_code="1011")

        self.assertEqual(result.total_allocated, 10_000)
        self.assertEqual(get_account_balance("1011"), 10_000)


class FifoOrderingTests(TestCase):
    """
    GUARANTEES
    - The invoice date decides allocation order, not the order invoices were recorded in
    """

    def setUp(self):
        ensure_default_chart()
        self.party = _customer()
        # Recorded C, A, B; issued A < B < C
        self.c = _confirmed_invoice(self.party, 7_000, days_ago=1, reference="INV-C")
        self.a = _confirmed_invoice(self.party, 20_000, days_ago=10, reference="INV-A")
        self.b = _confirmed_invoice(self.party, 15_000, days_ago=5, reference="INV-B")

    def test_payment_covering_two_oldest_invoices(self):
        result = allocate_bulk(self.party.pk, 35_000)

        self.assertEqual(
            [(p.reference, p.amount_paid) for p in result.invoices_paid],
            [("INV-A", 20_000), ("INV-B", 15_000)],
        )
        self.assertEqual(result.remaining_balance, 7_000)
        self.assertEqual(result.excess_payment, 0)

        self.c.refresh_from_db()
        self.assertEqual(self.c.status, Invoice.STATUS_CONFIRMED)
        self.assertEqual([row.reference for row in list_unpaid_invoices(self.party.pk)], ["INV-C"])

    def test_partial_payment_lands_on_oldest_issued(self):
        result = allocate_bulk(self.party.pk, 5_000)

        self.assertEqual([p.invoice_id for p in result.invoices_paid], [self.a.pk])


class AllocationIdempotencyTests(TestCase):
    """
    GUARANTEES
    - A repeated idempotency key returns the first result and posts nothing new
    - Reusing a key with a different amount is refused
    """

    def setUp(self):
        ensure_default_chart()
        self.party = _customer()
        _confirmed_invoice(self.party, 50_000)

    def test_replay_returns_original_allocation(self):
        first = allocate_bulk(self.party.pk, 20_000, idempotency_key="till-7-0001")
        again = allocate_bulk(self.party.pk, 20_000, idempotency_key="till-7-0001")

        self.assertFalse(first.replayed)
        self.assertTrue(again.replayed)
        self.assertEqual(first.allocation_id, again.allocation_id)
        self.assertEqual(PaymentAllocation.objects.count(), 1)
        self.assertEqual(get_account_balance(get_cash_account()), 20_000)

    def test_key_reuse_with_other_amount_is_refused(self):
        allocate_bulk(self.party.pk, 20_000, idempotency_key="till-7-0002")

        with self.assertRaises(InvalidPaymentAmountError):
            allocate_bulk(self.party.pk, 25_000, idempotency_key="till-7-0002")


class SingleAllocationTests(TestCase):
    """
    GUARANTEES
    - Omitted amount pays the full outstanding of that invoice only
    - Paid, draft and cancelled invoices are not payable
    - Supplier invoices pay out of the settlement account
    """

    def setUp(self):
        ensure_default_chart()
        self.party = _customer()
        self.first = _confirmed_invoice(self.party, 12_000, days_ago=5)
        self.second = _confirmed_invoice(self.party, 8_000, days_ago=1)

    def test_default_amount_is_outstanding(self):
        result = allocate_single(self.second.pk)

        self.assertEqual(result.total_allocated, 8_000)
        self.assertEqual(result.remaining_balance, 12_000)
        self.second.refresh_from_db()
        self.assertEqual(self.second.status, Invoice.STATUS_PAID)

    def test_amount_above_outstanding_is_excess(self):
        result = allocate_single(self.second.pk, 10_000)

        self.assertEqual(result.total_allocated, 8_000)
        self.assertEqual(result.excess_payment, 2_000)

    def test_paid_invoice_is_not_payable(self):
        allocate_single(self.second.pk)

        with self.assertRaises(InvoiceNotPayableError):
            allocate_single(self.second.pk)

    def test_draft_invoice_is_not_payable(self):
        draft = create_invoice(party_id=self.party.pk, total_amount=1_000)

        with self.assertRaises(InvoiceNotPayableError):
            allocate_single(draft.pk, 1_000)

    def test_unknown_invoice(self):
        with self.assertRaises(InvoiceNotFoundError):
            allocate_single("00000000-0000-0000-0000-000000000000", 100)

    def test_supplier_payment_reduces_payable(self):
        supplier = create_party(name="Bidco Distributors", party_type="SUPPLIER")
        approve_credit(supplier.pk, approved=True, credit_limit=500_000)
        bill = _confirmed_invoice(supplier, 70_000)
        self.assertEqual(bill.invoice_type, Invoice.PURCHASE)

        allocate_single(bill.pk, 30_000, payment_method="bank")

        self.assertEqual(get_outstanding(supplier), 40_000)
        self.assertEqual(get_account_balance("1010"), -30_000)


@unittest.skipUnless(connection.features.has_select_for_update, "needs row-level locks")
class ConcurrentAllocationTests(TransactionTestCase):
    """
    GUARANTEES
    - Two payments racing for the same invoices never over-allocate
    """

    def setUp(self):
        ensure_default_chart()
        self.party = _customer()
        _confirmed_invoice(self.party, 50_000)

    def test_parallel_payments_never_exceed_debt(self):
        results, errors = [], []

        def pay():
            try:
                results.append(allocate_bulk(self.party.pk, 40_000))
            except Exception as exc:
                errors.append(exc)
            finally:
                close_old_connections()

        threads = [threading.Thread(target=pay) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(errors, [])
        self.assertEqual(sum(r.total_allocated for r in results), 50_000)
        self.assertEqual(sum(r.excess_payment for r in results), 30_000)
        self.assertEqual(get_outstanding(self.party), 0)


class AllocationApiTests(TestCase):
    """
    GUARANTEES
    - payments.allocate is required
    - Amounts travel as decimal strings
    - A replay answers 200 instead of 201, keyed by body field or Idempotency-Key header
    """

    def setUp(self):
        ensure_default_chart()
        self.client = APIClient()
        self.cashier = User.objects.create_user(username="till2", password="pass1234")
        self.cashier.groups.add(Group.objects.create(name="cashier"))
        self.outsider = User.objects.create_user(username="guest", password="pass1234")

        self.party = _customer()
        self.invoice = _confirmed_invoice(self.party, 25_000, reference="INV-API")

    def test_bulk_allocation_endpoint(self):
        self.client.force_authenticate(self.cashier)
        url = reverse("allocate-bulk", args=[self.party.pk])
        payload = {"payment_amount": "300.00", "idempotency_key": "api-1"}

        resp = self.client.post(url, payload, format="json")
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED, resp.data)
        self.assertEqual(resp.data["total_allocated"], "250.00")
        self.assertEqual(resp.data["excess_payment"], "50.00")
        self.assertEqual(resp.data["invoices_paid"][0]["reference"], "INV-API")

        resp = self.client.post(url, payload, format="json")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertTrue(resp.data["replayed"])

    def test_idempotency_key_header(self):
        self.client.force_authenticate(self.cashier)
        url = reverse("invoice-pay", args=[self.invoice.pk])

        first = self.client.post(url, {"payment_amount": "100.00"}, format="json", HTTP_IDEMPOTENCY_KEY="pos-retry-9")
        again = self.client.post(url, {"payment_amount": "100.00"}, format="json", HTTP_IDEMPOTENCY_KEY="pos-retry-9")

        self.assertEqual(first.status_code, status.HTTP_201_CREATED, first.data)
        self.assertEqual(again.status_code, status.HTTP_200_OK)
        self.assertEqual(again.data["allocation_id"], first.data["allocation_id"])
        self.assertEqual(InvoicePayment.objects.filter(invoice=self.invoice).count(), 1)

    def test_requires_capability(self):
        self.client.force_authenticate(self.outsider)
        resp = self.client.post(
            reverse("allocate-bulk", args=[self.party.pk]),
            {"payment_amount": "10.00"},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

    def test_paying_settled_invoice_conflicts(self):
        self.client.force_authenticate(self.cashier)
        url = reverse("invoice-pay", args=[self.invoice.pk])

        self.assertEqual(self.client.post(url, {}, format="json").status_code, status.HTTP_201_CREATED)
        self.assertEqual(self.client.post(url, {}, format="json").status_code, status.HTTP_409_CONFLICT)

    def test_unpaid_invoice_listing(self):
        self.client.force_authenticate(self.cashier)
        resp = self.client.get(reverse("unpaid-invoices", args=[self.party.pk]))

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(len(resp.data), 1)
        self.assertEqual(resp.data[0]["outstanding"], "250.00")
