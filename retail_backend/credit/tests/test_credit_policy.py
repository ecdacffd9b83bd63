# credit/tests/test_credit_policy.py

from __future__ import annotations

import threading
import unittest

from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.db import close_old_connections, connection
from django.test import TestCase, TransactionTestCase
from django.utils import timezone
from rest_framework.test import APIClient

from accounting.services.account_resolver import ensure_default_chart, get_party_account
from accounting.services.journal_entry_service import create_journal_entry
from credit.models import CreditProfile, Party
from credit.services.credit_service import (
    approve_credit,
    get_credit_summary,
    get_outstanding,
    set_credit_frozen,
    update_credit_duration,
    update_credit_limit,
    validate_credit,
)
from credit.services.exceptions import (
    CreditFrozenError,
    CreditLimitExceededError,
    CreditNotApprovedError,
    CreditPolicyError,
    PartyNotFoundError,
)
from credit.services.party_service import create_party
from payments.models import Invoice
from payments.services.invoice_service import confirm_invoice, create_invoice

User = get_user_model()


class CreditPolicyTests(TestCase):
    """
    GUARANTEES
    - Outstanding is read from the party's ledger sub-account, never stored
    - available = max(limit - outstanding, 0)
    - Validation fails closed for unapproved or frozen parties
    - A limit below current outstanding is allowed; new credit is simply refused
    """

    def setUp(self):
        ensure_default_chart()
        self.party = create_party(name="Wanjiru Stores")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _credit_sale(self, amount: int) -> Invoice:
        return create_invoice(party_id=self.party.pk, total_amount=amount, confirm=True)

    # ------------------------------------------------------------------
    # Tests
    # ------------------------------------------------------------------
    def test_new_party_has_unapproved_profile_and_sub_account(self):
        summary = get_credit_summary(self.party.pk)

        self.assertFalse(summary.approved)
        self.assertEqual(summary.limit, 0)
        self.assertEqual(summary.outstanding, 0)
        self.assertEqual(summary.duration, 30)
        self.assertTrue(CreditProfile.objects.filter(party=self.party).exists())
        self.assertEqual(get_party_account(self.party, create=False).parent.code, "1100")

    def test_unapproved_party_fails_closed(self):
        result = validate_credit(self.party.pk, 1)

        self.assertFalse(result.is_valid)
        self.assertIn("not approved", result.reason)

    def test_zero_amount_is_always_valid(self):
        self.assertTrue(validate_credit(self.party.pk, 0).is_valid)

    def test_within_limit_is_valid(self):
        approve_credit(self.party.pk, approved=True, credit_limit=100_000, actor="mgr")
        self._credit_sale(60_000)

        result = validate_credit(self.party.pk, 40_000)

        self.assertTrue(result.is_valid)
        self.assertEqual(result.outstanding, 60_000)
        self.assertEqual(result.available, 40_000)

    def test_exceeding_limit_is_refused(self):
        approve_credit(self.party.pk, approved=True, credit_limit=100_000)
        self._credit_sale(60_000)

        result = validate_credit(self.party.pk, 40_001)

        self.assertFalse(result.is_valid)
        self.assertTrue(result.would_exceed_limit)

    def test_frozen_party_is_refused_even_within_limit(self):
        approve_credit(self.party.pk, approved=True, credit_limit=100_000)
        set_credit_frozen(self.party.pk, frozen=True)

        result = validate_credit(self.party.pk, 10)
        self.assertFalse(result.is_valid)
        self.assertIn("frozen", result.reason)

        set_credit_frozen(self.party.pk, frozen=False)
        self.assertTrue(validate_credit(self.party.pk, 10).is_valid)

    def test_limit_below_outstanding_is_allowed(self):
        approve_credit(self.party.pk, approved=True, credit_limit=100_000)
        self._credit_sale(80_000)

        summary = update_credit_limit(self.party.pk, credit_limit=50_000)

        self.assertEqual(summary.outstanding, 80_000)
        self.assertEqual(summary.available, 0)
        self.assertFalse(validate_credit(self.party.pk, 1).is_valid)

    def test_negative_outstanding_raises_available_credit(self):
        approve_credit(self.party.pk, approved=True, credit_limit=10_000)
        create_journal_entry(
            memo="Customer deposit",
            lines=[
                {"account": "1000", "debit": 5_000},
                {"account": get_party_account(self.party), "credit": 5_000},
            ],
            source_type="test-deposit",
            source_id="D-1",
        )

        summary = get_credit_summary(self.party.pk)

        self.assertEqual(summary.outstanding, -5_000)
        self.assertEqual(summary.available, 15_000)
        self.assertTrue(validate_credit(self.party.pk, 15_000).is_valid)

    def test_invalid_configuration_is_rejected(self):
        with self.assertRaises(CreditPolicyError):
            update_credit_limit(self.party.pk, credit_limit=-1)
        with self.assertRaises(CreditPolicyError):
            update_credit_duration(self.party.pk, credit_duration_days=0)
        with self.assertRaises(CreditPolicyError):
            validate_credit(self.party.pk, -10)

    def test_unknown_party(self):
        with self.assertRaises(PartyNotFoundError):
            get_credit_summary("00000000-0000-0000-0000-000000000000")
        with self.assertRaises(PartyNotFoundError):
            validate_credit("not-a-uuid", 10)


class CreditSaleCommitTests(TestCase):
    """
    GUARANTEES
    - Confirming a credit invoice re-checks the policy under the party lock
    - A refused confirmation posts nothing and leaves the invoice in DRAFT
    - Non-credit invoices bypass the policy
    """

    def setUp(self):
        ensure_default_chart()
        self.party = create_party(name="Kamau Hardware")
        approve_credit(self.party.pk, approved=True, credit_limit=50_000, credit_duration_days=14)

    def test_confirm_within_limit_posts_and_sets_due_date(self):
        invoice = create_invoice(party_id=self.party.pk, total_amount=20_000)
        invoice = confirm_invoice(invoice.pk)

        self.assertEqual(invoice.status, Invoice.STATUS_CONFIRMED)
        self.assertIsNotNone(invoice.journal_entry_id)
        self.assertEqual(
            (invoice.due_date - timezone.localtime(invoice.issued_at).date()).days,
            14,
        )
        self.assertEqual(get_outstanding(self.party), 20_000)

    def test_confirm_over_limit_is_refused(self):
        create_invoice(party_id=self.party.pk, total_amount=40_000, confirm=True)
        invoice = create_invoice(party_id=self.party.pk, total_amount=10_001)

        with self.assertRaises(CreditLimitExceededError) as ctx:
            confirm_invoice(invoice.pk)

        self.assertEqual(ctx.exception.outstanding, 40_000)
        invoice.refresh_from_db()
        self.assertEqual(invoice.status, Invoice.STATUS_DRAFT)
        self.assertEqual(get_outstanding(self.party), 40_000)

    def test_frozen_and_unapproved_raise_specific_errors(self):
        invoice = create_invoice(party_id=self.party.pk, total_amount=100)

        set_credit_frozen(self.party.pk, frozen=True)
        with self.assertRaises(CreditFrozenError):
            confirm_invoice(invoice.pk)

        set_credit_frozen(self.party.pk, frozen=False)
        approve_credit(self.party.pk, approved=False)
        with self.assertRaises(CreditNotApprovedError):
            confirm_invoice(invoice.pk)

    def test_cash_invoice_skips_credit_policy(self):
        approve_credit(self.party.pk, approved=False)
        invoice = create_invoice(party_id=self.party.pk, total_amount=90_000, is_credit=False, confirm=True)

        self.assertEqual(invoice.status, Invoice.STATUS_CONFIRMED)


class CreditApiTests(TestCase):
    """
    GUARANTEES
    - Cashiers can read credit but not change it
    - Managers approve and set limits in major-unit decimal strings
    """

    def setUp(self):
        ensure_default_chart()
        self.client = APIClient()

        self.manager = User.objects.create_user(username="mgr", password="pass1234")
        self.manager.groups.add(Group.objects.create(name="manager"))
        self.cashier = User.objects.create_user(username="till1", password="pass1234")
        self.cashier.groups.add(Group.objects.create(name="cashier"))

        self.party = create_party(name="Otieno Traders")

    def test_manager_approves_credit(self):
        self.client.force_authenticate(self.manager)
        resp = self.client.post(
            f"/api/credit/parties/{self.party.pk}/credit/approve/",
            {"approved": True, "credit_limit": "1500.00"},
            format="json",
        )

        self.assertEqual(resp.status_code, 200, resp.data)
        self.assertTrue(resp.data["approved"])
        self.assertEqual(resp.data["limit"], "1500.00")
        self.assertEqual(CreditProfile.objects.get(party=self.party).approved_by, "mgr")

    def test_cashier_cannot_change_credit(self):
        self.client.force_authenticate(self.cashier)
        resp = self.client.post(
            f"/api/credit/parties/{self.party.pk}/credit/freeze/",
            {"frozen": True},
            format="json",
        )
        self.assertEqual(resp.status_code, 403)

    def test_cashier_validates_credit(self):
        approve_credit(self.party.pk, approved=True, credit_limit=10_000)
        self.client.force_authenticate(self.cashier)

        resp = self.client.post(
            f"/api/credit/parties/{self.party.pk}/credit/validate/",
            {"amount": "100.01"},
            format="json",
        )

        self.assertEqual(resp.status_code, 200)
        self.assertFalse(resp.data["is_valid"])
        self.assertTrue(resp.data["would_exceed_limit"])

    def test_party_creation_and_unknown_party(self):
        self.client.force_authenticate(self.manager)
        resp = self.client.post(
            "/api/credit/parties/",
            {"name": "Acme Wholesale", "party_type": "SUPPLIER"},
            format="json",
        )
        self.assertEqual(resp.status_code, 201, resp.data)
        self.assertEqual(Party.objects.get(pk=resp.data["id"]).party_type, Party.SUPPLIER)

        resp = self.client.get("/api/credit/parties/00000000-0000-0000-0000-000000000000/credit/")
        self.assertEqual(resp.status_code, 404)


@unittest.skipUnless(connection.features.has_select_for_update, "needs row-level locks (set TEST_DATABASE_URL)")
class ConcurrentCreditSaleTests(TransactionTestCase):
    """
    GUARANTEES
    - Two credit sales racing against one limit: only one commits
    - The loser sees the winner's posting, not a stale outstanding
    """

    def setUp(self):
        ensure_default_chart()
        self.party = create_party(name="Race Hardware")
        approve_credit(self.party.pk, approved=True, credit_limit=10_000)
        self.drafts = [
            create_invoice(party_id=self.party.pk, total_amount=7_000, reference=f"RACE-{n}")
            for n in (1, 2)
        ]

    def test_only_one_over_limit_sale_commits(self):
        barrier = threading.Barrier(len(self.drafts))
        confirmed, errors = [], []

        def confirm(invoice):
            try:
                barrier.wait(timeout=5)
                confirmed.append(confirm_invoice(invoice.pk, actor="till"))
            except CreditLimitExceededError as exc:
                errors.append(exc)
            finally:
                close_old_connections()

        threads = [threading.Thread(target=confirm, args=(inv,)) for inv in self.drafts]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(len(confirmed), 1)
        self.assertEqual(len(errors), 1)
        self.assertEqual(errors[0].outstanding, 7_000)
        self.assertEqual(get_outstanding(self.party), 7_000)
        self.assertEqual(
            Invoice.objects.filter(party=self.party, status=Invoice.STATUS_DRAFT).count(), 1
        )
