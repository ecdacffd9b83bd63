# cashier/tests/test_reconciliation.py

from __future__ import annotations

from django.conf import settings
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.test import TestCase, override_settings
from rest_framework.test import APIClient

from accounting.services.account_resolver import (
    ensure_default_chart,
    get_cash_account,
    get_cash_short_over_account,
)
from accounting.services.balance_service import get_account_balance
from cashier.models import CashCount, CashierSession, Reconciliation
from cashier.services.cash_count_service import (
    explain_variance,
    list_pending_variance_reviews,
    review_cash_count,
)
from cashier.services.exceptions import (
    CashierError,
    ReconciliationError,
    VarianceReviewRequiredError,
)
from cashier.services.mobile_money_service import verify_mobile_money
from cashier.services.reconciliation_service import (
    approve_reconciliation,
    create_reconciliation,
)
from cashier.services.session_service import close_session, open_session
from credit.services.credit_service import approve_credit
from credit.services.party_service import create_party
from payments.services.allocation_service import allocate_bulk
from payments.services.invoice_service import create_invoice

User = get_user_model()

TOLERANT = {**settings.LEDGER, "CASH_VARIANCE_TOLERANCE": 200}


# ----------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------
def _customer_owing(amount: int):
    party = create_party(name="Chebet Kiosk")
    approve_credit(party.pk, approved=True, credit_limit=1_000_000)
    create_invoice(party_id=party.pk, total_amount=amount, confirm=True)
    return party


@override_settings(LEDGER=TOLERANT)
class CashVarianceGateTests(TestCase):
    """
    GUARANTEES
    - A session cannot reach RECONCILED while a variance beyond tolerance is
      neither explained nor reviewed
    - Approval posts the variance against Cash Short and Over
    - Variances within tolerance pass the gate but are still booked
    - Only accounts counted at close can be declared on the session reconciliation
    """

    def setUp(self):
        ensure_default_chart()
        self.party = _customer_owing(20_000)
        self.session = open_session("till-1", "alice", opening_balances={"1000": 10_000})
        allocate_bulk(self.party.pk, 5_000, cashier_session=self.session.pk)

    def _close_and_reconcile(self, declared_cash: int) -> Reconciliation:
        close_session(self.session.pk, {"1000": declared_cash}, closed_by="alice")
        return create_reconciliation(
            session_id=self.session.pk,
            declared_balances={"1000": declared_cash},
            created_by="boss",
        )

    def _closing_count(self) -> CashCount:
        return CashCount.objects.get(session=self.session, count_type=CashCount.TYPE_CLOSING)

    def test_shortage_blocks_until_explained(self):
        recon = self._close_and_reconcile(14_500)

        line = recon.lines.get()
        self.assertEqual(line.expected, 15_000)
        self.assertEqual(line.variance, -500)
        self.assertTrue(line.has_variance)
        self.assertIn(self._closing_count(), list(list_pending_variance_reviews()))

        with self.assertRaises(VarianceReviewRequiredError) as ctx:
            approve_reconciliation(recon.pk, approver_id="boss")
        self.assertTrue(ctx.exception.problems)

        self.session.refresh_from_db()
        self.assertEqual(self.session.status, CashierSession.STATUS_CLOSED)

        explain_variance(self._closing_count().pk, "Change given twice to one customer")
        recon = approve_reconciliation(recon.pk, approver_id="boss")

        self.assertEqual(recon.status, Reconciliation.STATUS_APPROVED)
        self.session.refresh_from_db()
        self.assertEqual(self.session.status, CashierSession.STATUS_RECONCILED)
        self.assertEqual(self.session.reconciled_by, "boss")

        line = recon.lines.get()
        self.assertIsNotNone(line.adjustment_entry_id)
        self.assertEqual(get_account_balance(get_cash_short_over_account()), 500)
        self.assertEqual(get_account_balance(get_cash_account()), 4_500)

    def test_manager_review_also_clears_the_gate(self):
        recon = self._close_and_reconcile(15_900)

        review_cash_count(self._closing_count().pk, reviewer_id="boss", notes="Tip jar mixed in")
        approve_reconciliation(recon.pk, approver_id="boss")

        # Overage: cash up, short/over credited
        self.assertEqual(get_account_balance(get_cash_short_over_account()), -900)
        self.assertNotIn(self._closing_count(), list(list_pending_variance_reviews()))

    def test_within_tolerance_needs_no_review(self):
        recon = self._close_and_reconcile(14_850)

        self.assertFalse(recon.lines.get().has_variance)
        approve_reconciliation(recon.pk, approver_id="boss")

        self.session.refresh_from_db()
        self.assertEqual(self.session.status, CashierSession.STATUS_RECONCILED)
        self.assertEqual(get_account_balance(get_cash_short_over_account()), 150)

    def test_exact_close_posts_no_adjustment(self):
        recon = self._close_and_reconcile(15_000)
        recon = approve_reconciliation(recon.pk, approver_id="boss")

        self.assertIsNone(recon.lines.get().adjustment_entry_id)
        self.assertEqual(get_account_balance(get_cash_short_over_account()), 0)

    def test_open_session_cannot_be_reconciled(self):
        with self.assertRaises(ReconciliationError):
            create_reconciliation(session_id=self.session.pk, declared_balances={"1000": 15_000})

    def test_declared_account_without_closing_count_is_refused(self):
        close_session(self.session.pk, {"1000": 14_500}, closed_by="alice")

        # A bank line here would carry a variance nothing could ever clear.
        with self.assertRaises(ReconciliationError):
            create_reconciliation(
                session_id=self.session.pk,
                declared_balances={"1000": 14_500, "1010": 500},
                created_by="boss",
            )

        self.assertFalse(Reconciliation.objects.filter(session=self.session).exists())
        self.session.refresh_from_db()
        self.assertEqual(self.session.status, CashierSession.STATUS_CLOSED)

        recon = create_reconciliation(
            session_id=self.session.pk,
            declared_balances={"1000": 14_500},
            created_by="boss",
        )
        explain_variance(self._closing_count().pk, "Short on change")
        recon = approve_reconciliation(recon.pk, approver_id="boss")
        self.assertEqual(recon.status, Reconciliation.STATUS_APPROVED)

    def test_reconciled_session_is_final(self):
        recon = self._close_and_reconcile(15_000)
        approve_reconciliation(recon.pk, approver_id="boss")

        with self.assertRaises(ReconciliationError):
            approve_reconciliation(recon.pk, approver_id="boss")
        with self.assertRaises(ReconciliationError):
            create_reconciliation(session_id=self.session.pk, declared_balances={"1000": 15_000})
        with self.assertRaises(ReconciliationError):
            explain_variance(self._closing_count().pk, "too late")

    def test_blank_explanation_is_rejected(self):
        self._close_and_reconcile(14_000)

        with self.assertRaises(CashierError):
            explain_variance(self._closing_count().pk, "   ")


class MobileMoneyGateTests(TestCase):
    """
    GUARANTEES
    - A session with mobile money activity needs a fully confirmed
      verification (or a reviewed closing count) before approval
    - Flagged transactions keep the gate shut
    """

    def setUp(self):
        ensure_default_chart()
        self.party = _customer_owing(20_000)
        self.session = open_session("till-1", "alice")
        allocate_bulk(self.party.pk, 3_000, payment_method="mpesa", cashier_session=self.session.pk)
        close_session(self.session.pk, {"1000": 0})
        self.recon = create_reconciliation(session_id=self.session.pk, declared_balances={"1000": 0})

    def test_undeclared_mobile_money_is_reconciled_against_verification(self):
        mm_line = self.recon.lines.get(account__code="1020")
        self.assertTrue(mm_line.requires_review)
        self.assertEqual(mm_line.expected, 3_000)

        with self.assertRaises(VarianceReviewRequiredError):
            approve_reconciliation(self.recon.pk, approver_id="boss")

    def test_flagged_verification_keeps_gate_shut(self):
        verification = verify_mobile_money(
            self.session.pk,
            transaction_ids=["QK12", "QK13"],
            flagged_transaction_ids=["QK13"],
            verified_by="alice",
        )
        self.assertFalse(verification.all_confirmed)

        with self.assertRaises(VarianceReviewRequiredError):
            approve_reconciliation(self.recon.pk, approver_id="boss")

    def test_confirmed_verification_opens_gate(self):
        verify_mobile_money(self.session.pk, transaction_ids=["QK12"], verified_by="alice")

        approve_reconciliation(self.recon.pk, approver_id="boss")

        self.session.refresh_from_db()
        self.assertEqual(self.session.status, CashierSession.STATUS_RECONCILED)

    def test_flagged_ids_must_be_verified_ids(self):
        with self.assertRaises(CashierError):
            verify_mobile_money(
                self.session.pk, transaction_ids=["QK12"], flagged_transaction_ids=["XX99"]
            )


class AccountReconciliationTests(TestCase):
    """
    GUARANTEES
    - Without a session, declared balances are compared to ledger balances as of a time
    - Variances beyond tolerance need notes before approval
    """

    def setUp(self):
        ensure_default_chart()
        party = _customer_owing(8_000)
        allocate_bulk(party.pk, 8_000, payment_method="bank")

    def test_bank_statement_match(self):
        recon = create_reconciliation(declared_balances={"1010": 8_000})

        self.assertEqual(recon.scope, Reconciliation.SCOPE_ACCOUNTS)
        self.assertEqual(recon.variance_total, 0)
        self.assertEqual(approve_reconciliation(recon.pk, approver_id="boss").status, Reconciliation.STATUS_APPROVED)

    def test_variance_needs_notes(self):
        recon = create_reconciliation(declared_balances={"1010": 7_900})

        with self.assertRaises(VarianceReviewRequiredError):
            approve_reconciliation(recon.pk, approver_id="boss")

        approve_reconciliation(recon.pk, approver_id="boss", notes="Bank charges not yet booked")
        self.assertEqual(get_account_balance("1010"), 7_900)


class ReconciliationApiTests(TestCase):
    """
    GUARANTEES
    - Cashiers cannot approve
    - A blocked approval answers 409 with the list of problems
    """

    def setUp(self):
        ensure_default_chart()
        self.client = APIClient()
        self.cashier = User.objects.create_user(username="alice", password="pass1234")
        self.cashier.groups.add(Group.objects.create(name="cashier"))
        self.manager = User.objects.create_user(username="boss", password="pass1234")
        self.manager.groups.add(Group.objects.create(name="manager"))

        self.session = open_session("till-1", "alice", opening_balances={"1000": 1_000})
        close_session(self.session.pk, {"1000": 900})

    def test_blocked_then_explained_approval(self):
        self.client.force_authenticate(self.manager)
        resp = self.client.post(
            "/api/cashier/reconciliations/",
            {"session_id": str(self.session.pk), "declared_balances": {"1000": "9.00"}},
            format="json",
        )
        self.assertEqual(resp.status_code, 201, resp.data)
        recon_id = resp.data["id"]

        self.client.force_authenticate(self.cashier)
        resp = self.client.post(f"/api/cashier/reconciliations/{recon_id}/approve/", {}, format="json")
        self.assertEqual(resp.status_code, 403)

        self.client.force_authenticate(self.manager)
        resp = self.client.post(f"/api/cashier/reconciliations/{recon_id}/approve/", {}, format="json")
        self.assertEqual(resp.status_code, 409)
        self.assertTrue(resp.data["problems"])

        count = CashCount.objects.get(session=self.session)
        resp = self.client.post(f"/api/cashier/counts/{count.pk}/review/", {"notes": "ok"}, format="json")
        self.assertEqual(resp.status_code, 200)

        resp = self.client.post(f"/api/cashier/reconciliations/{recon_id}/approve/", {}, format="json")
        self.assertEqual(resp.status_code, 200, resp.data)
        self.assertEqual(resp.data["status"], Reconciliation.STATUS_APPROVED)

    def test_pending_reviews_listing(self):
        self.client.force_authenticate(self.cashier)
        self.assertEqual(self.client.get("/api/cashier/counts/pending-review/").status_code, 403)

        self.client.force_authenticate(self.manager)
        resp = self.client.get("/api/cashier/counts/pending-review/")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["count"], 1)
