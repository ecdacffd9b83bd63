# accounting/tests/test_journal_integrity.py

from __future__ import annotations

from datetime import timedelta
from io import StringIO

from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone

from accounting.models import Account, JournalEntry, JournalLine
from accounting.services.account_resolver import (
    ensure_default_chart,
    get_cash_account,
    get_sales_account,
)
from accounting.services.balance_service import (
    find_unbalanced_entries,
    get_account_balance,
    get_trial_balance,
)
from accounting.services.exceptions import (
    DuplicatePostingError,
    JournalEntryCreationError,
    ReversalError,
    UnbalancedEntryError,
)
from accounting.services.journal_entry_service import (
    create_journal_entry,
    reverse_journal_entry,
)


def _cash_sale(amount: int, source_id: str, **kwargs) -> JournalEntry:
    return create_journal_entry(
        memo=f"Cash sale {source_id}",
        lines=[
            {"account": get_cash_account(), "debit": amount},
            {"account": get_sales_account(), "credit": amount},
        ],
        source_type="test-sale",
        source_id=source_id,
        **kwargs,
    )


class JournalPostingTests(TestCase):
    """
    GUARANTEES
    - Entries balance (sum of debits == sum of credits) or nothing is written
    - Every line carries exactly one nonzero side
    - Parent and inactive accounts never receive postings
    - Posted rows cannot be edited or deleted
    """

    def setUp(self):
        ensure_default_chart()

    def test_balanced_entry_is_posted_with_lines(self):
        entry = _cash_sale(50_000, "S-1")

        self.assertEqual(entry.reference, "test-sale:S-1")
        self.assertEqual(entry.lines.count(), 2)
        self.assertEqual(get_account_balance(get_cash_account()), 50_000)
        self.assertEqual(get_account_balance(get_sales_account()), 50_000)

    def test_unbalanced_entry_writes_nothing(self):
        with self.assertRaises(UnbalancedEntryError) as ctx:
            create_journal_entry(
                memo="Broken",
                lines=[
                    {"account": get_cash_account(), "debit": 1_000},
                    {"account": get_sales_account(), "credit": 900},
                ],
                source_type="test-sale",
                source_id="S-2",
            )

        self.assertEqual(ctx.exception.total_debits, 1_000)
        self.assertEqual(ctx.exception.total_credits, 900)
        self.assertFalse(JournalEntry.objects.exists())
        self.assertFalse(JournalLine.objects.exists())

    def test_line_with_both_sides_is_rejected(self):
        with self.assertRaises(JournalEntryCreationError):
            create_journal_entry(
                memo="Both sides",
                lines=[
                    {"account": get_cash_account(), "debit": 100, "credit": 100},
                    {"account": get_sales_account(), "credit": 0, "debit": 0},
                ],
                source_type="test-sale",
                source_id="S-3",
            )

    def test_single_line_entry_is_rejected(self):
        with self.assertRaises(JournalEntryCreationError):
            create_journal_entry(
                memo="Lonely",
                lines=[{"account": get_cash_account(), "debit": 100}],
                source_type="test-sale",
                source_id="S-4",
            )

    def test_non_integer_amount_is_rejected(self):
        with self.assertRaises(JournalEntryCreationError):
            create_journal_entry(
                memo="Float",
                lines=[
                    {"account": get_cash_account(), "debit": 10.5},
                    {"account": get_sales_account(), "credit": 10.5},
                ],
                source_type="test-sale",
                source_id="S-5",
            )

    def test_parent_account_cannot_receive_postings(self):
        receivables = Account.objects.get(code="1100")
        self.assertTrue(receivables.is_parent)

        with self.assertRaises(JournalEntryCreationError):
            create_journal_entry(
                memo="Direct to control account",
                lines=[
                    {"account": receivables, "debit": 100},
                    {"account": get_sales_account(), "credit": 100},
                ],
                source_type="test-sale",
                source_id="S-6",
            )

    def test_inactive_account_cannot_receive_postings(self):
        Account.objects.filter(code="1010").update(is_active=False)

        with self.assertRaises(JournalEntryCreationError):
            create_journal_entry(
                memo="Inactive bank",
                lines=[
                    {"account": "1010", "debit": 100},
                    {"account": get_sales_account(), "credit": 100},
                ],
                source_type="test-sale",
                source_id="S-7",
            )

    def test_unknown_account_code_is_rejected(self):
        with self.assertRaises(JournalEntryCreationError):
            create_journal_entry(
                memo="Nowhere",
                lines=[
                    {"account": "9999", "debit": 100},
                    {"account": get_sales_account(), "credit": 100},
                ],
                source_type="test-sale",
                source_id="S-8",
            )

    def test_posted_rows_are_immutable(self):
        entry = _cash_sale(1_000, "S-9")
        line = entry.lines.first()

        with self.assertRaises(ValidationError):
            entry.memo = "edited"
            entry.save()
        with self.assertRaises(ValidationError):
            entry.delete()
        with self.assertRaises(ValidationError):
            line.save()
        with self.assertRaises(ValidationError):
            line.delete()


class JournalIdempotencyTests(TestCase):
    """
    GUARANTEES
    - (source_type, source_id, idempotency_key) posts at most once
    - replay=True returns the original entry instead of failing
    - A different idempotency key is a legitimate second posting
    """

    def setUp(self):
        ensure_default_chart()

    def test_duplicate_source_is_refused(self):
        first = _cash_sale(1_000, "S-10")

        with self.assertRaises(DuplicatePostingError) as ctx:
            _cash_sale(1_000, "S-10")

        self.assertEqual(ctx.exception.existing_entry, first)
        self.assertEqual(JournalEntry.objects.count(), 1)

    def test_replay_returns_existing_entry(self):
        first = _cash_sale(1_000, "S-11")
        again = _cash_sale(1_000, "S-11", replay=True)

        self.assertEqual(first.pk, again.pk)
        self.assertEqual(get_account_balance(get_cash_account()), 1_000)

    def test_distinct_idempotency_keys_post_separately(self):
        _cash_sale(1_000, "S-12", idempotency_key="a")
        _cash_sale(1_000, "S-12", idempotency_key="b")

        self.assertEqual(JournalEntry.objects.filter(source_id="S-12").count(), 2)
        self.assertEqual(get_account_balance(get_cash_account()), 2_000)


class ReversalTests(TestCase):
    """
    GUARANTEES
    - A reversal mirrors every line and nets the original to zero
    - An entry can be reversed once; reversals cannot be reversed
    """

    def setUp(self):
        ensure_default_chart()

    def test_reversal_nets_to_zero(self):
        entry = _cash_sale(7_500, "S-20")
        reversal = reverse_journal_entry(entry)

        self.assertEqual(reversal.reversal_of_id, entry.pk)
        self.assertEqual(get_account_balance(get_cash_account()), 0)
        self.assertEqual(get_account_balance(get_sales_account()), 0)

    def test_entry_reverses_only_once(self):
        entry = _cash_sale(7_500, "S-21")
        reversal = reverse_journal_entry(entry)

        with self.assertRaises(ReversalError):
            reverse_journal_entry(entry)
        with self.assertRaises(ReversalError):
            reverse_journal_entry(reversal)

    def test_unknown_entry_cannot_be_reversed(self):
        with self.assertRaises(ReversalError):
            reverse_journal_entry(987654)


class BalanceQueryTests(TestCase):
    """
    GUARANTEES
    - Balances are derived from lines, signed by the account's normal side
    - as_of cuts off by entry date
    - Trial balance totals are equal and no entry is unbalanced
    """

    def setUp(self):
        ensure_default_chart()

    def test_as_of_excludes_later_entries(self):
        today = timezone.localdate()
        _cash_sale(1_000, "S-30", entry_date=today - timedelta(days=3))
        _cash_sale(2_000, "S-31", entry_date=today)

        self.assertEqual(
            get_account_balance(get_cash_account(), as_of=today - timedelta(days=1)),
            1_000,
        )
        self.assertEqual(get_account_balance(get_cash_account()), 3_000)

    def test_balance_by_code(self):
        _cash_sale(4_200, "S-32")
        self.assertEqual(get_account_balance("1000"), 4_200)

    def test_trial_balance_is_balanced(self):
        _cash_sale(1_000, "S-33")
        _cash_sale(2_500, "S-34")

        tb = get_trial_balance()

        self.assertTrue(tb["is_balanced"])
        self.assertEqual(tb["total_debits"], 3_500)
        self.assertEqual(tb["total_credits"], 3_500)
        self.assertEqual({row["code"] for row in tb["rows"]}, {"1000", "4000"})
        self.assertEqual(find_unbalanced_entries(), [])


class LedgerCommandTests(TestCase):
    def test_seed_chart_is_idempotent(self):
        out = StringIO()
        call_command("seed_chart", stdout=out)
        call_command("seed_chart", stdout=out)

        self.assertEqual(Account.objects.filter(code__in=["1000", "1020", "1100", "5900"]).count(), 4)

    def test_integrity_check_passes_on_clean_ledger(self):
        ensure_default_chart()
        _cash_sale(1_000, "S-40")

        out = StringIO()
        call_command("check_ledger_integrity", "--strict", stdout=out)
        self.assertIn("Ledger integrity OK", out.getvalue())
