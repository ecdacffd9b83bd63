"""
======================================================
PATH: accounting/migrations/0001_initial.py
======================================================
MIGRATION: LEDGER STORE

Purpose:
- Account (hierarchical; parent control accounts roll up party sub-accounts)
- JournalEntry (immutable header; unique source_type/source_id/idempotency_key)
- JournalLine (immutable posting; integer minor units, exactly one side nonzero)
"""

from __future__ import annotations

from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Account",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.CharField(max_length=64, unique=True)),
                ("name", models.CharField(max_length=150)),
                (
                    "account_type",
                    models.CharField(
                        max_length=20,
                        choices=[
                            ("ASSET", "Asset"),
                            ("LIABILITY", "Liability"),
                            ("EQUITY", "Equity"),
                            ("INCOME", "Income"),
                            ("EXPENSE", "Expense"),
                        ],
                    ),
                ),
                (
                    "is_parent",
                    models.BooleanField(
                        default=False,
                        help_text="Control account: balance is the rollup of its children, no direct postings",
                    ),
                ),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "parent",
                    models.ForeignKey(
                        to="accounting.account",
                        null=True,
                        blank=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="children",
                    ),
                ),
            ],
            options={
                "verbose_name": "Account",
                "verbose_name_plural": "Accounts",
                "ordering": ["code"],
                "indexes": [
                    models.Index(fields=["account_type"], name="acct_type_idx"),
                    models.Index(fields=["is_active"], name="acct_active_idx"),
                    models.Index(fields=["parent"], name="acct_parent_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(condition=~models.Q(code=""), name="chk_account_code_not_blank"),
                    models.CheckConstraint(condition=~models.Q(name=""), name="chk_account_name_not_blank"),
                ],
            },
        ),
        migrations.CreateModel(
            name="JournalEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "source_type",
                    models.CharField(
                        max_length=50,
                        help_text="Kind of domain event that produced the entry (invoice, invoice-payment, ...)",
                    ),
                ),
                (
                    "source_id",
                    models.CharField(max_length=100, help_text="Identifier of the originating domain event"),
                ),
                (
                    "idempotency_key",
                    models.CharField(
                        max_length=100,
                        blank=True,
                        default="",
                        help_text="Distinguishes legitimate repeat postings for the same source",
                    ),
                ),
                (
                    "reference",
                    models.CharField(
                        max_length=260,
                        editable=False,
                        help_text="Normalized source_type:source_id[:idempotency_key]",
                    ),
                ),
                ("memo", models.TextField(help_text="Narrative description of the journal entry")),
                (
                    "entry_date",
                    models.DateField(default=django.utils.timezone.localdate, help_text="Accounting effective date"),
                ),
                (
                    "posted_at",
                    models.DateTimeField(
                        default=django.utils.timezone.now, help_text="Timestamp when the entry was written"
                    ),
                ),
                (
                    "cashier_session",
                    models.UUIDField(
                        null=True,
                        blank=True,
                        help_text="Cashier session the postings are attributed to (if any)",
                    ),
                ),
                ("created_by", models.CharField(max_length=100, blank=True, default="")),
                (
                    "reversal_of",
                    models.OneToOneField(
                        to="accounting.journalentry",
                        null=True,
                        blank=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="reversed_by",
                    ),
                ),
            ],
            options={
                "verbose_name": "Journal Entry",
                "verbose_name_plural": "Journal Entries",
                "ordering": ["-entry_date", "-posted_at", "-id"],
                "indexes": [
                    models.Index(fields=["entry_date"], name="je_entry_date_idx"),
                    models.Index(fields=["posted_at"], name="je_posted_at_idx"),
                    models.Index(fields=["source_type", "source_id"], name="je_source_idx"),
                    models.Index(fields=["cashier_session"], name="je_cashier_session_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=["source_type", "source_id", "idempotency_key"],
                        name="uniq_journal_source_idempotency",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="JournalLine",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("line_no", models.PositiveIntegerField()),
                ("debit", models.BigIntegerField(default=0, help_text="Minor units")),
                ("credit", models.BigIntegerField(default=0, help_text="Minor units")),
                ("metadata", models.JSONField(default=dict, blank=True)),
                (
                    "account",
                    models.ForeignKey(
                        to="accounting.account",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="journal_lines",
                    ),
                ),
                (
                    "journal_entry",
                    models.ForeignKey(
                        to="accounting.journalentry",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="lines",
                    ),
                ),
            ],
            options={
                "verbose_name": "Journal Line",
                "verbose_name_plural": "Journal Lines",
                "ordering": ["journal_entry_id", "line_no"],
                "indexes": [
                    models.Index(fields=["account"], name="jl_account_idx"),
                    models.Index(fields=["journal_entry"], name="jl_journal_entry_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=["journal_entry", "line_no"], name="uniq_journal_line_no"),
                    models.CheckConstraint(
                        condition=models.Q(debit__gte=0) & models.Q(credit__gte=0),
                        name="chk_journal_line_non_negative",
                    ),
                    models.CheckConstraint(
                        condition=(models.Q(debit__gt=0) & models.Q(credit=0))
                        | (models.Q(debit=0) & models.Q(credit__gt=0)),
                        name="chk_journal_line_one_side",
                    ),
                ],
            },
        ),
    ]
