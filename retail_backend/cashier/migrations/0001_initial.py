"""
======================================================
PATH: cashier/migrations/0001_initial.py
======================================================
MIGRATION: CASHIER SESSIONS & RECONCILIATION

Purpose:
- CashierSession (one OPEN per channel + cashier, enforced by a partial unique index)
- CashCount (blind counts with variance frozen at count time)
- MobileMoneyVerification
- Reconciliation / ReconciliationLine
"""

from __future__ import annotations

import uuid

from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("accounting", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="CashierSession",
            fields=[
                ("id", models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False, serialize=False)),
                (
                    "channel",
                    models.CharField(max_length=64, help_text="Till / register / branch the session runs on"),
                ),
                ("cashier_id", models.CharField(max_length=100)),
                (
                    "status",
                    models.CharField(
                        max_length=12,
                        choices=[("OPEN", "Open"), ("CLOSED", "Closed"), ("RECONCILED", "Reconciled")],
                        default="OPEN",
                    ),
                ),
                ("opened_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("closed_at", models.DateTimeField(null=True, blank=True)),
                ("reconciled_at", models.DateTimeField(null=True, blank=True)),
                ("reconciled_by", models.CharField(max_length=100, blank=True, default="")),
                (
                    "opening_balances",
                    models.JSONField(
                        default=dict, blank=True, help_text="Declared opening float per account code (minor units)"
                    ),
                ),
                (
                    "closing_declared",
                    models.JSONField(
                        default=dict, blank=True, help_text="Declared closing amount per account code (minor units)"
                    ),
                ),
                ("notes", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["-opened_at"],
                "indexes": [
                    models.Index(fields=["channel", "status"], name="session_channel_status_idx"),
                    models.Index(fields=["cashier_id", "opened_at"], name="session_cashier_opened_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=["channel", "cashier_id"],
                        condition=models.Q(status="OPEN"),
                        name="uniq_open_session_per_cashier_channel",
                    ),
                    models.CheckConstraint(condition=~models.Q(channel=""), name="chk_session_channel_not_blank"),
                    models.CheckConstraint(condition=~models.Q(cashier_id=""), name="chk_session_cashier_not_blank"),
                ],
            },
        ),
        migrations.CreateModel(
            name="CashCount",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "count_type",
                    models.CharField(
                        max_length=10,
                        choices=[("OPENING", "Opening"), ("INTERIM", "Interim"), ("CLOSING", "Closing")],
                        default="INTERIM",
                    ),
                ),
                ("declared_amount", models.BigIntegerField(help_text="Minor units")),
                ("expected_amount", models.BigIntegerField(help_text="Minor units, from the ledger at count time")),
                ("variance", models.BigIntegerField(help_text="declared - expected (minor units)")),
                ("tolerance", models.BigIntegerField(default=0, help_text="Tolerance in force at count time")),
                ("has_variance", models.BooleanField(default=False)),
                ("variance_reason", models.TextField(blank=True, default="")),
                ("counted_by", models.CharField(max_length=100, blank=True, default="")),
                ("taken_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("reviewed_by", models.CharField(max_length=100, blank=True, default="")),
                ("reviewed_at", models.DateTimeField(null=True, blank=True)),
                ("review_notes", models.TextField(blank=True, default="")),
                (
                    "account",
                    models.ForeignKey(
                        to="accounting.account",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="+",
                    ),
                ),
                (
                    "session",
                    models.ForeignKey(
                        to="cashier.cashiersession",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="cash_counts",
                    ),
                ),
            ],
            options={
                "ordering": ["taken_at", "id"],
                "indexes": [
                    models.Index(fields=["session", "count_type"], name="count_session_type_idx"),
                    models.Index(fields=["has_variance", "reviewed_at"], name="count_variance_review_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(declared_amount__gte=0), name="chk_count_declared_non_negative"
                    ),
                    models.CheckConstraint(
                        condition=models.Q(variance=models.F("declared_amount") - models.F("expected_amount")),
                        name="chk_count_variance_definition",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(tolerance__gte=0), name="chk_count_tolerance_non_negative"
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="MobileMoneyVerification",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("transaction_ids", models.JSONField(default=list, blank=True)),
                ("flagged_transaction_ids", models.JSONField(default=list, blank=True)),
                ("all_confirmed", models.BooleanField(default=False)),
                ("notes", models.TextField(blank=True, default="")),
                ("verified_by", models.CharField(max_length=100, blank=True, default="")),
                ("verified_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "account",
                    models.ForeignKey(
                        to="accounting.account",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="+",
                    ),
                ),
                (
                    "session",
                    models.ForeignKey(
                        to="cashier.cashiersession",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="mobile_money_verifications",
                    ),
                ),
            ],
            options={
                "ordering": ["-verified_at", "-id"],
                "indexes": [
                    models.Index(fields=["session", "account", "verified_at"], name="mmv_session_account_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Reconciliation",
            fields=[
                ("id", models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False, serialize=False)),
                (
                    "scope",
                    models.CharField(
                        max_length=10, choices=[("SESSION", "Cashier session"), ("ACCOUNTS", "Accounts")]
                    ),
                ),
                ("as_of", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "status",
                    models.CharField(
                        max_length=10, choices=[("DRAFT", "Draft"), ("APPROVED", "Approved")], default="DRAFT"
                    ),
                ),
                ("declared_total", models.BigIntegerField(default=0)),
                ("expected_total", models.BigIntegerField(default=0)),
                ("variance_total", models.BigIntegerField(default=0)),
                ("notes", models.TextField(blank=True, default="")),
                ("created_by", models.CharField(max_length=100, blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("approved_by", models.CharField(max_length=100, blank=True, default="")),
                ("approved_at", models.DateTimeField(null=True, blank=True)),
                (
                    "session",
                    models.ForeignKey(
                        to="cashier.cashiersession",
                        on_delete=django.db.models.deletion.PROTECT,
                        null=True,
                        blank=True,
                        related_name="reconciliations",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["scope", "status"], name="recon_scope_status_idx"),
                    models.Index(fields=["session"], name="recon_session_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=(models.Q(scope="SESSION") & models.Q(session__isnull=False))
                        | (models.Q(scope="ACCOUNTS") & models.Q(session__isnull=True)),
                        name="chk_recon_scope_session",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="ReconciliationLine",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("declared", models.BigIntegerField(help_text="Minor units")),
                ("expected", models.BigIntegerField(help_text="Minor units")),
                ("variance", models.BigIntegerField(help_text="declared - expected (minor units)")),
                ("tolerance", models.BigIntegerField(default=0)),
                ("has_variance", models.BooleanField(default=False)),
                ("requires_review", models.BooleanField(default=False)),
                (
                    "account",
                    models.ForeignKey(
                        to="accounting.account",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="+",
                    ),
                ),
                (
                    "adjustment_entry",
                    models.ForeignKey(
                        to="accounting.journalentry",
                        on_delete=django.db.models.deletion.PROTECT,
                        null=True,
                        blank=True,
                        related_name="+",
                        help_text="Variance adjustment posted on approval",
                    ),
                ),
                (
                    "reconciliation",
                    models.ForeignKey(
                        to="cashier.reconciliation",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="lines",
                    ),
                ),
            ],
            options={
                "ordering": ["account__code"],
                "constraints": [
                    models.UniqueConstraint(fields=["reconciliation", "account"], name="uniq_recon_line_account"),
                    models.CheckConstraint(
                        condition=models.Q(variance=models.F("declared") - models.F("expected")),
                        name="chk_recon_line_variance_definition",
                    ),
                ],
            },
        ),
    ]
