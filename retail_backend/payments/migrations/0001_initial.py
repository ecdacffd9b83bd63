"""
======================================================
PATH: payments/migrations/0001_initial.py
======================================================
MIGRATION: PAYMENT ALLOCATOR

Purpose:
- Invoice (sale / purchase debt; FIFO key issued_at)
- PaymentAllocation (immutable audit + idempotency record of one allocate call)
- InvoicePayment (immutable amount applied to one invoice, one journal entry each)
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
        ("credit", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Invoice",
            fields=[
                ("id", models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False, serialize=False)),
                (
                    "invoice_type",
                    models.CharField(
                        max_length=10,
                        choices=[("SALE", "Sale"), ("PURCHASE", "Purchase")],
                        default="SALE",
                    ),
                ),
                ("reference", models.CharField(max_length=64, unique=True)),
                ("total_amount", models.BigIntegerField(help_text="Minor units")),
                (
                    "status",
                    models.CharField(
                        max_length=20,
                        choices=[
                            ("DRAFT", "Draft"),
                            ("CONFIRMED", "Confirmed"),
                            ("PARTIALLY_PAID", "Partially paid"),
                            ("PAID", "Paid"),
                            ("CANCELLED", "Cancelled"),
                        ],
                        default="DRAFT",
                    ),
                ),
                (
                    "is_credit",
                    models.BooleanField(
                        default=True,
                        help_text="Issued on credit: confirmation is checked against the party's credit policy",
                    ),
                ),
                ("issued_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("due_date", models.DateField(null=True, blank=True)),
                ("memo", models.CharField(max_length=255, blank=True, default="")),
                ("created_by", models.CharField(max_length=100, blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "journal_entry",
                    models.ForeignKey(
                        to="accounting.journalentry",
                        on_delete=django.db.models.deletion.PROTECT,
                        null=True,
                        blank=True,
                        related_name="+",
                        help_text="Posting that raised the debt (set on confirmation)",
                    ),
                ),
                (
                    "party",
                    models.ForeignKey(
                        to="credit.party",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="invoices",
                    ),
                ),
            ],
            options={
                "ordering": ["issued_at", "created_at"],
                "indexes": [
                    models.Index(fields=["party", "status", "issued_at"], name="invoice_party_status_idx"),
                    models.Index(fields=["status"], name="invoice_status_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(total_amount__gt=0), name="chk_invoice_total_positive"),
                ],
            },
        ),
        migrations.CreateModel(
            name="PaymentAllocation",
            fields=[
                ("id", models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False, serialize=False)),
                (
                    "mode",
                    models.CharField(
                        max_length=10,
                        choices=[("BULK", "Bulk (FIFO across invoices)"), ("SINGLE", "Single invoice")],
                        default="BULK",
                    ),
                ),
                ("payment_amount", models.BigIntegerField(help_text="Minor units")),
                ("total_allocated", models.BigIntegerField(help_text="Minor units")),
                ("excess_payment", models.BigIntegerField(help_text="Minor units")),
                (
                    "remaining_balance",
                    models.BigIntegerField(help_text="Party's unpaid total after allocation (minor units)"),
                ),
                ("payment_method", models.CharField(max_length=40, blank=True, default="")),
                ("reference", models.CharField(max_length=100, blank=True, default="")),
                ("idempotency_key", models.CharField(max_length=100, blank=True, default="")),
                ("cashier_session", models.UUIDField(null=True, blank=True)),
                ("created_by", models.CharField(max_length=100, blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "party",
                    models.ForeignKey(
                        to="credit.party",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="allocations",
                    ),
                ),
                (
                    "settlement_account",
                    models.ForeignKey(
                        to="accounting.account",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="+",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["party", "created_at"], name="alloc_party_created_idx"),
                    models.Index(fields=["cashier_session"], name="alloc_cashier_session_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=["party", "idempotency_key"],
                        condition=~models.Q(idempotency_key=""),
                        name="uniq_allocation_party_idempotency",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(payment_amount__gt=0),
                        name="chk_allocation_payment_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(total_allocated__gte=0) & models.Q(excess_payment__gte=0),
                        name="chk_allocation_non_negative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(payment_amount=models.F("total_allocated") + models.F("excess_payment")),
                        name="chk_allocation_conservation",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="InvoicePayment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "step",
                    models.PositiveIntegerField(help_text="Order in which the allocation applied this amount"),
                ),
                ("amount", models.BigIntegerField(help_text="Minor units")),
                ("reference", models.CharField(max_length=100, blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "allocation",
                    models.ForeignKey(
                        to="payments.paymentallocation",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                    ),
                ),
                (
                    "invoice",
                    models.ForeignKey(
                        to="payments.invoice",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                    ),
                ),
                (
                    "journal_entry",
                    models.OneToOneField(
                        to="accounting.journalentry",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="invoice_payment",
                    ),
                ),
                (
                    "settlement_account",
                    models.ForeignKey(
                        to="accounting.account",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="+",
                    ),
                ),
            ],
            options={
                "ordering": ["allocation_id", "step"],
                "indexes": [
                    models.Index(fields=["invoice"], name="invpay_invoice_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(amount__gt=0), name="chk_invoice_payment_positive"),
                    models.UniqueConstraint(
                        fields=["allocation", "invoice"], name="uniq_invoice_payment_per_allocation"
                    ),
                ],
            },
        ),
    ]
