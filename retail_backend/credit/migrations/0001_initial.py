"""
======================================================
PATH: credit/migrations/0001_initial.py
======================================================
MIGRATION: CREDIT POLICY

Purpose:
- Party (customer / supplier handle; owns one AR/AP ledger sub-account)
- CreditProfile (approval, limit, duration, freeze; no stored balances)
"""

from __future__ import annotations

import uuid

from django.db import migrations, models
import django.db.models.deletion

import credit.models.credit_profile


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Party",
            fields=[
                ("id", models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False, serialize=False)),
                (
                    "party_type",
                    models.CharField(
                        max_length=10,
                        choices=[("CUSTOMER", "Customer"), ("SUPPLIER", "Supplier")],
                        default="CUSTOMER",
                    ),
                ),
                ("name", models.CharField(max_length=150)),
                ("phone", models.CharField(max_length=30, blank=True, default="")),
                (
                    "external_ref",
                    models.CharField(
                        max_length=100,
                        blank=True,
                        default="",
                        help_text="Identifier of the customer/supplier record in the owning system",
                    ),
                ),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Party",
                "verbose_name_plural": "Parties",
                "ordering": ["name"],
                "indexes": [
                    models.Index(fields=["party_type", "is_active"], name="party_type_active_idx"),
                    models.Index(fields=["external_ref"], name="party_external_ref_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(condition=~models.Q(name=""), name="chk_party_name_not_blank"),
                ],
            },
        ),
        migrations.CreateModel(
            name="CreditProfile",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("is_approved", models.BooleanField(default=False)),
                ("credit_limit", models.BigIntegerField(default=0, help_text="Minor units")),
                (
                    "credit_duration_days",
                    models.PositiveIntegerField(default=credit.models.credit_profile.default_credit_duration_days),
                ),
                (
                    "is_frozen",
                    models.BooleanField(
                        default=False,
                        help_text="Blocks new credit issuance; repayments are still accepted",
                    ),
                ),
                ("approved_by", models.CharField(max_length=100, blank=True, default="")),
                ("approved_at", models.DateTimeField(null=True, blank=True)),
                ("frozen_at", models.DateTimeField(null=True, blank=True)),
                ("last_repayment_at", models.DateTimeField(null=True, blank=True)),
                ("last_repayment_amount", models.BigIntegerField(null=True, blank=True, help_text="Minor units")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "party",
                    models.OneToOneField(
                        to="credit.party",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="credit_profile",
                    ),
                ),
            ],
            options={
                "verbose_name": "Credit Profile",
                "verbose_name_plural": "Credit Profiles",
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(credit_limit__gte=0),
                        name="chk_credit_limit_non_negative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(credit_duration_days__gte=1),
                        name="chk_credit_duration_positive",
                    ),
                ],
            },
        ),
    ]
