# cashier/models/reconciliation.py

"""
======================================================
PATH: cashier/models/reconciliation.py
======================================================
RECONCILIATION MODELS

Declared vs ledger-expected balances for one closed session (SESSION scope)
or for a set of accounts as of a moment (ACCOUNTS scope).

Guarantees:
- Lines are written once, with the reconciliation
- DRAFT -> APPROVED only; approval is what posts variance adjustments
"""

from __future__ import annotations

import uuid

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from accounting.models.account import Account
from cashier.models.cashier_session import CashierSession


class Reconciliation(models.Model):
    SCOPE_SESSION = "SESSION"
    SCOPE_ACCOUNTS = "ACCOUNTS"

    SCOPES = [
        (SCOPE_SESSION, "Cashier session"),
        (SCOPE_ACCOUNTS, "Accounts"),
    ]

    STATUS_DRAFT = "DRAFT"
    STATUS_APPROVED = "APPROVED"

    STATUS_CHOICES = [
        (STATUS_DRAFT, "Draft"),
        (STATUS_APPROVED, "Approved"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    scope = models.CharField(max_length=10, choices=SCOPES)
    session = models.ForeignKey(
        CashierSession,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="reconciliations",
    )
    as_of = models.DateTimeField(default=timezone.now)

    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_DRAFT)

    declared_total = models.BigIntegerField(default=0)
    expected_total = models.BigIntegerField(default=0)
    variance_total = models.BigIntegerField(default=0)

    notes = models.TextField(blank=True, default="")

    created_by = models.CharField(max_length=100, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    approved_by = models.CharField(max_length=100, blank=True, default="")
    approved_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["scope", "status"], name="recon_scope_status_idx"),
            models.Index(fields=["session"], name="recon_session_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=(Q(scope="SESSION") & Q(session__isnull=False))
                | (Q(scope="ACCOUNTS") & Q(session__isnull=True)),
                name="chk_recon_scope_session",
            ),
        ]

    def __str__(self):
        return f"Reconciliation {self.id} ({self.scope}, {self.status})"

    def clean(self):
        if self.scope == self.SCOPE_SESSION and not self.session_id:
            raise ValidationError("Session reconciliations require a session")
        if self.scope == self.SCOPE_ACCOUNTS and self.session_id:
            raise ValidationError("Account reconciliations cannot reference a session")

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("Reconciliations cannot be deleted")


class ReconciliationLine(models.Model):
    reconciliation = models.ForeignKey(Reconciliation, on_delete=models.PROTECT, related_name="lines")
    account = models.ForeignKey(Account, on_delete=models.PROTECT, related_name="+")

    declared = models.BigIntegerField(help_text="Minor units")
    expected = models.BigIntegerField(help_text="Minor units")
    variance = models.BigIntegerField(help_text="declared - expected (minor units)")
    tolerance = models.BigIntegerField(default=0)
    has_variance = models.BooleanField(default=False)
    requires_review = models.BooleanField(default=False)

    adjustment_entry = models.ForeignKey(
        "accounting.JournalEntry",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="+",
        help_text="Variance adjustment posted on approval",
    )

    class Meta:
        ordering = ["account__code"]
        constraints = [
            models.UniqueConstraint(fields=["reconciliation", "account"], name="uniq_recon_line_account"),
            models.CheckConstraint(
                condition=Q(variance=F("declared") - F("expected")),
                name="chk_recon_line_variance_definition",
            ),
        ]

    def __str__(self):
        return f"{self.account.code}: declared {self.declared}, expected {self.expected}"
