# accounting/models/journal_line.py

"""
======================================================
PATH: accounting/models/journal_line.py
======================================================
JOURNAL LINE MODEL

One posting within a JournalEntry.

Guarantees:
- Immutable once created (no updates, no deletes)
- Amounts are integer minor units of the ledger currency
- Exactly one of debit/credit is nonzero; both are non-negative
- Lines are ordered by line_no inside their entry
"""

from __future__ import annotations

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q

from accounting.models.account import Account
from accounting.models.journal import JournalEntry


class JournalLine(models.Model):
    journal_entry = models.ForeignKey(
        JournalEntry,
        on_delete=models.PROTECT,
        related_name="lines",
    )

    line_no = models.PositiveIntegerField()

    account = models.ForeignKey(
        Account,
        on_delete=models.PROTECT,
        related_name="journal_lines",
    )

    debit = models.BigIntegerField(default=0, help_text="Minor units")
    credit = models.BigIntegerField(default=0, help_text="Minor units")

    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        verbose_name = "Journal Line"
        verbose_name_plural = "Journal Lines"
        ordering = ["journal_entry_id", "line_no"]
        indexes = [
            models.Index(fields=["account"], name="jl_account_idx"),
            models.Index(fields=["journal_entry"], name="jl_journal_entry_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["journal_entry", "line_no"],
                name="uniq_journal_line_no",
            ),
            models.CheckConstraint(
                condition=Q(debit__gte=0) & Q(credit__gte=0),
                name="chk_journal_line_non_negative",
            ),
            models.CheckConstraint(
                condition=(Q(debit__gt=0) & Q(credit=0)) | (Q(debit=0) & Q(credit__gt=0)),
                name="chk_journal_line_one_side",
            ),
        ]

    def __str__(self):
        side = f"Dr {self.debit}" if self.debit else f"Cr {self.credit}"
        return f"{side} → {self.account}"

    @property
    def signed_amount(self) -> int:
        """Debit-positive amount of this line."""
        return self.debit - self.credit

    def clean(self):
        if self.debit < 0 or self.credit < 0:
            raise ValidationError("Debit or credit cannot be negative")
        if (self.debit > 0) == (self.credit > 0):
            raise ValidationError("A journal line must have exactly one of debit or credit")

    def save(self, *args, **kwargs):
        if self.pk:
            raise ValidationError("JournalLine records are immutable and cannot be modified")

        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("JournalLine records are immutable and cannot be deleted")
