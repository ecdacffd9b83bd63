# cashier/models/cash_count.py

"""
======================================================
PATH: cashier/models/cash_count.py
======================================================
CASH COUNT MODEL

A blind count: the cashier declares what is in the drawer (or wallet) for
one account; the expected amount is computed from the ledger at the moment
of the count.

Guarantees:
- variance == declared_amount - expected_amount
- has_variance == abs(variance) > tolerance (tolerance frozen at count time)
- Figures are write-once; only the explanation and review record can change
"""

from __future__ import annotations

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from accounting.models.account import Account
from cashier.models.cashier_session import CashierSession


class CashCount(models.Model):
    TYPE_OPENING = "OPENING"
    TYPE_INTERIM = "INTERIM"
    TYPE_CLOSING = "CLOSING"

    COUNT_TYPES = [
        (TYPE_OPENING, "Opening"),
        (TYPE_INTERIM, "Interim"),
        (TYPE_CLOSING, "Closing"),
    ]

    # Fields that may change after the count is recorded.
    MUTABLE_FIELDS = frozenset({"variance_reason", "reviewed_by", "reviewed_at", "review_notes"})

    session = models.ForeignKey(CashierSession, on_delete=models.PROTECT, related_name="cash_counts")
    account = models.ForeignKey(Account, on_delete=models.PROTECT, related_name="+")

    count_type = models.CharField(max_length=10, choices=COUNT_TYPES, default=TYPE_INTERIM)

    declared_amount = models.BigIntegerField(help_text="Minor units")
    expected_amount = models.BigIntegerField(help_text="Minor units, from the ledger at count time")
    variance = models.BigIntegerField(help_text="declared - expected (minor units)")
    tolerance = models.BigIntegerField(default=0, help_text="Tolerance in force at count time")
    has_variance = models.BooleanField(default=False)

    variance_reason = models.TextField(blank=True, default="")

    counted_by = models.CharField(max_length=100, blank=True, default="")
    taken_at = models.DateTimeField(default=timezone.now)

    reviewed_by = models.CharField(max_length=100, blank=True, default="")
    reviewed_at = models.DateTimeField(null=True, blank=True)
    review_notes = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["taken_at", "id"]
        indexes = [
            models.Index(fields=["session", "count_type"], name="count_session_type_idx"),
            models.Index(fields=["has_variance", "reviewed_at"], name="count_variance_review_idx"),
        ]
        constraints = [
            models.CheckConstraint(condition=Q(declared_amount__gte=0), name="chk_count_declared_non_negative"),
            models.CheckConstraint(
                condition=Q(variance=F("declared_amount") - F("expected_amount")),
                name="chk_count_variance_definition",
            ),
            models.CheckConstraint(condition=Q(tolerance__gte=0), name="chk_count_tolerance_non_negative"),
        ]

    def __str__(self):
        return f"{self.get_count_type_display()} count {self.account.code}: {self.declared_amount}"

    @property
    def is_reviewed(self) -> bool:
        return self.reviewed_at is not None

    @property
    def is_resolved(self) -> bool:
        """A variance is resolved once it is explained or reviewed."""
        return (not self.has_variance) or bool(self.variance_reason.strip()) or self.is_reviewed

    def save(self, *args, **kwargs):
        if not self._state.adding:
            update_fields = kwargs.get("update_fields")
            if update_fields is None or not set(update_fields) <= self.MUTABLE_FIELDS:
                raise ValidationError("Cash count figures are immutable once recorded")
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("Cash counts cannot be deleted")
