# payments/models/payment_allocation.py

"""
======================================================
PATH: payments/models/payment_allocation.py
======================================================
PAYMENT ALLOCATION MODEL

Audit + idempotency record of one allocate call.

Guarantees:
- Immutable once created
- total_allocated + excess_payment == payment_amount
- (party, idempotency_key) unique when a key is given; a retried call
  returns this record's result instead of allocating twice
"""

from __future__ import annotations

import uuid

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F, Q

from accounting.models.account import Account
from credit.models.party import Party


class PaymentAllocation(models.Model):
    MODE_BULK = "BULK"
    MODE_SINGLE = "SINGLE"

    MODES = [
        (MODE_BULK, "Bulk (FIFO across invoices)"),
        (MODE_SINGLE, "Single invoice"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    party = models.ForeignKey(Party, on_delete=models.PROTECT, related_name="allocations")
    mode = models.CharField(max_length=10, choices=MODES, default=MODE_BULK)

    payment_amount = models.BigIntegerField(help_text="Minor units")
    total_allocated = models.BigIntegerField(help_text="Minor units")
    excess_payment = models.BigIntegerField(help_text="Minor units")
    remaining_balance = models.BigIntegerField(help_text="Party's unpaid total after allocation (minor units)")

    settlement_account = models.ForeignKey(Account, on_delete=models.PROTECT, related_name="+")
    payment_method = models.CharField(max_length=40, blank=True, default="")

    reference = models.CharField(max_length=100, blank=True, default="")
    idempotency_key = models.CharField(max_length=100, blank=True, default="")

    cashier_session = models.UUIDField(null=True, blank=True)

    created_by = models.CharField(max_length=100, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["party", "created_at"], name="alloc_party_created_idx"),
            models.Index(fields=["cashier_session"], name="alloc_cashier_session_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["party", "idempotency_key"],
                condition=~Q(idempotency_key=""),
                name="uniq_allocation_party_idempotency",
            ),
            models.CheckConstraint(
                condition=Q(payment_amount__gt=0),
                name="chk_allocation_payment_positive",
            ),
            models.CheckConstraint(
                condition=Q(total_allocated__gte=0) & Q(excess_payment__gte=0),
                name="chk_allocation_non_negative",
            ),
            models.CheckConstraint(
                condition=Q(payment_amount=F("total_allocated") + F("excess_payment")),
                name="chk_allocation_conservation",
            ),
        ]

    def __str__(self):
        return f"Allocation {self.id} – {self.party} – {self.total_allocated}/{self.payment_amount}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("PaymentAllocation records are immutable once created")
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("PaymentAllocation records are immutable and cannot be deleted")
