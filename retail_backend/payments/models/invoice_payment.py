# payments/models/invoice_payment.py

"""
======================================================
PATH: payments/models/invoice_payment.py
======================================================
INVOICE PAYMENT MODEL

One amount applied to one invoice by one allocation step.

Guarantees:
- Immutable once created
- amount > 0 and equals the journal entry that moved the money
"""

from __future__ import annotations

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q

from accounting.models.account import Account
from accounting.models.journal import JournalEntry
from payments.models.invoice import Invoice
from payments.models.payment_allocation import PaymentAllocation


class InvoicePayment(models.Model):
    invoice = models.ForeignKey(Invoice, on_delete=models.PROTECT, related_name="payments")
    allocation = models.ForeignKey(
        PaymentAllocation,
        on_delete=models.PROTECT,
        related_name="payments",
    )

    step = models.PositiveIntegerField(help_text="Order in which the allocation applied this amount")
    amount = models.BigIntegerField(help_text="Minor units")

    settlement_account = models.ForeignKey(Account, on_delete=models.PROTECT, related_name="+")
    journal_entry = models.OneToOneField(
        JournalEntry,
        on_delete=models.PROTECT,
        related_name="invoice_payment",
    )

    reference = models.CharField(max_length=100, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["allocation_id", "step"]
        indexes = [
            models.Index(fields=["invoice"], name="invpay_invoice_idx"),
        ]
        constraints = [
            models.CheckConstraint(condition=Q(amount__gt=0), name="chk_invoice_payment_positive"),
            models.UniqueConstraint(fields=["allocation", "invoice"], name="uniq_invoice_payment_per_allocation"),
        ]

    def __str__(self):
        return f"{self.amount} → {self.invoice.reference}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("InvoicePayment records are immutable once created")
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("InvoicePayment records are immutable and cannot be deleted")
