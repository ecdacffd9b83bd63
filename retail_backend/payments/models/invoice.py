# payments/models/invoice.py

"""
======================================================
PATH: payments/models/invoice.py
======================================================
INVOICE MODEL

A sales order (customer owes us) or purchase order (we owe a supplier),
abstracted to what allocation needs.

Guarantees:
- total_amount is positive integer minor units
- Settled amounts are InvoicePayment rows; outstanding is derived from them
- FIFO key is (issued_at, created_at)
"""

from __future__ import annotations

import uuid

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q
from django.utils import timezone

from accounting.models.journal import JournalEntry
from credit.models.party import Party


class Invoice(models.Model):
    SALE = "SALE"
    PURCHASE = "PURCHASE"

    INVOICE_TYPES = [
        (SALE, "Sale"),
        (PURCHASE, "Purchase"),
    ]

    STATUS_DRAFT = "DRAFT"
    STATUS_CONFIRMED = "CONFIRMED"
    STATUS_PARTIALLY_PAID = "PARTIALLY_PAID"
    STATUS_PAID = "PAID"
    STATUS_CANCELLED = "CANCELLED"

    STATUS_CHOICES = [
        (STATUS_DRAFT, "Draft"),
        (STATUS_CONFIRMED, "Confirmed"),
        (STATUS_PARTIALLY_PAID, "Partially paid"),
        (STATUS_PAID, "Paid"),
        (STATUS_CANCELLED, "Cancelled"),
    ]

    PAYABLE_STATUSES = (STATUS_CONFIRMED, STATUS_PARTIALLY_PAID)

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    party = models.ForeignKey(Party, on_delete=models.PROTECT, related_name="invoices")

    invoice_type = models.CharField(max_length=10, choices=INVOICE_TYPES, default=SALE)
    reference = models.CharField(max_length=64, unique=True)

    total_amount = models.BigIntegerField(help_text="Minor units")

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_DRAFT)

    is_credit = models.BooleanField(
        default=True,
        help_text="Issued on credit: confirmation is checked against the party's credit policy",
    )

    issued_at = models.DateTimeField(default=timezone.now)
    due_date = models.DateField(null=True, blank=True)

    memo = models.CharField(max_length=255, blank=True, default="")

    journal_entry = models.ForeignKey(
        JournalEntry,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="+",
        help_text="Posting that raised the debt (set on confirmation)",
    )

    created_by = models.CharField(max_length=100, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["issued_at", "created_at"]
        indexes = [
            models.Index(fields=["party", "status", "issued_at"], name="invoice_party_status_idx"),
            models.Index(fields=["status"], name="invoice_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(total_amount__gt=0),
                name="chk_invoice_total_positive",
            ),
        ]

    def __str__(self):
        return f"{self.reference} ({self.invoice_type}, {self.status})"

    @property
    def is_payable(self) -> bool:
        return self.status in self.PAYABLE_STATUSES

    def clean(self):
        self.reference = (self.reference or "").strip()
        if not self.reference:
            raise ValidationError("Invoice reference is required")

        if isinstance(self.total_amount, bool) or not isinstance(self.total_amount, int):
            raise ValidationError("Invoice total must be an integer amount of minor units")
        if self.total_amount <= 0:
            raise ValidationError("Invoice total must be positive")

        if self.party_id:
            expected = Party.SUPPLIER if self.invoice_type == self.PURCHASE else Party.CUSTOMER
            if self.party.party_type != expected:
                raise ValidationError(
                    f"{self.invoice_type} invoices require a {expected.lower()} party"
                )

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)
