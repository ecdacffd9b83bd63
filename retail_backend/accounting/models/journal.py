# accounting/models/journal.py

"""
======================================================
PATH: accounting/models/journal.py
======================================================
JOURNAL ENTRY MODEL

Represents one business event (sale, payment, transfer, variance adjustment).

Guarantees:
- Immutable once created (no updates, no deletes); corrections are reversing entries
- Idempotency via (source_type, source_id, idempotency_key) uniqueness
- entry_date is the accounting effective date; posted_at is the write timestamp
"""

from __future__ import annotations

from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone


class JournalEntry(models.Model):
    source_type = models.CharField(
        max_length=50,
        help_text="Kind of domain event that produced the entry (invoice, invoice-payment, ...)",
    )
    source_id = models.CharField(
        max_length=100,
        help_text="Identifier of the originating domain event",
    )
    idempotency_key = models.CharField(
        max_length=100,
        blank=True,
        default="",
        help_text="Distinguishes legitimate repeat postings for the same source",
    )

    reference = models.CharField(
        max_length=260,
        editable=False,
        help_text="Normalized source_type:source_id[:idempotency_key]",
    )

    memo = models.TextField(help_text="Narrative description of the journal entry")

    entry_date = models.DateField(
        default=timezone.localdate,
        help_text="Accounting effective date",
    )

    posted_at = models.DateTimeField(
        default=timezone.now,
        help_text="Timestamp when the entry was written",
    )

    cashier_session = models.UUIDField(
        null=True,
        blank=True,
        help_text="Cashier session the postings are attributed to (if any)",
    )

    reversal_of = models.OneToOneField(
        "self",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="reversed_by",
    )

    created_by = models.CharField(max_length=100, blank=True, default="")

    class Meta:
        ordering = ["-entry_date", "-posted_at", "-id"]
        indexes = [
            models.Index(fields=["entry_date"], name="je_entry_date_idx"),
            models.Index(fields=["posted_at"], name="je_posted_at_idx"),
            models.Index(fields=["source_type", "source_id"], name="je_source_idx"),
            models.Index(fields=["cashier_session"], name="je_cashier_session_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["source_type", "source_id", "idempotency_key"],
                name="uniq_journal_source_idempotency",
            )
        ]
        verbose_name = "Journal Entry"
        verbose_name_plural = "Journal Entries"

    def __str__(self):
        return f"JournalEntry #{self.id} – {self.reference} – {self.entry_date}"

    @staticmethod
    def build_reference(source_type: str, source_id: str, idempotency_key: str = "") -> str:
        ref = f"{source_type}:{source_id}"
        return f"{ref}:{idempotency_key}" if idempotency_key else ref

    def clean(self):
        self.source_type = (self.source_type or "").strip()
        self.source_id = (self.source_id or "").strip()
        self.idempotency_key = (self.idempotency_key or "").strip()

        if not self.source_type or not self.source_id:
            raise ValidationError("Journal entry source_type and source_id are required")

        self.memo = (self.memo or "").strip()
        if not self.memo:
            raise ValidationError("Journal entry memo is required")

        self.reference = self.build_reference(
            self.source_type, self.source_id, self.idempotency_key
        )

    def save(self, *args, **kwargs):
        if self.pk:
            raise ValidationError("JournalEntry records are immutable once created")

        self.full_clean(validate_constraints=False)
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("JournalEntry records are immutable and cannot be deleted")
