# cashier/models/cashier_session.py

"""
======================================================
PATH: cashier/models/cashier_session.py
======================================================
CASHIER SESSION MODEL

One cashier's shift on one channel (till / branch / register).

Guarantees:
- At most one OPEN session per (channel, cashier_id), enforced in the database
- Status moves only through cashier.services.lifecycle
- Opening / closing figures are per account code, integer minor units
"""

from __future__ import annotations

import uuid

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q
from django.utils import timezone


def _validate_amount_map(value, *, field: str):
    if not isinstance(value, dict):
        raise ValidationError({field: "Must be a mapping of account code to amount"})
    for code, amount in value.items():
        if not str(code).strip():
            raise ValidationError({field: "Account codes cannot be blank"})
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise ValidationError({field: f"Amount for {code} must be an integer of minor units"})
        if amount < 0:
            raise ValidationError({field: f"Amount for {code} cannot be negative"})


class CashierSession(models.Model):
    STATUS_OPEN = "OPEN"
    STATUS_CLOSED = "CLOSED"
    STATUS_RECONCILED = "RECONCILED"

    STATUS_CHOICES = [
        (STATUS_OPEN, "Open"),
        (STATUS_CLOSED, "Closed"),
        (STATUS_RECONCILED, "Reconciled"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    channel = models.CharField(max_length=64, help_text="Till / register / branch the session runs on")
    cashier_id = models.CharField(max_length=100)

    status = models.CharField(max_length=12, choices=STATUS_CHOICES, default=STATUS_OPEN)

    opened_at = models.DateTimeField(default=timezone.now)
    closed_at = models.DateTimeField(null=True, blank=True)
    reconciled_at = models.DateTimeField(null=True, blank=True)
    reconciled_by = models.CharField(max_length=100, blank=True, default="")

    opening_balances = models.JSONField(
        default=dict,
        blank=True,
        help_text="Declared opening float per account code (minor units)",
    )
    closing_declared = models.JSONField(
        default=dict,
        blank=True,
        help_text="Declared closing amount per account code (minor units)",
    )

    notes = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-opened_at"]
        indexes = [
            models.Index(fields=["channel", "status"], name="session_channel_status_idx"),
            models.Index(fields=["cashier_id", "opened_at"], name="session_cashier_opened_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["channel", "cashier_id"],
                condition=Q(status="OPEN"),
                name="uniq_open_session_per_cashier_channel",
            ),
            models.CheckConstraint(condition=~Q(channel=""), name="chk_session_channel_not_blank"),
            models.CheckConstraint(condition=~Q(cashier_id=""), name="chk_session_cashier_not_blank"),
        ]

    def __str__(self):
        return f"Session {self.id} – {self.channel}/{self.cashier_id} ({self.status})"

    @property
    def is_open(self) -> bool:
        return self.status == self.STATUS_OPEN

    def clean(self):
        self.channel = (self.channel or "").strip()
        self.cashier_id = (self.cashier_id or "").strip()
        if not self.channel:
            raise ValidationError({"channel": "Channel is required"})
        if not self.cashier_id:
            raise ValidationError({"cashier_id": "Cashier is required"})
        _validate_amount_map(self.opening_balances, field="opening_balances")
        _validate_amount_map(self.closing_declared, field="closing_declared")

    def save(self, *args, **kwargs):
        # The open-session uniqueness is left to the database so racing opens
        # surface as IntegrityError inside session_service.
        self.full_clean(validate_constraints=False)
        return super().save(*args, **kwargs)
