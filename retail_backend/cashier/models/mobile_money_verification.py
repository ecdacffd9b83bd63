# cashier/models/mobile_money_verification.py

from __future__ import annotations

from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from accounting.models.account import Account
from cashier.models.cashier_session import CashierSession


class MobileMoneyVerification(models.Model):
    """
    Cashier / supervisor confirmation that the session's mobile money
    (M-Pesa) receipts actually arrived. Append-only: a later verification
    supersedes an earlier one for the same account.
    """

    session = models.ForeignKey(
        CashierSession,
        on_delete=models.PROTECT,
        related_name="mobile_money_verifications",
    )
    account = models.ForeignKey(Account, on_delete=models.PROTECT, related_name="+")

    transaction_ids = models.JSONField(default=list, blank=True)
    flagged_transaction_ids = models.JSONField(default=list, blank=True)
    all_confirmed = models.BooleanField(default=False)

    notes = models.TextField(blank=True, default="")
    verified_by = models.CharField(max_length=100, blank=True, default="")
    verified_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-verified_at", "-id"]
        indexes = [
            models.Index(fields=["session", "account", "verified_at"], name="mmv_session_account_idx"),
        ]

    def __str__(self):
        state = "confirmed" if self.all_confirmed else f"{len(self.flagged_transaction_ids)} flagged"
        return f"Mobile money verification {self.session_id} ({state})"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("Mobile money verifications are immutable once recorded")
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("Mobile money verifications cannot be deleted")
