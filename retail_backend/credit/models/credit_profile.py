# credit/models/credit_profile.py

"""
======================================================
PATH: credit/models/credit_profile.py
======================================================
CREDIT PROFILE MODEL

Policy record governing whether and how much a party may owe.

Guarantees:
- No outstanding / available balance is stored here; both are derived
  from the party's ledger sub-account on every read
- Mutated only by credit_service (approve / limit / duration / freeze / repayment tracking)
- last_repayment_* are informational, never used for balance math
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import Q

from credit.models.party import Party


def default_credit_duration_days() -> int:
    return int(settings.LEDGER["CREDIT_DEFAULT_DURATION_DAYS"])


class CreditProfile(models.Model):
    party = models.OneToOneField(
        Party,
        on_delete=models.PROTECT,
        related_name="credit_profile",
    )

    is_approved = models.BooleanField(default=False)
    credit_limit = models.BigIntegerField(default=0, help_text="Minor units")
    credit_duration_days = models.PositiveIntegerField(default=default_credit_duration_days)

    is_frozen = models.BooleanField(
        default=False,
        help_text="Blocks new credit issuance; repayments are still accepted",
    )

    approved_by = models.CharField(max_length=100, blank=True, default="")
    approved_at = models.DateTimeField(null=True, blank=True)
    frozen_at = models.DateTimeField(null=True, blank=True)

    last_repayment_at = models.DateTimeField(null=True, blank=True)
    last_repayment_amount = models.BigIntegerField(null=True, blank=True, help_text="Minor units")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Credit Profile"
        verbose_name_plural = "Credit Profiles"
        constraints = [
            models.CheckConstraint(
                condition=Q(credit_limit__gte=0),
                name="chk_credit_limit_non_negative",
            ),
            models.CheckConstraint(
                condition=Q(credit_duration_days__gte=1),
                name="chk_credit_duration_positive",
            ),
        ]

    def __str__(self):
        state = "approved" if self.is_approved else "not approved"
        if self.is_frozen:
            state += ", frozen"
        return f"Credit[{self.party}] limit={self.credit_limit} ({state})"
