# accounting/models/account.py

from __future__ import annotations

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q


class Account(models.Model):
    """
    A named ledger bucket (Cash, M-Pesa clearing, Accounts Receivable, ...).

    Guarantees:
    - Account codes are globally unique
    - Code + name are normalized (trimmed)
    - Balance is never stored; it is derived from JournalLine postings
    - Parent (control) accounts receive no direct postings; their balance is
      the rollup of their children (e.g. AR -> one sub-account per customer)
    """

    ASSET = "ASSET"
    LIABILITY = "LIABILITY"
    EQUITY = "EQUITY"
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"

    ACCOUNT_TYPES = [
        (ASSET, "Asset"),
        (LIABILITY, "Liability"),
        (EQUITY, "Equity"),
        (INCOME, "Income"),
        (EXPENSE, "Expense"),
    ]

    DEBIT_NORMAL_TYPES = (ASSET, EXPENSE)

    code = models.CharField(max_length=64, unique=True)
    name = models.CharField(max_length=150)

    account_type = models.CharField(
        max_length=20,
        choices=ACCOUNT_TYPES,
    )

    parent = models.ForeignKey(
        "self",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="children",
    )

    is_parent = models.BooleanField(
        default=False,
        help_text="Control account: balance is the rollup of its children, no direct postings",
    )

    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["code"]
        verbose_name = "Account"
        verbose_name_plural = "Accounts"
        indexes = [
            models.Index(fields=["account_type"], name="acct_type_idx"),
            models.Index(fields=["is_active"], name="acct_active_idx"),
            models.Index(fields=["parent"], name="acct_parent_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=~Q(code=""),
                name="chk_account_code_not_blank",
            ),
            models.CheckConstraint(
                condition=~Q(name=""),
                name="chk_account_name_not_blank",
            ),
        ]

    def __str__(self):
        return f"{self.code} – {self.name}"

    @property
    def is_debit_normal(self) -> bool:
        return self.account_type in self.DEBIT_NORMAL_TYPES

    def clean(self):
        self.code = (self.code or "").strip()
        self.name = (self.name or "").strip()

        if not self.code:
            raise ValidationError("Account code is required")
        if not self.name:
            raise ValidationError("Account name is required")

        if self.parent_id is not None:
            if self.pk is not None and self.parent_id == self.pk:
                raise ValidationError("An account cannot be its own parent")
            if self.parent.account_type != self.account_type:
                raise ValidationError(
                    "Sub-accounts must share the parent's account type "
                    f"({self.parent.account_type})"
                )

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)
