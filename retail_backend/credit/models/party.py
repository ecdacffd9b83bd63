# credit/models/party.py

from __future__ import annotations

import uuid

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q


class Party(models.Model):
    """
    A customer or supplier the ledger tracks a balance for.

    The owning CRM / supplier records live elsewhere; this row is the
    engine's identity for them (AR sub-account for customers, AP for suppliers).
    """

    CUSTOMER = "CUSTOMER"
    SUPPLIER = "SUPPLIER"

    PARTY_TYPES = [
        (CUSTOMER, "Customer"),
        (SUPPLIER, "Supplier"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    party_type = models.CharField(max_length=10, choices=PARTY_TYPES, default=CUSTOMER)
    name = models.CharField(max_length=150)
    phone = models.CharField(max_length=30, blank=True, default="")
    external_ref = models.CharField(
        max_length=100,
        blank=True,
        default="",
        help_text="Identifier of the customer/supplier record in the owning system",
    )

    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        verbose_name = "Party"
        verbose_name_plural = "Parties"
        indexes = [
            models.Index(fields=["party_type", "is_active"], name="party_type_active_idx"),
            models.Index(fields=["external_ref"], name="party_external_ref_idx"),
        ]
        constraints = [
            models.CheckConstraint(condition=~Q(name=""), name="chk_party_name_not_blank"),
        ]

    def __str__(self):
        return f"{self.name} ({self.party_type})"

    @property
    def is_supplier(self) -> bool:
        return self.party_type == self.SUPPLIER

    def clean(self):
        self.name = (self.name or "").strip()
        self.phone = (self.phone or "").strip()
        if not self.name:
            raise ValidationError("Party name is required")

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)
