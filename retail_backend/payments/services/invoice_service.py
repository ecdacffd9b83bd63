# payments/services/invoice_service.py

"""
======================================================
PATH: payments/services/invoice_service.py
======================================================
INVOICE SERVICE

Invoices are owned by the order/purchasing flows outside this engine; this
service covers only what allocation needs:
- create (DRAFT), confirm (posts the debt), cancel (drafts only)
- outstanding per invoice = total - sum(InvoicePayment)
- FIFO listing of a party's unpaid invoices

Confirming a credit invoice is the validate+commit span of the credit
policy: it runs under the party lock so two concurrent credit sales cannot
both pass the same limit check.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

from accounting.services.account_resolver import (
    get_party_account,
    get_purchases_account,
    get_sales_account,
)
from accounting.services.journal_entry_service import create_journal_entry
from accounting.types import InvoiceId, MinorUnits, PartyId
from credit.models.party import Party
from credit.services.credit_service import assert_credit_available, lock_credit_profile
from credit.services.party_service import get_party
from payments.models.invoice import Invoice
from payments.models.invoice_payment import InvoicePayment
from payments.services.exceptions import (
    InvalidPaymentAmountError,
    InvoiceNotFoundError,
    InvoiceStateError,
)

logger = logging.getLogger("payments")

INVOICE_SOURCE_TYPE = "invoice"


@dataclass(frozen=True)
class UnpaidInvoice:
    invoice_id: InvoiceId
    reference: str
    invoice_type: str
    issued_at: datetime
    due_date: object
    total_amount: int
    amount_paid: int
    outstanding: int
    status: str


def get_invoice(invoice_id: InvoiceId, *, for_update: bool = False) -> Invoice:
    if isinstance(invoice_id, Invoice):
        invoice_id = invoice_id.pk
    qs = Invoice.objects.select_related("party")
    if for_update:
        qs = qs.select_for_update()
    try:
        return qs.get(pk=invoice_id)
    except (Invoice.DoesNotExist, ValidationError, ValueError) as exc:
        raise InvoiceNotFoundError(f"Invoice {invoice_id} not found") from exc


def amount_paid(invoice: Invoice) -> int:
    return int(
        InvoicePayment.objects.filter(invoice=invoice).aggregate(
            total=Coalesce(Sum("amount"), 0)
        )["total"]
    )


def invoice_outstanding(invoice: Invoice) -> int:
    if invoice.status in (Invoice.STATUS_DRAFT, Invoice.STATUS_CANCELLED):
        return 0
    return invoice.total_amount - amount_paid(invoice)


def _paid_by_invoice(invoice_ids) -> dict:
    rows = (
        InvoicePayment.objects.filter(invoice_id__in=list(invoice_ids))
        .values("invoice_id")
        .annotate(total=Coalesce(Sum("amount"), 0))
    )
    return {r["invoice_id"]: int(r["total"]) for r in rows}


def fifo_order(qs):
    """Oldest debt first: issue date, then creation order."""
    return qs.order_by("issued_at", "created_at", "reference")


def payable_invoices(party: Party):
    return fifo_order(
        Invoice.objects.filter(party=party, status__in=Invoice.PAYABLE_STATUSES)
    )


def list_unpaid_invoices(party_id: PartyId) -> list[UnpaidInvoice]:
    party = get_party(party_id)
    invoices = list(payable_invoices(party))
    paid = _paid_by_invoice(inv.pk for inv in invoices)

    results = []
    for inv in invoices:
        inv_paid = paid.get(inv.pk, 0)
        outstanding = inv.total_amount - inv_paid
        if outstanding <= 0:
            continue
        results.append(
            UnpaidInvoice(
                invoice_id=inv.pk,
                reference=inv.reference,
                invoice_type=inv.invoice_type,
                issued_at=inv.issued_at,
                due_date=inv.due_date,
                total_amount=inv.total_amount,
                amount_paid=inv_paid,
                outstanding=outstanding,
                status=inv.status,
            )
        )
    return results


def party_unpaid_total(party: Party) -> int:
    """Sum of unpaid balances across all of the party's invoices."""
    return sum(row.outstanding for row in list_unpaid_invoices(party))


def refresh_status(invoice: Invoice, *, outstanding: int | None = None) -> Invoice:
    if not invoice.is_payable:
        return invoice

    if outstanding is None:
        outstanding = invoice_outstanding(invoice)

    if outstanding <= 0:
        new_status = Invoice.STATUS_PAID
    elif outstanding < invoice.total_amount:
        new_status = Invoice.STATUS_PARTIALLY_PAID
    else:
        new_status = Invoice.STATUS_CONFIRMED

    if new_status != invoice.status:
        invoice.status = new_status
        invoice.save(update_fields=["status", "updated_at"])
    return invoice


# ------------------------------------------------------------
# LIFECYCLE
# ------------------------------------------------------------


@transaction.atomic
def create_invoice(
    *,
    party_id: PartyId,
    total_amount: MinorUnits,
    reference: str = "",
    invoice_type: str | None = None,
    is_credit: bool = True,
    issued_at: datetime | None = None,
    memo: str = "",
    actor: str = "",
    confirm: bool = False,
) -> Invoice:
    if isinstance(total_amount, bool) or not isinstance(total_amount, int) or total_amount <= 0:
        raise InvalidPaymentAmountError("Invoice total must be a positive integer amount of minor units")

    party = get_party(party_id)
    if invoice_type is None:
        invoice_type = Invoice.PURCHASE if party.is_supplier else Invoice.SALE

    try:
        invoice = Invoice.objects.create(
            party=party,
            invoice_type=invoice_type,
            reference=(reference or "").strip() or f"INV-{uuid.uuid4().hex[:10].upper()}",
            total_amount=total_amount,
            is_credit=is_credit,
            issued_at=issued_at or timezone.now(),
            memo=memo or "",
            created_by=actor or "",
        )
    except ValidationError as exc:
        raise InvoiceStateError("; ".join(exc.messages)) from exc

    logger.info(
        "Invoice created",
        extra={
            "invoice_id": str(invoice.pk),
            "party_id": str(party.pk),
            "total_amount": total_amount,
            "invoice_type": invoice_type,
        },
    )

    if confirm:
        invoice = confirm_invoice(invoice.pk, actor=actor)
    return invoice


@transaction.atomic
def confirm_invoice(invoice_id: InvoiceId, *, actor: str = "") -> Invoice:
    """
    DRAFT -> CONFIRMED and post the debt:
    - SALE:     Dr party AR sub-account / Cr Sales
    - PURCHASE: Dr Purchases / Cr party AP sub-account

    Credit invoices are checked against the party's credit policy under the
    party lock (CreditNotApprovedError / CreditFrozenError / CreditLimitExceededError).
    """
    invoice = get_invoice(invoice_id)

    # Lock order everywhere: party profile first, then invoices.
    profile = lock_credit_profile(invoice.party_id)
    invoice = get_invoice(invoice.pk, for_update=True)

    if invoice.status != Invoice.STATUS_DRAFT:
        raise InvoiceStateError(f"Only draft invoices can be confirmed (status={invoice.status})")

    if invoice.is_credit:
        assert_credit_available(profile, invoice.total_amount)

    party_account = get_party_account(invoice.party)
    if invoice.invoice_type == Invoice.SALE:
        lines = [
            {"account": party_account, "debit": invoice.total_amount},
            {"account": get_sales_account(), "credit": invoice.total_amount},
        ]
    else:
        lines = [
            {"account": get_purchases_account(), "debit": invoice.total_amount},
            {"account": party_account, "credit": invoice.total_amount},
        ]
    for line in lines:
        line["metadata"] = {"invoice_id": str(invoice.pk), "reference": invoice.reference}

    entry = create_journal_entry(
        memo=f"{invoice.get_invoice_type_display()} invoice {invoice.reference}",
        lines=lines,
        source_type=INVOICE_SOURCE_TYPE,
        source_id=str(invoice.pk),
        entry_date=timezone.localtime(invoice.issued_at).date(),
        created_by=actor,
    )

    invoice.status = Invoice.STATUS_CONFIRMED
    invoice.journal_entry = entry
    if invoice.is_credit:
        invoice.due_date = timezone.localtime(invoice.issued_at).date() + timedelta(
            days=profile.credit_duration_days
        )
    invoice.save(update_fields=["status", "journal_entry", "due_date", "updated_at"])

    logger.info(
        "Invoice confirmed",
        extra={
            "invoice_id": str(invoice.pk),
            "party_id": str(invoice.party_id),
            "total_amount": invoice.total_amount,
            "journal_entry_id": entry.id,
            "actor": actor,
        },
    )
    return invoice


@transaction.atomic
def cancel_invoice(invoice_id: InvoiceId, *, actor: str = "") -> Invoice:
    """Only drafts can be cancelled; posted debt is corrected by reversal, never deleted."""
    invoice = get_invoice(invoice_id, for_update=True)

    if invoice.status != Invoice.STATUS_DRAFT:
        raise InvoiceStateError(
            f"Only draft invoices can be cancelled (status={invoice.status}); "
            "reverse the posting instead"
        )

    invoice.status = Invoice.STATUS_CANCELLED
    invoice.save(update_fields=["status", "updated_at"])

    logger.info("Invoice cancelled", extra={"invoice_id": str(invoice.pk), "actor": actor})
    return invoice
