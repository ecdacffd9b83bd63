# payments/services/allocation_service.py

"""
======================================================
PATH: payments/services/allocation_service.py
======================================================
PAYMENT ALLOCATOR

Distributes one payment across a party's unpaid invoices, oldest first.

Bulk algorithm:
1. Candidates: the supplied invoice ids (must all belong to the party),
   narrowed to payable ones, or every payable invoice of the party
2. FIFO order: issued_at, then creation order
3. Apply min(remaining payment, invoice outstanding) per invoice; each step
   posts one balanced journal entry and one InvoicePayment
4. Stop at zero remaining payment or end of list
5. excess_payment = what is left (reported, never dropped, never an error)
6. remaining_balance = unpaid total across ALL the party's invoices afterwards

Guarantees:
- One transaction holding the party lock for the whole call
- total_allocated + excess_payment == payment_amount
- Ledger postings made by the call sum to exactly total_allocated (checked)
- A repeated idempotency_key returns the stored result
- Frozen / unapproved parties can still repay
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field

from django.db import transaction
from django.db.models import Sum
from django.db.models.functions import Coalesce

from accounting.models.journal_line import JournalLine
from accounting.services.account_resolver import get_party_account, get_settlement_account
from accounting.services.journal_entry_service import create_journal_entry
from accounting.types import AccountCode, InvoiceId, MinorUnits, PartyId
from cashier.services.session_gate import assert_session_accepts_postings
from credit.services.credit_service import lock_credit_profile, record_repayment
from payments.models.invoice import Invoice
from payments.models.invoice_payment import InvoicePayment
from payments.models.payment_allocation import PaymentAllocation
from payments.services.exceptions import (
    AllocationIntegrityError,
    InvalidPaymentAmountError,
    InvoiceNotFoundError,
    InvoiceNotPayableError,
)
from payments.services.invoice_service import (
    _paid_by_invoice,
    fifo_order,
    get_invoice,
    invoice_outstanding,
    party_unpaid_total,
    refresh_status,
)

logger = logging.getLogger("payments")

PAYMENT_SOURCE_TYPE = "invoice-payment"


@dataclass(frozen=True)
class InvoiceAllocation:
    invoice_id: InvoiceId
    reference: str
    amount_paid: int


@dataclass(frozen=True)
class AllocationResult:
    invoices_paid: list = field(default_factory=list)
    remaining_balance: int = 0
    total_allocated: int = 0
    excess_payment: int = 0
    allocation_id: uuid.UUID | None = None
    replayed: bool = False


def _validate_amount(payment_amount) -> int:
    if isinstance(payment_amount, bool) or not isinstance(payment_amount, int):
        raise InvalidPaymentAmountError("Payment amount must be an integer amount of minor units")
    if payment_amount <= 0:
        raise InvalidPaymentAmountError("Payment amount must be greater than zero")
    return payment_amount


def _result_from_allocation(allocation: PaymentAllocation, *, replayed: bool) -> AllocationResult:
    payments = allocation.payments.select_related("invoice").order_by("step")
    return AllocationResult(
        invoices_paid=[
            InvoiceAllocation(p.invoice_id, p.invoice.reference, p.amount) for p in payments
        ],
        remaining_balance=allocation.remaining_balance,
        total_allocated=allocation.total_allocated,
        excess_payment=allocation.excess_payment,
        allocation_id=allocation.id,
        replayed=replayed,
    )


def _resolve_candidates(party, invoice_ids) -> list[Invoice]:
    if invoice_ids is None:
        return list(
            fifo_order(
                Invoice.objects.select_for_update().filter(
                    party=party, status__in=Invoice.PAYABLE_STATUSES
                )
            )
        )

    requested = []
    for raw in invoice_ids:
        try:
            requested.append(InvoiceId(uuid.UUID(str(raw))))
        except ValueError as exc:
            raise InvoiceNotFoundError(f"Invoice {raw} not found") from exc

    if not requested:
        return []

    found = list(
        fifo_order(Invoice.objects.select_for_update().filter(pk__in=requested, party=party))
    )
    missing = set(requested) - {inv.pk for inv in found}
    if missing:
        raise InvoiceNotFoundError(
            "Invoice(s) not found for this party: " + ", ".join(sorted(str(m) for m in missing))
        )

    return [inv for inv in found if inv.is_payable]


def _plan(candidates: list[Invoice], payment_amount: int) -> list[tuple[Invoice, int, int]]:
    """[(invoice, outstanding_before, amount_to_apply)] in FIFO order."""
    paid = _paid_by_invoice(inv.pk for inv in candidates)
    remaining = payment_amount
    steps = []
    for inv in candidates:
        if remaining <= 0:
            break
        outstanding = inv.total_amount - paid.get(inv.pk, 0)
        if outstanding <= 0:
            continue
        applied = min(remaining, outstanding)
        steps.append((inv, outstanding, applied))
        remaining -= applied
    return steps


def _payment_lines(invoice: Invoice, amount: int, *, party_account, settlement_account, metadata):
    if invoice.invoice_type == Invoice.SALE:
        # money in: Dr cash/M-Pesa/bank, Cr customer receivable
        return [
            {"account": settlement_account, "debit": amount, "metadata": metadata},
            {"account": party_account, "credit": amount, "metadata": metadata},
        ]
    # money out: Dr supplier payable, Cr cash/M-Pesa/bank
    return [
        {"account": party_account, "debit": amount, "metadata": metadata},
        {"account": settlement_account, "credit": amount, "metadata": metadata},
    ]


@transaction.atomic
def _allocate(
    party_id: PartyId,
    payment_amount: MinorUnits,
    *,
    invoice_ids,
    mode: str,
    payment_method: str,
    settlement_account_code: AccountCode | None,
    cashier_session,
    reference: str,
    idempotency_key: str,
    actor: str,
) -> AllocationResult:
    profile = lock_credit_profile(party_id)
    party = profile.party
    idempotency_key = (idempotency_key or "").strip()

    if idempotency_key:
        existing = PaymentAllocation.objects.filter(party=party, idempotency_key=idempotency_key).first()
        if existing is not None:
            if existing.payment_amount != payment_amount:
                raise InvalidPaymentAmountError(
                    f"Idempotency key {idempotency_key!r} was already used for a payment of "
                    f"{existing.payment_amount}"
                )
            logger.info(
                "Allocation replayed",
                extra={"allocation_id": str(existing.id), "party_id": str(party.pk)},
            )
            return _result_from_allocation(existing, replayed=True)

    if cashier_session is not None:
        assert_session_accepts_postings(cashier_session)

    settlement_account = get_settlement_account(payment_method, account_code=settlement_account_code)
    party_account = get_party_account(party)

    candidates = _resolve_candidates(party, invoice_ids)
    steps = _plan(candidates, payment_amount)
    unpaid_before = party_unpaid_total(party)

    total_allocated = sum(applied for _, _, applied in steps)
    excess_payment = payment_amount - total_allocated
    allocation_id = uuid.uuid4()

    posted = []
    for step_no, (invoice, outstanding, applied) in enumerate(steps, start=1):
        metadata = {
            "allocation_id": str(allocation_id),
            "invoice_id": str(invoice.pk),
            "reference": invoice.reference,
        }
        entry = create_journal_entry(
            memo=f"Payment {reference or allocation_id} applied to {invoice.reference}",
            lines=_payment_lines(
                invoice,
                applied,
                party_account=party_account,
                settlement_account=settlement_account,
                metadata=metadata,
            ),
            source_type=PAYMENT_SOURCE_TYPE,
            source_id=f"{allocation_id}:{invoice.pk}",
            cashier_session=cashier_session,
            created_by=actor,
        )
        posted.append((step_no, invoice, outstanding, applied, entry))
        refresh_status(invoice, outstanding=outstanding - applied)

    posted_total = int(
        JournalLine.objects.filter(journal_entry__in=[p[4] for p in posted]).aggregate(
            total=Coalesce(Sum("debit"), 0)
        )["total"]
    )
    if posted_total != total_allocated or total_allocated + excess_payment != payment_amount:
        logger.error(
            "Allocation does not reconcile",
            extra={
                "party_id": str(party.pk),
                "payment_amount": payment_amount,
                "total_allocated": total_allocated,
                "posted_total": posted_total,
            },
        )
        raise AllocationIntegrityError(
            f"Posted {posted_total} but allocated {total_allocated} of {payment_amount}"
        )

    allocation = PaymentAllocation.objects.create(
        id=allocation_id,
        party=party,
        mode=mode,
        payment_amount=payment_amount,
        total_allocated=total_allocated,
        excess_payment=excess_payment,
        remaining_balance=unpaid_before - total_allocated,
        settlement_account=settlement_account,
        payment_method=(payment_method or "") if not settlement_account_code else "",
        reference=reference or "",
        idempotency_key=idempotency_key,
        cashier_session=cashier_session,
        created_by=actor or "",
    )
    InvoicePayment.objects.bulk_create(
        [
            InvoicePayment(
                invoice=invoice,
                allocation=allocation,
                step=step_no,
                amount=applied,
                settlement_account=settlement_account,
                journal_entry=entry,
                reference=reference or "",
            )
            for step_no, invoice, _, applied, entry in posted
        ]
    )

    remaining_balance = party_unpaid_total(party)
    if remaining_balance != allocation.remaining_balance:
        raise AllocationIntegrityError(
            f"Remaining balance mismatch: expected {allocation.remaining_balance}, "
            f"ledger-side invoices show {remaining_balance}"
        )

    if total_allocated > 0:
        record_repayment(party.pk, total_allocated)

    logger.info(
        "Payment allocated",
        extra={
            "allocation_id": str(allocation.id),
            "party_id": str(party.pk),
            "mode": mode,
            "payment_amount": payment_amount,
            "total_allocated": total_allocated,
            "excess_payment": excess_payment,
            "remaining_balance": remaining_balance,
            "invoices": len(posted),
            "cashier_session": str(cashier_session) if cashier_session else None,
        },
    )
    if excess_payment:
        logger.info(
            "Payment has unallocated excess",
            extra={"allocation_id": str(allocation.id), "excess_payment": excess_payment},
        )

    return AllocationResult(
        invoices_paid=[
            InvoiceAllocation(invoice.pk, invoice.reference, applied)
            for _, invoice, _, applied, _ in posted
        ],
        remaining_balance=remaining_balance,
        total_allocated=total_allocated,
        excess_payment=excess_payment,
        allocation_id=allocation.id,
    )


def allocate_bulk(
    party_id: PartyId,
    payment_amount: MinorUnits,
    *,
    invoice_ids=None,
    payment_method: str = "cash",
    settlement_account_code: AccountCode | None = None,
    cashier_session=None,
    reference: str = "",
    idempotency_key: str = "",
    actor: str = "",
) -> AllocationResult:
    """
    Apply one payment across the party's unpaid invoices, oldest first.
    """
    payment_amount = _validate_amount(payment_amount)
    return _allocate(
        party_id,
        payment_amount,
        invoice_ids=invoice_ids,
        mode=PaymentAllocation.MODE_BULK,
        payment_method=payment_method,
        settlement_account_code=settlement_account_code,
        cashier_session=cashier_session,
        reference=reference,
        idempotency_key=idempotency_key,
        actor=actor,
    )


@transaction.atomic
def allocate_single(
    invoice_id: InvoiceId,
    payment_amount: MinorUnits | None = None,
    *,
    payment_method: str = "cash",
    settlement_account_code: AccountCode | None = None,
    cashier_session=None,
    reference: str = "",
    idempotency_key: str = "",
    actor: str = "",
) -> AllocationResult:
    """
    Pay one specific invoice. Omitted amount defaults to its full outstanding;
    anything above the outstanding is reported as excess.
    """
    if payment_amount is not None:
        payment_amount = _validate_amount(payment_amount)

    invoice = get_invoice(invoice_id)
    lock_credit_profile(invoice.party_id)
    invoice = get_invoice(invoice.pk, for_update=True)

    outstanding = invoice_outstanding(invoice)
    replay = bool(idempotency_key) and PaymentAllocation.objects.filter(
        party_id=invoice.party_id, idempotency_key=idempotency_key.strip()
    ).exists()

    if not replay and (not invoice.is_payable or outstanding <= 0):
        raise InvoiceNotPayableError(
            f"Invoice {invoice.reference} has nothing outstanding (status={invoice.status})"
        )

    if payment_amount is None:
        if replay:
            existing = PaymentAllocation.objects.get(
                party_id=invoice.party_id, idempotency_key=idempotency_key.strip()
            )
            payment_amount = existing.payment_amount
        else:
            payment_amount = outstanding

    return _allocate(
        invoice.party_id,
        payment_amount,
        invoice_ids=[invoice.pk],
        mode=PaymentAllocation.MODE_SINGLE,
        payment_method=payment_method,
        settlement_account_code=settlement_account_code,
        cashier_session=cashier_session,
        reference=reference,
        idempotency_key=idempotency_key,
        actor=actor,
    )
