# cashier/services/reconciliation_service.py

"""
======================================================
PATH: cashier/services/reconciliation_service.py
======================================================
RECONCILIATION SERVICE

create:  declared balances vs ledger-expected balances, one line per account
approve: review gate -> variance adjustments -> session RECONCILED

Review gate (SESSION scope):
- every count outside tolerance carries a reason or a manager review
- every line outside tolerance is backed by an explained/reviewed closing count
- mobile money lines with activity or variance are trusted only when the
  latest verification for that account is all_confirmed, or the closing
  count for it was reviewed

ACCOUNTS scope lines outside tolerance need reconciliation notes.

Variance adjustments post against CASH_SHORT_OVER so the ledger agrees with
what was physically counted. They are not attributed to the (closed) session.
"""

from __future__ import annotations

import logging
from datetime import datetime

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from accounting.services.account_resolver import (
    MOBILE_MONEY,
    get_cash_short_over_account,
    resolve_code,
)
from accounting.services.balance_service import get_account_balance
from accounting.services.exceptions import AccountResolutionError
from accounting.services.journal_entry_service import create_journal_entry
from cashier.models.cash_count import CashCount
from cashier.models.cashier_session import CashierSession
from cashier.models.reconciliation import Reconciliation, ReconciliationLine
from cashier.services.cash_count_service import count_account, expected_amount, ledger_net
from cashier.services.exceptions import (
    ReconciliationError,
    ReconciliationNotFoundError,
    VarianceReviewRequiredError,
)
from cashier.services.lifecycle import validate_transition
from cashier.services.mobile_money_service import latest_verification
from cashier.services.session_gate import lock_session
from cashier.services.session_service import normalize_declared_amounts
from cashier.services.variance_policy import VariancePolicy

logger = logging.getLogger(__name__)

RECONCILIATION_SOURCE_TYPE = "reconciliation"


def get_reconciliation(reconciliation_id, *, for_update: bool = False) -> Reconciliation:
    qs = Reconciliation.objects.select_related("session")
    if for_update:
        qs = qs.select_for_update()
    try:
        return qs.get(pk=reconciliation_id)
    except (Reconciliation.DoesNotExist, ValidationError, ValueError) as exc:
        raise ReconciliationNotFoundError(f"Reconciliation {reconciliation_id} not found") from exc


def _mobile_money_code() -> str:
    return resolve_code(MOBILE_MONEY)


# ------------------------------------------------------------
# CREATE
# ------------------------------------------------------------


def _session_lines(session: CashierSession, declared: dict, policy: VariancePolicy) -> list[dict]:
    tolerance = policy.tolerance_for(session.channel)
    mm_code = _mobile_money_code()

    rows = []
    for code, declared_amount in sorted(declared.items()):
        account = count_account(code)
        expected = expected_amount(session, account)
        variance = declared_amount - expected
        has_variance = policy.has_variance(variance, tolerance=tolerance)
        activity = ledger_net(session, account) != 0
        rows.append(
            {
                "account": account,
                "declared": declared_amount,
                "expected": expected,
                "variance": variance,
                "tolerance": tolerance,
                "has_variance": has_variance,
                "requires_review": has_variance or (account.code == mm_code and (activity or variance != 0)),
            }
        )

    # Undeclared mobile money activity is still reconciled, against verification.
    if mm_code not in declared:
        try:
            mm_account = count_account(mm_code)
        except AccountResolutionError:
            mm_account = None
        if mm_account is not None and ledger_net(session, mm_account) != 0:
            expected = expected_amount(session, mm_account)
            rows.append(
                {
                    "account": mm_account,
                    "declared": expected,
                    "expected": expected,
                    "variance": 0,
                    "tolerance": tolerance,
                    "has_variance": False,
                    "requires_review": True,
                }
            )
    return rows


def _account_lines(declared: dict, as_of, policy: VariancePolicy) -> list[dict]:
    tolerance = policy.tolerance_for(None)
    rows = []
    for code, declared_amount in sorted(declared.items()):
        account = count_account(code)
        expected = get_account_balance(account, as_of=as_of)
        variance = declared_amount - expected
        has_variance = policy.has_variance(variance, tolerance=tolerance)
        rows.append(
            {
                "account": account,
                "declared": declared_amount,
                "expected": expected,
                "variance": variance,
                "tolerance": tolerance,
                "has_variance": has_variance,
                "requires_review": has_variance,
            }
        )
    return rows


@transaction.atomic
def create_reconciliation(
    *,
    session_id=None,
    declared_balances: dict,
    as_of: datetime | None = None,
    notes: str = "",
    created_by: str = "",
) -> Reconciliation:
    declared = normalize_declared_amounts(declared_balances, field="declared_balances")
    if not declared:
        raise ReconciliationError("At least one declared balance is required")

    policy = VariancePolicy.from_settings()

    if session_id is not None:
        session = lock_session(session_id)
        if session.status == CashierSession.STATUS_OPEN:
            raise ReconciliationError(f"Close session {session.pk} before reconciling it")
        if session.status == CashierSession.STATUS_RECONCILED:
            raise ReconciliationError(f"Session {session.pk} is already reconciled")
        counted = set(
            session.cash_counts.filter(count_type=CashCount.TYPE_CLOSING).values_list(
                "account__code", flat=True
            )
        )
        # Mobile money is cleared by verification, not by a closing count.
        uncounted = sorted(c for c in declared if c not in counted and c != _mobile_money_code())
        if uncounted:
            raise ReconciliationError(
                f"No closing count for {', '.join(uncounted)} on session {session.pk}; "
                "declare every counted account when closing the session"
            )
        scope = Reconciliation.SCOPE_SESSION
        as_of = session.closed_at or timezone.now()
        rows = _session_lines(session, declared, policy)
    else:
        session = None
        scope = Reconciliation.SCOPE_ACCOUNTS
        as_of = as_of or timezone.now()
        rows = _account_lines(declared, as_of, policy)

    recon = Reconciliation.objects.create(
        scope=scope,
        session=session,
        as_of=as_of,
        declared_total=sum(r["declared"] for r in rows),
        expected_total=sum(r["expected"] for r in rows),
        variance_total=sum(r["variance"] for r in rows),
        notes=(notes or "").strip(),
        created_by=created_by or "",
    )
    ReconciliationLine.objects.bulk_create(
        [ReconciliationLine(reconciliation=recon, **row) for row in rows]
    )

    logger.info(
        "Reconciliation created",
        extra={
            "reconciliation_id": str(recon.pk),
            "scope": scope,
            "session_id": str(session.pk) if session else None,
            "declared_total": recon.declared_total,
            "expected_total": recon.expected_total,
            "variance_total": recon.variance_total,
            "lines_needing_review": sum(1 for r in rows if r["requires_review"]),
        },
    )
    return recon


# ------------------------------------------------------------
# REVIEW GATE
# ------------------------------------------------------------


def review_gate_problems(recon: Reconciliation, *, approval_notes: str = "") -> list[str]:
    problems = []
    lines = list(recon.lines.select_related("account"))

    if recon.scope == Reconciliation.SCOPE_ACCOUNTS:
        if any(line.has_variance for line in lines) and not (recon.notes or approval_notes).strip():
            problems.append("Variances outside tolerance need reconciliation notes before approval")
        return problems

    session = recon.session
    counts = list(session.cash_counts.select_related("account").order_by("taken_at", "id"))

    for count in counts:
        if count.has_variance and not count.is_resolved:
            problems.append(
                f"{count.get_count_type_display()} count #{count.pk} on {count.account.code} "
                f"has variance {count.variance} with no reason or review"
            )

    closing_by_account = {}
    for count in counts:
        if count.count_type == CashCount.TYPE_CLOSING:
            closing_by_account[count.account_id] = count

    mm_code = _mobile_money_code()
    for line in lines:
        if not line.requires_review:
            continue
        closing = closing_by_account.get(line.account_id)

        if line.account.code == mm_code:
            verification = latest_verification(session.pk, line.account)
            trusted = (verification is not None and verification.all_confirmed) or (
                closing is not None and closing.is_reviewed
            )
            if not trusted:
                problems.append(
                    f"Mobile money on {line.account.code} needs a fully confirmed verification "
                    "or a reviewed closing count"
                )
            continue

        if line.has_variance:
            explained = closing is not None and (bool(closing.variance_reason.strip()) or closing.is_reviewed)
            if not explained:
                problems.append(
                    f"Variance {line.variance} on {line.account.code} needs an explained or reviewed closing count"
                )

    return problems


# ------------------------------------------------------------
# APPROVE
# ------------------------------------------------------------


def _adjustment_lines(line: ReconciliationLine, short_over):
    amount = abs(line.variance)
    increase = line.variance > 0
    metadata = {"reconciliation_id": str(line.reconciliation_id), "variance": line.variance}
    if line.account.is_debit_normal == increase:
        return [
            {"account": line.account, "debit": amount, "metadata": metadata},
            {"account": short_over, "credit": amount, "metadata": metadata},
        ]
    return [
        {"account": short_over, "debit": amount, "metadata": metadata},
        {"account": line.account, "credit": amount, "metadata": metadata},
    ]


@transaction.atomic
def approve_reconciliation(reconciliation_id, *, approver_id: str, notes: str = "") -> Reconciliation:
    approver_id = (str(approver_id) if approver_id is not None else "").strip()
    if not approver_id:
        raise ReconciliationError("approver_id is required")

    recon = get_reconciliation(reconciliation_id, for_update=True)
    if recon.status != Reconciliation.STATUS_DRAFT:
        raise ReconciliationError(f"Reconciliation {recon.pk} is already {recon.status}")

    session = None
    if recon.scope == Reconciliation.SCOPE_SESSION:
        session = lock_session(recon.session_id)
        validate_transition(session=session, target_status=CashierSession.STATUS_RECONCILED)
        recon.session = session

    problems = review_gate_problems(recon, approval_notes=notes)
    if problems:
        logger.warning(
            "Reconciliation blocked by review gate",
            extra={"reconciliation_id": str(recon.pk), "problems": problems},
        )
        raise VarianceReviewRequiredError(
            f"Reconciliation {recon.pk} has unresolved variances", problems=problems
        )

    short_over = None
    for line in recon.lines.select_related("account").order_by("account__code"):
        if line.variance == 0:
            continue
        short_over = short_over or get_cash_short_over_account()
        entry = create_journal_entry(
            memo=f"Reconciliation variance on {line.account.code}",
            lines=_adjustment_lines(line, short_over),
            source_type=RECONCILIATION_SOURCE_TYPE,
            source_id=f"{recon.pk}:{line.account.code}",
            created_by=approver_id,
        )
        line.adjustment_entry = entry
        line.save(update_fields=["adjustment_entry"])

    now = timezone.now()
    recon.status = Reconciliation.STATUS_APPROVED
    recon.approved_by = approver_id
    recon.approved_at = now
    if notes:
        recon.notes = "\n".join(filter(None, [recon.notes, notes.strip()]))
    recon.save(update_fields=["status", "approved_by", "approved_at", "notes"])

    if session is not None:
        session.status = CashierSession.STATUS_RECONCILED
        session.reconciled_at = now
        session.reconciled_by = approver_id
        session.save(update_fields=["status", "reconciled_at", "reconciled_by", "updated_at"])

    logger.info(
        "Reconciliation approved",
        extra={
            "reconciliation_id": str(recon.pk),
            "session_id": str(session.pk) if session else None,
            "variance_total": recon.variance_total,
            "approved_by": approver_id,
        },
    )
    return recon


def list_reconciliations(*, session_id=None, scope: str | None = None, status: str | None = None):
    qs = Reconciliation.objects.select_related("session").prefetch_related("lines__account")
    if session_id:
        qs = qs.filter(session_id=session_id)
    if scope:
        qs = qs.filter(scope=scope)
    if status:
        qs = qs.filter(status=status)
    return qs.order_by("-created_at")
