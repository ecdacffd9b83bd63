# cashier/services/cash_count_service.py

"""
======================================================
PATH: cashier/services/cash_count_service.py
======================================================
BLIND CASH COUNTS

expected = declared opening float for the account
         + net ledger movement on that account attributed to the session

variance = declared - expected
has_variance = |variance| > tolerance (VariancePolicy, frozen on the count)

The cashier never needs the expected figure to record a count; the API
hides it from roles without cashier.review.
"""

from __future__ import annotations

import logging

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from accounting.models.account import Account
from accounting.services.account_resolver import get_cash_account, get_settlement_account
from accounting.services.balance_service import get_account_balance
from cashier.models.cash_count import CashCount
from cashier.models.cashier_session import CashierSession
from cashier.services.exceptions import (
    CashCountNotFoundError,
    CashierError,
    ReconciliationError,
    SessionNotOpenError,
)
from cashier.services.session_gate import lock_session
from cashier.services.variance_policy import VariancePolicy

logger = logging.getLogger(__name__)


def _require_amount(value, *, field: str = "declared_amount") -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise CashierError(f"{field} must be an integer amount of minor units")
    if value < 0:
        raise CashierError(f"{field} cannot be negative")
    return value


def count_account(account_code: str | None = None) -> Account:
    """Accounts a cashier can count: cash by default, any non-parent asset by code."""
    if account_code:
        return get_settlement_account(None, account_code=account_code)
    return get_cash_account()


def ledger_net(session: CashierSession, account: Account) -> int:
    return get_account_balance(account, cashier_session=session.pk, include_children=False)


def expected_amount(session: CashierSession, account: Account) -> int:
    opening = int((session.opening_balances or {}).get(account.code, 0))
    return opening + ledger_net(session, account)


def record_count_for_session(
    session: CashierSession,
    account: Account,
    declared_amount: int,
    *,
    count_type: str,
    variance_reason: str = "",
    counted_by: str = "",
    policy: VariancePolicy | None = None,
) -> CashCount:
    """Caller holds the session lock."""
    policy = policy or VariancePolicy.from_settings()

    expected = expected_amount(session, account)
    variance = declared_amount - expected
    tolerance = policy.tolerance_for(session.channel)
    has_variance = policy.has_variance(variance, tolerance=tolerance)

    count = CashCount.objects.create(
        session=session,
        account=account,
        count_type=count_type,
        declared_amount=declared_amount,
        expected_amount=expected,
        variance=variance,
        tolerance=tolerance,
        has_variance=has_variance,
        variance_reason=(variance_reason or "").strip(),
        counted_by=counted_by or "",
    )

    logger.info(
        "Cash count recorded",
        extra={
            "session_id": str(session.pk),
            "count_id": count.pk,
            "count_type": count_type,
            "account": account.code,
            "declared": declared_amount,
            "expected": expected,
            "variance": variance,
            "has_variance": has_variance,
        },
    )
    if has_variance:
        policy.notify_if_needed(
            variance, session_id=str(session.pk), channel=session.channel, count_id=count.pk
        )
    return count


@transaction.atomic
def record_cash_count(
    session_id,
    declared_amount: int,
    *,
    account_code: str | None = None,
    count_type: str = CashCount.TYPE_INTERIM,
    variance_reason: str = "",
    counted_by: str = "",
) -> CashCount:
    declared_amount = _require_amount(declared_amount)
    if count_type not in dict(CashCount.COUNT_TYPES):
        raise CashierError(f"Unknown count type '{count_type}'")

    session = lock_session(session_id)
    if not session.is_open:
        raise SessionNotOpenError(f"Cashier session {session.pk} is {session.status}; counts need an open session")

    return record_count_for_session(
        session,
        count_account(account_code),
        declared_amount,
        count_type=count_type,
        variance_reason=variance_reason,
        counted_by=counted_by,
    )


def get_cash_count(count_id, *, for_update: bool = False) -> CashCount:
    qs = CashCount.objects.select_related("session", "account")
    if for_update:
        qs = qs.select_for_update()
    try:
        return qs.get(pk=count_id)
    except (CashCount.DoesNotExist, ValidationError, ValueError, TypeError) as exc:
        raise CashCountNotFoundError(f"Cash count {count_id} not found") from exc


def _ensure_session_not_reconciled(count: CashCount) -> None:
    if count.session.status == CashierSession.STATUS_RECONCILED:
        raise ReconciliationError(
            f"Session {count.session_id} is reconciled; its counts can no longer change"
        )


@transaction.atomic
def explain_variance(count_id, reason: str) -> CashCount:
    reason = (reason or "").strip()
    if not reason:
        raise CashierError("A variance reason is required")

    count = get_cash_count(count_id, for_update=True)
    _ensure_session_not_reconciled(count)

    count.variance_reason = reason
    count.save(update_fields=["variance_reason"])

    logger.info(
        "Variance explained",
        extra={"count_id": count.pk, "session_id": str(count.session_id), "variance": count.variance},
    )
    return count


@transaction.atomic
def review_cash_count(count_id, *, reviewer_id: str, notes: str = "") -> CashCount:
    """
    Manager review of a count. Reviewing twice keeps the first review.
    """
    reviewer_id = (str(reviewer_id) if reviewer_id is not None else "").strip()
    if not reviewer_id:
        raise CashierError("reviewer_id is required")

    count = get_cash_count(count_id, for_update=True)
    if count.is_reviewed:
        logger.debug("Cash count already reviewed", extra={"count_id": count.pk})
        return count
    _ensure_session_not_reconciled(count)

    count.reviewed_by = reviewer_id
    count.reviewed_at = timezone.now()
    count.review_notes = (notes or "").strip()
    count.save(update_fields=["reviewed_by", "reviewed_at", "review_notes"])

    logger.info(
        "Cash count reviewed",
        extra={
            "count_id": count.pk,
            "session_id": str(count.session_id),
            "variance": count.variance,
            "reviewed_by": reviewer_id,
        },
    )
    return count


def list_session_counts(session_id):
    return CashCount.objects.select_related("account").filter(session_id=session_id).order_by("taken_at", "id")


def list_pending_variance_reviews(channel: str | None = None):
    """Counts outside tolerance that no manager has reviewed yet, newest first."""
    qs = CashCount.objects.select_related("session", "account").filter(
        has_variance=True, reviewed_at__isnull=True
    )
    if channel:
        qs = qs.filter(session__channel=channel)
    return qs.order_by("-taken_at", "-id")
