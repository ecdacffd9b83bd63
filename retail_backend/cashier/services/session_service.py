# cashier/services/session_service.py

"""
======================================================
PATH: cashier/services/session_service.py
======================================================
CASHIER SESSION SERVICE

Lifecycle: OPEN -> CLOSED -> RECONCILED (cashier.services.lifecycle).

Rules:
- One OPEN session per (channel, cashier_id): pre-check plus the conditional
  unique constraint, so racing opens cannot both succeed
- Closing records one CLOSING blind count per declared account, then flips
  the status under the session lock; after that the session gate refuses
  new attributed postings
- Every figure in a summary is derived from the ledger at call time
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone

from accounting.models.account import Account
from accounting.models.journal_line import JournalLine
from accounting.services.account_resolver import CASH, MOBILE_MONEY, resolve_code
from accounting.types import SessionId
from cashier.models.cash_count import CashCount
from cashier.models.cashier_session import CashierSession
from cashier.services.cash_count_service import (
    count_account,
    ledger_net,
    record_count_for_session,
)
from cashier.services.exceptions import (
    CashierError,
    SessionAlreadyOpenError,
    SessionNotFoundError,
    SessionNotOpenError,
)
from cashier.services.lifecycle import validate_transition
from cashier.services.session_gate import lock_session
from cashier.services.variance_policy import VariancePolicy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionAccountSummary:
    account_code: str
    account_name: str
    opening: int
    ledger_net: int
    expected: int
    declared: int | None
    variance: int
    has_variance: bool


@dataclass(frozen=True)
class SessionSummary:
    session_id: object
    channel: str
    cashier_id: str
    status: str
    opened_at: datetime
    closed_at: datetime | None
    reconciled_at: datetime | None
    accounts: list
    total_expected: int
    total_declared: int
    total_variance: int


# ------------------------------------------------------------
# HELPERS
# ------------------------------------------------------------


def cashier_controlled_codes() -> list[str]:
    return [resolve_code(CASH), resolve_code(MOBILE_MONEY)]


def normalize_declared_amounts(raw, *, field: str) -> dict:
    """{account_code: minor units}; every code must be a countable asset account."""
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise CashierError(f"{field} must be a mapping of account code to amount")

    normalized = {}
    for code, amount in raw.items():
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise CashierError(f"{field}[{code}] must be an integer amount of minor units")
        if amount < 0:
            raise CashierError(f"{field}[{code}] cannot be negative")
        account = count_account(str(code).strip())
        normalized[account.code] = amount
    return normalized


def get_session(session_id: SessionId) -> CashierSession:
    try:
        return CashierSession.objects.get(pk=session_id)
    except (CashierSession.DoesNotExist, ValidationError, ValueError) as exc:
        raise SessionNotFoundError(f"Cashier session {session_id} not found") from exc


def _session_accounts(session: CashierSession) -> list[Account]:
    """
    Opening / declared accounts, the cashier-controlled defaults that exist,
    and any top-level asset account the session actually moved.
    """
    codes = set(session.opening_balances or {}) | set(session.closing_declared or {})
    codes |= set(cashier_controlled_codes())

    moved_ids = (
        JournalLine.objects.filter(
            journal_entry__cashier_session=session.pk,
            account__account_type=Account.ASSET,
            account__parent__isnull=True,
        )
        .values_list("account_id", flat=True)
        .distinct()
    )

    qs = Account.objects.filter(code__in=codes, is_parent=False) | Account.objects.filter(pk__in=moved_ids)
    return list(qs.distinct().order_by("code"))


# ------------------------------------------------------------
# LIFECYCLE
# ------------------------------------------------------------


@transaction.atomic
def open_session(
    channel: str,
    cashier_id: str,
    *,
    opening_balances: dict | None = None,
    notes: str = "",
) -> CashierSession:
    channel = (str(channel) if channel is not None else "").strip()
    cashier_id = (str(cashier_id) if cashier_id is not None else "").strip()
    if not channel or not cashier_id:
        raise CashierError("channel and cashier_id are required")

    opening = normalize_declared_amounts(opening_balances, field="opening_balances")

    existing = CashierSession.objects.filter(
        channel=channel, cashier_id=cashier_id, status=CashierSession.STATUS_OPEN
    ).first()
    if existing is not None:
        raise SessionAlreadyOpenError(
            f"Cashier {cashier_id} already has open session {existing.pk} on channel {channel}",
            existing_session_id=existing.pk,
        )

    try:
        with transaction.atomic():
            session = CashierSession.objects.create(
                channel=channel,
                cashier_id=cashier_id,
                opening_balances=opening,
                notes=(notes or "").strip(),
            )
    except IntegrityError as exc:
        winner = CashierSession.objects.filter(
            channel=channel, cashier_id=cashier_id, status=CashierSession.STATUS_OPEN
        ).first()
        if winner is None:
            raise
        raise SessionAlreadyOpenError(
            f"Cashier {cashier_id} already has open session {winner.pk} on channel {channel}",
            existing_session_id=winner.pk,
        ) from exc

    logger.info(
        "Cashier session opened",
        extra={
            "session_id": str(session.pk),
            "channel": channel,
            "cashier_id": cashier_id,
            "opening_balances": opening,
        },
    )
    return session


@transaction.atomic
def close_session(
    session_id,
    declared_closing_amounts: dict,
    *,
    notes: str = "",
    closed_by: str = "",
) -> SessionSummary:
    session = lock_session(session_id)
    validate_transition(session=session, target_status=CashierSession.STATUS_CLOSED)

    declared = normalize_declared_amounts(declared_closing_amounts, field="declared_closing_amounts")
    if not declared:
        raise CashierError("At least one declared closing amount is required")

    policy = VariancePolicy.from_settings()
    for code, amount in sorted(declared.items()):
        record_count_for_session(
            session,
            count_account(code),
            amount,
            count_type=CashCount.TYPE_CLOSING,
            counted_by=closed_by,
            policy=policy,
        )

    session.status = CashierSession.STATUS_CLOSED
    session.closed_at = timezone.now()
    session.closing_declared = declared
    if notes:
        session.notes = "\n".join(filter(None, [session.notes, notes.strip()]))
    session.save(update_fields=["status", "closed_at", "closing_declared", "notes", "updated_at"])

    summary = get_session_summary(session.pk)
    logger.info(
        "Cashier session closed",
        extra={
            "session_id": str(session.pk),
            "channel": session.channel,
            "cashier_id": session.cashier_id,
            "total_expected": summary.total_expected,
            "total_declared": summary.total_declared,
            "total_variance": summary.total_variance,
            "closed_by": closed_by,
        },
    )
    return summary


# ------------------------------------------------------------
# QUERIES
# ------------------------------------------------------------


def get_session_summary(session_id: SessionId) -> SessionSummary:
    session = session_id if isinstance(session_id, CashierSession) else get_session(session_id)
    policy = VariancePolicy.from_settings()
    tolerance = policy.tolerance_for(session.channel)
    closing = session.closing_declared or {}

    rows = []
    for account in _session_accounts(session):
        opening = int((session.opening_balances or {}).get(account.code, 0))
        net = ledger_net(session, account)
        expected = opening + net
        declared = closing.get(account.code)
        variance = (declared - expected) if declared is not None else 0
        rows.append(
            SessionAccountSummary(
                account_code=account.code,
                account_name=account.name,
                opening=opening,
                ledger_net=net,
                expected=expected,
                declared=declared,
                variance=variance,
                has_variance=policy.has_variance(variance, tolerance=tolerance),
            )
        )

    return SessionSummary(
        session_id=session.pk,
        channel=session.channel,
        cashier_id=session.cashier_id,
        status=session.status,
        opened_at=session.opened_at,
        closed_at=session.closed_at,
        reconciled_at=session.reconciled_at,
        accounts=rows,
        total_expected=sum(r.expected for r in rows),
        total_declared=sum(r.declared or 0 for r in rows),
        total_variance=sum(r.variance for r in rows),
    )


def get_open_session(channel: str, cashier_id: str) -> CashierSession | None:
    return CashierSession.objects.filter(
        channel=channel, cashier_id=cashier_id, status=CashierSession.STATUS_OPEN
    ).first()


def require_open_session(channel: str, cashier_id: str) -> CashierSession:
    """
    Gate for session-scoped work: returns the cashier's OPEN session, locked.
    Must be called inside a transaction.
    """
    session = get_open_session(channel, cashier_id)
    if session is None:
        raise SessionNotOpenError(
            f"No open session for cashier {cashier_id} on channel {channel}. "
            "Open a session before performing transactions."
        )
    session = lock_session(session.pk)
    if not session.is_open:
        raise SessionNotOpenError(f"Cashier session {session.pk} was closed concurrently")
    return session


def list_sessions(
    *,
    channel: str | None = None,
    cashier_id: str | None = None,
    status: str | None = None,
    opened_from=None,
    opened_to=None,
):
    qs = CashierSession.objects.all()
    if channel:
        qs = qs.filter(channel=channel)
    if cashier_id:
        qs = qs.filter(cashier_id=cashier_id)
    if status:
        qs = qs.filter(status=status)
    if opened_from:
        qs = qs.filter(opened_at__gte=opened_from)
    if opened_to:
        qs = qs.filter(opened_at__lte=opened_to)
    return qs.order_by("-opened_at")
