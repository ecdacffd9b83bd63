# cashier/services/mobile_money_service.py

"""
MOBILE MONEY VERIFICATION

The cashier (or a supervisor) checks the session's mobile money receipts
against the provider statement and records which transaction ids arrived.
all_confirmed is derived: true only when nothing was flagged.
"""

from __future__ import annotations

import logging

from django.db import transaction

from accounting.services.account_resolver import get_mobile_money_account
from cashier.models.cashier_session import CashierSession
from cashier.models.mobile_money_verification import MobileMoneyVerification
from cashier.services.cash_count_service import count_account
from cashier.services.exceptions import CashierError, ReconciliationError
from cashier.services.session_gate import lock_session

logger = logging.getLogger(__name__)


def _clean_ids(raw, *, field: str) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, (str, bytes)):
        raise CashierError(f"{field} must be a list of transaction ids")
    ids = []
    for value in raw:
        v = str(value).strip()
        if v and v not in ids:
            ids.append(v)
    return ids


@transaction.atomic
def verify_mobile_money(
    session_id,
    *,
    transaction_ids,
    flagged_transaction_ids=(),
    notes: str = "",
    verified_by: str = "",
    account_code: str | None = None,
) -> MobileMoneyVerification:
    session = lock_session(session_id)
    if session.status == CashierSession.STATUS_RECONCILED:
        raise ReconciliationError(f"Session {session.pk} is already reconciled")

    transaction_ids = _clean_ids(transaction_ids, field="transaction_ids")
    flagged = _clean_ids(flagged_transaction_ids, field="flagged_transaction_ids")

    unknown = [t for t in flagged if t not in transaction_ids]
    if unknown:
        raise CashierError(
            "Flagged transaction ids must be part of the verified set: " + ", ".join(unknown)
        )

    account = count_account(account_code) if account_code else get_mobile_money_account()

    verification = MobileMoneyVerification.objects.create(
        session=session,
        account=account,
        transaction_ids=transaction_ids,
        flagged_transaction_ids=flagged,
        all_confirmed=not flagged,
        notes=(notes or "").strip(),
        verified_by=verified_by or "",
    )

    log = logger.info if verification.all_confirmed else logger.warning
    log(
        "Mobile money verification recorded",
        extra={
            "session_id": str(session.pk),
            "account": account.code,
            "transactions": len(transaction_ids),
            "flagged": len(flagged),
            "all_confirmed": verification.all_confirmed,
        },
    )
    return verification


def latest_verification(session_id, account) -> MobileMoneyVerification | None:
    return (
        MobileMoneyVerification.objects.filter(session_id=session_id, account=account)
        .order_by("-verified_at", "-id")
        .first()
    )


def list_verifications(session_id):
    return MobileMoneyVerification.objects.select_related("account").filter(session_id=session_id)
