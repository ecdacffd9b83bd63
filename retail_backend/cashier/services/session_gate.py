# cashier/services/session_gate.py

"""
SESSION GATE

The single check every session-attributed posting goes through. Called by
the ledger (lazily imported) and by the payment allocator, always inside the
caller's transaction: the session row stays locked until that transaction
ends, so a concurrent close cannot slip in between check and posting.
"""

from __future__ import annotations

import logging

from django.core.exceptions import ValidationError

from accounting.types import SessionId
from cashier.models.cashier_session import CashierSession
from cashier.services.exceptions import SessionNotFoundError, SessionNotOpenError

logger = logging.getLogger(__name__)


def lock_session(session_id: SessionId) -> CashierSession:
    if isinstance(session_id, CashierSession):
        session_id = session_id.pk
    try:
        return CashierSession.objects.select_for_update().get(pk=session_id)
    except (CashierSession.DoesNotExist, ValidationError, ValueError) as exc:
        raise SessionNotFoundError(f"Cashier session {session_id} not found") from exc


def assert_session_accepts_postings(session_id: SessionId) -> CashierSession:
    session = lock_session(session_id)
    if not session.is_open:
        logger.warning(
            "Posting refused for non-open session",
            extra={"session_id": str(session.pk), "status": session.status},
        )
        raise SessionNotOpenError(
            f"Cashier session {session.pk} is {session.status}; it no longer accepts postings"
        )
    return session
