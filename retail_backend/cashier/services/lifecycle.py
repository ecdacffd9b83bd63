"""
CASHIER SESSION LIFECYCLE DOMAIN RULES

This module defines the ONLY allowed lifecycle transitions
for CashierSession entities.

DESIGN PRINCIPLES:
- No database writes
- No side effects
- Single source of truth
"""

from cashier.models.cashier_session import CashierSession
from cashier.services.exceptions import InvalidSessionTransitionError

# ============================================================
# STATE DEFINITIONS
# ============================================================

TERMINAL_STATES = {
    CashierSession.STATUS_RECONCILED,
}

ALLOWED_TRANSITIONS = {
    CashierSession.STATUS_OPEN: {
        CashierSession.STATUS_CLOSED,
    },
    CashierSession.STATUS_CLOSED: {
        CashierSession.STATUS_RECONCILED,
    },
}


# ============================================================
# DOMAIN RULES
# ============================================================


def can_transition(*, from_status: str, to_status: str) -> bool:
    if from_status in TERMINAL_STATES:
        return False

    return to_status in ALLOWED_TRANSITIONS.get(from_status, set())


def validate_transition(*, session: CashierSession, target_status: str):
    if not can_transition(
        from_status=session.status,
        to_status=target_status,
    ):
        raise InvalidSessionTransitionError(
            f"Session {session.id} cannot transition from "
            f"'{session.status}' to '{target_status}'"
        )
